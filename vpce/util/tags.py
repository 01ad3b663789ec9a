"""
Naming and tagging of the endpoints this converger owns.
"""

from pyrsistent import pmap

from vpce.constants import (
    CLUSTER_TAG_PREFIX,
    CLUSTER_TAG_VALUE,
    MAX_TAG_VALUE_LENGTH,
    NAME_TAG_KEY,
    OPERATOR_TAG_KEY,
    OPERATOR_TAG_VALUE)
from vpce.errors import InvalidInputError


def cluster_tag_key(infra_name):
    """
    Return the tag key that marks resources as belonging to a cluster.

    :param str infra_name: the cluster's infrastructure name
    :raise: :class:`InvalidInputError` if ``infra_name`` is empty
    """
    if not infra_name:
        raise InvalidInputError('infrastructure name must not be empty')
    return CLUSTER_TAG_PREFIX + infra_name


def generate_endpoint_name(infra_name, resource_name):
    """
    Synthesize the ``Name`` tag of the endpoint created for a resource.
    The result is truncated to the longest tag value AWS accepts.
    """
    if not infra_name or not resource_name:
        raise InvalidInputError(
            'infrastructure name and resource name are required to name a '
            'VPC endpoint')
    name = '{0}-vpce-{1}'.format(infra_name, resource_name)
    return name[:MAX_TAG_VALUE_LENGTH]


def generate_tags(name, cluster_tag):
    """
    Return the tags every endpoint created by the converger carries.

    :return: ``pmap`` of tag key to tag value
    """
    if not name or not cluster_tag:
        raise InvalidInputError(
            'name and cluster tag are required to tag a VPC endpoint')
    return pmap({
        NAME_TAG_KEY: name,
        cluster_tag: CLUSTER_TAG_VALUE,
        OPERATOR_TAG_KEY: OPERATOR_TAG_VALUE,
    })


def default_tag_filters(cluster_tag, name):
    """
    Return the filters selecting endpoints by the default tags: any value of
    the cluster tag, the expected name, and the operator ownership tag.
    """
    return pmap({
        'tag:' + NAME_TAG_KEY: (name,),
        'tag-key': (cluster_tag,),
        'tag:' + OPERATOR_TAG_KEY: (OPERATOR_TAG_VALUE,),
    })


def tags_from_json(tag_list):
    """
    Convert an AWS ``[{'Key': k, 'Value': v}]`` tag list to a ``pmap``.
    """
    return pmap({tag['Key']: tag.get('Value', '') for tag in tag_list or ()})


def tags_contain(tags, expected):
    """
    Return True if every key/value pair in ``expected`` is also in ``tags``.

    :param tags: mapping of tag key to value
    :param expected: mapping of tag key to value
    """
    return set(expected.items()) <= set(tags.items())
