"""
Code for gathering the current state of an endpoint and of the cluster it
belongs to.
"""
from effect.do import do, do_return

from pyrsistent import pset

from vpce.cloud_client import (
    create_default_interface_endpoint,
    describe_endpoint,
    describe_private_subnets,
    filter_endpoints_by_default_tags,
    find_private_hosted_zone,
    get_record,
    get_vpc_id)
from vpce.constants import NAME_TAG_KEY, OPERATOR_TAG_KEY, OPERATOR_TAG_VALUE
from vpce.convergence.model import (
    ClusterContext,
    EndpointState,
    ObservedEndpoint)
from vpce.convergence.placement import get_candidate_vpc_ids, select_vpc
from vpce.errors import AmbiguousEndpointError, InvalidInputError
from vpce.log.intents import msg
from vpce.util.tags import (
    cluster_tag_key,
    generate_endpoint_name,
    generate_tags,
    tags_contain)


def _existing(endpoint_json):
    """
    Convert endpoint JSON to :obj:`ObservedEndpoint`, or None if the endpoint
    is already deleted.
    """
    if endpoint_json is None:
        return None
    endpoint = ObservedEndpoint.from_endpoint_json(endpoint_json)
    if endpoint.state is EndpointState.DELETED:
        return None
    return endpoint


def find_endpoint_by_id(endpoint_id):
    """
    Find an endpoint by its id.

    :return: Effect of :obj:`ObservedEndpoint` or None if there is no id or
        no such endpoint
    """
    return describe_endpoint(endpoint_id).on(_existing)


@do
def find_endpoint_by_tags(cluster, name):
    """
    Find the endpoint created by the converger with the given name in the
    cluster.

    :param ClusterContext cluster: the cluster
    :param str name: the synthesized endpoint name
    :return: Effect of :obj:`ObservedEndpoint` or None
    :raise: :class:`AmbiguousEndpointError` if more than one endpoint
        matches, :class:`InvalidInputError` if the cluster has no tag
    """
    if not cluster.cluster_tag:
        raise InvalidInputError('cluster tag must not be empty')
    endpoints_json = yield filter_endpoints_by_default_tags(
        cluster.cluster_tag, name)

    expected = {NAME_TAG_KEY: name, OPERATOR_TAG_KEY: OPERATOR_TAG_VALUE}
    found = {}
    for endpoint in filter(None, map(_existing, endpoints_json)):
        if (tags_contain(endpoint.tags, expected) and
                cluster.cluster_tag in endpoint.tags):
            found[endpoint.id] = endpoint

    if len(found) > 1:
        raise AmbiguousEndpointError(name, sorted(found))
    yield do_return(next(iter(found.values()), None))


@do
def create_endpoint(cluster, spec, name):
    """
    Create the endpoint for ``spec`` in the least loaded candidate VPC.

    :return: Effect of the new :obj:`ObservedEndpoint`
    """
    candidates = yield get_candidate_vpc_ids(cluster, spec)
    vpc_id = yield select_vpc(candidates)
    endpoint_json = yield create_default_interface_endpoint(
        vpc_id, spec.service_name, generate_tags(name, cluster.cluster_tag))
    endpoint = ObservedEndpoint.from_endpoint_json(endpoint_json)
    yield msg('endpoint-created', endpoint_id=endpoint.id, vpc_id=vpc_id,
              endpoint_name=name)
    yield do_return(endpoint)


@do
def find_or_create_endpoint(cluster, spec):
    """
    Find the endpoint of ``spec``, or create it if there is none.

    The endpoint is first looked up by the id recorded in the spec, then by
    its tags, in case the id was lost.  Only if both come up empty is it
    created.

    :param ClusterContext cluster: the cluster
    :param DesiredSpec spec: the spec of the endpoint
    :return: Effect of :obj:`ObservedEndpoint`
    """
    endpoint = yield find_endpoint_by_id(spec.endpoint_id)
    if endpoint is not None:
        yield do_return(endpoint)

    name = generate_endpoint_name(cluster.infra_name, spec.name)
    yield msg('find-endpoint-by-tags', endpoint_name=name)
    endpoint = yield find_endpoint_by_tags(cluster, name)
    if endpoint is not None:
        yield do_return(endpoint)

    endpoint = yield create_endpoint(cluster, spec, name)
    yield do_return(endpoint)


def get_private_subnet_ids(cluster):
    """
    Get the ids of the cluster's private subnets.

    :return: Effect of ``pset`` of subnet ids
    """
    return describe_private_subnets(cluster.cluster_tag).on(
        lambda subnets: pset(subnet['SubnetId'] for subnet in subnets))


@do
def get_cluster_context(region, infra_name, domain_name):
    """
    Build a :obj:`ClusterContext` by looking up the cluster's VPC and private
    hosted zone.

    :return: Effect of :obj:`ClusterContext`
    :raise: :class:`InvalidInputError` if ``infra_name`` is empty
    """
    cluster_tag = cluster_tag_key(infra_name)
    vpc_id = yield get_vpc_id(cluster_tag)
    zone_id = yield find_private_hosted_zone(domain_name)
    yield msg('cluster-context-gathered', vpc_id=vpc_id,
              hosted_zone_id=zone_id, cluster_tag=cluster_tag)
    yield do_return(ClusterContext(
        region=region, infra_name=infra_name, cluster_tag=cluster_tag,
        vpc_id=vpc_id, domain_name=domain_name, hosted_zone_id=zone_id))


def get_published_record(cluster, name):
    """
    Get the value the DNS record named ``name`` currently points at.

    :return: Effect of the value or None
    """
    return get_record(cluster.hosted_zone_id, name)
