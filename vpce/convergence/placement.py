"""
Choosing the VPC a new endpoint is created in.
"""
from effect import Constant, Effect
from effect.do import do, do_return

from pyrsistent import pmap

from vpce.cloud_client import describe_endpoints_all, filter_vpc_ids_by_tags
from vpce.errors import InvalidInputError, NoSelectionError
from vpce.log.intents import msg


@do
def select_vpc(vpc_ids):
    """
    Select the VPC that has the fewest VPC endpoints in it.

    Every page of endpoints in the candidate VPCs is counted, and a VPC
    without endpoints counts as zero.  Of VPCs with the same count, the one
    that comes first in ``vpc_ids`` is chosen.

    :param list vpc_ids: ids of the candidate VPCs
    :return: Effect of the chosen VPC id
    :raise: :class:`InvalidInputError` if there are no candidates,
        :class:`NoSelectionError` if none of the candidates is usable
    """
    if not vpc_ids:
        raise InvalidInputError('at least one VPC id is required to select '
                                'a VPC for a VPC endpoint')
    counts = {vpc_id: 0 for vpc_id in vpc_ids if vpc_id}
    if not counts:
        raise NoSelectionError(
            'no usable VPC among {0}'.format(list(vpc_ids)))

    endpoints = yield describe_endpoints_all(
        pmap({'vpc-id': tuple(counts)}))
    for endpoint in endpoints:
        vpc_id = endpoint.get('VpcId')
        if vpc_id in counts:
            counts[vpc_id] += 1

    # dicts keep insertion order, and min() keeps the first of equal keys
    selected = min(counts, key=counts.get)
    yield msg('vpc-selected', vpc_id=selected, endpoint_counts=counts)
    yield do_return(selected)


def get_candidate_vpc_ids(cluster, spec):
    """
    Get the VPCs a new endpoint may be created in: the VPCs carrying all of
    the spec's VPC tags, or the cluster's VPC when it names none.

    :param ClusterContext cluster: the cluster
    :param DesiredSpec spec: the spec of the endpoint
    :return: Effect of ``list`` of VPC ids
    """
    if spec.vpc_tags:
        return filter_vpc_ids_by_tags(spec.vpc_tags)
    return Effect(Constant([cluster.vpc_id]))
