"""
Code responsible for converting the observed state of an endpoint into a
plan of steps that bring it to its desired state.
"""
from pyrsistent import pset, pvector

from vpce.convergence.model import DiffResult
from vpce.convergence.steps import (
    AddSecurityGroups,
    AddSubnets,
    RemoveSecurityGroups,
    RemoveSubnets,
    UpsertRecord)
from vpce.errors import InvalidInputError


def diff(current, desired):
    """
    Compare the current and desired members of a set.

    :param current: iterable of ids currently attached
    :param desired: iterable of ids that should be attached
    :return: :obj:`DiffResult` with what to add and what to remove
    """
    current = pset(current)
    desired = pset(desired)
    return DiffResult(to_add=desired - current, to_remove=current - desired)


def plan_attachments(endpoint, private_subnet_ids, security_group_id):
    """
    Plan the steps that make the endpoint's subnets the cluster's private
    subnets and its security groups exactly ``security_group_id``.

    Detaching always comes before attaching: AWS rejects a subnet in an
    availability zone that still has another subnet of the same endpoint.

    :param ObservedEndpoint endpoint: the endpoint as it is now
    :param private_subnet_ids: the cluster's private subnets
    :param str security_group_id: the security group the endpoint should have

    :return: ``pvector`` of :obj:`IStep` providers, in the order they have to
        be performed
    :raise: :class:`InvalidInputError` if ``security_group_id`` is empty
    """
    if not security_group_id:
        raise InvalidInputError(
            'no security group recorded for VPC endpoint {0}'
            .format(endpoint.id))

    subnets = diff(endpoint.subnet_ids, private_subnet_ids)
    groups = diff(endpoint.security_group_ids, [security_group_id])

    steps = []
    if subnets.to_remove:
        steps.append(RemoveSubnets(endpoint_id=endpoint.id,
                                   subnet_ids=subnets.to_remove))
    if subnets.to_add:
        steps.append(AddSubnets(endpoint_id=endpoint.id,
                                subnet_ids=subnets.to_add))
    if groups.to_remove:
        steps.append(RemoveSecurityGroups(
            endpoint_id=endpoint.id, security_group_ids=groups.to_remove))
    if groups.to_add:
        steps.append(AddSecurityGroups(
            endpoint_id=endpoint.id, security_group_ids=groups.to_add))
    return pvector(steps)


def plan_record(zone_id, name, record, published_value):
    """
    Plan the step that makes the DNS record named ``name`` point at
    ``record``, if it doesn't already.

    :param str zone_id: the hosted zone of the record
    :param str name: the fully qualified record name
    :param DnsRecord record: what the record should point at
    :param published_value: what the record points at now, or None

    :return: ``pvector`` of at most one :obj:`UpsertRecord`
    """
    if published_value == record.value:
        return pvector()
    return pvector([UpsertRecord(zone_id=zone_id, name=name,
                                 value=record.value)])
