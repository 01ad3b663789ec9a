"""
Data classes for representing bits of information that need to share a
representation across the different phases of convergence.
"""

import attr
from attr.validators import instance_of

from constantly import NamedConstant, Names

from pyrsistent import PMap, PSet, freeze, pmap, pset, pvector

from sumtypes import constructor, sumtype

from vpce.util.tags import tags_from_json


class EndpointState(Names):
    """
    Constants representing the state of a VPC endpoint.
    """
    PENDING = NamedConstant()
    AVAILABLE = NamedConstant()
    DELETING = NamedConstant()
    DELETED = NamedConstant()
    UNKNOWN = NamedConstant()  # For states the converger doesn't know about.


_AWS_STATES = {
    'pending': EndpointState.PENDING,
    'pendingAcceptance': EndpointState.PENDING,
    'available': EndpointState.AVAILABLE,
    'deleting': EndpointState.DELETING,
    'deleted': EndpointState.DELETED,
}


class StepResult(Names):
    """
    Constants representing the condition of a step's effect.
    """

    SUCCESS = NamedConstant()
    """
    The step was successful.
    """

    RETRY = NamedConstant()
    """
    Convergence should be retried later.
    """

    FAILURE = NamedConstant()
    """
    The step failed. Retrying convergence won't help.
    """


@sumtype
class ErrorReason(object):
    """A reason for a step or a pass to be in a RETRY or FAILURE state."""
    Exception = constructor('exception')
    String = constructor(reason=attr.ib(validator=instance_of(str)))
    Structured = constructor('structure')
    UserMessage = constructor('message')


@sumtype
class ReconcileOutcome(object):
    """
    The result of one convergence pass over one endpoint.
    """
    # The endpoint, its attachments and its DNS record all match.
    Converged = constructor('endpoint_id', 'record')
    # The endpoint exists but is not available yet; check again soon.
    NotReady = constructor('endpoint_id', 'reasons')
    # Something went wrong that may go away; retry with backoff.
    Degraded = constructor('endpoint_id', 'reasons')
    # Something went wrong that won't go away without a change in input.
    Failed = constructor('endpoint_id', 'reasons')
    # The endpoint and its record were removed.
    Deleted = constructor()


@attr.s
class ObservedEndpoint(object):
    """
    Information about a VPC endpoint that was retrieved from EC2.

    :ivar str id: The endpoint id.
    :ivar state: Current state of the endpoint.
    :type state: A member of :class:`EndpointState`
    :ivar str vpc_id: The VPC the endpoint lives in.
    :ivar str service_name: The endpoint service it connects to.
    :ivar PSet subnet_ids: The subnets attached to the endpoint.
    :ivar PSet security_group_ids: The security groups attached to the
        endpoint.
    :ivar dns_entries: ``pvector`` of the endpoint's DNS names, in the order
        AWS lists them.
    :ivar PMap tags: The endpoint's tags.
    """
    id = attr.ib()
    state = attr.ib()
    vpc_id = attr.ib(default='')
    service_name = attr.ib(default='')
    subnet_ids = attr.ib(default=attr.Factory(pset),
                         validator=instance_of(PSet))
    security_group_ids = attr.ib(default=attr.Factory(pset),
                                 validator=instance_of(PSet))
    # type(pvector()) is pvectorc.PVector, which != pyrsistent.PVector
    dns_entries = attr.ib(default=attr.Factory(pvector),
                          validator=instance_of(type(pvector())))
    tags = attr.ib(default=attr.Factory(pmap), validator=instance_of(PMap))

    @classmethod
    def from_endpoint_json(cls, endpoint_json):
        """
        Create an :obj:`ObservedEndpoint` from one item of the
        ``VpcEndpoints`` list of a ``DescribeVpcEndpoints`` response.

        :return: :obj:`ObservedEndpoint` instance
        """
        return cls(
            id=endpoint_json['VpcEndpointId'],
            state=_AWS_STATES.get(endpoint_json.get('State'),
                                  EndpointState.UNKNOWN),
            vpc_id=endpoint_json.get('VpcId', ''),
            service_name=endpoint_json.get('ServiceName', ''),
            subnet_ids=pset(endpoint_json.get('SubnetIds', [])),
            security_group_ids=pset(
                group['GroupId']
                for group in endpoint_json.get('Groups', [])),
            dns_entries=pvector(
                entry['DnsName']
                for entry in endpoint_json.get('DnsEntries', [])
                if entry.get('DnsName')),
            tags=tags_from_json(endpoint_json.get('Tags')))


@attr.s(frozen=True)
class DesiredSpec(object):
    """
    What an endpoint should look like.

    :ivar key: identity of the spec in the store
    :ivar str name: name the endpoint's ``Name`` tag is synthesized from
    :ivar str service_name: the endpoint service to connect to
    :ivar str security_group_id: the only security group the endpoint
        should have
    :ivar str endpoint_id: id of the endpoint from a previous pass, may be
        empty
    :ivar str subdomain_name: DNS label of the endpoint's record
    :ivar PMap vpc_tags: tags selecting the VPCs a new endpoint may be placed
        in; empty means the cluster's own VPC
    :ivar bool deleting: whether the endpoint should be removed
    """
    key = attr.ib()
    name = attr.ib()
    service_name = attr.ib()
    security_group_id = attr.ib()
    endpoint_id = attr.ib(default='')
    subdomain_name = attr.ib(default='')
    vpc_tags = attr.ib(default=attr.Factory(pmap), converter=freeze)
    deleting = attr.ib(default=False)


@attr.s(frozen=True)
class ClusterContext(object):
    """
    What the converger knows about the cluster it works for.  A new one is
    built when the cluster is refreshed; passes keep the one they started
    with.
    """
    region = attr.ib()
    infra_name = attr.ib()
    cluster_tag = attr.ib()
    vpc_id = attr.ib()
    domain_name = attr.ib()
    hosted_zone_id = attr.ib(default=None)


@attr.s
class DiffResult(object):
    """
    How a set of attached ids has to change.

    :ivar PSet to_add: ids that should be attached but aren't
    :ivar PSet to_remove: ids that are attached but shouldn't be
    """
    to_add = attr.ib(validator=instance_of(PSet))
    to_remove = attr.ib(validator=instance_of(PSet))


@attr.s
class DnsRecord(object):
    """
    The value the endpoint's DNS record should point at.
    """
    value = attr.ib()
