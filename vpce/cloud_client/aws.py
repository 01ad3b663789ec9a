"""
Performers of the cloud client intents, backed by boto3.

boto3 is synchronous, so every call runs in the reactor's thread pool and
surfaces as a Deferred.  Errors are translated from botocore's
``ClientError`` into :mod:`vpce.errors` exceptions inside the thread, so the
rest of the code never sees botocore.
"""
from functools import partial

import boto3

from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError)

from effect import TypeDispatcher

from twisted.internet.threads import deferToThread

from txeffect import deferred_performer

from zope.interface import Interface, implementer

from vpce.cloud_client import (
    ChangeRecord,
    CreateEndpoint,
    DeleteEndpoint,
    DescribeEndpoints,
    DescribeSubnets,
    DescribeVpcs,
    FindHostedZones,
    ListRecords,
    ModifyEndpoint,
    get_throttler)
from vpce.constants import ServiceType, VPC_ENDPOINT_TYPE_INTERFACE
from vpce.errors import (
    CloudAPIError,
    ConflictError,
    NoSuchEndpointError,
    ThrottledError,
    TransientError)


class IEndpointEC2Client(Interface):
    """
    The subset of the boto3 EC2 client the converger uses.
    """

    def describe_vpc_endpoints(**kwargs):
        """Describe VPC endpoints."""

    def create_vpc_endpoint(**kwargs):
        """Create a VPC endpoint."""

    def delete_vpc_endpoints(**kwargs):
        """Delete VPC endpoints."""

    def modify_vpc_endpoint(**kwargs):
        """Modify a VPC endpoint's attachments."""

    def describe_vpcs(**kwargs):
        """Describe VPCs."""

    def describe_subnets(**kwargs):
        """Describe subnets."""


class IEndpointRoute53Client(Interface):
    """
    The subset of the boto3 Route53 client the converger uses.
    """

    def list_hosted_zones_by_name(**kwargs):
        """List hosted zones by name."""

    def list_resource_record_sets(**kwargs):
        """List the record sets of a hosted zone."""

    def change_resource_record_sets(**kwargs):
        """Change record sets of a hosted zone."""


@implementer(IEndpointEC2Client)
class EC2Client(object):
    """
    Narrow a boto3 EC2 client to :class:`IEndpointEC2Client`.
    """
    def __init__(self, client):
        self._client = client

    def describe_vpc_endpoints(self, **kwargs):
        return self._client.describe_vpc_endpoints(**kwargs)

    def create_vpc_endpoint(self, **kwargs):
        return self._client.create_vpc_endpoint(**kwargs)

    def delete_vpc_endpoints(self, **kwargs):
        return self._client.delete_vpc_endpoints(**kwargs)

    def modify_vpc_endpoint(self, **kwargs):
        return self._client.modify_vpc_endpoint(**kwargs)

    def describe_vpcs(self, **kwargs):
        return self._client.describe_vpcs(**kwargs)

    def describe_subnets(self, **kwargs):
        return self._client.describe_subnets(**kwargs)


@implementer(IEndpointRoute53Client)
class Route53Client(object):
    """
    Narrow a boto3 Route53 client to :class:`IEndpointRoute53Client`.
    """
    def __init__(self, client):
        self._client = client

    def list_hosted_zones_by_name(self, **kwargs):
        return self._client.list_hosted_zones_by_name(**kwargs)

    def list_resource_record_sets(self, **kwargs):
        return self._client.list_resource_record_sets(**kwargs)

    def change_resource_record_sets(self, **kwargs):
        return self._client.change_resource_record_sets(**kwargs)


def make_clients(service_configs):
    """
    Create the AWS clients.

    :param dict service_configs: As returned by
        :func:`vpce.constants.get_service_configs`.
    :return: ``dict`` of :obj:`ServiceType` to client
    """
    return {
        ServiceType.EC2: EC2Client(boto3.client(
            'ec2', region_name=service_configs[ServiceType.EC2]['region'])),
        ServiceType.ROUTE53: Route53Client(boto3.client(
            'route53',
            region_name=service_configs[ServiceType.ROUTE53]['region'])),
    }


# ----- Error translation -----

_THROTTLING_CODES = frozenset([
    'RequestLimitExceeded', 'Throttling', 'ThrottlingException',
    'ThrottledException', 'RequestThrottled', 'TooManyRequestsException',
    'PriorRequestNotComplete'])

_TRANSIENT_CODES = frozenset([
    'InternalError', 'InternalFailure', 'ServiceUnavailable', 'Unavailable',
    'RequestTimeout'])

_ERRORS_BY_CODE = {
    'InvalidVpcEndpointId.NotFound': NoSuchEndpointError,
    'DuplicateSubnetsInSameZone': ConflictError,
}


def translate_client_error(error):
    """
    Translate a botocore ``ClientError`` to a :class:`CloudAPIError`.
    """
    details = error.response.get('Error', {})
    code = details.get('Code', 'Unknown')
    message = details.get('Message', str(error))
    status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
    if code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code](code, message)
    if code in _THROTTLING_CODES or code.startswith('Throttling'):
        return ThrottledError(code, message)
    if code in _TRANSIENT_CODES or (status is not None and status >= 500):
        return TransientError(code, message)
    return CloudAPIError(code, message)


def call_aws(call, client, intent):
    """
    Call ``call(client, intent)``, translating botocore errors.  Runs in a
    thread.
    """
    try:
        return call(client, intent)
    except ClientError as e:
        raise translate_client_error(e)
    except (BotoConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
        raise TransientError(e.__class__.__name__, str(e))


# ----- Requests -----

def aws_filters(filters):
    """
    Convert a mapping of filter name to values into the list of filters AWS
    expects, sorted by name.
    """
    return [{'Name': name, 'Values': list(values)}
            for name, values in sorted(filters.items())]


def aws_tags(tags):
    """
    Convert a mapping of tag key to value into the list of tags AWS expects,
    sorted by key.
    """
    return [{'Key': key, 'Value': value}
            for key, value in sorted(tags.items())]


def _paging_kwargs(intent):
    kwargs = {}
    if intent.filters:
        kwargs['Filters'] = aws_filters(intent.filters)
    if intent.next_token:
        kwargs['NextToken'] = intent.next_token
    return kwargs


def _describe_endpoints(ec2, intent):
    kwargs = _paging_kwargs(intent)
    if intent.endpoint_ids:
        kwargs['VpcEndpointIds'] = list(intent.endpoint_ids)
    return ec2.describe_vpc_endpoints(**kwargs)


def _describe_vpcs(ec2, intent):
    return ec2.describe_vpcs(**_paging_kwargs(intent))


def _describe_subnets(ec2, intent):
    return ec2.describe_subnets(**_paging_kwargs(intent))


def _create_endpoint(ec2, intent):
    return ec2.create_vpc_endpoint(
        VpcEndpointType=VPC_ENDPOINT_TYPE_INTERFACE,
        VpcId=intent.vpc_id,
        ServiceName=intent.service_name,
        TagSpecifications=[{'ResourceType': 'vpc-endpoint',
                            'Tags': aws_tags(intent.tags)}])


def _delete_endpoint(ec2, intent):
    return ec2.delete_vpc_endpoints(VpcEndpointIds=[intent.endpoint_id])


def _modify_endpoint(ec2, intent):
    kwargs = {'VpcEndpointId': intent.endpoint_id}
    for key, ids in [('AddSubnetIds', intent.add_subnet_ids),
                     ('RemoveSubnetIds', intent.remove_subnet_ids),
                     ('AddSecurityGroupIds', intent.add_security_group_ids),
                     ('RemoveSecurityGroupIds',
                      intent.remove_security_group_ids)]:
        if ids:
            kwargs[key] = sorted(ids)
    return ec2.modify_vpc_endpoint(**kwargs)


def _find_hosted_zones(route53, intent):
    return route53.list_hosted_zones_by_name(DNSName=intent.domain_name)


def _list_records(route53, intent):
    return route53.list_resource_record_sets(
        HostedZoneId=intent.zone_id,
        StartRecordName=intent.name,
        StartRecordType=intent.record_type,
        MaxItems='1')


def _change_record(route53, intent):
    return route53.change_resource_record_sets(
        HostedZoneId=intent.zone_id,
        ChangeBatch={'Changes': [{
            'Action': intent.action,
            'ResourceRecordSet': {
                'Name': intent.name,
                'Type': intent.record_type,
                'TTL': intent.ttl,
                'ResourceRecords': [{'Value': intent.value}],
            },
        }]})


_CALLS = {
    DescribeEndpoints: (ServiceType.EC2, _describe_endpoints),
    DescribeVpcs: (ServiceType.EC2, _describe_vpcs),
    DescribeSubnets: (ServiceType.EC2, _describe_subnets),
    CreateEndpoint: (ServiceType.EC2, _create_endpoint),
    DeleteEndpoint: (ServiceType.EC2, _delete_endpoint),
    ModifyEndpoint: (ServiceType.EC2, _modify_endpoint),
    FindHostedZones: (ServiceType.ROUTE53, _find_hosted_zones),
    ListRecords: (ServiceType.ROUTE53, _list_records),
    ChangeRecord: (ServiceType.ROUTE53, _change_record),
}


@deferred_performer
def perform_aws_request(clients, throttler, run_in_thread, service_type,
                        call, dispatcher, intent):
    """
    Perform a cloud client intent by running ``call`` in a thread, inside
    the throttling bracket for ``service_type`` if there is one.

    The arguments before (dispatcher, intent) are intended to be partially
    applied.
    """
    client = clients[service_type]
    bracket = throttler(service_type)
    if bracket is not None:
        return bracket(run_in_thread, call_aws, call, client, intent)
    return run_in_thread(call_aws, call, client, intent)


def get_cloud_client_dispatcher(reactor, clients, throttler=None,
                                run_in_thread=deferToThread):
    """
    Get a dispatcher that performs every cloud client intent with the given
    clients.

    :param reactor: ``IReactorTime`` provider used for throttling
    :param dict clients: as returned by :func:`make_clients`
    :param throttler: function of service type to "Deferred bracket" or
        None, defaults to the configured throttling
    :param run_in_thread: function that calls its arguments in a thread and
        returns a Deferred
    """
    if throttler is None:
        throttler = get_throttler(reactor)
    return TypeDispatcher({
        intent_type: partial(perform_aws_request, clients, throttler,
                             run_in_thread, service_type, call)
        for intent_type, (service_type, call) in _CALLS.items()
    })
