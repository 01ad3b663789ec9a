"""
An AWS cloud client for VPC endpoints, using Effect.

Every call to AWS is an intent defined here.  The functions in this module
build effects of those intents and turn the raw responses into the JSON
structures the convergence code consumes.  :mod:`vpce.cloud_client.aws`
performs the intents with boto3.
"""
from functools import partial

import attr

from effect import Constant, Effect, catch

from pyrsistent import pmap, pset, pvector

from twisted.internet.task import deferLater

from vpce.constants import (
    PRIVATE_SUBNET_TAG_KEY,
    RECORD_TTL,
    RECORD_TYPE)
from vpce.errors import (
    AmbiguousEndpointError,
    CloudAPIError,
    InvalidInputError,
    NoSuchEndpointError,
    NoSuchVpcError)
from vpce.log.intents import msg as msg_effect
from vpce.util.config import config_value
from vpce.util.retry import BucketRateLimiter
from vpce.util.tags import default_tag_filters


# ----- Intents -----

@attr.s
class DescribeEndpoints(object):
    """
    Describe one page of VPC endpoints, either by id or by filters.

    :ivar tuple endpoint_ids: ids of the endpoints to describe
    :ivar filters: ``pmap`` of filter name to a tuple of accepted values
    :ivar next_token: token of the page to fetch, from a previous response
    """
    endpoint_ids = attr.ib(default=())
    filters = attr.ib(default=pmap())
    next_token = attr.ib(default=None)


@attr.s
class DescribeVpcs(object):
    """
    Describe one page of VPCs matching ``filters``.
    """
    filters = attr.ib(default=pmap())
    next_token = attr.ib(default=None)


@attr.s
class DescribeSubnets(object):
    """
    Describe one page of subnets matching ``filters``.
    """
    filters = attr.ib(default=pmap())
    next_token = attr.ib(default=None)


@attr.s
class CreateEndpoint(object):
    """
    Create an interface VPC endpoint with the default (open) policy and
    nothing attached to it.

    :ivar str vpc_id: the VPC to create the endpoint in
    :ivar str service_name: the endpoint service to connect to
    :ivar tags: ``pmap`` of tags to create the endpoint with
    """
    vpc_id = attr.ib()
    service_name = attr.ib()
    tags = attr.ib()


@attr.s
class DeleteEndpoint(object):
    """
    Delete a VPC endpoint.
    """
    endpoint_id = attr.ib()


@attr.s
class ModifyEndpoint(object):
    """
    Add or remove subnets and security groups of a VPC endpoint in a single
    ``ModifyVpcEndpoint`` call.
    """
    endpoint_id = attr.ib()
    add_subnet_ids = attr.ib(default=pset())
    remove_subnet_ids = attr.ib(default=pset())
    add_security_group_ids = attr.ib(default=pset())
    remove_security_group_ids = attr.ib(default=pset())


@attr.s
class FindHostedZones(object):
    """
    List the Route53 hosted zones named ``domain_name``.
    """
    domain_name = attr.ib()


@attr.s
class ListRecords(object):
    """
    List the record sets of a hosted zone, starting at ``name``.
    """
    zone_id = attr.ib()
    name = attr.ib()
    record_type = attr.ib(default=RECORD_TYPE)


@attr.s
class ChangeRecord(object):
    """
    Change a single record set of a hosted zone.

    :ivar str action: ``UPSERT`` or ``DELETE``
    """
    zone_id = attr.ib()
    action = attr.ib()
    name = attr.ib()
    value = attr.ib()
    record_type = attr.ib(default=RECORD_TYPE)
    ttl = attr.ib(default=RECORD_TTL)


# ----- Throttling -----

def _throttled(clock, bucket, f, *args, **kwargs):
    """
    Call ``f`` once the token bucket allows it.
    """
    return deferLater(clock, bucket.reserve(), f, *args, **kwargs)


def _default_throttler(buckets, clock, service_type):
    """
    Get a "Deferred bracket" throttling calls to ``service_type`` according
    to the ``cloud_client.throttling`` configuration, or None if calls should
    not be throttled.

    A bracket is a function of type ``((f, *args) -> Deferred) -> Deferred``
    that decides when ``f`` actually gets called.

    :param dict buckets: token buckets already created, by service type
    :param clock: ``IReactorTime`` provider
    """
    qps = config_value('cloud_client.throttling.qps')
    if qps is None:
        return None
    bucket = buckets.get(service_type)
    if bucket is None:
        burst = config_value('cloud_client.throttling.burst', 1)
        bucket = buckets[service_type] = BucketRateLimiter(qps, burst, clock)
    return partial(_throttled, clock, bucket)


def get_throttler(clock):
    """
    Return a throttler function of service type to "Deferred bracket" or
    None.  The token buckets are kept for the life of the throttler.
    """
    return partial(_default_throttler, {}, clock)


# ----- Logging responses -----

def log_success_response(msg_type, **fields):
    """
    :param str msg_type: A string representing the message type of the log
        message
    :return: a function that logs that the request succeeded and passes its
        result through.
    """
    def _log_it(result):
        return msg_effect(msg_type, **fields).on(lambda _: result)
    return _log_it


# ----- Pagination -----

def _all_pages(make_intent, result_key, msg_type):
    """
    Fetch every page of a ``Describe*`` API, following ``NextToken``.

    :param make_intent: one-argument callable of next token to intent
    :param str result_key: key of the list of results in every page
    :param str msg_type: message logged for every page
    :return: Effect of ``pvector`` of all the results
    :raise: :class:`CloudAPIError` if AWS hands out the same token twice
    """
    last_token = []

    def continue_(body, so_far=pvector()):
        results = so_far.extend(body.get(result_key, []))
        token = body.get('NextToken')
        if token:
            # blow up if we try to fetch the same page twice
            if last_token and last_token[-1] == token:
                raise CloudAPIError(
                    'RepeatedNextToken',
                    'Got the same NextToken twice while gathering {0}: {1}'
                    .format(result_key, token))
            last_token[:] = [token]
            return page(token).on(partial(continue_, so_far=results))
        return results

    def page(token):
        return (Effect(make_intent(token))
                .on(log_success_response(msg_type, next_token=token)))

    return page(None).on(continue_)


# ----- EC2 endpoints -----

def describe_endpoint(endpoint_id):
    """
    Describe the VPC endpoint with the given id.

    An empty id gives nothing instead of every endpoint in the account, and
    so does an endpoint that does not exist.

    :return: Effect of the endpoint JSON ``dict``, or None
    :raise: :class:`AmbiguousEndpointError` if AWS returns more than one
        endpoint
    """
    if not endpoint_id:
        return Effect(Constant(None))

    def _single(body):
        endpoints = body.get('VpcEndpoints', [])
        if not endpoints:
            return None
        if len(endpoints) > 1:
            raise AmbiguousEndpointError(
                endpoint_id, [ep['VpcEndpointId'] for ep in endpoints])
        return endpoints[0]

    return (
        Effect(DescribeEndpoints(endpoint_ids=(endpoint_id,)))
        .on(log_success_response('request-describe-endpoint',
                                 endpoint_id=endpoint_id))
        .on(success=_single,
            error=catch(NoSuchEndpointError, lambda _: None)))


def describe_endpoints_all(filters):
    """
    Describe all the VPC endpoints matching ``filters``.

    :return: Effect of ``pvector`` of endpoint JSON ``dict``
    """
    return _all_pages(
        lambda token: DescribeEndpoints(filters=filters, next_token=token),
        'VpcEndpoints', 'request-describe-endpoints')


def filter_endpoints_by_default_tags(cluster_tag, name):
    """
    Describe the VPC endpoints that carry the tags of an endpoint created by
    the converger with the given name.

    :return: Effect of ``pvector`` of endpoint JSON ``dict``
    :raise: :class:`InvalidInputError` if ``cluster_tag`` is empty
    """
    if not cluster_tag:
        raise InvalidInputError('cluster tag must not be empty')
    return describe_endpoints_all(default_tag_filters(cluster_tag, name))


def create_default_interface_endpoint(vpc_id, service_name, tags):
    """
    Create an interface VPC endpoint with the default policy and no subnets
    or security groups.

    :return: Effect of the created endpoint JSON ``dict``
    """
    return (
        Effect(CreateEndpoint(vpc_id=vpc_id, service_name=service_name,
                              tags=tags))
        .on(lambda body: body['VpcEndpoint']))


def delete_endpoint(endpoint_id):
    """
    Delete a VPC endpoint.  Deleting an endpoint that does not exist
    succeeds.

    :return: Effect of None
    :raise: :class:`CloudAPIError` if AWS could not delete the endpoint
    """
    def _check(body):
        for item in body.get('Unsuccessful', []):
            error = item.get('Error', {})
            code = error.get('Code')
            if code == 'InvalidVpcEndpointId.NotFound':
                continue
            raise CloudAPIError(code, error.get('Message', ''))

    return (
        Effect(DeleteEndpoint(endpoint_id=endpoint_id))
        .on(log_success_response('request-delete-endpoint',
                                 endpoint_id=endpoint_id))
        .on(_check))


def modify_endpoint(endpoint_id, add_subnet_ids=pset(),
                    remove_subnet_ids=pset(), add_security_group_ids=pset(),
                    remove_security_group_ids=pset()):
    """
    Change the subnets and security groups attached to a VPC endpoint.

    :return: Effect of None
    :raise: :class:`CloudAPIError` if AWS reports the change as unsuccessful
    """
    def _check(body):
        if not body.get('Return', True):
            raise CloudAPIError(
                'ModifyVpcEndpointFailed',
                'Modifying VPC endpoint {0} was not successful'.format(
                    endpoint_id))

    return (
        Effect(ModifyEndpoint(
            endpoint_id=endpoint_id,
            add_subnet_ids=pset(add_subnet_ids),
            remove_subnet_ids=pset(remove_subnet_ids),
            add_security_group_ids=pset(add_security_group_ids),
            remove_security_group_ids=pset(remove_security_group_ids)))
        .on(log_success_response('request-modify-endpoint',
                                 endpoint_id=endpoint_id))
        .on(_check))


# ----- EC2 VPCs and subnets -----

def describe_vpcs_all(filters):
    """
    Describe all the VPCs matching ``filters``.

    :return: Effect of ``pvector`` of VPC JSON ``dict``
    """
    return _all_pages(
        lambda token: DescribeVpcs(filters=filters, next_token=token),
        'Vpcs', 'request-describe-vpcs')


def describe_subnets_all(filters):
    """
    Describe all the subnets matching ``filters``.

    :return: Effect of ``pvector`` of subnet JSON ``dict``
    """
    return _all_pages(
        lambda token: DescribeSubnets(filters=filters, next_token=token),
        'Subnets', 'request-describe-subnets')


def filter_vpc_ids_by_tags(tags):
    """
    Find the VPCs carrying all of the given tags.

    :param tags: mapping of tag key to value
    :return: Effect of ``list`` of VPC ids, in the order AWS returned them
    :raise: :class:`InvalidInputError` if ``tags`` is empty,
        :class:`NoSuchVpcError` if no VPC carries the tags
    """
    if not tags:
        raise InvalidInputError('at least one tag is needed to filter VPCs')
    filters = pmap({'tag:' + key: (value,) for key, value in tags.items()})

    def _ids(vpcs):
        if not vpcs:
            raise NoSuchVpcError(
                'NoVpcFound',
                'No VPCs found with tags {0}'.format(dict(tags)))
        return [vpc['VpcId'] for vpc in vpcs]

    return describe_vpcs_all(filters).on(_ids)


def private_subnet_filters(cluster_tag):
    """
    Return the filters selecting the private subnets of a cluster.
    """
    return pmap({
        'tag-key': (cluster_tag,),
        'tag:' + PRIVATE_SUBNET_TAG_KEY: ('', '1'),
    })


def describe_private_subnets(cluster_tag):
    """
    Describe the cluster's private subnets.

    :return: Effect of ``pvector`` of subnet JSON ``dict``
    :raise: :class:`InvalidInputError` if ``cluster_tag`` is empty
    """
    if not cluster_tag:
        raise InvalidInputError('cluster tag must not be empty')
    return describe_subnets_all(private_subnet_filters(cluster_tag))


def get_vpc_id(cluster_tag):
    """
    Find the id of the VPC the cluster lives in, from the subnets tagged with
    the cluster tag.

    :return: Effect of the VPC id
    :raise: :class:`NoSuchVpcError` if no subnet carries the cluster tag
    """
    if not cluster_tag:
        raise InvalidInputError('cluster tag must not be empty')

    def _vpc_id(subnets):
        if not subnets:
            raise NoSuchVpcError(
                'NoVpcFound',
                'No subnets found with tag {0}'.format(cluster_tag))
        return subnets[0]['VpcId']

    return describe_subnets_all(pmap({'tag-key': (cluster_tag,)})).on(_vpc_id)


# ----- Route53 -----

def _fqdn(name):
    return name if name.endswith('.') else name + '.'


def find_private_hosted_zone(domain_name):
    """
    Find the private hosted zone serving ``domain_name``.

    :return: Effect of the hosted zone id
    :raise: :class:`CloudAPIError` if there is no such zone
    """
    def _zone_id(body):
        for zone in body.get('HostedZones', []):
            if (zone['Name'] == _fqdn(domain_name) and
                    zone.get('Config', {}).get('PrivateZone')):
                return zone['Id']
        raise CloudAPIError(
            'NoSuchHostedZone',
            'No private hosted zone found for {0}'.format(domain_name))

    return (
        Effect(FindHostedZones(domain_name=domain_name))
        .on(log_success_response('request-find-hosted-zone',
                                 domain_name=domain_name))
        .on(_zone_id))


def get_record(zone_id, name):
    """
    Get the value of the record named ``name``.

    :return: Effect of the record's value, or None if there is no record
    """
    def _value(body):
        for record_set in body.get('ResourceRecordSets', []):
            if (record_set['Name'] == _fqdn(name) and
                    record_set['Type'] == RECORD_TYPE):
                records = record_set.get('ResourceRecords', [])
                if records:
                    return records[0]['Value']
        return None

    return (
        Effect(ListRecords(zone_id=zone_id, name=name))
        .on(log_success_response('request-get-record', record_name=name))
        .on(_value))


def upsert_record(zone_id, name, value):
    """
    Create or update the record named ``name`` to point at ``value``.

    :return: Effect of None
    """
    return (
        Effect(ChangeRecord(zone_id=zone_id, action='UPSERT', name=name,
                            value=value))
        .on(log_success_response('request-upsert-record', record_name=name,
                                 record_value=value))
        .on(lambda _: None))


def delete_record(zone_id, name, value):
    """
    Delete the record named ``name``, whose current value is ``value``.

    :return: Effect of None
    """
    return (
        Effect(ChangeRecord(zone_id=zone_id, action='DELETE', name=name,
                            value=value))
        .on(log_success_response('request-delete-record', record_name=name))
        .on(lambda _: None))
