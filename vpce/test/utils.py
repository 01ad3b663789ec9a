"""
Mixins and utilities to be used for testing.
"""
import json

from effect import raise_
from effect.testing import noop

import mock

from pyrsistent import pmap

from testtools.matchers import MatchesException

from twisted.python.failure import Failure

from vpce.convergence.model import ClusterContext, DesiredSpec
from vpce.log import BoundLog
from vpce.log.intents import Log
from vpce.util.config import set_config_data


class CheckFailure(object):
    """
    Class that can be passed to an `assertEquals` or `assert_called_with` -
    shortens checking whether a `twisted.python.failure.Failure` wraps an
    Exception of a particular type.
    """
    def __init__(self, exception_type):
        self.exception_type = exception_type

    def __eq__(self, other):
        return isinstance(other, Failure) and other.check(
            self.exception_type)

    def __ne__(self, other):
        return not self == other


class CheckFailureValue(object):
    """
    Class whose instances compare equal to a Failure wrapping an equivalent
    exception, based on :obj:`MatchesException`.
    """
    def __init__(self, exception):
        self.exception = exception

    def __repr__(self):
        return "CheckFailureValue(%r)" % (self.exception,)

    def __eq__(self, other):
        matcher = MatchesException(self.exception)
        return (
            isinstance(other, Failure) and
            other.check(type(self.exception)) is not None and
            matcher.match((type(other.value), other.value, None)) is None)

    def __ne__(self, other):
        return not self == other


def mock_log(*args, **kwargs):
    """
    Returns a BoundLog whose msg and err methods are mocks.  Makes it easier
    to test logging, since instead of making a mock object and testing::

        log.bind.return_value.msg.assert_called_with(...)

    This can be done instead::

        log.msg.assert_called_with(mock.ANY, bound_value1="val", ...)
    """
    msg = mock.Mock(spec=[])
    msg.return_value = None
    err = mock.Mock(spec=[])
    err.return_value = None
    return BoundLog(msg, err)


def log_intent(msg_type=mock.ANY, fields=mock.ANY):
    """
    Return a sequence item that expects a :obj:`Log` intent and ignores it.
    """
    return (Log(msg_type, fields), noop)


def set_config_for_test(testcase, data):
    """
    Set config data for the test duration and reset it afterwards.
    """
    set_config_data(data)
    testcase.addCleanup(set_config_data, {})


def cluster_context(**kwargs):
    """
    Return a :obj:`ClusterContext` for a cluster named ``infra``.
    """
    fields = dict(region='us-east-1', infra_name='infra',
                  cluster_tag='kubernetes.io/cluster/infra', vpc_id='vpc-1',
                  domain_name='example.com', hosted_zone_id='Z1')
    fields.update(kwargs)
    return ClusterContext(**fields)


def desired_spec(**kwargs):
    """
    Return a :obj:`DesiredSpec` named ``api``.
    """
    fields = dict(key='api', name='api', service_name='com.amazonaws.svc',
                  security_group_id='sg-1', endpoint_id='',
                  subdomain_name='api', vpc_tags=pmap(), deleting=False)
    fields.update(kwargs)
    return DesiredSpec(**fields)


def endpoint_json(endpoint_id='vpce-1', state='available', vpc_id='vpc-1',
                  subnet_ids=('subnet-a', 'subnet-b'),
                  security_group_ids=('sg-1',),
                  dns_names=('vpce-1.vpce-svc.us-east-1.vpce.amazonaws.com',),
                  tags=None):
    """
    Return a VPC endpoint, as found in a ``DescribeVpcEndpoints`` response.
    """
    if tags is None:
        tags = {'Name': 'infra-vpce-api',
                'kubernetes.io/cluster/infra': 'owned',
                'vpce.openshift.io/managed': 'true'}
    return {
        'VpcEndpointId': endpoint_id,
        'VpcEndpointType': 'Interface',
        'VpcId': vpc_id,
        'ServiceName': 'com.amazonaws.svc',
        'State': state,
        'SubnetIds': list(subnet_ids),
        'Groups': [{'GroupId': group_id, 'GroupName': group_id}
                   for group_id in security_group_ids],
        'DnsEntries': [{'DnsName': name, 'HostedZoneId': 'ZVPCE'}
                       for name in dns_names],
        'Tags': [{'Key': key, 'Value': value}
                 for key, value in sorted(tags.items())],
    }


class TestStep(object):
    """A fake step that returns a canned Effect."""
    def __init__(self, effect):
        self.effect = effect

    def as_effect(self):
        return self.effect


class matches(object):
    """
    A helper for using `testtools matchers` with mock.

    It allows testtools matchers to be used in places where comparisons for
    equality would normally be used, such as the ``mock.Mock.assert_*``
    methods.

    Example::

        mock_fun({'foo': 'bar', 'baz': 'bax'})
        mock_fun.assert_called_once_with(
            matches(
                ContainsDict(
                    {'baz': Equals('bax')})))

    :param matcher: A testtools matcher that will be matched when this object
        is compared to another object.
    """
    def __init__(self, matcher):
        self._matcher = matcher
        self._last_match = None

    def __eq__(self, other):
        self._last_match = self._matcher.match(other)
        return self._last_match is None

    def __ne__(self, other):
        return not self == other

    def __str__(self):
        return str(self._matcher)

    def __repr__(self):
        if self._last_match:
            return 'matches({}): <mismatch: {}>'.format(
                self._matcher, self._last_match.describe())
        return 'matches({0!s})'.format(self._matcher)


class SameJSON(object):
    """
    Compare an expected decoded JSON structure to a string of JSON by
    decoding the input string and comparing the resulting structure to our
    expected structure.

    Example::

        foo.assert_called_once_with(SameJSON({'success': True}))
    """
    def __init__(self, expected):
        self._expected = expected

    def __eq__(self, other):
        return self._expected == json.loads(other)

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return 'SameJSON({0!r})'.format(self._expected)


def const(v):
    """
    Return a sequence performer that ignores the intent and returns ``v``.
    """
    return lambda i: v


def conste(e):
    """
    Like ``const`` but takes an exception and returns a function that raises
    the exception.
    """
    return lambda i: raise_(e)
