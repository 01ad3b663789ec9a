"""Tests for convergence models."""

from pyrsistent import pmap, pset, pvector

from twisted.trial.unittest import SynchronousTestCase

from vpce.convergence.model import (
    DesiredSpec,
    EndpointState,
    ObservedEndpoint)
from vpce.test.utils import endpoint_json


class ObservedEndpointTests(SynchronousTestCase):
    """Tests for :obj:`ObservedEndpoint`."""

    def test_from_endpoint_json(self):
        """
        All the interesting bits of the JSON are extracted.
        """
        self.assertEqual(
            ObservedEndpoint.from_endpoint_json(endpoint_json()),
            ObservedEndpoint(
                id='vpce-1',
                state=EndpointState.AVAILABLE,
                vpc_id='vpc-1',
                service_name='com.amazonaws.svc',
                subnet_ids=pset(['subnet-a', 'subnet-b']),
                security_group_ids=pset(['sg-1']),
                dns_entries=pvector(
                    ['vpce-1.vpce-svc.us-east-1.vpce.amazonaws.com']),
                tags=pmap({'Name': 'infra-vpce-api',
                           'kubernetes.io/cluster/infra': 'owned',
                           'vpce.openshift.io/managed': 'true'})))

    def test_states(self):
        """
        AWS endpoint states are mapped to :obj:`EndpointState`, with states
        the converger doesn't know as UNKNOWN.
        """
        for aws_state, state in [('pendingAcceptance', EndpointState.PENDING),
                                 ('pending', EndpointState.PENDING),
                                 ('available', EndpointState.AVAILABLE),
                                 ('deleting', EndpointState.DELETING),
                                 ('deleted', EndpointState.DELETED),
                                 ('rejected', EndpointState.UNKNOWN),
                                 ('failed', EndpointState.UNKNOWN)]:
            self.assertIs(
                ObservedEndpoint.from_endpoint_json(
                    endpoint_json(state=aws_state)).state,
                state)

    def test_minimal_json(self):
        """
        A freshly created endpoint without attachments or DNS entries is
        parsed with empty collections.
        """
        endpoint = ObservedEndpoint.from_endpoint_json(
            {'VpcEndpointId': 'vpce-9', 'State': 'pending'})
        self.assertEqual(
            endpoint,
            ObservedEndpoint(id='vpce-9', state=EndpointState.PENDING))

    def test_skips_empty_dns_names(self):
        """
        DNS entries without a name are ignored.
        """
        endpoint = ObservedEndpoint.from_endpoint_json(
            endpoint_json(dns_names=('', 'a.aws')))
        self.assertEqual(endpoint.dns_entries, pvector(['a.aws']))


class DesiredSpecTests(SynchronousTestCase):
    """Tests for :obj:`DesiredSpec`."""

    def test_vpc_tags_frozen(self):
        """
        VPC tags are frozen into a ``pmap``, so specs can be compared and
        hashed.
        """
        spec = DesiredSpec(key='k', name='n', service_name='s',
                           security_group_id='sg', vpc_tags={'env': 'prod'})
        self.assertEqual(spec.vpc_tags, pmap({'env': 'prod'}))
        hash(spec)
