"""Tests for convergence planning."""

from pyrsistent import pset, pvector

from twisted.trial.unittest import SynchronousTestCase

from vpce.convergence.model import (
    DiffResult,
    DnsRecord,
    EndpointState,
    ObservedEndpoint)
from vpce.convergence.planning import diff, plan_attachments, plan_record
from vpce.convergence.steps import (
    AddSecurityGroups,
    AddSubnets,
    RemoveSecurityGroups,
    RemoveSubnets,
    UpsertRecord)
from vpce.errors import InvalidInputError


def endpoint(subnet_ids=(), security_group_ids=()):
    """Return an available :obj:`ObservedEndpoint` with the given ids."""
    return ObservedEndpoint(
        id='vpce-1', state=EndpointState.AVAILABLE,
        subnet_ids=pset(subnet_ids),
        security_group_ids=pset(security_group_ids))


class DiffTests(SynchronousTestCase):
    """Tests for :func:`diff`."""

    def test_diff(self):
        """
        Ids only in the desired set are added, ids only in the current set
        are removed.
        """
        self.assertEqual(
            diff(['a', 'b'], ['b', 'c']),
            DiffResult(to_add=pset(['c']), to_remove=pset(['a'])))

    def test_equal(self):
        """Equal sets need no change."""
        self.assertEqual(
            diff(['a', 'b'], pset(['b', 'a'])),
            DiffResult(to_add=pset(), to_remove=pset()))


class PlanAttachmentsTests(SynchronousTestCase):
    """Tests for :func:`plan_attachments`."""

    def test_converged(self):
        """
        No steps are planned when the endpoint already has the private
        subnets and only the desired security group.
        """
        self.assertEqual(
            plan_attachments(endpoint(['subnet-a', 'subnet-b'], ['sg-1']),
                             pset(['subnet-b', 'subnet-a']), 'sg-1'),
            pvector())

    def test_new_endpoint(self):
        """
        A new endpoint gets all the private subnets and the security group.
        """
        self.assertEqual(
            plan_attachments(endpoint(), pset(['subnet-a', 'subnet-b']),
                             'sg-1'),
            pvector([
                AddSubnets('vpce-1', pset(['subnet-a', 'subnet-b'])),
                AddSecurityGroups('vpce-1', pset(['sg-1']))]))

    def test_remove_before_add(self):
        """
        Stale subnets and security groups are removed before new ones are
        added.
        """
        self.assertEqual(
            plan_attachments(endpoint(['subnet-a', 'subnet-old'],
                                      ['sg-old', 'sg-other']),
                             pset(['subnet-a', 'subnet-new']), 'sg-1'),
            pvector([
                RemoveSubnets('vpce-1', pset(['subnet-old'])),
                AddSubnets('vpce-1', pset(['subnet-new'])),
                RemoveSecurityGroups('vpce-1', pset(['sg-old', 'sg-other'])),
                AddSecurityGroups('vpce-1', pset(['sg-1']))]))

    def test_no_private_subnets(self):
        """
        With no private subnets, every subnet is detached.
        """
        self.assertEqual(
            plan_attachments(endpoint(['subnet-a'], ['sg-1']), pset(),
                             'sg-1'),
            pvector([RemoveSubnets('vpce-1', pset(['subnet-a']))]))

    def test_missing_security_group(self):
        """
        An empty security group is invalid input.
        """
        self.assertRaises(InvalidInputError, plan_attachments,
                          endpoint(), pset(['subnet-a']), '')


class PlanRecordTests(SynchronousTestCase):
    """Tests for :func:`plan_record`."""

    def test_up_to_date(self):
        """
        Nothing is planned when the record already points at the endpoint.
        """
        self.assertEqual(
            plan_record('Z1', 'api.example.com', DnsRecord('vpce.aws'),
                        'vpce.aws'),
            pvector())

    def test_missing(self):
        """
        A missing record is upserted.
        """
        self.assertEqual(
            plan_record('Z1', 'api.example.com', DnsRecord('vpce.aws'), None),
            pvector([UpsertRecord('Z1', 'api.example.com', 'vpce.aws')]))

    def test_stale(self):
        """
        A record pointing elsewhere is upserted.
        """
        self.assertEqual(
            plan_record('Z1', 'api.example.com', DnsRecord('vpce.aws'),
                        'old.aws'),
            pvector([UpsertRecord('Z1', 'api.example.com', 'vpce.aws')]))
