"""Tests for convergence steps."""

from effect.testing import perform_sequence

from pyrsistent import pset

from twisted.trial.unittest import SynchronousTestCase

from zope.interface.verify import verifyObject

from vpce import cloud_client
from vpce.convergence.model import ErrorReason, StepResult
from vpce.convergence.steps import (
    AddSecurityGroups,
    AddSubnets,
    DeleteEndpoint,
    DeleteRecord,
    IStep,
    RemoveSecurityGroups,
    RemoveSubnets,
    UpsertRecord)
from vpce.errors import (
    CloudAPIError,
    ConflictError,
    InvalidInputError,
    NoSuchEndpointError,
    TransientError)
from vpce.test.utils import const, conste, log_intent


class AttachmentStepTests(SynchronousTestCase):
    """
    Tests for the steps that change an endpoint's subnets and security
    groups.
    """

    def _modify(self, step, intent, response):
        seq = [(intent, response), log_intent('request-modify-endpoint',
                                              {'endpoint_id': 'vpce-1'})]
        return perform_sequence(seq, step.as_effect())

    def test_provide_istep(self):
        """
        All the steps provide :obj:`IStep`.
        """
        ids = pset(['a'])
        for step in [RemoveSubnets('vpce-1', ids), AddSubnets('vpce-1', ids),
                     RemoveSecurityGroups('vpce-1', ids),
                     AddSecurityGroups('vpce-1', ids),
                     UpsertRecord('Z1', 'n', 'v'), DeleteRecord('Z1', 'n', 'v'),
                     DeleteEndpoint('vpce-1')]:
            verifyObject(IStep, step)

    def test_subnet_ids_must_be_pset(self):
        """
        The ids are validated to be a ``PSet``.
        """
        self.assertRaises(TypeError, AddSubnets, 'vpce-1', ['subnet-a'])

    def test_remove_subnets(self):
        """
        :obj:`RemoveSubnets` only detaches subnets.
        """
        ids = pset(['subnet-a'])
        self.assertEqual(
            self._modify(
                RemoveSubnets('vpce-1', ids),
                cloud_client.ModifyEndpoint('vpce-1', remove_subnet_ids=ids),
                const({'Return': True})),
            (StepResult.SUCCESS, []))

    def test_add_subnets(self):
        """
        :obj:`AddSubnets` only attaches subnets.
        """
        ids = pset(['subnet-a', 'subnet-b'])
        self.assertEqual(
            self._modify(
                AddSubnets('vpce-1', ids),
                cloud_client.ModifyEndpoint('vpce-1', add_subnet_ids=ids),
                const({'Return': True})),
            (StepResult.SUCCESS, []))

    def test_remove_security_groups(self):
        """
        :obj:`RemoveSecurityGroups` only detaches security groups.
        """
        ids = pset(['sg-2'])
        self.assertEqual(
            self._modify(
                RemoveSecurityGroups('vpce-1', ids),
                cloud_client.ModifyEndpoint(
                    'vpce-1', remove_security_group_ids=ids),
                const({'Return': True})),
            (StepResult.SUCCESS, []))

    def test_add_security_groups(self):
        """
        :obj:`AddSecurityGroups` only attaches security groups.
        """
        ids = pset(['sg-1'])
        self.assertEqual(
            self._modify(
                AddSecurityGroups('vpce-1', ids),
                cloud_client.ModifyEndpoint(
                    'vpce-1', add_security_group_ids=ids),
                const({'Return': True})),
            (StepResult.SUCCESS, []))

    def test_retry_on_api_error(self):
        """
        API errors result in RETRY.
        """
        ids = pset(['subnet-a'])
        error = TransientError('InternalError', 'oops')
        seq = [(cloud_client.ModifyEndpoint('vpce-1', add_subnet_ids=ids),
                conste(error))]
        self.assertEqual(
            perform_sequence(seq, AddSubnets('vpce-1', ids).as_effect()),
            (StepResult.RETRY, [ErrorReason.Exception(error)]))

    def test_conflict_is_retried(self):
        """
        A conflicting attachment is retried; the next pass will plan again
        from what the endpoint looks like then.
        """
        ids = pset(['subnet-a'])
        error = ConflictError('DuplicateSubnetsInSameZone', 'dup')
        seq = [(cloud_client.ModifyEndpoint('vpce-1', add_subnet_ids=ids),
                conste(error))]
        self.assertEqual(
            perform_sequence(seq, AddSubnets('vpce-1', ids).as_effect()),
            (StepResult.RETRY, [ErrorReason.Exception(error)]))

    def test_unsuccessful_modify(self):
        """
        A modification AWS reports as unsuccessful is retried.
        """
        ids = pset(['sg-1'])
        result = self._modify(
            AddSecurityGroups('vpce-1', ids),
            cloud_client.ModifyEndpoint('vpce-1', add_security_group_ids=ids),
            const({'Return': False}))
        self.assertEqual(result[0], StepResult.RETRY)

    def test_failure_on_invalid_input(self):
        """
        Invalid input results in FAILURE.
        """
        ids = pset(['subnet-a'])
        error = InvalidInputError('bad')
        seq = [(cloud_client.ModifyEndpoint('vpce-1', remove_subnet_ids=ids),
                conste(error))]
        self.assertEqual(
            perform_sequence(seq, RemoveSubnets('vpce-1', ids).as_effect()),
            (StepResult.FAILURE, [ErrorReason.Exception(error)]))


class RecordStepTests(SynchronousTestCase):
    """
    Tests for :obj:`UpsertRecord` and :obj:`DeleteRecord`.
    """

    def test_upsert(self):
        """
        :obj:`UpsertRecord` upserts the record.
        """
        seq = [
            (cloud_client.ChangeRecord('Z1', 'UPSERT', 'api.example.com',
                                       'vpce.aws'),
             const({})),
            log_intent('request-upsert-record'),
        ]
        self.assertEqual(
            perform_sequence(
                seq,
                UpsertRecord('Z1', 'api.example.com', 'vpce.aws').as_effect()),
            (StepResult.SUCCESS, []))

    def test_upsert_error(self):
        """
        A failed upsert is retried.
        """
        error = CloudAPIError('InvalidChangeBatch', 'nope')
        seq = [
            (cloud_client.ChangeRecord('Z1', 'UPSERT', 'api.example.com',
                                       'vpce.aws'),
             conste(error)),
        ]
        self.assertEqual(
            perform_sequence(
                seq,
                UpsertRecord('Z1', 'api.example.com', 'vpce.aws').as_effect()),
            (StepResult.RETRY, [ErrorReason.Exception(error)]))

    def test_delete(self):
        """
        :obj:`DeleteRecord` deletes the record with its current value.
        """
        seq = [
            (cloud_client.ChangeRecord('Z1', 'DELETE', 'api.example.com',
                                       'vpce.aws'),
             const({})),
            log_intent('request-delete-record'),
        ]
        self.assertEqual(
            perform_sequence(
                seq,
                DeleteRecord('Z1', 'api.example.com', 'vpce.aws').as_effect()),
            (StepResult.SUCCESS, []))


class DeleteEndpointTests(SynchronousTestCase):
    """
    Tests for :obj:`DeleteEndpoint`.
    """

    def test_delete(self):
        """
        The endpoint is deleted.
        """
        seq = [(cloud_client.DeleteEndpoint('vpce-1'), const({})),
               log_intent('request-delete-endpoint')]
        self.assertEqual(
            perform_sequence(seq, DeleteEndpoint('vpce-1').as_effect()),
            (StepResult.SUCCESS, []))

    def test_already_gone(self):
        """
        An endpoint that no longer exists counts as deleted.
        """
        seq = [(cloud_client.DeleteEndpoint('vpce-1'),
                conste(NoSuchEndpointError('InvalidVpcEndpointId.NotFound',
                                           'gone')))]
        self.assertEqual(
            perform_sequence(seq, DeleteEndpoint('vpce-1').as_effect()),
            (StepResult.SUCCESS, []))

    def test_error(self):
        """
        Other errors are retried.
        """
        error = TransientError('ServiceUnavailable', 'later')
        seq = [(cloud_client.DeleteEndpoint('vpce-1'), conste(error))]
        self.assertEqual(
            perform_sequence(seq, DeleteEndpoint('vpce-1').as_effect()),
            (StepResult.RETRY, [ErrorReason.Exception(error)]))
