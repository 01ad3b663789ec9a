"""Steps for convergence."""
import attr
from attr.validators import instance_of

from pyrsistent import PSet

from zope.interface import Interface, implementer

from vpce.cloud_client import (
    delete_endpoint,
    delete_record,
    modify_endpoint,
    upsert_record)
from vpce.convergence.model import ErrorReason, StepResult
from vpce.errors import InvalidInputError, NoSuchEndpointError


class IStep(Interface):
    """
    An :obj:`IStep` is a step that may be performed within the context of a
    converge operation.
    """

    def as_effect():
        """
        Return an Effect which performs this step.

        :return: A two-tuple of a :obj:`StepResult` and a list of
        :obj:`ErrorReason`s.
        """


def _ignore_errors(*ignored_err_types):
    """
    Return an error-handler function that returns None if the exception matches
    any of the given error types.
    """
    def handler(error):
        if isinstance(error, ignored_err_types):
            return None
        raise error
    return handler


def _failure_reporter(*terminal_err_types):
    """
    Return a callable that takes an exception and interprets it.

    If the error is an :class:`InvalidInputError`, or one of the provided
    ``terminal_err_types``, then the callable returns a tuple of::

        (StepResult.FAILURE, [ErrorReason.Exception(error)])

    else it returns a tuple of::

        (StepResult.RETRY, [ErrorReason.Exception(error)])
    """
    terminal_err_types = (InvalidInputError,) + terminal_err_types

    def reporter(error):
        if isinstance(error, terminal_err_types):
            return StepResult.FAILURE, [ErrorReason.Exception(error)]
        return StepResult.RETRY, [ErrorReason.Exception(error)]

    return reporter


def _succeeded(_):
    return StepResult.SUCCESS, []


@implementer(IStep)
@attr.s
class RemoveSubnets(object):
    """
    Subnets must be detached from an endpoint.

    :ivar str endpoint_id: The endpoint to detach subnets from.
    :ivar PSet subnet_ids: The subnets to detach.
    """
    endpoint_id = attr.ib()
    subnet_ids = attr.ib(validator=instance_of(PSet))

    def as_effect(self):
        """Produce a :obj:`Effect` to detach subnets."""
        eff = modify_endpoint(self.endpoint_id,
                              remove_subnet_ids=self.subnet_ids)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class AddSubnets(object):
    """
    Subnets must be attached to an endpoint.

    AWS refuses a second subnet in the same availability zone, so this has
    to happen after any :obj:`RemoveSubnets` of the same endpoint.

    :ivar str endpoint_id: The endpoint to attach subnets to.
    :ivar PSet subnet_ids: The subnets to attach.
    """
    endpoint_id = attr.ib()
    subnet_ids = attr.ib(validator=instance_of(PSet))

    def as_effect(self):
        """Produce a :obj:`Effect` to attach subnets."""
        eff = modify_endpoint(self.endpoint_id,
                              add_subnet_ids=self.subnet_ids)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class RemoveSecurityGroups(object):
    """
    Security groups must be detached from an endpoint.
    """
    endpoint_id = attr.ib()
    security_group_ids = attr.ib(validator=instance_of(PSet))

    def as_effect(self):
        """Produce a :obj:`Effect` to detach security groups."""
        eff = modify_endpoint(
            self.endpoint_id,
            remove_security_group_ids=self.security_group_ids)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class AddSecurityGroups(object):
    """
    Security groups must be attached to an endpoint.
    """
    endpoint_id = attr.ib()
    security_group_ids = attr.ib(validator=instance_of(PSet))

    def as_effect(self):
        """Produce a :obj:`Effect` to attach security groups."""
        eff = modify_endpoint(
            self.endpoint_id,
            add_security_group_ids=self.security_group_ids)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class UpsertRecord(object):
    """
    The endpoint's DNS record must point at ``value``.

    :ivar str zone_id: The hosted zone of the record.
    :ivar str name: The fully qualified record name.
    :ivar str value: The endpoint DNS name the record points at.
    """
    zone_id = attr.ib()
    name = attr.ib()
    value = attr.ib()

    def as_effect(self):
        """Produce a :obj:`Effect` to create or update the record."""
        eff = upsert_record(self.zone_id, self.name, self.value)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class DeleteRecord(object):
    """
    The endpoint's DNS record, currently pointing at ``value``, must go.
    """
    zone_id = attr.ib()
    name = attr.ib()
    value = attr.ib()

    def as_effect(self):
        """Produce a :obj:`Effect` to delete the record."""
        eff = delete_record(self.zone_id, self.name, self.value)
        return eff.on(success=_succeeded, error=_failure_reporter())


@implementer(IStep)
@attr.s
class DeleteEndpoint(object):
    """
    An endpoint must be deleted.
    """
    endpoint_id = attr.ib()

    def as_effect(self):
        """Produce a :obj:`Effect` to delete the endpoint."""
        # An endpoint that's already gone is as good as deleted.
        eff = delete_endpoint(self.endpoint_id)
        return eff.on(
            error=_ignore_errors(NoSuchEndpointError)
        ).on(
            success=_succeeded,
            error=_failure_reporter())
