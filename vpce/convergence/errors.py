"""
Presentation of the reasons a convergence pass did not converge.
"""
import traceback
from functools import singledispatch

from sumtypes import match

from toolz.functoolz import identity

from vpce.convergence.model import ErrorReason
from vpce.errors import (
    AmbiguousEndpointError,
    ConflictError,
    InvalidInputError,
    NoSelectionError,
    NoSuchVpcError,
    NotReadyError)
from vpce.log.formatters import serialize_to_jsonable


def present_reasons(reasons):
    """
    Get a list of user-presentable messages from a list of :obj:`ErrorReason`.
    """
    @match(ErrorReason)
    class _present_reason(object):
        def Exception(exception):
            return _present_exception(exception)

        def UserMessage(message):
            return message

        def _(_):
            return None

    return [message for message in map(_present_reason, reasons)
            if message is not None]


@singledispatch
def _present_exception(exception):
    """Get a user-presentable message or None from an exception instance."""
    return None


@_present_exception.register(InvalidInputError)
def _present_invalid_input_error(exception):
    return "Invalid VPC endpoint configuration: {0}".format(exception.message)


@_present_exception.register(AmbiguousEndpointError)
def _present_ambiguous_endpoint_error(exception):
    return "More than one VPC endpoint is named {0}: {1}".format(
        exception.name, ', '.join(exception.endpoint_ids))


@_present_exception.register(NoSelectionError)
def _present_no_selection_error(exception):
    return "No VPC can hold the VPC endpoint: {0}".format(exception.message)


@_present_exception.register(NoSuchVpcError)
def _present_no_such_vpc_error(exception):
    return exception.message


@_present_exception.register(NotReadyError)
def _present_not_ready_error(exception):
    return "VPC endpoint is not ready: {0}".format(exception.message)


@_present_exception.register(ConflictError)
def _present_conflict_error(exception):
    return "AWS rejected the change: {0}".format(exception.message)


@match(ErrorReason)
class structure_reason(object):
    """
    Get a structured representation of an ErrorReason, suitable for logging
    with a structured logger.

    :return: dict
    """
    def Exception(exception):
        return {
            'exception': serialize_to_jsonable(exception),
            'traceback': ''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__))}

    def String(string):
        # So that the "reasons" are all the same structure, so that it can be
        # mapped if using elasticsearch
        return {'string': string}

    Structured = identity

    def UserMessage(message):
        return {'user-message': message}
