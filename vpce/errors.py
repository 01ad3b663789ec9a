"""
Exceptions raised while converging an endpoint.

Each exception corresponds to one kind of failure a convergence pass can
report, so that callers can tell "try again later" apart from "this will
never work".
"""

import attr


@attr.s(these={"message": attr.ib()}, init=False)
class ExceptionWithMessage(Exception):
    """
    The builtin `Exception` doesn't have equality (it tests for identity).
    ``attr`` provides equality based on the attributes.

    Letting ``attr`` generate ``__init__`` would stop the message from
    reaching the base class, so this provides its own.
    """
    def __init__(self, message):
        super(ExceptionWithMessage, self).__init__(message)
        self.message = message


class InvalidInputError(ExceptionWithMessage):
    """
    A required input was empty or malformed.  Retrying won't help until the
    input changes.
    """


class NoSelectionError(ExceptionWithMessage):
    """
    No VPC could be selected to place a new endpoint in.
    """


@attr.s(these={"name": attr.ib(), "endpoint_ids": attr.ib()}, init=False)
class AmbiguousEndpointError(Exception):
    """
    More than one endpoint carries the tags that should identify exactly one.

    :ivar str name: The synthesized endpoint name that was searched for.
    :ivar tuple endpoint_ids: The ids of all the matching endpoints.
    """
    def __init__(self, name, endpoint_ids):
        super(AmbiguousEndpointError, self).__init__(
            'Found {0} VPC endpoints named {1}: {2}'.format(
                len(endpoint_ids), name, ', '.join(endpoint_ids)))
        self.name = name
        self.endpoint_ids = tuple(endpoint_ids)


class NotReadyError(ExceptionWithMessage):
    """
    The endpoint exists but has not reached a state where its DNS record can
    be derived.  Not a fault; the caller should wait.
    """


@attr.s(these={"code": attr.ib(), "message": attr.ib()}, init=False)
class CloudAPIError(Exception):
    """
    An error response from an AWS API.

    :ivar str code: The AWS error code, e.g. ``InvalidParameterValue``.
    :ivar str message: The message AWS sent along with the code.
    """
    def __init__(self, code, message):
        super(CloudAPIError, self).__init__(
            '{0}: {1}'.format(code, message))
        self.code = code
        self.message = message


class NoSuchEndpointError(CloudAPIError):
    """
    The VPC endpoint with the requested id does not exist.
    """


class NoSuchVpcError(CloudAPIError):
    """
    No VPC matched a lookup that requires one.
    """


class TransientError(CloudAPIError):
    """
    The API failed in a way that is expected to go away on its own, like an
    internal error or an unreachable service.
    """


class ThrottledError(TransientError):
    """
    The API rate-limited the request.
    """


class ConflictError(CloudAPIError):
    """
    The platform rejected a change because of the current state of the
    resource, e.g. two subnets in the same availability zone.
    """


class ConfigurationError(ExceptionWithMessage):
    """
    The configuration is missing required values.
    """
