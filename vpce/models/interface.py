"""
Interface to be used by the converger to read desired specs and record
outcomes.
"""
from zope.interface import Interface


class NoSuchEndpointSpecError(Exception):
    """
    Error to be raised when attempting operations on an endpoint spec that
    does not exist.
    """
    def __init__(self, key):
        super(NoSuchEndpointSpecError, self).__init__(
            "No endpoint spec stored under {0!r}".format(key))
        self.key = key


class IEndpointStore(Interface):
    """
    The declarative store of desired endpoint specs.
    """

    def list_keys():
        """
        List the keys of every stored spec, including specs whose removal was
        requested.

        :return: Deferred that fires with a ``list`` of keys
        """

    def get_spec(key):
        """
        Get the spec stored under ``key``, with the endpoint id recorded by
        the last outcome.

        :return: Deferred that fires with a :obj:`DesiredSpec`
        :raises: :class:`NoSuchEndpointSpecError` if there is no such spec
        """

    def update_status(key, outcome):
        """
        Record the outcome of the latest pass over the spec stored under
        ``key``.  Recording ``Deleted`` removes the spec.

        :param outcome: a :obj:`ReconcileOutcome`
        :return: Deferred that fires with None
        :raises: :class:`NoSuchEndpointSpecError` if there is no such spec
        """
