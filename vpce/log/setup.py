"""
Observer factories which will be used to configure twistd logging.
"""
import socket
import sys

from vpce.log.formatters import (
    ErrorFormattingWrapper,
    JSONObserverWrapper,
    ObserverWrapper,
    PEP3101FormattingWrapper,
    StreamObserverWrapper,
    SystemFilterWrapper,
)


def make_observer_chain(ultimate_observer, indent):
    """
    Return the vpce observers wrapped around ``ultimate_observer``.
    """
    return PEP3101FormattingWrapper(
        SystemFilterWrapper(
            ErrorFormattingWrapper(
                ObserverWrapper(
                    JSONObserverWrapper(
                        ultimate_observer,
                        sort_keys=True,
                        indent=indent or None),
                    hostname=socket.gethostname()))))


def observer_factory():
    """
    Log non-pretty JSON formatted structures to sys.stdout.
    """
    return make_observer_chain(StreamObserverWrapper(sys.stdout), False)


def observer_factory_debug():
    """
    Log pretty JSON formatted structures to sys.stdout.
    """
    return make_observer_chain(StreamObserverWrapper(sys.stdout), 2)
