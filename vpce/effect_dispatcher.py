"""Effect dispatchers for the converger."""

from effect import (
    ComposedDispatcher,
    base_dispatcher)

from txeffect import make_twisted_dispatcher

from .cloud_client.aws import get_cloud_client_dispatcher
from .log.intents import get_log_dispatcher, get_msg_time_dispatcher
from .models.intents import get_model_dispatcher


def get_simple_dispatcher(reactor):
    """
    Get an Effect dispatcher that can handle the basic effects, suitable for
    passing to :func:`effect.perform`.  Note that this does NOT handle the
    cloud client or model intents.
    """
    return ComposedDispatcher([
        base_dispatcher,
        make_twisted_dispatcher(reactor),
    ])


def get_full_dispatcher(reactor, clients, log, store, throttler=None):
    """
    Return a dispatcher that can perform all of the converger's effects.

    :param reactor: the reactor
    :param dict clients: AWS clients, as returned by
        :func:`vpce.cloud_client.aws.make_clients`
    :param log: bound log
    :param IEndpointStore store: the store of endpoint specs
    :param throttler: cloud client throttler, defaults to the configured one
    """
    return ComposedDispatcher([
        get_cloud_client_dispatcher(reactor, clients, throttler=throttler),
        get_model_dispatcher(log, store),
        get_msg_time_dispatcher(reactor),
        get_simple_dispatcher(reactor),
        get_log_dispatcher(log, {}),
    ])
