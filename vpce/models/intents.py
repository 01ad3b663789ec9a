"""
Intents and performers for the endpoint store.
"""
from functools import partial

import attr

from effect import TypeDispatcher

from txeffect import deferred_performer


@attr.s
class ListEndpointKeys(object):
    """List the keys of every stored endpoint spec."""


@attr.s
class GetDesiredSpec(object):
    """Get the desired spec stored under ``key``."""
    key = attr.ib()


@attr.s
class UpdateEndpointStatus(object):
    """Record the outcome of a convergence pass."""
    key = attr.ib()
    outcome = attr.ib()


@deferred_performer
def perform_get_desired_spec(log, store, dispatcher, intent):
    """
    Perform :obj:`GetDesiredSpec`.

    :param log: bound log
    :param IEndpointStore store: the store
    :param dispatcher: dispatcher provided by perform
    :param GetDesiredSpec intent: the intent
    """
    return store.get_spec(intent.key)


@deferred_performer
def perform_update_endpoint_status(log, store, dispatcher, intent):
    """Perform :obj:`UpdateEndpointStatus`."""
    log.msg('update-endpoint-status', endpoint_key=intent.key,
            outcome=type(intent.outcome).__name__)
    return store.update_status(intent.key, intent.outcome)


def get_model_dispatcher(log, store):
    """Get a dispatcher that can handle all the model-related intents."""
    return TypeDispatcher({
        GetDesiredSpec: partial(perform_get_desired_spec, log, store),
        UpdateEndpointStatus: partial(perform_update_endpoint_status, log,
                                      store),
        ListEndpointKeys:
            deferred_performer(lambda d, i: store.list_keys()),
    })
