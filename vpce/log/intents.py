"""
Effects for logging from inside a convergence pass.

Pass code never holds a logger. It returns :obj:`Log` effects, and the fields
that identify the pass (``endpoint_key``, ``vpce_service``) are attached once
around the whole pass with :func:`with_log`.
"""

from functools import partial

import attr

from effect import (
    ComposedDispatcher, Effect, TypeDispatcher, perform, sync_performer)

from toolz.dicttoolz import merge


@attr.s
class Log(object):
    """An event named ``msg`` carrying ``fields``."""
    msg = attr.ib()
    fields = attr.ib()


@attr.s
class BoundFields(object):
    """
    Run ``effect`` with ``fields`` added to every :obj:`Log` it performs,
    including those of nested :obj:`BoundFields`.
    """
    effect = attr.ib()
    fields = attr.ib()


def msg(msg, **fields):
    """Log the event ``msg``."""
    return Effect(Log(msg, fields))


def with_log(effect, **fields):
    """Bind ``fields`` to every event logged while performing ``effect``."""
    return Effect(BoundFields(effect, fields))


def get_log_dispatcher(log, fields):
    """
    Return a dispatcher that sends :obj:`Log` events to ``log.msg`` with
    ``fields`` bound. Fields of an event win over bound ones.
    """
    @sync_performer
    def perform_log(_, intent):
        log.msg(intent.msg, **merge(fields, intent.fields))

    def perform_bound(dispatcher, intent, box):
        inner = ComposedDispatcher([
            get_log_dispatcher(log, merge(fields, intent.fields)),
            dispatcher])
        perform(inner, intent.effect.on(box.succeed, box.fail))

    return TypeDispatcher({Log: perform_log, BoundFields: perform_bound})


@attr.s
class MsgWithTime(object):
    """
    Perform ``effect`` and then log ``msg`` with the ``seconds_taken``.
    """
    msg = attr.ib()
    effect = attr.ib()


def msg_with_time(msg, eff):
    """Return an Effect of :obj:`MsgWithTime`."""
    return Effect(MsgWithTime(msg, eff))


@sync_performer
def perform_msg_time(clock, dispatcher, intent):
    """
    Time ``intent.effect`` on ``clock`` and log the time taken once it
    succeeds. The effect's result is passed through.
    """
    start = clock.seconds()

    def timed(result):
        return msg(intent.msg, seconds_taken=clock.seconds() - start).on(
            lambda _: result)

    return intent.effect.on(timed)


def get_msg_time_dispatcher(clock):
    """Return a dispatcher performing :obj:`MsgWithTime` timed on ``clock``."""
    return TypeDispatcher({MsgWithTime: partial(perform_msg_time, clock)})
