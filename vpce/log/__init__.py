"""
Package for all vpce specific logging functionality.
"""

from functools import partial

import attr

from twisted.python.log import err, msg

from vpce.log.setup import observer_factory, observer_factory_debug


@attr.s(frozen=True)
class BoundLog(object):
    """
    A pair of twisted ``msg`` and ``err`` callables. :meth:`bind` returns a
    copy that adds fields to every event, so the converger can tag its events
    with ``vpce_service`` and each pass with its ``endpoint_key``.
    """
    msg = attr.ib()
    err = attr.ib()

    def bind(self, **fields):
        return BoundLog(partial(self.msg, **fields),
                        partial(self.err, **fields))


log = BoundLog(msg, err).bind(system='vpce')


__all__ = ['BoundLog', 'observer_factory', 'observer_factory_debug', 'log']
