"""
Rate limiters that decide how long to wait before reconciling something
again.

A reconcile of a resource that keeps failing should back off exponentially,
but no matter how many different resources are failing, the total rate of
retries must stay under what the AWS API tolerates.  The limiters here are
composed with :class:`MaxOfRateLimiter` so that the stricter one wins.
"""

import attr

from zope.interface import Interface, implementer


class IRateLimiter(Interface):
    """
    Something that decides when an item may be processed again.
    """

    def when(item):
        """
        Record another attempt for ``item`` and return the number of seconds
        to wait before it.
        """

    def forget(item):
        """
        Stop tracking ``item``, e.g. because it was processed successfully.
        """

    def num_requeues(item):
        """
        Return how many times ``item`` has been rate-limited since it was
        last forgotten.
        """


@implementer(IRateLimiter)
@attr.s
class ItemExponentialFailureRateLimiter(object):
    """
    Per-item exponential backoff: ``base_delay * 2 ** failures``, capped at
    ``max_delay``.

    :ivar float base_delay: delay in seconds after the first failure
    :ivar float max_delay: the largest delay ever returned
    """
    base_delay = attr.ib(default=1.0)
    max_delay = attr.ib(default=5000.0)
    failures = attr.ib(default=attr.Factory(dict), repr=False)

    def when(self, item):
        """Return the next, doubled, delay for ``item``."""
        exp = self.failures.get(item, 0)
        self.failures[item] = exp + 1
        # avoid float overflow for items that fail for a very long time
        if exp >= 64:
            return self.max_delay
        return min(self.base_delay * 2 ** exp, self.max_delay)

    def forget(self, item):
        """Reset the backoff of ``item``."""
        self.failures.pop(item, None)

    def num_requeues(self, item):
        """Return the number of failures recorded for ``item``."""
        return self.failures.get(item, 0)


@implementer(IRateLimiter)
class BucketRateLimiter(object):
    """
    A token bucket shared by all items: ``rate`` tokens are added per second
    up to ``burst``, and every call to :meth:`when` takes one token.  When no
    token is left, the returned delay is how long it takes until the token
    reserved by this call is available.

    :ivar float rate: tokens per second
    :ivar int burst: capacity of the bucket
    :ivar clock: an ``IReactorTime`` provider
    """

    def __init__(self, rate, burst, clock):
        if rate <= 0 or burst <= 0:
            raise ValueError('rate and burst must be positive')
        self.rate = float(rate)
        self.burst = burst
        self.clock = clock
        self._tokens = float(burst)
        self._last = clock.seconds()

    def _refill(self):
        now = self.clock.seconds()
        self._tokens = min(
            self.burst, self._tokens + (now - self._last) * self.rate)
        self._last = now

    def reserve(self):
        """
        Take a token, going into debt if there is none, and return the
        number of seconds until the token is really available.
        """
        self._refill()
        self._tokens -= 1
        if self._tokens >= 0:
            return 0
        return -self._tokens / self.rate

    def when(self, item):
        """Reserve a token; ``item`` is irrelevant to a shared bucket."""
        return self.reserve()

    def forget(self, item):
        """Nothing is tracked per item."""

    def num_requeues(self, item):
        """Nothing is tracked per item."""
        return 0


@implementer(IRateLimiter)
class MaxOfRateLimiter(object):
    """
    Combine several rate limiters, always waiting as long as the strictest
    of them requires.
    """

    def __init__(self, *limiters):
        self.limiters = limiters

    def when(self, item):
        """
        Ask every limiter (so that each records the attempt) and return the
        longest delay.
        """
        return max([limiter.when(item) for limiter in self.limiters])

    def forget(self, item):
        """Forget ``item`` in every limiter."""
        for limiter in self.limiters:
            limiter.forget(item)

    def num_requeues(self, item):
        """Return the largest requeue count of any limiter."""
        return max(limiter.num_requeues(item) for limiter in self.limiters)


def default_rate_limiter(clock, base_delay=1, max_delay=5000, qps=10,
                         burst=100):
    """
    Return the rate limiter used to requeue failed reconciles.

    The defaults are much slower than a typical controller's, since AWS
    resources change far more slowly than in-cluster ones and AWS throttles
    aggressively.

    :param clock: ``IReactorTime`` provider for the token bucket
    :param float base_delay: first per-resource backoff in seconds
    :param float max_delay: largest per-resource backoff in seconds
    :param float qps: overall retries allowed per second
    :param int burst: overall retries allowed in a burst
    """
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(base_delay=base_delay,
                                          max_delay=max_delay),
        BucketRateLimiter(qps, burst, clock))
