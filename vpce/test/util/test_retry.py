"""
Tests for `vpce.util.retry`
"""
from twisted.internet.task import Clock
from twisted.trial.unittest import SynchronousTestCase

from zope.interface.verify import verifyObject

from vpce.util.retry import (
    BucketRateLimiter,
    IRateLimiter,
    ItemExponentialFailureRateLimiter,
    MaxOfRateLimiter,
    default_rate_limiter)


class ItemExponentialFailureRateLimiterTests(SynchronousTestCase):
    """
    Tests for :class:`ItemExponentialFailureRateLimiter`
    """

    def setUp(self):
        """Create a limiter with a small cap."""
        self.limiter = ItemExponentialFailureRateLimiter(
            base_delay=1, max_delay=10)

    def test_provides_interface(self):
        """The limiter provides :obj:`IRateLimiter`."""
        verifyObject(IRateLimiter, self.limiter)

    def test_doubles_and_caps(self):
        """
        Every failure doubles the delay until it reaches ``max_delay``.
        """
        self.assertEqual([self.limiter.when('a') for _ in range(6)],
                         [1, 2, 4, 8, 10, 10])
        self.assertEqual(self.limiter.num_requeues('a'), 6)

    def test_per_item(self):
        """
        Every item has its own backoff.
        """
        self.limiter.when('a')
        self.limiter.when('a')
        self.assertEqual(self.limiter.when('b'), 1)
        self.assertEqual(self.limiter.when('a'), 4)

    def test_forget(self):
        """
        Forgetting an item resets its backoff, and forgetting an unknown item
        is fine.
        """
        self.limiter.when('a')
        self.limiter.when('a')
        self.limiter.forget('a')
        self.limiter.forget('b')
        self.assertEqual(self.limiter.num_requeues('a'), 0)
        self.assertEqual(self.limiter.when('a'), 1)

    def test_huge_exponent(self):
        """
        An item that failed very many times gets ``max_delay``.
        """
        self.limiter.failures['a'] = 2000
        self.assertEqual(self.limiter.when('a'), 10)


class BucketRateLimiterTests(SynchronousTestCase):
    """
    Tests for :class:`BucketRateLimiter`
    """

    def setUp(self):
        """Create a bucket of 2 tokens refilled at 1 per second."""
        self.clock = Clock()
        self.limiter = BucketRateLimiter(1, 2, self.clock)

    def test_provides_interface(self):
        """The limiter provides :obj:`IRateLimiter`."""
        verifyObject(IRateLimiter, self.limiter)

    def test_burst_then_throttled(self):
        """
        A burst of calls goes through without waiting, after which every call
        waits one more token's worth.
        """
        self.assertEqual(
            [self.limiter.when(item) for item in 'abcd'], [0, 0, 1, 2])

    def test_refills(self):
        """
        Tokens come back with time, but never more than ``burst`` of them.
        """
        self.limiter.when('a')
        self.limiter.when('b')
        self.clock.advance(100)
        self.assertEqual(
            [self.limiter.when(item) for item in 'abc'], [0, 0, 1])

    def test_forget_does_nothing(self):
        """
        Nothing is tracked per item.
        """
        self.limiter.when('a')
        self.limiter.forget('a')
        self.assertEqual(self.limiter.num_requeues('a'), 0)
        self.assertEqual(self.limiter.when('a'), 0)
        self.assertEqual(self.limiter.when('a'), 1)

    def test_invalid(self):
        """
        Rate and burst must be positive.
        """
        self.assertRaises(ValueError, BucketRateLimiter, 0, 1, self.clock)
        self.assertRaises(ValueError, BucketRateLimiter, 1, 0, self.clock)


class MaxOfRateLimiterTests(SynchronousTestCase):
    """
    Tests for :class:`MaxOfRateLimiter` and :func:`default_rate_limiter`
    """

    def test_stricter_wins(self):
        """
        The longest delay of the composed limiters is returned, and every
        limiter records the attempt.
        """
        clock = Clock()
        exp = ItemExponentialFailureRateLimiter(base_delay=1, max_delay=100)
        bucket = BucketRateLimiter(1, 1, clock)
        limiter = MaxOfRateLimiter(exp, bucket)
        verifyObject(IRateLimiter, limiter)
        # bucket: 0, exponential: 1
        self.assertEqual(limiter.when('a'), 1)
        # bucket: 1, exponential: 1
        self.assertEqual(limiter.when('b'), 1)
        # bucket: 2, exponential: 2
        self.assertEqual(limiter.when('a'), 2)
        self.assertEqual(limiter.num_requeues('a'), 2)

    def test_forget_forgets_everywhere(self):
        """
        Forgetting an item forgets it in every limiter.
        """
        exp = ItemExponentialFailureRateLimiter()
        limiter = MaxOfRateLimiter(exp)
        limiter.when('a')
        limiter.forget('a')
        self.assertEqual(exp.num_requeues('a'), 0)

    def test_default(self):
        """
        The default limiter backs off exponentially per item from 1 second,
        under a 10 qps / 100 burst bucket.
        """
        clock = Clock()
        limiter = default_rate_limiter(clock)
        self.assertEqual([limiter.when('a') for _ in range(4)], [1, 2, 4, 8])
        exp, bucket = limiter.limiters
        self.assertEqual((exp.base_delay, exp.max_delay), (1, 5000))
        self.assertEqual((bucket.rate, bucket.burst), (10, 100))
