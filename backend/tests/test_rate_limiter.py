"""
Tests del límite de mensajes por cliente
"""
from datetime import timedelta

from gestionbot.services.rate_limiter import RateLimiter

from conftest import CUSTOMER, FakeClock


class TestRateLimiter:

    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(max_messages=2, window=timedelta(seconds=60), clock=self.clock)

    def test_blocks_after_limit_and_notifies_once(self):
        assert self.limiter.check(CUSTOMER).allowed
        assert self.limiter.check(CUSTOMER).remaining == 0

        first = self.limiter.check(CUSTOMER)
        second = self.limiter.check(CUSTOMER)

        assert not first.allowed and first.notify
        assert not second.allowed and not second.notify

    def test_window_slides(self):
        self.limiter.check(CUSTOMER)
        self.clock.advance(seconds=30)
        self.limiter.check(CUSTOMER)

        self.clock.advance(seconds=31)

        assert self.limiter.check(CUSTOMER).allowed
        assert not self.limiter.check(CUSTOMER).allowed

    def test_zero_disables_limit(self):
        limiter = RateLimiter(max_messages=0, clock=self.clock)
        assert all(limiter.check(CUSTOMER).allowed for _ in range(50))

    def test_sweep_drops_quiet_customers(self):
        self.limiter.check(CUSTOMER)
        self.limiter.check("5491166667777")
        self.clock.advance(seconds=45)
        self.limiter.check("5491166667777")

        self.clock.advance(seconds=20)

        assert self.limiter.sweep() == 1
