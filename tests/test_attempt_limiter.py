"""Sliding-window account limiter."""

from datetime import timedelta

import pytest

from portal_auth.services.attempt_limiter import AttemptLimiter
from tests.conftest import NOW

KEY = AttemptLimiter.build_key("alice@example.com", "203.0.113.7")


@pytest.fixture
def limiter(db_session) -> AttemptLimiter:
    return AttemptLimiter(db_session, max_failures=5, window=timedelta(minutes=15))


async def fail(limiter: AttemptLimiter, count: int, start=NOW, spacing=timedelta(seconds=10)):
    for i in range(count):
        await limiter.record_attempt(KEY, success=False, now=start + spacing * i)


class TestKey:
    def test_email_is_case_and_space_insensitive(self):
        assert AttemptLimiter.build_key(" Alice@Example.COM ", "10.0.0.1") == "alice@example.com|10.0.0.1"

    def test_missing_origin(self):
        assert AttemptLimiter.build_key("a@example.com", None) == "a@example.com|unknown"


class TestBlocking:
    async def test_below_threshold_not_blocked(self, limiter):
        await fail(limiter, 4)
        assert not await limiter.is_blocked(KEY, NOW + timedelta(minutes=1))
        assert await limiter.retry_after(KEY, NOW + timedelta(minutes=1)) is None

    async def test_threshold_blocks(self, limiter):
        await fail(limiter, 5)
        assert await limiter.is_blocked(KEY, NOW + timedelta(minutes=1))

    async def test_success_does_not_reset_failures(self, limiter):
        await fail(limiter, 4)
        await limiter.record_attempt(KEY, success=True, now=NOW + timedelta(seconds=45))
        await limiter.record_attempt(KEY, success=False, now=NOW + timedelta(seconds=50))
        assert await limiter.is_blocked(KEY, NOW + timedelta(minutes=1))

    async def test_keys_are_independent(self, limiter):
        await fail(limiter, 5)
        other_origin = AttemptLimiter.build_key("alice@example.com", "198.51.100.1")
        other_account = AttemptLimiter.build_key("bob@example.com", "203.0.113.7")
        assert not await limiter.is_blocked(other_origin, NOW + timedelta(minutes=1))
        assert not await limiter.is_blocked(other_account, NOW + timedelta(minutes=1))

    async def test_block_lifts_as_failures_age_out(self, limiter):
        # Failures at NOW, +10s, ..., +40s
        await fail(limiter, 5)
        window = timedelta(minutes=15)

        assert await limiter.is_blocked(KEY, NOW + window - timedelta(seconds=1))
        # The oldest failure has left the window
        assert not await limiter.is_blocked(KEY, NOW + window)

    async def test_failures_outside_window_ignored(self, limiter):
        await fail(limiter, 5, start=NOW - timedelta(hours=1))
        assert not await limiter.is_blocked(KEY, NOW)


class TestRetryAfter:
    async def test_counts_down_to_release(self, limiter):
        await fail(limiter, 5)
        # Oldest failure leaves the 15 minute window at NOW + 900s
        assert await limiter.retry_after(KEY, NOW + timedelta(seconds=100)) == 800

    async def test_rounds_up_partial_seconds(self, limiter):
        await fail(limiter, 5)
        assert await limiter.retry_after(KEY, NOW + timedelta(seconds=100, milliseconds=500)) == 800

    async def test_release_tracks_the_failure_that_matters(self, limiter):
        # Seven failures: the block lifts once only four remain in the window
        await fail(limiter, 7)
        assert await limiter.retry_after(KEY, NOW + timedelta(seconds=100)) == 820
