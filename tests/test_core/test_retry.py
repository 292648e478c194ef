"""Tests for exponential backoff."""

from unittest.mock import AsyncMock

import pytest

from eviction_crm.core.retry import BackoffPolicy, retry_with_backoff


@pytest.mark.unit
class TestBackoffPolicy:
    """Tests for BackoffPolicy delays."""

    def test_delays_double_until_cap(self):
        policy = BackoffPolicy(max_attempts=5, base_delay_ms=1000, max_delay_ms=30000)

        assert policy.delay_after(1) == 2.0
        assert policy.delay_after(2) == 4.0
        assert policy.delay_after(4) == 16.0
        assert policy.delay_after(5) == 30.0
        assert policy.delay_after(10) == 30.0

    def test_database_policy_reads_settings(self):
        policy = BackoffPolicy.for_database()

        assert policy.max_attempts == 5
        assert policy.base_delay_ms == 1000
        assert policy.max_delay_ms == 30000


@pytest.mark.unit
class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    async def test_first_attempt_runs_immediately(self):
        operation = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await retry_with_backoff(operation, BackoffPolicy(), sleep=sleep) == "ok"
        sleep.assert_not_awaited()

    async def test_reraises_last_error(self):
        operation = AsyncMock(side_effect=[OSError("one"), OSError("two"), OSError("three")])
        sleep = AsyncMock()

        with pytest.raises(OSError, match="three"):
            await retry_with_backoff(operation, BackoffPolicy(max_attempts=3), sleep=sleep)

        assert operation.await_count == 3
        assert sleep.await_count == 2
