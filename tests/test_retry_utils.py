"""
Tests for retry utilities.
"""

import os
import pytest
from unittest.mock import AsyncMock, call, patch

from pickem_sync.config_manager import ConfigManager
from pickem_sync.errors import ExhaustedRetries, TransportError
from pickem_sync.retry_utils import RetryPolicy, exponential_backoff, retry_with_backoff


class TestBackoff:
    """Test backoff delay calculation."""

    def test_exponential_backoff(self):
        backoff = exponential_backoff(1.0, 2.0)
        assert backoff(2) == 1.0
        assert backoff(3) == 2.0
        assert backoff(4) == 4.0

    def test_exponential_backoff_capped(self):
        backoff = exponential_backoff(1.0, 10.0, max_delay=5.0)
        assert backoff(3) == 5.0

    def test_first_attempt_never_waits(self):
        policy = RetryPolicy()
        assert policy.delay_before(1) == 0.0
        assert policy.delay_before(2) == 1.0
        assert policy.delay_before(3) == 2.0

    def test_custom_backoff_function(self):
        policy = RetryPolicy(backoff=lambda attempt: 0.1 * attempt)
        assert policy.delay_before(3) == pytest.approx(0.3)

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_policy_from_config(self):
        with patch.dict(os.environ, {"PICKEM_SYNC_MAX_ATTEMPTS": "5", "PICKEM_SYNC_RETRY_BASE_DELAY": "0.5"}, clear=True):
            manager = ConfigManager(enable_hot_reload=False)
        policy = RetryPolicy.from_config(manager)
        assert policy.max_attempts == 5
        assert policy.delay_before(2) == 0.5


class TestRetryWithBackoff:
    """Test the async retry loop."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        func = AsyncMock(return_value={"events": []})
        sleep = AsyncMock()

        result = await retry_with_backoff(func, "/scoreboard", sleep=sleep)

        assert result == {"events": []}
        func.assert_awaited_once_with("/scoreboard")
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_after_transient_failures(self):
        func = AsyncMock(side_effect=[TransportError("reset"), TransportError("reset"), "ok"])
        sleep = AsyncMock()

        result = await retry_with_backoff(func, sleep=sleep, operation_name="GET /scoreboard")

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_exhausted_after_max_attempts(self):
        """Three failing attempts wait 1s then 2s and raise ExhaustedRetries."""
        func = AsyncMock(side_effect=TransportError("Service Unavailable", status_code=503))
        sleep = AsyncMock()

        with pytest.raises(ExhaustedRetries) as exc_info:
            await retry_with_backoff(func, sleep=sleep, operation_name="GET /scoreboard")

        assert func.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error.status_code == 503

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self):
        func = AsyncMock(side_effect=KeyError("events"))
        sleep = AsyncMock()

        with pytest.raises(KeyError):
            await retry_with_backoff(func, sleep=sleep)

        func.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        func = AsyncMock(side_effect=TransportError("down"))
        sleep = AsyncMock()

        with pytest.raises(ExhaustedRetries):
            await retry_with_backoff(func, policy=RetryPolicy(max_attempts=1), sleep=sleep)

        assert func.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_keyword_arguments_are_forwarded(self):
        func = AsyncMock(return_value=1)
        await retry_with_backoff(func, "/scoreboard", params={"week": 1}, sleep=AsyncMock())
        func.assert_awaited_once_with("/scoreboard", params={"week": 1})
