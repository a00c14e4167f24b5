"""
Tests for retry with exponential backoff.

Covers:
- Success on first and later attempts
- Delay schedule (base * 2**attempt)
- Non-transient errors propagate immediately
- TransientStoreError after the last attempt
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from mlm_app.utils.exceptions import (
    TransientStoreError,
    ValidationError,
    is_transient,
    must_raise,
)
from mlm_app.utils.retry import backoff_delay, call_with_retry


def operational_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection lost"))


class TestBackoffDelay:
    """Test delay schedule."""

    def test_doubles_every_attempt(self):
        """0.5, 1, 2, 4..."""
        assert [backoff_delay(i, 0.5) for i in range(4)] == [0.5, 1.0, 2.0, 4.0]


class TestCallWithRetry:
    """Test the retry wrapper."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        """No retry when the call works."""
        call = AsyncMock(return_value="ok")

        result = await call_with_retry(call, max_attempts=3, base_delay=0)

        assert result == "ok"
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self):
        """A transient failure followed by success returns the result."""
        call = AsyncMock(side_effect=[operational_error(), "ok"])
        on_retry = AsyncMock()

        with patch("mlm_app.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await call_with_retry(
                call, max_attempts=3, base_delay=0.5, on_retry=on_retry
            )

        assert result == "ok"
        assert call.await_count == 2
        on_retry.assert_awaited_once()
        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """All attempts failing raises TransientStoreError."""
        call = AsyncMock(side_effect=RedisConnectionError("down"))

        with patch("mlm_app.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientStoreError) as exc_info:
                await call_with_retry(
                    call, max_attempts=3, base_delay=1, operation_name="load"
                )

        assert call.await_count == 3
        # No sleep after the final attempt
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)
        assert exc_info.value.context["operation"] == "load"

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self):
        """Validation errors propagate on the first failure."""
        call = AsyncMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            await call_with_retry(call, max_attempts=5, base_delay=0)

        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        """max_attempts=1 never sleeps."""
        call = AsyncMock(side_effect=TimeoutError())

        with patch("mlm_app.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientStoreError):
                await call_with_retry(call, max_attempts=1, base_delay=1)

        sleep.assert_not_awaited()


class TestErrorCategories:
    """Test exception classification."""

    def test_transient_errors(self):
        """Store and network failures are transient."""
        assert is_transient(operational_error())
        assert is_transient(RedisConnectionError())
        assert is_transient(TimeoutError())
        assert not is_transient(ValueError())

    def test_must_raise(self):
        """Validation failures surface to the caller."""
        assert must_raise(ValidationError("x"))
        assert not must_raise(TransientStoreError("x"))

    def test_error_keeps_context(self):
        """Keyword context is kept on the exception."""
        error = ValidationError("Amount too low", amount="5")

        assert error.message == "Amount too low"
        assert error.context == {"amount": "5"}
        assert str(error) == "Amount too low"
