"""
Unit tests for the vector store retry policy.
"""

from unittest.mock import MagicMock

import pytest

from shared.clients.vector.VectorRetry import compute_backoff_seconds, is_retryable_error, retry_with_backoff
from shared.clients.vector.VectorStoreError import VectorStoreError


class FlakyOperation:
    """Fails with the given errors in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)
    return _sleep


class TestClassification:
    """Tests for is_retryable_error."""

    def test_vector_store_error_carries_its_classification(self):
        assert is_retryable_error(VectorStoreError.from_status("busy", 503)) is True
        assert is_retryable_error(VectorStoreError.from_status("rate limited", 429)) is True
        assert is_retryable_error(VectorStoreError.from_status("unauthorized", 401)) is False
        assert is_retryable_error(VectorStoreError("unreachable", transient=True)) is True

    def test_other_errors_are_classified_by_message(self):
        assert is_retryable_error(RuntimeError("read ECONNRESET")) is True
        assert is_retryable_error(RuntimeError("request timed out")) is True
        assert is_retryable_error(RuntimeError("upstream returned 502")) is True
        assert is_retryable_error(ValueError("bad filter expression")) is False

    def test_status_codes_must_stand_alone(self):
        assert is_retryable_error(RuntimeError("HTTP 503")) is True
        assert is_retryable_error(RuntimeError("status=429 too many requests")) is True
        assert is_retryable_error(RuntimeError("limit 5000 exceeded")) is False
        assert is_retryable_error(RuntimeError("dimension 1500 does not match index")) is False


class TestBackoff:
    """Tests for compute_backoff_seconds."""

    def test_doubles_with_bounded_jitter(self):
        for attempt, base in ((0, 0.1), (1, 0.2), (2, 0.4)):
            delay = compute_backoff_seconds(attempt)
            assert base <= delay <= base * 1.1

    def test_is_capped(self):
        assert compute_backoff_seconds(10) == 1.0


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, fake_sleep, sleeps):
        operation = FlakyOperation(RuntimeError("HTTP 503"), RuntimeError("HTTP 503"))

        result = await retry_with_backoff(operation, "upsert", sleep=fake_sleep)

        assert result == "ok"
        assert operation.calls == 3
        assert len(sleeps) == 2
        assert sleeps[0] < sleeps[1]

    @pytest.mark.asyncio
    async def test_permanent_failure_is_raised_at_once(self, fake_sleep, sleeps):
        error = VectorStoreError.from_status("unauthorized", 401)
        operation = FlakyOperation(error)

        with pytest.raises(VectorStoreError) as exc_info:
            await retry_with_backoff(operation, "query", sleep=fake_sleep)

        assert exc_info.value is error
        assert operation.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_last_error_is_raised_after_three_attempts(self, fake_sleep, sleeps):
        last = VectorStoreError.from_status("third", 503)
        operation = FlakyOperation(
            VectorStoreError.from_status("first", 503),
            VectorStoreError.from_status("second", 504),
            last,
        )

        with pytest.raises(VectorStoreError) as exc_info:
            await retry_with_backoff(operation, "delete", sleep=fake_sleep)

        assert exc_info.value is last
        assert operation.calls == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_warnings_go_to_the_given_logger(self, fake_sleep):
        logger = MagicMock()
        operation = FlakyOperation(RuntimeError("HTTP 503"), RuntimeError("HTTP 503"))

        await retry_with_backoff(operation, "upsert", sleep=fake_sleep, logger=logger)

        assert logger.warning.call_count == 2
        assert logger.warning.call_args_list[0].args[1:4] == ("upsert", 1, 3)
