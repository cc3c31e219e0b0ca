"""Tests for conflict retries."""

import pytest

from turista.domain.errors import (
    CapacityExceededError,
    ConflictRetryError,
    UnavailableError,
)
from turista.services.retry import RetryPolicy, retry_on_conflict
from tests.conftest import NO_DELAY


def test_retry_returns_after_conflicts() -> None:
    calls = {"count": 0}

    def operation() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise ConflictRetryError("row")
        return "done"

    assert retry_on_conflict(operation, NO_DELAY) == "done"
    assert calls["count"] == 3


def test_retry_surfaces_unavailable_when_exhausted() -> None:
    calls = {"count": 0}

    def operation() -> None:
        calls["count"] += 1
        raise ConflictRetryError("row")

    with pytest.raises(UnavailableError) as excinfo:
        retry_on_conflict(operation, RetryPolicy(max_attempts=2, delay_seconds=0))

    assert calls["count"] == 2
    assert isinstance(excinfo.value.__cause__, ConflictRetryError)


def test_retry_does_not_retry_other_errors() -> None:
    calls = {"count": 0}

    def operation() -> None:
        calls["count"] += 1
        raise CapacityExceededError(requested=2, available=1)

    with pytest.raises(CapacityExceededError):
        retry_on_conflict(operation, NO_DELAY)
    assert calls["count"] == 1


def test_retry_policy_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
