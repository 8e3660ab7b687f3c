from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from dynavest.adapters.retry import BackoffPolicy, parse_retry_after_seconds, retry_async


def test_retry_after_header_wins_over_exponential_backoff() -> None:
    policy = BackoffPolicy(base_delay_seconds=0.5, max_delay_seconds=10)

    assert policy.delay_for(3, "2.5") == 2.5


def test_retry_after_is_capped_by_max_delay() -> None:
    assert BackoffPolicy(max_delay_seconds=4).delay_for(1, "30") == 4


def test_retry_after_http_date_supported() -> None:
    now = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)
    header = (now + timedelta(seconds=3)).strftime("%a, %d %b %Y %H:%M:%S GMT")

    assert parse_retry_after_seconds(header, now=lambda: now) == 3.0
    assert parse_retry_after_seconds("soon") is None
    assert parse_retry_after_seconds("-1") is None


def test_backoff_grows_with_attempts_and_is_deterministic() -> None:
    policy = BackoffPolicy(base_delay_seconds=0.2, max_delay_seconds=10, jitter_seed=1)

    assert policy.delay_for(3) > policy.delay_for(1)
    assert policy.delay_for(2) == policy.delay_for(2)
    assert 0.16 <= policy.delay_for(1) <= 0.24


def test_retry_async_stops_on_non_retryable_error() -> None:
    calls = {"count": 0}
    sleeps: list[float] = []

    async def _fn() -> None:
        calls["count"] += 1
        raise KeyError("nope")

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    with pytest.raises(KeyError):
        asyncio.run(
            retry_async(
                _fn,
                max_attempts=3,
                policy=BackoffPolicy(),
                is_retryable=lambda exc: isinstance(exc, TimeoutError),
                sleep_fn=_sleep,
            )
        )

    assert calls["count"] == 1
    assert sleeps == []


def test_retry_async_reports_each_retry() -> None:
    calls = {"count": 0}
    retries: list[int] = []

    async def _fn() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise TimeoutError("slow")
        return "ok"

    async def _sleep(delay: float) -> None:
        return None

    result = asyncio.run(
        retry_async(
            _fn,
            max_attempts=3,
            policy=BackoffPolicy(),
            is_retryable=lambda exc: isinstance(exc, TimeoutError),
            on_retry=lambda exc, attempt, delay: retries.append(attempt),
            sleep_fn=_sleep,
        )
    )

    assert result == "ok"
    assert retries == [1, 2]


def test_retry_async_rejects_zero_attempts() -> None:
    async def _fn() -> None:
        return None

    with pytest.raises(ValueError):
        asyncio.run(
            retry_async(_fn, max_attempts=0, policy=BackoffPolicy(), is_retryable=lambda exc: True)
        )
