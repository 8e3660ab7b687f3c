from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar

T = TypeVar("T")


def parse_retry_after_seconds(
    value: str | None, *, now: Callable[[], datetime] | None = None
) -> float | None:
    """Read a ``Retry-After`` header given as delta-seconds or an HTTP date."""
    if value is None or not value.strip():
        return None
    candidate = value.strip()
    try:
        seconds = float(candidate)
    except ValueError:
        try:
            at = parsedate_to_datetime(candidate)
        except (TypeError, ValueError):
            return None
        if at.tzinfo is None:
            at = at.replace(tzinfo=UTC)
        current = now() if now is not None else datetime.now(UTC)
        return max(0.0, (at - current).total_seconds())
    return seconds if seconds >= 0 else None


@dataclass(frozen=True)
class BackoffPolicy:
    base_delay_seconds: float = 0.4
    max_delay_seconds: float = 4.0
    jitter_seed: int = 17

    def delay_for(self, attempt: int, retry_after: str | None = None) -> float:
        hinted = parse_retry_after_seconds(retry_after)
        if hinted is not None:
            return min(self.max_delay_seconds, hinted)
        step = max(1, attempt)
        delay = min(self.max_delay_seconds, self.base_delay_seconds * 2 ** (step - 1))
        # Seeded so a given attempt always waits the same amount.
        return delay * random.Random(self.jitter_seed + step).uniform(0.8, 1.2)


async def retry_async(  # noqa: UP047
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    policy: BackoffPolicy,
    is_retryable: Callable[[Exception], bool],
    retry_after: Callable[[Exception], str | None] | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as exc:
            if attempt >= max_attempts or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt, retry_after(exc) if retry_after else None)
            if on_retry is not None:
                on_retry(exc, attempt, delay)
            await sleep_fn(delay)
