from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

from dynavest.domain.models import Call, Position, StrategyDescriptor
from dynavest.strategies.abi import ERC20_APPROVE

DAYS_PER_YEAR = Decimal("365")
SECONDS_PER_DAY = 86_400


class StrategyHandle(Protocol):
    """Capability surface every protocol integration implements."""

    @property
    def descriptor(self) -> StrategyDescriptor: ...

    async def invest_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]: ...

    async def redeem_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]: ...

    async def profit_of(self, user: str, position: Position) -> Decimal: ...


def approve_call(token: str, spender: str, amount: int) -> Call:
    return Call(to=token, data=ERC20_APPROVE.encode_call(spender, int(amount)))


def days_held(created_at: datetime | None, now: datetime) -> int:
    if created_at is None:
        return 0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    elapsed = abs((now - created_at).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def linear_apy_profit(
    position: Position,
    apy: Decimal,
    now_fn: Callable[[], datetime] | None = None,
) -> Decimal:
    """Simple-interest estimate for protocols without an on-chain receipt balance."""
    now = (now_fn or (lambda: datetime.now(UTC)))()
    daily_rate = apy / DAYS_PER_YEAR
    return position.amount * daily_rate * days_held(position.created_at, now)
