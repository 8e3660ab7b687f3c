from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Literal

from dynavest.domain.errors import EmptyCallList, InvalidRequest
from dynavest.domain.models import PERCENT_TOTAL, AllocationLeg, Call
from dynavest.strategies.base import StrategyHandle

logger = logging.getLogger(__name__)

StrategyResolver = Callable[[AllocationLeg], StrategyHandle]


def leg_amounts(legs: Sequence[AllocationLeg], amount: int) -> list[int]:
    """Integer split of ``amount`` per leg, floor division, in leg order."""
    if amount < 0:
        raise InvalidRequest("amount must be >= 0")
    return [amount * leg.allocation_percent // PERCENT_TOTAL for leg in legs]


async def _compose(
    action: Literal["invest", "redeem"],
    legs: Sequence[AllocationLeg],
    amount: int,
    user: str,
    asset: str | None,
    strategy_for: StrategyResolver,
) -> list[Call]:
    calls: list[Call] = []
    for leg, leg_amount in zip(legs, leg_amounts(legs, amount), strict=True):
        if leg_amount == 0:
            # Protocols revert on zero-amount supply/withdraw.
            logger.info(
                "Skipping empty strategy leg",
                extra={
                    "extra": {
                        "strategy_id": leg.strategy_id,
                        "allocation_percent": leg.allocation_percent,
                    }
                },
            )
            continue
        strategy = strategy_for(leg)
        if action == "invest":
            leg_calls = await strategy.invest_calls(leg_amount, user, asset)
        else:
            leg_calls = await strategy.redeem_calls(leg_amount, user, asset)
        logger.debug(
            "Composed strategy leg",
            extra={
                "extra": {
                    "action": action,
                    "strategy_id": leg.strategy_id,
                    "allocation_percent": leg.allocation_percent,
                    "leg_amount": leg_amount,
                    "calls": len(leg_calls),
                }
            },
        )
        calls.extend(leg_calls)
    if not calls:
        raise EmptyCallList()
    return calls


async def compose_invest_calls(
    legs: Sequence[AllocationLeg],
    amount: int,
    user: str,
    asset: str | None,
    strategy_for: StrategyResolver,
) -> list[Call]:
    return await _compose("invest", legs, amount, user, asset, strategy_for)


async def compose_redeem_calls(
    legs: Sequence[AllocationLeg],
    amount: int,
    user: str,
    asset: str | None,
    strategy_for: StrategyResolver,
) -> list[Call]:
    return await _compose("redeem", legs, amount, user, asset, strategy_for)
