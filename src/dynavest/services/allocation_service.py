from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from dynavest.domain.chains import ChainId
from dynavest.domain.errors import UnsupportedChain
from dynavest.domain.models import PERCENT_TOTAL, RISK_TIERS, AllocationLeg, RiskTier
from dynavest.strategies.registry import (
    AAVE_V3_SUPPLY,
    FLUID_SUPPLY,
    MORPHO_SUPPLY,
    UNISWAP_V3_SWAP_LST,
    StrategyRegistry,
)

logger = logging.getLogger(__name__)

MIN_LEG_SHARE = 1


@dataclass(frozen=True)
class StrategySlot:
    # allocation_range=None marks a slot that takes whatever is left.
    strategy_id: str
    allocation_range: tuple[int, int] | None = None

    def __post_init__(self) -> None:
        if self.allocation_range is None:
            return
        low, high = self.allocation_range
        if not 0 <= low <= high <= PERCENT_TOTAL:
            raise ValueError(f"invalid allocation range for {self.strategy_id}: {self.allocation_range}")


ChainStrategyConfig = Mapping[RiskTier, Sequence[StrategySlot]]

CHAIN_STRATEGY_CONFIGS: dict[int, ChainStrategyConfig] = {
    ChainId.BASE: {
        RiskTier.LOW: (
            StrategySlot(AAVE_V3_SUPPLY, (30, 50)),
            StrategySlot(UNISWAP_V3_SWAP_LST),
        ),
        RiskTier.MEDIUM: (
            StrategySlot(AAVE_V3_SUPPLY, (15, 30)),
            StrategySlot(MORPHO_SUPPLY, (15, 30)),
            StrategySlot(UNISWAP_V3_SWAP_LST),
        ),
        RiskTier.HIGH: (
            StrategySlot(AAVE_V3_SUPPLY, (20, 40)),
            StrategySlot(FLUID_SUPPLY, (20, 40)),
            StrategySlot(MORPHO_SUPPLY),
        ),
    },
    ChainId.ARBITRUM: {
        RiskTier.LOW: (
            StrategySlot(AAVE_V3_SUPPLY, (30, 40)),
            StrategySlot(UNISWAP_V3_SWAP_LST),
        ),
        RiskTier.MEDIUM: (
            StrategySlot(AAVE_V3_SUPPLY, (40, 60)),
            StrategySlot(UNISWAP_V3_SWAP_LST),
        ),
        RiskTier.HIGH: (
            StrategySlot(AAVE_V3_SUPPLY, (60, 80)),
            StrategySlot(UNISWAP_V3_SWAP_LST),
        ),
    },
}


def draw_allocations(slots: Sequence[StrategySlot], rng: random.Random) -> list[int]:
    """Return one percentage per slot; the last slot absorbs the remainder.

    Ranged slots before the last are drawn uniformly after clamping their upper
    bound so every later slot can still receive ``MIN_LEG_SHARE``. Unranged
    slots before the last get 0.
    """
    if not slots:
        return []
    remaining = PERCENT_TOTAL
    allocations: list[int] = []
    for index, slot in enumerate(slots[:-1]):
        if slot.allocation_range is None:
            allocations.append(0)
            continue
        low, high = slot.allocation_range
        slots_after = len(slots) - index - 1
        clamped_high = min(high, remaining - slots_after * MIN_LEG_SHARE)
        clamped_low = min(low, clamped_high)
        value = clamped_low if clamped_low == clamped_high else rng.randint(clamped_low, clamped_high)
        allocations.append(value)
        remaining -= value
    allocations.append(remaining)
    return allocations


class AllocationPlanner:
    def __init__(
        self,
        *,
        registry: StrategyRegistry | None = None,
        configs: Mapping[int, ChainStrategyConfig] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry or StrategyRegistry.default()
        self.configs = CHAIN_STRATEGY_CONFIGS if configs is None else configs
        self.rng = rng or random.Random()

    def supported_chains(self) -> list[int]:
        return sorted(int(chain_id) for chain_id in self.configs)

    def plan(self, chain_id: int, risk_tier: RiskTier | str) -> list[AllocationLeg]:
        chain_config = self.configs.get(int(chain_id))
        if chain_config is None:
            raise UnsupportedChain(chain_id)
        tier = RiskTier(risk_tier)
        slots = list(chain_config.get(tier, ()))
        if not slots:
            return []

        allocations = draw_allocations(slots, self.rng)
        legs: list[AllocationLeg] = []
        dropped = 0
        for slot, percent in zip(slots, allocations, strict=True):
            descriptor = self.registry.find(slot.strategy_id, chain_id)
            if descriptor is None:
                dropped += percent
                continue
            legs.append(AllocationLeg(descriptor=descriptor, allocation_percent=percent))

        if len(legs) != len(slots):
            logger.warning(
                "Some configured strategies were not found in the registry",
                extra={
                    "extra": {
                        "chain_id": int(chain_id),
                        "risk_tier": tier.value,
                        "configured": len(slots),
                        "matched": len(legs),
                    }
                },
            )
        if legs and dropped:
            last = legs[-1]
            legs[-1] = AllocationLeg(
                descriptor=last.descriptor,
                allocation_percent=last.allocation_percent + dropped,
            )
        return legs

    def plan_all(self, chain_id: int) -> dict[RiskTier, list[AllocationLeg]]:
        return {tier: self.plan(chain_id, tier) for tier in RISK_TIERS}
