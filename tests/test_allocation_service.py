from __future__ import annotations

import logging
import random

import pytest

from dynavest.domain.chains import ChainId
from dynavest.domain.errors import UnsupportedChain
from dynavest.domain.models import RISK_TIERS, RiskTier
from dynavest.services.allocation_service import (
    CHAIN_STRATEGY_CONFIGS,
    AllocationPlanner,
    StrategySlot,
    draw_allocations,
)
from dynavest.strategies.aave import AaveV3Supply
from dynavest.strategies.registry import (
    AAVE_V3_SUPPLY,
    MORPHO_SUPPLY,
    UNISWAP_V3_SWAP_LST,
    StrategyRegistry,
)


class NoDrawRandom(random.Random):
    def randint(self, a: int, b: int) -> int:
        raise AssertionError("randint must not be called")


def test_every_configuration_sums_to_100_over_1000_draws() -> None:
    planner = AllocationPlanner(rng=random.Random(7))

    for chain_id, tiers in CHAIN_STRATEGY_CONFIGS.items():
        for tier in tiers:
            for _ in range(1000):
                legs = planner.plan(chain_id, tier)
                assert legs
                assert all(leg.allocation_percent >= 0 for leg in legs)
                assert sum(leg.allocation_percent for leg in legs) == 100


def test_ranged_legs_stay_within_configured_bounds() -> None:
    planner = AllocationPlanner(rng=random.Random(11))

    for _ in range(500):
        aave, morpho, lst = planner.plan(ChainId.BASE, RiskTier.MEDIUM)
        assert (aave.strategy_id, morpho.strategy_id, lst.strategy_id) == (
            AAVE_V3_SUPPLY,
            MORPHO_SUPPLY,
            UNISWAP_V3_SWAP_LST,
        )
        assert 15 <= aave.allocation_percent <= 30
        assert 15 <= morpho.allocation_percent <= 30
        assert lst.allocation_percent >= 40


def test_arbitrum_low_aave_leg_between_30_and_40() -> None:
    planner = AllocationPlanner(rng=random.Random(3))

    seen = set()
    for _ in range(300):
        aave, lst = planner.plan(ChainId.ARBITRUM, "low")
        seen.add(aave.allocation_percent)
        assert 30 <= aave.allocation_percent <= 40
        assert lst.allocation_percent == 100 - aave.allocation_percent
    assert len(seen) > 1


def test_single_configured_strategy_gets_100_without_drawing() -> None:
    planner = AllocationPlanner(
        configs={ChainId.BASE: {RiskTier.LOW: (StrategySlot(AAVE_V3_SUPPLY, (30, 50)),)}},
        rng=NoDrawRandom(),
    )

    legs = planner.plan(ChainId.BASE, RiskTier.LOW)

    assert [(leg.strategy_id, leg.allocation_percent) for leg in legs] == [(AAVE_V3_SUPPLY, 100)]


def test_tier_without_strategies_returns_empty_list() -> None:
    planner = AllocationPlanner(configs={ChainId.BASE: {RiskTier.LOW: ()}})

    assert planner.plan(ChainId.BASE, RiskTier.LOW) == []
    assert planner.plan(ChainId.BASE, RiskTier.HIGH) == []


def test_unknown_chain_raises_unsupported_chain() -> None:
    planner = AllocationPlanner()

    with pytest.raises(UnsupportedChain, match="Chain 137 is not supported yet"):
        planner.plan(ChainId.POLYGON, RiskTier.LOW)


def test_strategy_missing_from_registry_is_dropped_and_sum_kept(caplog) -> None:
    full = StrategyRegistry.default()
    registry = StrategyRegistry()
    registry.register(full.descriptor(AAVE_V3_SUPPLY, ChainId.BASE), AaveV3Supply)
    planner = AllocationPlanner(registry=registry, rng=random.Random(5))

    with caplog.at_level(logging.WARNING):
        legs = planner.plan(ChainId.BASE, RiskTier.LOW)

    assert [(leg.strategy_id, leg.allocation_percent) for leg in legs] == [(AAVE_V3_SUPPLY, 100)]
    assert "not found in the registry" in caplog.text


def test_unranged_slot_before_last_gets_zero() -> None:
    slots = [
        StrategySlot("A", (10, 20)),
        StrategySlot("B"),
        StrategySlot("C"),
    ]

    first, middle, last = draw_allocations(slots, random.Random(1))

    assert 10 <= first <= 20
    assert middle == 0
    assert last == 100 - first


def test_upper_bound_is_clamped_to_leave_room_for_later_slots() -> None:
    slots = [
        StrategySlot("A", (90, 99)),
        StrategySlot("B", (90, 99)),
        StrategySlot("C"),
    ]
    rng = random.Random(2)

    for _ in range(200):
        allocations = draw_allocations(slots, rng)
        assert sum(allocations) == 100
        assert allocations[0] <= 98
        assert allocations[-1] >= 1


def test_invalid_slot_range_rejected() -> None:
    with pytest.raises(ValueError):
        StrategySlot("A", (60, 40))


def test_plan_all_covers_every_tier() -> None:
    planner = AllocationPlanner(rng=random.Random(9))

    planned = planner.plan_all(ChainId.ARBITRUM)

    assert set(planned) == set(RISK_TIERS)
    assert all(sum(leg.allocation_percent for leg in legs) == 100 for legs in planned.values())
    assert planner.supported_chains() == [ChainId.BASE, ChainId.ARBITRUM]
