from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from dynavest.domain.chains import ChainId
from dynavest.domain.errors import EmptyCallList, MissingAsset
from dynavest.domain.models import AllocationLeg, Call, StrategyDescriptor
from dynavest.services.composer_service import (
    compose_invest_calls,
    compose_redeem_calls,
    leg_amounts,
)

USER = "0x1111111111111111111111111111111111111111"
ASSET = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def _descriptor(strategy_id: str, contract: str) -> StrategyDescriptor:
    return StrategyDescriptor(
        strategy_id=strategy_id,
        chain_id=ChainId.BASE,
        protocol=strategy_id,
        contracts={"target": contract},
    )


@dataclass
class RecordingStrategy:
    descriptor: StrategyDescriptor
    calls_per_leg: int = 2
    fail: bool = False
    seen: list[tuple[str, int, str, str | None]] = field(default_factory=list)

    async def invest_calls(self, amount, user, asset=None):
        return self._calls("invest", amount, user, asset)

    async def redeem_calls(self, amount, user, asset=None):
        return self._calls("redeem", amount, user, asset)

    async def profit_of(self, user, position):
        raise NotImplementedError

    def _calls(self, action, amount, user, asset):
        self.seen.append((action, amount, user, asset))
        if self.fail:
            raise MissingAsset(self.descriptor.strategy_id)
        target = self.descriptor.contract("target")
        return [
            Call(to=target, data=f"{action}:{amount}:{i}".encode()) for i in range(self.calls_per_leg)
        ]


def _setup(**overrides):
    a = RecordingStrategy(_descriptor("A", "0x00000000000000000000000000000000000000aa"))
    b = RecordingStrategy(_descriptor("B", "0x00000000000000000000000000000000000000bb"), **overrides)
    handles = {"A": a, "B": b}
    legs = [
        AllocationLeg(descriptor=a.descriptor, allocation_percent=30),
        AllocationLeg(descriptor=b.descriptor, allocation_percent=70),
    ]
    return handles, legs


def test_calls_follow_leg_order_with_integer_split() -> None:
    handles, legs = _setup()

    calls = asyncio.run(
        compose_invest_calls(legs, 1000, USER, ASSET, lambda leg: handles[leg.strategy_id])
    )

    assert [call.data for call in calls] == [
        b"invest:300:0",
        b"invest:300:1",
        b"invest:700:0",
        b"invest:700:1",
    ]
    assert handles["A"].seen == [("invest", 300, USER, ASSET)]
    assert handles["B"].seen == [("invest", 700, USER, ASSET)]


def test_redeem_composition_uses_same_split() -> None:
    handles, legs = _setup()

    calls = asyncio.run(
        compose_redeem_calls(legs, 999, USER, ASSET, lambda leg: handles[leg.strategy_id])
    )

    assert [call.data for call in calls][0] == b"redeem:299:0"
    assert handles["B"].seen == [("redeem", 699, USER, ASSET)]


def test_leg_failure_aborts_without_partial_list() -> None:
    handles, legs = _setup(fail=True)

    with pytest.raises(MissingAsset):
        asyncio.run(
            compose_invest_calls(legs, 1000, USER, ASSET, lambda leg: handles[leg.strategy_id])
        )


def test_no_calls_raises_empty_call_list() -> None:
    handles, legs = _setup(calls_per_leg=0)
    handles["A"].calls_per_leg = 0

    with pytest.raises(EmptyCallList, match="No calls found"):
        asyncio.run(
            compose_invest_calls(legs, 1000, USER, ASSET, lambda leg: handles[leg.strategy_id])
        )


def test_leg_amounts_floor_each_leg() -> None:
    _, legs = _setup()

    assert leg_amounts(legs, 995) == [298, 696]
    assert leg_amounts(legs, 0) == [0, 0]


def test_zero_amount_legs_emit_no_calls() -> None:
    handles, legs = _setup()
    legs = [
        AllocationLeg(descriptor=handles["A"].descriptor, allocation_percent=0),
        AllocationLeg(descriptor=handles["B"].descriptor, allocation_percent=100),
    ]

    calls = asyncio.run(
        compose_invest_calls(legs, 1000, USER, ASSET, lambda leg: handles[leg.strategy_id])
    )

    assert [call.data for call in calls] == [b"invest:1000:0", b"invest:1000:1"]
    assert handles["A"].seen == []

    with pytest.raises(EmptyCallList):
        asyncio.run(
            compose_invest_calls(legs[:1], 1000, USER, ASSET, lambda leg: handles[leg.strategy_id])
        )
