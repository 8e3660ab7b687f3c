from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from dynavest.domain.errors import MissingAsset
from dynavest.domain.models import Call, Position, StrategyDescriptor
from dynavest.ports import ChainClient
from dynavest.strategies.abi import ERC4626_DEPOSIT, ERC4626_WITHDRAW
from dynavest.strategies.base import approve_call, linear_apy_profit

FLUID_APY = Decimal("0.0623")


@dataclass(frozen=True)
class FluidSupply:
    """Deposit into the fUSDC ERC4626 lending vault. USDC only."""

    descriptor: StrategyDescriptor
    chain: ChainClient
    now_fn: Callable[[], datetime] | None = None

    @property
    def vault(self) -> str:
        return self.descriptor.contract("fUSDC")

    async def invest_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id)
        return [
            approve_call(asset, self.vault, amount),
            Call(to=self.vault, data=ERC4626_DEPOSIT.encode_call(int(amount), user)),
        ]

    async def redeem_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id)
        return [
            Call(to=self.vault, data=ERC4626_WITHDRAW.encode_call(int(amount), user, user)),
        ]

    async def profit_of(self, user: str, position: Position) -> Decimal:
        del user
        return linear_apy_profit(position, FLUID_APY, self.now_fn)
