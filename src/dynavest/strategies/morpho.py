from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from dynavest.domain.errors import MissingAsset
from dynavest.domain.models import Call, Position, StrategyDescriptor
from dynavest.ports import ChainClient
from dynavest.strategies.abi import MORPHO_ID_TO_MARKET_PARAMS, MORPHO_SUPPLY_FN, MORPHO_WITHDRAW_FN
from dynavest.strategies.base import approve_call, linear_apy_profit

# Only the WETH collateral / USDC loan market is supported.
WETH_USDC_MARKET_ID = bytes.fromhex(
    "8793cf302b8ffd655ab97bd1c695dbd967807e8367a65cb2f4edaf1380ba1bda"
)
MORPHO_APY = Decimal("0.045")


@dataclass(frozen=True)
class MorphoSupply:
    descriptor: StrategyDescriptor
    chain: ChainClient
    market_id: bytes = WETH_USDC_MARKET_ID
    now_fn: Callable[[], datetime] | None = None

    @property
    def morpho(self) -> str:
        return self.descriptor.contract("morpho")

    async def invest_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id, "doesn't support native token yet")
        market_params = await self._market_params()
        return [
            approve_call(asset, self.morpho, amount),
            Call(
                to=self.morpho,
                data=MORPHO_SUPPLY_FN.encode_call(market_params, int(amount), 0, user, b""),
            ),
        ]

    async def redeem_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        del asset
        market_params = await self._market_params()
        return [
            Call(
                to=self.morpho,
                data=MORPHO_WITHDRAW_FN.encode_call(market_params, int(amount), 0, user, user),
            ),
        ]

    async def profit_of(self, user: str, position: Position) -> Decimal:
        del user
        return linear_apy_profit(position, MORPHO_APY, self.now_fn)

    async def _market_params(self) -> tuple[str, str, str, str, int]:
        loan_token, collateral_token, oracle, irm, lltv = await self.chain.call(
            self.morpho, MORPHO_ID_TO_MARKET_PARAMS, [self.market_id]
        )
        return (loan_token, collateral_token, oracle, irm, int(lltv))
