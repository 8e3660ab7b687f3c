from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from dynavest.domain.errors import MissingAsset
from dynavest.domain.models import Call, Position, StrategyDescriptor, to_human_amount
from dynavest.domain.tokens import get_token_by_name
from dynavest.ports import ChainClient
from dynavest.strategies.abi import (
    AAVE_GET_RESERVE_ATOKEN,
    AAVE_SUPPLY,
    AAVE_WITHDRAW,
    ERC20_BALANCE_OF,
)
from dynavest.strategies.base import approve_call

logger = logging.getLogger(__name__)

AAVE_REFERRAL_CODE = 0


@dataclass(frozen=True)
class AaveV3Supply:
    descriptor: StrategyDescriptor
    chain: ChainClient

    @property
    def pool(self) -> str:
        return self.descriptor.contract("pool")

    async def invest_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id)
        return [
            approve_call(asset, self.pool, amount),
            Call(
                to=self.pool,
                data=AAVE_SUPPLY.encode_call(asset, int(amount), user, AAVE_REFERRAL_CODE),
            ),
        ]

    async def redeem_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        # Withdraws the full aToken balance.
        del amount
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id)
        balance = await self._receipt_balance(user, asset)
        logger.debug(
            "Resolved aToken balance for withdrawal",
            extra={"extra": {"asset": asset, "balance": balance}},
        )
        return [
            Call(to=self.pool, data=AAVE_WITHDRAW.encode_call(asset, balance, user)),
        ]

    async def profit_of(self, user: str, position: Position) -> Decimal:
        token = get_token_by_name(position.token_name)
        underlying = token.address_on(self.descriptor.chain_id)
        if underlying is None:
            raise MissingAsset(self.descriptor.strategy_id, "native positions are not supported")
        balance = await self._receipt_balance(user, underlying)
        return to_human_amount(balance, token.decimals) - position.amount

    async def _receipt_balance(self, user: str, underlying: str) -> int:
        (a_token,) = await self.chain.call(self.pool, AAVE_GET_RESERVE_ATOKEN, [underlying])
        (balance,) = await self.chain.call(a_token, ERC20_BALANCE_OF, [user])
        return int(balance)
