from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from dynavest.domain.errors import MissingAsset, UnsupportedToken
from dynavest.domain.models import Call, Position, StrategyDescriptor, Token
from dynavest.ports import ChainClient
from dynavest.strategies.abi import ERC20_BALANCE_OF, UNISWAP_EXACT_INPUT_SINGLE
from dynavest.strategies.base import approve_call, linear_apy_profit

POOL_FEE_TIER = 500
LST_APY = Decimal("0.045")


@dataclass(frozen=True)
class UniswapV3SwapLST:
    """Swap the deposit asset into a liquid-staking token through Uniswap V3.

    Ethereum-family chains pair ETH with wstETH, BSC pairs BNB with wbETH. Only
    ERC20 deposit assets are handled; native deposits raise ``MissingAsset``.
    """

    descriptor: StrategyDescriptor
    chain: ChainClient
    native_token: Token
    lst_token: Token
    now_fn: Callable[[], datetime] | None = None

    @property
    def swap_router(self) -> str:
        return self.descriptor.contract("swapRouter")

    @property
    def lst_address(self) -> str:
        address = self.lst_token.address_on(self.descriptor.chain_id)
        if address is None:
            raise UnsupportedToken(self.lst_token.name, self.descriptor.chain_id)
        return address

    async def invest_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id, "Native token doesn't support yet.")
        return [
            approve_call(asset, self.swap_router, amount),
            self._swap(token_in=asset, token_out=self.lst_address, user=user, amount_in=amount),
        ]

    async def redeem_calls(self, amount: int, user: str, asset: str | None = None) -> list[Call]:
        # Swaps the whole LST balance back into the deposit asset.
        del amount
        if not asset:
            raise MissingAsset(self.descriptor.strategy_id, "Native token doesn't support yet.")
        token_in = self.lst_address
        (amount_in,) = await self.chain.call(token_in, ERC20_BALANCE_OF, [user])
        return [
            approve_call(token_in, self.swap_router, int(amount_in)),
            self._swap(token_in=token_in, token_out=asset, user=user, amount_in=int(amount_in)),
        ]

    async def profit_of(self, user: str, position: Position) -> Decimal:
        del user
        return linear_apy_profit(position, LST_APY, self.now_fn)

    def _swap(self, *, token_in: str, token_out: str, user: str, amount_in: int) -> Call:
        params = (token_in, token_out, POOL_FEE_TIER, user, int(amount_in), 0, 0)
        return Call(to=self.swap_router, data=UNISWAP_EXACT_INPUT_SINGLE.encode_call(params))
