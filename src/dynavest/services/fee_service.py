from __future__ import annotations

from dataclasses import dataclass

from dynavest.domain.errors import InvalidRequest
from dynavest.domain.models import Call, FeeSplit, Token, normalize_address
from dynavest.strategies.abi import ERC20_TRANSFER

PER_MILLE = 1000
DEFAULT_FEE_PER_MILLE = 5


@dataclass(frozen=True)
class FeePolicy:
    """Platform fee taken from every invest/redeem, expressed in per-mille."""

    receiver: str
    fee_per_mille: int = DEFAULT_FEE_PER_MILLE

    def __post_init__(self) -> None:
        object.__setattr__(self, "receiver", normalize_address(self.receiver))
        if not 0 <= self.fee_per_mille < PER_MILLE:
            raise ValueError("fee_per_mille must be within [0, 1000)")

    def split(self, gross_amount: int) -> FeeSplit:
        if gross_amount <= 0:
            raise InvalidRequest("amount must be > 0")
        fee = gross_amount * self.fee_per_mille // PER_MILLE
        return FeeSplit(gross_amount=gross_amount, fee=fee, net_amount=gross_amount - fee)

    def fee_call(self, token: Token, chain_id: int, fee: int) -> Call:
        if token.is_native:
            return Call(to=self.receiver, value=int(fee))
        asset = token.address_on(chain_id)
        return Call(to=asset, data=ERC20_TRANSFER.encode_call(self.receiver, int(fee)))

    def with_fee_call(
        self, strategy_calls: list[Call], token: Token, chain_id: int, split: FeeSplit
    ) -> list[Call]:
        """Strategy calls first, fee transfer strictly last."""
        return [*strategy_calls, self.fee_call(token, chain_id, split.fee)]
