from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from enum import StrEnum
from types import MappingProxyType
from typing import Literal

from eth_utils import is_address, to_checksum_address

from dynavest.domain.errors import InvalidRequest, UnsupportedToken

PERCENT_TOTAL = 100


def normalize_address(value: str) -> str:
    candidate = str(value).strip()
    if not is_address(candidate):
        raise ValueError(f"invalid address: {value!r}")
    return to_checksum_address(candidate)


def to_human_amount(amount: int, decimals: int) -> Decimal:
    """Convert a smallest-unit integer into a decimal amount of whole tokens."""
    return Decimal(int(amount)).scaleb(-int(decimals))


def to_base_units(amount: Decimal | str | int, decimals: int) -> int:
    parsed = Decimal(str(amount))
    if parsed < 0:
        raise InvalidRequest("amount must be >= 0")
    return int(parsed.scaleb(int(decimals)).to_integral_value(rounding=ROUND_DOWN))


class RiskTier(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


RISK_TIERS: tuple[RiskTier, ...] = (RiskTier.LOW, RiskTier.MEDIUM, RiskTier.HIGH)


class PositionStatus(StrEnum):
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: object) -> PositionStatus:
        # The ledger backend historically stores the flag as "true"/"false".
        if isinstance(value, bool):
            return cls.OPEN if value else cls.CLOSED
        normalized = str(value).strip().lower()
        if normalized in {"open", "true", "1"}:
            return cls.OPEN
        if normalized in {"closed", "false", "0"}:
            return cls.CLOSED
        raise ValueError(f"unknown position status: {value!r}")


@dataclass(frozen=True)
class Token:
    name: str
    decimals: int
    addresses: Mapping[int, str] = field(default_factory=dict)
    is_native: bool = False

    def __post_init__(self) -> None:
        normalized = {int(chain): normalize_address(addr) for chain, addr in dict(self.addresses).items()}
        object.__setattr__(self, "addresses", MappingProxyType(normalized))

    def address_on(self, chain_id: int) -> str | None:
        address = self.addresses.get(int(chain_id))
        if address is None and not self.is_native:
            raise UnsupportedToken(self.name, chain_id)
        return address

    def is_supported_on(self, chain_id: int) -> bool:
        return self.is_native or int(chain_id) in self.addresses


@dataclass(frozen=True)
class StrategyDescriptor:
    strategy_id: str
    chain_id: int
    protocol: str
    contracts: Mapping[str, str]
    tokens: tuple[Token, ...] = ()
    risk: RiskTier = RiskTier.MEDIUM
    apy: Decimal = Decimal("0")
    title: str = ""

    def __post_init__(self) -> None:
        normalized = {role: normalize_address(addr) for role, addr in dict(self.contracts).items()}
        object.__setattr__(self, "contracts", MappingProxyType(normalized))
        object.__setattr__(self, "tokens", tuple(self.tokens))

    @property
    def key(self) -> tuple[str, int]:
        return (self.strategy_id, self.chain_id)

    def contract(self, role: str) -> str:
        try:
            return self.contracts[role]
        except KeyError as exc:
            raise KeyError(
                f"{self.strategy_id} has no '{role}' contract on chain {self.chain_id}"
            ) from exc


@dataclass(frozen=True)
class AllocationLeg:
    descriptor: StrategyDescriptor
    allocation_percent: int

    def __post_init__(self) -> None:
        if not 0 <= self.allocation_percent <= PERCENT_TOTAL:
            raise InvalidRequest(
                f"allocation_percent must be within [0, {PERCENT_TOTAL}], got {self.allocation_percent}"
            )

    @property
    def strategy_id(self) -> str:
        return self.descriptor.strategy_id


@dataclass(frozen=True)
class Call:
    to: str
    data: bytes | None = None
    value: int | None = None

    def as_wallet_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"to": self.to}
        if self.data is not None:
            payload["data"] = "0x" + self.data.hex()
        if self.value is not None:
            payload["value"] = int(self.value)
        return payload


@dataclass(frozen=True)
class ExecutionRequest:
    user: str
    chain_id: int
    gross_amount: int
    token: Token
    legs: tuple[AllocationLeg, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "user", normalize_address(self.user))
        object.__setattr__(self, "legs", tuple(self.legs))
        if self.gross_amount <= 0:
            raise InvalidRequest("gross_amount must be > 0")
        if not self.legs:
            raise InvalidRequest("execution request needs at least one leg")
        total = sum(leg.allocation_percent for leg in self.legs)
        if total != PERCENT_TOTAL:
            raise InvalidRequest(f"leg allocations must sum to {PERCENT_TOTAL}, got {total}")
        if not self.token.is_supported_on(self.chain_id):
            raise UnsupportedToken(self.token.name, self.chain_id)

    @property
    def asset(self) -> str | None:
        return self.token.address_on(self.chain_id)


@dataclass(frozen=True)
class FeeSplit:
    gross_amount: int
    fee: int
    net_amount: int


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: Literal["success", "reverted"]


@dataclass(frozen=True)
class Position:
    position_id: str
    user: str
    chain_id: int
    strategy_id: str
    token_name: str
    amount: Decimal
    status: PositionStatus
    created_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN


@dataclass(frozen=True)
class TransactionRecord:
    user: str
    chain_id: int
    strategy_id: str
    tx_hash: str
    amount: Decimal
    token_name: str
