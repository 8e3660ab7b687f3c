from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from dynavest.domain.models import Call, Receipt
from dynavest.strategies.abi import ContractFunction


@dataclass(frozen=True)
class SendOptions:
    show_wallet_ui: bool = False


class Wallet(Protocol):
    """Signing wallet able to submit several calls as one atomic batch."""

    async def switch_chain(self, chain_id: int) -> None: ...

    async def send_batch(self, calls: Sequence[Call], options: SendOptions) -> str: ...


class ChainClient(Protocol):
    async def wait_for_receipt(self, handle: str) -> Receipt: ...

    async def call(
        self, contract: str, function: ContractFunction, args: Sequence[Any]
    ) -> tuple[Any, ...]: ...
