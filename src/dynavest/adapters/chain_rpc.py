from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from time import monotonic
from typing import Any

import httpx

from dynavest.domain.errors import DynavestError, ReceiptTimeout
from dynavest.domain.models import Receipt
from dynavest.strategies.abi import ContractFunction

logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT_SECONDS = 180.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0


class ChainCallError(DynavestError):
    """JSON-RPC error or revert while reading chain state."""

    def __init__(self, message: str, *, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class JsonRpcChainClient:
    """Read-only EVM access over JSON-RPC: ``eth_call`` and receipt polling."""

    def __init__(
        self,
        *,
        rpc_url: str,
        receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        client: httpx.AsyncClient | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.rpc_url = rpc_url
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        self._sleep_fn = sleep_fn or asyncio.sleep
        self._clock = clock
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self._client.aclose()

    async def call(
        self, contract: str, function: ContractFunction, args: Sequence[Any]
    ) -> tuple[Any, ...]:
        calldata = function.encode_call(*args)
        result = await self._rpc(
            "eth_call",
            [{"to": contract, "data": "0x" + calldata.hex()}, "latest"],
        )
        if not isinstance(result, str):
            raise ChainCallError(f"{function.signature} returned a non-hex result")
        raw = bytes.fromhex(result.removeprefix("0x"))
        if not raw and function.outputs:
            raise ChainCallError(f"{function.signature} returned no data from {contract}")
        return function.decode_output(raw)

    async def wait_for_receipt(self, handle: str) -> Receipt:
        deadline = self._clock() + self.receipt_timeout_seconds
        while True:
            receipt = await self._rpc("eth_getTransactionReceipt", [handle])
            if isinstance(receipt, dict):
                status = "success" if str(receipt.get("status", "")).lower() == "0x1" else "reverted"
                tx_hash = str(receipt.get("transactionHash") or handle)
                logger.debug(
                    "Receipt received",
                    extra={"extra": {"tx_hash": tx_hash, "status": status}},
                )
                return Receipt(tx_hash=tx_hash, status=status)
            if self._clock() >= deadline:
                raise ReceiptTimeout(handle, self.receipt_timeout_seconds)
            await self._sleep_fn(self.poll_interval_seconds)

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = await self._client.post(self.rpc_url, json=body)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ChainCallError(f"{method} returned a malformed JSON-RPC envelope")
        error = payload.get("error")
        if error:
            if isinstance(error, dict):
                raise ChainCallError(
                    f"{method} failed: {error.get('message', 'unknown error')}",
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise ChainCallError(f"{method} failed: {error}")
        return payload.get("result")
