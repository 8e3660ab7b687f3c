from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from dynavest.domain.errors import EmptyCallList, ExecutionReverted
from dynavest.domain.models import Call
from dynavest.logging_context import with_logging_context
from dynavest.ports import ChainClient, SendOptions, Wallet

logger = logging.getLogger(__name__)


class TransactionExecutor:
    """Submit a call list as one batched transaction and wait for finality.

    The wallet's active chain is global state, so executions through one
    executor are serialized. No retry happens here.
    """

    def __init__(
        self,
        wallet: Wallet,
        chain_client: ChainClient,
        *,
        options: SendOptions | None = None,
    ) -> None:
        self.wallet = wallet
        self.chain_client = chain_client
        self.options = options or SendOptions(show_wallet_ui=False)
        self._lock = asyncio.Lock()

    async def execute(self, calls: Sequence[Call], chain_id: int) -> str:
        if not calls:
            raise EmptyCallList()
        async with self._lock:
            await self.wallet.switch_chain(chain_id)
            handle = await self.wallet.send_batch(list(calls), self.options)
            logger.info(
                "Batched transaction submitted",
                extra={"extra": {"chain_id": chain_id, "handle": handle, "calls": len(calls)}},
            )
            receipt = await self.chain_client.wait_for_receipt(handle)

        with with_logging_context(tx_hash=receipt.tx_hash):
            if receipt.status != "success":
                logger.error(
                    "Batched transaction reverted",
                    extra={"extra": {"chain_id": chain_id, "handle": handle}},
                )
                raise ExecutionReverted(receipt.tx_hash)
            logger.info("Batched transaction finalized", extra={"extra": {"chain_id": chain_id}})
        return receipt.tx_hash
