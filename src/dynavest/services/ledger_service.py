from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal, Protocol

from dynavest.adapters.ledger_http import LedgerErrorKind, LedgerRequestError
from dynavest.domain.errors import LedgerSyncFailure
from dynavest.domain.models import (
    AllocationLeg,
    Position,
    PositionStatus,
    Token,
    TransactionRecord,
    to_human_amount,
)
from dynavest.logging_context import with_logging_context

logger = logging.getLogger(__name__)

LegAction = Literal["created", "accumulated", "failed"]


class LedgerClient(Protocol):
    async def list_positions(self, address: str) -> list[Position]: ...

    async def create_position(
        self,
        *,
        address: str,
        amount: Decimal,
        token_name: str,
        chain_id: int,
        strategy_id: str,
    ) -> object: ...

    async def update_position(self, position_id: str, **fields: object) -> object: ...

    async def add_transaction(self, record: TransactionRecord) -> object: ...


@dataclass(frozen=True)
class LegSyncOutcome:
    strategy_id: str
    amount: Decimal
    action: LegAction


@dataclass
class LedgerSyncReport:
    outcomes: list[LegSyncOutcome] = field(default_factory=list)
    record_failures: list[str] = field(default_factory=list)
    warnings: list[LedgerSyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def find_open_position(
    positions: Sequence[Position], strategy_id: str, chain_id: int
) -> Position | None:
    for position in positions:
        if (
            position.strategy_id == strategy_id
            and position.chain_id == int(chain_id)
            and position.is_open
        ):
            return position
    return None


class PositionLedgerSync:
    """Reconcile the remote position ledger after a finalized execution.

    Every write is best-effort: the transaction is already on chain, so a
    failing leg is logged and reported instead of raised.
    """

    def __init__(self, ledger_client: LedgerClient) -> None:
        self.ledger_client = ledger_client

    async def sync(
        self,
        tx_hash: str,
        user: str,
        chain_id: int,
        token: Token,
        legs: Sequence[AllocationLeg],
        leg_amounts: Sequence[int],
    ) -> LedgerSyncReport:
        report = LedgerSyncReport()
        with with_logging_context(user=user, chain_id=chain_id, tx_hash=tx_hash):
            # Sequential on purpose: a later leg must see the earlier leg's write.
            for leg, leg_amount in zip(legs, leg_amounts, strict=True):
                if leg_amount == 0:
                    continue
                amount = to_human_amount(leg_amount, token.decimals)
                with with_logging_context(strategy_id=leg.strategy_id):
                    action = await self._upsert_position(report, user, chain_id, token, leg, amount)
                    report.outcomes.append(
                        LegSyncOutcome(strategy_id=leg.strategy_id, amount=amount, action=action)
                    )
                    await self._append_record(
                        report,
                        TransactionRecord(
                            user=user,
                            chain_id=int(chain_id),
                            strategy_id=leg.strategy_id,
                            tx_hash=tx_hash,
                            amount=amount,
                            token_name=token.name,
                        ),
                    )
        if report.warnings:
            logger.warning(
                "Ledger sync finished with failures",
                extra={"extra": {"tx_hash": tx_hash, "failures": len(report.warnings)}},
            )
        return report

    async def close_position(self, position_id: str) -> None:
        await self.ledger_client.update_position(position_id, status=PositionStatus.CLOSED.value)
        logger.info("Position closed", extra={"extra": {"position_id": position_id}})

    async def record_transaction(self, report: LedgerSyncReport, record: TransactionRecord) -> None:
        await self._append_record(report, record)

    async def _load_positions(self, user: str) -> list[Position]:
        try:
            return await self.ledger_client.list_positions(user)
        except LedgerRequestError as exc:
            # New users have no ledger entry yet and the backend answers 404.
            if exc.kind is not LedgerErrorKind.NOT_FOUND:
                raise
            logger.info("No ledger entry for user; treating as no positions")
            return []

    async def _upsert_position(
        self,
        report: LedgerSyncReport,
        user: str,
        chain_id: int,
        token: Token,
        leg: AllocationLeg,
        amount: Decimal,
    ) -> LegAction:
        try:
            positions = await self._load_positions(user)
        except Exception as exc:  # noqa: BLE001
            # Without the current positions a create could duplicate an open one.
            report.warnings.append(LedgerSyncFailure(leg.strategy_id, "positions", exc))
            logger.warning(
                "Position lookup failed; leg not reconciled",
                extra={"extra": {"error_type": type(exc).__name__, "error": str(exc)}},
            )
            return "failed"
        try:
            existing = find_open_position(positions, leg.strategy_id, chain_id)
            if existing is not None:
                await self.ledger_client.update_position(
                    existing.position_id, amount=existing.amount + amount
                )
                logger.info(
                    "Position accumulated",
                    extra={
                        "extra": {
                            "position_id": existing.position_id,
                            "previous_amount": str(existing.amount),
                            "added_amount": str(amount),
                        }
                    },
                )
                return "accumulated"
            await self.ledger_client.create_position(
                address=user,
                amount=amount,
                token_name=token.name,
                chain_id=int(chain_id),
                strategy_id=leg.strategy_id,
            )
            logger.info("Position created", extra={"extra": {"amount": str(amount)}})
            return "created"
        except Exception as exc:  # noqa: BLE001
            failure = LedgerSyncFailure(leg.strategy_id, "position", exc)
            report.warnings.append(failure)
            logger.warning(
                "Position update failed",
                extra={"extra": {"error_type": type(exc).__name__, "error": str(exc)}},
            )
            return "failed"

    async def _append_record(self, report: LedgerSyncReport, record: TransactionRecord) -> None:
        try:
            await self.ledger_client.add_transaction(record)
        except Exception as exc:  # noqa: BLE001
            failure = LedgerSyncFailure(record.strategy_id, "transaction", exc)
            report.warnings.append(failure)
            report.record_failures.append(record.strategy_id)
            logger.warning(
                "Transaction record append failed",
                extra={"extra": {"error_type": type(exc).__name__, "error": str(exc)}},
            )
