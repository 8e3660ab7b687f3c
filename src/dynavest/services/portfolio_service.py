from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from dynavest.domain.errors import LedgerSyncFailure
from dynavest.domain.models import (
    PERCENT_TOTAL,
    AllocationLeg,
    Call,
    ExecutionRequest,
    FeeSplit,
    Position,
    RiskTier,
    Token,
    TransactionRecord,
    to_human_amount,
)
from dynavest.logging_context import with_execution_context
from dynavest.ports import ChainClient
from dynavest.services.allocation_service import AllocationPlanner
from dynavest.services.composer_service import (
    StrategyResolver,
    compose_invest_calls,
    compose_redeem_calls,
    leg_amounts,
)
from dynavest.services.execution_service import TransactionExecutor
from dynavest.services.fee_service import FeePolicy
from dynavest.services.ledger_service import LedgerSyncReport, PositionLedgerSync
from dynavest.strategies.base import StrategyHandle
from dynavest.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    tx_hash: str
    calls: tuple[Call, ...]
    fee: FeeSplit
    legs: tuple[AllocationLeg, ...]
    ledger: LedgerSyncReport


class PortfolioService:
    """User-level invest / multi-invest / redeem flows.

    Order is fixed: fee split, compose on the net amount, append the fee
    call, execute, then reconcile the ledger. Nothing after a failed
    execution touches the ledger.
    """

    def __init__(
        self,
        *,
        registry: StrategyRegistry,
        executor: TransactionExecutor,
        ledger_sync: PositionLedgerSync,
        fee_policy: FeePolicy,
        chain_client: ChainClient,
        planner: AllocationPlanner | None = None,
    ) -> None:
        self.registry = registry
        self.executor = executor
        self.ledger_sync = ledger_sync
        self.fee_policy = fee_policy
        self.chain_client = chain_client
        self.planner = planner or AllocationPlanner(registry=registry)

    def strategy_for(self, chain_id: int) -> StrategyResolver:
        def _resolve(leg: AllocationLeg) -> StrategyHandle:
            return self.registry.build(leg.strategy_id, chain_id, self.chain_client)

        return _resolve

    def single_leg(self, strategy_id: str, chain_id: int) -> AllocationLeg:
        descriptor = self.registry.descriptor(strategy_id, chain_id)
        return AllocationLeg(descriptor=descriptor, allocation_percent=PERCENT_TOTAL)

    async def multi_invest(self, request: ExecutionRequest) -> ExecutionResult:
        with with_execution_context(user=request.user, chain_id=request.chain_id):
            fee = self.fee_policy.split(request.gross_amount)
            strategy_calls = await compose_invest_calls(
                request.legs,
                fee.net_amount,
                request.user,
                request.asset,
                self.strategy_for(request.chain_id),
            )
            calls = self.fee_policy.with_fee_call(strategy_calls, request.token, request.chain_id, fee)
            logger.info(
                "Executing portfolio",
                extra={
                    "extra": {
                        "legs": [f"{leg.strategy_id}:{leg.allocation_percent}" for leg in request.legs],
                        "gross_amount": fee.gross_amount,
                        "fee": fee.fee,
                        "calls": len(calls),
                    }
                },
            )
            tx_hash = await self.executor.execute(calls, request.chain_id)
            report = await self.ledger_sync.sync(
                tx_hash,
                request.user,
                request.chain_id,
                request.token,
                request.legs,
                leg_amounts(request.legs, fee.net_amount),
            )
            return ExecutionResult(
                tx_hash=tx_hash,
                calls=tuple(calls),
                fee=fee,
                legs=request.legs,
                ledger=report,
            )

    async def invest(
        self,
        *,
        strategy_id: str,
        chain_id: int,
        user: str,
        token: Token,
        amount: int,
    ) -> ExecutionResult:
        request = ExecutionRequest(
            user=user,
            chain_id=chain_id,
            gross_amount=amount,
            token=token,
            legs=(self.single_leg(strategy_id, chain_id),),
        )
        return await self.multi_invest(request)

    async def plan_and_invest(
        self,
        *,
        chain_id: int,
        risk_tier: RiskTier | str,
        user: str,
        token: Token,
        amount: int,
    ) -> ExecutionResult:
        legs = self.planner.plan(chain_id, risk_tier)
        request = ExecutionRequest(
            user=user, chain_id=chain_id, gross_amount=amount, token=token, legs=tuple(legs)
        )
        return await self.multi_invest(request)

    async def redeem(
        self,
        *,
        strategy_id: str,
        chain_id: int,
        user: str,
        token: Token,
        amount: int,
        position_id: str,
    ) -> ExecutionResult:
        leg = self.single_leg(strategy_id, chain_id)
        request = ExecutionRequest(
            user=user, chain_id=chain_id, gross_amount=amount, token=token, legs=(leg,)
        )
        with with_execution_context(user=request.user, chain_id=chain_id, strategy_id=strategy_id):
            fee = self.fee_policy.split(request.gross_amount)
            strategy_calls = await compose_redeem_calls(
                request.legs,
                fee.net_amount,
                request.user,
                request.asset,
                self.strategy_for(chain_id),
            )
            calls = self.fee_policy.with_fee_call(strategy_calls, token, chain_id, fee)
            tx_hash = await self.executor.execute(calls, chain_id)

            report = LedgerSyncReport()
            try:
                await self.ledger_sync.close_position(position_id)
            except Exception as exc:  # noqa: BLE001
                report.warnings.append(LedgerSyncFailure(strategy_id, "close", exc))
                logger.warning(
                    "Position close failed",
                    extra={"extra": {"position_id": position_id, "error_type": type(exc).__name__}},
                )
            await self.ledger_sync.record_transaction(
                report,
                TransactionRecord(
                    user=request.user,
                    chain_id=int(chain_id),
                    strategy_id=strategy_id,
                    tx_hash=tx_hash,
                    amount=to_human_amount(fee.net_amount, token.decimals),
                    token_name=token.name,
                ),
            )
            return ExecutionResult(
                tx_hash=tx_hash,
                calls=tuple(calls),
                fee=fee,
                legs=request.legs,
                ledger=report,
            )

    async def profit_of(self, position: Position) -> Decimal:
        strategy = self.registry.build(position.strategy_id, position.chain_id, self.chain_client)
        return await strategy.profit_of(position.user, position)
