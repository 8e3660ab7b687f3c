from __future__ import annotations

import random
from typing import IO

from dynavest.adapters.chain_rpc import JsonRpcChainClient
from dynavest.adapters.ledger_http import LedgerHttpClient, LedgerReliabilityConfig
from dynavest.config import Settings
from dynavest.logging_utils import setup_logging
from dynavest.ports import ChainClient, Wallet
from dynavest.services.allocation_service import AllocationPlanner
from dynavest.services.execution_service import TransactionExecutor
from dynavest.services.fee_service import FeePolicy
from dynavest.services.ledger_service import LedgerClient, PositionLedgerSync
from dynavest.services.portfolio_service import PortfolioService
from dynavest.strategies.registry import StrategyRegistry


def configure_logging(settings: Settings, *, stream: IO[str] | None = None) -> None:
    setup_logging(settings.log_level, stream=stream)


def build_fee_policy(settings: Settings) -> FeePolicy:
    return FeePolicy(receiver=settings.fee_receiver, fee_per_mille=settings.fee_per_mille)


def build_ledger_client(settings: Settings) -> LedgerHttpClient:
    return LedgerHttpClient(
        base_url=settings.ledger_base_url,
        api_token=settings.ledger_api_token.get_secret_value()
        if settings.ledger_api_token
        else None,
        reliability=LedgerReliabilityConfig(
            timeout_seconds=settings.ledger_timeout_seconds,
            max_attempts=settings.ledger_max_attempts,
            base_delay_seconds=settings.ledger_base_delay_seconds,
            max_delay_seconds=settings.ledger_max_delay_seconds,
        ),
    )


def build_chain_client(settings: Settings, chain_id: int) -> JsonRpcChainClient:
    return JsonRpcChainClient(
        rpc_url=settings.rpc_url_for(chain_id),
        receipt_timeout_seconds=settings.receipt_timeout_seconds,
        poll_interval_seconds=settings.receipt_poll_interval_seconds,
    )


def build_portfolio_service(
    settings: Settings,
    *,
    wallet: Wallet,
    chain_id: int,
    chain_client: ChainClient | None = None,
    ledger_client: LedgerClient | None = None,
    registry: StrategyRegistry | None = None,
    rng: random.Random | None = None,
) -> PortfolioService:
    """Wire a service for one chain; the RPC client is chain specific."""
    registry = registry or StrategyRegistry.default()
    chain = chain_client or build_chain_client(settings, chain_id)
    return PortfolioService(
        registry=registry,
        executor=TransactionExecutor(wallet, chain),
        ledger_sync=PositionLedgerSync(ledger_client or build_ledger_client(settings)),
        fee_policy=build_fee_policy(settings),
        chain_client=chain,
        planner=AllocationPlanner(registry=registry, rng=rng),
    )
