from __future__ import annotations


class DynavestError(RuntimeError):
    """Base class for engine failures."""


class InvalidRequest(DynavestError, ValueError):
    """Raised when an execution request or amount is malformed."""


class UnsupportedChain(DynavestError):
    def __init__(self, chain_id: int) -> None:
        super().__init__(
            f"Chain {chain_id} is not supported yet. Please add configuration for this chain."
        )
        self.chain_id = chain_id


class StrategyNotFound(DynavestError):
    def __init__(self, strategy_id: str, chain_id: int) -> None:
        super().__init__(f"Strategy {strategy_id} not found on chain {chain_id}")
        self.strategy_id = strategy_id
        self.chain_id = chain_id


class UnsupportedToken(DynavestError):
    def __init__(self, token_name: str, chain_id: int) -> None:
        super().__init__(f"Token {token_name} not supported on chain {chain_id}")
        self.token_name = token_name
        self.chain_id = chain_id


class MissingAsset(DynavestError):
    """A strategy needs an explicit ERC20 asset and none was given."""

    def __init__(self, strategy_id: str, detail: str = "asset is required") -> None:
        super().__init__(f"{strategy_id}: {detail}")
        self.strategy_id = strategy_id


class EmptyCallList(DynavestError):
    def __init__(self, message: str = "No calls found") -> None:
        super().__init__(message)


class ExecutionReverted(DynavestError):
    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Strategy execution reverted with txHash: {tx_hash}")
        self.tx_hash = tx_hash


class ReceiptTimeout(DynavestError):
    def __init__(self, handle: str, timeout_seconds: float) -> None:
        super().__init__(f"Timed out after {timeout_seconds}s waiting for receipt of {handle}")
        self.handle = handle
        self.timeout_seconds = timeout_seconds


class LedgerSyncFailure(DynavestError):
    """Non-fatal ledger reconciliation failure for one leg.

    Instances are collected and reported; the engine never raises them because
    the on-chain transaction they follow is already final.
    """

    def __init__(self, strategy_id: str, stage: str, cause: BaseException) -> None:
        super().__init__(f"ledger {stage} failed for {strategy_id}: {cause}")
        self.strategy_id = strategy_id
        self.stage = stage
        self.cause = cause
