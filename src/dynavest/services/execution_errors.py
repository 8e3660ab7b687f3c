from __future__ import annotations

from enum import Enum

import httpx

from dynavest.domain.errors import (
    DynavestError,
    EmptyCallList,
    ExecutionReverted,
    InvalidRequest,
    MissingAsset,
    ReceiptTimeout,
    StrategyNotFound,
    UnsupportedChain,
    UnsupportedToken,
)


class ExecutionErrorCategory(str, Enum):
    # Nothing was submitted; the same request can be retried right away.
    RETRYABLE_NOW = "retryable_now"
    # Caller bug or unsupported configuration; retrying the same request fails again.
    REJECTED = "rejected"
    # Mined and reverted; only a fresh request can be retried.
    TERMINAL = "terminal"
    # Submission may or may not have reached the chain.
    UNCERTAIN = "uncertain"
    FATAL = "fatal"


def classify_execution_error(exc: Exception, *, submitted: bool = False) -> ExecutionErrorCategory:
    if isinstance(exc, ExecutionReverted):
        return ExecutionErrorCategory.TERMINAL
    if isinstance(exc, ReceiptTimeout):
        return ExecutionErrorCategory.UNCERTAIN
    if isinstance(
        exc,
        UnsupportedChain
        | UnsupportedToken
        | StrategyNotFound
        | MissingAsset
        | InvalidRequest
        | EmptyCallList,
    ):
        return ExecutionErrorCategory.REJECTED
    if isinstance(exc, httpx.TimeoutException | httpx.TransportError | TimeoutError):
        return ExecutionErrorCategory.UNCERTAIN if submitted else ExecutionErrorCategory.RETRYABLE_NOW
    if submitted:
        return ExecutionErrorCategory.UNCERTAIN
    if isinstance(exc, DynavestError):
        return ExecutionErrorCategory.FATAL
    return ExecutionErrorCategory.RETRYABLE_NOW
