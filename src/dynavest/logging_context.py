from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from uuid import uuid4

CONTEXT_FIELDS = frozenset({"run_id", "user", "chain_id", "strategy_id", "tx_hash"})

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("dynavest_logging_context", default=_EMPTY)


def get_logging_context() -> dict[str, str]:
    return dict(_context.get())


@contextmanager
def with_logging_context(**fields: object) -> Iterator[None]:
    """Bind fields for every log line emitted inside the block.

    ``None`` values are skipped so optional identifiers can be passed through.
    Nested blocks inherit and may override outer fields.
    """
    unknown = set(fields) - CONTEXT_FIELDS
    if unknown:
        raise TypeError(f"unknown logging context fields: {sorted(unknown)}")
    merged = dict(_context.get())
    merged.update({key: str(value) for key, value in fields.items() if value is not None})
    token = _context.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _context.reset(token)


@contextmanager
def with_execution_context(
    *, user: str, chain_id: int, strategy_id: str | None = None
) -> Iterator[str]:
    run_id = uuid4().hex
    with with_logging_context(run_id=run_id, user=user, chain_id=chain_id, strategy_id=strategy_id):
        yield run_id
