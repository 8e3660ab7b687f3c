from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from dynavest.adapters.retry import BackoffPolicy, retry_async
from dynavest.domain.models import Position, PositionStatus, TransactionRecord
from dynavest.security.redaction import sanitize_text

logger = logging.getLogger(__name__)


class LedgerErrorKind(StrEnum):
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    NOT_FOUND = "not_found"
    CLIENT = "client"
    PAYLOAD = "payload"


class LedgerRequestError(RuntimeError):
    def __init__(
        self,
        *,
        kind: LedgerErrorKind,
        message: str,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}

    @property
    def retryable(self) -> bool:
        return self.kind in {LedgerErrorKind.NETWORK, LedgerErrorKind.SERVER, LedgerErrorKind.RATE_LIMIT}


@dataclass(frozen=True)
class LedgerReliabilityConfig:
    timeout_seconds: float = 10.0
    max_attempts: int = 3
    base_delay_seconds: float = 0.4
    max_delay_seconds: float = 4.0

    @property
    def backoff(self) -> BackoffPolicy:
        return BackoffPolicy(
            base_delay_seconds=self.base_delay_seconds,
            max_delay_seconds=self.max_delay_seconds,
        )


class PositionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    position_id: str = Field(validation_alias=AliasChoices("position_id", "id"))
    address: str = ""
    chain_id: int
    strategy: str
    token_name: str = ""
    amount: Decimal
    status: PositionStatus
    created_at: datetime | None = None

    @field_validator("position_id", mode="before")
    def coerce_position_id(cls, value: object) -> str:
        return str(value)

    @field_validator("status", mode="before")
    def parse_status(cls, value: object) -> PositionStatus:
        return PositionStatus.parse(value)

    @field_validator("amount", mode="before")
    def parse_amount(cls, value: object) -> Decimal:
        if value is None or isinstance(value, bool):
            raise ValueError("amount is required")
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {value!r}") from exc

    def to_domain(self, user: str) -> Position:
        return Position(
            position_id=self.position_id,
            user=self.address or user,
            chain_id=self.chain_id,
            strategy_id=self.strategy,
            token_name=self.token_name,
            amount=self.amount,
            status=self.status,
            created_at=self.created_at,
        )


class TransactionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transaction_id: str | None = None
    created_at: datetime | None = None
    strategy: str
    hash: str
    amount: Decimal
    chain_id: int
    token_name: str

    @field_validator("transaction_id", mode="before")
    def coerce_transaction_id(cls, value: object) -> str | None:
        return None if value is None else str(value)

    def to_domain(self, user: str) -> TransactionRecord:
        return TransactionRecord(
            user=user,
            chain_id=self.chain_id,
            strategy_id=self.strategy,
            tx_hash=self.hash,
            amount=self.amount,
            token_name=self.token_name,
        )


class LedgerHttpClient:
    """Async client for the positions / transactions backend."""

    def __init__(
        self,
        *,
        base_url: str,
        api_token: str | None = None,
        reliability: LedgerReliabilityConfig | None = None,
        client: httpx.AsyncClient | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.reliability = reliability or LedgerReliabilityConfig()
        self._api_token = api_token
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(self.reliability.timeout_seconds)
        )
        self._sleep_fn = sleep_fn or asyncio.sleep

    async def close(self) -> None:
        await self._client.aclose()

    async def list_positions(self, address: str) -> list[Position]:
        positions: list[Position] = []
        for item in _as_list(await self._request("GET", f"/positions/{address}")):
            try:
                positions.append(PositionPayload.model_validate(item).to_domain(address))
            except ValidationError as exc:
                row_id = item.get("id", item.get("position_id")) if isinstance(item, dict) else None
                logger.warning(
                    "Skipping unreadable ledger position",
                    extra={"extra": {"position_id": row_id, "errors": exc.error_count()}},
                )
        return positions

    async def create_position(
        self,
        *,
        address: str,
        amount: Decimal,
        token_name: str,
        chain_id: int,
        strategy_id: str,
    ) -> Any:
        return await self._request(
            "POST",
            "/position",
            json_body={
                "address": address,
                "amount": float(amount),
                "token_name": token_name,
                "chain_id": int(chain_id),
                "strategy": strategy_id,
            },
        )

    async def update_position(self, position_id: str, **fields: Any) -> Any:
        body = {key: float(value) if isinstance(value, Decimal) else value for key, value in fields.items()}
        return await self._request("PATCH", f"/positions/{position_id}", json_body=body)

    async def add_transaction(self, record: TransactionRecord) -> Any:
        return await self._request(
            "POST",
            "/transaction",
            json_body={
                "address": record.user,
                "chain_id": int(record.chain_id),
                "strategy": record.strategy_id,
                "hash": record.tx_hash,
                "amount": float(record.amount),
                "token_name": record.token_name,
            },
        )

    async def list_transactions(self, address: str, chain_id: int | None = None) -> list[TransactionRecord]:
        payload = await self._request("GET", f"/transactions/{address}")
        records = [TransactionPayload.model_validate(item).to_domain(address) for item in _as_list(payload)]
        if chain_id is None:
            return records
        return [record for record in records if record.chain_id == int(chain_id)]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        headers: dict[str, str] = {}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"

        async def _call() -> Any:
            try:
                response = await self._client.request(method, path, json=json_body, headers=headers)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                raise LedgerRequestError(kind=LedgerErrorKind.NETWORK, message=str(exc)) from exc

            if response.status_code >= 400:
                raise self._http_error(method, path, response)
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise LedgerRequestError(
                    kind=LedgerErrorKind.PAYLOAD,
                    message=f"{method} {path} returned non-JSON body",
                    status_code=response.status_code,
                ) from exc

        def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
            logger.warning(
                "Ledger request failed; retrying",
                extra={
                    "extra": {
                        "method": method,
                        "path": path,
                        "attempt": attempt,
                        "kind": getattr(exc, "kind", "unknown"),
                        "delay_seconds": round(delay, 3),
                    }
                },
            )

        return await retry_async(
            _call,
            max_attempts=self.reliability.max_attempts,
            policy=self.reliability.backoff,
            is_retryable=lambda exc: isinstance(exc, LedgerRequestError) and exc.retryable,
            retry_after=lambda exc: exc.headers.get("retry-after")
            if isinstance(exc, LedgerRequestError)
            else None,
            on_retry=_log_retry,
            sleep_fn=self._sleep_fn,
        )

    def _http_error(self, method: str, path: str, response: httpx.Response) -> LedgerRequestError:
        status = response.status_code
        if status == 429:
            kind = LedgerErrorKind.RATE_LIMIT
        elif status >= 500:
            kind = LedgerErrorKind.SERVER
        elif status == 404:
            kind = LedgerErrorKind.NOT_FOUND
        else:
            kind = LedgerErrorKind.CLIENT
        known_secrets = [self._api_token] if self._api_token else []
        body = sanitize_text(response.text[:200], known_secrets=known_secrets)
        return LedgerRequestError(
            kind=kind,
            message=f"{method} {path} failed with status={status} body={body}",
            status_code=status,
            headers=dict(response.headers),
        )


def _as_list(payload: Any) -> list[Any]:
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    raise LedgerRequestError(kind=LedgerErrorKind.PAYLOAD, message="ledger payload must be a list")
