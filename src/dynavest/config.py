from __future__ import annotations

import json
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from dynavest.domain.chains import parse_chain_id
from dynavest.domain.models import normalize_address

# Placeholder treasury used when FEE_RECEIVER is not configured.
DEFAULT_FEE_RECEIVER = "0x0000000000000000000000000000000000000001"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ledger_base_url: str = Field(default="http://localhost:8080", alias="LEDGER_BASE_URL")
    ledger_api_token: SecretStr | None = Field(default=None, alias="LEDGER_API_TOKEN")
    ledger_timeout_seconds: float = Field(default=10.0, alias="LEDGER_TIMEOUT_SECONDS")
    ledger_max_attempts: int = Field(default=3, alias="LEDGER_MAX_ATTEMPTS")
    ledger_base_delay_seconds: float = Field(default=0.4, alias="LEDGER_BASE_DELAY_SECONDS")
    ledger_max_delay_seconds: float = Field(default=4.0, alias="LEDGER_MAX_DELAY_SECONDS")

    fee_receiver: str = Field(default=DEFAULT_FEE_RECEIVER, alias="FEE_RECEIVER")
    fee_per_mille: int = Field(default=5, alias="FEE_PER_MILLE")

    rpc_urls: Annotated[dict[int, str], NoDecode] = Field(default_factory=dict, alias="RPC_URLS")
    receipt_timeout_seconds: float = Field(default=180.0, alias="RECEIPT_TIMEOUT_SECONDS")
    receipt_poll_interval_seconds: float = Field(
        default=2.0, alias="RECEIPT_POLL_INTERVAL_SECONDS"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("fee_receiver")
    def validate_fee_receiver(cls, value: str) -> str:
        try:
            return normalize_address(value)
        except ValueError as exc:
            raise ValueError("FEE_RECEIVER must be a valid EVM address") from exc

    @field_validator("fee_per_mille")
    def validate_fee_per_mille(cls, value: int) -> int:
        if not 0 <= value < 1000:
            raise ValueError("FEE_PER_MILLE must be within [0, 1000)")
        return value

    @field_validator("ledger_max_attempts")
    def validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("LEDGER_MAX_ATTEMPTS must be >= 1")
        return value

    @field_validator(
        "ledger_timeout_seconds",
        "receipt_timeout_seconds",
        "receipt_poll_interval_seconds",
    )
    def validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts and poll intervals must be > 0")
        return value

    @field_validator("ledger_base_url")
    def validate_ledger_base_url(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("LEDGER_BASE_URL must be an http(s) URL")
        return cleaned

    @field_validator("rpc_urls", mode="before")
    def parse_rpc_urls(cls, value: str | dict[object, str] | None) -> dict[int, str]:
        """Accept a JSON object or ``chain=url`` pairs separated by commas."""
        if value is None:
            return {}
        items: dict[object, str]
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return {}
            if raw.startswith("{"):
                parsed = json.loads(raw)
                if not isinstance(parsed, dict):
                    raise ValueError("RPC_URLS JSON value must be an object")
                items = parsed
            else:
                items = {}
                for pair in raw.split(","):
                    if not pair.strip():
                        continue
                    chain, sep, url = pair.partition("=")
                    if not sep:
                        raise ValueError(f"RPC_URLS entry must look like chain=url: {pair!r}")
                    items[chain.strip()] = url.strip()
        else:
            items = dict(value)
        return {parse_chain_id(chain): str(url).strip() for chain, url in items.items()}

    def rpc_url_for(self, chain_id: int) -> str:
        try:
            return self.rpc_urls[int(chain_id)]
        except KeyError as exc:
            raise ValueError(f"no RPC url configured for chain {chain_id}") from exc
