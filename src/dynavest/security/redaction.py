from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"

# Substrings of a field name that mark its value as secret.
SECRET_KEY_MARKERS = (
    "token",
    "secret",
    "password",
    "private_key",
    "mnemonic",
    "seed_phrase",
    "api_key",
    "authorization",
)
# Fields whose names contain a marker but carry public data.
PUBLIC_KEYS = frozenset({"token_name", "token_symbol", "token_address", "tokens"})

_TEXT_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)\b(authorization\s*[:=]\s*)(bearer\s+)?[^\s,;\"']+"), r"\1\2" + REDACTED),
    (re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]{8,}"), r"\1" + REDACTED),
    (
        re.compile(r"(?i)\b((?:ledger_api_token|private_key|mnemonic)\s*[:=]\s*)[^\s,;\"']+"),
        r"\1" + REDACTED,
    ),
    # Hosted RPC endpoints carry the project key as the last path segment.
    (
        re.compile(r"(?i)(https?://[^\s/]*(?:alchemy|infura|quiknode|ankr)[^\s/]*/(?:v\d+/)?)[A-Za-z0-9_-]{16,}"),
        r"\1" + REDACTED,
    ),
)


def is_secret_key(key: object) -> bool:
    normalized = str(key).replace("-", "_").lower()
    if normalized in PUBLIC_KEYS:
        return False
    return any(marker in normalized for marker in SECRET_KEY_MARKERS)


def mask_secret(value: str) -> str:
    """Keep the last four characters of long secrets so operators can tell them apart."""
    if len(value) < 12:
        return REDACTED
    return f"{REDACTED}...{value[-4:]}"


def sanitize_text(text: str, known_secrets: Iterable[str] = ()) -> str:
    cleaned = str(text)
    for secret in known_secrets:
        if secret:
            cleaned = cleaned.replace(str(secret), mask_secret(str(secret)))
    for pattern, replacement in _TEXT_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned


def redact_data(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            str(key): (REDACTED if item is None else mask_secret(str(item)))
            if is_secret_key(key)
            else redact_data(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact_data(item) for item in value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
