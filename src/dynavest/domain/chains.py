from __future__ import annotations

from enum import IntEnum


class ChainId(IntEnum):
    ETHEREUM = 1
    BSC = 56
    POLYGON = 137
    BASE = 8453
    ARBITRUM = 42161
    CELO = 42220


CHAIN_NAMES: dict[int, str] = {
    ChainId.ETHEREUM: "ethereum",
    ChainId.BSC: "bsc",
    ChainId.POLYGON: "polygon",
    ChainId.BASE: "base",
    ChainId.ARBITRUM: "arbitrum",
    ChainId.CELO: "celo",
}


def chain_name(chain_id: int) -> str:
    return CHAIN_NAMES.get(int(chain_id), f"chain-{int(chain_id)}")


def parse_chain_id(value: object) -> int:
    """Accept a numeric id or a known chain name (case-insensitive)."""
    if isinstance(value, bool):
        raise ValueError(f"invalid chain id: {value!r}")
    if isinstance(value, int):
        return int(value)
    raw = str(value).strip()
    if not raw:
        raise ValueError("chain id must not be empty")
    if raw.isdigit():
        return int(raw)
    lowered = raw.lower()
    for chain_id, name in CHAIN_NAMES.items():
        if name == lowered:
            return int(chain_id)
    raise ValueError(f"unknown chain: {value!r}")
