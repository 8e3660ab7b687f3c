from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector


@dataclass(frozen=True)
class ContractFunction:
    """ABI fragment for one contract function: name plus input/output types.

    Tuple (struct) arguments use the canonical ``(type,type,...)`` notation, so
    the selector is derived from exactly the same strings that drive encoding.
    """

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    selector: bytes = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(
            self, "selector", function_signature_to_4byte_selector(self.signature)
        )

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    def encode_call(self, *args: Any) -> bytes:
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} expects {len(self.inputs)} arguments, got {len(args)}"
            )
        return self.selector + encode(list(self.inputs), list(args))

    def decode_output(self, data: bytes) -> tuple[Any, ...]:
        return tuple(decode(list(self.outputs), data))

    def decode_input(self, calldata: bytes) -> tuple[Any, ...]:
        if calldata[:4] != self.selector:
            raise ValueError(f"calldata does not target {self.signature}")
        return tuple(decode(list(self.inputs), calldata[4:]))


MARKET_PARAMS = "(address,address,address,address,uint256)"
EXACT_INPUT_SINGLE_PARAMS = "(address,address,uint24,address,uint256,uint256,uint160)"

ERC20_APPROVE = ContractFunction("approve", ("address", "uint256"), ("bool",))
ERC20_TRANSFER = ContractFunction("transfer", ("address", "uint256"), ("bool",))
ERC20_BALANCE_OF = ContractFunction("balanceOf", ("address",), ("uint256",))

AAVE_SUPPLY = ContractFunction("supply", ("address", "uint256", "address", "uint16"))
AAVE_WITHDRAW = ContractFunction("withdraw", ("address", "uint256", "address"), ("uint256",))
AAVE_GET_RESERVE_ATOKEN = ContractFunction("getReserveAToken", ("address",), ("address",))

MORPHO_ID_TO_MARKET_PARAMS = ContractFunction(
    "idToMarketParams",
    ("bytes32",),
    ("address", "address", "address", "address", "uint256"),
)
MORPHO_SUPPLY_FN = ContractFunction(
    "supply",
    (MARKET_PARAMS, "uint256", "uint256", "address", "bytes"),
    ("uint256", "uint256"),
)
MORPHO_WITHDRAW_FN = ContractFunction(
    "withdraw",
    (MARKET_PARAMS, "uint256", "uint256", "address", "address"),
    ("uint256", "uint256"),
)

ERC4626_DEPOSIT = ContractFunction("deposit", ("uint256", "address"), ("uint256",))
ERC4626_WITHDRAW = ContractFunction("withdraw", ("uint256", "address", "address"), ("uint256",))

UNISWAP_EXACT_INPUT_SINGLE = ContractFunction(
    "exactInputSingle", (EXACT_INPUT_SINGLE_PARAMS,), ("uint256",)
)
