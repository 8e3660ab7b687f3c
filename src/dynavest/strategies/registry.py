from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal

from dynavest.domain.chains import ChainId
from dynavest.domain.errors import StrategyNotFound
from dynavest.domain.models import RiskTier, StrategyDescriptor
from dynavest.domain.tokens import BNB, ETH, USDC, WBETH, WSTETH
from dynavest.ports import ChainClient
from dynavest.strategies.aave import AaveV3Supply
from dynavest.strategies.base import StrategyHandle
from dynavest.strategies.fluid import FluidSupply
from dynavest.strategies.morpho import MorphoSupply
from dynavest.strategies.uniswap import UniswapV3SwapLST

AAVE_V3_SUPPLY = "AaveV3Supply"
MORPHO_SUPPLY = "MorphoSupply"
FLUID_SUPPLY = "FluidSupply"
UNISWAP_V3_SWAP_LST = "UniswapV3SwapLST"

AAVE_POOLS: dict[int, str] = {
    ChainId.ARBITRUM: "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
    ChainId.BASE: "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
    ChainId.BSC: "0x6807dc923806fE8Fd134338EABCA509979a7e0cB",
}

UNISWAP_CONTRACTS: dict[int, dict[str, str]] = {
    ChainId.BASE: {
        "swapRouter": "0x2626664c2603336E57B271c5C0b26F421741e481",
        "nftManager": "0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
    },
    ChainId.ARBITRUM: {
        "swapRouter": "0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45",
        "nftManager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    },
    ChainId.BSC: {
        "swapRouter": "0xB971eF87ede563556b2ED4b1C0b0019111Dd85d2",
        "nftManager": "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",
    },
}

MORPHO_BLUE = "0xBBBBBbbBBb9cC5e90e3b3Af64bdAF62C37EEFFCb"
FLUID_FUSDC = "0xf42f5795D9ac7e9D757dB633D693cD548Cfd9169"

DEFAULT_DESCRIPTORS: tuple[StrategyDescriptor, ...] = (
    StrategyDescriptor(
        strategy_id=AAVE_V3_SUPPLY,
        chain_id=ChainId.ARBITRUM,
        protocol="Aave",
        contracts={"pool": AAVE_POOLS[ChainId.ARBITRUM]},
        tokens=(USDC,),
        risk=RiskTier.MEDIUM,
        apy=Decimal("4.5"),
        title="AAVE Lending",
    ),
    StrategyDescriptor(
        strategy_id=UNISWAP_V3_SWAP_LST,
        chain_id=ChainId.ARBITRUM,
        protocol="Lido",
        contracts={"swapRouter": UNISWAP_CONTRACTS[ChainId.ARBITRUM]["swapRouter"]},
        tokens=(USDC,),
        risk=RiskTier.LOW,
        apy=Decimal("2.8"),
        title="Liquid Staking",
    ),
    StrategyDescriptor(
        strategy_id=MORPHO_SUPPLY,
        chain_id=ChainId.BASE,
        protocol="Morpho",
        contracts={"morpho": MORPHO_BLUE},
        tokens=(USDC,),
        risk=RiskTier.MEDIUM,
        apy=Decimal("6.7"),
        title="Morpho Supplying",
    ),
    StrategyDescriptor(
        strategy_id=AAVE_V3_SUPPLY,
        chain_id=ChainId.BASE,
        protocol="Aave",
        contracts={"pool": AAVE_POOLS[ChainId.BASE]},
        tokens=(USDC,),
        risk=RiskTier.MEDIUM,
        apy=Decimal("6.1"),
        title="AAVE Supplying",
    ),
    StrategyDescriptor(
        strategy_id=UNISWAP_V3_SWAP_LST,
        chain_id=ChainId.BASE,
        protocol="Lido",
        contracts={"swapRouter": UNISWAP_CONTRACTS[ChainId.BASE]["swapRouter"]},
        tokens=(USDC,),
        risk=RiskTier.LOW,
        apy=Decimal("2.8"),
        title="Liquid Staking",
    ),
    StrategyDescriptor(
        strategy_id=FLUID_SUPPLY,
        chain_id=ChainId.BASE,
        protocol="Fluid",
        contracts={"fUSDC": FLUID_FUSDC},
        tokens=(USDC,),
        risk=RiskTier.MEDIUM,
        apy=Decimal("6.23"),
        title="Fluid Supplying",
    ),
    StrategyDescriptor(
        strategy_id=AAVE_V3_SUPPLY,
        chain_id=ChainId.BSC,
        protocol="Aave",
        contracts={"pool": AAVE_POOLS[ChainId.BSC]},
        tokens=(USDC,),
        risk=RiskTier.MEDIUM,
        apy=Decimal("4.3"),
        title="AAVE Supplying",
    ),
    StrategyDescriptor(
        strategy_id=UNISWAP_V3_SWAP_LST,
        chain_id=ChainId.BSC,
        protocol="Lido",
        contracts={"swapRouter": UNISWAP_CONTRACTS[ChainId.BSC]["swapRouter"]},
        tokens=(BNB,),
        risk=RiskTier.LOW,
        apy=Decimal("2.8"),
        title="Binance Liquid Staking",
    ),
)

StrategyFactory = Callable[[StrategyDescriptor, ChainClient], StrategyHandle]


def _uniswap_lst_factory(descriptor: StrategyDescriptor, chain: ChainClient) -> StrategyHandle:
    if descriptor.chain_id == ChainId.BSC:
        return UniswapV3SwapLST(descriptor, chain, native_token=BNB, lst_token=WBETH)
    return UniswapV3SwapLST(descriptor, chain, native_token=ETH, lst_token=WSTETH)


DEFAULT_FACTORIES: dict[str, StrategyFactory] = {
    AAVE_V3_SUPPLY: AaveV3Supply,
    MORPHO_SUPPLY: MorphoSupply,
    FLUID_SUPPLY: FluidSupply,
    UNISWAP_V3_SWAP_LST: _uniswap_lst_factory,
}


@dataclass(frozen=True)
class _RegistryEntry:
    descriptor: StrategyDescriptor
    factory: StrategyFactory


class StrategyRegistry:
    """Catalog of strategy descriptors keyed by ``(strategy_id, chain_id)``."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, int], _RegistryEntry] = {}

    @classmethod
    def default(cls) -> StrategyRegistry:
        registry = cls()
        for descriptor in DEFAULT_DESCRIPTORS:
            registry.register(descriptor, DEFAULT_FACTORIES[descriptor.strategy_id])
        return registry

    def register(self, descriptor: StrategyDescriptor, factory: StrategyFactory) -> None:
        key = (descriptor.strategy_id, int(descriptor.chain_id))
        if key in self._entries:
            raise ValueError(f"strategy already registered: {key}")
        self._entries[key] = _RegistryEntry(descriptor=descriptor, factory=factory)

    def find(self, strategy_id: str, chain_id: int) -> StrategyDescriptor | None:
        entry = self._entries.get((strategy_id, int(chain_id)))
        return entry.descriptor if entry is not None else None

    def descriptor(self, strategy_id: str, chain_id: int) -> StrategyDescriptor:
        descriptor = self.find(strategy_id, chain_id)
        if descriptor is None:
            raise StrategyNotFound(strategy_id, chain_id)
        return descriptor

    def build(self, strategy_id: str, chain_id: int, chain: ChainClient) -> StrategyHandle:
        entry = self._entries.get((strategy_id, int(chain_id)))
        if entry is None:
            raise StrategyNotFound(strategy_id, chain_id)
        return entry.factory(entry.descriptor, chain)

    def for_chain(self, chain_id: int) -> list[StrategyDescriptor]:
        return [entry.descriptor for key, entry in self._entries.items() if key[1] == int(chain_id)]

    def by_risk(self, risk: RiskTier, chain_ids: Iterable[int] | None = None) -> list[StrategyDescriptor]:
        allowed = None if chain_ids is None else {int(chain) for chain in chain_ids}
        return [
            entry.descriptor
            for entry in self._entries.values()
            if entry.descriptor.risk is risk and (allowed is None or entry.descriptor.chain_id in allowed)
        ]
