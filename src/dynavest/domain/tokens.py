from __future__ import annotations

from dynavest.domain.chains import ChainId
from dynavest.domain.errors import DynavestError
from dynavest.domain.models import Token

USDT = Token(
    name="USDT",
    decimals=6,
    addresses={
        ChainId.ARBITRUM: "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        ChainId.BASE: "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
        ChainId.BSC: "0x55d398326f99059fF775485246999027B3197955",
    },
)

USDC = Token(
    name="USDC",
    decimals=6,
    addresses={
        ChainId.ARBITRUM: "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        ChainId.BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        ChainId.BSC: "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
        ChainId.POLYGON: "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    },
)

ETH = Token(name="ETH", decimals=18, is_native=True)

BNB = Token(name="BNB", decimals=18, is_native=True)

WETH = Token(
    name="WETH",
    decimals=18,
    addresses={
        ChainId.BASE: "0x4200000000000000000000000000000000000006",
        ChainId.ARBITRUM: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    },
)

WBNB = Token(
    name="WBNB",
    decimals=18,
    addresses={ChainId.BSC: "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"},
)

WSTETH = Token(
    name="wstETH",
    decimals=18,
    addresses={
        ChainId.BASE: "0xc1CBa3fCea344f92D9239c08C0568f6F2F0ee452",
        ChainId.ARBITRUM: "0x5979D7b546E38E414F7E9822514be443A4800529",
    },
)

WBETH = Token(
    name="wbETH",
    decimals=18,
    addresses={ChainId.BSC: "0xa2E3356610840701BDf5611a53974510Ae27E2e1"},
)

TOKENS: tuple[Token, ...] = (USDT, USDC, ETH, BNB, WETH, WBNB, WSTETH, WBETH)


def get_token_by_name(name: str) -> Token:
    for token in TOKENS:
        if token.name == name:
            return token
    raise DynavestError(f"Token {name} not found")

