from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from eth_abi import encode

from dynavest.adapters.chain_rpc import ChainCallError, JsonRpcChainClient
from dynavest.domain.errors import ReceiptTimeout
from dynavest.strategies.abi import AAVE_GET_RESERVE_ATOKEN, ERC20_BALANCE_OF

RPC_URL = "https://rpc.test"
USER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x3333333333333333333333333333333333333333"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _client(handler, **kwargs) -> tuple[JsonRpcChainClient, list[float], FakeClock]:
    sleeps: list[float] = []
    clock = FakeClock()

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
        clock.now += delay

    client = JsonRpcChainClient(
        rpc_url=RPC_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep_fn=_sleep,
        clock=clock,
        **kwargs,
    )
    return client, sleeps, clock


def test_eth_call_encodes_request_and_decodes_result() -> None:
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        result = "0x" + encode(["uint256"], [42]).hex()
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    client, _, _ = _client(handler)
    (balance,) = asyncio.run(client.call(TOKEN, ERC20_BALANCE_OF, [USER]))

    assert balance == 42
    call, block = requests[0]["params"]
    assert requests[0]["method"] == "eth_call"
    assert block == "latest"
    assert call["to"] == TOKEN
    assert call["data"].startswith("0x70a08231")


def test_rpc_error_raises_chain_call_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}},
        )

    client, _, _ = _client(handler)
    with pytest.raises(ChainCallError, match="execution reverted") as exc_info:
        asyncio.run(client.call(TOKEN, AAVE_GET_RESERVE_ATOKEN, [USER]))

    assert exc_info.value.code == 3


def test_empty_return_data_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x"})

    client, _, _ = _client(handler)
    with pytest.raises(ChainCallError, match="returned no data"):
        asyncio.run(client.call(TOKEN, ERC20_BALANCE_OF, [USER]))


def test_receipt_polled_until_available() -> None:
    polls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        polls["count"] += 1
        body = json.loads(request.content)
        assert body["method"] == "eth_getTransactionReceipt"
        if polls["count"] < 3:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": None})
        return httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": body["id"],
                "result": {"transactionHash": "0xfeed", "status": "0x1"},
            },
        )

    client, sleeps, _ = _client(handler, poll_interval_seconds=2.0)
    receipt = asyncio.run(client.wait_for_receipt("0xfeed"))

    assert receipt.tx_hash == "0xfeed"
    assert receipt.status == "success"
    assert sleeps == [2.0, 2.0]


def test_failed_status_maps_to_reverted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "result": {"transactionHash": "0xdead", "status": "0x0"}}
        )

    client, _, _ = _client(handler)

    assert asyncio.run(client.wait_for_receipt("0xdead")).status == "reverted"


def test_receipt_wait_times_out() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

    client, sleeps, _ = _client(handler, receipt_timeout_seconds=5.0, poll_interval_seconds=2.0)

    with pytest.raises(ReceiptTimeout, match="0xslow"):
        asyncio.run(client.wait_for_receipt("0xslow"))

    assert sleeps == [2.0, 2.0, 2.0]
