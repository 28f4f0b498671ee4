import asyncio
import json

import httpx
import pytest
import respx
from websockets.asyncio.server import serve

from polymesh_tx.errors import JsonRpcCode, RpcError, from_jsonrpc_error
from polymesh_tx.rpc.http import HttpClient
from polymesh_tx.rpc.ws import WsClient

RPC_URL = "http://localhost:9933/"


def _ok(result):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def _client():
    return HttpClient(RPC_URL, backoff_base=0, backoff_jitter=0, max_retries=2)


@pytest.mark.asyncio
@respx.mock
async def test_http_retries_transient_failures():
    route = respx.post(RPC_URL).mock(
        side_effect=[httpx.Response(503), httpx.ConnectError("refused"), _ok("0xabc")]
    )
    async with _client() as rpc:
        assert await rpc.request("chain_getBlockHash") == "0xabc"
    assert route.call_count == 3
    body = json.loads(route.calls[0].request.content)
    assert body["method"] == "chain_getBlockHash"
    assert body["params"] == []


@pytest.mark.asyncio
@respx.mock
async def test_http_never_retries_submission():
    route = respx.post(RPC_URL).mock(return_value=httpx.Response(503))
    async with _client() as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.request("author_submitExtrinsic", ["0x00"], idempotent=False)
    assert ei.value.is_transport
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_http_error_object_maps_to_rpc_error():
    respx.post(RPC_URL).mock(
        return_value=httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": 1010, "message": "Invalid Transaction", "data": "Bad proof"}},
        )
    )
    async with _client() as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.request("author_submitExtrinsic", ["0x00"], idempotent=False)
    assert ei.value.code_enum is JsonRpcCode.POOL_INVALID_TX
    assert ei.value.data == "Bad proof"
    assert ei.value.method == "author_submitExtrinsic"


@pytest.mark.asyncio
@respx.mock
async def test_http_exhausted_retries():
    route = respx.post(RPC_URL).mock(return_value=httpx.Response(502))
    async with _client() as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.request("state_getMetadata")
    assert ei.value.code == JsonRpcCode.TRANSPORT_ERROR
    assert route.call_count == 3


async def _node(ws):
    """Tiny node: answers requests and pushes one header right after subscribing."""
    async for raw in ws:
        msg = json.loads(raw)
        method, rid = msg["method"], msg["id"]
        if method == "chain_subscribeNewHeads":
            await ws.send(json.dumps({"jsonrpc": "2.0", "id": rid, "result": "heads-1"}))
            await ws.send(json.dumps({
                "jsonrpc": "2.0",
                "method": "chain_newHead",
                "params": {"subscription": "heads-1", "result": {"number": "0x64"}},
            }))
        elif method == "chain_unsubscribeNewHeads":
            await ws.send(json.dumps({"jsonrpc": "2.0", "id": rid, "result": True}))
        elif method == "system_chain":
            await ws.send(json.dumps({"jsonrpc": "2.0", "id": rid, "result": "Polymesh Testnet"}))
        else:
            await ws.send(json.dumps({"jsonrpc": "2.0", "id": rid, "error": {"code": -32601, "message": "Method not found"}}))


@pytest.mark.asyncio
async def test_ws_requests_and_subscriptions():
    async with serve(_node, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        client = WsClient(f"ws://127.0.0.1:{port}", ping_interval=None)
        try:
            assert await client.request("system_chain") == "Polymesh Testnet"
            with pytest.raises(RpcError) as ei:
                await client.request("bogus_method")
            assert ei.value.code == JsonRpcCode.METHOD_NOT_FOUND
            assert ei.value.method == "bogus_method"

            got = asyncio.Queue()
            sub_id = await client.subscribe("chain_subscribeNewHeads", [], on_event=got.put_nowait)
            assert sub_id == "heads-1"
            header = await asyncio.wait_for(got.get(), timeout=2)
            assert header == {"number": "0x64"}
            assert await client.unsubscribe("chain_unsubscribeNewHeads", sub_id) is True
        finally:
            await client.close()
        assert not client.connected


@pytest.mark.asyncio
async def test_ws_connect_failure_is_transport_error():
    client = WsClient("ws://127.0.0.1:9", max_retries=0, connect_timeout=1)
    with pytest.raises(RpcError) as ei:
        await client.connect()
    assert ei.value.is_transport


def test_error_frames_map_to_rpc_errors():
    err = from_jsonrpc_error({"code": 1014, "message": "Priority is too low"}, method="author_submitExtrinsic")
    assert err.is_pool_rejection
    assert not err.is_transport
    assert str(err) == "author_submitExtrinsic failed (1014): Priority is too low"

    bare = from_jsonrpc_error("upstream unavailable")
    assert bare.code == JsonRpcCode.SERVER_ERROR
    assert bare.message == "upstream unavailable"
    assert bare.code_enum is JsonRpcCode.SERVER_ERROR
    assert RpcError(code=-1, message="x").code_enum is None
