"""Tests for the JSON-RPC connection and the chain registry client."""

from __future__ import annotations

import json

import httpx
import pytest

from chainz.chainlist.client import ChainlistClient, ChainlistEntry
from chainz.endpoints.connection import RpcConnection, RpcError
from chainz.errors import ExternalServiceError, InputError


def _rpc_transport(replies, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        reply = replies[body["method"]]
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **reply})

    return httpx.MockTransport(handler)


# ── RpcConnection ────────────────────────────────────────────────────────


class TestRpcConnection:
    @pytest.mark.anyio
    async def test_chain_id(self):
        seen = []
        transport = _rpc_transport({"eth_chainId": {"result": "0x89"}}, seen)
        async with RpcConnection("https://rpc.example", transport=transport) as conn:
            assert await conn.chain_id() == 137
        assert seen[0]["method"] == "eth_chainId"
        assert seen[0]["params"] == []
        assert seen[0]["jsonrpc"] == "2.0"

    @pytest.mark.anyio
    async def test_get_balance(self):
        seen = []
        transport = _rpc_transport({"eth_getBalance": {"result": "0xde0b6b3a7640000"}}, seen)
        async with RpcConnection("https://rpc.example", transport=transport) as conn:
            balance = await conn.get_balance("0xabc")
        assert balance == 10**18
        assert seen[0]["params"] == ["0xabc", "latest"]

    @pytest.mark.anyio
    async def test_request_ids_increase(self):
        seen = []
        transport = _rpc_transport({"eth_chainId": {"result": "0x1"}}, seen)
        async with RpcConnection("http://rpc.example", transport=transport) as conn:
            await conn.chain_id()
            await conn.chain_id()
        assert [b["id"] for b in seen] == [1, 2]

    @pytest.mark.anyio
    async def test_rpc_error_reply(self):
        transport = _rpc_transport(
            {"eth_chainId": {"error": {"code": -32601, "message": "method not found"}}}
        )
        async with RpcConnection("https://rpc.example", transport=transport) as conn:
            with pytest.raises(RpcError, match="method not found") as exc_info:
                await conn.chain_id()
        assert exc_info.value.code == -32601

    @pytest.mark.anyio
    async def test_malformed_quantity(self):
        transport = _rpc_transport({"eth_chainId": {"result": "banana"}})
        async with RpcConnection("https://rpc.example", transport=transport) as conn:
            with pytest.raises(RpcError, match="Malformed"):
                await conn.chain_id()

    @pytest.mark.anyio
    async def test_http_error_propagates(self):
        transport = _rpc_transport({"eth_chainId": httpx.Response(503)})
        async with RpcConnection("https://rpc.example", transport=transport) as conn:
            with pytest.raises(httpx.HTTPStatusError):
                await conn.chain_id()

    @pytest.mark.anyio
    async def test_unsupported_scheme(self):
        conn = RpcConnection("wss://rpc.example")
        with pytest.raises(RpcError, match="scheme"):
            await conn.chain_id()
        await conn.aclose()


# ── Chain registry ───────────────────────────────────────────────────────


_REGISTRY = [
    {"name": "Ethereum Mainnet", "chainId": 1, "rpc": ["https://eth.example", ""]},
    {"name": "OP Mainnet", "chainId": 10, "rpc": ["https://op.example"]},
    {"name": "broken"},
    "garbage",
]


def _registry_transport(payload=_REGISTRY, status=200):
    return httpx.MockTransport(lambda request: httpx.Response(status, json=payload))


class TestChainlistEntry:
    def test_from_dict(self):
        entry = ChainlistEntry.from_dict(_REGISTRY[0])
        assert entry == ChainlistEntry("Ethereum Mainnet", 1, ["https://eth.example"])

    def test_unusable(self):
        assert ChainlistEntry.from_dict({"name": "x"}) is None

    def test_slug(self):
        assert ChainlistEntry("OP Mainnet", 10).slug == "op_mainnet"


class TestChainlistClient:
    @pytest.mark.anyio
    async def test_fetch_all_skips_bad_entries(self):
        entries = await ChainlistClient(transport=_registry_transport()).fetch_all()
        assert [e.chain_id for e in entries] == [1, 10]

    @pytest.mark.anyio
    async def test_find_by_id(self):
        entry = await ChainlistClient(transport=_registry_transport()).find(chain_id=10)
        assert entry.name == "OP Mainnet"

    @pytest.mark.anyio
    async def test_find_by_name(self):
        client = ChainlistClient(transport=_registry_transport())
        assert (await client.find(name="op_mainnet")).chain_id == 10
        assert (await client.find(name="ethereum mainnet")).chain_id == 1

    @pytest.mark.anyio
    async def test_not_found(self):
        with pytest.raises(InputError, match="not found"):
            await ChainlistClient(transport=_registry_transport()).find(chain_id=999)

    @pytest.mark.anyio
    async def test_requires_id_or_name(self):
        with pytest.raises(InputError):
            await ChainlistClient(transport=_registry_transport()).find()

    @pytest.mark.anyio
    async def test_http_failure(self):
        client = ChainlistClient(transport=_registry_transport(status=500))
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch_all()
        assert exc_info.value.service == "chainlist"

    @pytest.mark.anyio
    async def test_unexpected_payload(self):
        client = ChainlistClient(transport=_registry_transport(payload={"chains": []}))
        with pytest.raises(ExternalServiceError, match="Unexpected"):
            await client.fetch_all()
