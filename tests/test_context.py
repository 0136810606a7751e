"""Tests for chain materialization and shell variable export."""

from __future__ import annotations

import os
import stat
from unittest.mock import AsyncMock, MagicMock

import pytest

from chainz.config.schema import ChainzConfig
from chainz.context import ChainContext, format_ether, materialize
from chainz.endpoints.resolver import EndpointResolver
from chainz.errors import AuthenticationError, InputError, NoViableEndpointError
from chainz.variables import ChainVariables
from chainz.vault.fetchers import ExternalSecretFetcher
from chainz.vault.vault import CredentialVault, create_encrypted

KEY_ONE = "0x0000000000000000000000000000000000000000000000000000000000000001"
KEY_ONE_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


class _NoFetcher(ExternalSecretFetcher):
    def fetch_external(self, vault, item):
        raise AssertionError("unexpected fetch")

    def fetch_system(self, service, account):
        raise AssertionError("unexpected fetch")

    def store_system(self, service, account, value):
        raise AssertionError("unexpected store")


def _config(**chain_overrides):
    chain = {
        "name": "sepolia",
        "chain_id": 11155111,
        "rpc_urls": ["https://a.example/${API}", "https://b.example"],
        "verification_url": "https://api-sepolia.etherscan.io/api",
        "verification_api_key": "ETHERSCAN",
    }
    chain.update(chain_overrides)
    return ChainzConfig.model_validate(
        {
            "variables": {"API": "k1"},
            "keys": {
                "default": {"type": "PrivateKey", "value": KEY_ONE},
                "other": {"type": "PrivateKey", "value": "0x" + "22" * 32},
            },
            "chains": [chain],
        }
    )


def _connector(chain_ids):
    """Connector whose connections answer from *chain_ids* by URL."""
    created = []

    def connect(url):
        conn = MagicMock()
        conn.url = url
        result = chain_ids[url]
        if isinstance(result, Exception):
            conn.chain_id = AsyncMock(side_effect=result)
        else:
            conn.chain_id = AsyncMock(return_value=result)
        conn.aclose = AsyncMock()
        created.append(conn)
        return conn

    connect.created = created
    return connect


def _vault(passphrase="pw"):
    return CredentialVault(passphrase_provider=lambda _: passphrase, fetcher=_NoFetcher())


# ── materialize ──────────────────────────────────────────────────────────


class TestMaterialize:
    @pytest.mark.anyio
    async def test_resolves_endpoint_and_key(self):
        config = _config()
        connect = _connector({"https://a.example/k1": 11155111, "https://b.example": 11155111})
        ctx = await materialize(
            config, "sepolia", vault=_vault(), resolver=EndpointResolver(connect)
        )
        assert ctx.rpc_url == "https://a.example/k1"
        assert ctx.private_key == KEY_ONE
        assert ctx.address == KEY_ONE_ADDRESS
        assert ctx.selection_changed is True
        assert config.chains[0].selected_rpc == "https://a.example/${API}"

    @pytest.mark.anyio
    async def test_unchanged_selection(self):
        config = _config(selected_rpc="https://b.example")
        connect = _connector({"https://b.example": 11155111})
        ctx = await materialize(config, 11155111, vault=_vault(), resolver=EndpointResolver(connect))
        assert ctx.selection_changed is False
        assert len(connect.created) == 1

    @pytest.mark.anyio
    async def test_key_override(self):
        connect = _connector({"https://a.example/k1": 11155111, "https://b.example": 11155111})
        ctx = await materialize(
            _config(),
            "sepolia",
            vault=_vault(),
            resolver=EndpointResolver(connect),
            key_name="other",
        )
        assert ctx.key.name == "other"

    @pytest.mark.anyio
    async def test_unknown_chain(self):
        with pytest.raises(InputError, match="not found"):
            await materialize(
                _config(), "mainnet", vault=_vault(), resolver=EndpointResolver(_connector({}))
            )

    @pytest.mark.anyio
    async def test_unknown_key_fails_before_probing(self):
        connect = _connector({})
        with pytest.raises(InputError, match="Key 'missing'"):
            await materialize(
                _config(key_name="missing"),
                "sepolia",
                vault=_vault(),
                resolver=EndpointResolver(connect),
            )
        assert connect.created == []

    @pytest.mark.anyio
    async def test_no_viable_endpoint_keeps_selection(self):
        config = _config(selected_rpc="https://b.example")
        connect = _connector(
            {"https://a.example/k1": ConnectionError("x"), "https://b.example": 1}
        )
        with pytest.raises(NoViableEndpointError):
            await materialize(config, "sepolia", vault=_vault(), resolver=EndpointResolver(connect))
        assert config.chains[0].selected_rpc == "https://b.example"

    @pytest.mark.anyio
    async def test_key_failure_closes_connection(self):
        config = _config()
        config.keys["default"] = create_encrypted("default", KEY_ONE, "right")
        connect = _connector({"https://a.example/k1": 11155111, "https://b.example": 11155111})
        with pytest.raises(AuthenticationError):
            await materialize(
                config, "sepolia", vault=_vault("wrong"), resolver=EndpointResolver(connect)
            )
        connect.created[0].aclose.assert_awaited()


# ── ChainVariables ───────────────────────────────────────────────────────


def _context(private_key=KEY_ONE, **chain_overrides):
    config = _config(**chain_overrides)
    return ChainContext(
        definition=config.chains[0],
        rpc_url="https://b.example",
        connection=MagicMock(aclose=AsyncMock()),
        key=config.keys["default"],
        private_key=private_key,
    )


class TestChainVariables:
    def test_env_map(self):
        env = ChainVariables(_context()).as_map()
        assert list(env) == [
            "WALLET_ADDRESS",
            "ETH_RPC_URL",
            "CHAIN_ID",
            "CHAIN_NAME",
            "RAW_PRIVATE_KEY",
            "VERIFICATION_URL",
            "VERIFICATION_API_KEY",
        ]
        assert env["WALLET_ADDRESS"] == KEY_ONE_ADDRESS
        assert env["CHAIN_ID"] == "11155111"

    def test_verification_omitted_when_unset(self):
        env = ChainVariables(
            _context(verification_url=None, verification_api_key=None)
        ).as_map()
        assert "VERIFICATION_URL" not in env
        assert "VERIFICATION_API_KEY" not in env

    def test_invalid_key_gives_empty_wallet(self):
        assert ChainVariables(_context(private_key="nope")).as_map()["WALLET_ADDRESS"] == ""

    def test_env_file_and_exports(self):
        chain_vars = ChainVariables(_context())
        assert "ETH_RPC_URL=https://b.example\n" in chain_vars.as_env_file()
        assert "export CHAIN_NAME=sepolia\n" in chain_vars.as_exports()

    def test_write_env(self, tmp_path):
        path = str(tmp_path / ".env")
        ChainVariables(_context()).write_env(path)
        with open(path, encoding="utf-8") as f:
            assert f"RAW_PRIVATE_KEY={KEY_ONE}\n" in f.read()
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_expand_tokens(self):
        args = ChainVariables(_context()).expand(
            ["cast", "balance", "@wallet", "--rpc-url", "@rpc", "--chain", "@chainid", "@chainname"]
        )
        assert args == [
            "cast",
            "balance",
            KEY_ONE_ADDRESS,
            "--rpc-url",
            "https://b.example",
            "--chain",
            "11155111",
            "sepolia",
        ]

    def test_expand_inside_argument(self):
        (arg,) = ChainVariables(_context()).expand(["--private-key=@key"])
        assert arg == f"--private-key={KEY_ONE}"

    @pytest.mark.anyio
    async def test_context_closes_connection(self):
        ctx = _context()
        async with ctx:
            pass
        ctx.connection.aclose.assert_awaited_once()


class TestBalance:
    @pytest.mark.anyio
    async def test_balance_uses_wallet_address(self):
        ctx = _context()
        ctx.connection.get_balance = AsyncMock(return_value=10**18)
        assert await ctx.balance() == 10**18
        ctx.connection.get_balance.assert_awaited_once_with(KEY_ONE_ADDRESS)

    @pytest.mark.anyio
    async def test_no_balance_without_valid_key(self):
        ctx = _context(private_key="nope")
        ctx.connection.get_balance = AsyncMock()
        assert await ctx.balance() is None
        ctx.connection.get_balance.assert_not_awaited()

    def test_describe_shows_balance(self):
        assert "Balance: 1.5 ETH" in _context().describe(1500000000000000000)
        assert "Balance: unknown" in _context().describe()

    def test_format_ether(self):
        assert format_ether(0) == "0"
        assert format_ether(10**18) == "1"
        assert format_ether(123 * 10**18) == "123"
        assert format_ether(1) == "0.000000000000000001"
