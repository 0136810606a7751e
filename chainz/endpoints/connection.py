"""Minimal async JSON-RPC client for EVM nodes.

Only what endpoint probing and the CLI need: ``eth_chainId`` and
``eth_getBalance`` over HTTP(S), on top of ``httpx.AsyncClient``.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, List, Optional

import httpx

from chainz.constants import DEFAULT_RPC_TIMEOUT

logger = logging.getLogger(__name__)

_SUPPORTED_SCHEMES = ("http://", "https://")


class RpcError(Exception):
    """Raised when a node returns a JSON-RPC error or a malformed reply."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        self.code = code
        super().__init__(message if code is None else f"{message} (code {code})")


class RpcConnection:
    """Async HTTP JSON-RPC connection to a single node.

    Parameters
    ----------
    url:
        Fully expanded RPC URL (``http://`` or ``https://``).
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"RpcConnection({self.url!r})"

    # ── lifecycle ───────────────────────────────────────────────────

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if not self.url.lower().startswith(_SUPPORTED_SCHEMES):
                raise RpcError(f"Unsupported RPC URL scheme: {self.url}")
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RpcConnection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── JSON-RPC ────────────────────────────────────────────────────

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send one JSON-RPC call and return its ``result``.

        Transport errors propagate as ``httpx.HTTPError``; error replies
        raise :class:`RpcError`.
        """
        client = self._ensure_client()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        resp = await client.post(self.url, json=payload)
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError as exc:
            raise RpcError(f"Invalid JSON from {method}: {exc}") from exc

        if not isinstance(body, dict):
            raise RpcError(f"Unexpected reply to {method}: {body!r}")
        if body.get("error") is not None:
            err = body["error"]
            if isinstance(err, dict):
                raise RpcError(str(err.get("message", "unknown error")), err.get("code"))
            raise RpcError(str(err))
        if "result" not in body:
            raise RpcError(f"Reply to {method} has no result")
        return body["result"]

    async def chain_id(self) -> int:
        """Return the node's network id (``eth_chainId``)."""
        return _parse_quantity(await self.request("eth_chainId"), "eth_chainId")

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Return the balance of *address* in wei."""
        result = await self.request("eth_getBalance", [address, block])
        return _parse_quantity(result, "eth_getBalance")


def _parse_quantity(value: Any, method: str) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            pass
    raise RpcError(f"Malformed quantity from {method}: {value!r}")
