"""Read-only async client for the public chain registry.

Downloads ``chains.json`` from chainid.network (or a compatible mirror)
to look up a chain's id, name and published RPC URLs when adding it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from chainz.constants import CHAINLIST_TIMEOUT, CHAINLIST_URL
from chainz.errors import ExternalServiceError, InputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainlistEntry:
    """One chain as published by the registry."""

    name: str
    chain_id: int
    rpc: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ChainlistEntry"]:
        """Construct from a registry JSON object (``None`` if unusable)."""
        chain_id = data.get("chainId")
        name = data.get("name")
        if not isinstance(chain_id, int) or not isinstance(name, str):
            return None
        rpc_raw = data.get("rpc") or []
        rpc = [u for u in rpc_raw if isinstance(u, str) and u]
        return cls(name=name, chain_id=chain_id, rpc=rpc)

    @property
    def slug(self) -> str:
        """Config-friendly name (``"OP Mainnet"`` -> ``"op_mainnet"``)."""
        return self.name.lower().replace(" ", "_")


class ChainlistClient:
    """Async HTTP client for the chain registry.

    Parameters
    ----------
    url:
        Location of the ``chains.json`` document.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str = CHAINLIST_URL,
        *,
        timeout: float = CHAINLIST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def fetch_all(self) -> List[ChainlistEntry]:
        """Download and parse every registry entry."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._url)
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ExternalServiceError(
                f"Failed to fetch {self._url}: {exc}", service="chainlist", orig_exc=exc
            ) from exc

        if not isinstance(payload, list):
            raise ExternalServiceError(
                f"Unexpected registry payload from {self._url}", service="chainlist"
            )
        parsed = (ChainlistEntry.from_dict(d) for d in payload if isinstance(d, dict))
        entries = [e for e in parsed if e is not None]
        logger.debug("Chain registry returned %d entries", len(entries))
        return entries

    async def find(
        self,
        *,
        chain_id: Optional[int] = None,
        name: Optional[str] = None,
    ) -> ChainlistEntry:
        """Look a chain up by id, or by case-insensitive name."""
        if chain_id is None and name is None:
            raise InputError("Either a chain id or a chain name is required")

        entries = await self.fetch_all()
        if chain_id is not None:
            for entry in entries:
                if entry.chain_id == chain_id:
                    return entry
        elif name is not None:
            wanted = name.lower()
            for entry in entries:
                if entry.name.lower() == wanted or entry.slug == wanted:
                    return entry
        raise InputError(
            f"Chain {chain_id if chain_id is not None else repr(name)} not found in chain registry"
        )
