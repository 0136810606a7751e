"""Runtime context for a configured chain.

:func:`materialize` ties the pieces together::

    store = ConfigStore.load()
    ctx = await materialize(store.config, "ethereum", vault=CredentialVault(),
                            resolver=EndpointResolver())
    if ctx.selection_changed:
        store.save()           # persist the new last-known-good RPC

The only mutation is ``definition.selected_rpc``; saving it is the
caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from chainz.config.interpolation import VariableInterpolator
from chainz.config.schema import ChainDefinition, ChainzConfig
from chainz.endpoints.connection import RpcConnection
from chainz.endpoints.resolver import EndpointResolver
from chainz.errors import InputError, InvalidSecretError
from chainz.vault.models import Secret
from chainz.vault.vault import CredentialVault, derive_address

logger = logging.getLogger(__name__)


@dataclass
class ChainContext:
    """A chain paired with a live endpoint and a resolved key."""

    definition: ChainDefinition
    rpc_url: str
    connection: RpcConnection
    key: Secret
    private_key: str
    selection_changed: bool = False

    @property
    def address(self) -> Optional[str]:
        """Wallet address, or ``None`` if the key is not a valid private key."""
        try:
            return derive_address(self.private_key)
        except InvalidSecretError:
            return None

    async def balance(self) -> Optional[int]:
        """Wallet balance in wei, or ``None`` without a valid key."""
        address = self.address
        if address is None:
            return None
        return await self.connection.get_balance(address)

    async def aclose(self) -> None:
        await self.connection.aclose()

    async def __aenter__(self) -> "ChainContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def describe(self, balance: Optional[int] = None) -> str:
        shown = "unknown" if balance is None else f"{format_ether(balance)} ETH"
        lines = [
            f"Chain: {self.definition.name}",
            f"├─ ID: {self.definition.chain_id}",
            f"├─ RPC: {self.rpc_url}",
            f"├─ Wallet: {self.address or 'None'}",
            f"└─ Balance: {shown}",
        ]
        return "\n".join(lines)


def format_ether(wei: int) -> str:
    """``1500000000000000000`` -> ``"1.5"``."""
    return f"{Decimal(wei).scaleb(-18).normalize():f}"


async def materialize(
    config: ChainzConfig,
    name_or_id: Union[str, int],
    *,
    vault: CredentialVault,
    resolver: EndpointResolver,
    key_name: Optional[str] = None,
) -> ChainContext:
    """Resolve a chain's endpoint and key into a :class:`ChainContext`.

    Raises:
        InputError: Unknown chain or key name, or no RPC URLs configured.
        NoViableEndpointError: No candidate endpoint answered correctly.
        AuthenticationError / ExternalServiceError: Key resolution failed.
    """
    definition = config.find_chain(name_or_id)
    wanted_key = key_name or definition.key_name
    if wanted_key not in config.keys:
        raise InputError(f"Key '{wanted_key}' not found (used by chain '{definition.name}')")
    key = config.keys[wanted_key]

    interpolator = VariableInterpolator(config.variables)
    endpoint = await resolver.resolve(definition.endpoint_set(), interpolator)

    try:
        private_key = vault.resolve(key)
    except BaseException:
        await endpoint.connection.aclose()
        raise

    changed = definition.selected_rpc != endpoint.candidate
    if changed:
        logger.info(
            "Chain '%s': last known good RPC %s -> %s",
            definition.name,
            definition.selected_rpc,
            endpoint.candidate,
        )
        definition.selected_rpc = endpoint.candidate

    return ChainContext(
        definition=definition,
        rpc_url=endpoint.url,
        connection=endpoint.connection,
        key=key,
        private_key=private_key,
        selection_changed=changed,
    )
