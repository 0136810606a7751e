"""Public chain registry (chainid.network) lookups."""

from chainz.chainlist.client import ChainlistClient, ChainlistEntry

__all__ = ["ChainlistClient", "ChainlistEntry"]
