"""RPC endpoint probing and deterministic selection.

Public API
----------
- :class:`EndpointResolver` - fast path + concurrent probe + ordered scan
- :class:`EndpointSet` - candidate templates and expected chain id
- :class:`ResolvedEndpoint` - chosen candidate with its open connection
- :class:`RpcConnection` - async JSON-RPC connection (httpx)
"""

from chainz.endpoints.models import EndpointSet, ProbeResult, ResolvedEndpoint
from chainz.endpoints.connection import RpcConnection, RpcError
from chainz.endpoints.resolver import EndpointResolver

__all__ = [
    "EndpointResolver",
    "EndpointSet",
    "ProbeResult",
    "ResolvedEndpoint",
    "RpcConnection",
    "RpcError",
]
