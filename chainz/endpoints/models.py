"""Data types for endpoint resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from chainz.errors import InputError

if TYPE_CHECKING:
    from chainz.endpoints.connection import RpcConnection


@dataclass(frozen=True)
class EndpointSet:
    """Candidate RPC templates for one network, in priority order.

    ``last_known_good`` may have been dropped from ``candidates`` since it
    was recorded; the resolver then simply falls back to the full list.
    """

    candidates: Tuple[str, ...]
    network_id: int
    last_known_good: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.candidates:
            raise InputError(f"No RPC URLs configured for chain id {self.network_id}")

    @classmethod
    def create(
        cls,
        candidates: Iterable[str],
        *,
        network_id: int,
        last_known_good: Optional[str] = None,
    ) -> "EndpointSet":
        return cls(
            candidates=tuple(candidates),
            network_id=network_id,
            last_known_good=last_known_good or None,
        )


@dataclass
class ProbeResult:
    """Outcome of probing one candidate."""

    candidate: str
    url: str
    network_id: Optional[int] = None
    error: Optional[str] = None
    connection: Optional["RpcConnection"] = None
    latency_ms: float = 0.0

    def matches(self, expected: int) -> bool:
        return self.error is None and self.network_id == expected


@dataclass
class ResolvedEndpoint:
    """The chosen endpoint and its open connection.

    ``candidate`` is the template as stored (what gets remembered as last
    known good); ``url`` is its expanded form.
    """

    candidate: str
    url: str
    connection: "RpcConnection"
    from_fast_path: bool = False
