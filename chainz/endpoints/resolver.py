"""Live RPC endpoint selection.

Picks a working endpoint for a chain from its ordered candidate list:

1. **Fast path** - the remembered last-known-good candidate is probed
   alone; if it answers with the right chain id it is used directly.
2. **Fan-out** - otherwise every candidate is expanded and probed
   concurrently, one task per candidate.
3. **Ordered scan** - all probes are awaited, then results are scanned in
   candidate order and the first match wins.  The choice never depends
   on which probe finished first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

from chainz.config.interpolation import VariableInterpolator
from chainz.endpoints.connection import RpcConnection
from chainz.endpoints.models import EndpointSet, ProbeResult, ResolvedEndpoint
from chainz.errors import NoViableEndpointError

logger = logging.getLogger(__name__)

Connector = Callable[[str], RpcConnection]


class EndpointResolver:
    """Endpoint prober and selector.

    Parameters
    ----------
    connect:
        Factory returning an unopened connection for a URL; the connection
        must offer ``chain_id()`` and ``aclose()`` coroutines
        (default: :class:`RpcConnection`).
    max_concurrency:
        Optional cap on simultaneous probes.  ``None`` probes every
        candidate at once.
    """

    def __init__(
        self,
        connect: Optional[Connector] = None,
        *,
        max_concurrency: Optional[int] = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._connect: Connector = connect or RpcConnection
        self._max_concurrency = max_concurrency

    # ── Public API ───────────────────────────────────────────────────────

    async def resolve(
        self,
        endpoints: EndpointSet,
        interpolator: Optional[VariableInterpolator] = None,
    ) -> ResolvedEndpoint:
        """Return the endpoint to use for *endpoints*.

        Raises:
            NoViableEndpointError: No candidate reported the expected chain id.
        """
        interpolator = interpolator or VariableInterpolator()
        expected = endpoints.network_id

        if endpoints.last_known_good:
            result = await self._probe(endpoints.last_known_good, interpolator)
            if result.matches(expected):
                logger.info("Using last known good RPC %s", result.url)
                return _resolved(result, from_fast_path=True)
            await _close(result)
            logger.info(
                "Last known good RPC %s failed (%s); probing all %d candidate(s)",
                result.url,
                _reason(result, expected),
                len(endpoints.candidates),
            )

        results = await self._probe_all(endpoints.candidates, interpolator)

        winner: Optional[ProbeResult] = None
        try:
            for result in results:
                if winner is None and result.matches(expected):
                    winner = result
                else:
                    await _close(result)
        except BaseException:
            for result in results:
                await _close(result)
            raise

        if winner is None:
            raise NoViableEndpointError(
                expected, [(r.url, _reason(r, expected)) for r in results]
            )
        logger.info("Selected RPC %s (%.0fms)", winner.url, winner.latency_ms)
        return _resolved(winner)

    async def check(
        self,
        candidate: str,
        network_id: int,
        interpolator: Optional[VariableInterpolator] = None,
    ) -> ResolvedEndpoint:
        """Probe one (e.g. manually entered) URL through the same path."""
        return await self.resolve(
            EndpointSet.create([candidate], network_id=network_id),
            interpolator,
        )

    # ── Probing ──────────────────────────────────────────────────────────

    async def _probe_all(
        self,
        candidates: tuple,
        interpolator: VariableInterpolator,
    ) -> List[ProbeResult]:
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        )

        async def _bounded(candidate: str) -> ProbeResult:
            if semaphore is None:
                return await self._probe(candidate, interpolator)
            async with semaphore:
                return await self._probe(candidate, interpolator)

        tasks = [asyncio.ensure_future(_bounded(c)) for c in candidates]
        try:
            # gather preserves argument order, whatever the completion order
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Cancelled: finished probes still hold open connections
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for task in tasks:
                if not task.cancelled() and task.exception() is None:
                    await _close(task.result())
            raise

    async def _probe(self, candidate: str, interpolator: VariableInterpolator) -> ProbeResult:
        """Open a connection and ask for the chain id.

        Failures are recorded on the result; only cancellation propagates,
        after the connection is closed.
        """
        url = interpolator.expand(candidate)
        unresolved = interpolator.placeholders(candidate)
        if unresolved:
            logger.debug("RPC %s has unresolved variable(s): %s", candidate, ", ".join(unresolved))

        result = ProbeResult(candidate=candidate, url=url)
        start = time.monotonic()
        try:
            conn = self._connect(url)
        except Exception as exc:
            result.error = f"{type(exc).__name__}: {exc}"
            return result

        result.connection = conn
        try:
            result.network_id = await conn.chain_id()
        except asyncio.CancelledError:
            await _close(result)
            raise
        except Exception as exc:
            result.error = f"{type(exc).__name__}: {exc}"
        result.latency_ms = (time.monotonic() - start) * 1000.0
        logger.debug(
            "Probed %s -> %s",
            url,
            result.network_id if result.error is None else result.error,
        )
        return result


def _resolved(result: ProbeResult, *, from_fast_path: bool = False) -> ResolvedEndpoint:
    if result.connection is None:
        raise RuntimeError(f"Probe result for {result.url} has no open connection")
    return ResolvedEndpoint(
        candidate=result.candidate,
        url=result.url,
        connection=result.connection,
        from_fast_path=from_fast_path,
    )


def _reason(result: ProbeResult, expected: int) -> str:
    if result.error is not None:
        return result.error
    return f"chain id {result.network_id} (expected {expected})"


async def _close(result: ProbeResult) -> None:
    if result.connection is None:
        return
    try:
        await result.connection.aclose()
    except Exception:
        logger.debug("Error closing connection to %s", result.url, exc_info=True)
    result.connection = None
