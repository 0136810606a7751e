"""Export a resolved chain to shell tooling.

Two forms are produced from a :class:`~chainz.context.ChainContext`:

* environment variables (``.env`` file, ``export`` lines, or the env of
  a child process), and
* ``@token`` expansion inside an argument list, e.g.
  ``cast balance @wallet --rpc-url @rpc``.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List

from chainz.constants import DOT_ENV
from chainz.context import ChainContext

logger = logging.getLogger(__name__)


class ChainVariables:
    """Environment and ``@token`` views of one chain context."""

    def __init__(self, ctx: ChainContext) -> None:
        definition = ctx.definition
        rows = [
            ("WALLET_ADDRESS", "@wallet", ctx.address or ""),
            ("ETH_RPC_URL", "@rpc", ctx.rpc_url),
            ("CHAIN_ID", "@chainid", str(definition.chain_id)),
            ("CHAIN_NAME", "@chainname", definition.name),
            ("RAW_PRIVATE_KEY", "@key", ctx.private_key),
        ]
        self._env: Dict[str, str] = {}
        self._expansions: Dict[str, str] = {}
        for env_var, token, value in rows:
            self._env[env_var] = value
            self._expansions[token] = value

        if definition.verification_url:
            self._env["VERIFICATION_URL"] = definition.verification_url
        if definition.verification_api_key:
            self._env["VERIFICATION_API_KEY"] = definition.verification_api_key

    def as_map(self) -> Dict[str, str]:
        return dict(self._env)

    def as_env_file(self) -> str:
        """``KEY=VALUE`` lines, one per variable."""
        return "".join(f"{var}={val}\n" for var, val in self._env.items())

    def as_exports(self) -> str:
        """``export KEY=VALUE`` lines suitable for ``eval``."""
        return "".join(f"export {var}={val}\n" for var, val in self._env.items())

    def write_env(self, path: str = DOT_ENV) -> str:
        """Write the env file (mode 0600) and return its path."""
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.as_env_file())
        os.chmod(path, 0o600)
        logger.info("Wrote %d variable(s) to %s", len(self._env), path)
        return path

    def expand(self, args: List[str]) -> List[str]:
        """Replace ``@tokens`` in every argument.

        Longer tokens go first so ``@chainid`` is not eaten by a shorter
        token that happens to prefix it.
        """
        tokens = sorted(self._expansions, key=len, reverse=True)
        expanded = []
        for arg in args:
            for token in tokens:
                arg = arg.replace(token, self._expansions[token])
            expanded.append(arg)
        return expanded
