"""Capabilities the vault needs from its environment.

Two small seams keep key resolution testable without a terminal or
external tools::

    PassphraseProvider = Callable[[str], str]   # prompt text -> passphrase

    class ExternalSecretFetcher:
        def fetch_external(self, vault: str, item: str) -> str: ...
        def fetch_system(self, service: str, account: str) -> str: ...
        def store_system(self, service: str, account: str, value: str) -> None: ...

Built-in implementations:

* :func:`prompt_passphrase` - interactive prompt via ``getpass``
* :class:`SystemFetcher` - ``op`` CLI for 1Password, ``keyring`` for the OS store
"""

from __future__ import annotations

import getpass
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Callable, List

import keyring
from keyring.errors import KeyringError

from chainz.errors import ExternalServiceError

logger = logging.getLogger(__name__)

PassphraseProvider = Callable[[str], str]

ONE_PASSWORD_CLI = "op"


def prompt_passphrase(prompt: str) -> str:
    """Read a passphrase from the terminal without echo."""
    return getpass.getpass(prompt)


class ExternalSecretFetcher(ABC):
    """Abstract base class for externally held key material."""

    @abstractmethod
    def fetch_external(self, vault: str, item: str) -> str:
        """Return the item from the external secret manager."""

    @abstractmethod
    def fetch_system(self, service: str, account: str) -> str:
        """Return the entry from the platform secret store."""

    @abstractmethod
    def store_system(self, service: str, account: str, value: str) -> None:
        """Write an entry to the platform secret store."""


class SystemFetcher(ExternalSecretFetcher):
    """Default fetcher backed by the 1Password CLI and the OS keyring.

    Each call is a single blocking operation with no retry and no timeout;
    failures surface immediately as :class:`ExternalServiceError`.
    """

    def __init__(self, op_binary: str = ONE_PASSWORD_CLI) -> None:
        self._op_binary = op_binary

    # ── 1Password ───────────────────────────────────────────────────────

    def _op_command(self, vault: str, item: str) -> List[str]:
        return [self._op_binary, "read", f"op://{vault}/{item}"]

    def fetch_external(self, vault: str, item: str) -> str:
        cmd = self._op_command(vault, item)
        logger.debug("Reading 1Password item '%s' from vault '%s'", item, vault)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ExternalServiceError(
                f"Failed to read from 1Password: {exc}", service="1password", orig_exc=exc
            ) from exc

        if proc.returncode != 0:
            raise ExternalServiceError(
                f"Failed to read from 1Password: {proc.stderr.strip()}",
                service="1password",
            )
        return proc.stdout

    # ── OS keyring ──────────────────────────────────────────────────────

    def fetch_system(self, service: str, account: str) -> str:
        logger.debug("Reading keyring entry service='%s' account='%s'", service, account)
        try:
            value = keyring.get_password(service, account)
        except KeyringError as exc:
            raise ExternalServiceError(
                f"Keyring unavailable: {exc}", service="keyring", orig_exc=exc
            ) from exc

        if value is None:
            raise ExternalServiceError(
                f"No keyring entry for service '{service}' and account '{account}'",
                service="keyring",
            )
        return value

    def store_system(self, service: str, account: str, value: str) -> None:
        try:
            keyring.set_password(service, account, value)
        except KeyringError as exc:
            raise ExternalServiceError(
                f"Keyring unavailable: {exc}", service="keyring", orig_exc=exc
            ) from exc
        logger.debug("Keyring entry stored for service='%s' account='%s'", service, account)
