"""Key creation, resolution and address derivation.

Usage::

    from chainz.vault import CredentialVault, create_encrypted

    key = create_encrypted("deployer", "0x...", "hunter2")
    vault = CredentialVault()              # interactive prompt, op + keyring
    private_key = vault.resolve(key)       # prompts for the passphrase
    address = vault.address(key)

Nothing is cached: every resolution prompts, fetches or decrypts again.
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account

from chainz.display.logging_config import secret_redaction_filter
from chainz.errors import InvalidSecretError
from chainz.vault import crypto
from chainz.vault.fetchers import (
    ExternalSecretFetcher,
    PassphraseProvider,
    SystemFetcher,
    prompt_passphrase,
)
from chainz.vault.models import (
    EncryptedSecret,
    ExternalReference,
    PlainSecret,
    Secret,
    SystemStoreReference,
)

logger = logging.getLogger(__name__)


def create_plain(name: str, value: str) -> PlainSecret:
    return PlainSecret(name=name, value=value)


def create_encrypted(name: str, value: str, passphrase: str) -> EncryptedSecret:
    """Seal *value* under *passphrase* with a fresh nonce."""
    ciphertext, nonce = crypto.seal(value, passphrase)
    return EncryptedSecret(name=name, ciphertext=ciphertext, nonce=nonce)


def resolve(
    secret: Secret,
    passphrase_provider: PassphraseProvider,
    fetcher: ExternalSecretFetcher,
) -> str:
    """Return the plaintext private key held by *secret*.

    Raises:
        AuthenticationError: Decryption failed (wrong passphrase or tampering).
        ExternalServiceError: 1Password or the keyring failed.
        InputError: The stored encrypted record is malformed.
    """
    if isinstance(secret, PlainSecret):
        plaintext = secret.value
    elif isinstance(secret, EncryptedSecret):
        passphrase = passphrase_provider(f"Enter decryption password for {secret.name}: ")
        plaintext = crypto.open_sealed(
            secret.ciphertext, secret.nonce, passphrase, key_name=secret.name
        )
    elif isinstance(secret, ExternalReference):
        plaintext = fetcher.fetch_external(secret.vault, secret.item).rstrip()
    elif isinstance(secret, SystemStoreReference):
        plaintext = fetcher.fetch_system(secret.service, secret.account)
    else:
        raise TypeError(f"Unsupported secret type: {type(secret).__name__}")

    secret_redaction_filter.register(plaintext)
    logger.debug("Resolved key '%s' (%s)", secret.name, secret.kind)
    return plaintext


def derive_address(private_key: str) -> str:
    """Return the checksummed address for a hex-encoded private key."""
    try:
        return Account.from_key(private_key.strip()).address
    except Exception as exc:
        raise InvalidSecretError(f"Not a valid private key: {exc}") from exc


class CredentialVault:
    """Resolution facade with bound capabilities.

    Parameters
    ----------
    passphrase_provider:
        Called with a prompt for encrypted keys (default: terminal prompt).
    fetcher:
        Source for 1Password and keyring backed keys
        (default: :class:`SystemFetcher`).
    """

    def __init__(
        self,
        passphrase_provider: Optional[PassphraseProvider] = None,
        fetcher: Optional[ExternalSecretFetcher] = None,
    ) -> None:
        self._passphrase_provider = passphrase_provider or prompt_passphrase
        self._fetcher = fetcher or SystemFetcher()

    @property
    def fetcher(self) -> ExternalSecretFetcher:
        return self._fetcher

    def resolve(self, secret: Secret) -> str:
        return resolve(secret, self._passphrase_provider, self._fetcher)

    def address(self, secret: Secret) -> str:
        return derive_address(self.resolve(secret))

    def describe(self, secret: Secret) -> str:
        """One-line label; only plain keys show an address (no prompting)."""
        if isinstance(secret, PlainSecret):
            try:
                return f"{secret.name} ({derive_address(secret.value)})"
            except InvalidSecretError:
                return f"{secret.name} (invalid key)"
        return f"{secret.name} ({secret.kind})"
