"""Signing key storage and resolution.

Keys are stored as a tagged union (plain, passphrase-encrypted, 1Password
reference, keyring reference) and resolved to a plaintext private key on
demand through injected passphrase and fetch capabilities.
"""

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
    secret_from_record,
)
from chainz.vault.vault import (
    CredentialVault,
    create_encrypted,
    create_plain,
    derive_address,
    resolve,
)

__all__ = [
    "CredentialVault",
    "EncryptedSecret",
    "ExternalReference",
    "ExternalSecretFetcher",
    "PassphraseProvider",
    "PlainSecret",
    "Secret",
    "SystemFetcher",
    "SystemStoreReference",
    "create_encrypted",
    "create_plain",
    "derive_address",
    "prompt_passphrase",
    "resolve",
    "secret_from_record",
]
