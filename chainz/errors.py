"""
Defines project-specific exception classes.
"""
from typing import List, Optional, Tuple


class ChainzError(Exception):
    """Base class for all custom exceptions in chainz."""
    pass


class InputError(ChainzError):
    """
    Raised when a referenced chain or key does not exist, or when a
    candidate list or persisted record is malformed.
    """
    pass


class AuthenticationError(ChainzError):
    """
    Raised when authenticated decryption fails. A wrong passphrase and a
    tampered ciphertext produce the same error.
    """

    def __init__(self, key_name: Optional[str] = None):
        self.key_name = key_name
        message = "Failed to decrypt"
        if key_name:
            message += f" key '{key_name}'"
        message += ": wrong passphrase or corrupted data"
        super().__init__(message)


class ExternalServiceError(ChainzError):
    """
    Raised when an external secret manager (1Password CLI) or the
    platform keyring fails, is unreachable, or reports an error.
    """

    def __init__(self,
                 message: str,
                 service: Optional[str] = None,
                 orig_exc: Optional[BaseException] = None):
        self.service = service
        self.orig_exc = orig_exc

        full_msg = "External service error"
        if service:
            full_msg += f" ({service})"
        full_msg += f": {message}"
        super().__init__(full_msg)


class NoViableEndpointError(ChainzError):
    """
    Raised when every candidate endpoint of a chain failed its probe.

    ``failures`` holds ``(url, reason)`` pairs in candidate order.
    """

    def __init__(self,
                 network_id: int,
                 failures: Optional[List[Tuple[str, str]]] = None):
        self.network_id = network_id
        self.failures = list(failures or [])

        message = f"No working RPC endpoint for chain id {network_id}"
        if self.failures:
            details = "\n".join(f"  - {url}: {reason}" for url, reason in self.failures)
            message += f":\n{details}"
        super().__init__(message)


class InvalidSecretError(ChainzError):
    """Raised when a resolved secret is not a well-formed private key."""
    pass


class PersistenceError(ChainzError):
    """Raised when the configuration file cannot be read or written."""
    pass
