"""
chainz - per-chain credentials and RPC endpoint selection for EVM tooling.

Stores named signing keys (plain, passphrase-encrypted, 1Password and OS
keyring backed), named chain definitions with candidate RPC lists, and
resolves a chain into a live endpoint plus a usable key on demand.
"""

from chainz.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__app_name__ = APP_NAME

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "__version__",
    "__app_name__",
]
