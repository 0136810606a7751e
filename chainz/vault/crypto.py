"""Passphrase sealing for encrypted keys.

- Key derivation: a single SHA-256 pass over the UTF-8 passphrase.  No salt
  and no stretching; stored keys depend on this exact derivation.
- Cipher: AES-256-GCM with a fresh 96-bit random nonce per seal and no
  associated data.  Ciphertext (tag appended) and nonce travel as base64.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from chainz.errors import AuthenticationError, InputError

NONCE_SIZE = 12  # bytes (96 bits)
KEY_SIZE = 32  # bytes (AES-256)


def derive_key(passphrase: str) -> bytes:
    """Derive the 32-byte symmetric key for *passphrase*."""
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


def seal(plaintext: str, passphrase: str) -> Tuple[str, str]:
    """Encrypt *plaintext* under *passphrase*.

    Returns ``(ciphertext_b64, nonce_b64)``.
    """
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(derive_key(passphrase)).encrypt(nonce, plaintext.encode("utf-8"), None)
    return _b64e(ciphertext), _b64e(nonce)


def open_sealed(ciphertext_b64: str, nonce_b64: str, passphrase: str, *, key_name: str = "") -> str:
    """Decrypt a value produced by :func:`seal`.

    Raises :class:`AuthenticationError` when the tag does not verify and
    :class:`InputError` when the stored fields are not valid base64 or the
    nonce has the wrong size.
    """
    ciphertext = _b64d(ciphertext_b64, "ciphertext", key_name)
    nonce = _b64d(nonce_b64, "nonce", key_name)
    if len(nonce) != NONCE_SIZE:
        raise InputError(
            f"Key '{key_name}' has a {len(nonce)}-byte nonce; expected {NONCE_SIZE} bytes."
        )

    try:
        plaintext = AESGCM(derive_key(passphrase)).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise AuthenticationError(key_name or None) from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InputError(f"Key '{key_name}' decrypted to non-UTF-8 data.") from exc


def _b64e(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64d(text: str, field: str, key_name: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputError(f"Key '{key_name}' has a malformed {field} field: {exc}") from exc
