"""Pydantic models for stored signing keys.

A key is exactly one of four variants, discriminated on disk by ``type``:

* ``PrivateKey``   -> :class:`PlainSecret`
* ``EncryptedKey`` -> :class:`EncryptedSecret`
* ``OnePassword``  -> :class:`ExternalReference`
* ``Keyring``      -> :class:`SystemStoreReference`

Models are frozen; re-keying produces a new instance.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _SecretBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Unique key name.")

    def to_record(self) -> Dict[str, Any]:
        """Serialise to the on-disk mapping (disk field names, tag included)."""
        return self.model_dump(by_alias=True)


class PlainSecret(_SecretBase):
    """Raw private key stored as-is."""

    type: Literal["PrivateKey"] = "PrivateKey"
    value: str = Field(..., repr=False)

    @property
    def kind(self) -> str:
        return "plain"


class EncryptedSecret(_SecretBase):
    """AES-256-GCM sealed private key; both fields are base64 text."""

    type: Literal["EncryptedKey"] = "EncryptedKey"
    ciphertext: str = Field(..., alias="value")
    nonce: str

    @property
    def kind(self) -> str:
        return "encrypted"


class ExternalReference(_SecretBase):
    """Coordinates of an item in a 1Password vault."""

    type: Literal["OnePassword"] = "OnePassword"
    vault: str = Field(..., min_length=1)
    item: str = Field(..., min_length=1)

    @property
    def kind(self) -> str:
        return "1password"


class SystemStoreReference(_SecretBase):
    """Coordinates of an entry in the platform keyring."""

    type: Literal["Keyring"] = "Keyring"
    service: str = Field(..., min_length=1)
    account: str = Field(..., alias="username", min_length=1)

    @property
    def kind(self) -> str:
        return "keyring"


Secret = Annotated[
    Union[PlainSecret, EncryptedSecret, ExternalReference, SystemStoreReference],
    Field(discriminator="type"),
]

_SECRET_ADAPTER: TypeAdapter[Secret] = TypeAdapter(Secret)


def secret_from_record(record: Dict[str, Any]) -> Secret:
    """Build a :data:`Secret` from an on-disk mapping.

    Raises ``pydantic.ValidationError`` for unknown tags or missing fields.
    """
    return _SECRET_ADAPTER.validate_python(record)
