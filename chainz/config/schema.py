"""Pydantic configuration models for chainz.

Defines the persisted config structure (``~/.chainz.yaml``)::

    version: "1"
    variables:
      INFURA_API_KEY: abc123
    keys:
      default: {name: default, type: PrivateKey, value: "0x..."}
    chains:
      - name: ethereum
        chain_id: 1
        rpc_urls: ["https://mainnet.infura.io/v3/${INFURA_API_KEY}", ...]
        selected_rpc: "https://mainnet.infura.io/v3/${INFURA_API_KEY}"
        key_name: default
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from chainz.constants import CONFIG_VERSION, DEFAULT_KEY_NAME
from chainz.errors import InputError
from chainz.vault.models import Secret

if TYPE_CHECKING:
    from chainz.endpoints.models import EndpointSet


class ChainDefinition(BaseModel):
    """A named chain with its candidate RPC endpoints and key reference."""

    name: str = Field(..., min_length=1, description="Unique chain name.")
    chain_id: int = Field(..., ge=0, description="Expected network id (eth_chainId).")
    rpc_urls: List[str] = Field(
        default_factory=list,
        description="Candidate RPC URLs in priority order. Supports ${VAR}.",
    )
    selected_rpc: Optional[str] = Field(
        default=None,
        description="Last candidate that probed successfully (template form).",
    )
    verification_api_key: Optional[str] = None
    verification_url: Optional[str] = None
    key_name: str = Field(default=DEFAULT_KEY_NAME, min_length=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("rpc_urls")
    @classmethod
    def _strip_urls(cls, v: List[str]) -> List[str]:
        return [u.strip() for u in v if u and u.strip()]

    def endpoint_set(self) -> "EndpointSet":
        """Build the resolver input for this chain."""
        from chainz.endpoints.models import EndpointSet

        return EndpointSet.create(
            self.rpc_urls,
            network_id=self.chain_id,
            last_known_good=self.selected_rpc,
        )

    def describe(self) -> str:
        lines = [
            f"Chain: {self.name}",
            f"├─ ID: {self.chain_id}",
            f"├─ Active RPC: {self.selected_rpc or 'None'}",
            f"├─ Verification URL: {self.verification_url or 'None'}",
            f"├─ Verification Key: {self.verification_api_key or 'None'}",
            f"└─ Key Name: {self.key_name}",
        ]
        return "\n".join(lines)


class ChainzConfig(BaseModel):
    """Root configuration model."""

    version: str = Field(default=CONFIG_VERSION, description="Config format version.")
    chains: List[ChainDefinition] = Field(default_factory=list)
    keys: Dict[str, Secret] = Field(
        default_factory=dict,
        description="Key name -> key record (tagged by 'type').",
    )
    variables: Dict[str, str] = Field(
        default_factory=dict,
        description="Values substituted into ${VAR} placeholders of RPC URLs.",
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_key_names(cls, data: object) -> object:
        # Hand-written records may omit ``name``; the mapping key supplies it
        if isinstance(data, dict) and isinstance(data.get("keys"), dict):
            data = dict(data)
            data["keys"] = {
                k: ({"name": k, **v} if isinstance(v, dict) else v)
                for k, v in data["keys"].items()
            }
        return data

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, v: object) -> object:
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify_variables(cls, v: object) -> object:
        # YAML turns bare numbers into ints; variables are always text
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def _check_unique_names(self) -> "ChainzConfig":
        seen = set()
        for chain in self.chains:
            if chain.name in seen:
                raise ValueError(f"Duplicate chain name '{chain.name}'")
            seen.add(chain.name)
        for key_name, secret in self.keys.items():
            if secret.name != key_name:
                raise ValueError(
                    f"Key stored under '{key_name}' is named '{secret.name}'"
                )
        return self

    def find_chain(self, name_or_id: Union[str, int]) -> ChainDefinition:
        """Find a chain by name, or by chain id when given a number."""
        for chain in self.chains:
            if chain.name == name_or_id:
                return chain
        if isinstance(name_or_id, int) or name_or_id.strip().isdigit():
            chain_id = int(name_or_id)
            for chain in self.chains:
                if chain.chain_id == chain_id:
                    return chain
        raise InputError(f"Chain '{name_or_id}' not found")

    def to_document(self) -> dict:
        """Serialise to the on-disk mapping (disk field names for keys)."""
        return {
            "version": self.version,
            "variables": dict(self.variables),
            "keys": {name: secret.to_record() for name, secret in self.keys.items()},
            "chains": [chain.model_dump() for chain in self.chains],
        }
