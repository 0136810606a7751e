"""Configuration file loading, validation and persistence.

Reads the YAML configuration file, validates it against the Pydantic
models in :mod:`chainz.config.schema`, and writes it back atomically.

``${VAR}`` placeholders are *not* expanded here: RPC URLs keep their
template form on disk and are expanded per candidate at probe time.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from chainz.config.schema import ChainDefinition, ChainzConfig
from chainz.constants import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH
from chainz.errors import InputError, PersistenceError
from chainz.vault.models import Secret

logger = logging.getLogger(__name__)


def default_config_path() -> str:
    """Config path: ``$CHAINZ_CONFIG`` if set, else ``~/.chainz.yaml``."""
    return os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    An empty file is an empty mapping.  Raises :class:`PersistenceError`
    on I/O errors and :class:`InputError` on parse errors.
    """
    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise PersistenceError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    try:
        raw_data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InputError(f"Error parsing configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise InputError("Top-level configuration content must be a YAML mapping (dictionary).")
    return raw_data


def parse_config(raw_data: Dict[str, Any]) -> ChainzConfig:
    """Validate a raw mapping, reporting every error at once."""
    try:
        return ChainzConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise InputError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc


class ConfigStore:
    """Chains, keys and variables backed by one YAML file.

    Parameters
    ----------
    path:
        Location of the config file (default: :func:`default_config_path`).
    config:
        Pre-loaded config; when omitted an empty one is used until
        :meth:`load` is called.
    """

    def __init__(self, path: Optional[str] = None, config: Optional[ChainzConfig] = None) -> None:
        self._path = path or default_config_path()
        self.config: ChainzConfig = config or ChainzConfig()

    @property
    def path(self) -> str:
        return self._path

    # ── persistence ─────────────────────────────────────────────────────

    @classmethod
    def load(cls, path: Optional[str] = None, *, missing_ok: bool = True) -> "ConfigStore":
        """Load the config file, or start empty if it does not exist."""
        cfg_fpath = path or default_config_path()
        if not os.path.exists(cfg_fpath):
            if not missing_ok:
                raise PersistenceError(f"Configuration file does not exist: {cfg_fpath}")
            logger.info("No configuration at %s; starting with an empty one.", cfg_fpath)
            return cls(cfg_fpath)

        logger.debug("Loading configuration file: %s", cfg_fpath)
        config = parse_config(_read_config_file(cfg_fpath))
        logger.info(
            "Configuration '%s' loaded (v%s): %d chain(s), %d key(s), %d variable(s).",
            cfg_fpath,
            config.version,
            len(config.chains),
            len(config.keys),
            len(config.variables),
        )
        return cls(cfg_fpath, config)

    def save(self) -> None:
        """Write the config atomically with owner-only permissions."""
        text = yaml.safe_dump(self.config.to_document(), sort_keys=False, allow_unicode=True)
        dir_name = os.path.dirname(os.path.abspath(self._path)) or "."
        try:
            os.makedirs(dir_name, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, prefix=".chainz_", suffix=".tmp")
        except OSError as exc:
            raise PersistenceError(f"Cannot write configuration to {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self._path)
            os.chmod(self._path, 0o600)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistenceError(f"Cannot write configuration to {self._path}: {exc}") from exc
        logger.debug("Configuration saved to %s", self._path)

    # ── chains ──────────────────────────────────────────────────────────

    def list_chains(self) -> List[ChainDefinition]:
        return list(self.config.chains)

    def get_chain(self, name_or_id: Union[str, int]) -> ChainDefinition:
        """Find a chain by name, or by chain id when given a number."""
        return self.config.find_chain(name_or_id)

    def add_chain(self, chain: ChainDefinition) -> None:
        """Insert *chain*, replacing any chain with the same name."""
        for idx, existing in enumerate(self.config.chains):
            if existing.name == chain.name:
                self.config.chains[idx] = chain
                logger.info("Chain '%s' updated.", chain.name)
                return
        self.config.chains.append(chain)
        logger.info("Chain '%s' added.", chain.name)

    def remove_chain(self, name: str) -> ChainDefinition:
        for idx, existing in enumerate(self.config.chains):
            if existing.name == name:
                return self.config.chains.pop(idx)
        raise InputError(f"Chain '{name}' not found")

    # ── keys ────────────────────────────────────────────────────────────

    def list_keys(self) -> List[Secret]:
        return [self.config.keys[name] for name in sorted(self.config.keys)]

    def get_key(self, name: str) -> Secret:
        try:
            return self.config.keys[name]
        except KeyError:
            raise InputError(f"Key '{name}' not found") from None

    def add_key(self, secret: Secret, *, overwrite: bool = False) -> None:
        if secret.name in self.config.keys and not overwrite:
            raise InputError(f"Key '{secret.name}' already exists")
        self.config.keys[secret.name] = secret
        # nosemgrep: python-logger-credential-disclosure (logs name, not value)
        logger.info("Key '%s' stored (%s).", secret.name, secret.kind)

    def remove_key(self, name: str) -> Secret:
        users = [c.name for c in self.config.chains if c.key_name == name]
        if users:
            raise InputError(f"Key '{name}' is used by chain(s): {', '.join(users)}")
        try:
            return self.config.keys.pop(name)
        except KeyError:
            raise InputError(f"Key '{name}' not found") from None

    # ── variables ───────────────────────────────────────────────────────

    def list_variables(self) -> Dict[str, str]:
        return dict(sorted(self.config.variables.items()))

    def get_variable(self, name: str) -> Optional[str]:
        return self.config.variables.get(name)

    def set_variable(self, name: str, value: str) -> None:
        self.config.variables[name] = value

    def remove_variable(self, name: str) -> None:
        if name not in self.config.variables:
            raise InputError(f"Variable '{name}' not found")
        del self.config.variables[name]
