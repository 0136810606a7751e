"""Configuration models, YAML store and RPC URL variable expansion."""

from chainz.config.interpolation import VariableInterpolator, expand
from chainz.config.schema import ChainDefinition, ChainzConfig
from chainz.config.store import ConfigStore

__all__ = [
    "ChainDefinition",
    "ChainzConfig",
    "ConfigStore",
    "VariableInterpolator",
    "expand",
]
