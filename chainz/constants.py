"""Shared constants for chainz."""

import os

APP_NAME = "chainz"
APP_VERSION = "0.3.0"

# Config file
CONFIG_FILE_NAME = ".chainz.yaml"
CONFIG_ENV_VAR = "CHAINZ_CONFIG"
CONFIG_VERSION = "1"
DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser("~"), CONFIG_FILE_NAME)

# Keys
DEFAULT_KEY_NAME = "default"
DEFAULT_KEYRING_SERVICE = "chainz"

# Env export
DOT_ENV = ".env"

# Logging defaults
LOG_DIR = os.path.join(os.path.expanduser("~"), ".chainz", "logs")
DEFAULT_LOG_LEVEL = "WARNING"

# Network defaults
CHAINLIST_URL = "https://chainid.network/chains.json"
DEFAULT_RPC_TIMEOUT = 10.0  # seconds per JSON-RPC request
CHAINLIST_TIMEOUT = 15.0  # seconds for the registry download

# chainz init
INFURA_API_KEY_VAR = "INFURA_API_KEY"
DEFAULT_INIT_CHAINS = (
    1, 56, 8453, 42161, 43114, 137, 130, 1301, 10, 81457, 59144, 100, 167000, 534352, 11155111,
)
