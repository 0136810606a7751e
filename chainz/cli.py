"""CLI argument parsing and main entry point.

Subcommands:

* ``chainz init``                   - create the config with a default key and chains
* ``chainz use <chain>``            - resolve a chain and write ``.env``
* ``chainz exec <chain> -- cmd``    - run a command with the chain's env and ``@tokens``
* ``chainz list`` / ``add`` / ``remove`` / ``check``
* ``chainz key add|list|rm``
* ``chainz var set|get|list|rm``
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import subprocess
import sys
from typing import List, Optional

import httpx

from chainz.chainlist.client import ChainlistClient
from chainz.config.interpolation import VariableInterpolator
from chainz.config.schema import ChainDefinition
from chainz.config.store import ConfigStore
from chainz.constants import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_INIT_CHAINS,
    DEFAULT_KEY_NAME,
    DEFAULT_KEYRING_SERVICE,
    DEFAULT_LOG_LEVEL,
    DOT_ENV,
    INFURA_API_KEY_VAR,
)
from chainz.context import ChainContext, materialize
from chainz.display.logging_config import setup_logging
from chainz.endpoints.connection import RpcError
from chainz.endpoints.resolver import EndpointResolver
from chainz.errors import ChainzError, InputError
from chainz.variables import ChainVariables
from chainz.vault.models import ExternalReference, SystemStoreReference
from chainz.vault.vault import CredentialVault, create_encrypted, create_plain

module_logger = logging.getLogger(__name__)

_KEY_TYPES = ("plain", "encrypted", "1password", "keyring")


def _load_store(args: argparse.Namespace) -> ConfigStore:
    return ConfigStore.load(getattr(args, "config", None))


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{text}'") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _prompt_secret(prompt: str, given: Optional[str]) -> str:
    if given is not None:
        return given
    value = getpass.getpass(prompt)
    if not value:
        raise InputError("Empty value")
    return value


async def _materialize(args: argparse.Namespace, store: ConfigStore) -> ChainContext:
    resolver = EndpointResolver(max_concurrency=getattr(args, "max_probes", None))
    ctx = await materialize(
        store.config,
        args.chain,
        vault=CredentialVault(),
        resolver=resolver,
        key_name=getattr(args, "key", None),
    )
    if ctx.selection_changed:
        try:
            store.save()
        except BaseException:
            await ctx.aclose()
            raise
    return ctx


async def _fetch_balance(ctx: ChainContext) -> Optional[int]:
    try:
        return await ctx.balance()
    except (RpcError, httpx.HTTPError) as exc:
        module_logger.warning("Balance lookup on %s failed: %s", ctx.rpc_url, exc)
        return None


async def _verify_chain(
    chain: ChainDefinition,
    resolver: EndpointResolver,
    interpolator: VariableInterpolator,
) -> str:
    """Probe *chain*'s RPCs, record the winner and return its URL."""
    endpoint = await resolver.resolve(chain.endpoint_set(), interpolator)
    await endpoint.connection.aclose()
    chain.selected_rpc = endpoint.candidate
    return endpoint.url


# ── ``chainz init`` ─────────────────────────────────────────────────────


async def _init(args: argparse.Namespace) -> None:
    path = args.config or ConfigStore().path
    if os.path.exists(path) and not args.force:
        raise InputError(f"Configuration already exists at {path} (use --force to overwrite)")

    store = ConfigStore(path)
    private_key = _prompt_secret("Enter default private key: ", args.private_key)
    store.add_key(create_plain(DEFAULT_KEY_NAME, private_key))
    if args.infura_api_key:
        store.set_variable(INFURA_API_KEY_VAR, args.infura_api_key)

    wanted = args.chain_id or list(DEFAULT_INIT_CHAINS)
    registry = {entry.chain_id: entry for entry in await ChainlistClient().fetch_all()}
    resolver = EndpointResolver(max_concurrency=args.max_probes)
    interpolator = VariableInterpolator(store.config.variables)

    for chain_id in wanted:
        entry = registry.get(chain_id)
        if entry is None:
            print(f"Failed to add chain {chain_id}: not found in chain registry")
            continue
        chain = ChainDefinition(name=entry.slug, chain_id=chain_id, rpc_urls=entry.rpc)
        try:
            url = await _verify_chain(chain, resolver, interpolator)
        except ChainzError as exc:
            module_logger.warning("Skipping chain %s: %s", chain.name, exc)
            print(f"Failed to add {entry.name}: {exc}")
            continue
        store.add_chain(chain)
        print(f"Added {entry.name} ({url})")

    store.save()
    print(f"Configuration initialized at {store.path}")


def _cmd_init(args: argparse.Namespace) -> None:
    """Entry-point for ``chainz init``."""
    asyncio.run(_init(args))


# ── ``chainz use`` ──────────────────────────────────────────────────────


async def _use(args: argparse.Namespace) -> None:
    store = _load_store(args)
    async with await _materialize(args, store) as ctx:
        chain_vars = ChainVariables(ctx)
        if args.export:
            sys.stdout.write(chain_vars.as_exports())
            return
        print(f"Using chain {ctx.definition.name}")
        print(ctx.describe(await _fetch_balance(ctx)))
        if args.print:
            sys.stdout.write(chain_vars.as_env_file())
        if not args.no_write:
            chain_vars.write_env(args.env_file)


def _cmd_use(args: argparse.Namespace) -> None:
    """Entry-point for ``chainz use``."""
    asyncio.run(_use(args))


# ── ``chainz exec`` ─────────────────────────────────────────────────────


async def _exec_prepare(args: argparse.Namespace) -> tuple:
    store = _load_store(args)
    async with await _materialize(args, store) as ctx:
        chain_vars = ChainVariables(ctx)
        return chain_vars.expand(args.cmd), chain_vars.as_map()


def _cmd_exec(args: argparse.Namespace) -> None:
    """Entry-point for ``chainz exec <chain> -- cmd args...``."""
    cmd = list(args.cmd)
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]
    if not cmd:
        raise InputError("No command given")
    args.cmd = cmd

    argv, env_vars = asyncio.run(_exec_prepare(args))
    child_env = os.environ.copy()
    child_env.update(env_vars)
    module_logger.info("Executing %s", argv[0])
    try:
        proc = subprocess.run(argv, env=child_env, check=False)
    except OSError as exc:
        raise InputError(f"Cannot run {argv[0]}: {exc}") from exc
    sys.exit(proc.returncode)


# ── ``chainz list`` / ``add`` / ``remove`` / ``check`` ─────────────────


def _cmd_list(args: argparse.Namespace) -> None:
    store = _load_store(args)
    chains = store.list_chains()
    if not chains:
        print("No chains configured. Use 'chainz add' to add one.")
        return
    for chain in chains:
        print(chain.describe())
        print()


async def _add(args: argparse.Namespace) -> None:
    store = _load_store(args)
    rpc_urls: List[str] = list(args.rpc or [])
    name = args.name
    if not rpc_urls:
        entry = await ChainlistClient().find(chain_id=args.chain_id)
        rpc_urls = entry.rpc
        name = name or entry.slug
        print(f"Found {entry.name} in chain registry with {len(rpc_urls)} RPC URL(s).")
    if not name:
        raise InputError("--name is required when RPC URLs are given explicitly")

    key_name = args.key or DEFAULT_KEY_NAME
    store.get_key(key_name)

    chain = ChainDefinition(
        name=name,
        chain_id=args.chain_id,
        rpc_urls=rpc_urls,
        key_name=key_name,
        verification_url=args.verification_url,
        verification_api_key=args.verification_api_key,
    )
    print("Testing RPCs...")
    resolver = EndpointResolver(max_concurrency=args.max_probes)
    url = await _verify_chain(chain, resolver, VariableInterpolator(store.config.variables))
    print(f"✓ {url}")

    store.add_chain(chain)
    store.save()
    print(f"Added chain {chain.name}")
    print(chain.describe())


def _cmd_add(args: argparse.Namespace) -> None:
    asyncio.run(_add(args))


def _cmd_remove(args: argparse.Namespace) -> None:
    store = _load_store(args)
    store.remove_chain(args.name)
    store.save()
    print(f"Removed chain '{args.name}'")


async def _check(args: argparse.Namespace) -> None:
    store = _load_store(args)
    resolver = EndpointResolver()
    endpoint = await resolver.check(
        args.url, args.chain_id, VariableInterpolator(store.config.variables)
    )
    async with endpoint.connection:
        print(f"✓ RPC working: {endpoint.url}")


def _cmd_check(args: argparse.Namespace) -> None:
    asyncio.run(_check(args))


# ── ``chainz key`` ──────────────────────────────────────────────────────


def _cmd_key(args: argparse.Namespace) -> None:
    """Entry-point for ``chainz key add/list/rm``."""
    store = _load_store(args)
    vault = CredentialVault()
    action = args.key_action

    if action == "add":
        if args.name in store.config.keys and not args.force:
            raise InputError(f"Key '{args.name}' already exists (use --force to replace it)")
        if args.type == "plain":
            secret = create_plain(args.name, _prompt_secret("Enter private key: ", args.value))
        elif args.type == "encrypted":
            value = _prompt_secret("Enter private key: ", args.value)
            passphrase = _prompt_secret("Enter encryption password: ", None)
            if _prompt_secret("Confirm encryption password: ", None) != passphrase:
                raise InputError("Passwords do not match")
            secret = create_encrypted(args.name, value, passphrase)
        elif args.type == "1password":
            if not args.vault or not args.item:
                raise InputError("--vault and --item are required for 1password keys")
            secret = ExternalReference(name=args.name, vault=args.vault, item=args.item)
        else:
            account = args.username or args.name
            value = _prompt_secret("Enter private key: ", args.value)
            vault.fetcher.store_system(args.service, account, value)
            secret = SystemStoreReference(name=args.name, service=args.service, account=account)

        store.add_key(secret, overwrite=args.force)
        store.save()
        print(f"Added key '{args.name}'")

    elif action == "list":
        keys = store.list_keys()
        if not keys:
            print("No stored keys")
            return
        print("Stored keys:")
        for secret in keys:
            print(f"- {vault.describe(secret)}")

    elif action == "rm":
        store.remove_key(args.name)
        store.save()
        print(f"Removed key '{args.name}'")

    else:
        raise InputError("Missing key action (add, list, rm)")


# ── ``chainz var`` ──────────────────────────────────────────────────────


def _cmd_var(args: argparse.Namespace) -> None:
    """Entry-point for ``chainz var set/get/list/rm``."""
    store = _load_store(args)
    action = args.var_action

    if action == "set":
        store.set_variable(args.name, args.value)
        store.save()
        print(f"Set variable {args.name} = {args.value}")

    elif action == "get":
        value = store.get_variable(args.name)
        if value is None:
            print(f"Variable '{args.name}' not found", file=sys.stderr)
            sys.exit(1)
        print(f"{args.name} = {value}")

    elif action == "list":
        variables = store.list_variables()
        if not variables:
            print("No variables set")
            return
        print("Variables:")
        for name, value in variables.items():
            print(f"  {name} = {value}")

    elif action == "rm":
        store.remove_variable(args.name)
        store.save()
        print(f"Removed variable '{args.name}'")

    else:
        raise InputError("Missing var action (set, get, list, rm)")


# ── CLI parser construction ──────────────────────────────────────────────


def _add_chain_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("chain", help="Chain name or chain id")
    sp.add_argument("--key", default=None, help="Use this key instead of the chain's own")
    sp.add_argument(
        "--max-probes",
        type=_positive_int,
        default=None,
        help="Maximum RPC probes in flight (default: all candidates at once)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=f"{APP_NAME} v{APP_VERSION} - manage EVM chain configurations",
    )
    parser.add_argument("--config", default=None, help="Config file (default: ~/.chainz.yaml)")
    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL.lower(),
        choices=["debug", "info", "warning", "error", "critical"],
        help="File log level (default: warning)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # ── init ────────────────────────────────────────────────────
    sp_init = subparsers.add_parser(
        "init",
        help="Create the config with a default key and the common chains",
    )
    sp_init.add_argument("--force", action="store_true", help="Overwrite an existing config")
    sp_init.add_argument(
        "--private-key", default=None, help="Default private key (prompted if omitted)"
    )
    sp_init.add_argument(
        "--infura-api-key", default=None, help=f"Stored as the {INFURA_API_KEY_VAR} variable"
    )
    sp_init.add_argument(
        "--chain-id",
        type=int,
        action="append",
        default=None,
        help="Chain id to add, repeatable (default: a set of popular chains)",
    )
    sp_init.add_argument("--max-probes", type=_positive_int, default=None)
    sp_init.set_defaults(func=_cmd_init)

    # ── use ─────────────────────────────────────────────────────
    sp_use = subparsers.add_parser(
        "use",
        help="Use a chain by name or chain id. Writes a local .env which can be sourced",
    )
    _add_chain_args(sp_use)
    sp_use.add_argument("-p", "--print", action="store_true", help="Print the env file")
    sp_use.add_argument(
        "-e", "--export", action="store_true", help="Only print evaluable export lines"
    )
    sp_use.add_argument("--no-write", action="store_true", help="Do not write the env file")
    sp_use.add_argument("--env-file", default=DOT_ENV, help="Env file path (default: .env)")
    sp_use.set_defaults(func=_cmd_use)

    # ── exec ────────────────────────────────────────────────────
    sp_exec = subparsers.add_parser(
        "exec",
        help="Run a command with the chain's env; expands @wallet @rpc @chainid @chainname @key",
    )
    _add_chain_args(sp_exec)
    sp_exec.add_argument("cmd", nargs=argparse.REMAINDER, help="Command and arguments")
    sp_exec.set_defaults(func=_cmd_exec)

    # ── list ────────────────────────────────────────────────────
    sp_list = subparsers.add_parser("list", help="List all chains")
    sp_list.set_defaults(func=_cmd_list)

    # ── add ─────────────────────────────────────────────────────
    sp_add = subparsers.add_parser("add", help="Add or replace a chain")
    sp_add.add_argument("--chain-id", type=int, required=True, help="Chain id")
    sp_add.add_argument("--name", default=None, help="Chain name (default: registry name)")
    sp_add.add_argument(
        "--rpc",
        action="append",
        default=None,
        help="Candidate RPC URL, repeatable (default: from the chain registry)",
    )
    sp_add.add_argument("--key", default=None, help="Key name (default: 'default')")
    sp_add.add_argument("--verification-url", default=None)
    sp_add.add_argument("--verification-api-key", default=None)
    sp_add.add_argument("--max-probes", type=_positive_int, default=None)
    sp_add.set_defaults(func=_cmd_add)

    # ── remove ──────────────────────────────────────────────────
    sp_remove = subparsers.add_parser("remove", help="Remove a chain")
    sp_remove.add_argument("name", help="Chain name")
    sp_remove.set_defaults(func=_cmd_remove)

    # ── check ───────────────────────────────────────────────────
    sp_check = subparsers.add_parser("check", help="Test a single RPC URL")
    sp_check.add_argument("url", help="RPC URL (supports ${VAR})")
    sp_check.add_argument("--chain-id", type=int, required=True, help="Expected chain id")
    sp_check.set_defaults(func=_cmd_check)

    # ── key ─────────────────────────────────────────────────────
    sp_key = subparsers.add_parser("key", help="Manage keys (add, list, rm)")
    key_sub = sp_key.add_subparsers(dest="key_action")

    sp_key_add = key_sub.add_parser("add", help="Store a key")
    sp_key_add.add_argument("name", help="Key name")
    sp_key_add.add_argument("--type", choices=_KEY_TYPES, default="plain", help="Key backend")
    sp_key_add.add_argument(
        "--value", default=None, help="Private key (prompted if omitted)"
    )
    sp_key_add.add_argument("--vault", default=None, help="1Password vault name")
    sp_key_add.add_argument("--item", default=None, help="1Password item name")
    sp_key_add.add_argument(
        "--service", default=DEFAULT_KEYRING_SERVICE, help="Keyring service name"
    )
    sp_key_add.add_argument("--username", default=None, help="Keyring account (default: key name)")
    sp_key_add.add_argument("--force", action="store_true", help="Replace an existing key")

    key_sub.add_parser("list", help="List keys")

    sp_key_rm = key_sub.add_parser("rm", help="Remove a key")
    sp_key_rm.add_argument("name", help="Key name")

    sp_key.set_defaults(func=_cmd_key)

    # ── var ─────────────────────────────────────────────────────
    sp_var = subparsers.add_parser("var", help="Manage RPC URL variables (set, get, list, rm)")
    var_sub = sp_var.add_subparsers(dest="var_action")

    sp_var_set = var_sub.add_parser("set", help="Set a variable")
    sp_var_set.add_argument("name")
    sp_var_set.add_argument("value")

    sp_var_get = var_sub.add_parser("get", help="Show a variable")
    sp_var_get.add_argument("name")

    var_sub.add_parser("list", help="List variables")

    sp_var_rm = var_sub.add_parser("rm", help="Remove a variable")
    sp_var_rm.add_argument("name")

    sp_var.set_defaults(func=_cmd_var)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)
    module_logger.info("---- %s v%s: %s ----", APP_NAME, APP_VERSION, args.command)
    try:
        args.func(args)
    except ChainzError as exc:
        module_logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(130)
