#!/usr/bin/env python3
"""omyvault command line: pool id, vault address prediction and the factory directory."""

from __future__ import annotations

import argparse
import logging
import sys

from . import config
from .errors import VaultError
from .factory import compute_vault_address, load_creation_code

logger = logging.getLogger("omyvault.cli")


def _setup_logging(verbose: bool) -> None:
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root = logging.getLogger("omyvault")
    root.addHandler(console)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="OmyVault tooling")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("pool-id", help="Print the configured pool key and its id")

    predict = sub.add_parser("predict-address", help="Predict a vault's CREATE2 address")
    predict.add_argument("--creator", required=True, help="Vault creator (becomes owner)")
    predict.add_argument("--nonce", type=int, default=None, help="Creator nonce (default: on-chain or 0)")
    predict.add_argument("--agent", default=None, help="Agent address (omit for no agent)")
    predict.add_argument("--tick-lower", type=int, default=config.DEFAULT_ALLOWED_TICK_LOWER)
    predict.add_argument("--tick-upper", type=int, default=config.DEFAULT_ALLOWED_TICK_UPPER)
    predict.add_argument(
        "--swap-allowed",
        action=argparse.BooleanOptionalAction,
        default=config.DEFAULT_SWAP_ALLOWED,
    )
    predict.add_argument("--max-positions", type=int, default=config.DEFAULT_MAX_POSITIONS_K)
    predict.add_argument("--factory", default=config.FACTORY_ADDRESS, help="Factory address")
    predict.add_argument("--artifact", default=config.VAULT_ARTIFACT, help="Compiled vault artifact JSON")
    predict.add_argument(
        "--check",
        action="store_true",
        help="Cross-check against the deployed factory (RPC_URL unless --rpc-url)",
    )
    predict.add_argument(
        "--rpc-url",
        default=None,
        help="Cross-check against the deployed factory at this RPC URL",
    )

    vaults = sub.add_parser("vaults", help="Read the deployed factory's vault directory")
    vaults.add_argument("--creator", default=None, help="List the vaults this creator deployed")
    vaults.add_argument("--address", default=None, help="Report whether this is a factory vault")
    vaults.add_argument("--factory", default=config.FACTORY_ADDRESS, help="Factory address")
    vaults.add_argument("--rpc-url", default=config.RPC_URL, help="RPC endpoint")
    return parser.parse_args(argv)


def connect_factory(rpc_url: str, factory: str):
    from web3 import Web3

    from .onchain import FactoryClient

    w3 = Web3(Web3.HTTPProvider(rpc_url))
    if not w3.is_connected():
        raise ConnectionError(f"Cannot connect to RPC at {rpc_url}")
    return FactoryClient(w3, factory)


def cmd_pool_id(args: argparse.Namespace) -> int:
    pool_key = config.build_pool_key()
    print(f"PoolKey: {tuple(pool_key)}")
    print(f"PoolId:  {pool_key.pool_id()}")
    return 0


def cmd_predict_address(args: argparse.Namespace) -> int:
    if not args.factory:
        logger.error("No factory address; pass --factory or set FACTORY_ADDRESS")
        return 2

    pool_key = config.build_pool_key()
    client = None
    if args.rpc_url or args.check:
        client = connect_factory(args.rpc_url or config.RPC_URL, args.factory)

    nonce = args.nonce
    if nonce is None:
        nonce = client.next_nonce(args.creator) if client else 0

    predicted = compute_vault_address(
        args.factory,
        load_creation_code(args.artifact),
        args.creator,
        pool_key,
        nonce,
        config.POSITION_MANAGER,
        config.UNIVERSAL_ROUTER,
        config.PERMIT2,
        args.agent,
        args.tick_lower,
        args.tick_upper,
        args.swap_allowed,
        args.max_positions,
    )
    print(f"Vault (nonce {nonce}): {predicted}")

    if client is None:
        return 0
    onchain = client.compute_vault_address(
        args.creator,
        pool_key,
        nonce,
        args.agent,
        args.tick_lower,
        args.tick_upper,
        args.swap_allowed,
        args.max_positions,
    )
    if onchain != predicted:
        logger.error("Factory on chain predicts %s, local derivation gives %s", onchain, predicted)
        return 1
    logger.info("On-chain factory agrees: %s", onchain)
    return 0


def cmd_vaults(args: argparse.Namespace) -> int:
    if not args.factory:
        logger.error("No factory address; pass --factory or set FACTORY_ADDRESS")
        return 2

    client = connect_factory(args.rpc_url, args.factory)
    print(f"Total vaults: {client.total_vaults()}")
    if args.creator:
        created = client.vaults_of(args.creator)
        print(f"Vaults by {args.creator} ({len(created)}):")
        for address in created:
            print(f"  {address}")
    if args.address:
        print(f"{args.address} is a vault: {client.is_vault(args.address)}")
    return 0


COMMANDS = {
    "pool-id": cmd_pool_id,
    "predict-address": cmd_predict_address,
    "vaults": cmd_vaults,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.verbose)
    try:
        return COMMANDS[args.command](args)
    except (VaultError, OSError, KeyError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
