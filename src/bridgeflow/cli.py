"""Command-line entry point.

Usage:
    python -m bridgeflow.cli quote --provider lifi --from-chain arbitrum --to-chain base \\
        --from-token 0x0000000000000000000000000000000000000000 \\
        --to-token 0x0000000000000000000000000000000000000000 \\
        --amount 1000000000000000 --wallet 0x...
    python -m bridgeflow.cli move ...   (same arguments, key from BRIDGEFLOW_PRIVATE_KEY)
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from bridgeflow.chains import chain_id_by_name
from bridgeflow.config import get_settings
from bridgeflow.errors import BridgeError, StepAborted
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import MoveIntent
from bridgeflow.routing.factory import ProviderName
from bridgeflow.services.mover import move, quote

logger = logging.getLogger(__name__)

PRIVATE_KEY_ENV = "BRIDGEFLOW_PRIVATE_KEY"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bridgeflow", description="Cross-chain swaps and bridges")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("quote", "Request a route without executing it"),
        ("move", "Request a route and execute it"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument(
            "--provider",
            choices=[p.value for p in ProviderName],
            default=ProviderName.LIFI.value,
            help="Aggregator to use",
        )
        sub.add_argument("--from-chain", required=True, help="Source chain name or id")
        sub.add_argument("--to-chain", required=True, help="Destination chain name or id")
        sub.add_argument("--from-token", required=True, help="Source token address")
        sub.add_argument("--to-token", required=True, help="Destination token address")
        sub.add_argument("--amount", type=int, required=True, help="Amount in base units")
        sub.add_argument("--slippage-bps", type=int, default=None, help="Slippage in basis points")
        sub.add_argument("--recipient", default=None, help="Destination address (defaults to wallet)")
        if command == "quote":
            sub.add_argument("--wallet", default=None, help="Wallet address (defaults to key's address)")
        else:
            sub.add_argument("--timeout", type=float, default=None, help="Overall deadline in seconds")

    return parser


def build_intent(args: argparse.Namespace, wallet: str) -> MoveIntent:
    slippage = args.slippage_bps if args.slippage_bps is not None else get_settings().default_slippage_bps
    return MoveIntent(
        wallet_address=wallet,
        source_chain_id=chain_id_by_name(args.from_chain),
        dest_chain_id=chain_id_by_name(args.to_chain),
        source_token=args.from_token,
        dest_token=args.to_token,
        amount=args.amount,
        slippage_bps=slippage,
        recipient_address=args.recipient,
    )


async def run(args: argparse.Namespace) -> int:
    private_key: Optional[str] = os.environ.get(PRIVATE_KEY_ENV)

    if args.command == "quote":
        wallet = args.wallet or (WalletSigner(private_key).address if private_key else None)
        if not wallet:
            logger.error(f"Pass --wallet or set {PRIVATE_KEY_ENV}")
            return 2
        route = await quote(build_intent(args, wallet), provider=args.provider)
        print(json.dumps(route.to_dict(), indent=2, default=str))
        return 0

    if not private_key:
        logger.error(f"{PRIVATE_KEY_ENV} is not set")
        return 2

    intent = build_intent(args, WalletSigner(private_key).address)
    try:
        outcome = await move(intent, private_key, provider=args.provider, timeout=args.timeout)
    except StepAborted as e:
        print(json.dumps([r.to_dict() for r in e.results], indent=2))
        logger.error(str(e))
        return 1

    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 3 if outcome.pending else 0


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    settings = get_settings()

    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except (BridgeError, ValueError) as e:
        logger.error(str(e))
        return 1
    except asyncio.TimeoutError:
        logger.error("Timed out")
        return 1


if __name__ == "__main__":
    sys.exit(main())
