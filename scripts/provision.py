#!/usr/bin/env python3
"""
CLI tool for provisioning PixelForge accounts and backend keys in Redis.

Seeds the data the API cannot create itself: accounts with a starting
balance, the bearer tokens that identify their owners, balance top-ups
and generation backend API keys.

Usage:
    python scripts/provision.py account --owner user-1 --balance 50 --token secret-token
    python scripts/provision.py topup --owner user-1 --amount 20
    python scripts/provision.py api-key --value sk-live-... --id primary
    python scripts/provision.py show --owner user-1

Requirements:
    - Redis reachable via REDIS_HOST / REDIS_PORT (.env is loaded)
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pixelforge.domain.generation.entities.account import TransactionKind
from pixelforge.domain.shared.exceptions import DomainException
from pixelforge.infrastructure.persistence.redis import (
    RedisApiKeyPool,
    RedisBillingLedger,
    RedisIdentityProvider,
    get_redis_client,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Provision PixelForge accounts, tokens and API keys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # New account with 50 diamonds, reachable with "secret-token"
  python scripts/provision.py account --owner user-1 --balance 50 --token secret-token

  # Add 20 diamonds (logged as an OTHER ledger entry)
  python scripts/provision.py topup --owner user-1 --amount 20 --note "Promo"

  # Add a generation backend key to the pool
  python scripts/provision.py api-key --value sk-live-123456 --id primary
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    account = commands.add_parser("account", help="Open an account and bind a token")
    account.add_argument("--owner", required=True, help="Owner id")
    account.add_argument(
        "--balance", type=int, default=0, help="Initial balance (ignored if the account exists)"
    )
    account.add_argument("--token", help="Bearer token for the owner (stored hashed)")

    topup = commands.add_parser("topup", help="Credit diamonds to an account")
    topup.add_argument("--owner", required=True, help="Owner id")
    topup.add_argument("--amount", type=int, required=True, help="Diamonds to add")
    topup.add_argument("--note", default="Top-up", help="Ledger entry description")

    api_key = commands.add_parser("api-key", help="Add a generation backend key")
    api_key.add_argument("--value", required=True, help="Secret key value")
    api_key.add_argument("--id", dest="key_id", help="Stable key id (generated if omitted)")

    show = commands.add_parser("show", help="Print balance, xp and recent entries")
    show.add_argument("--owner", required=True, help="Owner id")
    show.add_argument("--limit", type=int, default=10, help="Number of ledger entries")

    return parser.parse_args()


def main() -> int:
    args = parse_args()
    redis = get_redis_client()
    ledger = RedisBillingLedger(redis)

    try:
        if args.command == "account":
            account = ledger.open_account(args.owner, initial_balance=args.balance)
            if args.token:
                RedisIdentityProvider(redis).register(args.token, args.owner)
            print(f"Account {account.owner_id}: balance={account.balance} xp={account.xp}")

        elif args.command == "topup":
            balance = ledger.credit(
                args.owner, args.amount, args.note, kind=TransactionKind.OTHER
            )
            print(f"Account {args.owner}: balance={balance}")

        elif args.command == "api-key":
            key = RedisApiKeyPool(redis).add_key(args.value, key_id=args.key_id)
            print(f"API key {key.id} added ({key.masked()})")

        elif args.command == "show":
            account = ledger.get_account(args.owner)
            if account is None:
                print(f"Account {args.owner} does not exist")
                return 1
            print(f"Account {account.owner_id}: balance={account.balance} xp={account.xp}")
            for entry in ledger.get_entries(args.owner, limit=args.limit):
                print(
                    f"  {entry.created_at:%Y-%m-%d %H:%M:%S} {entry.kind.value:<6} "
                    f"{entry.amount:+d} {entry.description}"
                )

    except (DomainException, ValueError) as e:
        logger.error(f"Provisioning failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
