"""Marketline management CLI.

Creates and drops the database schema and runs the maintenance sweeps by
hand, the same work the scheduler triggers through the maintenance API.

Usage:
    python src/manage.py setup-db
    python src/manage.py drop-db
    python src/manage.py sweep expire-checkouts
    python src/manage.py sweep cleanup-carts --days 14
"""

import argparse
import sys

SWEEPS = ("expire-checkouts", "cleanup-carts", "retry-notifications", "low-stock-check")


def _domain():
    from commerce.domain import commerce

    commerce.init()
    return commerce


def setup_database():
    from commerce.utils.db import setup_db

    domain = _domain()
    print("Creating commerce database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from commerce.utils.db import drop_db

    domain = _domain()
    print("Dropping commerce database schema...")
    drop_db(domain)
    print("Done.")


def run_sweep(name, days=7):
    from commerce.cart.management import PurgeExpiredCarts
    from commerce.checkout.expiry import ExpireCheckoutSessions
    from commerce.inventory.alerts import CheckLowStock
    from commerce.notification.retry import RetryFailedNotifications

    commands = {
        "expire-checkouts": lambda: ExpireCheckoutSessions(),
        "cleanup-carts": lambda: PurgeExpiredCarts(older_than_days=days),
        "retry-notifications": lambda: RetryFailedNotifications(),
        "low-stock-check": lambda: CheckLowStock(),
    }

    domain = _domain()
    with domain.domain_context():
        result = domain.process(commands[name](), asynchronous=False)
    print(f"{name}: {result}")


def main():
    parser = argparse.ArgumentParser(description="Marketline management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("sweep", help="Run one maintenance sweep")
    sweep_parser.add_argument("name", choices=SWEEPS)
    sweep_parser.add_argument("--days", type=int, default=7, help="Cart age for cleanup-carts")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep":
        run_sweep(args.name, days=args.days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
