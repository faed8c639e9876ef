"""Storefront management CLI.

Creates and drops the catalogue and search schemas, drains the outbox once,
and lets an operator inspect and replay dead-lettered product events.

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db                  # Drop all tables
    python src/manage.py propagate                # Deliver every pending event, then exit
    python src/manage.py dead-letters             # List dead letters
    python src/manage.py replay-dead-letter <id>  # Put dead letter <id> back in line
"""

import argparse
import sys

from services import Services, build_services
from shared.db import drop_db, setup_db
from shared.exceptions import CatalogError

# Database name on the command line -> domain provider
DATABASES = {"catalogue": "default", "search": "search"}


def _targets(databases):
    return {name: DATABASES[name] for name in databases} if databases else DATABASES


def setup_databases(services: Services, databases=None):
    """Create database schemas for the specified (or all) databases."""
    for name, provider in _targets(databases).items():
        print(f"Creating {name} database schema...")
        setup_db(services.domain, [provider])
        print(f"  {name} schema ready.")

    print("Done.")


def drop_databases(services: Services, databases=None):
    """Drop database schemas for the specified (or all) databases."""
    for name, provider in _targets(databases).items():
        print(f"Dropping {name} database schema...")
        drop_db(services.domain, [provider])
        print(f"  {name} schema dropped.")

    print("Done.")


def propagate(services: Services):
    settled = services.propagation.drain()
    metrics = services.processor.metrics_snapshot()
    print(
        f"Settled {settled} event(s): {metrics['messages_processed']} delivered, "
        f"{metrics['stale_skipped']} already superseded, {metrics['dead_lettered']} dead-lettered."
    )


def list_dead_letters(services: Services):
    dead_letters = services.outbox.list_dead_letters()
    if not dead_letters:
        print("No dead letters.")
        return

    for letter in dead_letters:
        failed_at = letter.failed_at.isoformat() if letter.failed_at else "-"
        print(
            f"{letter.id} product={letter.product_id} {letter.type} v{letter.version} "
            f"attempts={letter.attempts} failed={failed_at}"
        )
        print(f"    {letter.error}")


def replay_dead_letter(services: Services, dead_letter_id):
    letter = services.outbox.replay_dead_letter(dead_letter_id)
    print(f"Dead letter {letter.id} ({letter.type} v{letter.version}) is pending again.")


def main(argv=None, services=None):
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup_parser = subparsers.add_parser("setup-db", help="Create all database tables")
    setup_parser.add_argument(
        "--database",
        choices=list(DATABASES),
        nargs="*",
        help="Specific database(s) to set up (default: all)",
    )

    drop_parser = subparsers.add_parser("drop-db", help="Drop all database tables")
    drop_parser.add_argument(
        "--database",
        choices=list(DATABASES),
        nargs="*",
        help="Specific database(s) to drop (default: all)",
    )

    subparsers.add_parser("propagate", help="Deliver every pending product event, then exit")

    subparsers.add_parser("dead-letters", help="List dead-lettered product events")

    replay_parser = subparsers.add_parser("replay-dead-letter", help="Put a dead-lettered product event back in line")
    replay_parser.add_argument("dead_letter_id")

    args = parser.parse_args(argv)
    services = services or build_services()

    try:
        if args.command == "setup-db":
            setup_databases(services, args.database)
        elif args.command == "drop-db":
            drop_databases(services, args.database)
        elif args.command == "propagate":
            propagate(services)
        elif args.command == "dead-letters":
            list_dead_letters(services)
        elif args.command == "replay-dead-letter":
            replay_dead_letter(services, args.dead_letter_id)
        else:
            parser.print_help()
            sys.exit(1)
    except CatalogError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
