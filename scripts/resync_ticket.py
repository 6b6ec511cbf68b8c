#!/usr/bin/env python3
"""Resend the current status message of a ticket to all of its parties.

Used to repair a ticket after an aggregate notification failure. Reads
BOT_TOKEN and the other settings from the environment.

Usage:
    uv run scripts/resync_ticket.py --ticket-id 42
    uv run scripts/resync_ticket.py --user-id 123456789
"""

import argparse
import logging
import sys

from order_tickets import Settings, TicketDesk, create_store
from order_tickets.domain.errors import PersistenceError
from order_tickets.infra.telegram import TelegramGateway


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resynchronize ticket status messages")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--ticket-id", type=int, help="Rebroadcast one ticket")
    target.add_argument(
        "--user-id", type=int,
        help="Resend this user's status message for each active ticket",
    )
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = Settings.from_env()
    if not settings.bot_token:
        print("Missing BOT_TOKEN. Set it in the environment.", file=sys.stderr)
        return 1

    store = create_store("sqlite", db_path=args.db or settings.db_path)
    with TelegramGateway(settings.bot_token) as gateway:
        desk = TicketDesk(gateway, store, store, settings)
        try:
            if args.ticket_id is not None:
                loaded = store.load_ticket(args.ticket_id)
                report = desk.synchronizer.broadcast(loaded)
                ok, reason = report.ok, report.failure_reason
            else:
                outcome = desk.show_tickets(args.user_id)
                ok, reason = outcome.ok, outcome.reason
        except PersistenceError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    if not ok:
        print(f"Resync failed: {reason}", file=sys.stderr)
        return 1
    print("Resync complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
