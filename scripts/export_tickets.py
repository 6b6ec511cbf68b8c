#!/usr/bin/env python3
"""Export the ticket audit trail from a SQLite store as CSV.

Usage examples:
    # Export every ticket from the default database
    uv run scripts/export_tickets.py

    # Only tickets still in progress, into a custom directory
    uv run scripts/export_tickets.py --db data/tickets.db --active-only \
        --output-dir exports

    # Print the number of tickets per stage without writing a file
    uv run scripts/export_tickets.py --summary
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from order_tickets import Settings, create_store
from order_tickets.report import stage_counts, tickets_to_frame

DATA_DIR = Path("data")


def make_filename(active_only: bool) -> str:
    """Generate output filename with timestamp prefix.

    Format: yyyymmdd_hhmm_tickets[_active].csv
    """
    prefix = datetime.now().strftime("%Y%m%d_%H%M")
    suffix = "_active" if active_only else ""
    return f"{prefix}_tickets{suffix}.csv"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export order tickets as CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db", default=None,
        help="SQLite database (default: ORDER_TICKETS_DB or data/tickets.db)",
    )
    parser.add_argument(
        "--output-dir", default=None,
        help="Output directory (default: data/)",
    )
    parser.add_argument(
        "--active-only", action="store_true",
        help="Skip finished and canceled tickets",
    )
    parser.add_argument(
        "--summary", action="store_true",
        help="Print ticket counts per stage and exit",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    db_path = args.db or settings.db_path

    if not Path(db_path).exists():
        print(f"Error: database not found: {db_path}", file=sys.stderr)
        return 1

    store = create_store("sqlite", db_path=db_path)
    df = tickets_to_frame(store.all_tickets(), settings, active_only=args.active_only)

    if args.summary:
        print(f"Tickets in {db_path}: {len(df)}")
        for stage, count in stage_counts(df).items():
            print(f"  {stage:24s} {count}")
        return 0

    if df.empty:
        print("No tickets to export")
        return 0

    output_dir = Path(args.output_dir) if args.output_dir else DATA_DIR
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / make_filename(args.active_only)
    df.to_csv(filepath, index=False)
    print(f"Saved: {filepath} ({len(df)} rows)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
