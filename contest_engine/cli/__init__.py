#!/usr/bin/env python3
"""
Contest Engine CLI

Usage:
    python -m contest_engine.cli <command> [options]

Commands:
    db            Database operations (init, drop)
    competition   Competition inspection (list, standings, verify)

Environment:
    DATABASE_URL    SQLAlchemy async URL (default: local SQLite file)
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from contest_engine import __version__
from contest_engine.cli.competition_commands import CompetitionCommand
from contest_engine.cli.db_commands import DbCommand
from contest_engine.orm.competition import CompetitionStatus


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="contest-engine",
        description="Competition lifecycle and judging engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s competition list --status judging
  %(prog)s competition standings --id 42
  %(prog)s competition verify --id 42
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without executing"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")

    db_subparsers.add_parser("init", help="Create all tables")

    drop_parser = db_subparsers.add_parser("drop", help="Drop all tables")
    drop_parser.add_argument("--force", action="store_true", help="Skip confirmation")

    # Competition commands
    competition_parser = subparsers.add_parser("competition", help="Competition inspection")
    competition_subparsers = competition_parser.add_subparsers(dest="competition_action")

    list_parser = competition_subparsers.add_parser("list", help="List competitions")
    list_parser.add_argument("--status", choices=[s.value for s in CompetitionStatus], help="Filter by status")

    standings_parser = competition_subparsers.add_parser("standings", help="Show the ranking")
    standings_parser.add_argument("--id", "-i", type=int, required=True, help="Competition ID")

    verify_parser = competition_subparsers.add_parser("verify", help="Verify frozen standings checksum")
    verify_parser.add_argument("--id", "-i", type=int, required=True, help="Competition ID")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    command_map = {
        "db": DbCommand,
        "competition": CompetitionCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command](dry_run=parsed.dry_run)
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
