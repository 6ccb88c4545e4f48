"""
Database CLI Commands

Schema operations: init, drop
"""
import asyncio

from contest_engine.config import load_settings
from contest_engine.database import Store


class DbCommand:
    """Database CLI command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute database command."""
        if args.db_action == "init":
            return self._init(args)
        elif args.db_action == "drop":
            return self._drop(args)
        else:
            print("Error: Unknown database action")
            return 1

    def _init(self, args) -> int:
        print("=== Database Init ===")
        settings = load_settings()
        if self.dry_run:
            print(f"[DRY RUN] Would create tables on {settings.database_url}")
            return 0

        try:
            asyncio.run(self._run(settings, drop=False))
            print("✓ Tables created")
            return 0
        except Exception as e:
            print(f"Error: {e}")
            return 1

    def _drop(self, args) -> int:
        print("=== Database Drop ===")
        settings = load_settings()
        if self.dry_run:
            print(f"[DRY RUN] Would drop all tables on {settings.database_url}")
            return 0

        if not args.force:
            response = input(f"Drop ALL tables on {settings.database_url}? [y/N] ")
            if response.lower() != "y":
                print("Cancelled")
                return 1

        try:
            asyncio.run(self._run(settings, drop=True))
            print("✓ Tables dropped")
            return 0
        except Exception as e:
            print(f"Error: {e}")
            return 1

    async def _run(self, settings, drop: bool) -> None:
        store = Store.from_settings(settings).open()
        try:
            if drop:
                await store.drop_schema()
            else:
                await store.init_schema()
        finally:
            await store.close()
