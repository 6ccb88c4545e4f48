"""
Competition CLI Commands

Read-only inspection: list, standings, verify
"""
import asyncio
from typing import Optional

from contest_engine.config import load_settings
from contest_engine.database import Store
from contest_engine.errors import EngineError
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.services import competition_service, ranking_service


class CompetitionCommand:
    """Competition CLI command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute competition command."""
        if args.competition_action == "list":
            return self._run(self._async_list(args.status))
        elif args.competition_action == "standings":
            return self._run(self._async_standings(args.id))
        elif args.competition_action == "verify":
            return self._run(self._async_verify(args.id))
        else:
            print("Error: Unknown competition action")
            return 1

    def _run(self, coro) -> int:
        try:
            return asyncio.run(coro)
        except EngineError as e:
            print(f"Error: {e.code} - {e.message}")
            return 1
        except Exception as e:
            print(f"Error: {e}")
            return 1

    async def _with_session(self, fn):
        store = Store.from_settings(load_settings()).open()
        try:
            async with store.session() as db:
                return await fn(db)
        finally:
            await store.close()

    async def _async_list(self, status: Optional[str]) -> int:
        async def run(db):
            competitions, total = await competition_service.list_competitions(
                db, status=CompetitionStatus(status) if status else None, limit=200
            )
            if not competitions:
                print("No competitions found")
                return 0

            print(f"\n{'ID':<5} {'Title':<40} {'Status':<12} {'Registered':<10}")
            print("-" * 70)
            for c in competitions:
                print(f"{c.id:<5} {c.title[:38]:<40} {c.status.value:<12} {c.registration_count:<10}")
            print(f"\n{total} total")
            return 0

        return await self._with_session(run)

    async def _async_standings(self, competition_id: int) -> int:
        async def run(db):
            ranking = await ranking_service.rank(db, competition_id)
            label = "FROZEN" if ranking.frozen else "LIVE"
            print(f"=== Standings for competition {competition_id} ({label}) ===")
            if ranking.checksum_hash:
                print(f"Checksum: {ranking.checksum_hash}")

            print(f"\n{'Rank':<6} {'Submission':<12} {'Score':<10} {'Title':<40}")
            print("-" * 70)
            for e in ranking.entries:
                print(f"{e.rank:<6} {e.submission_id:<12} {str(e.display_score):<10} {e.title[:38]:<40}")
            return 0

        return await self._with_session(run)

    async def _async_verify(self, competition_id: int) -> int:
        async def run(db):
            result = await ranking_service.verify_ranking_snapshot(db, competition_id)
            if result["valid"]:
                print(f"✓ Standings for competition {competition_id} verified")
                print(f"  checksum {result['stored_checksum']}")
                return 0
            print(f"❌ Standings for competition {competition_id} FAILED verification")
            print(f"  stored   {result['stored_checksum']}")
            print(f"  computed {result['computed_checksum']}")
            return 2

        return await self._with_session(run)
