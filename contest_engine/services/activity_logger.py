"""
contest_engine/services/activity_logger.py
Centralized competition activity logging.

Entries are added inside the caller's transaction, so an action and its
audit row commit (or roll back) together. Logs are append-only.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.config.feature_flags import feature_flags
from contest_engine.orm.activity_log import ActivityLog, ActivityType

logger = logging.getLogger(__name__)


async def log_activity(
    db: AsyncSession,
    competition_id: int,
    actor_id: str,
    action_type: ActivityType,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[ActivityLog]:
    """
    Add one audit row. Call after the action's own writes, before commit.
    Returns None when FEATURE_ACTIVITY_LOG is off.
    """
    if not feature_flags.FEATURE_ACTIVITY_LOG:
        return None

    entry = ActivityLog(
        competition_id=competition_id,
        actor_id=actor_id,
        action_type=action_type,
        context=context or {},
    )
    db.add(entry)
    await db.flush()

    logger.debug(f"Activity logged: {action_type.value} by {actor_id} on competition {competition_id}")
    return entry


async def log_status_transition(db, competition_id: int, actor_id: str, from_status: str, to_status: str):
    return await log_activity(
        db,
        competition_id,
        actor_id,
        ActivityType.STATUS_TRANSITION,
        context={"from": from_status, "to": to_status},
    )


async def log_ranking_frozen(db, competition_id: int, actor_id: str, snapshot_id: int, checksum: str):
    return await log_activity(
        db,
        competition_id,
        actor_id,
        ActivityType.RANKING_FROZEN,
        context={"snapshot_id": snapshot_id, "checksum_hash": checksum},
    )


async def log_captain_transferred(db, competition_id: int, actor_id: str, team_id: int, old_captain: str, new_captain: str):
    """Log captain transfer"""
    return await log_activity(
        db,
        competition_id,
        actor_id,
        ActivityType.CAPTAIN_TRANSFERRED,
        context={"team_id": team_id, "old_captain_user_id": old_captain, "new_captain_user_id": new_captain},
    )


async def log_registration_withdrawn(db, competition_id: int, actor_id: str, removed_from_team_ids: List[int]):
    return await log_activity(
        db,
        competition_id,
        actor_id,
        ActivityType.REGISTRATION_WITHDRAWN,
        context={"removed_from_team_ids": removed_from_team_ids},
    )


async def list_activity(db: AsyncSession, competition_id: int, limit: int = 100) -> List[ActivityLog]:
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.competition_id == competition_id)
        .order_by(ActivityLog.created_at, ActivityLog.id)
        .limit(limit)
    )
    return list(result.scalars().all())
