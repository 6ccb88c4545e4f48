"""
Competition Registry: competitions and their lifecycle state machine.

    draft → open → in_progress → judging → completed

Transitions are strictly forward and one step at a time. The status
write is a conditional UPDATE on the status the caller observed, so two
concurrent transitions cannot both apply. Entering `completed` freezes
the ranking inside the same transaction.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import transaction
from contest_engine.errors import (
    CapacityBelowRegistrations,
    CompetitionLocked,
    CompetitionNotFound,
    InvalidDeadline,
    InvalidTimeRange,
    InvalidTransition,
    NameRequired,
)
from contest_engine.orm.base import as_naive_utc, utcnow
from contest_engine.orm.competition import Competition, CompetitionStatus, CompetitionVisibility
from contest_engine.orm.judging import JudgingCriterion
from contest_engine.rbac import ActingUser, require_competition_manager, require_host, require_org_admin
from contest_engine.schemas.competition import CompetitionCreate, CompetitionUpdate
from contest_engine.services.activity_logger import log_status_transition
from contest_engine.services.judging_service import list_criteria
from contest_engine.services.lookups import current_status, get_competition
from contest_engine.services.ranking_service import freeze_ranking
from contest_engine.services.team_service import TeamView, list_teams

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[CompetitionStatus, List[CompetitionStatus]] = {
    CompetitionStatus.DRAFT: [CompetitionStatus.OPEN],
    CompetitionStatus.OPEN: [CompetitionStatus.IN_PROGRESS],
    CompetitionStatus.IN_PROGRESS: [CompetitionStatus.JUDGING],
    CompetitionStatus.JUDGING: [CompetitionStatus.COMPLETED],
    CompetitionStatus.COMPLETED: [],  # Terminal
}

# Fields that may still change after the competition has run
ADMIN_METADATA_FIELDS = {"title", "description"}


def is_valid_transition(current: CompetitionStatus, target: CompetitionStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def _check_schedule(start_at: datetime, end_at: datetime, deadline: Optional[datetime]) -> None:
    if end_at < start_at:
        raise InvalidTimeRange(start_at, end_at)
    if deadline is not None and deadline > start_at:
        raise InvalidDeadline(deadline, start_at)


@dataclass
class CompetitionDetail:
    competition: Competition
    teams: List[TeamView] = field(default_factory=list)
    criteria: List[JudgingCriterion] = field(default_factory=list)


# =============================================================================
# Operations
# =============================================================================

async def create_competition(db: AsyncSession, actor: ActingUser, payload: CompetitionCreate) -> Competition:
    """Create a competition in `draft`."""
    require_host(actor)
    require_org_admin(actor, payload.host_org_id)

    title = payload.title.strip()
    if not title:
        raise NameRequired("title")

    start_at = as_naive_utc(payload.start_at)
    end_at = as_naive_utc(payload.end_at)
    deadline = as_naive_utc(payload.registration_deadline)
    _check_schedule(start_at, end_at, deadline)

    competition = Competition(
        title=title,
        description=payload.description.strip(),
        rules=payload.rules,
        prize_pool=payload.prize_pool,
        url=payload.url,
        image_url=payload.image_url,
        tags=list(payload.tags),
        host_org_id=payload.host_org_id,
        created_by=actor.id,
        start_at=start_at,
        end_at=end_at,
        registration_deadline=deadline,
        max_participants=payload.max_participants,
        late_registration=payload.late_registration,
        registration_count=0,
        status=CompetitionStatus.DRAFT,
        visibility=payload.visibility,
    )
    async with transaction(db):
        db.add(competition)
        await db.flush()

    logger.info(f"Competition {competition.id} created by {actor.id}: '{competition.title}'")
    return competition


async def transition_competition(
    db: AsyncSession,
    competition_id: int,
    actor: ActingUser,
    target_status: CompetitionStatus,
) -> Competition:
    target_status = CompetitionStatus(target_status)

    async with transaction(db):
        competition = await get_competition(db, competition_id, lock=True)
        require_competition_manager(actor, competition, "change the competition status")

        current = competition.status
        if not is_valid_transition(current, target_status):
            raise InvalidTransition(current.value, target_status.value)

        now = utcnow()
        result = await db.execute(
            update(Competition)
            .where(Competition.id == competition_id, Competition.status == current)
            .values(
                status=target_status,
                status_changed_at=now,
                updated_at=now,
                version=Competition.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Someone else moved it first
            fresh = await get_competition(db, competition_id)
            raise InvalidTransition(fresh.status.value, target_status.value)

        competition = await get_competition(db, competition_id)

        if target_status == CompetitionStatus.COMPLETED:
            await freeze_ranking(db, competition, actor.id)

        await log_status_transition(db, competition_id, actor.id, current.value, target_status.value)

    logger.info(f"Competition {competition_id} transitioned {current.value} -> {target_status.value} by {actor.id}")
    return competition


async def get_competition_detail(db: AsyncSession, competition_id: int) -> CompetitionDetail:
    competition = await get_competition(db, competition_id)
    teams = await list_teams(db, competition_id)
    criteria = await list_criteria(db, competition_id)
    return CompetitionDetail(competition=competition, teams=teams, criteria=criteria)


async def list_competitions(
    db: AsyncSession,
    status: Optional[CompetitionStatus] = None,
    visibility: Optional[CompetitionVisibility] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Competition], int]:
    """Competitions ordered by start time, with the total matching count."""
    conditions = []
    if status is not None:
        conditions.append(Competition.status == status)
    if visibility is not None:
        conditions.append(Competition.visibility == visibility)

    total = (await db.execute(select(func.count(Competition.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Competition)
        .where(*conditions)
        .order_by(Competition.start_at, Competition.id)
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def update_competition(
    db: AsyncSession,
    competition_id: int,
    actor: ActingUser,
    patch: CompetitionUpdate,
) -> Competition:
    """
    Apply a partial update. After `completed` only title and description
    may change. Lowering max_participants below the active registration
    count is rejected.
    """
    changes = patch.model_dump(exclude_unset=True)

    async with transaction(db):
        competition = await get_competition(db, competition_id, lock=True)
        require_competition_manager(actor, competition, "update the competition")

        if competition.status == CompetitionStatus.COMPLETED:
            locked = set(changes) - ADMIN_METADATA_FIELDS
            if locked:
                raise CompetitionLocked(competition_id, locked)

        if "title" in changes:
            if not changes["title"] or not changes["title"].strip():
                raise NameRequired("title")
            changes["title"] = changes["title"].strip()
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip()
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])
        for key in ("start_at", "end_at", "registration_deadline"):
            if key in changes:
                changes[key] = as_naive_utc(changes[key])
        for key in ("start_at", "end_at", "late_registration", "visibility"):
            if key in changes and changes[key] is None:
                del changes[key]

        _check_schedule(
            changes.get("start_at", competition.start_at),
            changes.get("end_at", competition.end_at),
            changes.get("registration_deadline", competition.registration_deadline),
        )

        if not changes:
            return competition

        stmt = (
            update(Competition)
            .where(Competition.id == competition_id)
            .values(**changes, updated_at=utcnow(), version=Competition.version + 1)
            .execution_options(synchronize_session=False)
        )
        new_capacity = changes.get("max_participants")
        if new_capacity is not None:
            # Registrations admitted concurrently are counted by the same row
            stmt = stmt.where(Competition.registration_count <= new_capacity)

        result = await db.execute(stmt)
        if result.rowcount == 0:
            fresh = await get_competition(db, competition_id)
            raise CapacityBelowRegistrations(new_capacity, fresh.registration_count)

        if await current_status(db, competition_id) == CompetitionStatus.COMPLETED:
            locked = set(changes) - ADMIN_METADATA_FIELDS
            if locked:
                raise CompetitionLocked(competition_id, locked)

        competition = await get_competition(db, competition_id)

    logger.info(f"Competition {competition_id} updated by {actor.id}: {sorted(changes)}")
    return competition


async def delete_competition(db: AsyncSession, competition_id: int, actor: ActingUser) -> None:
    """Delete a competition; registrations, teams, submissions, criteria and scores cascade."""
    async with transaction(db):
        competition = await get_competition(db, competition_id)
        require_competition_manager(actor, competition, "delete the competition")

        result = await db.execute(
            delete(Competition)
            .where(Competition.id == competition_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CompetitionNotFound(competition_id)

    db.expunge_all()
    logger.info(f"Competition {competition_id} deleted by {actor.id}")
