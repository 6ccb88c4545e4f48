"""
Registration Manager: admission control for competitions.

Admission is a single conditional write on the competition row:

    UPDATE competitions
       SET registration_count = registration_count + 1
     WHERE id = :id
       AND status IN (:admitting)
       AND (max_participants IS NULL OR registration_count < max_participants)

Zero rows affected means the last slot is gone (or the competition
stopped admitting in the meantime). The registration row is written in
the same transaction, so a duplicate insert rolls the counter back with it.

Registration is admitted while the competition is `open`, and also while
`in_progress` when the competition has late_registration enabled.
The registration deadline applies in both cases.

AlreadyRegistered is checked before CapacityExceeded on purpose: a user
already holding a slot in a full competition learns they are registered.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import transaction
from contest_engine.errors import (
    AlreadyRegistered,
    CapacityExceeded,
    CaptainCannotWithdraw,
    DeadlinePassed,
    NotOpen,
    NotRegistered,
    RegistrationLocked,
    RegistrationNotFound,
)
from contest_engine.orm.base import as_naive_utc, utcnow
from contest_engine.orm.competition import Competition, CompetitionStatus
from contest_engine.orm.registration import Registration, RegistrationStatus
from contest_engine.orm.team import Team, TeamMember, TeamRole
from contest_engine.rbac import ActingUser
from contest_engine.services.activity_logger import log_registration_withdrawn
from contest_engine.services.lookups import get_competition

logger = logging.getLogger(__name__)

WITHDRAWABLE_STATUSES = (CompetitionStatus.OPEN, CompetitionStatus.IN_PROGRESS)


def admitting_statuses(competition: Competition) -> List[CompetitionStatus]:
    statuses = [CompetitionStatus.OPEN]
    if competition.late_registration:
        statuses.append(CompetitionStatus.IN_PROGRESS)
    return statuses


async def _find_registration(db: AsyncSession, competition_id: int, user_id: str) -> Optional[Registration]:
    result = await db.execute(
        select(Registration)
        .where(Registration.competition_id == competition_id, Registration.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_active_registration(db: AsyncSession, competition_id: int, user_id: str) -> Registration:
    registration = await _find_registration(db, competition_id, user_id)
    if registration is None or not registration.is_active:
        raise NotRegistered(competition_id, user_id)
    return registration


async def _claim_slot(db: AsyncSession, competition: Competition, statuses: List[CompetitionStatus]) -> bool:
    result = await db.execute(
        update(Competition)
        .where(
            Competition.id == competition.id,
            Competition.status.in_(statuses),
            or_(
                Competition.max_participants.is_(None),
                Competition.registration_count < Competition.max_participants,
            ),
        )
        .values(
            registration_count=Competition.registration_count + 1,
            version=Competition.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# =============================================================================
# Operations
# =============================================================================

async def register(
    db: AsyncSession,
    competition_id: int,
    actor: ActingUser,
    now: Optional[datetime] = None,
) -> Registration:
    """
    Admit the acting user.

    Raises, in check order:
        CompetitionNotFound, NotOpen, DeadlinePassed, AlreadyRegistered, CapacityExceeded
    """
    now = as_naive_utc(now) or utcnow()

    try:
        async with transaction(db):
            competition = await get_competition(db, competition_id)
            statuses = admitting_statuses(competition)
            if competition.status not in statuses:
                raise NotOpen(competition_id, competition.status.value)
            if competition.registration_deadline is not None and now > competition.registration_deadline:
                raise DeadlinePassed(competition_id, competition.registration_deadline)

            existing = await _find_registration(db, competition_id, actor.id)
            if existing is not None and existing.is_active:
                raise AlreadyRegistered(competition_id, actor.id)

            if not await _claim_slot(db, competition, statuses):
                fresh = await get_competition(db, competition_id)
                if fresh.status not in statuses:
                    raise NotOpen(competition_id, fresh.status.value)
                logger.warning(
                    f"Registration rejected for {actor.id}: competition {competition_id} full "
                    f"({fresh.registration_count}/{fresh.max_participants})"
                )
                raise CapacityExceeded(competition_id, fresh.max_participants)

            if existing is not None:
                # Reactivate a withdrawn registration in place
                result = await db.execute(
                    update(Registration)
                    .where(
                        Registration.id == existing.id,
                        Registration.status == RegistrationStatus.WITHDRAWN,
                    )
                    .values(status=RegistrationStatus.REGISTERED, registered_at=now, withdrawn_at=None)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise AlreadyRegistered(competition_id, actor.id)
                registration = await _find_registration(db, competition_id, actor.id)
            else:
                registration = Registration(
                    competition_id=competition_id,
                    user_id=actor.id,
                    status=RegistrationStatus.REGISTERED,
                    registered_at=now,
                )
                db.add(registration)
                await db.flush()
    except IntegrityError:
        # Concurrent insert for the same pair won the unique constraint
        raise AlreadyRegistered(competition_id, actor.id)

    logger.info(f"User {actor.id} registered for competition {competition_id}")
    return registration


async def withdraw(db: AsyncSession, competition_id: int, actor: ActingUser) -> Registration:
    """
    Withdraw the acting user. Idempotent once withdrawn. Captains must
    transfer captaincy first; ordinary team memberships in the
    competition are removed along with the registration.
    """
    async with transaction(db):
        competition = await get_competition(db, competition_id)

        registration = await _find_registration(db, competition_id, actor.id)
        if registration is None:
            raise NotRegistered(competition_id, actor.id)
        if not registration.is_active:
            return registration

        if competition.status not in WITHDRAWABLE_STATUSES:
            raise RegistrationLocked(competition_id, competition.status.value)

        captained = (await db.execute(
            select(Team.id).where(Team.competition_id == competition_id, Team.captain_user_id == actor.id)
        )).scalars().all()
        if captained:
            raise CaptainCannotWithdraw(competition_id, captained)

        result = await db.execute(
            update(Registration)
            .where(
                Registration.id == registration.id,
                Registration.status == RegistrationStatus.REGISTERED,
            )
            .values(status=RegistrationStatus.WITHDRAWN, withdrawn_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await db.execute(
                update(Competition)
                .where(Competition.id == competition_id, Competition.registration_count > 0)
                .values(
                    registration_count=Competition.registration_count - 1,
                    version=Competition.version + 1,
                )
                .execution_options(synchronize_session=False)
            )

            team_ids = (await db.execute(
                select(TeamMember.team_id)
                .join(Team, Team.id == TeamMember.team_id)
                .where(
                    Team.competition_id == competition_id,
                    TeamMember.user_id == actor.id,
                    TeamMember.role == TeamRole.MEMBER,
                )
            )).scalars().all()
            if team_ids:
                await db.execute(
                    update(Team)
                    .where(Team.id.in_(team_ids))
                    .values(version=Team.version + 1)
                    .execution_options(synchronize_session=False)
                )
                await db.execute(
                    delete(TeamMember)
                    .where(TeamMember.team_id.in_(team_ids), TeamMember.user_id == actor.id)
                    .execution_options(synchronize_session=False)
                )

            await log_registration_withdrawn(db, competition_id, actor.id, list(team_ids))
            logger.info(f"User {actor.id} withdrew from competition {competition_id} (left teams {list(team_ids)})")

        registration = await _find_registration(db, competition_id, actor.id)

    return registration


async def count_registrations(db: AsyncSession, competition_id: int) -> int:
    """Active registrations only."""
    await get_competition(db, competition_id)
    result = await db.execute(
        select(func.count(Registration.id)).where(
            Registration.competition_id == competition_id,
            Registration.status == RegistrationStatus.REGISTERED,
        )
    )
    return result.scalar() or 0


async def is_registered(db: AsyncSession, competition_id: int, user_id: str) -> bool:
    registration = await _find_registration(db, competition_id, user_id)
    return registration is not None and registration.is_active


async def get_registration(db: AsyncSession, competition_id: int, user_id: str) -> Registration:
    """The caller's own registration (active or withdrawn)."""
    await get_competition(db, competition_id)
    registration = await _find_registration(db, competition_id, user_id)
    if registration is None:
        raise RegistrationNotFound(competition_id)
    return registration


async def list_registrations(
    db: AsyncSession,
    competition_id: int,
    include_withdrawn: bool = False,
) -> List[Registration]:
    await get_competition(db, competition_id)
    query = select(Registration).where(Registration.competition_id == competition_id)
    if not include_withdrawn:
        query = query.where(Registration.status == RegistrationStatus.REGISTERED)
    result = await db.execute(
        query.order_by(Registration.registered_at, Registration.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
