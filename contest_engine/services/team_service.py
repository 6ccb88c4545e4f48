"""
Team Formation Service.

Invariant: a team always has at least one member, and its captain is
always one of them. Team creation inserts the captain's membership in
the same transaction; the captain cannot leave; captaincy moves only
through transfer_captaincy, which demotes the previous captain.

Every membership mutation starts by bumping teams.version, which takes
the row's write lock so concurrent mutations of one team run one after
the other.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import transaction
from contest_engine.errors import (
    AlreadyMember,
    CaptainCannotLeave,
    NameRequired,
    NotTeamCaptain,
    NotTeamMember,
    TeamNameTaken,
    TeamNotFound,
    TeamsLocked,
)
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.orm.team import Team, TeamMember, TeamRole
from contest_engine.rbac import ActingUser
from contest_engine.services.activity_logger import log_captain_transferred
from contest_engine.services.lookups import get_competition, get_team
from contest_engine.services.registration_service import require_active_registration

logger = logging.getLogger(__name__)

LOCKED_STATUSES = (CompetitionStatus.JUDGING, CompetitionStatus.COMPLETED)


@dataclass
class TeamView:
    """A team with its computed member count and, when loaded, its roster."""
    team: Team
    member_count: int
    members: Optional[List[TeamMember]] = None

    @property
    def id(self) -> int:
        return self.team.id

    @property
    def name(self) -> str:
        return self.team.name

    @property
    def captain_user_id(self) -> str:
        return self.team.captain_user_id


async def _lock_team(db: AsyncSession, team_id: int) -> Team:
    result = await db.execute(
        update(Team)
        .where(Team.id == team_id)
        .values(version=Team.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise TeamNotFound(team_id)
    return await get_team(db, team_id, lock=True)


async def _check_teams_open(db: AsyncSession, competition_id: int) -> None:
    competition = await get_competition(db, competition_id)
    if competition.status in LOCKED_STATUSES:
        raise TeamsLocked(competition_id, competition.status.value)


async def _membership(db: AsyncSession, team_id: int, user_id: str) -> Optional[TeamMember]:
    result = await db.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_members(db: AsyncSession, team_id: int) -> List[TeamMember]:
    await get_team(db, team_id)
    result = await db.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.joined_at, TeamMember.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_team_view(db: AsyncSession, team_id: int) -> TeamView:
    team = await get_team(db, team_id)
    members = await list_members(db, team_id)
    return TeamView(team=team, member_count=len(members), members=members)


# =============================================================================
# Operations
# =============================================================================

async def create_team(db: AsyncSession, competition_id: int, actor: ActingUser, name: str) -> TeamView:
    """Create a team with the acting user as captain and first member."""
    name = (name or "").strip()
    if not name:
        raise NameRequired("name")

    try:
        async with transaction(db):
            await _check_teams_open(db, competition_id)
            await require_active_registration(db, competition_id, actor.id)

            taken = (await db.execute(
                select(Team.id).where(Team.competition_id == competition_id, Team.name == name)
            )).scalar_one_or_none()
            if taken is not None:
                raise TeamNameTaken(competition_id, name)

            team = Team(competition_id=competition_id, name=name, captain_user_id=actor.id)
            db.add(team)
            await db.flush()

            db.add(TeamMember(team_id=team.id, user_id=actor.id, role=TeamRole.CAPTAIN))
            await db.flush()
    except IntegrityError:
        raise TeamNameTaken(competition_id, name)

    logger.info(f"Team {team.id} '{name}' created in competition {competition_id} by {actor.id}")
    return await get_team_view(db, team.id)


async def join_team(db: AsyncSession, team_id: int, actor: ActingUser) -> TeamView:
    try:
        async with transaction(db):
            team = await _lock_team(db, team_id)
            await _check_teams_open(db, team.competition_id)
            await require_active_registration(db, team.competition_id, actor.id)

            if await _membership(db, team_id, actor.id) is not None:
                raise AlreadyMember(team_id, actor.id)

            db.add(TeamMember(team_id=team_id, user_id=actor.id, role=TeamRole.MEMBER))
            await db.flush()

            # A withdrawal may have committed between the check and the insert
            await require_active_registration(db, team.competition_id, actor.id)
    except IntegrityError:
        raise AlreadyMember(team_id, actor.id)

    logger.info(f"User {actor.id} joined team {team_id}")
    return await get_team_view(db, team_id)


async def leave_team(db: AsyncSession, team_id: int, actor: ActingUser) -> TeamView:
    """
    Remove the acting user from the team. Idempotent for non-members.
    Allowed through judging; the roster is final once the competition completes.
    """
    async with transaction(db):
        team = await _lock_team(db, team_id)
        competition = await get_competition(db, team.competition_id)
        if competition.status == CompetitionStatus.COMPLETED:
            raise TeamsLocked(competition.id, competition.status.value)
        if team.captain_user_id == actor.id:
            raise CaptainCannotLeave(team_id)

        result = await db.execute(
            delete(TeamMember)
            .where(TeamMember.team_id == team_id, TeamMember.user_id == actor.id)
            .execution_options(synchronize_session=False)
        )

    if result.rowcount:
        logger.info(f"User {actor.id} left team {team_id}")
    return await get_team_view(db, team_id)


async def transfer_captaincy(db: AsyncSession, team_id: int, actor: ActingUser, new_captain_user_id: str) -> TeamView:
    """
    Nominate another member as captain. The previous captain stays on the
    team as an ordinary member.
    """
    async with transaction(db):
        team = await _lock_team(db, team_id)
        old_captain = team.captain_user_id
        if actor.id != old_captain and not actor.is_admin:
            raise NotTeamCaptain(team_id)

        if new_captain_user_id != old_captain:
            nominee = await _membership(db, team_id, new_captain_user_id)
            if nominee is None:
                raise NotTeamMember(team_id, new_captain_user_id)

            await db.execute(
                update(TeamMember)
                .where(TeamMember.team_id == team_id, TeamMember.user_id == old_captain)
                .values(role=TeamRole.MEMBER)
                .execution_options(synchronize_session=False)
            )
            await db.execute(
                update(TeamMember)
                .where(TeamMember.id == nominee.id)
                .values(role=TeamRole.CAPTAIN)
                .execution_options(synchronize_session=False)
            )
            await db.execute(
                update(Team)
                .where(Team.id == team_id)
                .values(captain_user_id=new_captain_user_id)
                .execution_options(synchronize_session=False)
            )
            await log_captain_transferred(db, team.competition_id, actor.id, team_id, old_captain, new_captain_user_id)
            logger.info(f"Captaincy of team {team_id} transferred from {old_captain} to {new_captain_user_id}")

    return await get_team_view(db, team_id)


async def list_teams(db: AsyncSession, competition_id: int, include_members: bool = False) -> List[TeamView]:
    """Teams of a competition with computed member_count, ordered by id."""
    await get_competition(db, competition_id)
    result = await db.execute(
        select(Team, func.count(TeamMember.id))
        .outerjoin(TeamMember, TeamMember.team_id == Team.id)
        .where(Team.competition_id == competition_id)
        .group_by(Team.id)
        .order_by(Team.id)
        .execution_options(populate_existing=True)
    )
    views = [TeamView(team=team, member_count=count) for team, count in result.all()]

    if include_members and views:
        members = (await db.execute(
            select(TeamMember)
            .where(TeamMember.team_id.in_([v.id for v in views]))
            .order_by(TeamMember.joined_at, TeamMember.id)
        )).scalars().all()
        for view in views:
            view.members = [m for m in members if m.team_id == view.id]
    return views
