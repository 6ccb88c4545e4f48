"""
Row lookups shared by the services.

Every getter uses populate_existing so that a row already sitting in the
session's identity map is refreshed with the committed values; the
services change counters and statuses with bulk UPDATE statements that
bypass the identity map.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.errors import (
    CompetitionNotFound,
    CriterionNotFound,
    SubmissionNotFound,
    TeamNotFound,
)
from contest_engine.orm.competition import Competition, CompetitionStatus
from contest_engine.orm.judging import JudgingCriterion
from contest_engine.orm.submission import Submission
from contest_engine.orm.team import Team


async def get_competition(db: AsyncSession, competition_id: int, lock: bool = False, shared: bool = False) -> Competition:
    """lock takes a row lock (FOR UPDATE, or FOR SHARE when shared) where the dialect supports it."""
    query = (
        select(Competition)
        .where(Competition.id == competition_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update(read=shared)
    result = await db.execute(query)
    competition = result.scalar_one_or_none()
    if competition is None:
        raise CompetitionNotFound(competition_id)
    return competition


async def current_status(db: AsyncSession, competition_id: int) -> Optional[CompetitionStatus]:
    """
    Status as seen after this transaction's own writes.

    Once a transaction has written, no other writer can commit before it
    does, so re-reading the status after the write closes the window
    between the initial check and the commit.
    """
    result = await db.execute(select(Competition.status).where(Competition.id == competition_id))
    return result.scalar_one_or_none()


async def get_team(db: AsyncSession, team_id: int, lock: bool = False) -> Team:
    query = select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    team = result.scalar_one_or_none()
    if team is None:
        raise TeamNotFound(team_id)
    return team


async def get_submission(db: AsyncSession, submission_id: int) -> Submission:
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise SubmissionNotFound(submission_id)
    return submission


async def get_criterion(db: AsyncSession, criterion_id: int) -> JudgingCriterion:
    result = await db.execute(
        select(JudgingCriterion)
        .where(JudgingCriterion.id == criterion_id)
        .execution_options(populate_existing=True)
    )
    criterion = result.scalar_one_or_none()
    if criterion is None:
        raise CriterionNotFound(criterion_id)
    return criterion
