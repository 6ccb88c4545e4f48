"""
Submission Intake.

Submissions are accepted while the competition is `open` or
`in_progress`; entering `judging` closes intake. A team or an
unaffiliated registrant may file several submissions; each one is
ranked on its own.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import transaction
from contest_engine.errors import (
    NotSubmissionAuthor,
    NotTeamMember,
    SubmissionsClosed,
    SubmissionsNotOpen,
    ValidationError,
)
from contest_engine.orm.base import utcnow
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.orm.submission import Submission
from contest_engine.orm.team import Team, TeamMember
from contest_engine.rbac import ActingUser
from contest_engine.schemas.submission import SubmissionCreate, SubmissionUpdate
from contest_engine.services.lookups import current_status, get_competition, get_submission
from contest_engine.services.registration_service import require_active_registration

logger = logging.getLogger(__name__)

CLOSED_STATUSES = (CompetitionStatus.JUDGING, CompetitionStatus.COMPLETED)


def _check_intake_open(competition_id: int, status: CompetitionStatus) -> None:
    if status in CLOSED_STATUSES:
        raise SubmissionsClosed(competition_id, status.value)
    if status == CompetitionStatus.DRAFT:
        raise SubmissionsNotOpen(competition_id, status.value)


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty", field=field)
    return value


async def submit(
    db: AsyncSession,
    competition_id: int,
    actor: ActingUser,
    payload: SubmissionCreate,
) -> Submission:
    """File a submission for the acting user, optionally on behalf of one of their teams."""
    async with transaction(db):
        competition = await get_competition(db, competition_id, lock=True, shared=True)
        _check_intake_open(competition_id, competition.status)
        await require_active_registration(db, competition_id, actor.id)

        title = _require_text(payload.title, "title")
        description = _require_text(payload.description, "description")

        if payload.team_id is not None:
            team = (await db.execute(select(Team).where(Team.id == payload.team_id))).scalar_one_or_none()
            if team is None or team.competition_id != competition_id:
                raise NotTeamMember(payload.team_id, actor.id)
            member = (await db.execute(
                select(TeamMember.id).where(
                    TeamMember.team_id == payload.team_id,
                    TeamMember.user_id == actor.id,
                )
            )).scalar_one_or_none()
            if member is None:
                raise NotTeamMember(payload.team_id, actor.id)

        submission = Submission(
            competition_id=competition_id,
            author_user_id=actor.id,
            team_id=payload.team_id,
            title=title,
            description=description,
            repo_url=payload.repo_url,
            demo_url=payload.demo_url,
            video_url=payload.video_url,
            submitted_at=utcnow(),
        )
        db.add(submission)
        await db.flush()

        # Intake may have closed between the first check and the insert
        _check_intake_open(competition_id, await current_status(db, competition_id))

    logger.info(f"Submission {submission.id} '{title}' filed in competition {competition_id} by {actor.id} (team={payload.team_id})")
    return submission


async def list_submissions(
    db: AsyncSession,
    competition_id: int,
    team_id: Optional[int] = None,
) -> List[Submission]:
    await get_competition(db, competition_id)
    query = select(Submission).where(Submission.competition_id == competition_id)
    if team_id is not None:
        query = query.where(Submission.team_id == team_id)
    result = await db.execute(
        query.order_by(Submission.submitted_at, Submission.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_submission(
    db: AsyncSession,
    submission_id: int,
    actor: ActingUser,
    patch: SubmissionUpdate,
) -> Submission:
    """Only the author may edit, and only while intake is open. submitted_at never changes."""
    changes = patch.model_dump(exclude_unset=True)

    async with transaction(db):
        submission = await get_submission(db, submission_id)
        if submission.author_user_id != actor.id:
            raise NotSubmissionAuthor(submission_id)

        competition = await get_competition(db, submission.competition_id)
        _check_intake_open(competition.id, competition.status)

        if "title" in changes:
            changes["title"] = _require_text(changes["title"], "title")
        if "description" in changes:
            changes["description"] = _require_text(changes["description"], "description")

        for key, value in changes.items():
            setattr(submission, key, value)
        await db.flush()

        _check_intake_open(competition.id, await current_status(db, competition.id))

    logger.info(f"Submission {submission_id} updated by {actor.id}: {sorted(changes)}")
    return submission
