"""
Judging & Scoring: criteria definitions and per-judge score upserts.

A score is keyed by (submission, judge, criterion). Writing the same key
again replaces the previous value: the write is one
INSERT ... ON CONFLICT DO UPDATE, so concurrent writes to one key
resolve to the last committed value and different keys never contend.

Criteria can be defined until the competition completes, and become
immutable as soon as any score references them.
"""
import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import transaction
from contest_engine.errors import (
    CompetitionLocked,
    CriterionCompetitionMismatch,
    CriterionLocked,
    NameRequired,
    NotJudgingPhase,
    ScoreOutOfRange,
    ValidationError,
)
from contest_engine.orm.base import utcnow
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.orm.judging import JudgingCriterion, JudgingScore
from contest_engine.rbac import ActingUser, require_competition_manager, require_judge
from contest_engine.schemas.judging import CriterionCreate, CriterionUpdate, ScoreSubmit
from contest_engine.services.lookups import current_status, get_competition, get_criterion, get_submission

logger = logging.getLogger(__name__)


def _require_positive(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer", field=field, details={"value": value})
    return value


async def _score_count(db: AsyncSession, criterion_id: int) -> int:
    result = await db.execute(
        select(func.count(JudgingScore.id)).where(JudgingScore.criterion_id == criterion_id)
    )
    return result.scalar() or 0


async def _editable_criterion(db: AsyncSession, criterion_id: int, actor: ActingUser, action: str) -> JudgingCriterion:
    criterion = await get_criterion(db, criterion_id)
    competition = await get_competition(db, criterion.competition_id)
    require_competition_manager(actor, competition, action)
    if competition.status == CompetitionStatus.COMPLETED:
        raise CompetitionLocked(competition.id, ["criteria"])
    if await _score_count(db, criterion_id):
        raise CriterionLocked(criterion_id)
    return criterion


# =============================================================================
# Criteria
# =============================================================================

async def define_criterion(
    db: AsyncSession,
    competition_id: int,
    actor: ActingUser,
    payload: CriterionCreate,
) -> JudgingCriterion:
    name = (payload.name or "").strip()
    if not name:
        raise NameRequired("name")
    weight = _require_positive(payload.weight, "weight")
    max_score = _require_positive(payload.max_score, "max_score")

    async with transaction(db):
        competition = await get_competition(db, competition_id)
        require_competition_manager(actor, competition, "define judging criteria")
        if competition.status == CompetitionStatus.COMPLETED:
            raise CompetitionLocked(competition_id, ["criteria"])

        criterion = JudgingCriterion(
            competition_id=competition_id,
            name=name,
            description=(payload.description or "").strip(),
            weight=weight,
            max_score=max_score,
        )
        db.add(criterion)
        await db.flush()

    logger.info(f"Criterion {criterion.id} '{name}' (weight={weight}, max={max_score}) defined for competition {competition_id}")
    return criterion


async def update_criterion(
    db: AsyncSession,
    criterion_id: int,
    actor: ActingUser,
    patch: CriterionUpdate,
) -> JudgingCriterion:
    changes = patch.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise NameRequired("name")
    if "description" in changes:
        changes["description"] = (changes["description"] or "").strip()
    for key in ("weight", "max_score"):
        if key in changes:
            _require_positive(changes[key], key)

    async with transaction(db):
        criterion = await _editable_criterion(db, criterion_id, actor, "update judging criteria")
        for key, value in changes.items():
            setattr(criterion, key, value)
        await db.flush()

        # A judge may have scored it in the meantime
        if await _score_count(db, criterion_id):
            raise CriterionLocked(criterion_id)

    return criterion


async def delete_criterion(db: AsyncSession, criterion_id: int, actor: ActingUser) -> None:
    async with transaction(db):
        criterion = await _editable_criterion(db, criterion_id, actor, "delete judging criteria")
        await db.delete(criterion)
        await db.flush()

    logger.info(f"Criterion {criterion_id} deleted by {actor.id}")


async def list_criteria(db: AsyncSession, competition_id: int) -> List[JudgingCriterion]:
    await get_competition(db, competition_id)
    result = await db.execute(
        select(JudgingCriterion)
        .where(JudgingCriterion.competition_id == competition_id)
        .order_by(JudgingCriterion.id)
    )
    return list(result.scalars().all())


# =============================================================================
# Scores
# =============================================================================

def _upsert_score_statement(dialect_name: str, values: dict):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert

    stmt = insert(JudgingScore).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["submission_id", "judge_user_id", "criterion_id"],
        set_={
            "score": stmt.excluded.score,
            "comment": stmt.excluded.comment,
            "updated_at": stmt.excluded.updated_at,
        },
    )


async def _find_score(db: AsyncSession, submission_id: int, judge_user_id: str, criterion_id: int):
    result = await db.execute(
        select(JudgingScore)
        .where(
            JudgingScore.submission_id == submission_id,
            JudgingScore.judge_user_id == judge_user_id,
            JudgingScore.criterion_id == criterion_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def submit_score(
    db: AsyncSession,
    submission_id: int,
    actor: ActingUser,
    payload: ScoreSubmit,
) -> JudgingScore:
    """Record (or replace) the acting judge's score for one criterion of a submission."""
    require_judge(actor)

    async with transaction(db):
        submission = await get_submission(db, submission_id)
        # Shared lock: judges score in parallel, a status change waits for them
        competition = await get_competition(db, submission.competition_id, lock=True, shared=True)
        if competition.status != CompetitionStatus.JUDGING:
            raise NotJudgingPhase(competition.id, competition.status.value)

        criterion = await get_criterion(db, payload.criterion_id)
        if criterion.competition_id != competition.id:
            raise CriterionCompetitionMismatch(criterion.id, competition.id)
        if payload.score < 0 or payload.score > criterion.max_score:
            raise ScoreOutOfRange(payload.score, criterion.max_score)

        now = utcnow()
        values = {
            "submission_id": submission_id,
            "judge_user_id": actor.id,
            "criterion_id": criterion.id,
            "score": payload.score,
            "comment": payload.comment,
            "created_at": now,
            "updated_at": now,
        }
        dialect_name = db.bind.dialect.name if db.bind is not None else "sqlite"
        if dialect_name in ("postgresql", "sqlite"):
            await db.execute(_upsert_score_statement(dialect_name, values))
        else:
            existing = await _find_score(db, submission_id, actor.id, criterion.id)
            if existing is None:
                db.add(JudgingScore(**values))
            else:
                existing.score = payload.score
                existing.comment = payload.comment
                existing.updated_at = now
            await db.flush()

        # Scoring closes the moment the competition completes
        status = await current_status(db, competition.id)
        if status != CompetitionStatus.JUDGING:
            raise NotJudgingPhase(competition.id, status.value if status else "deleted")

        score = await _find_score(db, submission_id, actor.id, criterion.id)

    logger.info(f"Judge {actor.id} scored submission {submission_id} criterion {criterion.id}: {payload.score}/{criterion.max_score}")
    return score


async def list_scores_by_submission(db: AsyncSession, submission_id: int) -> List[JudgingScore]:
    await get_submission(db, submission_id)
    result = await db.execute(
        select(JudgingScore)
        .where(JudgingScore.submission_id == submission_id)
        .order_by(JudgingScore.criterion_id, JudgingScore.judge_user_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
