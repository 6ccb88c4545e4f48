"""
contest_engine/routes/judging.py
Judging criteria, judge scores, aggregates and rankings.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import get_db
from contest_engine.errors import PermissionDenied
from contest_engine.rbac import ActingUser, Role, can_manage_competition, get_acting_user
from contest_engine.routes.limits import WRITE_LIMIT, limiter
from contest_engine.schemas.judging import (
    AggregateResponse,
    CriterionCreate,
    CriterionResponse,
    CriterionUpdate,
    RankingResponse,
    RankingVerifyResponse,
    ScoreResponse,
    ScoreSubmit,
)
from contest_engine.services import judging_service, ranking_service
from contest_engine.services.lookups import get_competition, get_submission

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Judging"])


# ================= CRITERIA =================

@router.post(
    "/competitions/{competition_id}/criteria",
    response_model=CriterionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(WRITE_LIMIT)
async def define_criterion(
    request: Request,
    competition_id: int,
    body: CriterionCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await judging_service.define_criterion(db, competition_id, actor, body)


@router.get("/competitions/{competition_id}/criteria", response_model=List[CriterionResponse])
async def list_criteria(competition_id: int, db: AsyncSession = Depends(get_db)):
    return await judging_service.list_criteria(db, competition_id)


@router.patch("/criteria/{criterion_id}", response_model=CriterionResponse)
@limiter.limit(WRITE_LIMIT)
async def update_criterion(
    request: Request,
    criterion_id: int,
    body: CriterionUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Criteria are immutable once any judge has scored them (409 CRITERION_LOCKED)."""
    return await judging_service.update_criterion(db, criterion_id, actor, body)


@router.delete("/criteria/{criterion_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def delete_criterion(
    request: Request,
    criterion_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await judging_service.delete_criterion(db, criterion_id, actor)


# ================= SCORES =================

@router.put("/submissions/{submission_id}/scores", response_model=ScoreResponse)
@limiter.limit(WRITE_LIMIT)
async def submit_score(
    request: Request,
    submission_id: int,
    body: ScoreSubmit,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Record the caller's score for one criterion. Only during judging.
    Re-submitting the same criterion replaces the earlier score.
    """
    return await judging_service.submit_score(db, submission_id, actor, body)


@router.get("/submissions/{submission_id}/scores", response_model=List[ScoreResponse])
async def list_scores(
    submission_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Raw judge scores; visible to judges and competition managers."""
    if not actor.has_role(Role.JUDGE):
        submission = await get_submission(db, submission_id)
        competition = await get_competition(db, submission.competition_id)
        if not can_manage_competition(actor, competition):
            raise PermissionDenied("view judge scores")
    return await judging_service.list_scores_by_submission(db, submission_id)


@router.get("/submissions/{submission_id}/aggregate", response_model=AggregateResponse)
async def get_aggregate(submission_id: int, db: AsyncSession = Depends(get_db)):
    result = await ranking_service.compute_aggregate(db, submission_id)
    return AggregateResponse.model_validate(result)


# ================= RANKING =================

@router.get("/competitions/{competition_id}/ranking", response_model=RankingResponse)
async def get_ranking(competition_id: int, db: AsyncSession = Depends(get_db)):
    """Frozen standings once completed, otherwise the live ranking."""
    ranking = await ranking_service.rank(db, competition_id)
    return RankingResponse.model_validate(ranking)


@router.get("/competitions/{competition_id}/ranking/verify", response_model=RankingVerifyResponse)
async def verify_ranking(competition_id: int, db: AsyncSession = Depends(get_db)):
    """Recompute the frozen standings checksum. 404 until the competition completes."""
    return await ranking_service.verify_ranking_snapshot(db, competition_id)
