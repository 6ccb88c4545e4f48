"""
contest_engine/routes/competitions.py
Competition registry API: create, read, update, lifecycle transitions, delete.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import get_db
from contest_engine.orm.competition import CompetitionStatus, CompetitionVisibility
from contest_engine.rbac import ActingUser, get_acting_user, require_competition_manager
from contest_engine.routes.limits import WRITE_LIMIT, limiter
from contest_engine.schemas.competition import (
    CompetitionCriterionSummary,
    CompetitionCreate,
    CompetitionDetailResponse,
    CompetitionListResponse,
    CompetitionResponse,
    CompetitionUpdate,
    TransitionRequest,
)
from contest_engine.services import activity_logger, competition_service
from contest_engine.services.lookups import get_competition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/competitions", tags=["Competitions"])


@router.post("", response_model=CompetitionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_competition(
    request: Request,
    body: CompetitionCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a competition in draft. Requires the host role."""
    return await competition_service.create_competition(db, actor, body)


@router.get("", response_model=CompetitionListResponse)
async def list_competitions(
    status_filter: Optional[CompetitionStatus] = Query(None, alias="status"),
    visibility: Optional[CompetitionVisibility] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    competitions, total = await competition_service.list_competitions(
        db, status=status_filter, visibility=visibility, limit=limit, offset=offset
    )
    return {
        "competitions": [CompetitionResponse.model_validate(c) for c in competitions],
        "total": total,
    }


@router.get("/{competition_id}", response_model=CompetitionDetailResponse)
async def get_competition_detail(competition_id: int, db: AsyncSession = Depends(get_db)):
    """Competition with registration count, teams and judging criteria."""
    detail = await competition_service.get_competition_detail(db, competition_id)
    data = CompetitionResponse.model_validate(detail.competition).model_dump()
    data["teams"] = [
        {
            "id": view.id,
            "name": view.name,
            "captain_user_id": view.captain_user_id,
            "member_count": view.member_count,
        }
        for view in detail.teams
    ]
    data["criteria"] = [CompetitionCriterionSummary.model_validate(c).model_dump() for c in detail.criteria]
    return CompetitionDetailResponse.model_validate(data)


@router.patch("/{competition_id}", response_model=CompetitionResponse)
@limiter.limit(WRITE_LIMIT)
async def update_competition(
    request: Request,
    competition_id: int,
    body: CompetitionUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await competition_service.update_competition(db, competition_id, actor, body)


@router.post("/{competition_id}/transition", response_model=CompetitionResponse)
@limiter.limit(WRITE_LIMIT)
async def transition_competition(
    request: Request,
    competition_id: int,
    body: TransitionRequest,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Advance the lifecycle one step: draft → open → in_progress → judging → completed."""
    return await competition_service.transition_competition(db, competition_id, actor, body.target_status)


@router.delete("/{competition_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def delete_competition(
    request: Request,
    competition_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await competition_service.delete_competition(db, competition_id, actor)


@router.get("/{competition_id}/activity")
async def list_activity(
    competition_id: int,
    limit: int = Query(100, ge=1, le=500),
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of the competition. Managers only."""
    competition = await get_competition(db, competition_id)
    require_competition_manager(actor, competition, "view the activity log")
    entries = await activity_logger.list_activity(db, competition_id, limit=limit)
    return {"competition_id": competition_id, "activity": [e.to_dict() for e in entries]}
