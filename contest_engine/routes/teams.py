"""
contest_engine/routes/teams.py
Team formation: create, join, leave, transfer captaincy.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import get_db
from contest_engine.rbac import ActingUser, get_acting_user
from contest_engine.routes.limits import WRITE_LIMIT, limiter
from contest_engine.schemas.team import (
    TeamCreate,
    TeamListResponse,
    TeamMemberResponse,
    TeamResponse,
    TransferCaptainRequest,
)
from contest_engine.services import team_service
from contest_engine.services.team_service import TeamView

router = APIRouter(tags=["Teams"])


def _team_response(view: TeamView) -> TeamResponse:
    members = None
    if view.members is not None:
        members = [TeamMemberResponse.model_validate(m) for m in view.members]
    return TeamResponse(
        id=view.team.id,
        competition_id=view.team.competition_id,
        name=view.team.name,
        captain_user_id=view.team.captain_user_id,
        member_count=view.member_count,
        created_at=view.team.created_at,
        members=members,
    )


@router.post(
    "/competitions/{competition_id}/teams",
    response_model=TeamResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(WRITE_LIMIT)
async def create_team(
    request: Request,
    competition_id: int,
    body: TeamCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a team; the caller must be registered and becomes captain."""
    view = await team_service.create_team(db, competition_id, actor, body.name)
    return _team_response(view)


@router.get("/competitions/{competition_id}/teams", response_model=TeamListResponse)
async def list_teams(
    competition_id: int,
    include_members: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    views = await team_service.list_teams(db, competition_id, include_members=include_members)
    return TeamListResponse(
        competition_id=competition_id,
        teams=[_team_response(v) for v in views],
    )


@router.get("/teams/{team_id}", response_model=TeamResponse)
async def get_team(team_id: int, db: AsyncSession = Depends(get_db)):
    view = await team_service.get_team_view(db, team_id)
    return _team_response(view)


@router.post("/teams/{team_id}/members", response_model=TeamResponse)
@limiter.limit(WRITE_LIMIT)
async def join_team(
    request: Request,
    team_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    view = await team_service.join_team(db, team_id, actor)
    return _team_response(view)


@router.delete("/teams/{team_id}/members", response_model=TeamResponse)
@limiter.limit(WRITE_LIMIT)
async def leave_team(
    request: Request,
    team_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave the team. The captain must hand over captaincy first."""
    view = await team_service.leave_team(db, team_id, actor)
    return _team_response(view)


@router.post("/teams/{team_id}/captain", response_model=TeamResponse)
@limiter.limit(WRITE_LIMIT)
async def transfer_captaincy(
    request: Request,
    team_id: int,
    body: TransferCaptainRequest,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    view = await team_service.transfer_captaincy(db, team_id, actor, body.new_captain_user_id)
    return _team_response(view)
