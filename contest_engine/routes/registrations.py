"""
contest_engine/routes/registrations.py
Participant registration: register, withdraw, own status, roster and count.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import get_db
from contest_engine.rbac import ActingUser, get_acting_user, require_competition_manager
from contest_engine.routes.limits import WRITE_LIMIT, limiter
from contest_engine.schemas.registration import (
    RegistrationCountResponse,
    RegistrationListResponse,
    RegistrationResponse,
)
from contest_engine.services import registration_service
from contest_engine.services.lookups import get_competition

router = APIRouter(prefix="/competitions/{competition_id}", tags=["Registrations"])


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def register(
    request: Request,
    competition_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Register the caller.

    409 NOT_OPEN / DEADLINE_PASSED / ALREADY_REGISTERED / CAPACITY_EXCEEDED.
    """
    return await registration_service.register(db, competition_id, actor)


@router.delete("/register", response_model=RegistrationResponse)
@limiter.limit(WRITE_LIMIT)
async def withdraw(
    request: Request,
    competition_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await registration_service.withdraw(db, competition_id, actor)


@router.get("/registration", response_model=RegistrationResponse)
async def my_registration(
    competition_id: int,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await registration_service.get_registration(db, competition_id, actor.id)


@router.get("/registrations", response_model=RegistrationListResponse)
async def list_registrations(
    competition_id: int,
    include_withdrawn: bool = Query(False),
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    competition = await get_competition(db, competition_id)
    require_competition_manager(actor, competition, "list registrations")
    registrations = await registration_service.list_registrations(
        db, competition_id, include_withdrawn=include_withdrawn
    )
    return {
        "competition_id": competition_id,
        "registrations": [RegistrationResponse.model_validate(r) for r in registrations],
        "total": len(registrations),
    }


@router.get("/registrations/count", response_model=RegistrationCountResponse)
async def registration_count(competition_id: int, db: AsyncSession = Depends(get_db)):
    count = await registration_service.count_registrations(db, competition_id)
    competition = await get_competition(db, competition_id)
    return {
        "competition_id": competition_id,
        "count": count,
        "max_participants": competition.max_participants,
    }
