"""
contest_engine/routes/submissions.py
Submission intake.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.database import get_db
from contest_engine.rbac import ActingUser, get_acting_user
from contest_engine.routes.limits import WRITE_LIMIT, limiter
from contest_engine.schemas.submission import (
    SubmissionCreate,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionUpdate,
)
from contest_engine.services import submission_service
from contest_engine.services.lookups import get_submission

router = APIRouter(tags=["Submissions"])


@router.post(
    "/competitions/{competition_id}/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(WRITE_LIMIT)
async def create_submission(
    request: Request,
    competition_id: int,
    body: SubmissionCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """
    File a submission. Accepted while the competition is open or in progress.

    Pass team_id to submit on behalf of a team the caller belongs to.
    """
    return await submission_service.submit(db, competition_id, actor, body)


@router.get("/competitions/{competition_id}/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    competition_id: int,
    team_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    submissions = await submission_service.list_submissions(db, competition_id, team_id=team_id)
    return {
        "competition_id": competition_id,
        "submissions": [SubmissionResponse.model_validate(s) for s in submissions],
    }


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def read_submission(submission_id: int, db: AsyncSession = Depends(get_db)):
    return await get_submission(db, submission_id)


@router.patch("/submissions/{submission_id}", response_model=SubmissionResponse)
@limiter.limit(WRITE_LIMIT)
async def update_submission(
    request: Request,
    submission_id: int,
    body: SubmissionUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await submission_service.update_submission(db, submission_id, actor, body)
