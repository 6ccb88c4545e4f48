"""
Team API Schemas (Pydantic)
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from contest_engine.orm.team import TeamRole


class TeamCreate(BaseModel):
    """Request to create a team; the caller becomes captain."""
    name: str = Field(..., max_length=255)


class TransferCaptainRequest(BaseModel):
    """Request to transfer captaincy to another member"""
    new_captain_user_id: str = Field(..., min_length=1, max_length=128)


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    role: TeamRole
    joined_at: datetime


class TeamResponse(BaseModel):
    id: int
    competition_id: int
    name: str
    captain_user_id: str
    member_count: int
    created_at: datetime
    members: Optional[List[TeamMemberResponse]] = None


class TeamListResponse(BaseModel):
    competition_id: int
    teams: List[TeamResponse]
