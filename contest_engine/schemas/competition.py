"""
Competition API Schemas (Pydantic)
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contest_engine.orm.base import as_naive_utc
from contest_engine.orm.competition import CompetitionStatus, CompetitionVisibility


class CompetitionCreate(BaseModel):
    """Request schema for creating a competition."""
    title: str = Field(..., max_length=255)
    description: str = ""
    start_at: datetime
    end_at: datetime
    registration_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, gt=0)
    late_registration: bool = False
    host_org_id: Optional[int] = None
    visibility: CompetitionVisibility = CompetitionVisibility.PUBLIC
    rules: Optional[str] = None
    prize_pool: Optional[str] = Field(default=None, max_length=255)
    url: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)
    tags: List[str] = Field(default_factory=list)

    @field_validator("start_at", "end_at", "registration_deadline")
    @classmethod
    def normalize_timestamp(cls, v):
        return as_naive_utc(v)

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class CompetitionUpdate(BaseModel):
    """
    Partial update. Only fields present in the request are applied.
    Status is changed through the transition endpoint, never here.
    """
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, gt=0)
    late_registration: Optional[bool] = None
    visibility: Optional[CompetitionVisibility] = None
    rules: Optional[str] = None
    prize_pool: Optional[str] = Field(default=None, max_length=255)
    url: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[List[str]] = None

    @field_validator("start_at", "end_at", "registration_deadline")
    @classmethod
    def normalize_timestamp(cls, v):
        return as_naive_utc(v)

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if v is not None else v


class TransitionRequest(BaseModel):
    """Request to move a competition to the next lifecycle status."""
    target_status: CompetitionStatus


class CompetitionResponse(BaseModel):
    """Response schema for competition data."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    rules: Optional[str] = None
    prize_pool: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = []
    host_org_id: Optional[int] = None
    created_by: str
    start_at: datetime
    end_at: datetime
    registration_deadline: Optional[datetime] = None
    max_participants: Optional[int] = None
    late_registration: bool
    registration_count: int
    status: CompetitionStatus
    visibility: CompetitionVisibility
    status_changed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CompetitionTeamSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    captain_user_id: str
    member_count: int


class CompetitionCriterionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    weight: int
    max_score: int


class CompetitionDetailResponse(CompetitionResponse):
    """Competition with its teams and judging criteria."""
    teams: List[CompetitionTeamSummary] = []
    criteria: List[CompetitionCriterionSummary] = []


class CompetitionListResponse(BaseModel):
    competitions: List[CompetitionResponse]
    total: int
