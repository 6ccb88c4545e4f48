"""
Submission API Schemas (Pydantic)
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class SubmissionCreate(BaseModel):
    """Request schema for filing a submission."""
    title: str = Field(..., max_length=255)
    description: str
    team_id: Optional[int] = None
    repo_url: Optional[str] = Field(default=None, max_length=500)
    demo_url: Optional[str] = Field(default=None, max_length=500)
    video_url: Optional[str] = Field(default=None, max_length=500)


class SubmissionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    repo_url: Optional[str] = Field(default=None, max_length=500)
    demo_url: Optional[str] = Field(default=None, max_length=500)
    video_url: Optional[str] = Field(default=None, max_length=500)


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    competition_id: int
    author_user_id: str
    team_id: Optional[int] = None
    title: str
    description: str
    repo_url: Optional[str] = None
    demo_url: Optional[str] = None
    video_url: Optional[str] = None
    submitted_at: datetime
    updated_at: datetime


class SubmissionListResponse(BaseModel):
    competition_id: int
    submissions: List[SubmissionResponse]
