"""
Judging API Schemas (Pydantic)
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from contest_engine.orm.judging import DEFAULT_WEIGHT, DEFAULT_MAX_SCORE


class CriterionCreate(BaseModel):
    """Request schema for defining a weighted criterion."""
    name: str = Field(..., max_length=255)
    description: str = ""
    weight: int = DEFAULT_WEIGHT
    max_score: int = DEFAULT_MAX_SCORE


class CriterionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    weight: Optional[int] = None
    max_score: Optional[int] = None


class CriterionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    competition_id: int
    name: str
    description: str
    weight: int
    max_score: int


class ScoreSubmit(BaseModel):
    """One judge's score for one criterion. Repeating the call replaces the prior score."""
    criterion_id: int
    score: int
    comment: Optional[str] = None


class ScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    submission_id: int
    judge_user_id: str
    criterion_id: int
    score: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CriterionBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    criterion_id: int
    name: str
    weight: int
    max_score: int
    judge_count: int
    mean_score: Decimal
    normalized: Decimal


class AggregateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: int
    aggregate_score: Decimal
    display_score: Decimal
    breakdown: List[CriterionBreakdownResponse]


class RankingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    submission_id: int
    team_id: Optional[int] = None
    title: str
    aggregate_score: Decimal
    display_score: Decimal
    submitted_at: datetime


class RankingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    competition_id: int
    frozen: bool
    frozen_at: Optional[datetime] = None
    checksum_hash: Optional[str] = None
    entries: List[RankingEntryResponse]


class RankingVerifyResponse(BaseModel):
    competition_id: int
    valid: bool
    stored_checksum: str
    computed_checksum: str
