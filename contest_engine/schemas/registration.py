"""
Registration API Schemas (Pydantic)
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict

from contest_engine.orm.registration import RegistrationStatus


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    competition_id: int
    user_id: str
    status: RegistrationStatus
    registered_at: datetime
    withdrawn_at: Optional[datetime] = None


class RegistrationListResponse(BaseModel):
    competition_id: int
    registrations: List[RegistrationResponse]
    total: int


class RegistrationCountResponse(BaseModel):
    competition_id: int
    count: int
    max_participants: Optional[int] = None
