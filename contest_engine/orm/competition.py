"""
contest_engine/orm/competition.py
Competition model: the root entity every other table hangs off.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Enum as SQLEnum

from contest_engine.orm.base import Base, utcnow


class CompetitionStatus(str, PyEnum):
    """Competition lifecycle status, strictly forward-only"""
    DRAFT = "draft"                # Being configured by the host
    OPEN = "open"                  # Accepting registrations
    IN_PROGRESS = "in_progress"    # Building; submissions accepted
    JUDGING = "judging"            # Submissions closed, judges scoring
    COMPLETED = "completed"        # Ranking frozen


class CompetitionVisibility(str, PyEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    ORG_ONLY = "org_only"


class Competition(Base):
    """
    Hosted coding competition.

    registration_count is the admission counter; it is only ever changed
    through conditional UPDATE statements so that it never exceeds
    max_participants.
    """
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)

    # Basic info
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    rules = Column(Text, nullable=True)
    prize_pool = Column(String(255), nullable=True)
    url = Column(String(500), nullable=True)
    image_url = Column(String(500), nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    # Ownership
    host_org_id = Column(Integer, nullable=True, index=True)
    created_by = Column(String(128), nullable=False, index=True)

    # Schedule
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    registration_deadline = Column(DateTime, nullable=True)

    # Admission
    max_participants = Column(Integer, nullable=True)
    late_registration = Column(Boolean, default=False, nullable=False)
    registration_count = Column(Integer, default=0, nullable=False)

    # Lifecycle
    status = Column(SQLEnum(CompetitionStatus), default=CompetitionStatus.DRAFT, nullable=False, index=True)
    visibility = Column(SQLEnum(CompetitionVisibility), default=CompetitionVisibility.PUBLIC, nullable=False)
    status_changed_at = Column(DateTime, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Competition(id={self.id}, title='{self.title}', status={self.status})>"

    @property
    def has_capacity_limit(self) -> bool:
        return self.max_participants is not None

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "rules": self.rules,
            "prize_pool": self.prize_pool,
            "url": self.url,
            "image_url": self.image_url,
            "tags": list(self.tags or []),
            "host_org_id": self.host_org_id,
            "created_by": self.created_by,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "registration_deadline": self.registration_deadline.isoformat() if self.registration_deadline else None,
            "max_participants": self.max_participants,
            "late_registration": self.late_registration,
            "registration_count": self.registration_count,
            "status": self.status.value if self.status else None,
            "visibility": self.visibility.value if self.visibility else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
