"""
contest_engine/orm/activity_log.py
Append-only audit trail for competition-level actions.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Enum as SQLEnum

from contest_engine.orm.base import Base, utcnow


class ActivityType(str, PyEnum):
    """Types of actions that are logged"""
    STATUS_TRANSITION = "status_transition"
    RANKING_FROZEN = "ranking_frozen"
    CAPTAIN_TRANSFERRED = "captain_transferred"
    REGISTRATION_WITHDRAWN = "registration_withdrawn"


class ActivityLog(Base):
    """
    What happened, who did it and when. Rows are never updated.
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    actor_id = Column(String(128), nullable=False)
    action_type = Column(SQLEnum(ActivityType), nullable=False, index=True)
    context = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ActivityLog(competition={self.competition_id}, action={self.action_type}, actor='{self.actor_id}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "actor_id": self.actor_id,
            "action_type": self.action_type.value if self.action_type else None,
            "context": self.context or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
