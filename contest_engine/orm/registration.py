"""
contest_engine/orm/registration.py
A user's admission record in a competition.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum

from contest_engine.orm.base import Base, utcnow


class RegistrationStatus(str, PyEnum):
    REGISTERED = "registered"
    WITHDRAWN = "withdrawn"


class Registration(Base):
    """
    One row per (competition, user) pair. Withdrawal flips the status;
    registering again reactivates the same row.
    """
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(String(128), nullable=False, index=True)
    status = Column(SQLEnum(RegistrationStatus), default=RegistrationStatus.REGISTERED, nullable=False)

    registered_at = Column(DateTime, default=utcnow, nullable=False)
    withdrawn_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="uq_registration_competition_user"),
    )

    def __repr__(self):
        return f"<Registration(competition={self.competition_id}, user='{self.user_id}', status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status == RegistrationStatus.REGISTERED
