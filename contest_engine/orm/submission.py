"""
contest_engine/orm/submission.py
Project entries. Several submissions per team or individual are allowed;
each one is judged on its own.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index

from contest_engine.orm.base import Base, utcnow


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    author_user_id = Column(String(128), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    repo_url = Column(String(500), nullable=True)
    demo_url = Column(String(500), nullable=True)
    video_url = Column(String(500), nullable=True)

    # Set once at intake; ranking tie-breaker
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_submission_competition_order", "competition_id", "submitted_at", "id"),
    )

    def __repr__(self):
        return f"<Submission(id={self.id}, title='{self.title}', team={self.team_id})>"
