"""
contest_engine/orm/judging.py
Weighted judging criteria and per-judge scores.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint, CheckConstraint

from contest_engine.orm.base import Base, utcnow

DEFAULT_WEIGHT = 1
DEFAULT_MAX_SCORE = 10


class JudgingCriterion(Base):
    """
    A scored dimension of a competition. Immutable once any score references it.
    """
    __tablename__ = "judging_criteria"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    weight = Column(Integer, nullable=False, default=DEFAULT_WEIGHT)
    max_score = Column(Integer, nullable=False, default=DEFAULT_MAX_SCORE)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("weight >= 1", name="ck_criterion_weight_positive"),
        CheckConstraint("max_score >= 1", name="ck_criterion_max_score_positive"),
    )

    def __repr__(self):
        return f"<JudgingCriterion(id={self.id}, name='{self.name}', weight={self.weight}, max={self.max_score})>"


class JudgingScore(Base):
    """
    One judge's rating of one submission on one criterion.
    The (submission, judge, criterion) key is unique; writes are upserts.
    """
    __tablename__ = "judging_scores"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    judge_user_id = Column(String(128), nullable=False, index=True)
    criterion_id = Column(
        Integer,
        ForeignKey("judging_criteria.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    score = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("submission_id", "judge_user_id", "criterion_id", name="uq_score_submission_judge_criterion"),
        CheckConstraint("score >= 0", name="ck_score_non_negative"),
    )

    def __repr__(self):
        return f"<JudgingScore(submission={self.submission_id}, judge='{self.judge_user_id}', criterion={self.criterion_id}, score={self.score})>"
