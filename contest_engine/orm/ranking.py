"""
contest_engine/orm/ranking.py
Frozen standings written when a competition enters `completed`.

Snapshot rows are never updated after creation; checksum_hash is the
SHA256 of the canonical serialized entries and is used for tamper detection.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey,
    Numeric, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from contest_engine.orm.base import Base, utcnow


class RankingSnapshot(Base):
    __tablename__ = "ranking_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False
    )
    frozen_by = Column(String(128), nullable=False)
    frozen_at = Column(DateTime, nullable=False, default=utcnow)
    total_submissions = Column(Integer, nullable=False)
    checksum_hash = Column(String(64), nullable=False)

    entries = relationship(
        "RankingEntry",
        back_populates="snapshot",
        order_by="RankingEntry.rank",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("competition_id", name="uq_ranking_snapshot_competition"),
    )

    def __repr__(self) -> str:
        return f"<RankingSnapshot(id={self.id}, competition_id={self.competition_id}, frozen_at={self.frozen_at})>"


class RankingEntry(Base):
    __tablename__ = "ranking_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(
        Integer,
        ForeignKey("ranking_snapshots.id", ondelete="CASCADE"),
        nullable=False
    )
    submission_id = Column(Integer, nullable=False)
    team_id = Column(Integer, nullable=True)
    title = Column(String(255), nullable=False)
    rank = Column(Integer, nullable=False)
    aggregate_score = Column(Numeric(10, 6), nullable=False)
    display_score = Column(Numeric(6, 2), nullable=False)
    submitted_at = Column(DateTime, nullable=False)
    score_breakdown = Column(JSON, nullable=False, default=dict)

    snapshot = relationship("RankingSnapshot", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("snapshot_id", "rank", name="uq_ranking_entry_rank"),
        UniqueConstraint("snapshot_id", "submission_id", name="uq_ranking_entry_submission"),
        Index("idx_ranking_entries_snapshot", "snapshot_id"),
    )

    def __repr__(self) -> str:
        return f"<RankingEntry(rank={self.rank}, submission_id={self.submission_id}, score={self.aggregate_score})>"
