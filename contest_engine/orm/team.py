"""
contest_engine/orm/team.py
Teams and their membership rows.
A team belongs to exactly one competition; its captain always holds a membership row.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum

from contest_engine.orm.base import Base, utcnow


class TeamRole(str, PyEnum):
    """Team-level role of a member"""
    CAPTAIN = "captain"
    MEMBER = "member"


class Team(Base):
    """
    version is bumped by every membership mutation; the bump is the
    first statement of the transaction so mutations serialize per team.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)
    captain_user_id = Column(String(128), nullable=False)
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("competition_id", "name", name="uq_team_competition_name"),
    )

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', captain='{self.captain_user_id}')>"


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    role = Column(SQLEnum(TeamRole), default=TeamRole.MEMBER, nullable=False)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
    )

    def __repr__(self):
        return f"<TeamMember(team={self.team_id}, user='{self.user_id}', role={self.role})>"
