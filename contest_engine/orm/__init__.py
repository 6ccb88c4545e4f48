"""
contest_engine/orm
Importing this package registers every model on Base.metadata.
"""
from contest_engine.orm.base import Base, utcnow
from contest_engine.orm.competition import Competition, CompetitionStatus, CompetitionVisibility
from contest_engine.orm.registration import Registration, RegistrationStatus
from contest_engine.orm.team import Team, TeamMember, TeamRole
from contest_engine.orm.submission import Submission
from contest_engine.orm.judging import JudgingCriterion, JudgingScore
from contest_engine.orm.ranking import RankingSnapshot, RankingEntry
from contest_engine.orm.activity_log import ActivityLog, ActivityType

__all__ = [
    "Base",
    "utcnow",
    "Competition",
    "CompetitionStatus",
    "CompetitionVisibility",
    "Registration",
    "RegistrationStatus",
    "Team",
    "TeamMember",
    "TeamRole",
    "Submission",
    "JudgingCriterion",
    "JudgingScore",
    "RankingSnapshot",
    "RankingEntry",
    "ActivityLog",
    "ActivityType",
]
