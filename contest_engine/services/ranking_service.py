"""
Ranking Service: aggregate scores, deterministic ranking, frozen standings.

Aggregation (weighted mean of normalized criterion means):
    for each criterion c of the competition:
        mean_c       = mean of all judges' scores for c (0 if nobody scored c)
        normalized_c = mean_c / c.max_score
    aggregate = sum(normalized_c * c.weight) / sum(c.weight)      in [0, 1]
    display   = aggregate * 100                                    in [0, 100]

Unscored criteria contribute 0, so a partially judged submission ranks
below a fully judged one of equal quality. A competition without
criteria aggregates to 0. Arithmetic is exact (Fraction) so equal
aggregates compare equal; Decimals are only produced for output.

Ranking order:
    1. aggregate score DESC
    2. submitted_at ASC (first submitted ranks higher)
    3. submission id ASC
Ranks are 1-based and strictly sequential; no two entries share a rank.

When a competition enters `completed` the ranking is frozen into a
RankingSnapshot with a SHA256 checksum of the canonical standings.
"""
import hashlib
import hmac
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from fractions import Fraction
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.errors import SnapshotNotFound
from contest_engine.orm.competition import Competition, CompetitionStatus
from contest_engine.orm.judging import JudgingCriterion, JudgingScore
from contest_engine.orm.ranking import RankingEntry, RankingSnapshot
from contest_engine.orm.submission import Submission
from contest_engine.services.activity_logger import log_ranking_frozen
from contest_engine.services.lookups import get_competition, get_submission

logger = logging.getLogger(__name__)

SCORE_PLACES = Decimal("0.000001")
DISPLAY_PLACES = Decimal("0.01")


def _to_decimal(value: Fraction, places: Decimal) -> Decimal:
    return (Decimal(value.numerator) / Decimal(value.denominator)).quantize(places, rounding=ROUND_HALF_UP)


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class CriterionBreakdown:
    criterion_id: int
    name: str
    weight: int
    max_score: int
    judge_count: int
    mean: Fraction

    @property
    def mean_score(self) -> Decimal:
        return _to_decimal(self.mean, SCORE_PLACES)

    @property
    def normalized(self) -> Decimal:
        return _to_decimal(self.mean / self.max_score, SCORE_PLACES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "name": self.name,
            "weight": self.weight,
            "max_score": self.max_score,
            "judge_count": self.judge_count,
            "mean_score": str(self.mean_score),
            "normalized": str(self.normalized),
        }


@dataclass(frozen=True)
class AggregateResult:
    submission_id: int
    score: Fraction
    breakdown: List[CriterionBreakdown] = field(default_factory=list)

    @property
    def aggregate_score(self) -> Decimal:
        return _to_decimal(self.score, SCORE_PLACES)

    @property
    def display_score(self) -> Decimal:
        return _to_decimal(self.score * 100, DISPLAY_PLACES)


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    submission_id: int
    team_id: Optional[int]
    title: str
    aggregate_score: Decimal
    display_score: Decimal
    submitted_at: datetime
    score_breakdown: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class Ranking:
    competition_id: int
    entries: List[RankedEntry]
    frozen: bool = False
    frozen_at: Optional[datetime] = None
    checksum_hash: Optional[str] = None


# =============================================================================
# Aggregation
# =============================================================================

def aggregate(submission_id: int, criteria: List[JudgingCriterion], scores: List[JudgingScore]) -> AggregateResult:
    """Pure aggregation over already-loaded rows."""
    by_criterion: Dict[int, List[int]] = defaultdict(list)
    for s in scores:
        by_criterion[s.criterion_id].append(s.score)

    breakdown = []
    weighted_sum = Fraction(0)
    total_weight = 0
    for criterion in sorted(criteria, key=lambda c: c.id):
        values = by_criterion.get(criterion.id, [])
        mean = Fraction(sum(values), len(values)) if values else Fraction(0)
        breakdown.append(CriterionBreakdown(
            criterion_id=criterion.id,
            name=criterion.name,
            weight=criterion.weight,
            max_score=criterion.max_score,
            judge_count=len(values),
            mean=mean,
        ))
        weighted_sum += (mean / criterion.max_score) * criterion.weight
        total_weight += criterion.weight

    score = weighted_sum / total_weight if total_weight else Fraction(0)
    return AggregateResult(submission_id=submission_id, score=score, breakdown=breakdown)


async def _criteria_for(db: AsyncSession, competition_id: int) -> List[JudgingCriterion]:
    result = await db.execute(
        select(JudgingCriterion)
        .where(JudgingCriterion.competition_id == competition_id)
        .order_by(JudgingCriterion.id)
    )
    return list(result.scalars().all())


async def compute_aggregate(db: AsyncSession, submission_id: int) -> AggregateResult:
    """Aggregate score for one submission; a pure function of the stored scores."""
    submission = await get_submission(db, submission_id)
    criteria = await _criteria_for(db, submission.competition_id)
    result = await db.execute(
        select(JudgingScore)
        .where(JudgingScore.submission_id == submission_id)
        .execution_options(populate_existing=True)
    )
    return aggregate(submission_id, criteria, list(result.scalars().all()))


def order_submissions(submissions: List[Submission], aggregates: Dict[int, AggregateResult]) -> List[RankedEntry]:
    ordered = sorted(
        submissions,
        key=lambda s: (-aggregates[s.id].score, s.submitted_at, s.id),
    )
    return [
        RankedEntry(
            rank=position,
            submission_id=s.id,
            team_id=s.team_id,
            title=s.title,
            aggregate_score=aggregates[s.id].aggregate_score,
            display_score=aggregates[s.id].display_score,
            submitted_at=s.submitted_at,
            score_breakdown=[b.to_dict() for b in aggregates[s.id].breakdown],
        )
        for position, s in enumerate(ordered, start=1)
    ]


async def compute_live_ranking(db: AsyncSession, competition_id: int) -> List[RankedEntry]:
    criteria = await _criteria_for(db, competition_id)

    submissions_result = await db.execute(
        select(Submission).where(Submission.competition_id == competition_id)
    )
    submissions = list(submissions_result.scalars().all())

    scores_result = await db.execute(
        select(JudgingScore)
        .join(Submission, Submission.id == JudgingScore.submission_id)
        .where(Submission.competition_id == competition_id)
        .execution_options(populate_existing=True)
    )
    scores_by_submission: Dict[int, List[JudgingScore]] = defaultdict(list)
    for score in scores_result.scalars().all():
        scores_by_submission[score.submission_id].append(score)

    aggregates = {
        s.id: aggregate(s.id, criteria, scores_by_submission.get(s.id, []))
        for s in submissions
    }
    return order_submissions(submissions, aggregates)


async def rank(db: AsyncSession, competition_id: int) -> Ranking:
    """
    Ranking for a competition. Completed competitions return the frozen
    snapshot; otherwise the ranking is computed from the current scores
    and may still move while judging is open.
    """
    competition = await get_competition(db, competition_id)

    if competition.status == CompetitionStatus.COMPLETED:
        snapshot = await get_snapshot(db, competition_id)
        if snapshot is not None:
            return ranking_from_snapshot(snapshot)
        logger.warning(f"Competition {competition_id} is completed but has no frozen ranking")

    entries = await compute_live_ranking(db, competition_id)
    return Ranking(competition_id=competition_id, entries=entries)


# =============================================================================
# Frozen standings
# =============================================================================

def compute_standings_hash(competition_id: int, entries) -> str:
    """
    SHA256 of the canonical serialized standings.
    Works on RankedEntry and RankingEntry alike.
    """
    data = {
        "competition_id": competition_id,
        "rankings": [
            {
                "rank": e.rank,
                "submission_id": e.submission_id,
                "aggregate_score": format(Decimal(e.aggregate_score).quantize(SCORE_PLACES), "f"),
                "submitted_at": e.submitted_at.isoformat(),
            }
            for e in sorted(entries, key=lambda e: e.rank)
        ],
    }
    json_str = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()


async def get_snapshot(db: AsyncSession, competition_id: int) -> Optional[RankingSnapshot]:
    result = await db.execute(
        select(RankingSnapshot).where(RankingSnapshot.competition_id == competition_id)
    )
    return result.scalar_one_or_none()


def ranking_from_snapshot(snapshot: RankingSnapshot) -> Ranking:
    return Ranking(
        competition_id=snapshot.competition_id,
        frozen=True,
        frozen_at=snapshot.frozen_at,
        checksum_hash=snapshot.checksum_hash,
        entries=[
            RankedEntry(
                rank=e.rank,
                submission_id=e.submission_id,
                team_id=e.team_id,
                title=e.title,
                aggregate_score=Decimal(e.aggregate_score).quantize(SCORE_PLACES),
                display_score=Decimal(e.display_score).quantize(DISPLAY_PLACES),
                submitted_at=e.submitted_at,
                score_breakdown=list(e.score_breakdown or []),
            )
            for e in snapshot.entries
        ],
    )


async def freeze_ranking(db: AsyncSession, competition: Competition, actor_id: str) -> RankingSnapshot:
    """
    Write the immutable snapshot. Runs inside the transition transaction;
    an existing snapshot is returned unchanged.
    """
    existing = await get_snapshot(db, competition.id)
    if existing is not None:
        logger.info(f"Ranking for competition {competition.id} already frozen (snapshot {existing.id})")
        return existing

    entries = await compute_live_ranking(db, competition.id)
    checksum = compute_standings_hash(competition.id, entries)

    snapshot = RankingSnapshot(
        competition_id=competition.id,
        frozen_by=actor_id,
        total_submissions=len(entries),
        checksum_hash=checksum,
        entries=[
            RankingEntry(
                submission_id=e.submission_id,
                team_id=e.team_id,
                title=e.title,
                rank=e.rank,
                aggregate_score=e.aggregate_score,
                display_score=e.display_score,
                submitted_at=e.submitted_at,
                score_breakdown=e.score_breakdown,
            )
            for e in entries
        ],
    )
    db.add(snapshot)
    await db.flush()

    await log_ranking_frozen(db, competition.id, actor_id, snapshot.id, checksum)
    logger.info(f"Ranking frozen for competition {competition.id}: {len(entries)} submissions, checksum {checksum[:12]}")
    return snapshot


async def verify_ranking_snapshot(db: AsyncSession, competition_id: int) -> Dict[str, Any]:
    """Recompute the checksum from the stored entries and compare."""
    await get_competition(db, competition_id)
    snapshot = await get_snapshot(db, competition_id)
    if snapshot is None:
        raise SnapshotNotFound(competition_id)

    computed = compute_standings_hash(competition_id, snapshot.entries)
    valid = hmac.compare_digest(computed, snapshot.checksum_hash)
    if not valid:
        logger.error(f"Ranking snapshot {snapshot.id} for competition {competition_id} failed checksum verification")
    return {
        "competition_id": competition_id,
        "valid": valid,
        "stored_checksum": snapshot.checksum_hash,
        "computed_checksum": computed,
    }
