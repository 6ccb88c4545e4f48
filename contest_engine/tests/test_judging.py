"""
Judging & Scoring Tests

Tests for:
- Criterion definition and locking once scored
- Score bounds and phase checks
- Upsert semantics (re-scoring replaces)
- Parallel judges do not interfere
"""
import asyncio

import pytest
import pytest_asyncio

from contest_engine.errors import (
    CompetitionLocked,
    CriterionCompetitionMismatch,
    CriterionLocked,
    NameRequired,
    NotJudgingPhase,
    PermissionDenied,
    ScoreOutOfRange,
    SubmissionNotFound,
    ValidationError,
)
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.schemas.judging import CriterionCreate, CriterionUpdate, ScoreSubmit
from contest_engine.schemas.submission import SubmissionCreate
from contest_engine.services import judging_service, registration_service, submission_service


@pytest_asyncio.fixture
async def judged(db, open_competition, advance, host, alice):
    """An open competition with one criterion and one submission, moved into judging."""
    await registration_service.register(db, open_competition.id, alice)
    criterion = await judging_service.define_criterion(
        db, open_competition.id, host, CriterionCreate(name="Innovation", weight=2, max_score=10)
    )
    submission = await submission_service.submit(
        db, open_competition.id, alice, SubmissionCreate(title="Garden", description="Waters plants")
    )
    await advance(open_competition.id, CompetitionStatus.JUDGING)
    return open_competition, criterion, submission


class TestCriteria:

    async def test_define_with_defaults(self, db, open_competition, host):
        criterion = await judging_service.define_criterion(db, open_competition.id, host, CriterionCreate(name="Polish"))

        assert criterion.weight == 1
        assert criterion.max_score == 10
        assert await judging_service.list_criteria(db, open_competition.id) == [criterion]

    async def test_weight_and_max_must_be_positive(self, db, open_competition, host):
        with pytest.raises(ValidationError):
            await judging_service.define_criterion(
                db, open_competition.id, host, CriterionCreate(name="Polish", weight=0)
            )
        with pytest.raises(ValidationError):
            await judging_service.define_criterion(
                db, open_competition.id, host, CriterionCreate(name="Polish", max_score=0)
            )

    async def test_blank_name(self, db, open_competition, host):
        with pytest.raises(NameRequired):
            await judging_service.define_criterion(db, open_competition.id, host, CriterionCreate(name=" "))

    async def test_manager_only(self, db, open_competition, other_host):
        with pytest.raises(PermissionDenied):
            await judging_service.define_criterion(db, open_competition.id, other_host, CriterionCreate(name="Polish"))

    async def test_update_until_scored(self, db, judged, host, judge):
        competition, criterion, submission = judged

        updated = await judging_service.update_criterion(db, criterion.id, host, CriterionUpdate(weight=3))
        assert updated.weight == 3

        await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=5))

        with pytest.raises(CriterionLocked):
            await judging_service.update_criterion(db, criterion.id, host, CriterionUpdate(weight=1))
        with pytest.raises(CriterionLocked):
            await judging_service.delete_criterion(db, criterion.id, host)

    async def test_delete_unscored(self, db, open_competition, host):
        criterion = await judging_service.define_criterion(db, open_competition.id, host, CriterionCreate(name="Polish"))

        await judging_service.delete_criterion(db, criterion.id, host)

        assert await judging_service.list_criteria(db, open_competition.id) == []

    async def test_locked_after_completion(self, db, judged, advance, host):
        competition, criterion, submission = judged
        await advance(competition.id, CompetitionStatus.COMPLETED)

        with pytest.raises(CompetitionLocked):
            await judging_service.define_criterion(db, competition.id, host, CriterionCreate(name="Late"))


class TestScoring:

    async def test_score_recorded(self, db, judged, judge):
        competition, criterion, submission = judged

        score = await judging_service.submit_score(
            db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=7, comment="Nice")
        )

        assert score.score == 7
        assert score.judge_user_id == judge.id
        assert score.comment == "Nice"

    async def test_rescore_replaces(self, db, judged, judge):
        competition, criterion, submission = judged

        await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=7))
        await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=9))

        scores = await judging_service.list_scores_by_submission(db, submission.id)
        assert [(s.judge_user_id, s.score) for s in scores] == [(judge.id, 9)]

    async def test_bounds_inclusive(self, db, judged, judge, judge2):
        competition, criterion, submission = judged

        low = await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=0))
        high = await judging_service.submit_score(db, submission.id, judge2, ScoreSubmit(criterion_id=criterion.id, score=10))
        assert (low.score, high.score) == (0, 10)

    @pytest.mark.parametrize("value", [-1, 11])
    async def test_out_of_range(self, db, judged, judge, value):
        competition, criterion, submission = judged

        with pytest.raises(ScoreOutOfRange) as exc:
            await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=value))
        assert exc.value.details["max"] == 10

    async def test_only_during_judging(self, db, open_competition, host, alice, judge):
        await registration_service.register(db, open_competition.id, alice)
        criterion = await judging_service.define_criterion(db, open_competition.id, host, CriterionCreate(name="Polish"))
        submission = await submission_service.submit(
            db, open_competition.id, alice, SubmissionCreate(title="Garden", description="Waters plants")
        )

        with pytest.raises(NotJudgingPhase):
            await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=5))

    async def test_closed_after_completion(self, db, judged, advance, judge):
        competition, criterion, submission = judged
        await advance(competition.id, CompetitionStatus.COMPLETED)

        with pytest.raises(NotJudgingPhase):
            await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=5))

    async def test_judge_role_required(self, db, judged, alice):
        competition, criterion, submission = judged

        with pytest.raises(PermissionDenied):
            await judging_service.submit_score(db, submission.id, alice, ScoreSubmit(criterion_id=criterion.id, score=5))

    async def test_criterion_from_other_competition(self, db, judged, make_competition, host, judge):
        competition, criterion, submission = judged
        other = await make_competition(title="Other")
        foreign = await judging_service.define_criterion(db, other.id, host, CriterionCreate(name="Foreign"))

        with pytest.raises(CriterionCompetitionMismatch):
            await judging_service.submit_score(db, submission.id, judge, ScoreSubmit(criterion_id=foreign.id, score=5))

    async def test_unknown_submission(self, db, judged, judge):
        competition, criterion, submission = judged

        with pytest.raises(SubmissionNotFound):
            await judging_service.submit_score(db, 999, judge, ScoreSubmit(criterion_id=criterion.id, score=5))

    async def test_parallel_judges(self, store, db, judged, judge, judge2):
        competition, criterion, submission = judged

        async def score(actor, value):
            async with store.session() as session:
                return await judging_service.submit_score(
                    session, submission.id, actor, ScoreSubmit(criterion_id=criterion.id, score=value)
                )

        await asyncio.gather(score(judge, 4), score(judge2, 8))

        scores = await judging_service.list_scores_by_submission(db, submission.id)
        assert {s.judge_user_id: s.score for s in scores} == {judge.id: 4, judge2.id: 8}

    async def test_same_key_concurrent_last_write_wins(self, store, db, judged, judge):
        competition, criterion, submission = judged

        async def score(value):
            async with store.session() as session:
                return await judging_service.submit_score(
                    session, submission.id, judge, ScoreSubmit(criterion_id=criterion.id, score=value)
                )

        await asyncio.gather(score(3), score(7))

        scores = await judging_service.list_scores_by_submission(db, submission.id)
        assert len(scores) == 1
        assert scores[0].judge_user_id == judge.id
        assert scores[0].score in (3, 7)
