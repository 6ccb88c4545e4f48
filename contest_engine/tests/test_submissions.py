"""
Submission Intake Tests
"""
import pytest
import pytest_asyncio

from contest_engine.errors import (
    NotRegistered,
    NotSubmissionAuthor,
    NotTeamMember,
    SubmissionsClosed,
    SubmissionsNotOpen,
    ValidationError,
)
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.schemas.submission import SubmissionCreate, SubmissionUpdate
from contest_engine.services import registration_service, submission_service, team_service


def payload(**overrides) -> SubmissionCreate:
    data = {"title": "Smart Garden", "description": "Waters plants", "repo_url": "https://git.example/garden"}
    data.update(overrides)
    return SubmissionCreate(**data)


@pytest_asyncio.fixture
async def registered(db, open_competition, alice, bob):
    await registration_service.register(db, open_competition.id, alice)
    await registration_service.register(db, open_competition.id, bob)
    return open_competition


class TestSubmit:

    async def test_submit_while_open(self, db, registered, alice):
        submission = await submission_service.submit(db, registered.id, alice, payload())

        assert submission.id is not None
        assert submission.author_user_id == alice.id
        assert submission.team_id is None
        assert submission.submitted_at is not None

    async def test_submit_in_progress(self, db, registered, advance, alice):
        await advance(registered.id, CompetitionStatus.IN_PROGRESS)

        submission = await submission_service.submit(db, registered.id, alice, payload())
        assert submission.competition_id == registered.id

    async def test_not_open_in_draft(self, db, make_competition, alice):
        competition = await make_competition()

        with pytest.raises(SubmissionsNotOpen):
            await submission_service.submit(db, competition.id, alice, payload())

    async def test_closed_once_judging(self, db, registered, advance, alice):
        await advance(registered.id, CompetitionStatus.JUDGING)

        with pytest.raises(SubmissionsClosed) as exc:
            await submission_service.submit(db, registered.id, alice, payload())
        assert exc.value.details["status"] == "judging"

    async def test_requires_registration(self, db, open_competition, carol):
        with pytest.raises(NotRegistered):
            await submission_service.submit(db, open_competition.id, carol, payload())

    async def test_blank_title(self, db, registered, alice):
        with pytest.raises(ValidationError):
            await submission_service.submit(db, registered.id, alice, payload(title="  "))

    async def test_team_submission(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        submission = await submission_service.submit(db, registered.id, bob, payload(team_id=team.id))

        assert submission.team_id == team.id
        assert submission.author_user_id == bob.id

    async def test_team_submission_requires_membership(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        with pytest.raises(NotTeamMember):
            await submission_service.submit(db, registered.id, bob, payload(team_id=team.id))

    async def test_several_submissions_allowed(self, db, registered, alice):
        first = await submission_service.submit(db, registered.id, alice, payload(title="One"))
        second = await submission_service.submit(db, registered.id, alice, payload(title="Two"))

        listed = await submission_service.list_submissions(db, registered.id)
        assert [s.id for s in listed] == [first.id, second.id]


class TestUpdateSubmission:

    async def test_author_updates(self, db, registered, alice):
        submission = await submission_service.submit(db, registered.id, alice, payload())
        submitted_at = submission.submitted_at

        updated = await submission_service.update_submission(
            db, submission.id, alice, SubmissionUpdate(title="Smarter Garden", demo_url="https://demo.example")
        )

        assert updated.title == "Smarter Garden"
        assert updated.demo_url == "https://demo.example"
        assert updated.description == "Waters plants"
        assert updated.submitted_at == submitted_at

    async def test_only_author(self, db, registered, alice, bob):
        submission = await submission_service.submit(db, registered.id, alice, payload())

        with pytest.raises(NotSubmissionAuthor):
            await submission_service.update_submission(db, submission.id, bob, SubmissionUpdate(title="Mine"))

    async def test_frozen_after_intake_closes(self, db, registered, advance, alice):
        submission = await submission_service.submit(db, registered.id, alice, payload())
        await advance(registered.id, CompetitionStatus.JUDGING)

        with pytest.raises(SubmissionsClosed):
            await submission_service.update_submission(db, submission.id, alice, SubmissionUpdate(title="Late fix"))


class TestListSubmissions:

    async def test_filter_by_team(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        team_entry = await submission_service.submit(db, registered.id, alice, payload(team_id=team.id))
        await submission_service.submit(db, registered.id, bob, payload(title="Solo"))

        listed = await submission_service.list_submissions(db, registered.id, team_id=team.id)
        assert [s.id for s in listed] == [team_entry.id]
