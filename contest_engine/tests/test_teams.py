"""
Team Formation Tests

Tests for:
- Create (captain is first member, unique names per competition)
- Join / leave rules
- Captaincy transfer
- Locks once judging starts
- Concurrent joins
"""
import asyncio

import pytest
import pytest_asyncio

from contest_engine.errors import (
    AlreadyMember,
    CaptainCannotLeave,
    NameRequired,
    NotRegistered,
    NotTeamCaptain,
    NotTeamMember,
    TeamNameTaken,
    TeamNotFound,
    TeamsLocked,
)
from contest_engine.orm.activity_log import ActivityType
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.orm.team import TeamRole
from contest_engine.rbac import ActingUser
from contest_engine.services import activity_logger, registration_service, team_service


@pytest_asyncio.fixture
async def registered(db, open_competition, alice, bob, carol):
    for user in (alice, bob, carol):
        await registration_service.register(db, open_competition.id, user)
    return open_competition


class TestCreateTeam:

    async def test_creator_is_captain_and_member(self, db, registered, alice):
        view = await team_service.create_team(db, registered.id, alice, "  Rockets  ")

        assert view.name == "Rockets"
        assert view.captain_user_id == alice.id
        assert view.member_count == 1
        assert [(m.user_id, m.role) for m in view.members] == [(alice.id, TeamRole.CAPTAIN)]

    async def test_requires_registration(self, db, open_competition, alice):
        with pytest.raises(NotRegistered):
            await team_service.create_team(db, open_competition.id, alice, "Rockets")

    async def test_blank_name(self, db, registered, alice):
        with pytest.raises(NameRequired):
            await team_service.create_team(db, registered.id, alice, "   ")

    async def test_name_unique_within_competition(self, db, registered, make_competition, advance, alice, bob):
        await team_service.create_team(db, registered.id, alice, "Rockets")

        with pytest.raises(TeamNameTaken):
            await team_service.create_team(db, registered.id, bob, "Rockets")

        other = await make_competition(title="Other")
        await advance(other.id, CompetitionStatus.OPEN)
        await registration_service.register(db, other.id, bob)
        view = await team_service.create_team(db, other.id, bob, "Rockets")
        assert view.name == "Rockets"

    async def test_locked_during_judging(self, db, registered, advance, alice):
        await advance(registered.id, CompetitionStatus.JUDGING)

        with pytest.raises(TeamsLocked):
            await team_service.create_team(db, registered.id, alice, "Late")


class TestMembership:

    async def test_join(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        view = await team_service.join_team(db, team.id, bob)

        assert view.member_count == 2
        assert {m.user_id: m.role for m in view.members} == {alice.id: TeamRole.CAPTAIN, bob.id: TeamRole.MEMBER}

    async def test_join_twice(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        with pytest.raises(AlreadyMember):
            await team_service.join_team(db, team.id, bob)

    async def test_join_requires_registration(self, db, registered, alice):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        outsider = ActingUser.of("outsider")

        with pytest.raises(NotRegistered):
            await team_service.join_team(db, team.id, outsider)

    async def test_join_unknown_team(self, db, registered, bob):
        with pytest.raises(TeamNotFound):
            await team_service.join_team(db, 999, bob)

    async def test_user_may_join_several_teams(self, db, registered, alice, bob, carol):
        first = await team_service.create_team(db, registered.id, alice, "Rockets")
        second = await team_service.create_team(db, registered.id, bob, "Comets")

        await team_service.join_team(db, first.id, carol)
        await team_service.join_team(db, second.id, carol)

        teams = await team_service.list_teams(db, registered.id)
        assert [t.member_count for t in teams] == [2, 2]

    async def test_leave(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        view = await team_service.leave_team(db, team.id, bob)

        assert view.member_count == 1

    async def test_leave_is_idempotent(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        view = await team_service.leave_team(db, team.id, bob)
        assert view.member_count == 1

    async def test_captain_cannot_leave(self, db, registered, alice):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        with pytest.raises(CaptainCannotLeave):
            await team_service.leave_team(db, team.id, alice)

    async def test_join_locked_after_in_progress(self, db, registered, advance, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await advance(registered.id, CompetitionStatus.JUDGING)

        with pytest.raises(TeamsLocked):
            await team_service.join_team(db, team.id, bob)

    async def test_leave_allowed_during_judging(self, db, registered, advance, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)
        await advance(registered.id, CompetitionStatus.JUDGING)

        view = await team_service.leave_team(db, team.id, bob)
        assert view.member_count == 1

    async def test_leave_locked_after_completion(self, db, registered, advance, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)
        await advance(registered.id, CompetitionStatus.COMPLETED)

        with pytest.raises(TeamsLocked) as exc:
            await team_service.leave_team(db, team.id, bob)
        assert exc.value.details["status"] == "completed"

        view = await team_service.get_team_view(db, team.id)
        assert view.member_count == 2

    async def test_concurrent_joins_counted_once_each(self, store, db, registered, alice, bob, carol):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        async def join(actor):
            async with store.session() as session:
                return await team_service.join_team(session, team.id, actor)

        await asyncio.gather(join(bob), join(carol))

        view = await team_service.get_team_view(db, team.id)
        assert view.member_count == 3


class TestCaptaincy:

    async def test_transfer(self, db, registered, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        view = await team_service.transfer_captaincy(db, team.id, alice, bob.id)

        assert view.captain_user_id == bob.id
        roles = {m.user_id: m.role for m in view.members}
        assert roles == {alice.id: TeamRole.MEMBER, bob.id: TeamRole.CAPTAIN}

        # The former captain may now leave
        after = await team_service.leave_team(db, team.id, alice)
        assert after.member_count == 1

        entries = await activity_logger.list_activity(db, registered.id)
        transfers = [e for e in entries if e.action_type == ActivityType.CAPTAIN_TRANSFERRED]
        assert transfers[0].context["new_captain_user_id"] == bob.id

    async def test_only_captain_transfers(self, db, registered, alice, bob, carol):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        with pytest.raises(NotTeamCaptain):
            await team_service.transfer_captaincy(db, team.id, bob, bob.id)

    async def test_admin_may_transfer(self, db, registered, admin, alice, bob):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)

        view = await team_service.transfer_captaincy(db, team.id, admin, bob.id)
        assert view.captain_user_id == bob.id

    async def test_nominee_must_be_member(self, db, registered, alice, carol):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")

        with pytest.raises(NotTeamMember):
            await team_service.transfer_captaincy(db, team.id, alice, carol.id)

    async def test_exactly_one_captain(self, db, registered, alice, bob, carol):
        team = await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.join_team(db, team.id, bob)
        await team_service.join_team(db, team.id, carol)
        await team_service.transfer_captaincy(db, team.id, alice, carol.id)

        members = await team_service.list_members(db, team.id)
        assert [m.user_id for m in members if m.role == TeamRole.CAPTAIN] == [carol.id]


class TestListTeams:

    async def test_list_with_members(self, db, registered, alice, bob):
        await team_service.create_team(db, registered.id, alice, "Rockets")
        await team_service.create_team(db, registered.id, bob, "Comets")

        teams = await team_service.list_teams(db, registered.id, include_members=True)

        assert [t.name for t in teams] == ["Rockets", "Comets"]
        assert [len(t.members) for t in teams] == [1, 1]
