"""
contest_engine/tests/test_api_contracts.py
API Contract Verification Tests

These tests verify:
1. Error responses follow the standard envelope
2. HTTP status codes are correct
3. Authentication and ownership are enforced
4. A full competition can be run over HTTP
"""
from datetime import timedelta

from contest_engine.errors import ErrorCode
from contest_engine.orm.base import utcnow

ENVELOPE_KEYS = {"success", "error", "message", "code"}


def competition_body(**overrides):
    start = utcnow() + timedelta(days=1)
    body = {
        "title": "API Hackathon",
        "description": "Over the wire",
        "start_at": start.isoformat(),
        "end_at": (start + timedelta(days=2)).isoformat(),
    }
    body.update(overrides)
    return body


async def create_open_competition(client, headers, **overrides):
    response = await client.post("/api/competitions", json=competition_body(**overrides), headers=headers)
    assert response.status_code == 201
    competition_id = response.json()["id"]
    response = await client.post(
        f"/api/competitions/{competition_id}/transition", json={"target_status": "open"}, headers=headers
    )
    assert response.status_code == 200
    return competition_id


class TestHealthEndpoints:

    async def test_main_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "sqlite"

    async def test_errors_health(self, client):
        response = await client.get("/api/errors/health")

        assert response.status_code == 200
        data = response.json()
        assert "version" in data
        assert ErrorCode.CAPACITY_EXCEEDED in data["error_codes"]


class TestErrorResponseFormat:

    async def test_401_without_token(self, client):
        response = await client.post("/api/competitions", json=competition_body())

        assert response.status_code == 401
        data = response.json()
        assert ENVELOPE_KEYS <= data.keys()
        assert data["success"] is False
        assert data["code"] == ErrorCode.AUTH_REQUIRED

    async def test_401_bad_token(self, client):
        response = await client.post(
            "/api/competitions", json=competition_body(), headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.AUTH_INVALID

    async def test_403_non_host(self, client, auth_headers):
        response = await client.post("/api/competitions", json=competition_body(), headers=auth_headers("alice"))

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == "Forbidden"
        assert data["code"] == ErrorCode.FORBIDDEN

    async def test_422_envelope(self, client, auth_headers):
        response = await client.post(
            "/api/competitions", json={"title": "Missing dates"}, headers=auth_headers("host-1", roles=["host"])
        )

        assert response.status_code == 422
        data = response.json()
        assert ENVELOPE_KEYS <= data.keys()
        assert data["code"] == ErrorCode.VALIDATION_ERROR
        assert isinstance(data["details"]["errors"], list)

    async def test_400_domain_validation(self, client, auth_headers):
        start = utcnow() + timedelta(days=1)
        body = competition_body(end_at=(start - timedelta(hours=1)).isoformat(), start_at=start.isoformat())

        response = await client.post("/api/competitions", json=body, headers=auth_headers("host-1", roles=["host"]))

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.INVALID_TIME_RANGE

    async def test_404_envelope(self, client):
        response = await client.get("/api/competitions/99999")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "NotFound"
        assert data["code"] == ErrorCode.COMPETITION_NOT_FOUND

    async def test_409_capacity_exceeded(self, client, auth_headers):
        host = auth_headers("host-1", roles=["host"])
        competition_id = await create_open_competition(client, host, max_participants=1)

        first = await client.post(f"/api/competitions/{competition_id}/register", headers=auth_headers("alice"))
        second = await client.post(f"/api/competitions/{competition_id}/register", headers=auth_headers("bob"))

        assert first.status_code == 201
        assert second.status_code == 409
        data = second.json()
        assert data["error"] == "CapacityConflict"
        assert data["code"] == ErrorCode.CAPACITY_EXCEEDED
        assert data["details"]["max_participants"] == 1

    async def test_409_invalid_transition(self, client, auth_headers):
        host = auth_headers("host-1", roles=["host"])
        competition_id = await create_open_competition(client, host)

        response = await client.post(
            f"/api/competitions/{competition_id}/transition", json={"target_status": "completed"}, headers=host
        )

        assert response.status_code == 409
        assert response.json()["code"] == ErrorCode.INVALID_TRANSITION


class TestOwnershipBoundaries:

    async def test_other_host_cannot_transition(self, client, auth_headers):
        competition_id = await create_open_competition(client, auth_headers("host-1", roles=["host"]))

        response = await client.post(
            f"/api/competitions/{competition_id}/transition",
            json={"target_status": "in_progress"},
            headers=auth_headers("host-2", roles=["host"]),
        )

        assert response.status_code == 403

    async def test_roster_is_manager_only(self, client, auth_headers):
        host = auth_headers("host-1", roles=["host"])
        competition_id = await create_open_competition(client, host)
        await client.post(f"/api/competitions/{competition_id}/register", headers=auth_headers("alice"))

        denied = await client.get(f"/api/competitions/{competition_id}/registrations", headers=auth_headers("alice"))
        allowed = await client.get(f"/api/competitions/{competition_id}/registrations", headers=host)

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["total"] == 1

    async def test_count_is_public(self, client, auth_headers):
        competition_id = await create_open_competition(client, auth_headers("host-1", roles=["host"]), max_participants=10)
        await client.post(f"/api/competitions/{competition_id}/register", headers=auth_headers("alice"))

        response = await client.get(f"/api/competitions/{competition_id}/registrations/count")

        assert response.json() == {"competition_id": competition_id, "count": 1, "max_participants": 10}


class TestFullFlow:

    async def test_competition_over_http(self, client, auth_headers):
        host = auth_headers("host-1", roles=["host"])
        judge = auth_headers("judge-1", roles=["judge"])
        alice = auth_headers("alice")
        bob = auth_headers("bob")

        competition_id = await create_open_competition(client, host)

        for headers in (alice, bob):
            response = await client.post(f"/api/competitions/{competition_id}/register", headers=headers)
            assert response.status_code == 201

        response = await client.post(f"/api/competitions/{competition_id}/teams", json={"name": "Rockets"}, headers=alice)
        assert response.status_code == 201
        team = response.json()
        assert team["captain_user_id"] == "alice"

        response = await client.post(
            f"/api/competitions/{competition_id}/criteria",
            json={"name": "Overall", "weight": 1, "max_score": 10},
            headers=host,
        )
        assert response.status_code == 201
        criterion_id = response.json()["id"]

        response = await client.post(
            f"/api/competitions/{competition_id}/submissions",
            json={"title": "Garden", "description": "Waters plants", "team_id": team["id"]},
            headers=alice,
        )
        assert response.status_code == 201
        team_submission = response.json()["id"]

        response = await client.post(
            f"/api/competitions/{competition_id}/submissions",
            json={"title": "Feeder", "description": "Feeds birds"},
            headers=bob,
        )
        solo_submission = response.json()["id"]

        for target in ("in_progress", "judging"):
            response = await client.post(
                f"/api/competitions/{competition_id}/transition", json={"target_status": target}, headers=host
            )
            assert response.json()["status"] == target

        for submission_id, value in ((team_submission, 6), (solo_submission, 9)):
            response = await client.put(
                f"/api/submissions/{submission_id}/scores",
                json={"criterion_id": criterion_id, "score": value},
                headers=judge,
            )
            assert response.status_code == 200

        response = await client.get(f"/api/submissions/{solo_submission}/scores", headers=alice)
        assert response.status_code == 403

        response = await client.get(f"/api/submissions/{solo_submission}/aggregate")
        assert response.json()["display_score"] == "90.00"

        response = await client.get(f"/api/competitions/{competition_id}/ranking")
        live = response.json()
        assert live["frozen"] is False
        assert [e["submission_id"] for e in live["entries"]] == [solo_submission, team_submission]

        response = await client.get(f"/api/competitions/{competition_id}/ranking/verify")
        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.SNAPSHOT_NOT_FOUND

        response = await client.post(
            f"/api/competitions/{competition_id}/transition", json={"target_status": "completed"}, headers=host
        )
        assert response.json()["status"] == "completed"

        response = await client.get(f"/api/competitions/{competition_id}/ranking")
        frozen = response.json()
        assert frozen["frozen"] is True
        assert frozen["checksum_hash"]
        assert [e["rank"] for e in frozen["entries"]] == [1, 2]

        response = await client.get(f"/api/competitions/{competition_id}/ranking/verify")
        assert response.json()["valid"] is True
        assert response.json()["stored_checksum"] == frozen["checksum_hash"]

        response = await client.get(f"/api/competitions/{competition_id}/activity", headers=host)
        assert response.status_code == 200
        assert any(a["action_type"] == "ranking_frozen" for a in response.json()["activity"])
