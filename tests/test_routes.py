"""HTTP surface tests against the FastAPI app with the store swapped for in-memory SQLite."""

import pytest
from httpx import ASGITransport, AsyncClient

from civicmap.database.config import get_db
from main import app


REPORT = {
    "type": "pothole",
    "latitude": 28.19,
    "longitude": 76.61,
    "reported_by": "reporter-1",
    "magnitude": 6,
    "note": "near the bus stop",
    "image_url": "https://img.example/pothole.jpg",
}


@pytest.fixture
async def client(session_factory, monkeypatch):
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _report(client, **overrides) -> str:
    response = await client.post("/api/report", json={**REPORT, **overrides})
    assert response.status_code == 201
    return response.json()["id"]


class TestReportRoute:
    async def test_report_then_visible_on_map(self, client) -> None:
        issue_id = await _report(client)

        response = await client.get("/api/map-state")
        assert response.status_code == 200
        issues = response.json()["issues"]
        assert [i["id"] for i in issues] == [issue_id]
        assert issues[0]["images"] == [REPORT["image_url"]]
        assert issues[0]["confidence"] == 60

    async def test_invalid_magnitude(self, client) -> None:
        response = await client.post("/api/report", json={**REPORT, "magnitude": 11})
        assert response.status_code == 422

    async def test_unknown_type(self, client) -> None:
        response = await client.post("/api/report", json={**REPORT, "type": "streetlight"})
        assert response.status_code == 422


class TestVoteRoute:
    async def test_vote_and_duplicate(self, client) -> None:
        issue_id = await _report(client)
        body = {"voter_token": "voter-a", "kind": "up"}

        first = await client.post(f"/api/issue/{issue_id}/vote", json=body)
        assert first.status_code == 200
        assert first.json()["true_votes"] == 2

        second = await client.post(f"/api/issue/{issue_id}/vote", json=body)
        assert second.status_code == 409

    async def test_vote_missing_issue(self, client) -> None:
        response = await client.post("/api/issue/nope/vote", json={"voter_token": "v", "kind": "down"})
        assert response.status_code == 404

    async def test_unknown_kind(self, client) -> None:
        issue_id = await _report(client)
        response = await client.post(f"/api/issue/{issue_id}/vote", json={"voter_token": "v", "kind": "meh"})
        assert response.status_code == 422

    async def test_delist_response(self, client) -> None:
        issue_id = await _report(client)
        for i in range(5):
            response = await client.post(
                f"/api/issue/{issue_id}/vote", json={"voter_token": f"voter-{i}", "kind": "down"}
            )
        assert response.json()["delisted"] is True

        queue = (await client.get("/api/moderation")).json()
        assert [i["id"] for i in queue["resolved"]] == [issue_id]


class TestAdminRoutes:
    async def test_approve(self, client) -> None:
        issue_id = await _report(client)

        first = await client.post(f"/api/issue/{issue_id}/approve")
        second = await client.post(f"/api/issue/{issue_id}/approve")
        assert first.json()["message"] == "Issue approved"
        assert second.json()["message"] == "Issue already approved"

        issues = (await client.get("/api/map-state")).json()["issues"]
        assert issues[0]["approved"] is True
        assert issues[0]["confidence"] == 100

    async def test_resolve(self, client) -> None:
        issue_id = await _report(client)
        response = await client.post(f"/api/issue/{issue_id}/resolve")
        assert response.status_code == 200

        issues = (await client.get("/api/map-state")).json()["issues"]
        assert issues[0]["status"] == "resolved"

    async def test_status_update(self, client) -> None:
        issue_id = await _report(client)
        response = await client.post(
            f"/api/issue/{issue_id}/status",
            json={"status": "in_progress", "image_url": "https://img.example/crew.jpg"},
        )
        assert response.status_code == 201

        issues = (await client.get("/api/map-state")).json()["issues"]
        assert issues[0]["status"] == "in_progress"
        assert issues[0]["images"] == ["https://img.example/crew.jpg"]

    async def test_approve_missing(self, client) -> None:
        response = await client.post("/api/issue/nope/approve")
        assert response.status_code == 404


class TestMapStateRoute:
    async def test_historical_timestamp(self, client) -> None:
        await _report(client)
        response = await client.get("/api/map-state", params={"timestamp": "2020-01-01T00:00:00Z"})
        assert response.status_code == 200
        assert response.json()["issues"] == []

    async def test_type_filter(self, client) -> None:
        await _report(client)
        garbage = await _report(client, type="garbage_dump")
        response = await client.get("/api/map-state", params={"types": "garbage_dump"})
        assert [i["id"] for i in response.json()["issues"]] == [garbage]

    async def test_bad_timestamp(self, client) -> None:
        response = await client.get("/api/map-state", params={"timestamp": "yesterday"})
        assert response.status_code == 422


class TestHealth:
    async def test_health(self, client) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "X-Process-Time" in response.headers
