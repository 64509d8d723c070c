"""
HTTP-level tests for the tasks API.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from pointwise.api.deps import get_auth_provider, get_task_repository, get_user_repository
from pointwise.infrastructure.local.mock_auth import MockAuthProvider
from pointwise.main import create_app


@pytest.fixture
def app(task_repo, user_repo):
    app = create_app()
    app.dependency_overrides[get_task_repository] = lambda: task_repo
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create_recurring(client) -> dict:
    response = await client.post(
        "/api/tasks",
        json={
            "title": "Stretch",
            "context": "Ten minutes",
            "xpValue": 10,
            "startTime": "07:00",
            "recurrence": "daily",
        },
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_one_time_task(client):
    response = await client.post(
        "/api/tasks", json={"title": "Dentist", "dueDate": "2025-03-20", "dueTime": "15:30"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Dentist"
    assert body["recurrencePattern"] is None
    assert body["dueAt"].startswith("2025-03-20T15:30")
    assert body["userId"] == "dev_user"


@pytest.mark.asyncio
async def test_create_recurring_task_seeds_instance(client):
    template = await _create_recurring(client)

    assert template["description"] == "Ten minutes"
    assert template["recurrencePattern"]["kind"] == "daily"
    assert template["recurrencePattern"]["timesOfDay"] == ["07:00"]

    response = await client.get(f"/api/tasks/{template['id']}/series")
    assert response.status_code == 200
    series = response.json()
    assert series["template"]["id"] == template["id"]
    assert len(series["instances"]) == 1
    assert series["instances"][0]["sourceRecurringTaskId"] == template["id"]


@pytest.mark.asyncio
async def test_invalid_recurrence_returns_400(client):
    response = await client.post(
        "/api/tasks", json={"title": "Stretch", "recurrence": "weekly", "recurrenceDays": []}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalid_time_returns_422(client):
    response = await client.post("/api/tasks", json={"title": "Stretch", "startTime": "7am"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_missing_task_returns_404(client):
    response = await client.get("/api/tasks/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_excludes_templates(client):
    await _create_recurring(client)

    everything = (await client.get("/api/tasks")).json()
    without_templates = (await client.get("/api/tasks", params={"include_templates": False})).json()

    assert len(everything) == 2
    assert len(without_templates) == 1
    assert without_templates[0]["isRecurringInstance"] is True


@pytest.mark.asyncio
async def test_patch_keeps_absent_fields_and_clears_null_ones(client):
    created = (
        await client.post(
            "/api/tasks",
            json={"title": "Report", "category": "work", "dueDate": "2025-03-20"},
        )
    ).json()

    response = await client.patch(
        f"/api/tasks/{created['id']}", json={"title": "Quarterly report", "category": None}
    )

    assert response.status_code == 200
    task = response.json()["task"]
    assert task["title"] == "Quarterly report"
    assert task["category"] is None
    assert task["dueDate"] == "2025-03-20"


@pytest.mark.asyncio
async def test_patch_instance_marks_it_edited(client):
    template = await _create_recurring(client)
    series = (await client.get(f"/api/tasks/{template['id']}/series")).json()
    instance_id = series["instances"][0]["id"]

    response = await client.patch(f"/api/tasks/{instance_id}", json={"title": "Long stretch"})

    assert response.status_code == 200
    assert response.json()["task"]["isEditedInstance"] is True
    refreshed = (await client.get(f"/api/tasks/{template['id']}")).json()
    assert refreshed["editedInstanceKeys"] == [series["instances"][0]["recurrenceInstanceKey"]]


@pytest.mark.asyncio
async def test_patch_instance_recurrence_returns_400(client):
    template = await _create_recurring(client)
    series = (await client.get(f"/api/tasks/{template['id']}/series")).json()

    response = await client.patch(
        f"/api/tasks/{series['instances'][0]['id']}", json={"recurrence": "weekly"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_series_patch_returns_series(client):
    template = await _create_recurring(client)

    response = await client.patch(
        f"/api/tasks/{template['id']}", params={"scope": "series"}, json={"xpValue": 25}
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["series"]) == 2
    assert {row["xpValue"] for row in body["series"]} == {25}


@pytest.mark.asyncio
async def test_convert_template_to_one_time(client):
    template = await _create_recurring(client)

    response = await client.patch(f"/api/tasks/{template['id']}", json={"recurrence": "none"})

    assert response.status_code == 200
    assert response.json()["task"]["recurrencePattern"] is None
    remaining = (await client.get("/api/tasks")).json()
    assert [row["id"] for row in remaining] == [template["id"]]


@pytest.mark.asyncio
async def test_delete_template_removes_series(client):
    template = await _create_recurring(client)

    response = await client.delete(f"/api/tasks/{template['id']}")

    assert response.status_code == 200
    assert len(response.json()["deletedIds"]) == 2
    assert (await client.get("/api/tasks")).json() == []


@pytest.mark.asyncio
async def test_preferences_round_trip(client):
    response = await client.put(
        "/api/users/me/preferences", json={"preferredTimeZone": "Asia/Tokyo"}
    )
    assert response.status_code == 200
    assert response.json()["preferredTimeZone"] == "Asia/Tokyo"

    response = await client.get("/api/users/me/preferences")
    assert response.json()["preferredTimeZone"] == "Asia/Tokyo"


@pytest.mark.asyncio
async def test_unknown_time_zone_returns_422(client):
    response = await client.put(
        "/api/users/me/preferences", json={"preferredTimeZone": "Mars/Base"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_auth_required_when_enabled(app, client):
    app.dependency_overrides[get_auth_provider] = lambda: MockAuthProvider(enabled=True)

    assert (await client.get("/api/tasks")).status_code == 401
    assert (
        await client.get("/api/tasks", headers={"Authorization": "Token abc"})
    ).status_code == 401

    response = await client.post(
        "/api/tasks", json={"title": "Mine"}, headers={"Authorization": "Bearer test_user"}
    )
    assert response.status_code == 201
    assert response.json()["userId"] == "test_user"
