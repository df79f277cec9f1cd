"""
Project API tests against the in-memory store and stub oracle.
"""
import pytest

from novabuild.core.exceptions import OracleError
from novabuild.main import app
from novabuild.models.project import BuildState, PlanStep

from tests.conftest import code_response


async def finish_build(project_id):
    await app.state.service.supervisor.wait(project_id)


@pytest.mark.asyncio
async def test_create_project_chat_mode(async_client, oracle):
    oracle.script("title", "Greeting Page").script("router", "CHAT").script("chat", "Hi! What should we build?")

    response = await async_client.post("/api/projects", json={"owner_id": "u1", "prompt": "hello"})

    assert response.status_code == 201
    body = response.json()
    assert body["mode"] == "chat"
    assert body["project"]["name"] == "Greeting Page"
    assert body["project"]["messages"][-1]["content"] == "Hi! What should we build?"


@pytest.mark.asyncio
async def test_list_and_get(async_client, project):
    listed = await async_client.get("/api/projects", params={"owner_id": "owner-1"})
    assert listed.status_code == 200
    assert [p["id"] for p in listed.json()] == [project.id]

    fetched = await async_client.get(f"/api/projects/{project.id}")
    assert fetched.status_code == 200
    assert fetched.json()["isBuilding"] is False


@pytest.mark.asyncio
async def test_unknown_project_is_404(async_client):
    response = await async_client.get("/api/projects/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_code_change_returns_202(async_client, oracle, store, project):
    oracle.script("router", "ARCHITECT").script("backend", {"requiresDatabase": False})
    oracle.script("plan", ["Make the header blue"])
    oracle.default("code", code_response("blue"))

    response = await async_client.post(
        f"/api/projects/{project.id}/messages",
        json={"content": "Make the header blue"},
    )

    assert response.status_code == 202
    assert response.json()["mode"] == "architect"
    await finish_build(project.id)

    saved = await store.load(project.id)
    assert saved.code.html == "<main>blue</main>"


@pytest.mark.asyncio
async def test_router_outage_is_502(async_client, oracle, project):
    oracle.default("router", OracleError("test", "down"))

    response = await async_client.post(f"/api/projects/{project.id}/messages", json={"content": "hi"})

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_stop_without_build(async_client, project):
    response = await async_client.post(f"/api/projects/{project.id}/stop")
    assert response.status_code == 200
    assert response.json()["status"] == "idle"


@pytest.mark.asyncio
async def test_manual_backend(async_client, project):
    response = await async_client.put(
        f"/api/projects/{project.id}/backend",
        json={"url": "https://db.test", "key": "secret"},
    )
    assert response.status_code == 200
    assert response.json()["manual_backend"] == {"url": "https://db.test", "key": "secret"}


@pytest.mark.asyncio
async def test_provision_not_configured_is_503(async_client, project):
    response = await async_client.post(f"/api/projects/{project.id}/backend/provision")
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_suggestions_never_fail(async_client, oracle, project):
    oracle.default("suggestions", OracleError("test", "down"))
    response = await async_client.get(f"/api/projects/{project.id}/suggestions")
    assert response.status_code == 200
    assert response.json() == {"suggestions": []}


@pytest.mark.asyncio
async def test_trash_and_restore(async_client, project):
    deleted = await async_client.delete(f"/api/projects/{project.id}")
    assert deleted.status_code == 204

    listed = await async_client.get("/api/projects", params={"owner_id": "owner-1"})
    assert listed.json() == []

    restored = await async_client.post(f"/api/projects/{project.id}/restore")
    assert restored.status_code == 200
    assert restored.json()["deleted_at"] is None


@pytest.mark.asyncio
async def test_resume_route(async_client, oracle, store, project):
    stored = await store.load(project.id)
    stored.build_state = BuildState(
        plan=[PlanStep(description="Lay out page"), PlanStep(description="Style page")],
        last_completed_step=0,
        current_step=1,
    )
    await store.save(stored)
    oracle.default("code", code_response("resumed"))

    response = await async_client.post(f"/api/projects/{project.id}/resume")
    assert response.status_code == 202
    await finish_build(project.id)

    saved = await store.load(project.id)
    assert saved.code.html == "<main>resumed</main>"
    oracle.counter.assert_exact("plan", 0)


@pytest.mark.asyncio
async def test_resume_route_without_checkpoint_is_400(async_client, project):
    response = await async_client.post(f"/api/projects/{project.id}/resume")
    assert response.status_code == 400
