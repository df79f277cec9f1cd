"""
Build service tests: routing, retry, stop, backend hand-off and trash.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from novabuild.core.constants import AUTO_FIX_PROMPT, BackendStatus, MessageRole, ProjectStatus, RequiredAction
from novabuild.core.exceptions import NovaBuildError, OracleError, ProvisioningError
from novabuild.lib.provisioning import ProvisioningService
from novabuild.models.project import BuildState, ManagedBackend, ManualBackend, PlanStep
from novabuild.orchestration.build_engine import BuildOutcome
from novabuild.orchestration.service import MODE_ARCHITECT, MODE_CHAT, BuildService

from tests.conftest import code_response


@pytest.fixture
def service(store, oracle, fast_policy, callbacks, engine):
    return BuildService(store, oracle, callbacks=callbacks, policy=fast_policy, engine=engine)


async def finish(service, project_id):
    return await service.supervisor.wait(project_id)


@pytest.mark.asyncio
async def test_create_project_generates_title(service, oracle, store):
    oracle.script("title", '"Sunny Landing Page"').script("router", "CHAT").script("chat", "Tell me more!")

    project, mode = await service.create_project("owner-1", "hello there")

    assert mode == MODE_CHAT
    assert project.name == "Sunny Landing Page"
    assert [m.role for m in project.messages] == [MessageRole.USER, MessageRole.ASSISTANT]


@pytest.mark.asyncio
async def test_title_failure_falls_back(service, oracle):
    oracle.default("title", OracleError("test", "down")).script("router", "CHAT").script("chat", "hi")
    project, _ = await service.create_project("owner-1", "hello")
    assert project.name == "New Project"


@pytest.mark.asyncio
async def test_chat_message_never_builds(service, oracle, store, project):
    oracle.script("router", "CHAT").script("chat", "CSS is for styling.")

    mode = await service.handle_user_message(project.id, "What is CSS?")

    assert mode == MODE_CHAT
    assert not service.supervisor.is_running(project.id)
    saved = await store.load(project.id)
    assert saved.messages[-1].content == "CSS is for styling."
    oracle.counter.assert_exact("plan", 0)


@pytest.mark.asyncio
async def test_code_change_starts_supervised_build(service, oracle, store, project):
    oracle.script("router", "ARCHITECT").script("backend", {"requiresDatabase": False})
    oracle.script("plan", ["Make the header blue"])
    oracle.default("code", code_response("blue"))

    mode = await service.handle_user_message(project.id, "Make the header blue")

    assert mode == MODE_ARCHITECT
    assert await finish(service, project.id) == BuildOutcome.SUCCESS
    saved = await store.load(project.id)
    assert saved.code.html == "<main>blue</main>"
    assert [m.content for m in saved.messages if m.role == MessageRole.USER][-1] == "Make the header blue"


@pytest.mark.asyncio
async def test_retry_drops_error_and_rebuilds(service, oracle, store, project):
    oracle.script("plan", ["Style header"])
    oracle.script("code", *[OracleError("test", "bad")] * 3)
    oracle.default("repair", OracleError("test", "down"))

    await service.start_build(project.id, project.messages[-1].content)
    assert await finish(service, project.id) == BuildOutcome.FAILED
    failed = await store.load(project.id)
    assert failed.messages[-1].content.startswith("Failed to execute step")

    oracle.script("plan", ["Style header"])
    oracle.default("code", code_response("fixed"))
    await service.retry(project.id)
    assert await finish(service, project.id) == BuildOutcome.SUCCESS

    saved = await store.load(project.id)
    assert not any(m.content.startswith("Failed to execute step") for m in saved.messages)
    assert saved.code.html == "<main>fixed</main>"


@pytest.mark.asyncio
async def test_autofix_enters_normal_pipeline(service, oracle, store, project):
    oracle.script("router", "ARCHITECT").script("backend", {"requiresDatabase": False})
    oracle.script("plan", ["Find the bug", "Fix it"])
    oracle.default("code", code_response("fixed"))

    mode = await service.autofix(project.id)
    await finish(service, project.id)

    assert mode == MODE_ARCHITECT
    saved = await store.load(project.id)
    assert any(m.content == AUTO_FIX_PROMPT for m in saved.messages)


@pytest.mark.asyncio
async def test_stop_keeps_checkpoint_and_goes_idle(service, oracle, store, project):
    release = asyncio.Event()

    oracle.script("plan", ["Lay out page", "Style page"])
    original_generate = oracle.generate

    async def generate(prompt, system_instruction="", schema=None, **kwargs):
        if oracle.role_for(system_instruction, schema) == "code":
            await release.wait()
        return await original_generate(prompt, system_instruction=system_instruction, schema=schema, **kwargs)

    oracle.generate = generate
    oracle.default("code", code_response("late"))

    await service.start_build(project.id, "Build a page")
    await asyncio.sleep(0.05)

    stopping = asyncio.create_task(service.stop(project.id))
    await asyncio.sleep(0.01)
    release.set()
    stopped = await stopping

    assert stopped.status == ProjectStatus.IDLE
    assert stopped.build_state is not None
    assert stopped.build_state.last_completed_step == -1
    assert not service.supervisor.is_running(project.id)
    assert stopped.code.html == ""


@pytest.mark.asyncio
async def test_manual_backend_resumes_gated_build(service, oracle, store, sql_runner, project):
    oracle.script("plan", ["Add contact form", "SQL: create submissions table"])
    await service.start_build(project.id, "Contact form with stored submissions")
    assert await finish(service, project.id) == BuildOutcome.BACKEND_REQUIRED

    oracle.script("plan", ["Add contact form", "SQL: create submissions table"])
    oracle.default("code", code_response("form"))
    oracle.script("sql", {"sql": "create table submissions ();", "explanation": "table"})

    await service.set_manual_backend(project.id, "https://db.test", "key")
    assert await finish(service, project.id) == BuildOutcome.SUCCESS

    saved = await store.load(project.id)
    assert sql_runner.executed == ["create table submissions ();"]
    user_messages = [m for m in saved.messages if m.role == MessageRole.USER]
    assert len(user_messages) == 1


@pytest.mark.asyncio
async def test_manual_backend_without_pending_gate_does_not_build(service, oracle, project):
    await service.set_manual_backend(project.id, "https://db.test", "key")
    assert not service.supervisor.is_running(project.id)
    oracle.counter.assert_exact("plan", 0)


@pytest.mark.asyncio
async def test_provisioning_then_resume(service, oracle, store, project):
    oracle.script("plan", ["Add contact form", "SQL: create submissions table"])
    await service.start_build(project.id, "Contact form with stored submissions")
    await finish(service, project.id)

    async def provision(project_id, token=None):
        p = await store.load(project_id)
        p.manual_backend = ManualBackend(url="https://managed.test", key="k")
        await store.save(p)

    service.provisioning = AsyncMock()
    service.provisioning.provision.side_effect = provision
    oracle.script("plan", ["Add contact form"])
    oracle.default("code", code_response("form"))

    await service.provision_backend(project.id)
    assert await finish(service, project.id) == BuildOutcome.SUCCESS
    service.provisioning.provision.assert_awaited_once()
    assert service.provisioning.provision.await_args.args[0] == project.id


@pytest.mark.asyncio
async def test_provisioning_failure_is_recorded(service, store, project):
    project_state = await store.load(project.id)
    project_state.add_message(MessageRole.SYSTEM, "needs db", requires_action=RequiredAction.CONNECT_DATABASE)
    await store.save(project_state)

    service.provisioning = AsyncMock()
    service.provisioning.provision.side_effect = ProvisioningError("quota exceeded")

    await service.provision_backend(project.id)
    assert await finish(service, project.id) is None

    saved = await store.load(project.id)
    assert "quota exceeded" in saved.messages[-1].content


@pytest.mark.asyncio
async def test_provisioning_requires_configuration(service, project):
    with pytest.raises(ProvisioningError):
        await service.provision_backend(project.id)


@pytest.mark.asyncio
async def test_trash_and_restore(service, store, project):
    await service.delete_project(project.id)
    assert await service.list_projects("owner-1") == []
    assert len(await service.list_projects("owner-1", include_deleted=True)) == 1

    restored = await service.restore_project(project.id)
    assert restored.deleted_at is None
    assert len(await service.list_projects("owner-1")) == 1

    await service.delete_project(project.id, hard=True)
    assert await store.load(project.id) is None


@pytest.mark.asyncio
async def test_suggestions_are_filtered_and_capped(service, oracle, project):
    items = [{"title": f"Idea {i}", "prompt": f"Add feature {i}"} for i in range(6)]
    oracle.script("suggestions", "not json", items[:1] + [{"title": "no prompt"}] + items[1:])

    suggestions = await service.suggestions(project.id)

    assert [s["title"] for s in suggestions] == ["Idea 0", "Idea 1", "Idea 2", "Idea 3"]
    oracle.counter.assert_exact("suggestions", 2)


@pytest.mark.asyncio
async def test_message_images_reach_the_planner(service, oracle, store, project):
    image = "data:image/png;base64,AAA"
    oracle.script("router", "ARCHITECT").script("backend", {"requiresDatabase": False})
    oracle.script("plan", ["Build the mockup"])
    oracle.default("code", code_response("mockup"))

    await service.handle_user_message(project.id, "Build this mockup", [image])
    assert await finish(service, project.id) == BuildOutcome.SUCCESS

    plan_calls = [c for c in oracle.calls if c["role"] == "plan"]
    assert plan_calls[0]["images"] == [image]
    saved = await store.load(project.id)
    assert saved.last_user_message().images == [image]


class StuckProvisioningClient:
    """Provisioning that never leaves `creating`."""

    async def request_backend(self, owner_id, project_name, region=None):
        return ManagedBackend(owner_id=owner_id, project_ref="ref-1", project_name=project_name)

    async def get_backend(self, backend):
        return backend


@pytest.mark.asyncio
async def test_stop_interrupts_provisioning_wait(service, store, project):
    service.provisioning = ProvisioningService(
        store, client=StuckProvisioningClient(), poll_interval=5, max_polls=10,
    )

    job = await service.provision_backend(project.id)
    await asyncio.sleep(0.05)

    await asyncio.wait_for(service.stop(project.id), timeout=1)

    assert job.task.result() == BuildOutcome.CANCELLED
    saved = await store.load(project.id)
    assert saved.managed_backend.status == BackendStatus.CREATING


@pytest.mark.asyncio
async def test_resume_continues_from_checkpoint(service, oracle, store, project):
    stored = await store.load(project.id)
    stored.status = ProjectStatus.GENERATING
    stored.build_state = BuildState(
        plan=[PlanStep(description="Lay out page"), PlanStep(description="Style page")],
        current_step=1,
        last_completed_step=0,
    )
    await store.save(stored)
    oracle.default("code", code_response("styled"))

    await service.resume(project.id)
    assert await finish(service, project.id) == BuildOutcome.SUCCESS

    oracle.counter.assert_exact("plan", 0)
    oracle.counter.assert_exact("code", 1)
    assert "Step 2: Style page" in oracle.prompts("code")[0]
    saved = await store.load(project.id)
    assert saved.build_state is None
    assert saved.code.html == "<main>styled</main>"


@pytest.mark.asyncio
async def test_resume_without_unfinished_plan_is_refused(service, project):
    with pytest.raises(NovaBuildError):
        await service.resume(project.id)
    assert not service.supervisor.is_running(project.id)
