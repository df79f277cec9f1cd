# tests/conftest.py
"""
Shared pytest fixtures for NovaBuild tests.

Provides:
- ScriptedOracle: deterministic oracle stub with per-role response queues
- In-memory project store and sample projects
- Recording callbacks and a fake SQL runner
- Zero-delay retry policy and a wired BuildEngine
- httpx AsyncClient bound to the FastAPI app
"""
import json
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from novabuild.core.constants import MessageRole
from novabuild.core.exceptions import OracleError, SqlExecutionError
from novabuild.llm.prompts import (
    BACKEND_CLASSIFIER_SCHEMA,
    CHAT_PROMPT,
    CODE_STEP_SCHEMA,
    PLAN_SCHEMA,
    REPAIR_SCHEMA,
    ROUTER_PROMPT,
    SQL_STEP_SCHEMA,
    SUGGESTION_SCHEMA,
    TITLE_PROMPT,
)
from novabuild.models.project import BackendConnection, CodeArtifact, ManualBackend, Project
from novabuild.orchestration.build_engine import BuildEngine
from novabuild.orchestration.callbacks import BuildCallbacks
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.persistence.store import InMemoryProjectStore

from tests.utils.call_counter import CallCounter


# ═══════════════════════════════════════════════════════
# ORACLE STUB
# ═══════════════════════════════════════════════════════

class ScriptedOracle:
    """
    Deterministic oracle.

    Every call is classified into a role (router, backend, chat, title,
    suggestions, plan, code, sql, repair). Each role has a queue of
    responses; when it is empty the role's default is used. A response may be
    a string, a dict/list (returned as JSON), an exception (raised) or a
    callable taking the prompt and returning any of those.
    """

    def __init__(self):
        self.responses: Dict[str, List[Any]] = {}
        self.defaults: Dict[str, Any] = {}
        self.hooks: Dict[str, Callable[[int], None]] = {}
        self.counter = CallCounter()
        self.calls: List[Dict[str, Any]] = []

    def script(self, role: str, *responses: Any) -> "ScriptedOracle":
        self.responses.setdefault(role, []).extend(responses)
        return self

    def default(self, role: str, response: Any) -> "ScriptedOracle":
        self.defaults[role] = response
        return self

    def on_call(self, role: str, hook: Callable[[int], None]) -> "ScriptedOracle":
        """Run hook(call_number) when the role is called, before it answers."""
        self.hooks[role] = hook
        return self

    def prompts(self, role: str) -> List[str]:
        return [c["prompt"] for c in self.calls if c["role"] == role]

    @staticmethod
    def role_for(system_instruction: str, schema: Optional[Dict[str, Any]]) -> str:
        by_schema = [
            (PLAN_SCHEMA, "plan"),
            (CODE_STEP_SCHEMA, "code"),
            (SQL_STEP_SCHEMA, "sql"),
            (REPAIR_SCHEMA, "repair"),
            (BACKEND_CLASSIFIER_SCHEMA, "backend"),
            (SUGGESTION_SCHEMA, "suggestions"),
        ]
        for known, role in by_schema:
            if schema is known:
                return role
        if system_instruction == ROUTER_PROMPT:
            return "router"
        if system_instruction == CHAT_PROMPT:
            return "chat"
        if system_instruction == TITLE_PROMPT:
            return "title"
        return "unknown"

    async def generate(
        self,
        prompt: str,
        system_instruction: str = "",
        schema: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        images: Optional[List[str]] = None,
        model: Optional[str] = None,
    ) -> str:
        role = self.role_for(system_instruction, schema)
        self.counter.inc(role)
        self.calls.append({
            "role": role,
            "prompt": prompt,
            "temperature": temperature,
            "images": images,
            "model": model,
        })

        hook = self.hooks.get(role)
        if hook is not None:
            hook(self.counter.count(role))

        queue = self.responses.get(role)
        if queue:
            response = queue.pop(0)
        elif role in self.defaults:
            response = self.defaults[role]
        else:
            raise OracleError("scripted", f"no response scripted for {role}")

        if callable(response) and not isinstance(response, BaseException):
            response = response(prompt)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


def code_response(tag: str, explanation: Optional[str] = None) -> Dict[str, str]:
    """A complete code-step answer whose every field carries `tag`."""
    return {
        "html": f"<main>{tag}</main>",
        "script": f"console.log('{tag}');",
        "stylesheet": f"/* {tag} */",
        "explanation": explanation or f"Implemented {tag}",
    }


# ═══════════════════════════════════════════════════════
# COLLABORATOR FAKES
# ═══════════════════════════════════════════════════════

class RecordingCallbacks(BuildCallbacks):
    """Records every build event as (name, payload)."""

    def __init__(self):
        self.events: List[tuple] = []

    async def on_plan_update(self, project_id, plan):
        self.events.append(("plan", list(plan)))

    async def on_step_start(self, project_id, step_index):
        self.events.append(("step_start", step_index))

    async def on_step_complete(self, project_id, step_index):
        self.events.append(("step_complete", step_index))

    async def on_chunk_complete(self, project_id, code, explanation):
        self.events.append(("chunk", code.model_copy()))

    async def on_success(self, project_id, code, explanation):
        self.events.append(("success", explanation))

    async def on_error(self, project_id, error, retries_left):
        self.events.append(("error", retries_left))

    async def on_final_error(self, project_id, error, backend_required=False):
        self.events.append(("final_error", {"error": error, "backend_required": backend_required}))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Any]:
        return [payload for event, payload in self.events if event == name]


class FakeSqlRunner:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.executed: List[str] = []

    async def execute(self, connection: BackendConnection, sql: str) -> None:
        if self.error is not None:
            raise self.error
        self.executed.append(sql)


# ═══════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════

@pytest.fixture
def oracle():
    return ScriptedOracle()


@pytest.fixture
def store():
    return InMemoryProjectStore()


@pytest.fixture
def callbacks():
    return RecordingCallbacks()


@pytest.fixture
def sql_runner():
    return FakeSqlRunner()


@pytest.fixture
def failing_sql_runner():
    return FakeSqlRunner(error=SqlExecutionError("relation already exists"))


@pytest.fixture
def fast_policy():
    """Default retry budget without any waiting."""
    return RetryPolicy(retries=2, initial_delay=0, timeout=5)


@pytest.fixture
def engine(oracle, store, sql_runner, callbacks, fast_policy):
    return BuildEngine(
        oracle,
        store,
        sql_runner=sql_runner,
        callbacks=callbacks,
        policy=fast_policy,
        code_call_retries=0,
    )


@pytest.fixture
def user_request():
    return "Build a landing page with a contact form"


@pytest_asyncio.fixture
async def project(store, user_request):
    """A saved project holding only its first user message."""
    p = Project(owner_id="owner-1", name="Landing")
    p.add_message(MessageRole.USER, user_request)
    await store.save(p)
    return p


@pytest_asyncio.fixture
async def connected_project(store, user_request):
    """A saved project with manual database credentials and some code."""
    p = Project(owner_id="owner-1", name="Connected")
    p.manual_backend = ManualBackend(url="https://db.example.test", key="service-key")
    p.code = CodeArtifact(html="<main>v0</main>", script="let v = 0;", stylesheet="body{}", explanation="v0")
    p.add_message(MessageRole.USER, user_request)
    await store.save(p)
    return p


@pytest_asyncio.fixture
async def async_client(store, oracle, fast_policy):
    """httpx client against the app, wired to the in-memory store and stub oracle."""
    from httpx import ASGITransport, AsyncClient

    from novabuild.main import app
    from novabuild.orchestration.service import BuildService

    service = BuildService(store, oracle, policy=fast_policy)
    app.state.service = service
    app.state.supervisor = service.supervisor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await service.supervisor.shutdown()
