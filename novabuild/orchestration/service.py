# novabuild/orchestration/service.py
"""
Build service - what the API calls.

Turns user actions (send message, retry, auto-fix, stop, connect a backend)
into routed chat replies or supervised builds. Builds never run inline in a
request: they are handed to the BuildSupervisor and the caller returns
immediately.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from novabuild.core.constants import AUTO_FIX_PROMPT, MessageRole, ProjectStatus, RequiredAction
from novabuild.core.exceptions import (
    BuildCancelledError,
    NovaBuildError,
    ProjectNotFoundError,
    ProvisioningError,
)
from novabuild.core.logging import log
from novabuild.lib.provisioning import ProvisioningService
from novabuild.lib.sql_runner import SqlRunner
from novabuild.llm.adapter import Oracle
from novabuild.models.project import ManualBackend, Project
from novabuild.orchestration.build_engine import BuildEngine, BuildOutcome
from novabuild.orchestration.callbacks import BuildCallbacks
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.checkpoint import can_resume
from novabuild.orchestration.intent_router import IntentRouter
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.orchestration.suggestions import generate_project_title, generate_suggestions
from novabuild.orchestration.supervisor import BuildJob, BuildSupervisor
from novabuild.persistence.store import ProjectStore

MODE_CHAT = "chat"
MODE_ARCHITECT = "architect"


def awaiting_database(project: Project) -> bool:
    """True if the last message is a database-gate redirect."""
    if not project.messages:
        return False
    return project.messages[-1].requires_action == RequiredAction.CONNECT_DATABASE


class BuildService:
    def __init__(
        self,
        store: ProjectStore,
        oracle: Oracle,
        supervisor: Optional[BuildSupervisor] = None,
        callbacks: Optional[BuildCallbacks] = None,
        sql_runner: Optional[SqlRunner] = None,
        provisioning: Optional[ProvisioningService] = None,
        policy: Optional[RetryPolicy] = None,
        router: Optional[IntentRouter] = None,
        engine: Optional[BuildEngine] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.policy = policy or RetryPolicy.from_settings()
        self.supervisor = supervisor or BuildSupervisor()
        self.callbacks = callbacks or BuildCallbacks()
        self.provisioning = provisioning
        self.router = router or IntentRouter(oracle, policy=self.policy)
        self.engine = engine or BuildEngine(
            oracle,
            store,
            sql_runner=sql_runner,
            callbacks=self.callbacks,
            policy=self.policy,
        )

    async def get_project(self, project_id: str) -> Project:
        project = await self.store.load(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def list_projects(self, owner_id: str, include_deleted: bool = False) -> List[Project]:
        return await self.store.list_for_owner(owner_id, include_deleted=include_deleted)

    # ─────────────────────────────────────────────────────────
    # Messages
    # ─────────────────────────────────────────────────────────

    async def create_project(
        self,
        owner_id: str,
        prompt: str,
        images: Optional[List[str]] = None,
    ) -> Tuple[Project, str]:
        """Create a project from its first prompt and route that prompt."""
        project = Project(owner_id=owner_id)
        project.name = await generate_project_title(self.oracle, prompt, self.policy)
        await self.store.save(project)
        log("BUILD", f"✨ Created project '{project.name}'", project_id=project.id)

        mode = await self.handle_user_message(project.id, prompt, images)
        return await self.get_project(project.id), mode

    async def handle_user_message(
        self,
        project_id: str,
        content: str,
        images: Optional[List[str]] = None,
    ) -> str:
        """
        Record a user message and either answer it or start a build.

        Returns:
            MODE_CHAT if a reply was appended, MODE_ARCHITECT if a build started
        """
        project = await self.get_project(project_id)
        history = list(project.messages)
        project.add_message(MessageRole.USER, content, images=images)
        project.touch()
        await self.store.save(project)

        decision = await self.router.route(content, history)

        if not decision.requires_code_change:
            project = await self.get_project(project_id)
            project.add_message(MessageRole.ASSISTANT, decision.reply)
            project.touch()
            await self.store.save(project)
            return MODE_CHAT

        await self.start_build(project_id, content, images=images, needs_backend=decision.requires_backend)
        return MODE_ARCHITECT

    async def start_build(
        self,
        project_id: str,
        prompt: str,
        images: Optional[List[str]] = None,
        needs_backend: Optional[bool] = None,
        resume: bool = False,
    ) -> BuildJob:
        async def job(token: CancellationToken) -> BuildOutcome:
            return await self.engine.run(
                project_id,
                prompt,
                images=images,
                cancel_token=token,
                needs_backend=needs_backend,
                resume=resume,
            )

        return await self.supervisor.start(project_id, job)

    async def retry(self, project_id: str) -> BuildJob:
        """Drop the trailing error message and rebuild the last user request."""
        project = await self.get_project(project_id)
        anchor = project.last_user_message()
        if anchor is None:
            raise NovaBuildError("Nothing to retry", {"project_id": project_id})

        state = project.build_state
        if state is not None and state.error and project.messages and project.messages[-1].role != MessageRole.USER:
            project.messages.pop()
            project.touch()
            await self.store.save(project)

        return await self.start_build(project_id, anchor.content, images=anchor.images)

    async def resume(self, project_id: str) -> BuildJob:
        """
        Continue a stopped or interrupted build from its last checkpoint.

        The stored plan is reused; no new plan is compiled.

        Raises:
            NovaBuildError: If the project has no unfinished plan
        """
        project = await self.get_project(project_id)
        anchor = project.last_user_message()
        if anchor is None or not can_resume(project):
            raise NovaBuildError("Nothing to resume", {"project_id": project_id})
        return await self.start_build(project_id, anchor.content, resume=True)

    async def autofix(self, project_id: str) -> str:
        return await self.handle_user_message(project_id, AUTO_FIX_PROMPT)

    async def stop(self, project_id: str) -> Project:
        """Cancel the running build, keep its checkpoint and mark the project idle."""
        await self.supervisor.stop(project_id)
        project = await self.get_project(project_id)
        if project.status != ProjectStatus.IDLE:
            project.status = ProjectStatus.IDLE
            project.touch()
            await self.store.save(project)
        log("BUILD", "⏹️ Build stopped", project_id=project_id)
        return project

    async def suggestions(self, project_id: str) -> List[Dict[str, str]]:
        project = await self.get_project(project_id)
        return await generate_suggestions(self.oracle, project, self.policy)

    # ─────────────────────────────────────────────────────────
    # Backends
    # ─────────────────────────────────────────────────────────

    async def resume_after_backend(
        self,
        project_id: str,
        token: Optional[CancellationToken] = None,
    ) -> Optional[BuildOutcome]:
        """
        Re-run the request that hit the database gate.

        The last user message anchors the resumption, not the last message,
        which is the gate's own redirect.
        """
        project = await self.get_project(project_id)
        anchor = project.last_user_message()
        if anchor is None:
            return None
        log("BUILD", "🔁 Resuming build after backend connected", project_id=project_id)
        return await self.engine.run(
            project_id,
            anchor.content,
            images=anchor.images,
            cancel_token=token,
            needs_backend=True,
        )

    async def set_manual_backend(self, project_id: str, url: str, key: str) -> Project:
        project = await self.get_project(project_id)
        project.manual_backend = ManualBackend(url=url, key=key)
        project.touch()
        await self.store.save(project)

        if awaiting_database(project):
            await self.supervisor.start(project_id, lambda token: self.resume_after_backend(project_id, token))
        return project

    async def provision_backend(self, project_id: str) -> BuildJob:
        """Provision a managed backend in the background, then resume a gated build."""
        if self.provisioning is None:
            raise ProvisioningError("Managed provisioning is not configured")
        await self.get_project(project_id)

        async def job(token: CancellationToken) -> Optional[BuildOutcome]:
            try:
                await self.provisioning.provision(project_id, token)
            except BuildCancelledError:
                log("BUILD", "🛑 Provisioning wait cancelled", project_id=project_id)
                return BuildOutcome.CANCELLED
            except ProvisioningError as e:
                log("BUILD", f"❌ Provisioning failed: {e}", project_id=project_id)
                project = await self.get_project(project_id)
                project.add_message(MessageRole.SYSTEM, f"Database provisioning failed: {e.message}")
                project.touch()
                await self.store.save(project)
                return None

            if token.cancelled:
                return BuildOutcome.CANCELLED
            project = await self.get_project(project_id)
            if not awaiting_database(project):
                return None
            return await self.resume_after_backend(project_id, token)

        return await self.supervisor.start(project_id, job)

    # ─────────────────────────────────────────────────────────
    # Trash
    # ─────────────────────────────────────────────────────────

    async def delete_project(self, project_id: str, hard: bool = False) -> None:
        await self.supervisor.stop(project_id)
        if hard:
            if not await self.store.delete(project_id):
                raise ProjectNotFoundError(project_id)
            return
        project = await self.get_project(project_id)
        project.deleted_at = datetime.now(timezone.utc)
        project.status = ProjectStatus.IDLE
        project.touch()
        await self.store.save(project)

    async def restore_project(self, project_id: str) -> Project:
        project = await self.get_project(project_id)
        project.deleted_at = None
        project.touch()
        await self.store.save(project)
        return project
