# novabuild/orchestration/build_engine.py
"""
Build Engine - runs one build for a project end to end.

Flow:
    load project -> plan (gated) -> publish -> step loop -> Success | FinalError

Every transition is checkpointed before the next suspend point. The three
exits that reach the caller each need a different response:
- BACKEND_REQUIRED: redirect to provisioning, nothing is reported as failed
- FAILED: a code step exhausted its attempts, BuildState keeps the error
- CANCELLED: silent, the last checkpoint stands
"""
from enum import Enum
from typing import List, Optional

from novabuild.core.constants import MessageRole, ProjectStatus
from novabuild.core.exceptions import (
    BuildCancelledError,
    DatabaseRequiredError,
    ProjectNotFoundError,
    StepFailedError,
)
from novabuild.core.logging import log, log_section, log_step
from novabuild.lib.sql_runner import SqlRunner
from novabuild.llm.adapter import Oracle
from novabuild.models.project import BuildState, Project
from novabuild.orchestration.callbacks import BuildCallbacks
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.checkpoint import BuildCheckpointer, can_resume
from novabuild.orchestration.database_gate import DatabaseGate
from novabuild.orchestration.plan_compiler import PlanCompiler
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.orchestration.self_healing import SelfHealingRepair
from novabuild.orchestration.step_executor import StepExecutor
from novabuild.persistence.store import ProjectStore

BUILD_COMPLETE_MESSAGE = "I've finished building your request."


class BuildOutcome(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    BACKEND_REQUIRED = "backend_required"


def merge_images(project: Project, images: Optional[List[str]]) -> None:
    """Attach images to the last user message, skipping ones already there."""
    if not images:
        return
    anchor = project.last_user_message()
    if anchor is None:
        return
    for image in images:
        if image not in anchor.images:
            anchor.images.append(image)


class BuildEngine:
    def __init__(
        self,
        oracle: Oracle,
        store: ProjectStore,
        sql_runner: Optional[SqlRunner] = None,
        callbacks: Optional[BuildCallbacks] = None,
        policy: Optional[RetryPolicy] = None,
        gate: Optional[DatabaseGate] = None,
        attempts: Optional[int] = None,
        code_call_retries: Optional[int] = None,
    ):
        self.store = store
        self.callbacks = callbacks or BuildCallbacks()
        self.gate = gate or DatabaseGate()
        self.checkpointer = BuildCheckpointer(store)
        self.compiler = PlanCompiler(oracle, gate=self.gate, policy=policy)
        self.healer = SelfHealingRepair(oracle, self.checkpointer, policy=policy)
        self.executor = StepExecutor(
            oracle,
            self.checkpointer,
            self.healer,
            sql_runner=sql_runner,
            callbacks=self.callbacks,
            gate=self.gate,
            policy=policy,
            attempts=attempts,
            code_call_retries=code_call_retries,
        )

    async def run(
        self,
        project_id: str,
        prompt: str,
        images: Optional[List[str]] = None,
        cancel_token: Optional[CancellationToken] = None,
        needs_backend: Optional[bool] = None,
        resume: bool = False,
    ) -> BuildOutcome:
        """
        Run a build for a project.

        With resume=True and a resumable BuildState on the project, the
        stored plan is reused and execution continues at
        last_completed_step + 1. Otherwise a fresh plan is compiled.

        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        token = cancel_token or CancellationToken(project_id)
        try:
            return await self._run(project_id, prompt, images, token, needs_backend, resume)
        except BuildCancelledError:
            log("BUILD", "🛑 Build cancelled, last checkpoint kept", project_id=project_id)
            return BuildOutcome.CANCELLED

    async def _load(self, project_id: str) -> Project:
        project = await self.store.load(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def _run(
        self,
        project_id: str,
        prompt: str,
        images: Optional[List[str]],
        token: CancellationToken,
        needs_backend: Optional[bool],
        resume: bool,
    ) -> BuildOutcome:
        token.raise_if_cancelled()
        project = await self._load(project_id)
        merge_images(project, images)

        if resume and can_resume(project):
            start = project.build_state.resume_index
            log_section("BUILD", f"RESUMING AT STEP {start + 1}/{len(project.build_state.plan)}", project_id=project.id)
            project.status = ProjectStatus.GENERATING
            project.build_state.error = None
            await self.checkpointer.checkpoint(project, "build resumed")
            await self.callbacks.on_plan_update(project.id, project.build_state.descriptions)
        else:
            log_section("BUILD", f"NEW BUILD: {prompt[:60]}", project_id=project.id)
            project.status = ProjectStatus.GENERATING
            project.build_state = BuildState()
            await self.checkpointer.checkpoint(project, "build started")

            try:
                plan = await self.compiler.compile(
                    project,
                    prompt,
                    images=images,
                    needs_backend=needs_backend,
                    cancel_token=token,
                )
            except DatabaseRequiredError:
                content = self.gate.halt(project)
                await self.checkpointer.checkpoint(project, "database gate halt")
                await self.callbacks.on_final_error(project.id, content, backend_required=True)
                return BuildOutcome.BACKEND_REQUIRED

            project.build_state.plan = plan
            await self.checkpointer.checkpoint(project, "plan published")
            await self.callbacks.on_plan_update(project.id, project.build_state.descriptions)
            start = 0

        state = project.build_state
        for index in range(start, len(state.plan)):
            token.raise_if_cancelled()

            step = state.plan[index]
            log_step(index, len(state.plan), step.description, step.kind.value, project_id=project.id)
            state.current_step = index
            state.error = None
            await self.checkpointer.checkpoint(project, "step started")
            await self.callbacks.on_step_start(project.id, index)

            result = await self.executor.execute(project, index, prompt, token)

            if result.is_fatal():
                return await self._fail(project, StepFailedError(index, result.description, result.error_details))

            await self.callbacks.on_step_complete(project.id, index)

        token.raise_if_cancelled()
        return await self._succeed(project)

    async def _fail(self, project: Project, error: StepFailedError) -> BuildOutcome:
        log("BUILD", f"💥 {error.message}", project_id=project.id)
        # BuildState is kept so the caller can show the error and offer retry
        project.build_state.error = error.message
        project.status = ProjectStatus.IDLE
        project.add_message(MessageRole.ASSISTANT, error.message)
        await self.checkpointer.checkpoint(project, "build failed")
        await self.callbacks.on_final_error(project.id, error.message)
        return BuildOutcome.FAILED

    async def _succeed(self, project: Project) -> BuildOutcome:
        explanation = project.code.explanation.strip() or BUILD_COMPLETE_MESSAGE
        project.status = ProjectStatus.IDLE
        project.build_state = None
        project.add_message(MessageRole.ASSISTANT, explanation)
        await self.checkpointer.checkpoint(project, "build complete")
        await self.callbacks.on_success(project.id, project.code, explanation)
        log("BUILD", "🎉 Build complete", project_id=project.id)
        return BuildOutcome.SUCCESS
