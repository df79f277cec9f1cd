# novabuild/orchestration/step_executor.py
"""
Step Executor - runs one plan step.

SQL steps are the one deliberate partial-failure tolerance: any failure is
recorded as a warning and the build moves on. Code steps get a fixed number
of attempts with a self-healing repair between them; exhausting them is
fatal to the build.

The artifact is replaced wholesale by each successful code step. If a code
step finally fails, the artifact is restored to what it was when the step
started, so auto-fixes made for that step do not leak into the result.
"""
from typing import Optional

from pydantic import ValidationError

from novabuild.core.config import settings
from novabuild.core.constants import MessageRole, StepKind
from novabuild.core.exceptions import BuildCancelledError, NovaBuildError, SqlExecutionError
from novabuild.core.logging import log
from novabuild.core.step_outcome import StepExecutionResult, StepOutcome
from novabuild.lib.sql_runner import SqlRunner
from novabuild.llm.adapter import Oracle
from novabuild.llm.prompts import BUILDER_PROMPT, CODE_STEP_SCHEMA, SQL_PROMPT, SQL_STEP_SCHEMA
from novabuild.models.project import BackendConnection, CodeArtifactUpdate, Project
from novabuild.orchestration.callbacks import BuildCallbacks
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.checkpoint import BuildCheckpointer
from novabuild.orchestration.database_gate import DatabaseGate
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.orchestration.self_healing import SelfHealingRepair
from novabuild.utils.parser import parse_json_object


def build_step_prompt(
    project: Project,
    step_index: int,
    request: str,
    connection: Optional[BackendConnection] = None,
) -> str:
    state = project.build_state
    plan = "\n".join(f"{i + 1}. {text}" for i, text in enumerate(state.descriptions))
    code = project.code
    prompt = f"""
CONTEXT:
The user wants to build/modify a web application.

USER_REQUEST: "{request}"

BUILD_PLAN:
{plan}

CURRENT_STEP_ACTION:
Step {step_index + 1}: {state.plan[step_index].description}

CURRENT_CODE_STATE:
HTML: {code.html or '<!-- Empty -->'}
CSS: {code.stylesheet or '/* Empty */'}
SCRIPT: {code.script or '// Empty'}
"""
    if connection is not None:
        prompt += f"""
DATABASE_CONNECTION:
URL: {connection.url}
KEY: {connection.key}
"""
    prompt += f"""
INSTRUCTIONS:
- Implement ONLY the changes required for "Step {step_index + 1}".
- Return the full updated code.
"""
    return prompt


def build_sql_prompt(project: Project, step_index: int, request: str) -> str:
    state = project.build_state
    plan = "\n".join(f"{i + 1}. {text}" for i, text in enumerate(state.descriptions))
    return (
        f'USER_REQUEST: "{request}"\n\n'
        f"BUILD_PLAN:\n{plan}\n\n"
        f"CURRENT_STEP_ACTION:\nStep {step_index + 1}: {state.plan[step_index].description}\n\n"
        f"CURRENT_SCRIPT (for table and column names already in use):\n{project.code.script or '// Empty'}\n"
    )


class StepExecutor:
    def __init__(
        self,
        oracle: Oracle,
        checkpointer: BuildCheckpointer,
        healer: SelfHealingRepair,
        sql_runner: Optional[SqlRunner] = None,
        callbacks: Optional[BuildCallbacks] = None,
        gate: Optional[DatabaseGate] = None,
        policy: Optional[RetryPolicy] = None,
        attempts: Optional[int] = None,
        code_call_retries: Optional[int] = None,
        model: Optional[str] = None,
    ):
        self.oracle = oracle
        self.checkpointer = checkpointer
        self.healer = healer
        self.sql_runner = sql_runner
        self.callbacks = callbacks or BuildCallbacks()
        self.gate = gate or DatabaseGate()
        self.policy = policy or RetryPolicy.from_settings()
        self.code_policy = self.policy.with_retries(
            settings.build.code_call_retries if code_call_retries is None else code_call_retries
        )
        self.attempts = attempts or settings.build.code_step_attempts
        self.model = model or settings.llm.builder_model

    async def execute(
        self,
        project: Project,
        step_index: int,
        request: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> StepExecutionResult:
        step = project.build_state.plan[step_index]
        if step.kind == StepKind.SQL:
            return await self._run_sql_step(project, step_index, request, cancel_token)
        return await self._run_code_step(project, step_index, request, cancel_token)

    # ─────────────────────────────────────────────────────────
    # SQL steps
    # ─────────────────────────────────────────────────────────

    async def _degrade(self, project: Project, step_index: int, reason: str) -> StepExecutionResult:
        step = project.build_state.plan[step_index]
        log("BUILD", f"⚠️ Database step degraded: {reason}", project_id=project.id)
        project.add_message(
            MessageRole.SYSTEM,
            f'Warning: database step "{step.description}" could not be applied ({reason}). Continuing with the build.',
        )
        project.build_state.mark_completed(step_index)
        await self.checkpointer.checkpoint(project, "sql step degraded")
        return StepExecutionResult(
            outcome=StepOutcome.DEGRADED,
            step_index=step_index,
            kind=StepKind.SQL,
            description=step.description,
            error_details=reason,
        )

    async def _run_sql_step(
        self,
        project: Project,
        step_index: int,
        request: str,
        cancel_token: Optional[CancellationToken],
    ) -> StepExecutionResult:
        step = project.build_state.plan[step_index]

        connection = self.gate.connection_for_step(project)
        if connection is None:
            return await self._degrade(project, step_index, "no active database connection")
        if self.sql_runner is None:
            return await self._degrade(project, step_index, "no SQL runner configured")

        try:
            text = await self.policy.run(
                lambda: self.oracle.generate(
                    build_sql_prompt(project, step_index, request),
                    system_instruction=SQL_PROMPT,
                    schema=SQL_STEP_SCHEMA,
                    model=self.model,
                ),
                cancel_token=cancel_token,
                label=f"sql step {step_index + 1}",
            )
            data = parse_json_object(text)
            sql = data.get("sql")
            if not isinstance(sql, str) or not sql.strip():
                raise SqlExecutionError("Oracle returned no SQL")

            await self.sql_runner.execute(connection, sql)
            if cancel_token:
                cancel_token.raise_if_cancelled()
        except BuildCancelledError:
            raise
        except Exception as e:
            return await self._degrade(project, step_index, str(e))

        explanation = str(data.get("explanation") or "Updated the database schema.")
        project.add_message(MessageRole.ASSISTANT, f"{explanation}\n\n```sql\n{sql.strip()}\n```")
        project.build_state.mark_completed(step_index)
        await self.checkpointer.checkpoint(project, "sql step completed")
        log("BUILD", f"🗄️ Database step {step_index + 1} applied", project_id=project.id)

        return StepExecutionResult(
            outcome=StepOutcome.SUCCESS,
            step_index=step_index,
            kind=StepKind.SQL,
            description=step.description,
            explanation=explanation,
        )

    # ─────────────────────────────────────────────────────────
    # Code steps
    # ─────────────────────────────────────────────────────────

    async def _generate_code(
        self,
        project: Project,
        step_index: int,
        request: str,
        cancel_token: Optional[CancellationToken],
    ) -> CodeArtifactUpdate:
        connection = self.gate.connection_for_step(project)
        prompt = build_step_prompt(project, step_index, request, connection)
        text = await self.code_policy.run(
            lambda: self.oracle.generate(
                prompt,
                system_instruction=BUILDER_PROMPT,
                schema=CODE_STEP_SCHEMA,
                model=self.model,
            ),
            cancel_token=cancel_token,
            label=f"code step {step_index + 1}",
        )
        return CodeArtifactUpdate.model_validate(parse_json_object(text))

    async def _run_code_step(
        self,
        project: Project,
        step_index: int,
        request: str,
        cancel_token: Optional[CancellationToken],
    ) -> StepExecutionResult:
        step = project.build_state.plan[step_index]
        artifact_at_start = project.code.model_copy(deep=True)
        attempts_left = self.attempts
        last_error = ""

        while attempts_left > 0:
            try:
                update = await self._generate_code(project, step_index, request, cancel_token)
            except BuildCancelledError:
                raise
            except (NovaBuildError, ValidationError) as e:
                attempts_left -= 1
                last_error = str(e)
                log("BUILD", f"❌ Step {step_index + 1} failed ({attempts_left} attempts left): {last_error}", project_id=project.id)

                project.build_state.error = last_error
                await self.checkpointer.checkpoint(project, "step error")
                await self.callbacks.on_error(
                    project.id,
                    f"Step failed: {last_error}. Retrying... ({attempts_left} left)",
                    attempts_left,
                )

                if attempts_left > 0:
                    explanation = await self.healer.repair(project, last_error, cancel_token)
                    if explanation is not None:
                        await self.callbacks.on_chunk_complete(project.id, project.code, explanation)
                continue

            project.code = project.code.merged_with(update)
            project.build_state.error = None
            project.build_state.mark_completed(step_index)
            await self.checkpointer.checkpoint(project, "step completed")
            await self.callbacks.on_chunk_complete(project.id, project.code, update.explanation)

            return StepExecutionResult(
                outcome=StepOutcome.SUCCESS,
                step_index=step_index,
                kind=StepKind.CODE,
                description=step.description,
                attempts=self.attempts - attempts_left + 1,
                explanation=update.explanation,
            )

        # Roll back auto-fixes made for this step
        project.code = artifact_at_start
        return StepExecutionResult(
            outcome=StepOutcome.FAILED,
            step_index=step_index,
            kind=StepKind.CODE,
            description=step.description,
            attempts=self.attempts,
            error_details=last_error,
        )
