# novabuild/orchestration/self_healing.py
"""
Self-Healing Repair Loop

Runs between failed code-step attempts:
- Sends the last error and the current script to the oracle
- On success, overwrites ONLY the artifact's script and records an
  "(Auto-fix: ...)" message
- On failure, logs and returns None; the step's own attempt counter still
  decides whether the build fails

The repair call is one-shot (no envelope retries) so a failing step costs a
bounded number of oracle calls.
"""
from typing import Optional

from novabuild.core.config import settings
from novabuild.core.constants import MessageRole
from novabuild.core.exceptions import BuildCancelledError, NovaBuildError
from novabuild.core.logging import log
from novabuild.llm.adapter import Oracle
from novabuild.llm.prompts import REPAIR_PROMPT, REPAIR_SCHEMA
from novabuild.models.project import Project
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.checkpoint import BuildCheckpointer
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.utils.parser import parse_json_object

AUTO_FIX_DEFAULT = "Applied an automatic fix to the code."


def build_repair_prompt(script: str, error_message: str) -> str:
    return (
        "--- CURRENT SCRIPT (has an error) ---\n"
        f"{script or '// Empty'}\n"
        "--- END CODE ---\n\n"
        "--- ERROR MESSAGE ---\n"
        f"{error_message}\n"
        "--- END ERROR ---\n\n"
        "Please fix the code."
    )


class SelfHealingRepair:
    def __init__(
        self,
        oracle: Oracle,
        checkpointer: BuildCheckpointer,
        policy: Optional[RetryPolicy] = None,
        model: Optional[str] = None,
    ):
        self.oracle = oracle
        self.checkpointer = checkpointer
        self.policy = (policy or RetryPolicy.from_settings()).one_shot()
        self.model = model or settings.llm.builder_model

    async def repair(
        self,
        project: Project,
        error_message: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """
        Attempt one repair.

        Returns:
            The fix explanation if a corrected script was applied, else None

        Raises:
            BuildCancelledError: Cancellation is never swallowed
        """
        log("HEAL", f"🩹 Self-healing after: {error_message[:120]}", project_id=project.id)
        prompt = build_repair_prompt(project.code.script, error_message)

        try:
            text = await self.policy.run(
                lambda: self.oracle.generate(
                    prompt,
                    system_instruction=REPAIR_PROMPT,
                    schema=REPAIR_SCHEMA,
                    temperature=settings.build.repair_temperature,
                    model=self.model,
                ),
                cancel_token=cancel_token,
                label="self-healing repair",
            )
            data = parse_json_object(text)
        except BuildCancelledError:
            raise
        except NovaBuildError as e:
            log("HEAL", f"⚠️ Self-healing failed: {e}", project_id=project.id)
            return None

        script = data.get("script")
        if not isinstance(script, str) or not script.strip():
            log("HEAL", "⚠️ Self-healing returned no script", project_id=project.id)
            return None

        explanation = str(data.get("explanation") or "").strip() or AUTO_FIX_DEFAULT
        project.code = project.code.model_copy(update={"script": script})
        project.add_message(MessageRole.ASSISTANT, f"(Auto-fix: {explanation})")
        await self.checkpointer.checkpoint(project, "auto-fix applied")

        log("HEAL", "✅ Self-healing applied a fix", project_id=project.id)
        return explanation
