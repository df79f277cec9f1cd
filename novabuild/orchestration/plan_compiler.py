# novabuild/orchestration/plan_compiler.py
"""
Plan Compiler - turns a request into an ordered list of tagged steps.

Plan compilation is never a hard failure point: malformed or missing oracle
output falls back to a generic two-step code plan. The only exit besides a
plan is the database-gate sentinel, raised before anything is published.
"""
from typing import Any, List, Optional, Sequence

from novabuild.core.config import settings
from novabuild.core.constants import FALLBACK_PLAN, StepKind
from novabuild.core.exceptions import BuildCancelledError, MaxRetriesError, ParseError
from novabuild.core.logging import log
from novabuild.llm.adapter import Oracle
from novabuild.llm.prompts import (
    BACKEND_CONNECTED_NOTE,
    BACKEND_MISSING_NOTE,
    PLAN_SCHEMA,
    PLANNER_PROMPT,
)
from novabuild.models.project import Message, PlanStep, Project
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.database_gate import DatabaseGate, looks_like_sql
from novabuild.orchestration.history import format_history
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.utils.parser import parse_json


def fallback_plan() -> List[PlanStep]:
    return [PlanStep(description=text, kind=StepKind.CODE) for text in FALLBACK_PLAN]


def normalize_plan(raw: Any) -> List[PlanStep]:
    """
    Accept the tagged form [{"description", "kind"}] or a flat list of strings.

    Untagged entries are classified with the keyword heuristic.

    Raises:
        ParseError: If the value is not a list of usable steps
    """
    if isinstance(raw, dict):
        raw = raw.get("plan") or raw.get("steps")
    if not isinstance(raw, list):
        raise ParseError("Plan is not a JSON array")

    steps: List[PlanStep] = []
    for item in raw:
        if isinstance(item, str):
            description, kind = item, None
        elif isinstance(item, dict):
            description = item.get("description") or item.get("step") or ""
            kind = item.get("kind")
        else:
            continue

        description = str(description).strip()
        if not description:
            continue

        if isinstance(kind, str) and kind.lower() in (StepKind.CODE.value, StepKind.SQL.value):
            step_kind = StepKind(kind.lower())
        else:
            step_kind = StepKind.SQL if looks_like_sql(description) else StepKind.CODE
        steps.append(PlanStep(description=description, kind=step_kind))

    if not steps:
        raise ParseError("Plan has no steps")
    return steps


class PlanCompiler:
    def __init__(
        self,
        oracle: Oracle,
        gate: Optional[DatabaseGate] = None,
        policy: Optional[RetryPolicy] = None,
        model: Optional[str] = None,
    ):
        self.oracle = oracle
        self.gate = gate or DatabaseGate()
        self.policy = policy or RetryPolicy.from_settings()
        self.model = model or settings.llm.fast_model

    def _build_prompt(self, request: str, history: Sequence[Message], needs_backend: Optional[bool]) -> str:
        context = format_history(history, settings.build.router_history_window)
        prompt = f'USER_REQUEST: "{request}"\n\nHISTORY:\n{context}'
        if needs_backend:
            prompt += "\n\nNOTE: This request needs persistent data storage."
        return prompt

    async def compile(
        self,
        project: Project,
        request: str,
        images: Optional[List[str]] = None,
        history: Optional[Sequence[Message]] = None,
        needs_backend: Optional[bool] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[PlanStep]:
        """
        Compile and gate a plan.

        Raises:
            DatabaseRequiredError: If the plan needs a database and none is active
            BuildCancelledError: If cancellation is observed
        """
        has_backend = project.has_active_backend()
        system_instruction = PLANNER_PROMPT.format(
            min_steps=settings.build.min_plan_steps,
            max_steps=settings.build.max_plan_steps,
            backend_note=BACKEND_CONNECTED_NOTE if has_backend else BACKEND_MISSING_NOTE,
        )
        prompt = self._build_prompt(request, history if history is not None else project.messages, needs_backend)

        try:
            text = await self.policy.run(
                lambda: self.oracle.generate(
                    prompt,
                    system_instruction=system_instruction,
                    schema=PLAN_SCHEMA,
                    images=images or None,
                    model=self.model,
                ),
                cancel_token=cancel_token,
                label="plan compilation",
            )
            plan = normalize_plan(parse_json(text))
        except BuildCancelledError:
            raise
        except (MaxRetriesError, ParseError) as e:
            log("PLANNER", f"⚠️ Plan unavailable ({e}), using fallback plan", project_id=project.id)
            plan = fallback_plan()

        if len(plan) > settings.build.max_plan_steps:
            log("PLANNER", f"Trimming plan from {len(plan)} to {settings.build.max_plan_steps} steps", project_id=project.id)
            plan = plan[:settings.build.max_plan_steps]

        # Must run before the plan reaches any caller
        self.gate.check(plan, project)

        log("PLANNER", f"📋 Plan compiled: {len(plan)} steps", project_id=project.id)
        return plan
