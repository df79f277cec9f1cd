# novabuild/orchestration/__init__.py
"""
Build orchestration engine.

Intent Router -> Plan Compiler -> Database Gate -> Step Executor loop,
with self-healing between failed code attempts and a checkpoint after every
transition.

Usage:
    from novabuild.orchestration import BuildEngine, BuildSupervisor

    engine = BuildEngine(oracle, store, sql_runner=RestSqlRunner())
    supervisor = BuildSupervisor()
    job = await supervisor.start(
        project_id,
        lambda token: engine.run(project_id, prompt, cancel_token=token),
    )
    outcome = await job.task
"""

from .build_engine import BuildEngine, BuildOutcome
from .callbacks import BuildCallbacks, WebSocketBuildCallbacks
from .cancellation import CancellationToken
from .checkpoint import BuildCheckpointer, can_resume
from .database_gate import DatabaseGate, looks_like_sql
from .intent_router import IntentDecision, IntentRouter
from .plan_compiler import PlanCompiler, fallback_plan, normalize_plan
from .retry_policy import RetryPolicy, call_with_retry
from .self_healing import SelfHealingRepair
from .service import BuildService
from .step_executor import StepExecutor
from .supervisor import BuildJob, BuildSupervisor

__all__ = [
    "BuildEngine",
    "BuildOutcome",
    "BuildCallbacks",
    "WebSocketBuildCallbacks",
    "CancellationToken",
    "BuildCheckpointer",
    "can_resume",
    "DatabaseGate",
    "looks_like_sql",
    "IntentDecision",
    "IntentRouter",
    "PlanCompiler",
    "fallback_plan",
    "normalize_plan",
    "RetryPolicy",
    "call_with_retry",
    "SelfHealingRepair",
    "BuildService",
    "StepExecutor",
    "BuildJob",
    "BuildSupervisor",
]
