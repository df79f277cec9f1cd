# novabuild/orchestration/database_gate.py
"""
Database Gate - halts a build whose plan needs a database that isn't there.

The gate runs on the compiled plan BEFORE it is published, so a user never
sees database-only steps they cannot act on. A halt is a sentinel, not a
failure: the build state is cleared, a CONNECT_DATABASE message is recorded
and the caller redirects to provisioning.
"""
from typing import FrozenSet, Iterable, List, Optional

from novabuild.core.config import settings
from novabuild.core.constants import (
    DATABASE_REQUIRED_MESSAGE,
    BackendStatus,
    MessageRole,
    ProjectStatus,
    RequiredAction,
    StepKind,
)
from novabuild.core.exceptions import DatabaseRequiredError
from novabuild.core.logging import log
from novabuild.models.project import BackendConnection, PlanStep, Project


def looks_like_sql(description: str, keywords: Optional[FrozenSet[str]] = None) -> bool:
    """
    Keyword heuristic for steps the oracle did not tag.

    Substring match on the lowercased text, so "tables" and "PostgreSQL"
    count. Known to misclassify (e.g. "Add user authentication" is not
    flagged, "Add tables of contents" and "Create header" are). Tagged steps
    never go through it.
    """
    keywords = keywords if keywords is not None else settings.build.sql_keywords
    text = description.strip().lower()
    if text.startswith("create "):
        return True
    return any(keyword in text for keyword in keywords)


class DatabaseGate:
    def requires_database(self, plan: Iterable[PlanStep]) -> bool:
        return any(step.kind == StepKind.SQL for step in plan)

    def check(self, plan: List[PlanStep], project: Project) -> None:
        """
        Raises:
            DatabaseRequiredError: If any step is a SQL step and no backend is active
        """
        if not self.requires_database(plan) or project.has_active_backend():
            return
        sql_steps = [step.description for step in plan if step.kind == StepKind.SQL]
        log("GATE", f"⛔ Plan needs a database ({len(sql_steps)} SQL steps), none active", project_id=project.id)
        raise DatabaseRequiredError(sql_steps)

    def connection_for_step(self, project: Project) -> Optional[BackendConnection]:
        """Re-checked at execution time; connections can drop mid-build."""
        return project.active_connection()

    def halt(self, project: Project) -> str:
        """
        Apply a gate halt to the project in memory.

        BuildState is cleared before the redirect message is recorded, and
        only the redirect text is recorded. Returns the message text.
        """
        project.build_state = None
        project.status = ProjectStatus.IDLE

        backend = project.managed_backend
        if backend is not None and backend.status == BackendStatus.CREATING:
            content = "Your database is still being created. The build will continue once it is ready."
        else:
            content = DATABASE_REQUIRED_MESSAGE

        project.add_message(
            MessageRole.SYSTEM,
            content,
            requires_action=RequiredAction.CONNECT_DATABASE,
        )
        return content
