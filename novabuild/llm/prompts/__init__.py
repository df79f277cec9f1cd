"""
Oracle prompts - organized by role.
"""
from .router import (
    ROUTER_PROMPT,
    BACKEND_CLASSIFIER_PROMPT,
    BACKEND_CLASSIFIER_SCHEMA,
    CHAT_PROMPT,
    TITLE_PROMPT,
    SUGGESTION_PROMPT,
    SUGGESTION_SCHEMA,
)
from .architect import (
    PLANNER_PROMPT,
    PLAN_SCHEMA,
    BACKEND_CONNECTED_NOTE,
    BACKEND_MISSING_NOTE,
    BUILDER_PROMPT,
    CODE_STEP_SCHEMA,
    SQL_PROMPT,
    SQL_STEP_SCHEMA,
    REPAIR_PROMPT,
    REPAIR_SCHEMA,
)

__all__ = [
    "ROUTER_PROMPT", "BACKEND_CLASSIFIER_PROMPT", "BACKEND_CLASSIFIER_SCHEMA",
    "CHAT_PROMPT", "TITLE_PROMPT", "SUGGESTION_PROMPT", "SUGGESTION_SCHEMA",
    "PLANNER_PROMPT", "PLAN_SCHEMA", "BACKEND_CONNECTED_NOTE", "BACKEND_MISSING_NOTE",
    "BUILDER_PROMPT", "CODE_STEP_SCHEMA", "SQL_PROMPT", "SQL_STEP_SCHEMA",
    "REPAIR_PROMPT", "REPAIR_SCHEMA",
]
