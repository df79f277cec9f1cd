# novabuild/core/constants.py
"""
Shared enums and constants.
"""
from enum import Enum


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ProjectStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"


class StepKind(str, Enum):
    """How a plan step is executed."""
    CODE = "code"
    SQL = "sql"


class BackendStatus(str, Enum):
    CREATING = "creating"
    ACTIVE = "active"
    FAILED = "failed"


class RequiredAction(str, Enum):
    CONNECT_DATABASE = "CONNECT_DATABASE"


class WSMessageType(str, Enum):
    """Realtime events pushed to project subscribers."""
    PLAN_UPDATED = "PLAN_UPDATED"
    STEP_STARTED = "STEP_STARTED"
    STEP_COMPLETED = "STEP_COMPLETED"
    CHUNK_UPDATED = "CHUNK_UPDATED"
    BUILD_SUCCESS = "BUILD_SUCCESS"
    BUILD_ERROR = "BUILD_ERROR"
    BUILD_FINAL_ERROR = "BUILD_FINAL_ERROR"
    BACKEND_REQUIRED = "BACKEND_REQUIRED"
    PROJECT_UPDATED = "PROJECT_UPDATED"
    USER_INPUT = "USER_INPUT"


# Plan used when the oracle's plan cannot be parsed
FALLBACK_PLAN = ["Analyze request", "Implement changes"]

AUTO_FIX_PROMPT = "The current code has an error. Please find the root cause and provide a fix."

DATABASE_REQUIRED_MESSAGE = (
    "This request needs a database. Connect a backend to continue and the build "
    "will pick up where it left off."
)
