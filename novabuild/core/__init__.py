# novabuild/core/__init__.py
"""
Core module - configuration, logging, constants and exceptions.
"""
from .config import settings
from .constants import (
    MessageRole,
    ProjectStatus,
    StepKind,
    BackendStatus,
    RequiredAction,
    WSMessageType,
    FALLBACK_PLAN,
)
from .exceptions import (
    NovaBuildError,
    OracleError,
    OracleTimeoutError,
    MaxRetriesError,
    ParseError,
    DatabaseRequiredError,
    BuildCancelledError,
    StepFailedError,
    SqlExecutionError,
    ProvisioningError,
    ProjectNotFoundError,
    BuildAlreadyRunningError,
)

__all__ = [
    "settings",
    "MessageRole",
    "ProjectStatus",
    "StepKind",
    "BackendStatus",
    "RequiredAction",
    "WSMessageType",
    "FALLBACK_PLAN",
    "NovaBuildError",
    "OracleError",
    "OracleTimeoutError",
    "MaxRetriesError",
    "ParseError",
    "DatabaseRequiredError",
    "BuildCancelledError",
    "StepFailedError",
    "SqlExecutionError",
    "ProvisioningError",
    "ProjectNotFoundError",
    "BuildAlreadyRunningError",
]
