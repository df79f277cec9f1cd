# novabuild/core/exceptions.py
"""
Custom exceptions for the application.
"""
from typing import Optional, Dict, Any


class NovaBuildError(Exception):
    """Base exception for all NovaBuild errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class OracleError(NovaBuildError):
    """A single oracle (LLM provider) call failed."""
    def __init__(self, provider: str, message: str):
        super().__init__(
            f"Oracle error ({provider}): {message}",
            {"provider": provider}
        )
        self.provider = provider


class OracleTimeoutError(NovaBuildError):
    """An oracle call exceeded its timeout."""
    def __init__(self, timeout: float):
        super().__init__(f"Oracle call timed out after {timeout}s", {"timeout": timeout})
        self.timeout = timeout


class MaxRetriesError(NovaBuildError):
    """The call envelope exhausted its retry budget."""
    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message, {"cause": str(original_error) if original_error else None})
        self.original_error = original_error


class ParseError(NovaBuildError):
    """Malformed JSON returned by the oracle."""
    pass


class DatabaseRequiredError(NovaBuildError):
    """
    Sentinel: the plan needs a backend database that is not connected.

    Not a failure. Callers redirect to provisioning instead of reporting it.
    """
    def __init__(self, steps: Optional[list] = None):
        super().__init__(
            "A connected database is required to build this request",
            {"steps": steps or []}
        )
        self.steps = steps or []


class BuildCancelledError(NovaBuildError):
    """The build observed a cancellation request."""
    def __init__(self, project_id: str = ""):
        super().__init__("Build cancelled by user", {"project_id": project_id})
        self.project_id = project_id


class StepFailedError(NovaBuildError):
    """A code step used up all of its attempts."""
    def __init__(self, step_index: int, description: str, cause: Optional[str] = None):
        super().__init__(
            f'Failed to execute step "{description}" after multiple retries.',
            {"step_index": step_index, "cause": cause}
        )
        self.step_index = step_index
        self.description = description
        self.cause = cause


class SqlExecutionError(NovaBuildError):
    """SQL could not be executed against the project's backend."""
    pass


class ProvisioningError(NovaBuildError):
    """Managed backend provisioning failed."""
    pass


class ProjectNotFoundError(NovaBuildError):
    """No project with the given id exists in the store."""
    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}", {"project_id": project_id})
        self.project_id = project_id


class BuildAlreadyRunningError(NovaBuildError):
    """A build is already active for the project."""
    def __init__(self, project_id: str):
        super().__init__(f"A build is already running for {project_id}", {"project_id": project_id})
        self.project_id = project_id
