from .project import (
    BackendConnection,
    BuildState,
    CodeArtifact,
    CodeArtifactUpdate,
    ManagedBackend,
    ManualBackend,
    Message,
    PlanStep,
    Project,
)

__all__ = [
    "BackendConnection",
    "BuildState",
    "CodeArtifact",
    "CodeArtifactUpdate",
    "ManagedBackend",
    "ManualBackend",
    "Message",
    "PlanStep",
    "Project",
]
