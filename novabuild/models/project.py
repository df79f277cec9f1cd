# novabuild/models/project.py
"""
Project domain models.

These are plain pydantic models so the build engine can work against any
store. The MongoDB record lives in novabuild.models.record.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from novabuild.core.constants import (
    BackendStatus,
    MessageRole,
    ProjectStatus,
    RequiredAction,
    StepKind,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class CodeArtifact(BaseModel):
    """The generated application. Every field may be empty."""
    html: str = ""
    script: str = ""
    stylesheet: str = ""
    explanation: str = ""

    def merged_with(self, update: "CodeArtifactUpdate") -> "CodeArtifact":
        """Replace every field the update carries; keep the rest."""
        data = self.model_dump()
        data.update(update.model_dump(exclude_none=True))
        return CodeArtifact(**data)


class CodeArtifactUpdate(BaseModel):
    """A code step result. Missing fields leave the artifact untouched."""
    html: Optional[str] = None
    script: str
    stylesheet: Optional[str] = None
    explanation: str = ""


class Message(BaseModel):
    id: str = Field(default_factory=_new_id)
    role: MessageRole
    content: str
    images: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    requires_action: Optional[RequiredAction] = None


class PlanStep(BaseModel):
    description: str
    kind: StepKind = StepKind.CODE


class BuildState(BaseModel):
    """
    Checkpointed progress of one build.

    current_step is the step in flight (or about to start);
    last_completed_step is -1 until the first step is applied.
    """
    plan: List[PlanStep] = Field(default_factory=list)
    current_step: int = 0
    last_completed_step: int = -1
    error: Optional[str] = None

    @property
    def descriptions(self) -> List[str]:
        return [step.description for step in self.plan]

    @property
    def resume_index(self) -> int:
        return self.last_completed_step + 1

    def is_complete(self) -> bool:
        return bool(self.plan) and self.last_completed_step >= len(self.plan) - 1

    def mark_completed(self, index: int) -> None:
        # Never moves backwards and never past the end of the plan
        upper = len(self.plan) - 1
        self.last_completed_step = max(self.last_completed_step, min(index, upper))


class ManagedBackend(BaseModel):
    """A database backend created by the provisioning service."""
    id: str = Field(default_factory=_new_id)
    owner_id: str
    project_ref: str
    project_name: str
    region: str = ""
    status: BackendStatus = BackendStatus.CREATING
    api_url: Optional[str] = None
    service_key: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)

    def is_active(self) -> bool:
        return self.status == BackendStatus.ACTIVE and bool(self.api_url and self.service_key)


class ManualBackend(BaseModel):
    """Connection details supplied by the user."""
    url: str
    key: str


class BackendConnection(BaseModel):
    """What generated code and SQL steps need to reach the database."""
    url: str
    key: str


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner_id: str
    name: str = "New Project"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    deleted_at: Optional[datetime] = None
    code: CodeArtifact = Field(default_factory=CodeArtifact)
    messages: List[Message] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.IDLE
    build_state: Optional[BuildState] = None
    manual_backend: Optional[ManualBackend] = None
    managed_backend: Optional[ManagedBackend] = None

    def add_message(
        self,
        role: MessageRole,
        content: str,
        images: Optional[List[str]] = None,
        requires_action: Optional[RequiredAction] = None,
    ) -> Message:
        message = Message(
            role=role,
            content=content,
            images=list(images or []),
            requires_action=requires_action,
        )
        self.messages.append(message)
        return message

    def last_user_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER:
                return message
        return None

    def active_connection(self) -> Optional[BackendConnection]:
        if self.manual_backend and self.manual_backend.url and self.manual_backend.key:
            return BackendConnection(url=self.manual_backend.url, key=self.manual_backend.key)
        if self.managed_backend and self.managed_backend.is_active():
            return BackendConnection(
                url=self.managed_backend.api_url,
                key=self.managed_backend.service_key,
            )
        return None

    def has_active_backend(self) -> bool:
        return self.active_connection() is not None

    def touch(self) -> None:
        self.updated_at = _now()
