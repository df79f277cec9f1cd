from datetime import datetime, timezone
from typing import Any, Dict, Optional
from beanie import Document, Indexed
from pydantic import Field


class ProjectRecord(Document):
    """
    MongoDB record for a project.

    The whole project is stored as one document so a save is a single
    atomic write.
    """
    project_id: Indexed(str, unique=True)
    owner_id: Indexed(str)
    deleted: bool = False
    payload: Dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    deleted_at: Optional[datetime] = None

    class Settings:
        name = "projects"
