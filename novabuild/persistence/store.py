# novabuild/persistence/store.py
"""
Durable project store.

The build engine checkpoints the whole Project through `save` after every
state transition. Both implementations copy on the way in and out, so a
caller mutating its Project after a save never changes what was persisted.
"""
import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from novabuild.core.logging import log
from novabuild.models.project import Project

ChangeListener = Callable[[Project], Awaitable[None]]


class ProjectStore(Protocol):
    """Strongly consistent per project id."""

    async def save(self, project: Project) -> None:
        ...

    async def load(self, project_id: str) -> Optional[Project]:
        ...

    async def list_for_owner(self, owner_id: str, include_deleted: bool = False) -> List[Project]:
        ...

    async def delete(self, project_id: str) -> bool:
        ...


class InMemoryProjectStore:
    """
    Process-local store used in tests and with PROJECT_STORE=memory.

    Listeners receive a copy of every saved project, standing in for the
    realtime change feed of the durable store.
    """

    def __init__(self):
        self._projects: Dict[str, Project] = {}
        self._listeners: List[ChangeListener] = []
        self._lock = asyncio.Lock()
        self.save_count = 0

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def save(self, project: Project) -> None:
        snapshot = project.model_copy(deep=True)
        async with self._lock:
            self._projects[project.id] = snapshot
            self.save_count += 1
        for listener in self._listeners:
            await listener(snapshot.model_copy(deep=True))

    async def load(self, project_id: str) -> Optional[Project]:
        async with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy(deep=True) if project else None

    async def list_for_owner(self, owner_id: str, include_deleted: bool = False) -> List[Project]:
        async with self._lock:
            projects = [
                p.model_copy(deep=True) for p in self._projects.values()
                if p.owner_id == owner_id and (include_deleted or p.deleted_at is None)
            ]
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    async def delete(self, project_id: str) -> bool:
        async with self._lock:
            return self._projects.pop(project_id, None) is not None


class MongoProjectStore:
    """Beanie-backed store. Requires connect_db() to have initialised Beanie."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def save(self, project: Project) -> None:
        from novabuild.models.record import ProjectRecord

        payload = project.model_dump(mode="json")
        record = await ProjectRecord.find_one(ProjectRecord.project_id == project.id)
        if record is None:
            record = ProjectRecord(project_id=project.id, owner_id=project.owner_id)
        record.owner_id = project.owner_id
        record.payload = payload
        record.deleted = project.deleted_at is not None
        record.deleted_at = project.deleted_at
        record.last_updated = datetime.now(timezone.utc)
        await record.save()
        log("STORE", f"Saved project ({len(project.messages)} messages)", project_id=project.id)

        for listener in self._listeners:
            await listener(project.model_copy(deep=True))

    async def load(self, project_id: str) -> Optional[Project]:
        from novabuild.models.record import ProjectRecord

        record = await ProjectRecord.find_one(ProjectRecord.project_id == project_id)
        if record is None:
            return None
        return Project.model_validate(record.payload)

    async def list_for_owner(self, owner_id: str, include_deleted: bool = False) -> List[Project]:
        from novabuild.models.record import ProjectRecord

        query = ProjectRecord.find(ProjectRecord.owner_id == owner_id)
        if not include_deleted:
            query = query.find(ProjectRecord.deleted == False)  # noqa: E712
        records = await query.sort(-ProjectRecord.last_updated).to_list()
        return [Project.model_validate(r.payload) for r in records]

    async def delete(self, project_id: str) -> bool:
        from novabuild.models.record import ProjectRecord

        record = await ProjectRecord.find_one(ProjectRecord.project_id == project_id)
        if record is None:
            return False
        await record.delete()
        return True


def create_store(backend: str) -> ProjectStore:
    if backend == "memory":
        return InMemoryProjectStore()
    return MongoProjectStore()
