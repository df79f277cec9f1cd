# novabuild/orchestration/checkpoint.py
"""
Checkpoint / resume protocol.

Every BuildState mutation is followed by a full-project save before the next
suspend point: plan, indices, error, artifact and messages together. A
reloaded project therefore shows exactly the last committed transition and
can resume from last_completed_step + 1.
"""
from novabuild.core.logging import log
from novabuild.models.project import Project
from novabuild.persistence.store import ProjectStore


class BuildCheckpointer:
    def __init__(self, store: ProjectStore):
        self.store = store

    async def checkpoint(self, project: Project, event: str) -> None:
        project.touch()
        await self.store.save(project)

        state = project.build_state
        if state is not None:
            log(
                "CHECKPOINT",
                f"📸 {event}: step {state.current_step}, completed {state.last_completed_step}/{len(state.plan) - 1}",
                project_id=project.id,
            )
        else:
            log("CHECKPOINT", f"📸 {event}", project_id=project.id)


def can_resume(project: Project) -> bool:
    """A build can resume if it has a published plan with steps left."""
    state = project.build_state
    return state is not None and bool(state.plan) and not state.is_complete()

