# novabuild/orchestration/supervisor.py
"""
Build supervisor - owns every running build task.

One active job per project id. Starting a build for a project that already
has one signals the old job's token and waits for its cooperative exit
before the new task is created, so only one job ever mutates a project.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from novabuild.core.exceptions import BuildAlreadyRunningError
from novabuild.core.logging import log
from novabuild.orchestration.cancellation import CancellationToken

JobFactory = Callable[[CancellationToken], Awaitable[Any]]


@dataclass
class BuildJob:
    project_id: str
    token: CancellationToken
    task: "asyncio.Task[Any]"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_running(self) -> bool:
        return not self.task.done()


class BuildSupervisor:
    def __init__(self) -> None:
        self._jobs: Dict[str, BuildJob] = {}
        # Per project, so pre-empting one project never delays another
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, project_id: str) -> Optional[BuildJob]:
        return self._jobs.get(project_id)

    def is_running(self, project_id: str) -> bool:
        job = self._jobs.get(project_id)
        return job is not None and job.is_running()

    def running_projects(self) -> List[str]:
        return [pid for pid, job in self._jobs.items() if job.is_running()]

    async def start(self, project_id: str, factory: JobFactory, preempt: bool = True) -> BuildJob:
        """
        Start a supervised job for a project.

        Args:
            project_id: The project the job mutates
            factory: Called with the job's token, returns the coroutine to run
            preempt: Cancel and await an existing job instead of refusing

        Raises:
            BuildAlreadyRunningError: If a job is running and preempt is False
        """
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        async with lock:
            existing = self._jobs.get(project_id)
            if existing is not None and existing.is_running():
                if not preempt:
                    raise BuildAlreadyRunningError(project_id)
                log("SUPERVISOR", "⏹️ Pre-empting running build", project_id=project_id)
                existing.token.cancel("superseded")
                await asyncio.gather(existing.task, return_exceptions=True)

            token = CancellationToken(project_id)
            task = asyncio.create_task(factory(token), name=f"build-{project_id}")
            job = BuildJob(project_id=project_id, token=token, task=task)
            self._jobs[project_id] = job
            task.add_done_callback(lambda t: self._on_done(job))

        log("SUPERVISOR", "▶️ Build job started", project_id=project_id)
        return job

    def _on_done(self, job: BuildJob) -> None:
        if self._jobs.get(job.project_id) is job:
            del self._jobs[job.project_id]

        if job.task.cancelled():
            log("SUPERVISOR", "Build task was cancelled", project_id=job.project_id)
            return
        error = job.task.exception()
        if error is not None:
            log("SUPERVISOR", f"❌ Build job crashed: {error!r}", project_id=job.project_id)

    def cancel(self, project_id: str) -> bool:
        """Signal cancellation. Returns False if no job is running."""
        job = self._jobs.get(project_id)
        if job is None or not job.is_running():
            return False
        job.token.cancel("user")
        log("SUPERVISOR", "🛑 Cancellation requested", project_id=project_id)
        return True

    async def wait(self, project_id: str) -> Any:
        """Await the project's job; returns its result or None if there is none."""
        job = self._jobs.get(project_id)
        if job is None:
            return None
        return await job.task

    async def stop(self, project_id: str) -> bool:
        """Cancel the project's job and wait for it to exit."""
        job = self._jobs.get(project_id)
        if not self.cancel(project_id):
            return False
        await asyncio.gather(job.task, return_exceptions=True)
        return True

    async def shutdown(self) -> None:
        jobs = list(self._jobs.values())
        for job in jobs:
            job.token.cancel("shutdown")
        if jobs:
            log("SUPERVISOR", f"Waiting for {len(jobs)} build(s) to stop")
            await asyncio.gather(*(job.task for job in jobs), return_exceptions=True)
