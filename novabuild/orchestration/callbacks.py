# novabuild/orchestration/callbacks.py
"""
Build callbacks - the event surface the engine offers to callers.

BuildCallbacks is a no-op base; WebSocketBuildCallbacks pushes every event
to the project's websocket subscribers.
"""
from typing import Any, Dict, List

from novabuild.core.constants import WSMessageType
from novabuild.models.project import CodeArtifact
from novabuild.lib.websocket import ProjectEventHub


class BuildCallbacks:
    async def on_plan_update(self, project_id: str, plan: List[str]) -> None:
        pass

    async def on_step_start(self, project_id: str, step_index: int) -> None:
        pass

    async def on_step_complete(self, project_id: str, step_index: int) -> None:
        pass

    async def on_chunk_complete(self, project_id: str, code: CodeArtifact, explanation: str) -> None:
        pass

    async def on_success(self, project_id: str, code: CodeArtifact, explanation: str) -> None:
        pass

    async def on_error(self, project_id: str, error: str, retries_left: int) -> None:
        pass

    async def on_final_error(self, project_id: str, error: str, backend_required: bool = False) -> None:
        pass


class WebSocketBuildCallbacks(BuildCallbacks):
    def __init__(self, hub: ProjectEventHub):
        self.hub = hub

    async def _send(self, project_id: str, event: WSMessageType, data: Dict[str, Any]) -> None:
        await self.hub.publish(project_id, event, data)

    async def on_plan_update(self, project_id: str, plan: List[str]) -> None:
        await self._send(project_id, WSMessageType.PLAN_UPDATED, {"plan": plan})

    async def on_step_start(self, project_id: str, step_index: int) -> None:
        await self._send(project_id, WSMessageType.STEP_STARTED, {"step": step_index})

    async def on_step_complete(self, project_id: str, step_index: int) -> None:
        await self._send(project_id, WSMessageType.STEP_COMPLETED, {"step": step_index})

    async def on_chunk_complete(self, project_id: str, code: CodeArtifact, explanation: str) -> None:
        await self._send(project_id, WSMessageType.CHUNK_UPDATED, {
            "code": code.model_dump(),
            "explanation": explanation,
        })

    async def on_success(self, project_id: str, code: CodeArtifact, explanation: str) -> None:
        await self._send(project_id, WSMessageType.BUILD_SUCCESS, {
            "code": code.model_dump(),
            "explanation": explanation,
        })

    async def on_error(self, project_id: str, error: str, retries_left: int) -> None:
        await self._send(project_id, WSMessageType.BUILD_ERROR, {
            "error": error,
            "retriesLeft": retries_left,
        })

    async def on_final_error(self, project_id: str, error: str, backend_required: bool = False) -> None:
        event = WSMessageType.BACKEND_REQUIRED if backend_required else WSMessageType.BUILD_FINAL_ERROR
        await self._send(project_id, event, {"error": error, "backendRequired": backend_required})
