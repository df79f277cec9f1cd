# novabuild/lib/websocket.py
"""
Project event hub.

Browsers subscribe to one project over /ws/{project_id}. Build callbacks and
store change notifications publish typed events here; every event is wrapped
in the same envelope: {"type", "projectId", "data", "timestamp"}.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from novabuild.core.constants import WSMessageType
from novabuild.core.logging import log


def event_envelope(project_id: str, event: WSMessageType, data: Optional[Dict[str, Any]] = None) -> dict:
    return {
        "type": event.value,
        "projectId": project_id,
        "data": data or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ProjectEventHub:
    def __init__(self) -> None:
        self._subscribers: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, websocket: WebSocket, project_id: str) -> None:
        await websocket.accept()
        async with self._lock:
            self._subscribers.setdefault(project_id, set()).add(websocket)
        log("WS", f"🔌 Subscriber joined ({self.subscriber_count(project_id)} total)", project_id=project_id)

    async def unsubscribe(self, websocket: WebSocket, project_id: str) -> None:
        async with self._lock:
            subscribers = self._subscribers.get(project_id)
            if subscribers is None:
                return
            subscribers.discard(websocket)
            if not subscribers:
                del self._subscribers[project_id]

    def subscriber_count(self, project_id: str) -> int:
        return len(self._subscribers.get(project_id, ()))

    def watched_projects(self) -> List[str]:
        return list(self._subscribers)

    async def publish(self, project_id: str, event: WSMessageType, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Send an event to every subscriber of a project.

        Subscribers whose socket fails are dropped. Returns the number of
        sockets that received the event.
        """
        async with self._lock:
            targets = list(self._subscribers.get(project_id, ()))
        if not targets:
            return 0

        message = event_envelope(project_id, event, data)
        dead: List[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_json(message)
            except Exception as e:
                log("WS", f"Dropping dead subscriber: {e}", project_id=project_id)
                dead.append(ws)

        for ws in dead:
            await self.unsubscribe(ws, project_id)
        return len(targets) - len(dead)
