"""
Project event hub and websocket callback tests.
"""
import pytest

from novabuild.core.constants import WSMessageType
from novabuild.lib.websocket import ProjectEventHub
from novabuild.models.project import CodeArtifact
from novabuild.orchestration.callbacks import WebSocketBuildCallbacks


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.mark.asyncio
async def test_publish_reaches_only_project_subscribers():
    hub = ProjectEventHub()
    mine, other = FakeSocket(), FakeSocket()
    await hub.subscribe(mine, "p1")
    await hub.subscribe(other, "p2")

    delivered = await hub.publish("p1", WSMessageType.STEP_STARTED, {"step": 0})

    assert delivered == 1
    assert mine.accepted
    assert other.sent == []
    event = mine.sent[0]
    assert event["type"] == WSMessageType.STEP_STARTED.value
    assert event["projectId"] == "p1"
    assert event["data"] == {"step": 0}
    assert "timestamp" in event


@pytest.mark.asyncio
async def test_dead_subscribers_are_dropped():
    hub = ProjectEventHub()
    alive, dead = FakeSocket(), FakeSocket(broken=True)
    await hub.subscribe(alive, "p1")
    await hub.subscribe(dead, "p1")

    assert await hub.publish("p1", WSMessageType.PROJECT_UPDATED) == 1
    assert hub.subscriber_count("p1") == 1


@pytest.mark.asyncio
async def test_last_unsubscribe_forgets_project():
    hub = ProjectEventHub()
    ws = FakeSocket()
    await hub.subscribe(ws, "p1")
    await hub.unsubscribe(ws, "p1")

    assert hub.watched_projects() == []
    assert await hub.publish("p1", WSMessageType.PROJECT_UPDATED) == 0


@pytest.mark.asyncio
async def test_final_error_with_gate_becomes_backend_required():
    hub = ProjectEventHub()
    ws = FakeSocket()
    await hub.subscribe(ws, "p1")
    callbacks = WebSocketBuildCallbacks(hub)

    await callbacks.on_final_error("p1", "needs db", backend_required=True)
    await callbacks.on_success("p1", CodeArtifact(script="run();"), "done")

    assert [e["type"] for e in ws.sent] == [
        WSMessageType.BACKEND_REQUIRED.value,
        WSMessageType.BUILD_SUCCESS.value,
    ]
    assert ws.sent[1]["data"]["code"]["script"] == "run();"
