# novabuild/main.py
"""
NovaBuild Backend - build orchestration service.
"""
import uvicorn
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from starlette.middleware.cors import CORSMiddleware

# Rate limiting
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from novabuild import __version__, db
from novabuild.core.config import settings
from novabuild.core.constants import WSMessageType
from novabuild.core.exceptions import NovaBuildError
from novabuild.core.logging import log
from novabuild.lib.provisioning import ProvisioningService
from novabuild.lib.sql_runner import RestSqlRunner
from novabuild.lib.websocket import ProjectEventHub
from novabuild.llm.adapter import LLMAdapter, Oracle
from novabuild.models.project import Project
from novabuild.orchestration.callbacks import WebSocketBuildCallbacks
from novabuild.orchestration.service import BuildService
from novabuild.orchestration.supervisor import BuildSupervisor
from novabuild.persistence.store import ProjectStore, create_store

# Print environment status
print("🔑 Environment check:")
print(f"  GEMINI_API_KEY loaded: {bool(settings.llm.gemini_api_key)}")
print(f"  OPENAI_API_KEY loaded: {bool(settings.llm.openai_api_key)}")
print(f"  Default provider: {settings.llm.default_provider}")
print(f"  Project store: {settings.store.backend}")

# Project event hub instance
hub = ProjectEventHub()


def build_service(
    store: ProjectStore,
    oracle: Optional[Oracle] = None,
    event_hub: Optional[ProjectEventHub] = None,
) -> BuildService:
    """Wire the build service and push store changes to websocket subscribers."""
    event_hub = event_hub or hub

    async def publish_change(project: Project) -> None:
        await event_hub.publish(project.id, WSMessageType.PROJECT_UPDATED, {
            "status": project.status.value,
            "updatedAt": project.updated_at.isoformat(),
        })

    if hasattr(store, "subscribe"):
        store.subscribe(publish_change)

    return BuildService(
        store,
        oracle or LLMAdapter(),
        supervisor=BuildSupervisor(),
        callbacks=WebSocketBuildCallbacks(event_hub),
        sql_runner=RestSqlRunner(),
        provisioning=ProvisioningService(store),
    )


# ---------------------------------------------------------------------------
# LIFESPAN
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    print("🚀 NovaBuild starting...")

    if not hasattr(app.state, "service"):
        backend = settings.store.backend
        if backend == "mongo" and not await db.connect_db():
            print("⚠️ [DB] Falling back to the in-memory project store")
            backend = "memory"
        app.state.service = build_service(create_store(backend))
    app.state.supervisor = app.state.service.supervisor

    yield

    print("🔌 Shutting down...")
    await app.state.service.supervisor.shutdown()

    await db.disconnect_db()


# ---------------------------------------------------------------------------
# APP INITIALIZATION
# ---------------------------------------------------------------------------

app = FastAPI(
    title="NovaBuild",
    version=__version__,
    lifespan=lifespan,
)
app.state.hub = hub

# CORS - set CORS_ORIGINS to a comma-separated list in production
cors_origins = settings.cors_origins.split(",") if settings.cors_origins != "*" else ["*"]

if cors_origins == ["*"] and not settings.debug:
    print("⚠️ [CORS] Warning: Using allow_origins=['*'] - consider setting CORS_ORIGINS in production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate Limiting - configure via RATE_LIMIT env var (e.g., "50/minute")
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
print(f"🛡️ [SECURITY] Rate limiting enabled: {settings.rate_limit}")


# ---------------------------------------------------------------------------
# WEBSOCKET
# ---------------------------------------------------------------------------

@app.websocket("/ws/{project_id}")
async def websocket_endpoint(websocket: WebSocket, project_id: str):
    await hub.subscribe(websocket, project_id)
    try:
        while True:
            data = await websocket.receive_json()

            if data.get("type") == WSMessageType.USER_INPUT.value:
                msg_project_id = data.get("projectId")
                message = data.get("message")

                if msg_project_id == project_id and message:
                    log("WS", f'Received input: "{message[:50]}"', project_id=project_id)
                    try:
                        await app.state.service.handle_user_message(project_id, message, data.get("images"))
                    except NovaBuildError as e:
                        await hub.publish(project_id, WSMessageType.BUILD_FINAL_ERROR, {"error": e.message})

    except WebSocketDisconnect:
        await hub.unsubscribe(websocket, project_id)
    except Exception as e:
        log("WS", f"Error: {e}", project_id=project_id)
        await hub.unsubscribe(websocket, project_id)


# ---------------------------------------------------------------------------
# API ROUTES
# ---------------------------------------------------------------------------

from novabuild.api import health, projects  # noqa: E402

app.include_router(health.router)
app.include_router(projects.router)


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run("novabuild.main:app", host="0.0.0.0", port=settings.port, reload=settings.debug)
