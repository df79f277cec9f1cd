# novabuild/api/projects.py
"""
Project and build routes.

Builds are never run inside a request. Routes hand them to the
BuildService, which starts a supervised job and returns at once; progress
arrives over the project's websocket.
"""
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from novabuild.core.exceptions import (
    MaxRetriesError,
    NovaBuildError,
    ProjectNotFoundError,
    ProvisioningError,
)
from novabuild.models.project import Project
from novabuild.orchestration.service import MODE_ARCHITECT, BuildService


router = APIRouter(prefix="/api/projects", tags=["Projects"])


class CreateProjectRequest(BaseModel):
    owner_id: str
    prompt: str
    images: List[str] = Field(default_factory=list)


class SendMessageRequest(BaseModel):
    content: str
    images: List[str] = Field(default_factory=list)


class ManualBackendRequest(BaseModel):
    url: str
    key: str


def _service(request: Request) -> BuildService:
    return request.app.state.service


def _to_http(e: NovaBuildError) -> HTTPException:
    if isinstance(e, ProjectNotFoundError):
        return HTTPException(status_code=404, detail="Project not found")
    if isinstance(e, MaxRetriesError):
        return HTTPException(status_code=502, detail=e.message)
    if isinstance(e, ProvisioningError):
        return HTTPException(status_code=503, detail=e.message)
    return HTTPException(status_code=400, detail=e.message)


def _project_body(request: Request, project: Project) -> dict:
    body = project.model_dump(mode="json")
    body["isBuilding"] = _service(request).supervisor.is_running(project.id)
    return body


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(request: Request, data: CreateProjectRequest):
    """Create a project from its first prompt and route that prompt."""
    try:
        project, mode = await _service(request).create_project(data.owner_id, data.prompt, data.images)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"mode": mode, "project": _project_body(request, project)}


@router.get("")
async def list_projects(request: Request, owner_id: str, include_deleted: bool = False):
    projects = await _service(request).list_projects(owner_id, include_deleted=include_deleted)
    return [_project_body(request, p) for p in projects]


@router.get("/{project_id}")
async def get_project(request: Request, project_id: str):
    try:
        project = await _service(request).get_project(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return _project_body(request, project)


@router.post("/{project_id}/messages")
async def send_message(request: Request, project_id: str, data: SendMessageRequest):
    """
    Send a user message.

    Chat replies are appended before the response returns. Code changes
    start a build and answer 202.
    """
    service = _service(request)
    try:
        mode = await service.handle_user_message(project_id, data.content, data.images)
        project = await service.get_project(project_id)
    except NovaBuildError as e:
        raise _to_http(e)

    if mode == MODE_ARCHITECT:
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"mode": mode, "projectId": project_id})
    return {"mode": mode, "project": _project_body(request, project)}


@router.post("/{project_id}/stop")
async def stop_build(request: Request, project_id: str):
    try:
        project = await _service(request).stop(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return _project_body(request, project)


@router.post("/{project_id}/retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_build(request: Request, project_id: str):
    try:
        await _service(request).retry(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"mode": MODE_ARCHITECT, "projectId": project_id}


@router.post("/{project_id}/resume", status_code=status.HTTP_202_ACCEPTED)
async def resume_build(request: Request, project_id: str):
    """Continue a stopped build from its last completed step."""
    try:
        await _service(request).resume(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"mode": MODE_ARCHITECT, "projectId": project_id}


@router.post("/{project_id}/autofix", status_code=status.HTTP_202_ACCEPTED)
async def autofix(request: Request, project_id: str):
    try:
        mode = await _service(request).autofix(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"mode": mode, "projectId": project_id}


@router.get("/{project_id}/suggestions")
async def suggestions(request: Request, project_id: str):
    try:
        items = await _service(request).suggestions(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"suggestions": items}


@router.put("/{project_id}/backend")
async def set_manual_backend(request: Request, project_id: str, data: ManualBackendRequest):
    """Attach user-supplied database credentials; resumes a gated build."""
    try:
        project = await _service(request).set_manual_backend(project_id, data.url, data.key)
    except NovaBuildError as e:
        raise _to_http(e)
    return _project_body(request, project)


@router.post("/{project_id}/backend/provision", status_code=status.HTTP_202_ACCEPTED)
async def provision_backend(request: Request, project_id: str):
    try:
        await _service(request).provision_backend(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return {"projectId": project_id, "provisioning": True}


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(request: Request, project_id: str, hard: Optional[bool] = False):
    """Move a project to the trash, or remove it for good with ?hard=true."""
    try:
        await _service(request).delete_project(project_id, hard=bool(hard))
    except NovaBuildError as e:
        raise _to_http(e)


@router.post("/{project_id}/restore")
async def restore_project(request: Request, project_id: str):
    try:
        project = await _service(request).restore_project(project_id)
    except NovaBuildError as e:
        raise _to_http(e)
    return _project_body(request, project)
