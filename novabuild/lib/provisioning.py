# novabuild/lib/provisioning.py
"""
Managed backend provisioning.

The provisioning service creates a database-backed project asynchronously:
a request returns a descriptor in `creating`, which later turns `active`
(with connection credentials) or `failed`.
"""
import asyncio
from typing import TYPE_CHECKING, Any, Dict, Optional

import aiohttp

from novabuild.core.config import settings
from novabuild.core.constants import BackendStatus
from novabuild.core.exceptions import ProjectNotFoundError, ProvisioningError
from novabuild.core.logging import log
from novabuild.models.project import ManagedBackend, Project
from novabuild.persistence.store import ProjectStore

if TYPE_CHECKING:
    from novabuild.orchestration.cancellation import CancellationToken


class ProvisioningClient:
    """HTTP client for the provisioning service."""

    def __init__(self, base_url: Optional[str] = None, api_token: Optional[str] = None):
        self.base_url = (base_url or settings.provisioning.base_url).rstrip("/")
        self.api_token = api_token or settings.provisioning.api_token
        self.timeout = aiohttp.ClientTimeout(total=settings.provisioning.request_timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    f"{self.base_url}{path}",
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout,
                ) as response:
                    if response.status >= 300:
                        text = await response.text()
                        raise ProvisioningError(
                            f"Provisioning service error {response.status}: {text[:200]}"
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            raise ProvisioningError(f"Provisioning service unreachable: {e}")

    @staticmethod
    def _to_backend(data: Dict[str, Any], owner_id: str, project_name: str) -> ManagedBackend:
        return ManagedBackend(
            owner_id=owner_id,
            project_ref=data["project_ref"],
            project_name=data.get("project_name", project_name),
            region=data.get("region", ""),
            status=BackendStatus(data.get("status", "creating").lower()),
            api_url=data.get("api_url"),
            service_key=data.get("service_key"),
        )

    async def request_backend(self, owner_id: str, project_name: str, region: Optional[str] = None) -> ManagedBackend:
        data = await self._request("POST", "/v1/backends", {
            "owner_id": owner_id,
            "project_name": project_name,
            "region": region or settings.provisioning.default_region,
        })
        return self._to_backend(data, owner_id, project_name)

    async def get_backend(self, backend: ManagedBackend) -> ManagedBackend:
        data = await self._request("GET", f"/v1/backends/{backend.project_ref}")
        refreshed = self._to_backend(data, backend.owner_id, backend.project_name)
        refreshed.id = backend.id
        refreshed.created_at = backend.created_at
        return refreshed


class ProvisioningService:
    """Attaches a managed backend to a project and waits for it to become active."""

    def __init__(
        self,
        store: ProjectStore,
        client: Optional[ProvisioningClient] = None,
        poll_interval: Optional[float] = None,
        max_polls: Optional[int] = None,
    ):
        self.store = store
        self.client = client or ProvisioningClient()
        self.poll_interval = settings.provisioning.poll_interval if poll_interval is None else poll_interval
        self.max_polls = settings.provisioning.max_polls if max_polls is None else max_polls

    async def _load(self, project_id: str) -> Project:
        project = await self.store.load(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def provision(self, project_id: str, token: Optional["CancellationToken"] = None) -> ManagedBackend:
        """
        Request (or resume waiting for) a managed backend.

        Raises:
            ProvisioningError: If provisioning fails or never becomes active
            BuildCancelledError: If the token is cancelled between polls
        """
        project = await self._load(project_id)
        backend = project.managed_backend

        if backend is None or backend.status == BackendStatus.FAILED:
            backend = await self.client.request_backend(project.owner_id, project.name)
            project.managed_backend = backend
            project.touch()
            await self.store.save(project)
            log("PROVISION", f"Requested backend {backend.project_ref}", project_id=project_id)

        for _ in range(self.max_polls):
            if backend.is_active():
                return backend
            if backend.status == BackendStatus.FAILED:
                break
            if token is not None:
                await token.sleep(self.poll_interval)
            else:
                await asyncio.sleep(self.poll_interval)
            backend = await self.client.get_backend(backend)
            if token is not None:
                token.raise_if_cancelled()
            # Reload so concurrent writers (an active build) are not overwritten
            project = await self._load(project_id)
            project.managed_backend = backend
            project.touch()
            await self.store.save(project)

        if backend.is_active():
            return backend
        raise ProvisioningError(
            f"Backend {backend.project_ref} did not become active (status: {backend.status.value})",
            {"project_ref": backend.project_ref},
        )
