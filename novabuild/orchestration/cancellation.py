# novabuild/orchestration/cancellation.py
"""
Cooperative cancellation.

A build never gets interrupted mid-call. It polls its token before and after
every suspend point and exits through BuildCancelledError once the token is
set. Whatever was checkpointed last stays as-is.
"""
import asyncio
from typing import Optional

from novabuild.core.exceptions import BuildCancelledError


class CancellationToken:
    """Explicit cancellation handle passed through every suspend point."""

    def __init__(self, project_id: str = ""):
        self.project_id = project_id
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BuildCancelledError(self.project_id)

    async def sleep(self, delay: float) -> None:
        """Sleep for delay seconds, waking early (and raising) on cancellation."""
        if delay <= 0:
            self.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise BuildCancelledError(self.project_id)
