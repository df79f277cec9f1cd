# novabuild/orchestration/retry_policy.py
"""
Call envelope: timeout plus bounded exponential-backoff retry.

Rules:
- Every oracle call runs under a timeout
- A failure or timeout waits `delay`, doubles it, and tries again
- After the last retry the caller gets MaxRetriesError wrapping the last cause
- Cancellation is never retried; it propagates immediately

This is the only place raw transport failures are absorbed. The wrapped
operation may run more than once, so callers must tolerate at-least-once
oracle invocation.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from novabuild.core.config import settings
from novabuild.core.exceptions import BuildCancelledError, MaxRetriesError, OracleTimeoutError
from novabuild.core.logging import log
from novabuild.orchestration.cancellation import CancellationToken


@dataclass
class RetryPolicy:
    """
    Retry budget for one oracle call.

    retries counts the calls made after the first one, so the default policy
    makes at most three attempts.
    """
    retries: int = 2
    initial_delay: float = 1.0
    timeout: float = 120.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            retries=settings.build.call_retries,
            initial_delay=settings.build.call_initial_delay,
            timeout=settings.build.call_timeout,
        )

    def one_shot(self) -> "RetryPolicy":
        """Same timeout, no retries."""
        return self.with_retries(0)

    def with_retries(self, retries: int) -> "RetryPolicy":
        return RetryPolicy(retries=retries, initial_delay=self.initial_delay, timeout=self.timeout)

    def get_retry_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-indexed): d, 2d, 4d..."""
        return self.initial_delay * (2 ** attempt)

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        cancel_token: Optional[CancellationToken] = None,
        label: str = "oracle call",
    ) -> Any:
        """
        Execute `operation` under this policy.

        Raises:
            BuildCancelledError: If the token is cancelled before, during a
                backoff wait, or right after a call
            MaxRetriesError: If every attempt failed
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.retries + 1):
            if cancel_token:
                cancel_token.raise_if_cancelled()

            if attempt > 0:
                log("RETRY", f"🔄 Retry {attempt}/{self.retries} for {label}")

            try:
                result = await asyncio.wait_for(operation(), timeout=self.timeout)
            except BuildCancelledError:
                raise
            except asyncio.TimeoutError:
                last_error = OracleTimeoutError(self.timeout)
            except Exception as e:
                last_error = e
            else:
                if cancel_token:
                    cancel_token.raise_if_cancelled()
                return result

            if attempt < self.retries:
                delay = self.get_retry_delay(attempt)
                log("RETRY", f"⏳ {label} failed ({last_error}), waiting {delay}s before retry")
                if cancel_token:
                    await cancel_token.sleep(delay)
                else:
                    await asyncio.sleep(delay)

        log("RETRY", f"🔒 {label} failed after {self.retries + 1} attempts: {last_error}")
        raise MaxRetriesError(
            "API call failed after multiple attempts. The service might be temporarily unavailable.",
            last_error,
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[Any]],
    retries: int = 2,
    delay: float = 1.0,
    timeout: float = 120.0,
    cancel_token: Optional[CancellationToken] = None,
    label: str = "oracle call",
) -> Any:
    """Convenience wrapper around RetryPolicy.run."""
    policy = RetryPolicy(retries=retries, initial_delay=delay, timeout=timeout)
    return await policy.run(operation, cancel_token=cancel_token, label=label)
