# novabuild/orchestration/intent_router.py
"""
Intent Router - decides whether a message is a code change or a chat turn.

Two independent classification calls run on the fast model at temperature 0:
- ARCHITECT / CHAT (single enum token)
- {"requiresDatabase": bool} (only asked for code changes)

Chat turns get a separate, warmer reply call and never reach the build
pipeline.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from novabuild.core.config import settings
from novabuild.core.exceptions import BuildCancelledError, MaxRetriesError, ParseError
from novabuild.core.logging import log
from novabuild.llm.adapter import Oracle
from novabuild.llm.prompts import (
    BACKEND_CLASSIFIER_PROMPT,
    BACKEND_CLASSIFIER_SCHEMA,
    CHAT_PROMPT,
    ROUTER_PROMPT,
)
from novabuild.models.project import Message
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.history import format_history
from novabuild.orchestration.retry_policy import RetryPolicy
from novabuild.utils.parser import parse_json_object

ARCHITECT_TOKEN = "ARCHITECT"
DEFAULT_CHAT_REPLY = "I'm listening..."


@dataclass
class IntentDecision:
    requires_code_change: bool
    requires_backend: bool = False
    reply: Optional[str] = None


class IntentRouter:
    def __init__(
        self,
        oracle: Oracle,
        policy: Optional[RetryPolicy] = None,
        model: Optional[str] = None,
        assume_backend_when_ambiguous: Optional[bool] = None,
    ):
        self.oracle = oracle
        self.policy = policy or RetryPolicy.from_settings()
        self.model = model or settings.llm.fast_model
        if assume_backend_when_ambiguous is None:
            assume_backend_when_ambiguous = settings.build.assume_backend_when_ambiguous
        self.assume_backend_when_ambiguous = assume_backend_when_ambiguous

    async def requires_code_change(
        self,
        message: str,
        history: Sequence[Message],
        cancel_token: Optional[CancellationToken] = None,
    ) -> bool:
        context = format_history(history, settings.build.router_history_window) or "No history."
        prompt = f'HISTORY:\n{context}\n\nUSER PROMPT: "{message}"'

        text = await self.policy.run(
            lambda: self.oracle.generate(
                prompt,
                system_instruction=ROUTER_PROMPT,
                temperature=settings.build.router_temperature,
                model=self.model,
            ),
            cancel_token=cancel_token,
            label="intent classification",
        )
        decision = (text or "").strip().strip('"').upper() == ARCHITECT_TOKEN
        log("ROUTER", f"Intent: {'ARCHITECT' if decision else 'CHAT'}")
        return decision

    async def requires_backend(
        self,
        message: str,
        history: Sequence[Message],
        cancel_token: Optional[CancellationToken] = None,
    ) -> bool:
        """
        Whether the request implies persistent storage.

        Anything other than a clean boolean answer counts as ambiguous and
        returns the configured default.
        """
        context = format_history(history, settings.build.router_history_window) or "No history."
        prompt = f'HISTORY:\n{context}\n\nUSER PROMPT: "{message}"'

        try:
            text = await self.policy.run(
                lambda: self.oracle.generate(
                    prompt,
                    system_instruction=BACKEND_CLASSIFIER_PROMPT,
                    schema=BACKEND_CLASSIFIER_SCHEMA,
                    temperature=settings.build.router_temperature,
                    model=self.model,
                ),
                cancel_token=cancel_token,
                label="backend classification",
            )
            value = parse_json_object(text).get("requiresDatabase")
        except BuildCancelledError:
            raise
        except (MaxRetriesError, ParseError) as e:
            log("ROUTER", f"Backend classification ambiguous ({e}), defaulting to {self.assume_backend_when_ambiguous}")
            return self.assume_backend_when_ambiguous

        if not isinstance(value, bool):
            log("ROUTER", f"Backend classification ambiguous ({value!r}), defaulting to {self.assume_backend_when_ambiguous}")
            return self.assume_backend_when_ambiguous
        return value

    async def chat_reply(
        self,
        message: str,
        history: Sequence[Message],
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        context = format_history(history, settings.build.chat_history_window, upper=True)
        prompt = f"CONVERSATION HISTORY:\n{context}\n\nUSER REQUEST: {message}"

        text = await self.policy.run(
            lambda: self.oracle.generate(
                prompt,
                system_instruction=CHAT_PROMPT,
                temperature=settings.build.chat_temperature,
                model=self.model,
            ),
            cancel_token=cancel_token,
            label="chat reply",
        )
        return (text or "").strip() or DEFAULT_CHAT_REPLY

    async def route(
        self,
        message: str,
        history: Sequence[Message],
        cancel_token: Optional[CancellationToken] = None,
    ) -> IntentDecision:
        """
        Classify a message.

        Raises:
            MaxRetriesError: If the intent classification itself cannot be obtained
        """
        if not await self.requires_code_change(message, history, cancel_token):
            reply = await self.chat_reply(message, history, cancel_token)
            return IntentDecision(requires_code_change=False, reply=reply)

        needs_backend = await self.requires_backend(message, history, cancel_token)
        return IntentDecision(requires_code_change=True, requires_backend=needs_backend)
