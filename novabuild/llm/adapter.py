# novabuild/llm/adapter.py
"""
Unified oracle adapter - single interface for all providers.

SINGLE EXECUTION: the adapter never retries. Timeouts and retries belong to
the call envelope (novabuild.orchestration.retry_policy) so every caller
sees the same policy.
"""
from typing import Any, Dict, List, Optional, Protocol

from novabuild.core.config import settings
from novabuild.core.exceptions import OracleError
from novabuild.core.logging import log
from novabuild.utils.parser import parse_json


class Oracle(Protocol):
    """The narrow contract the build engine depends on."""

    async def generate(
        self,
        prompt: str,
        system_instruction: str = "",
        schema: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        images: Optional[List[str]] = None,
        model: Optional[str] = None,
    ) -> str:
        ...


class LLMAdapter:
    """
    Unified adapter for LLM providers.

    Handles:
    - Provider selection
    - Constrained (schema) and free-text output
    - Wrapping provider failures in OracleError
    """

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None):
        self.provider = provider or settings.llm.default_provider
        self.default_model = model or settings.llm.fast_model

    async def generate(
        self,
        prompt: str,
        system_instruction: str = "",
        schema: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        images: Optional[List[str]] = None,
        model: Optional[str] = None,
    ) -> str:
        """
        Call the configured provider once.

        Args:
            prompt: The user prompt
            system_instruction: System instructions
            schema: JSON schema for constrained output; None for free text
            temperature: Sampling temperature (provider default 0.7)
            images: Base64 data URLs attached to the prompt
            model: Model override

        Returns:
            The raw response text

        Raises:
            OracleError: If the provider fails
        """
        from .providers import gemini, openai

        provider_map = {
            "gemini": gemini.call,
            "openai": openai.call,
        }

        if self.provider not in provider_map:
            raise OracleError(self.provider, f"Unknown provider: {self.provider}")

        call_func = provider_map[self.provider]
        model = model or self.default_model

        try:
            result = await call_func(
                prompt=prompt,
                system_prompt=system_instruction,
                model=model,
                temperature=0.7 if temperature is None else temperature,
                max_tokens=settings.llm.max_tokens,
                response_schema=schema,
                images=images,
            )
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(self.provider, f"Transport error: {e}")

        usage = result.get("usage", {})
        log("ORACLE", f"{model}: {usage.get('input', 0)} in / {usage.get('output', 0)} out tokens")
        return result.get("text", "")


async def generate_json(
    oracle: Oracle,
    prompt: str,
    system_instruction: str = "",
    schema: Optional[Dict[str, Any]] = None,
    temperature: Optional[float] = None,
    images: Optional[List[str]] = None,
    model: Optional[str] = None,
) -> Any:
    """
    Call the oracle in constrained mode and parse the result.

    Raises:
        OracleError: If the provider fails
        ParseError: If the response is not valid JSON
    """
    text = await oracle.generate(
        prompt,
        system_instruction=system_instruction,
        schema=schema,
        temperature=temperature,
        images=images,
        model=model,
    )
    return parse_json(text)
