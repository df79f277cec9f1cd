# novabuild/llm/providers/openai.py
"""
OpenAI chat-completions provider.
"""
import aiohttp
from typing import Any, Dict, List, Optional
from novabuild.core.config import settings
from novabuild.core.exceptions import OracleError


PROVIDER = "openai"
DEFAULT_MODEL = "gpt-4o-mini"
API_URL = "https://api.openai.com/v1/chat/completions"


def build_request(
    prompt: str,
    system_prompt: str = "",
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 8000,
    response_schema: Optional[Dict[str, Any]] = None,
    images: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build a chat-completions payload.

    json_object mode takes no schema, so the schema travels in the system
    message. It also only accepts objects; array schemas rely on the prompt.
    """
    if response_schema is not None:
        system_prompt = f"{system_prompt}\n\nRespond with JSON matching this schema: {response_schema}".strip()

    messages: List[Dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    if images:
        content: Any = [{"type": "image_url", "image_url": {"url": image}} for image in images]
        content.append({"type": "text", "text": prompt})
    else:
        content = prompt
    messages.append({"role": "user", "content": content})

    payload: Dict[str, Any] = {
        "model": model or DEFAULT_MODEL,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if response_schema is not None and response_schema.get("type") == "OBJECT":
        payload["response_format"] = {"type": "json_object"}
    return payload


def parse_response(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise OracleError(PROVIDER, f"Unexpected response shape: {e}")

    usage = data.get("usage") or {}
    return {
        "text": text or "",
        "usage": {
            "input": usage.get("prompt_tokens", 0),
            "output": usage.get("completion_tokens", 0),
        },
    }


async def call(
    prompt: str,
    system_prompt: str = "",
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 8000,
    response_schema: Optional[Dict[str, Any]] = None,
    images: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Call OpenAI once.

    Raises:
        OracleError: On missing key, HTTP errors or unusable responses
    """
    api_key = settings.llm.openai_api_key
    if not api_key:
        raise OracleError(PROVIDER, "OPENAI_API_KEY not configured")

    payload = build_request(prompt, system_prompt, model, temperature, max_tokens, response_schema, images)
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    timeout = aiohttp.ClientTimeout(total=settings.llm.http_timeout)
    async with aiohttp.ClientSession() as session:
        async with session.post(API_URL, json=payload, headers=headers, timeout=timeout) as response:
            if response.status != 200:
                body = await response.text()
                raise OracleError(PROVIDER, f"API error ({response.status}): {body[:200]}")
            data = await response.json()

    return parse_response(data)
