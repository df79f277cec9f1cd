# novabuild/llm/providers/gemini.py
"""
Google Gemini provider.

Schema-constrained calls use Gemini's native JSON mode (responseMimeType +
responseSchema), so the schema dicts in novabuild.llm.prompts are written in
Gemini's upper-case type vocabulary.
"""
import json
import aiohttp
from typing import Any, Dict, List, Optional
from novabuild.core.config import settings
from novabuild.core.exceptions import OracleError


PROVIDER = "gemini"
DEFAULT_MODEL = "gemini-flash-lite-latest"
API_URL = "https://generativelanguage.googleapis.com/v1beta/models"

STATUS_MESSAGES = {
    400: "Bad request",
    403: "API key invalid or quota exceeded",
    429: "Rate limited",
}


def image_part(image: str) -> Dict[str, Any]:
    """Convert a base64 data URL (or bare base64 string) into an inline part."""
    mime_type = "image/png"
    data = image
    if image.startswith("data:") and "," in image:
        header, data = image.split(",", 1)
        mime_type = header[5:].split(";")[0] or mime_type
    return {"inlineData": {"mimeType": mime_type, "data": data}}


def build_request(
    prompt: str,
    system_prompt: str = "",
    temperature: float = 0.7,
    max_tokens: int = 8000,
    response_schema: Optional[Dict[str, Any]] = None,
    images: Optional[List[str]] = None,
) -> Dict[str, Any]:
    parts = [image_part(image) for image in (images or [])]
    parts.append({"text": prompt})

    generation_config: Dict[str, Any] = {"temperature": temperature, "maxOutputTokens": max_tokens}
    if response_schema is not None:
        generation_config["responseMimeType"] = "application/json"
        generation_config["responseSchema"] = response_schema

    payload: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": generation_config,
    }
    if system_prompt:
        payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
    return payload


def parse_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pull text and token usage out of a generateContent response.

    Multi-part answers are concatenated. A blocked prompt or an empty
    candidate list is an OracleError.
    """
    candidates = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        raise OracleError(PROVIDER, f"Prompt blocked: {reason}" if reason else "No candidates in response")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        raise OracleError(PROVIDER, f"Empty candidate (finishReason={candidates[0].get('finishReason')})")

    usage = data.get("usageMetadata") or {}
    return {
        "text": "".join(part.get("text", "") for part in parts),
        "usage": {
            "input": usage.get("promptTokenCount", 0),
            "output": usage.get("candidatesTokenCount", 0),
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
    Call Gemini's generateContent once.

    Returns:
        Dict with the generated text and token usage

    Raises:
        OracleError: On missing key, HTTP errors or unusable responses
    """
    api_key = settings.llm.gemini_api_key
    if not api_key:
        raise OracleError(PROVIDER, "GEMINI_API_KEY not configured")

    url = f"{API_URL}/{model or DEFAULT_MODEL}:generateContent?key={api_key}"
    payload = build_request(prompt, system_prompt, temperature, max_tokens, response_schema, images)

    timeout = aiohttp.ClientTimeout(total=settings.llm.http_timeout)
    async with aiohttp.ClientSession() as session:
        async with session.post(url, json=payload, timeout=timeout) as response:
            body = await response.text()
            if response.status != 200:
                label = STATUS_MESSAGES.get(response.status, "API error")
                raise OracleError(PROVIDER, f"{label} ({response.status}): {body[:200]}")

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise OracleError(PROVIDER, f"Failed to parse response: {e}")
    return parse_response(data)
