# novabuild/utils/parser.py
"""
JSON parser for oracle output.

Constrained-output mode usually returns clean JSON, but models still wrap
responses in markdown fences or add a sentence before the payload. This
parser strips fences and falls back to the first JSON object or array in the
text. Anything else raises ParseError.
"""
import json
import re
from typing import Any

from novabuild.core.exceptions import ParseError

_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')
_ARRAY_PATTERN = re.compile(r'\[[\s\S]*\]')


def strip_code_fences(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith('```'):
        lines = cleaned.split('\n')
        # Remove first line (```json or ```)
        lines = lines[1:]
        if lines and lines[-1].strip() == '```':
            lines = lines[:-1]
        cleaned = '\n'.join(lines)
    return cleaned.strip()


def parse_json(raw: str) -> Any:
    """
    Parse a JSON object or array from oracle output.

    Raises:
        ParseError: If no JSON value can be recovered
    """
    if not raw or not isinstance(raw, str):
        raise ParseError("Empty oracle response")

    cleaned = strip_code_fences(raw)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        first_error = e

    # The oracle sometimes adds prose around the payload
    for pattern in (_OBJECT_PATTERN, _ARRAY_PATTERN):
        match = pattern.search(cleaned)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue

    raise ParseError(
        f"JSON parse failed: {first_error}",
        {"raw_preview": cleaned[:200]}
    )


def parse_json_object(raw: str) -> dict:
    """Parse and require a JSON object."""
    value = parse_json(raw)
    if not isinstance(value, dict):
        raise ParseError(f"Expected a JSON object, got {type(value).__name__}")
    return value


__all__ = ["strip_code_fences", "parse_json", "parse_json_object"]
