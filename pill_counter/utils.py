"""Utility functions."""

import json
from typing import Any, Dict, Optional

from pill_counter.errors import ParseError


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first ``{...}`` span whose braces balance, or None."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_first_json_object(text: Optional[str]) -> Dict[str, Any]:
    """
    Pull the first JSON object out of free-form model output.

    Markdown fences and prose around the object are ignored; braces inside
    JSON strings do not count towards balancing.
    Raises ParseError if there is no balanced object or it is not valid JSON.
    """
    if not text:
        raise ParseError("Empty model output")

    snippet = _first_balanced_object(text)
    if snippet is None:
        raise ParseError("No JSON object detected")

    try:
        parsed = json.loads(snippet)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, and int literals over the digit limit
        raise ParseError(f"Invalid JSON in model output: {e}") from e

    if not isinstance(parsed, dict):
        raise ParseError("Model output is not a JSON object")
    return parsed
