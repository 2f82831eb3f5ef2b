"""Utilities for pulling a JSON object out of an LLM reply."""
import json
import re
from typing import Any

from interview_tutor.errors import GradingServiceError

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _strip_code_fences(text: str) -> str:
    """Remove surrounding ```...``` fences (with or without 'json') if present."""
    t = text.strip()
    if t.startswith("```"):
        t = re.sub(r"^```[A-Za-z0-9_-]*\s*", "", t)
        t = re.sub(r"\s*```$", "", t)
    return t.strip()


def extract_json(text: str) -> Any:
    """Parse the reply, falling back to the outermost {...} block in the prose.

    Returns None when nothing parses.
    """
    if not text:
        return None
    t = _strip_code_fences(text)
    try:
        return json.loads(t)
    except json.JSONDecodeError:
        pass
    m = _JSON_OBJECT.search(t)
    if not m:
        return None
    try:
        return json.loads(m.group(0))
    except json.JSONDecodeError:
        return None


def require_object(text: str, err: str = "Grader reply is not a JSON object") -> dict:
    data = extract_json(text)
    if not isinstance(data, dict):
        raise GradingServiceError(err, kind="malformed")
    return data
