"""Utility to extract a JSON object from LLM responses."""

from __future__ import annotations

import json
import re

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*\n?")


def extract_json_object(text: str) -> dict:
    """Extract a JSON object from an LLM response, handling ```json blocks.

    Tries in order:
    1. Direct json.loads on the stripped text
    2. Strip fenced code block markers and parse
    3. First '{' to last '}' of the (unfenced) text

    Raises ValueError if no JSON object can be recovered.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Could not extract JSON from empty text")

    candidates = [text]
    unfenced = strip_code_fences(text)
    if unfenced != text:
        candidates.append(unfenced)
    braces = _slice_braces(unfenced)
    if braces is not None:
        candidates.append(braces)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"Could not extract JSON object from text: {text[:200]}...")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    text = text.strip()
    start = text.find("```")
    if start == -1:
        return text
    fenced = text[start:]
    fenced = _FENCE_OPEN.sub("", fenced, count=1)
    end = fenced.rfind("```")
    if end != -1:
        fenced = fenced[:end]
    return fenced.strip()


def _slice_braces(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return None
