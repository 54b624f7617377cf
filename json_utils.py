"""Tolerant parsing of JSON objects embedded in LLM responses.

Models frequently wrap their JSON in Markdown fences or surround it with a
sentence of commentary.  :func:`parse_llm_json_response` strips fences, tries
the text as-is, then falls back to the outermost ``{...}`` span.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional, Tuple

__all__ = ["strip_markdown_json", "parse_llm_json_response"]

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_markdown_json(text: str) -> str:
    """Remove Markdown fences and a leading ``json`` label from *text*."""

    cleaned = str(text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned))
    if cleaned.lower().startswith("json"):
        cleaned = cleaned[4:].lstrip(" :\n")
    return cleaned.strip()


def _load_object(candidate: str, logger: Optional[logging.Logger]) -> Optional[dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        if logger:
            logger.debug("Failed to parse JSON candidate: %s", exc)
        return None
    return dict(data) if isinstance(data, Mapping) else None


def parse_llm_json_response(
    raw_text: str,
    *,
    defaults: Mapping[str, Any] | None = None,
    logger: logging.Logger | None = None,
) -> Tuple[dict[str, Any], bool]:
    """Parse ``raw_text`` into a dictionary.

    Returns
    -------
    tuple(dict, bool)
        The parsed object merged over ``defaults`` and whether a JSON object
        was actually found.
    """

    result: dict[str, Any] = dict(defaults or {})
    text = str(raw_text or "").strip()
    if not text:
        return result, False

    stripped = strip_markdown_json(text)
    parsed = _load_object(stripped, logger)
    if parsed is None:
        first = stripped.find("{")
        last = stripped.rfind("}")
        if first != -1 and last > first:
            parsed = _load_object(stripped[first : last + 1], logger)

    if parsed is None:
        return result, False
    result.update(parsed)
    return result, True
