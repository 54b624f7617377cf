"""Groq model routing for the enrichment tasks.

Each :class:`LLMTask` has an ordered model chain.  A call walks the chain
until one model answers, skipping models that have used up their soft
requests-per-minute budget in this process.
"""

from __future__ import annotations

import os
import time
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from groq_client import get_groq_client
from json_utils import parse_llm_json_response
from log_utils import setup_logger

logger = setup_logger(__name__)


class LLMTask(str, Enum):
    SENTIMENT = "sentiment"
    REGIME = "regime"
    JOURNAL = "journal"


_FAST_MODEL = "llama-3.1-8b-instant"
_LARGE_MODEL = "llama-3.3-70b-versatile"

# Regime classification reasons over several inputs and gets the large model first.
_TASK_MODELS: Dict[LLMTask, Tuple[str, Sequence[str]]] = {
    LLMTask.SENTIMENT: ("SENTIMENT_LLM_MODELS", (_FAST_MODEL, _LARGE_MODEL)),
    LLMTask.REGIME: ("REGIME_LLM_MODELS", (_LARGE_MODEL, _FAST_MODEL)),
    LLMTask.JOURNAL: ("JOURNAL_LLM_MODELS", (_FAST_MODEL,)),
}


class RateWindow:
    """Sliding one-minute request counter per model."""

    def __init__(self, window_seconds: float = 60.0) -> None:
        self.window_seconds = window_seconds
        self._calls: Dict[str, Deque[float]] = {}

    @staticmethod
    def budget_for(model: str) -> int:
        if "70b" in model.lower():
            return max(1, int(os.getenv("GROQ_SOFT_RPM_70B", "20") or 20))
        return max(1, int(os.getenv("GROQ_SOFT_RPM_DEFAULT", "30") or 30))

    def acquire(self, model: str, now: Optional[float] = None) -> bool:
        """Reserve one request slot for ``model``; ``False`` when the budget is spent."""

        stamp = time.time() if now is None else now
        calls = self._calls.setdefault(model, deque())
        while calls and calls[0] <= stamp - self.window_seconds:
            calls.popleft()
        if len(calls) >= self.budget_for(model):
            return False
        calls.append(stamp)
        return True

    def reset(self) -> None:
        self._calls.clear()


rate_window = RateWindow()


def parse_model_list(raw: str) -> List[str]:
    models: List[str] = []
    for item in raw.split(","):
        name = item.strip()
        if name and name not in models:
            models.append(name)
    return models


def models_for_task(task: LLMTask) -> List[str]:
    """Model chain for ``task``.

    ``<TASK>_LLM_MODELS`` (comma separated) wins, then ``GROQ_DEFAULT_MODEL``
    as a single-model chain, then the built-in defaults.
    """

    env_var, defaults = _TASK_MODELS[task]
    configured = parse_model_list(os.getenv(env_var, ""))
    if configured:
        return configured
    fallback = os.getenv("GROQ_DEFAULT_MODEL", "").strip()
    return [fallback] if fallback else list(defaults)


def call_llm_for_task(
    task: LLMTask, messages: List[Dict[str, Any]], **kwargs: Any
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(content, model)`` from the first model in the task chain that answers."""

    client = get_groq_client()
    if client is None:
        logger.debug("Groq client unavailable for task=%s", task.value)
        return None, None

    chain = models_for_task(task)
    failure: Optional[Exception] = None
    for model in chain:
        if not rate_window.acquire(model):
            logger.info("Soft RPM budget spent for %s (task=%s), trying next model", model, task.value)
            continue
        try:
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=float(kwargs.get("temperature", 0.2)),
                max_tokens=int(kwargs.get("max_tokens", 512)),
                timeout=kwargs.get("timeout", 20.0),
            )
        except Exception as exc:  # noqa: BLE001
            failure = exc
            logger.warning("Groq call failed for task=%s model=%s: %s", task.value, model, exc)
            continue
        content = response.choices[0].message.content if response.choices else None
        if content:
            logger.debug("task=%s answered by %s", task.value, model)
            return content, model

    logger.warning("No model answered task=%s (chain=%s, last error=%r)", task.value, chain, failure)
    return None, None


def complete_json(task: LLMTask, system_prompt: str, user_prompt: str, **kwargs: Any) -> Optional[Dict[str, Any]]:
    """Run ``task`` and return the JSON object from the reply, or ``None``."""

    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
    content, model = call_llm_for_task(task, messages, **kwargs)
    if content is None:
        return None
    parsed, ok = parse_llm_json_response(content, logger=logger)
    if not ok:
        logger.warning("Failed to parse LLM JSON for task=%s model=%s: %.200s", task.value, model, content)
        return None
    return parsed


__all__ = [
    "LLMTask",
    "RateWindow",
    "call_llm_for_task",
    "complete_json",
    "models_for_task",
    "parse_model_list",
    "rate_window",
]
