"""The process-wide Groq SDK client used by the enrichment tasks.

The client is keyed by ``GROQ_API_KEY``: rotating the key in the environment
builds a new client on the next call.  Without a key every LLM task resolves
to ``None`` and the scalp loop runs on its baseline parameters.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from groq import Groq

from log_utils import setup_logger

logger = setup_logger(__name__)

# Bounded retries inside the SDK; the model chain in llm_tasks handles the rest.
_SDK_MAX_RETRIES = 1


def groq_api_key() -> Optional[str]:
    key = os.getenv("GROQ_API_KEY", "").strip().strip('"').strip("'")
    return key or None


@lru_cache(maxsize=1)
def _client_for_key(api_key: str) -> Groq:
    logger.info("Groq client initialised for scalp enrichment")
    return Groq(api_key=api_key, max_retries=_SDK_MAX_RETRIES)


def get_groq_client() -> Optional[Groq]:
    """Return the shared client, or ``None`` when no API key is configured."""

    api_key = groq_api_key()
    if api_key is None:
        logger.debug("GROQ_API_KEY not set; LLM enrichment disabled")
        return None
    return _client_for_key(api_key)


def reset_groq_client() -> None:
    _client_for_key.cache_clear()


__all__ = ["get_groq_client", "groq_api_key", "reset_groq_client"]
