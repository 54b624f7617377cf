"""Fire-and-forget trade journal generation.

Journal entries are a side channel: the tick loop submits a request and moves
on.  Whatever happens to the task (LLM outage, timeout, bad JSON) is logged
and dropped, never surfaced to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Set

from llm_prompts import JournalPromptInput
from log_utils import setup_logger
from scalp_types import TradeJournalEntry

logger = setup_logger(__name__)

__all__ = ["JournalQueue"]

JournalGenerator = Callable[[JournalPromptInput], Awaitable[Optional[TradeJournalEntry]]]
JournalSink = Callable[[TradeJournalEntry], None]


class JournalQueue:
    """Track best-effort journal tasks so they can be drained at shutdown."""

    def __init__(self, generator: JournalGenerator, sink: JournalSink) -> None:
        self._generator = generator
        self._sink = sink
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, data: JournalPromptInput) -> Optional[asyncio.Task]:
        try:
            task = asyncio.get_running_loop().create_task(self._run(data))
        except RuntimeError as exc:
            logger.debug("Journal not scheduled for %s: %s", data.symbol, exc)
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, data: JournalPromptInput) -> None:
        try:
            entry = await self._generator(data)
            if entry is not None:
                self._sink(entry)
                logger.debug("Trade journal entry created for %s %s", data.symbol, data.side)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed to generate trade journal for %s: %s", data.symbol, exc)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for outstanding entries, cancelling whatever is still running after ``timeout``."""

        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.info("Cancelled %d unfinished journal tasks", len(still_running))
