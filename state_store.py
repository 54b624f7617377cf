"""Persistent bot state and its JSON-file backing store.

:class:`BotState` is the single document written at the end of every tick.
:class:`JsonStateStore` loads it at startup and saves it atomically (write to
a temporary file, then ``os.replace``) so a crash mid-write never leaves a
truncated state file behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from log_utils import setup_logger
from scalp_types import ClosedScalp, ScalpPosition, ScalpSignalSnapshot, TradeJournalEntry

logger = setup_logger(__name__)

__all__ = ["BotState", "JsonStateStore", "StateStoreError"]


class StateStoreError(RuntimeError):
    """Raised when an existing state file cannot be read back."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BotState:
    started_at: str = field(default_factory=_utc_now_iso)
    initial_capital: float = 0.0
    last_trade_time: Dict[str, int] = field(default_factory=dict)
    high_water_marks: Dict[str, float] = field(default_factory=dict)
    paused: bool = False
    paused_until: Optional[int] = None
    daily_scalp_count: int = 0
    daily_scalp_date: str = ""
    open_scalps: Dict[str, ScalpPosition] = field(default_factory=dict)
    closed_scalps: List[ClosedScalp] = field(default_factory=list)
    signals: List[ScalpSignalSnapshot] = field(default_factory=list)
    journal: List[TradeJournalEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "initial_capital": self.initial_capital,
            "last_trade_time": dict(self.last_trade_time),
            "high_water_marks": dict(self.high_water_marks),
            "paused": self.paused,
            "paused_until": self.paused_until,
            "daily_scalp_count": self.daily_scalp_count,
            "daily_scalp_date": self.daily_scalp_date,
            "open_scalps": [position.to_dict() for position in self.open_scalps.values()],
            "closed_scalps": [closed.to_dict() for closed in self.closed_scalps],
            "signals": [snapshot.to_dict() for snapshot in self.signals],
            "journal": [entry.to_dict() for entry in self.journal],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BotState":
        """Build a state from ``payload``; keys missing from the file keep their defaults."""

        state = cls()
        if "started_at" in payload:
            state.started_at = str(payload["started_at"])
        state.initial_capital = float(payload.get("initial_capital", 0.0) or 0.0)
        state.last_trade_time = {
            str(symbol): int(ts) for symbol, ts in dict(payload.get("last_trade_time") or {}).items()
        }
        state.high_water_marks = {
            str(symbol): float(price)
            for symbol, price in dict(payload.get("high_water_marks") or {}).items()
        }
        state.paused = bool(payload.get("paused", False))
        paused_until = payload.get("paused_until")
        state.paused_until = int(paused_until) if paused_until is not None else None
        state.daily_scalp_count = int(payload.get("daily_scalp_count", 0) or 0)
        state.daily_scalp_date = str(payload.get("daily_scalp_date", "") or "")
        positions = [ScalpPosition.from_dict(item) for item in payload.get("open_scalps") or []]
        state.open_scalps = {position.id: position for position in positions}
        state.closed_scalps = [ClosedScalp.from_dict(item) for item in payload.get("closed_scalps") or []]
        state.signals = [ScalpSignalSnapshot.from_dict(item) for item in payload.get("signals") or []]
        state.journal = [TradeJournalEntry.from_dict(item) for item in payload.get("journal") or []]
        return state


class JsonStateStore:
    """Load and save :class:`BotState` as a JSON document."""

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> BotState:
        if not os.path.exists(self.path):
            logger.info("No state file found at %s, using defaults", self.path)
            return BotState()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                content = fh.read().strip()
        except OSError as exc:
            raise StateStoreError(f"Cannot read state file {self.path}: {exc}") from exc
        if not content:
            logger.warning("State file %s is empty; starting from defaults", self.path)
            return BotState()
        try:
            payload = json.loads(content)
            if not isinstance(payload, Mapping):
                raise ValueError("state document must be a JSON object")
            state = BotState.from_dict(payload)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StateStoreError(f"State file {self.path} is invalid: {exc}") from exc
        logger.info(
            "State loaded from %s (%d open scalps, %d closed)",
            self.path,
            len(state.open_scalps),
            len(state.closed_scalps),
        )
        return state

    def save(self, state: BotState) -> bool:
        """Persist ``state``; failures are logged and reported via the return value."""

        directory = os.path.dirname(self.path) or "."
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".bot-state-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state.to_dict(), fh, indent=2)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to save state to %s: %s", self.path, exc)
            return False
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
        return True
