from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Event:
    ts: str
    level: str
    message: str


@dataclass
class EngineStats:
    running: bool = False
    last_observed: bool | None = None
    last_applied: bool | None = None
    observations: int = 0
    transitions: int = 0
    backend_failures: int = 0
    started_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory view of the reconciler, shared with the status API.

    Nothing here is persisted; a restart starts from an empty state.
    """

    def __init__(self, max_events: int = 200) -> None:
        self.lock = Lock()
        self.stats = EngineStats()
        self.events: deque[Event] = deque(maxlen=max(1, int(max_events)))

    def log_event(self, level: str, message: str, log: logging.Logger | None = None) -> None:
        """Log a message and keep it in the recent events buffer."""
        level = level.upper()
        numeric = logging.getLevelName(level)
        if not isinstance(numeric, int):
            numeric = logging.INFO
        (log or logger).log(numeric, message)
        with self.lock:
            self.events.append(Event(ts=utc_now(), level=level, message=message))

    def set_running(self, running: bool) -> None:
        with self.lock:
            self.stats.running = running
            self.stats.updated_at = utc_now()

    def mark_observation(self, healthy: bool) -> bool | None:
        """Record a health signal. Returns the previous observation."""
        with self.lock:
            prev = self.stats.last_observed
            self.stats.last_observed = healthy
            self.stats.observations += 1
            self.stats.updated_at = utc_now()
            return prev

    def mark_applied(self, healthy: bool) -> None:
        with self.lock:
            self.stats.last_applied = healthy
            self.stats.transitions += 1
            self.stats.updated_at = utc_now()

    def mark_backend_failure(self) -> int:
        with self.lock:
            self.stats.backend_failures += 1
            self.stats.updated_at = utc_now()
            return self.stats.backend_failures

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            s = self.stats
            return {
                "running": s.running,
                "last_observed": s.last_observed,
                "last_applied": s.last_applied,
                "observations": s.observations,
                "transitions": s.transitions,
                "backend_failures": s.backend_failures,
                "started_at": s.started_at,
                "updated_at": s.updated_at,
            }

    def latest_events(self, limit: int = 100) -> list[dict[str, Any]]:
        with self.lock:
            items = list(self.events)[-max(0, int(limit)):] if limit > 0 else []
        return [{"ts": e.ts, "level": e.level, "message": e.message} for e in reversed(items)]
