"""
ragroute - Pipeline Observers
==============================
Structured event emission for the retrieval orchestration layer.

Components never reach for process-wide logging configuration to report
*what happened* (a routing decision, a failed source, an eviction).
Instead they receive a ``PipelineObserver`` at construction time and call
``observer.emit("route.decided", strategy=..., sources=...)``.

``LoggingObserver`` (the default) renders each event as one log line;
``RecordingObserver`` keeps events in memory so applications and tests
can inspect them.  ``MultiObserver`` forwards to several observers.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ragroute.src.utils.logger import get_logger

# Events that indicate degraded behaviour are logged at WARNING.
_WARNING_EVENTS: frozenset[str] = frozenset({
    "source.failed",
    "retrieval.all_failed",
    "route.classification_failed",
    "route.classification_ambiguous",
    "route.probe_failed",
    "ask.generation_failed",
    "ingest.failed",
})


@runtime_checkable
class PipelineObserver(Protocol):
    """Anything that accepts structured pipeline events."""

    def emit(self, event: str, **fields: Any) -> None: ...


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class LoggingObserver:
    """Render every event as ``[event] key=value …`` on a ragroute logger."""

    __slots__ = ("_logger",)

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or get_logger("ragroute.events")

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        rendered = " ".join(f"{key}={value!r}" for key, value in fields.items())
        self._logger.log(level, "[%s] %s", event, rendered)


class RecordingObserver:
    """Keep events in memory (thread-safe; retrieval fan-out emits from worker threads)."""

    def __init__(self) -> None:
        self._events: list[PipelineEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        with self._lock:
            self._events.append(PipelineEvent(event, dict(fields)))

    @property
    def events(self) -> list[PipelineEvent]:
        with self._lock:
            return list(self._events)

    def named(self, event: str) -> list[PipelineEvent]:
        return [e for e in self.events if e.name == event]

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class MultiObserver:
    """Fan one event out to several observers, in order."""

    __slots__ = ("_observers",)

    def __init__(self, *observers: PipelineObserver) -> None:
        self._observers = observers

    def emit(self, event: str, **fields: Any) -> None:
        for observer in self._observers:
            observer.emit(event, **fields)


def default_observer() -> PipelineObserver:
    return LoggingObserver()
