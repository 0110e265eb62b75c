"""
Invocation trace — leveled, timestamped events collected over one invocation.

The orchestrator owns one ``TraceState`` per invocation and hands it to every
pipeline stage. Stages record what they are about to do; the overall severity
is the worst level recorded, and decides whether the invocation is reported as
a success or a failure.

Recording is a pass-through: ``trace.info("Converting object", unit)`` returns
``unit`` unchanged, so a record call can sit between two stages without
altering the value flowing through.
"""
from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic_core import to_jsonable_python

from converter.constants import TraceLevel

T = TypeVar("T")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def stack_trace(exc: BaseException) -> list[str]:
    """Traceback frames of ``exc`` as ``file:line in function``, innermost last."""
    return [
        f"{frame.filename}:{frame.lineno} in {frame.name}"
        for frame in traceback.extract_tb(exc.__traceback__)
    ]


def error_details(exc: BaseException) -> tuple[str, dict[str, Any]]:
    """Return the (message, aux) pair used to record ``exc`` at error level."""
    return type(exc).__name__, {
        "error": f"{type(exc).__name__}: {exc}",
        "stack": stack_trace(exc),
    }


@dataclass(frozen=True, slots=True)
class TraceEntry:
    level: TraceLevel
    message: str
    time: str
    aux: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "time": self.time,
            "aux": self.aux,
        }


@dataclass(frozen=True, slots=True)
class TraceRecord:
    """Immutable snapshot of a finalized trace."""

    time: str
    level: TraceLevel
    trace: tuple[TraceEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "level": self.level.value,
            "trace": [entry.to_dict() for entry in self.trace],
        }


class TraceState:
    """Append-only event log for one invocation.

    Appends are serialized with a lock, so concurrent unit pipelines never
    lose entries. Recording before ``init()`` starts the trace implicitly.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at: str | None = None
        self._entries: list[TraceEntry] = []

    def init(self) -> TraceState:
        """Discard any previous entries and restart the clock."""
        with self._lock:
            self._started_at = _timestamp()
            self._entries = []
        return self

    @property
    def started_at(self) -> str | None:
        return self._started_at

    @property
    def entries(self) -> tuple[TraceEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def record(
        self,
        level: TraceLevel | str,
        message: str,
        value: T = None,
        aux: Any = None,
    ) -> T:
        """Append an entry and return ``value`` unchanged.

        When ``aux`` is omitted the value itself is logged. Aux is converted
        to a JSON-compatible copy immediately, so the entry keeps the data as
        it was at this point of the pipeline.
        """
        payload = value if aux is None else aux
        entry = TraceEntry(
            level=TraceLevel(level),
            message=message,
            time=_timestamp(),
            aux=to_jsonable_python(payload, fallback=repr),
        )
        with self._lock:
            if self._started_at is None:
                self._started_at = entry.time
            self._entries.append(entry)
        return value

    def debug(self, message: str, value: T = None, aux: Any = None) -> T:
        return self.record(TraceLevel.DEBUG, message, value, aux)

    def info(self, message: str, value: T = None, aux: Any = None) -> T:
        return self.record(TraceLevel.INFO, message, value, aux)

    def warn(self, message: str, value: T = None, aux: Any = None) -> T:
        return self.record(TraceLevel.WARN, message, value, aux)

    def error(self, message: str, value: T = None, aux: Any = None) -> T:
        return self.record(TraceLevel.ERROR, message, value, aux)

    def severity(self) -> TraceLevel:
        return _severity(self.entries)

    def finalize(self) -> tuple[TraceLevel, TraceRecord]:
        """Compute the severity and freeze the trace into a ``TraceRecord``."""
        with self._lock:
            if self._started_at is None:
                self._started_at = _timestamp()
            started_at = self._started_at
            entries = tuple(self._entries)
        level = _severity(entries)
        return level, TraceRecord(time=started_at, level=level, trace=entries)


def _severity(entries: tuple[TraceEntry, ...]) -> TraceLevel:
    if not entries:
        return TraceLevel.INFO
    return max((entry.level for entry in entries), key=lambda level: level.rank)


def tap(trace: TraceState, level: TraceLevel | str, message: str, value: T) -> T:
    """Record-and-continue: log ``value`` at ``level`` and hand it back."""
    return trace.record(level, message, value)
