# core/events.py
# Typed events for kernel cycles and tasks, plus adapters to plain dicts / JSON lines for event sinks

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .model import TaskResult

UTCNOW = lambda: datetime.now(timezone.utc)
EVENT_VERSION = 1

EventSink = Callable[[Dict[str, Any]], None]


# ----------- Event kinds -----------

class EventKind(str, Enum):
    # Cycle lifecycle
    CycleStarted   = "CycleStarted"
    CycleFinished  = "CycleFinished"
    CycleFailed    = "CycleFailed"
    ResetTriggered = "ResetTriggered"

    # Task lifecycle
    TaskFinished   = "TaskFinished"
    TaskFailed     = "TaskFailed"
    TaskSkipped    = "TaskSkipped"

    # Learning layer
    PlaybookMatched = "PlaybookMatched"
    PlaybookDrafted = "PlaybookDrafted"


# ----------- Base + typed events -----------

@dataclass
class BaseEvent:
    ts: str = field(default_factory=lambda: UTCNOW().isoformat())
    kind: str = ""
    src: str = "kernel"
    level: str = "info"
    v: int = EVENT_VERSION
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CycleEvent(BaseEvent):
    cycle: int = 0
    input_type: str = ""
    success: Optional[bool] = None
    elapsed_ms: int = 0


@dataclass
class TaskEvent(BaseEvent):
    cycle: int = 0
    task: str = ""
    task_type: str = ""
    elapsed_ms: int = 0
    iterations: int = 0
    exceeded: bool = False


# ----------- Factories -----------

def make_cycle_event(kind: str | EventKind, cycle: int, *, input_type: str = "", success: Optional[bool] = None,
                     elapsed_ms: int = 0, level: str = "info", extra: Optional[Dict[str, Any]] = None) -> CycleEvent:
    return CycleEvent(
        kind=EventKind(kind).value,
        level=level,
        cycle=int(cycle),
        input_type=input_type,
        success=success,
        elapsed_ms=int(elapsed_ms),
        extra=dict(extra or {}),
    )


def make_task_event(cycle: int, task_type: str, result: TaskResult, *, exceeded: bool = False) -> TaskEvent:
    if result.skipped:
        kind, level = EventKind.TaskSkipped, "info"
    elif result.success:
        kind, level = EventKind.TaskFinished, "info"
    else:
        kind, level = EventKind.TaskFailed, "error"
    return TaskEvent(
        kind=kind.value,
        level=level,
        cycle=int(cycle),
        task=result.task,
        task_type=task_type,
        elapsed_ms=int(result.elapsed_ms),
        iterations=int(result.iterations),
        exceeded=bool(exceeded),
        extra={"error": result.error} if result.error else {},
    )


# ----------- Adapters -----------

def to_sink_event(ev: BaseEvent) -> Dict[str, Any]:
    """Flatten to a dict for an event sink (observability pipeline, test recorder)."""
    d = asdict(ev)
    d["source"] = d.pop("src")
    return d


def event_to_line(ev: BaseEvent) -> str:
    """Single-line JSON for append-only logs."""
    s = json.dumps(asdict(ev), separators=(",", ":"), ensure_ascii=False)
    return s.replace("\n", "\\n")


def emit(sink: Optional[EventSink], ev: BaseEvent) -> None:
    """Deliver to sink if any. Sink errors never reach the caller."""
    if sink is None:
        return
    try:
        sink(to_sink_event(ev))
    except Exception:
        pass


__all__ = [
    "EventKind", "BaseEvent", "CycleEvent", "TaskEvent", "EventSink",
    "make_cycle_event", "make_task_event", "to_sink_event", "event_to_line", "emit",
]
