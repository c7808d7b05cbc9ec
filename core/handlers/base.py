# core/handlers/base.py
# Base protocol and helpers for task handlers (one handler family per task type)

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from memory.session import MemoryTiers

from ..model import Assessment, Mode, Task

# What the executor passes to every handler call:
#   memory      MemoryTiers for this session
#   assessment  Assessment of the current request
#   mode        Mode (PRECISION | HEURISTIC)
#   raw_input   request text
#   iteration   1-based iteration counter for iterative tasks
HandlerContext = Dict[str, Any]

_WORD_RE = re.compile(r"[a-z0-9]+")


@runtime_checkable
class TaskHandler(Protocol):
    """
    Minimal contract each handler family must satisfy.

    Semantics:
      - accept(task): True if this handler serves task.type.
      - run(task, ctx): do the work, read/write memory through ctx["memory"], return a small result.
        Raise only for unexpected errors; the executor records them as a failed task.
    """
    kind: str

    def accept(self, task: Task) -> bool: ...
    def run(self, task: Task, ctx: HandlerContext) -> Any: ...


class BaseTaskHandler(ABC):
    """Default accept() matches task.type against `kind`."""
    kind: str = "base"

    def accept(self, task: Task) -> bool:
        return task.type == self.kind

    @abstractmethod
    def run(self, task: Task, ctx: HandlerContext) -> Any:
        raise NotImplementedError


# ---------- context accessors ----------

def memory_of(ctx: HandlerContext) -> MemoryTiers:
    mem = ctx.get("memory")
    if mem is None:
        raise RuntimeError("handler context has no memory")
    return mem


def mode_of(ctx: HandlerContext) -> Mode:
    return Mode.parse(ctx.get("mode") or Mode.HEURISTIC)


def assessment_of(ctx: HandlerContext) -> Optional[Assessment]:
    return ctx.get("assessment")


def query_words(text: str, *, min_len: int = 4) -> List[str]:
    return [w for w in _WORD_RE.findall((text or "").lower()) if len(w) >= min_len]


def find_known(text: str, names: Iterable[str]) -> Optional[str]:
    """First known name mentioned in text (longest names first)."""
    lower = (text or "").lower()
    for name in sorted(names, key=len, reverse=True):
        if name in lower:
            return name
    return None


__all__ = [
    "TaskHandler", "BaseTaskHandler", "HandlerContext",
    "memory_of", "mode_of", "assessment_of", "query_words", "find_known",
]
