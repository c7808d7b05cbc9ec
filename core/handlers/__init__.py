# core/handlers/__init__.py
# Handler families and the default type -> handler routing table

from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..model import Task
from .analysis import AnalysisHandler
from .base import BaseTaskHandler, HandlerContext, TaskHandler
from .compute import ComputationHandler, GenerationHandler
from .output import GeneralHandler, PresentationHandler
from .records import StorageHandler, ValidationHandler
from .retrieval import RetrievalHandler


class HandlerRegistry:
    """Routes a task to the handler registered for its type; anything else goes to the general handler."""

    def __init__(self, handlers: Optional[Iterable[TaskHandler]] = None, fallback: Optional[TaskHandler] = None) -> None:
        self._by_kind: Dict[str, TaskHandler] = {}
        for h in handlers or ():
            self.register(h)
        self.fallback: TaskHandler = fallback or GeneralHandler()

    def register(self, handler: TaskHandler) -> None:
        self._by_kind[handler.kind] = handler

    def route(self, task: Task) -> TaskHandler:
        h = self._by_kind.get(task.type)
        if h is not None and h.accept(task):
            return h
        return self.fallback

    def kinds(self):
        return sorted(self._by_kind)


def default_registry() -> HandlerRegistry:
    return HandlerRegistry([
        RetrievalHandler(),
        AnalysisHandler(),
        ValidationHandler(),
        StorageHandler(),
        ComputationHandler(),
        GenerationHandler(),
        PresentationHandler(),
    ])


__all__ = [
    "HandlerRegistry", "default_registry", "TaskHandler", "BaseTaskHandler", "HandlerContext",
    "RetrievalHandler", "AnalysisHandler", "ValidationHandler", "StorageHandler",
    "ComputationHandler", "GenerationHandler", "PresentationHandler", "GeneralHandler",
]
