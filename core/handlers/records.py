# core/handlers/records.py
# Validation and storage handlers: check a candidate record, persist it to long-term memory

from __future__ import annotations

from typing import Any, Dict

from ..model import Mode, Task
from .base import BaseTaskHandler, HandlerContext, memory_of, mode_of

REQUIRED_RECIPE_FIELDS = ("name", "ingredients")


def strict_validate(data: Any) -> Dict[str, Any]:
    if not data or not isinstance(data, dict):
        return {"valid": False, "reason": "no_data"}
    missing = [f for f in REQUIRED_RECIPE_FIELDS if not data.get(f)]
    if missing:
        return {"valid": False, "missing": missing}
    return {"valid": True}


class ValidationHandler(BaseTaskHandler):
    """PRECISION checks required fields; HEURISTIC accepts as good enough."""
    kind = "validation"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        if mode_of(ctx) is Mode.PRECISION:
            verdict = strict_validate(mem.working.get("data_to_validate"))
        else:
            verdict = {"valid": True, "mode": "heuristic"}
        mem.working.set("validation", verdict)
        return verdict


class StorageHandler(BaseTaskHandler):
    kind = "storage"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        data = mem.working.get("data_to_store")
        if not data:
            return {"stored": False, "reason": "no_data"}
        verdict = mem.working.get("validation")
        if isinstance(verdict, dict) and verdict.get("valid") is False:
            return {"stored": False, "reason": "invalid", "validation": verdict}
        entry_id = mem.long_term.store(dict(data))
        mem.working.set("stored_id", entry_id)
        return {"stored": True, "id": entry_id}


__all__ = ["ValidationHandler", "StorageHandler", "strict_validate"]
