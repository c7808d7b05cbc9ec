# core/handlers/output.py
# Presentation handler (format working-memory results) and the general fall-through handler

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..model import Task
from .base import BaseTaskHandler, HandlerContext, memory_of
from .compute import parse_quantity

COMPARISON_KEYS = ("core", "variations", "bloat")


class PresentationHandler(BaseTaskHandler):
    kind = "presentation"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        data = mem.working.get("presentation_data")
        if data is None and task.action == "format_comparison":
            found: Dict[str, Any] = {k: mem.working.get(k) for k in COMPARISON_KEYS if mem.working.get(k) is not None}
            data = found or None
        if data is None:
            return {"formatted": "No data to display"}
        return {
            "formatted": json.dumps(data, indent=2, ensure_ascii=False, default=str),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class GeneralHandler(BaseTaskHandler):
    """Fall-through for any task type without a dedicated family."""
    kind = "general"

    def accept(self, task: Task) -> bool:
        return True

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        if task.action == "parse_conversion":
            qty = parse_quantity(str(ctx.get("raw_input") or ""))
            mem.working.set("parsed_quantity", qty)
            return {"parsed": qty}
        if task.action == "extract_ingredients":
            ingredients: List[str] = list(mem.working.get("ingredients") or [])
            if not ingredients:
                for r in mem.working.get("gathered_recipes") or []:
                    ingredients.extend(i for i in (r.get("ingredients") or []) if i not in ingredients)
                mem.working.set("ingredients", ingredients)
            return {"ingredients": ingredients, "count": len(ingredients)}
        return {"task": task.action, "status": "completed", "note": "General task handler"}


__all__ = ["PresentationHandler", "GeneralHandler"]
