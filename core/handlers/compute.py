# core/handlers/compute.py
# Computation and generation handlers: unit conversion arithmetic, shopping-list generation

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ..model import Task
from .base import BaseTaskHandler, HandlerContext, memory_of
from .retrieval import CONVERSION_TABLES

_QTY_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(cups?|tablespoons?|tbsp|teaspoons?|tsp|lbs?|pounds?|ounces?|oz|°\s*f|degrees|fahrenheit|f)\b"
)
_UNIT_ALIASES = {
    "cup": "cup", "cups": "cup",
    "tablespoon": "tbsp", "tablespoons": "tbsp", "tbsp": "tbsp",
    "teaspoon": "tsp", "teaspoons": "tsp", "tsp": "tsp",
    "lb": "lb", "lbs": "lb", "pound": "lb", "pounds": "lb",
    "ounce": "oz", "ounces": "oz", "oz": "oz",
    "f": "F", "°f": "F", "° f": "F", "degrees": "F", "fahrenheit": "F",
}


def parse_quantity(text: str) -> Optional[Dict[str, Any]]:
    m = _QTY_RE.search((text or "").lower())
    if not m:
        return None
    unit = _UNIT_ALIASES.get(m.group(2).strip(), m.group(2).strip())
    return {"value": float(m.group(1)), "unit": unit}


def convert(qty: Dict[str, Any], tables: Dict[str, Dict[str, Any]] = CONVERSION_TABLES) -> Dict[str, Any]:
    value, unit = float(qty["value"]), str(qty["unit"])
    if unit == "F":
        return {"value": value, "from_unit": "F", "result": round((value - 32) * 5 / 9, 2), "unit": "C"}
    for table in tables.values():
        factor = table.get(unit)
        if isinstance(factor, (int, float)):
            return {"value": value, "from_unit": unit, "result": round(value * factor, 2), "unit": table.get("unit")}
    return {"error": "unknown_unit", "unit": unit}


class ComputationHandler(BaseTaskHandler):
    kind = "computation"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        if task.action == "calculate":
            explicit = mem.working.get("conversion")
            if isinstance(explicit, dict) and "value" in explicit and "factor" in explicit:
                out = {"result": float(explicit["value"]) * float(explicit["factor"]),
                       "unit": explicit.get("target_unit")}
            else:
                qty = mem.working.get("parsed_quantity") or parse_quantity(str(ctx.get("raw_input") or ""))
                out = convert(qty) if qty else {"error": "no_conversion_data"}
            mem.working.set("computed", out)
            return out
        return {"computed": True, "task": task.action}


class GenerationHandler(BaseTaskHandler):
    kind = "generation"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        if task.action == "generate_list":
            ingredients: List[str] = list(mem.working.get("ingredients") or [])
            pantry: List[str] = list(mem.working.get("pantry") or [])
            needed = [i for i in ingredients if i not in pantry]
            out = {"list": needed, "count": len(needed), "already_have": [p for p in pantry if p in ingredients]}
            mem.working.set("shopping_list", out)
            return out
        return {"generated": True, "task": task.action}


__all__ = ["ComputationHandler", "GenerationHandler", "parse_quantity", "convert"]
