# core/handlers/analysis.py
# Analysis handler: shared core of gathered recipes, per-recipe variations, bloat detection, ingredient function

from __future__ import annotations

from typing import Any, Dict, List

from ..model import Task
from .base import BaseTaskHandler, HandlerContext, find_known, memory_of

INGREDIENT_FUNCTIONS: Dict[str, List[str]] = {
    "butter": ["fat", "flavor", "moisture"],
    "egg": ["binder", "leavening", "structure"],
    "flour": ["structure", "thickener"],
    "sugar": ["sweetener", "browning", "moisture"],
    "salt": ["flavor", "preservation"],
    "baking powder": ["leavening"],
    "vanilla": ["flavor"],
    "milk": ["moisture", "browning"],
}

BLOAT_KEYWORDS = ("optional", "garnish", "decoration", "for presentation")


def extract_core(recipes: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not recipes:
        return {"ingredients": [], "count": 0}
    lists = [list(r.get("ingredients") or []) for r in recipes]
    core = [ing for ing in lists[0] if all(ing in other for other in lists[1:])]
    return {"ingredients": core, "count": len(recipes)}


def identify_variations(core: Dict[str, Any], recipes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    base = set(core.get("ingredients") or [])
    out: List[Dict[str, Any]] = []
    for r in recipes:
        unique = [ing for ing in (r.get("ingredients") or []) if ing not in base]
        if unique:
            out.append({"recipe": r.get("name"), "unique_ingredients": unique})
    return out


def detect_bloat(recipes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for r in recipes:
        steps = [s for s in (r.get("steps") or []) if isinstance(s, str)]
        flagged = [s for s in steps if any(k in s.lower() for k in BLOAT_KEYWORDS)]
        if flagged:
            out.append({"recipe": r.get("name"), "bloat_steps": flagged,
                        "severity": "high" if len(flagged) > 2 else "low"})
    return out


class AnalysisHandler(BaseTaskHandler):
    kind = "analysis"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        recipes = list(mem.working.get("gathered_recipes") or [])

        if task.action == "extract_core":
            core = extract_core(recipes)
            mem.working.set("core", core)
            return core

        if task.action == "identify_variations":
            core = mem.working.get("core") or extract_core(recipes)
            variations = identify_variations(core, recipes)
            mem.working.set("variations", variations)
            return {"variations": variations, "count": len(variations)}

        if task.action == "detect_bloat":
            bloat = detect_bloat(recipes)
            mem.working.set("bloat", bloat)
            return {"bloat": bloat, "count": len(bloat)}

        if task.action == "identify_function":
            ingredient = mem.working.get("ingredient") or find_known(str(ctx.get("raw_input") or ""), INGREDIENT_FUNCTIONS)
            functions = INGREDIENT_FUNCTIONS.get(str(ingredient or "").lower(), ["unknown"])
            if ingredient:
                mem.working.set("ingredient", ingredient)
            mem.working.set("ingredient_function", functions)
            return {"ingredient": ingredient, "functions": functions}

        return {"analysis": "completed", "task": task.action}


__all__ = ["AnalysisHandler", "extract_core", "identify_variations", "detect_bloat", "INGREDIENT_FUNCTIONS"]
