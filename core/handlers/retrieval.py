# core/handlers/retrieval.py
# Retrieval handler: local search, recipe gathering, substitute/conversion lookups, pantry check

from __future__ import annotations

from typing import Any, Dict, List

from ..model import Task
from .base import BaseTaskHandler, HandlerContext, find_known, memory_of, query_words

SUBSTITUTES: Dict[str, List[Dict[str, str]]] = {
    "butter": [
        {"name": "olive oil", "risk": "low", "ratio": "3:4"},
        {"name": "coconut oil", "risk": "low", "ratio": "1:1"},
    ],
    "egg": [
        {"name": "flax egg", "risk": "medium", "ratio": "1:1"},
        {"name": "banana", "risk": "medium", "ratio": "1:4"},
    ],
    "milk": [
        {"name": "oat milk", "risk": "low", "ratio": "1:1"},
        {"name": "water plus butter", "risk": "medium", "ratio": "1:1"},
    ],
    "sugar": [
        {"name": "honey", "risk": "medium", "ratio": "3:4"},
    ],
}

CONVERSION_TABLES: Dict[str, Dict[str, Any]] = {
    "volume": {"cup": 240.0, "tbsp": 15.0, "tsp": 5.0, "unit": "ml"},
    "weight": {"lb": 454.0, "oz": 28.0, "unit": "g"},
    "temperature": {"fahrenheit_to_celsius": "(F - 32) * 5/9", "unit": "C"},
}

UNIT_KIND = {
    "cup": "volume", "cups": "volume", "tbsp": "volume", "tablespoon": "volume", "tsp": "volume", "teaspoon": "volume",
    "lb": "weight", "lbs": "weight", "pound": "weight", "oz": "weight", "ounce": "weight",
    "fahrenheit": "temperature", "celsius": "temperature", "degrees": "temperature",
}


def conversion_kind(text: str) -> str:
    for w in query_words(text, min_len=2):
        if w in UNIT_KIND:
            return UNIT_KIND[w]
    return ""


class RetrievalHandler(BaseTaskHandler):
    """
    Lookups against memory. Iterative actions widen their scope on later
    iterations (iteration 1 = query-matched, then everything), so the
    budget governor's marginal-value rule stops them once nothing new turns up.
    """
    kind = "retrieval"

    def run(self, task: Task, ctx: HandlerContext) -> Any:
        mem = memory_of(ctx)
        raw = str(ctx.get("raw_input") or "")
        iteration = int(ctx.get("iteration") or 1)

        if task.action == "search_local":
            query = str(mem.working.get("query") or raw)
            hits = mem.long_term.search(query)
            if not hits and iteration > 1:
                seen = set()
                for w in query_words(query):
                    for e in mem.long_term.search(w):
                        if e.id not in seen:
                            seen.add(e.id)
                            hits.append(e)
            results = [{"id": e.id, "type": e.type, "payload": e.payload} for e in hits]
            mem.working.set("search_results", results)
            return {"results": results, "count": len(results), "query": query}

        if task.action == "gather_recipes":
            recipes = [e.payload for e in mem.long_term.recipes()]
            scope = "all"
            if iteration == 1:
                words = query_words(raw)
                matched = [r for r in recipes if any(w in str(r).lower() for w in words)]
                if matched:
                    recipes, scope = matched, "matched"
            recipes = recipes[:5]
            mem.working.set("gathered_recipes", recipes)
            return {"recipes": recipes, "count": len(recipes), "scope": scope}

        if task.action == "find_substitutes":
            ingredient = mem.working.get("ingredient") or find_known(raw, SUBSTITUTES)
            subs = list(SUBSTITUTES.get(str(ingredient or "").lower(), []))
            mem.working.set("substitutes", subs)
            return {"ingredient": ingredient, "substitutes": subs}

        if task.action == "lookup_table":
            kind = mem.working.get("conversion_type") or conversion_kind(raw)
            table = dict(CONVERSION_TABLES.get(kind, {}))
            mem.working.set("conversion_table", table)
            return {"conversion_type": kind, "table": table}

        if task.action == "check_pantry":
            pantry = mem.working.get("pantry")
            if pantry is None:
                pantry = mem.long_term.get_preference("pantry", [])
            return {"pantry": list(pantry or [])}

        return {"action": task.action, "status": "completed"}


__all__ = ["RetrievalHandler", "SUBSTITUTES", "CONVERSION_TABLES", "conversion_kind"]
