# core/budget.py
# Budget governor: time/iteration ceilings per task, precomputed emergency fallback, marginal-value stop rule

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import KERNCFG, KernelConfig
from .model import (
    Assessment, BudgetPlan, Difficulty, EmergencyAction, Precision, Task, TaskBudget, Triage, Urgency,
)
from .utils import dbg, now_ms

URGENCY_MULTIPLIERS = {Urgency.NOW: 0.5, Urgency.SOON: 1.0, Urgency.LATER: 2.0}
DIFFICULTY_MULTIPLIERS = {
    Difficulty.EASY: 0.5, Difficulty.MODERATE: 1.0, Difficulty.HARD: 1.5, Difficulty.CRITICAL: 2.5,
}
TYPE_MULTIPLIERS = {
    "retrieval": 0.5,
    "validation": 0.7,
    "computation": 0.8,
    "parsing": 0.6,
    "analysis": 1.2,
    "generation": 1.3,
    "presentation": 0.9,
}
ITERATIVE_KEYWORDS = ("search", "analyze", "compare", "find", "gather")

EMERGENCY_ACTIONS: Dict[str, EmergencyAction] = {
    "recipe_search": EmergencyAction("return_partial_results", "Return best matches found so far"),
    "recipe_compare": EmergencyAction("compare_with_available", "Compare with recipes currently available"),
    "substitute": EmergencyAction("suggest_safest_substitute", "Provide most conservative substitute option"),
    "conversion": EmergencyAction("use_standard_conversion", "Use standard conversion table"),
}
DEFAULT_EMERGENCY = EmergencyAction("acknowledge_timeout", "Acknowledge request and defer to working memory")


def _canon(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, default=str)


def marginal_value(previous: Any, current: Any) -> float:
    """
    Share of fields in `current` that are new or changed versus `previous`.
    Identical results -> 0.0; a missing side -> 1.0.
    """
    if previous is None or current is None:
        return 1.0
    if _canon(previous) == _canon(current):
        return 0.0
    if isinstance(current, dict):
        prev = previous if isinstance(previous, dict) else {}
        keys = list(current.keys())
        changed = sum(1 for k in keys if k not in prev or _canon(prev[k]) != _canon(current[k]))
    elif isinstance(current, (list, tuple)):
        prev_list = list(previous) if isinstance(previous, (list, tuple)) else []
        keys = list(range(len(current)))
        changed = sum(1 for i in keys if i >= len(prev_list) or _canon(prev_list[i]) != _canon(current[i]))
    else:
        return 1.0
    return changed / len(keys) if keys else 0.0


class BudgetGovernor:
    def __init__(self, *, config: Optional[KernelConfig] = None, now_fn: Callable[[], int] = now_ms) -> None:
        self.cfg = config or KERNCFG
        self.now_fn = now_fn

    # ---------- allocation ----------

    def allocate(self, triage: Triage, assessment: Assessment) -> BudgetPlan:
        plan = BudgetPlan(cutoff_time_ms=self.total_budget(assessment), timestamp=time.time())
        for task in triage.priorities:
            tb = self.task_budget_for(task, assessment)
            plan.tasks.append(tb)
            plan.total_time_ms += tb.max_time_ms
            plan.total_iterations += tb.max_iterations
        plan.emergency_action = self.select_emergency_action(assessment)
        return plan

    def total_budget(self, assessment: Assessment) -> int:
        total = float(self.cfg.DEFAULT_BUDGET_MS)
        total *= URGENCY_MULTIPLIERS.get(assessment.urgency, 1.0)
        total *= DIFFICULTY_MULTIPLIERS.get(assessment.difficulty, 1.0)
        if assessment.precision is Precision.STRICT:
            total *= 0.8
        return int(round(total))

    def task_budget_for(self, task: Task, assessment: Assessment) -> TaskBudget:
        t = self.cfg.DEFAULT_BUDGET_MS / 3.0
        t *= TYPE_MULTIPLIERS.get(task.type, 1.0)
        if assessment.urgency is Urgency.NOW:
            t *= 0.6
        iters = self.max_iterations_for(task)
        max_time = int(round(t))
        return TaskBudget(
            task=task.action,
            max_time_ms=max_time,
            max_iterations=iters,
            time_per_iteration_ms=int(round(max_time / iters)),
        )

    def max_iterations_for(self, task: Task) -> int:
        if any(k in task.action for k in ITERATIVE_KEYWORDS):
            return int(self.cfg.MAX_ITERATIONS)
        return 1

    @staticmethod
    def select_emergency_action(assessment: Assessment) -> EmergencyAction:
        return EMERGENCY_ACTIONS.get(assessment.input_type, DEFAULT_EMERGENCY)

    # ---------- tracking ----------

    def start_task(self, tb: TaskBudget) -> None:
        tb.started_at = self.now_fn()
        tb.completed_at = None
        tb.exceeded = False

    def complete_task(self, tb: TaskBudget) -> int:
        tb.completed_at = self.now_fn()
        elapsed = tb.completed_at - (tb.started_at if tb.started_at is not None else tb.completed_at)
        tb.exceeded = elapsed > tb.max_time_ms
        if tb.exceeded:
            dbg("budget", f"{tb.task} exceeded budget by {elapsed - tb.max_time_ms}ms")
        return elapsed

    def is_within_budget(self, tb: TaskBudget) -> bool:
        if tb.started_at is None:
            return True
        return (self.now_fn() - tb.started_at) < tb.max_time_ms

    def remaining_ms(self, tb: TaskBudget) -> int:
        if tb.started_at is None:
            return tb.max_time_ms
        return tb.max_time_ms - (self.now_fn() - tb.started_at)

    # ---------- iteration control ----------

    def should_continue_iteration(self, iteration: int, results: Sequence[Any]) -> bool:
        if iteration >= int(self.cfg.MAX_ITERATIONS):
            return False
        if not results or len(results) < 2:
            return True
        return marginal_value(results[-2], results[-1]) > float(self.cfg.MARGINAL_VALUE_MIN)

    def should_abort_early(self, confidence: float) -> bool:
        return float(confidence) >= float(self.cfg.ABORT_CONFIDENCE)

    # ---------- fallback / reporting ----------

    def execute_emergency_action(self, plan: BudgetPlan, partial_results: Any = None) -> Dict[str, Any]:
        ea = plan.emergency_action or DEFAULT_EMERGENCY
        dbg("budget", "budget exceeded, emergency action:", ea.action)
        return {
            "success": True,
            "action": ea.action,
            "result": partial_results if partial_results is not None else "Task deferred due to time constraints",
            "emergency": True,
            "reversible": ea.reversible,
            "description": ea.description,
            "timestamp": time.time(),
        }

    @staticmethod
    def status(plan: BudgetPlan) -> Dict[str, Any]:
        elapsed = sum(tb.elapsed_ms() or 0 for tb in plan.tasks)
        return {
            "total_time_ms": plan.total_time_ms,
            "elapsed_ms": elapsed,
            "remaining_ms": max(0, plan.total_time_ms - elapsed),
            "tasks_completed": sum(1 for tb in plan.tasks if tb.completed_at is not None),
            "tasks_exceeded": sum(1 for tb in plan.tasks if tb.exceeded),
            "within_budget": elapsed <= plan.total_time_ms,
            "utilization": (elapsed / plan.total_time_ms) if plan.total_time_ms > 0 else 0.0,
        }

    @staticmethod
    def tuning_hints(plan: BudgetPlan) -> List[Dict[str, Any]]:
        """Per finished task: 'reduce' when under half its budget, 'increase' when over 120%."""
        hints: List[Dict[str, Any]] = []
        for tb in plan.tasks:
            el = tb.elapsed_ms()
            if el is None or tb.max_time_ms <= 0:
                continue
            ratio = el / tb.max_time_ms
            if ratio < 0.5:
                hints.append({"task": tb.task, "hint": "reduce", "ratio": ratio})
            elif ratio > 1.2:
                hints.append({"task": tb.task, "hint": "increase", "ratio": ratio})
        return hints

    @staticmethod
    def task_budget(plan: BudgetPlan, action: str) -> Optional[TaskBudget]:
        return plan.for_task(action)


__all__ = [
    "BudgetGovernor", "marginal_value", "EMERGENCY_ACTIONS", "DEFAULT_EMERGENCY",
    "URGENCY_MULTIPLIERS", "DIFFICULTY_MULTIPLIERS", "TYPE_MULTIPLIERS", "ITERATIVE_KEYWORDS",
]
