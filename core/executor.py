# core/executor.py
# Executor: runs priority tasks in triage order once their dependencies complete, under budget, with policy-driven skips.

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from observability import metrics as obs

from .budget import BudgetGovernor
from .events import EventSink, emit, make_task_event
from .handlers import HandlerRegistry, default_registry
from .model import Assessment, BudgetPlan, ExecutionResult, Mode, Stakes, Task, TaskBudget, TaskResult, Triage
from .triage import dependencies_satisfied
from .utils import dbg


@runtime_checkable
class StepPolicy(Protocol):
    """Learned per-step policy, e.g. meta.values.ValueTracker."""

    def step_policy(self, name: str) -> Optional[Dict[str, Any]]: ...


class Executor:
    def __init__(self, governor: BudgetGovernor, *, registry: Optional[HandlerRegistry] = None,
                 policy: Optional[StepPolicy] = None, event_sink: Optional[EventSink] = None,
                 cycle_fn: Callable[[], int] = lambda: 0) -> None:
        self.governor = governor
        self.registry = registry or default_registry()
        self.policy = policy
        self.event_sink = event_sink
        self.cycle_fn = cycle_fn

    def run(self, triage: Triage, plan: BudgetPlan, assessment: Assessment, memory: Any,
            mode: Mode = Mode.HEURISTIC, raw_input: str = "") -> ExecutionResult:
        out = ExecutionResult(type=assessment.input_type)
        attempted: List[str] = []

        while True:
            task = self.next_task(triage, attempted, out.completed_tasks)
            if task is None:
                break
            attempted.append(task.action)
            tb = plan.for_task(task.action)
            if tb is None:
                dbg("executor", "no budget for", task.action)
                continue
            res = self._run_task(task, tb, assessment, memory, mode, raw_input)
            out.results.append(res)
            if res.success:
                out.completed_tasks.append(task.action)

        blocked = [t.action for t in triage.priorities if t.action not in attempted]
        if blocked:
            dbg("executor", "not run, dependencies unmet:", blocked)

        out.success = any(r.success for r in out.results)
        out.timestamp = time.time()
        return out

    @staticmethod
    def next_task(triage: Triage, attempted: Sequence[str], completed: Sequence[str]) -> Optional[Task]:
        """First not-yet-attempted priority, in triage order, whose dependencies have all completed."""
        for t in triage.priorities:
            if t.action not in attempted and dependencies_satisfied(t, completed):
                return t
        return None

    def _run_task(self, task: Task, tb: TaskBudget, assessment: Assessment,
                  memory: Any, mode: Mode, raw_input: str) -> TaskResult:
        if self.should_skip(task, tb, assessment):
            dbg("executor", task.action, "skipped by learned policy")
            obs.inc_policy_skip(task.action)
            res = TaskResult(task=task.action, success=True, skipped=True,
                             result={"note": "Skipped based on learned policy"})
            emit(self.event_sink, make_task_event(self.cycle_fn(), task.type, res))
            return res

        self.governor.start_task(tb)
        ctx: Dict[str, Any] = {"memory": memory, "assessment": assessment, "mode": mode,
                               "raw_input": raw_input, "iteration": 1}
        handler = self.registry.route(task)
        results: List[Any] = []
        error: Optional[str] = None
        try:
            results.append(handler.run(task, ctx))
            while (len(results) < tb.max_iterations
                   and self.governor.is_within_budget(tb)
                   and self.governor.should_continue_iteration(len(results), results)
                   and not self._confident(results[-1])):
                ctx["iteration"] = len(results) + 1
                results.append(handler.run(task, ctx))
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            dbg("executor", task.action, "failed:", error)

        elapsed = self.governor.complete_task(tb)
        obs.observe_task(task.type, "error" if error else "ok", elapsed)
        if tb.exceeded:
            obs.inc_budget_exceeded(task.type)

        if error is not None:
            res = TaskResult(task=task.action, success=False, error=error, elapsed_ms=elapsed,
                             within_budget=not tb.exceeded, iterations=len(results))
        else:
            res = TaskResult(task=task.action, success=True, result=results[-1], elapsed_ms=elapsed,
                             within_budget=not tb.exceeded, iterations=len(results))
        emit(self.event_sink, make_task_event(self.cycle_fn(), task.type, res, exceeded=tb.exceeded))
        return res

    def _confident(self, result: Any) -> bool:
        if isinstance(result, dict) and isinstance(result.get("confidence"), (int, float)):
            return self.governor.should_abort_early(result["confidence"])
        return False

    def should_skip(self, task: Task, tb: TaskBudget, assessment: Assessment) -> bool:
        """
        Skip only a learned low-priority, low-value step, and only when stakes
        are low or the remaining budget cannot cover its typical cost. High
        stakes never skip. Any policy read failure means no skip.
        """
        if self.policy is None:
            return False
        try:
            sp = self.policy.step_policy(task.action)
            if not sp:
                return False
            if assessment.stakes is Stakes.HIGH:
                return False
            cfg = self.governor.cfg
            low_priority = int(sp.get("priority", 5)) <= int(cfg.SKIP_MAX_PRIORITY)
            low_value = float(sp.get("valueScore", 1.0)) < float(cfg.SKIP_MAX_VALUE)
            cost = float(sp.get("avgCostMs") or 100.0)
            tight = (self.governor.remaining_ms(tb) / cost) < 1.0 if cost > 0 else False
            return low_priority and low_value and (tight or assessment.stakes is Stakes.LOW)
        except Exception as e:
            dbg("executor", "policy read failed, not skipping:", e)
            return False


__all__ = ["Executor", "StepPolicy"]
