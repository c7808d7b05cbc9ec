# core/kernel.py
# Kernel: one cycle per request. capture -> assess -> (reset) -> triage -> budget -> execute -> remember -> meta record

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional

from memory.session import MemoryTiers
from observability import metrics as obs

from .assess import Assessor
from .budget import BudgetGovernor
from .classify import InputClassifier
from .config import KERNCFG, KernelConfig
from .events import EventKind, EventSink, emit, make_cycle_event
from .executor import Executor
from .handlers import HandlerRegistry
from .model import Assessment, BudgetPlan, ExecutionResult, Mode, Triage
from .reset import ResetController
from .triage import Triager
from .utils import dbg, now_ms, stable_hash, to_jsonable

# request context keys copied into working memory at capture
CONTEXT_KEYS = ("query", "ingredient", "conversion", "conversion_type", "pantry", "ingredients", "presentation_data")
LOOKUP_MARKERS = ("lookup", "search", "gather")


class Kernel:
    """
    The organism loop. Calls are serialized per instance; a detected
    coherence break resets working memory and re-runs the same input once,
    flagged with context["reset_triggered"].
    """

    def __init__(self, memory: Optional[MemoryTiers] = None, meta: Any = None, *,
                 config: Optional[KernelConfig] = None, mode: Any = None,
                 classifier: Optional[InputClassifier] = None, event_sink: Optional[EventSink] = None,
                 registry: Optional[HandlerRegistry] = None,
                 now_fn: Callable[[], float] = time.time, clock_ms: Callable[[], int] = now_ms) -> None:
        self.cfg = config or KERNCFG
        self.memory = memory if memory is not None else MemoryTiers.create(now_fn=now_fn)
        self.meta = meta
        self.mode = Mode.parse(mode if mode is not None else self.cfg.MODE)
        self.event_sink = event_sink
        self.clock_ms = clock_ms

        self.assessor = Assessor(classifier, now_fn=now_fn)
        self.triager = Triager(config=self.cfg, now_fn=now_fn)
        self.governor = BudgetGovernor(config=self.cfg, now_fn=clock_ms)
        self.reset_controller = ResetController(config=self.cfg, now_fn=now_fn)
        self.executor = Executor(
            self.governor,
            registry=registry,
            policy=meta.values if meta is not None else None,
            event_sink=event_sink,
            cycle_fn=lambda: self.cycle_count,
        )

        self.cycle_count = 0
        self._seq = 0
        self._lock = threading.RLock()
        self.last_plan: Optional[BudgetPlan] = None
        self._step_digests: Dict[str, str] = {}

    # ---------- public ----------

    def process(self, raw_input: Any, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with self._lock:
            t0 = self.clock_ms()
            self.cycle_count += 1
            emit(self.event_sink, make_cycle_event(EventKind.CycleStarted, self.cycle_count))
            try:
                out = self._cycle(str(raw_input if raw_input is not None else ""), dict(context or {}), t0)
            except Exception as e:
                elapsed = self.clock_ms() - t0
                err = f"{type(e).__name__}: {e}"
                dbg("kernel", "cycle failed:", err)
                obs.inc_cycle("error", elapsed)
                emit(self.event_sink, make_cycle_event(EventKind.CycleFailed, self.cycle_count, success=False,
                                                       elapsed_ms=elapsed, level="error", extra={"error": err}))
                return {"success": False, "error": err, "elapsed_ms": elapsed}

            obs.inc_cycle("success" if out["result"]["success"] else "fail", out["elapsed_ms"])
            emit(self.event_sink, make_cycle_event(
                EventKind.CycleFinished, self.cycle_count, input_type=out["assessment"]["input_type"],
                success=out["result"]["success"], elapsed_ms=out["elapsed_ms"],
            ))
            return out

    def set_mode(self, mode: Any) -> None:
        with self._lock:
            self.mode = Mode.parse(mode)
            dbg("kernel", "mode set to", self.mode.value)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "cycle_count": self.cycle_count,
                "mode": self.mode.value,
                "domain": self.cfg.DOMAIN,
                "memory": self.memory.sizes(),
                "stream": self.memory.stream.status(),
                "working": self.memory.working.status(),
                "long_term": self.memory.long_term.status(),
                "reset": self.reset_controller.stats(),
                "budget": self.governor.status(self.last_plan) if self.last_plan else None,
                "learning": self.meta.value_stats() if self.meta is not None else None,
            }

    # ---------- cycle ----------

    def _cycle(self, raw: str, ctx: Dict[str, Any], t0: int, *, retry: bool = False) -> Dict[str, Any]:
        # (a) capture
        self._seq += 1
        entry = self.memory.stream.add(raw, ctx, self._seq)
        self._capture_context(ctx)

        # (b) assess
        assessment = self.assessor.evaluate(entry, self.memory)

        # the retried pass never re-checks, so at most one reset per call
        if not retry:
            decision = self.reset_controller.evaluate(self.memory.working)
            if decision.triggered:
                self.reset_controller.perform(self.memory, decision.reasons)
                for reason in decision.reasons:
                    obs.inc_reset(reason)
                emit(self.event_sink, make_cycle_event(EventKind.ResetTriggered, self.cycle_count,
                                                       input_type=assessment.input_type, level="warning",
                                                       extra={"reasons": list(decision.reasons)}))
                return self._cycle(raw, dict(ctx, reset_triggered=True), t0, retry=True)

        # (c) triage
        triage = self.triager.prioritize(assessment, self.mode)
        self.memory.working.mark_plan_updated()

        # (d) budget
        plan = self.governor.allocate(triage, assessment)
        self.last_plan = plan

        # (e) execute
        self.memory.working.set_active_task({"description": raw[: int(self.cfg.QUERY_SUMMARY_CHARS)],
                                             "type": assessment.input_type})
        result = self.executor.run(triage, plan, assessment, self.memory, self.mode, raw)

        # (f) remember
        self._remember(raw, assessment, triage, result)
        elapsed = self.clock_ms() - t0

        # (g) meta record
        review, meta_error = self._record_meta(raw, assessment, result, elapsed, bool(ctx.get("reset_triggered")))
        self._emit_review_events(review, assessment.input_type)

        budget = plan.to_dict()
        budget["status"] = self.governor.status(plan)
        budget["tuning"] = self.governor.tuning_hints(plan)
        out: Dict[str, Any] = {
            "success": True,
            "result": result.to_dict(),
            "assessment": assessment.to_dict(),
            "triage": triage.to_dict(),
            "budget": budget,
            "elapsed_ms": elapsed,
            "cycle_count": self.cycle_count,
            "reset_triggered": bool(ctx.get("reset_triggered")),
            "review": review,
            "hints": (review or {}).get("hints") or {},
        }
        if elapsed > plan.cutoff_time_ms:
            out["emergency"] = self.governor.execute_emergency_action(plan, out["result"])
        if meta_error:
            out["meta_error"] = meta_error
        return out

    def _emit_review_events(self, review: Optional[Dict[str, Any]], input_type: str) -> None:
        if not review:
            return
        match = review.get("playbookMatch")
        if match:
            emit(self.event_sink, make_cycle_event(EventKind.PlaybookMatched, self.cycle_count, input_type=input_type,
                                                   extra={"playbook": match["playbookId"],
                                                          "use_count": match["useCount"]}))
        for promo in review.get("candidatePromotions") or []:
            emit(self.event_sink, make_cycle_event(EventKind.PlaybookDrafted, self.cycle_count, input_type=input_type,
                                                   extra={"draft": promo["draftId"], "count": promo["count"]}))

    def _capture_context(self, ctx: Dict[str, Any]) -> None:
        wm = self.memory.working
        captured = {k: ctx[k] for k in CONTEXT_KEYS if k in ctx}
        if "data" in ctx:
            captured["data_to_validate"] = ctx["data"]
            captured["data_to_store"] = ctx["data"]
        if captured:
            wm.update(captured)
            wm.mark_new_info()

    def _remember(self, raw: str, assessment: Assessment, triage: Triage, result: ExecutionResult) -> None:
        wm = self.memory.working
        values = [to_jsonable(r.result) for r in result.results]
        wm.update({
            "last_input": raw,
            "last_assessment": assessment.to_dict(),
            "last_priorities": triage.priority_actions(),
            "last_success": result.success,
        })
        wm.record_history({
            "action": assessment.input_type,
            "completed": result.success,
            "result": stable_hash(values),
        })
        active = wm.get_active_task() or {}
        wm.update({"task": dict(active, completed=True, successful=result.success,
                                method=",".join(result.completed_tasks))})

        self.memory.long_term.reinforce({
            "input_type": assessment.input_type,
            "result_type": result.completed_tasks[0] if result.completed_tasks else "none",
            "successful": result.success,
        })
        wm.decay()
        self.memory.long_term.demote_old()

    def _step_changes(self, result: ExecutionResult) -> Dict[str, bool]:
        """A step changed the outcome when it succeeded with a result that differs from its previous run."""
        out: Dict[str, bool] = {}
        for r in result.results:
            if r.skipped:
                continue
            digest = stable_hash(to_jsonable(r.result))
            prev = self._step_digests.get(r.task)
            self._step_digests[r.task] = digest
            out[r.task] = bool(r.success) and digest != prev
        return out

    def _record_meta(self, raw: str, assessment: Assessment, result: ExecutionResult, elapsed: int,
                     reset_triggered: bool):
        if self.meta is None:
            return None, None
        changed = self._step_changes(result)
        lookups: List[str] = [r.task for r in result.results if any(m in r.task for m in LOOKUP_MARKERS)]
        run = {
            "domain": self.cfg.DOMAIN,
            "taskType": assessment.input_type or "general",
            "assessment": assessment.levels(),
            "metrics": {
                "timeMs": elapsed,
                "stepCount": len(result.results),
                "toolCalls": sum(r.iterations for r in result.results),
                "lookupUsed": bool(lookups),
                "lookupCount": len(lookups),
                "resetTriggered": reset_triggered,
            },
            "outcome": {"status": "success" if result.success else "fail", "userCorrections": 0},
            "inputs": {"querySummary": raw[: int(self.cfg.QUERY_SUMMARY_CHARS)]},
        }
        if lookups:
            run["lookupImpact"] = {"decisionChanged": any(changed.get(t, False) for t in lookups)}
        try:
            review = self.meta.record_and_review(run)
            for r in result.results:
                if r.skipped:
                    continue
                self.meta.record_step(r.task, changed.get(r.task, False), r.elapsed_ms)
            return review, None
        except Exception as e:
            err = f"{type(e).__name__}: {e}"
            dbg("kernel", "meta record failed:", err)
            return None, err


__all__ = ["Kernel", "CONTEXT_KEYS", "LOOKUP_MARKERS"]
