# meta/values.py
# Value tracker: per-step EMA of "did this step change the outcome", hysteresis-gated priority reduction, cost EMA.

from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from core.utils import dbg

from .config import METACFG, MetaConfig
from .store import StateStore

POLICY_DOC = "policy"


class ValueTracker:
    """
    Policy document layout: {"stepValues": {name: {...}}, "thresholds": {...}, "lastUpdated": ms}.

    A step is scored only after VALUE_MIN_SAMPLES uses. Priority drops by
    PRIORITY_REDUCTION (floor 1) once the score has been low for
    VALUE_LOW_STREAK consecutive scored observations and the step has not
    changed the outcome for as many consecutive uses.
    """

    def __init__(self, store: StateStore, *, config: Optional[MetaConfig] = None,
                 now_fn: Callable[[], float] = time.time) -> None:
        self.cfg = config or METACFG
        self.store = store
        self.now_fn = now_fn
        self._lock = threading.RLock()
        self.doc = self._load()

    def _defaults(self) -> Dict[str, Any]:
        return {
            "stepValues": {},
            "thresholds": {
                "lowValueTrigger": int(self.cfg.VALUE_LOW_STREAK),
                "minValueScore": float(self.cfg.VALUE_LOW_THRESHOLD),
                "priorityReduction": int(self.cfg.PRIORITY_REDUCTION),
            },
            "lastUpdated": int(self.now_fn() * 1000),
        }

    def _load(self) -> Dict[str, Any]:
        base = self._defaults()
        try:
            doc = self.store.load(POLICY_DOC)
        except Exception as e:
            dbg("values", "policy load failed, starting empty:", e, var="METALOOP_DEBUG")
            doc = None
        if isinstance(doc, dict):
            if isinstance(doc.get("stepValues"), dict):
                base["stepValues"] = doc["stepValues"]
            if isinstance(doc.get("thresholds"), dict):
                base["thresholds"].update(doc["thresholds"])
        return base

    def _save(self) -> None:
        self.doc["lastUpdated"] = int(self.now_fn() * 1000)
        self.store.save(POLICY_DOC, self.doc)

    def _new_step(self) -> Dict[str, Any]:
        return {
            "totalUses": 0,
            "changedOutcome": 0,
            "consecutiveNonChanges": 0,
            "consecutiveLowValue": 0,
            "priority": int(self.cfg.DEFAULT_PRIORITY),
            "lastUsed": None,
            "valueScore": 1.0,
            "history": [],
            "avgCostMs": float(self.cfg.DEFAULT_COST_MS),
            "priorityReductions": 0,
        }

    # ---------- recording ----------

    def record_step(self, name: str, changed: bool, cost_ms: Optional[float] = None) -> Dict[str, Any]:
        """Value observation plus (optionally) a cost sample, persisted once."""
        with self._lock:
            step = self._observe(name, bool(changed))
            if cost_ms is not None:
                self._observe_cost(step, float(cost_ms))
            self._save()
            return dict(step)

    def update_step_cost(self, name: str, cost_ms: float) -> None:
        """Cost samples only count for steps already tracked."""
        with self._lock:
            step = self.doc["stepValues"].get(name)
            if step is None:
                return
            self._observe_cost(step, float(cost_ms))
            self._save()

    def _observe(self, name: str, changed: bool) -> Dict[str, Any]:
        step = self.doc["stepValues"].setdefault(name, self._new_step())
        now_ms = int(self.now_fn() * 1000)
        step["totalUses"] += 1
        step["lastUsed"] = now_ms
        if changed:
            step["changedOutcome"] += 1
            step["consecutiveNonChanges"] = 0
        else:
            step["consecutiveNonChanges"] += 1
        step["history"].append({"ts": now_ms, "changed": changed})
        del step["history"][:-max(1, int(self.cfg.VALUE_HISTORY_MAX))]

        if step["totalUses"] >= int(self.cfg.VALUE_MIN_SAMPLES):
            alpha = float(self.cfg.VALUE_EMA_ALPHA)
            step["valueScore"] = alpha * (1.0 if changed else 0.0) + (1 - alpha) * float(step["valueScore"])
            th = self.doc["thresholds"]
            if step["valueScore"] < float(th["minValueScore"]):
                step["consecutiveLowValue"] += 1
            else:
                step["consecutiveLowValue"] = 0
            streak = int(th["lowValueTrigger"])
            if step["consecutiveLowValue"] >= streak and step["consecutiveNonChanges"] >= streak:
                self._reduce_priority(name, step)
        return step

    def _observe_cost(self, step: Dict[str, Any], cost_ms: float) -> None:
        alpha = float(self.cfg.VALUE_EMA_ALPHA)
        prev = float(step.get("avgCostMs") or self.cfg.DEFAULT_COST_MS)
        step["avgCostMs"] = alpha * max(0.0, cost_ms) + (1 - alpha) * prev

    def _reduce_priority(self, name: str, step: Dict[str, Any]) -> None:
        old = int(step["priority"])
        step["priority"] = max(1, old - int(self.doc["thresholds"]["priorityReduction"]))
        if step["priority"] != old:
            step["priorityReductions"] = int(step.get("priorityReductions", 0)) + 1
            step["lastReduction"] = int(self.now_fn() * 1000)
            step["reductionReason"] = f"{step['consecutiveNonChanges']} consecutive uses did not change outcome"
            dbg("values", f"reduced priority for {name!r} {old} -> {step['priority']}", var="METALOOP_DEBUG")

    # ---------- queries ----------

    def step_policy(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            step = self.doc["stepValues"].get(name)
            return copy.deepcopy(step) if step is not None else None

    def get_step_priority(self, name: str) -> int:
        step = self.step_policy(name)
        return int(step["priority"]) if step else int(self.cfg.DEFAULT_PRIORITY)

    def get_step_value_score(self, name: str) -> float:
        step = self.step_policy(name)
        return float(step["valueScore"]) if step else 1.0

    def get_step_cost_estimate(self, name: str) -> float:
        step = self.step_policy(name)
        return float(step.get("avgCostMs") or self.cfg.DEFAULT_COST_MS) if step else float(self.cfg.DEFAULT_COST_MS)

    def low_value_steps(self) -> List[Dict[str, Any]]:
        with self._lock:
            th = float(self.doc["thresholds"]["minValueScore"])
            out = [
                {"step": n, "valueScore": s["valueScore"], "priority": s["priority"], "totalUses": s["totalUses"]}
                for n, s in self.doc["stepValues"].items()
                if s["totalUses"] >= int(self.cfg.VALUE_MIN_SAMPLES) and s["valueScore"] < th
            ]
            return sorted(out, key=lambda d: (d["valueScore"], d["step"]))

    def value_stats(self) -> Dict[str, Any]:
        with self._lock:
            steps = self.doc["stepValues"]
            scores = [float(s["valueScore"]) for s in steps.values()]
            return {
                "trackedSteps": len(steps),
                "totalUses": sum(int(s["totalUses"]) for s in steps.values()),
                "avgValueScore": (sum(scores) / len(scores)) if scores else None,
                "reducedSteps": sorted(n for n, s in steps.items() if s["priority"] < int(self.cfg.DEFAULT_PRIORITY)),
            }

    def reset_step_priority(self, name: str) -> bool:
        with self._lock:
            step = self.doc["stepValues"].get(name)
            if step is None:
                return False
            step["priority"] = int(self.cfg.DEFAULT_PRIORITY)
            step["consecutiveLowValue"] = 0
            step["consecutiveNonChanges"] = 0
            self._save()
            return True


__all__ = ["ValueTracker", "POLICY_DOC"]
