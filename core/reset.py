# core/reset.py
# Reset controller: detects coherence breaks in working memory and performs the hard reset (snapshot, clear, collapse).

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import KERNCFG, KernelConfig
from .utils import dbg


class ResetState(str, Enum):
    STABLE = "STABLE"
    RESET_TRIGGERED = "RESET_TRIGGERED"


# reason tokens
CONTRADICTION = "contradictory_assumptions"
STAGNATION = "stagnation"
IGNORED_NEW_INFO = "new_info_not_incorporated"


@dataclass(frozen=True)
class ResetDecision:
    state: ResetState
    reasons: List[str] = field(default_factory=list)

    @property
    def triggered(self) -> bool:
        return self.state is ResetState.RESET_TRIGGERED

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state.value, "reasons": list(self.reasons)}


def _canon(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, default=str)


def results_identical(history: Sequence[Dict[str, Any]]) -> bool:
    """True when any two adjacent entries carry byte-identical results."""
    results = [_canon(h.get("result")) for h in history]
    return any(results[i] == results[i - 1] for i in range(1, len(results)))


def find_loop_patterns(actions: Sequence[Any]) -> List[Dict[str, Any]]:
    """A-B-A-B repeats in an action sequence."""
    out: List[Dict[str, Any]] = []
    for i in range(len(actions) - 3):
        if actions[i] == actions[i + 2] and actions[i + 1] == actions[i + 3]:
            out.append({"pattern": [actions[i], actions[i + 1]], "start": i, "repetitions": 2})
    return out


class ResetController:
    """
    Two states, re-evaluated every cycle from working memory.

    Reset history lives here rather than in working memory, since a reset
    clears working memory.
    """

    def __init__(self, *, config: Optional[KernelConfig] = None, now_fn: Callable[[], float] = time.time) -> None:
        self.cfg = config or KERNCFG
        self.now_fn = now_fn
        self.state = ResetState.STABLE
        self._resets: List[Dict[str, Any]] = []

    # ---------- detection ----------

    def evaluate(self, working: Any) -> ResetDecision:
        reasons: List[str] = []
        if self.has_contradictions(working):
            reasons.append(CONTRADICTION)
        if self.is_stagnating(working):
            reasons.append(STAGNATION)
        if self.is_ignoring_new_info(working):
            reasons.append(IGNORED_NEW_INFO)
        self.state = ResetState.RESET_TRIGGERED if reasons else ResetState.STABLE
        if reasons:
            dbg("reset", "reset condition triggered:", ", ".join(reasons))
        return ResetDecision(self.state, reasons)

    def should_reset(self, working: Any) -> bool:
        return self.evaluate(working).triggered

    @staticmethod
    def has_contradictions(working: Any) -> bool:
        return bool(working.has_contradictions())

    def is_stagnating(self, working: Any) -> bool:
        n = max(2, int(self.cfg.STAGNATION_N))
        history = working.history()
        if len(history) < n:
            return False
        recent = history[-n:]
        actions = {h.get("action") for h in recent}
        if len(actions) == 1 and not any(h.get("completed") for h in recent):
            dbg("reset", "loop detected, repeating", next(iter(actions)))
            return True
        if results_identical(recent):
            dbg("reset", "stagnation detected, results not changing")
            return True
        return False

    def is_ignoring_new_info(self, working: Any) -> bool:
        pending = working.new_info_pending_s()
        return pending is not None and pending > float(self.cfg.NEW_INFO_GRACE_S)

    # ---------- diagnosis ----------

    def diagnose(self, working: Any) -> Dict[str, Any]:
        contradictions: List[Dict[str, Any]] = []
        if working.has_contradictions():
            contradictions = [a.to_dict() for a in working.get_assumptions() if a.validated is False]
        loops = find_loop_patterns([h.get("action") for h in working.history()])
        if contradictions:
            rec = "clear_assumptions"
        elif loops:
            rec = "break_loop"
        else:
            rec = "clean_restart"
        return {"contradictions": contradictions, "loops": loops, "recommendation": rec}

    @staticmethod
    def suggest_correction(diagnosis: Dict[str, Any]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        if diagnosis.get("contradictions"):
            out.append({"action": "revalidate_assumptions", "priority": "high",
                        "reason": f"{len(diagnosis['contradictions'])} contradictory assumptions"})
        if diagnosis.get("loops"):
            out.append({"action": "try_alternative_approach", "priority": "high",
                        "reason": f"{len(diagnosis['loops'])} loop patterns"})
        if not out:
            out.append({"action": "continue", "priority": "low", "reason": "no critical issues detected"})
        return out

    @staticmethod
    def can_recover(working: Any) -> Dict[str, Any]:
        invalid = [a for a in working.get_assumptions() if a.validated is False]
        if len(invalid) == 1:
            return {"can_recover": True, "method": "invalidate_assumption", "target": invalid[0].to_dict()}
        history = working.history()
        if len(history) == 2:
            return {"can_recover": True, "method": "try_alternative", "target": history[-1]}
        return {"can_recover": False, "method": "full_reset"}

    # ---------- reset ----------

    def perform(self, memory: Any, reasons: Sequence[str] = ()) -> Dict[str, Any]:
        """
        Hard reset: snapshot working memory, keep its learnings in long-term
        memory, clear working memory, collapse the stream to a summary.
        """
        snapshot = memory.working.snapshot()
        stored_id: Optional[str] = None
        if snapshot.get("learned"):
            stored_id = memory.long_term.store(
                {"learned": snapshot["learned"], "session_duration_ms": snapshot["session_duration_ms"],
                 "reasons": list(reasons)},
                type="reset_snapshot",
            )
        self.track_reset(list(reasons), snapshot)
        memory.working.clear()
        summary = memory.stream.collapse_to_summary()
        self.state = ResetState.STABLE
        dbg("reset", "hard reset complete, learnings stored:", bool(stored_id))
        return {"snapshot_id": stored_id, "learned": len(snapshot.get("learned") or []), "summary": summary}

    def track_reset(self, reasons: List[str], snapshot: Dict[str, Any]) -> None:
        self._resets.append({"ts": self.now_fn(), "reasons": list(reasons),
                             "state_keys": sorted((snapshot.get("state") or {}).keys())})
        if len(self._resets) > 3:
            dbg("reset", "multiple resets recorded, may indicate a systemic issue")

    def stats(self) -> Dict[str, Any]:
        by_reason: Dict[str, int] = {}
        for r in self._resets:
            for reason in r["reasons"]:
                by_reason[reason] = by_reason.get(reason, 0) + 1
        gaps = [b["ts"] - a["ts"] for a, b in zip(self._resets, self._resets[1:])]
        return {
            "total_resets": len(self._resets),
            "reasons": by_reason,
            "avg_interval_s": (sum(gaps) / len(gaps)) if gaps else 0.0,
            "last_reset": dict(self._resets[-1]) if self._resets else None,
            "state": self.state.value,
        }


__all__ = [
    "ResetController", "ResetDecision", "ResetState", "results_identical", "find_loop_patterns",
    "CONTRADICTION", "STAGNATION", "IGNORED_NEW_INFO",
]
