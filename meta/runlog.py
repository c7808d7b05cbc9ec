# meta/runlog.py
# Run records: sanitize one completed cycle into a compact RunRecord, append it, read the recent window, summarize it.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from core.utils import clamp_int, iso

from .schema import validate_run_record
from .store import StateStore

DAY_MS = 24 * 60 * 60 * 1000

_URGENCY = ("NOW", "SOON", "LATER")
_STAKES = ("low", "medium", "high")
_DIFFICULTY = ("easy", "moderate", "hard", "critical")
_PRECISION = ("strict", "flexible")
_STATUS = ("success", "partial", "fail")


def _to_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on", "y", "t"}
    return bool(v)


def _enum(v: Any, allowed, default: str, *, upper: bool = False) -> str:
    if hasattr(v, "value"):
        v = v.value
    s = str(v or "").strip()
    s = s.upper() if upper else s.lower()
    return s if s in allowed else default


def sanitize_run(run: Dict[str, Any], *, now_fn: Callable[[], float]) -> Dict[str, Any]:
    """
    Compact, bounded form of a caller-supplied run. Numbers are clamped,
    booleans coerced, unknown enum values replaced by the most permissive
    default. Inputs/outputs are expected to be summaries already.
    """
    run = run or {}
    a = run.get("assessment") or {}
    m = run.get("metrics") or {}
    o = run.get("outcome") or {}
    corrections = o.get("userCorrections", o.get("userCorrectionsCount", 0))
    return {
        "ts": iso(datetime.fromtimestamp(now_fn(), tz=timezone.utc)),
        "domain": str(run.get("domain") or "unknown"),
        "taskType": str(run.get("taskType") or "unknown"),
        "assessment": {
            "urgency": _enum(a.get("urgency"), _URGENCY, "LATER", upper=True),
            "stakes": _enum(a.get("stakes"), _STAKES, "low"),
            "difficulty": _enum(a.get("difficulty"), _DIFFICULTY, "easy"),
            "precision": _enum(a.get("precision"), _PRECISION, "flexible"),
        },
        "metrics": {
            "timeMs": clamp_int(m.get("timeMs", 0), 0, DAY_MS),
            "stepCount": clamp_int(m.get("stepCount", 0), 0, 10_000),
            "toolCalls": clamp_int(m.get("toolCalls", 0), 0, 10_000),
            "lookupUsed": _to_bool(m.get("lookupUsed")),
            "lookupCount": clamp_int(m.get("lookupCount", 0), 0, 1_000),
            "resetTriggered": _to_bool(m.get("resetTriggered")),
        },
        "outcome": {
            "status": _enum(o.get("status"), _STATUS, "partial"),
            "userCorrections": clamp_int(corrections, 0, 1_000),
        },
        "inputs": dict(run.get("inputs") or {}),
        "outputs": dict(run.get("outputs") or {}),
        "lookupImpact": dict(run.get("lookupImpact") or {}),
    }


class RunLog:
    """Append-only run log over a StateStore, with a bounded scan window for pattern mining."""

    def __init__(self, store: StateStore, *, max_recent_scan: int = 200) -> None:
        self.store = store
        self.max_recent_scan = int(max_recent_scan)

    def append(self, record: Dict[str, Any]) -> None:
        validate_run_record(record)
        self.store.append_run(record)

    def recent(self, n: Optional[int] = None) -> List[Dict[str, Any]]:
        try:
            return self.store.recent_runs(self.max_recent_scan if n is None else int(n))
        except Exception:
            return []


def summarize_runs(runs: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts by outcome plus timeMs / stepCount statistics over the scanned window."""
    statuses = [(r.get("outcome") or {}).get("status") for r in runs]
    times = np.array([float((r.get("metrics") or {}).get("timeMs", 0)) for r in runs], dtype=float)
    steps = np.array([float((r.get("metrics") or {}).get("stepCount", 0)) for r in runs], dtype=float)
    stats: Dict[str, Any] = {"mean": None, "p50": None, "p95": None}
    if times.size:
        stats = {
            "mean": round(float(np.mean(times)), 2),
            "p50": round(float(np.percentile(times, 50)), 2),
            "p95": round(float(np.percentile(times, 95)), 2),
        }
    return {
        "totalEntriesScanned": len(runs),
        "oldestEntry": runs[0].get("ts") if runs else None,
        "newestEntry": runs[-1].get("ts") if runs else None,
        "successCount": statuses.count("success"),
        "failCount": statuses.count("fail"),
        "partialCount": statuses.count("partial"),
        "timeMs": stats,
        "meanStepCount": round(float(np.mean(steps)), 2) if steps.size else None,
        "resetRate": round(sum(1 for r in runs if (r.get("metrics") or {}).get("resetTriggered")) / len(runs), 4)
        if runs else 0.0,
    }


__all__ = ["sanitize_run", "RunLog", "summarize_runs", "DAY_MS"]
