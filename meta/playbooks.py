# meta/playbooks.py
# Playbooks: draft construction, validated loading of active playbooks, usage statistics and staleness.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.utils import dbg, iso, parse_iso

from .schema import validate_active_playbook, validate_draft
from .store import StateStore

DAY_S = 24 * 60 * 60

DRAFT_STEPS = (
    ("Orient", "Classify request and constraints"),
    ("Triage", "Pick top priorities and dependencies"),
    ("Execute", "Run minimal action sequence"),
    ("Validate", "Check outcome criteria"),
)
SUCCESS_CRITERIA = ["Outcome status == success", "No user corrections in strict mode"]


def draft_id(key: str) -> str:
    return "pb_" + key.replace("|", "_")


def build_draft(run: Dict[str, Any], key: str, count: int, *, created_at: str) -> Dict[str, Any]:
    d = {
        "id": draft_id(key),
        "version": "0.1",
        "createdAt": created_at,
        "domain": run.get("domain"),
        "taskType": run.get("taskType"),
        "trigger": {
            "description": "Auto-drafted from repeated successful runs",
            "patternKey": key,
            "minSuccessCount": int(count),
            "inputsExample": dict(run.get("inputs") or {}),
        },
        "steps": [{"name": n, "notes": notes} for n, notes in DRAFT_STEPS],
        "validation": {
            "precision": (run.get("assessment") or {}).get("precision", "flexible"),
            "successCriteria": list(SUCCESS_CRITERIA),
        },
        "notes": {"whyPromoted": "Same pattern succeeded repeatedly; captured as a reusable playbook draft."},
    }
    validate_draft(d)
    return d


def load_active(store: StateStore) -> List[Dict[str, Any]]:
    """Active playbooks that pass schema validation, in location order. Invalid files are skipped."""
    out: List[Dict[str, Any]] = []
    try:
        entries = store.list_active()
    except Exception as e:
        dbg("playbooks", "active playbook listing failed:", e, var="METALOOP_DEBUG")
        return out
    for loc, doc in entries:
        if doc is None:
            dbg("playbooks", "skipping unparseable playbook", loc, var="METALOOP_DEBUG")
            continue
        try:
            validate_active_playbook(doc)
        except ValueError as e:
            dbg("playbooks", "skipping invalid playbook", loc, "-", e, var="METALOOP_DEBUG")
            continue
        out.append(dict(doc, _location=loc))
    return out


class PlaybookUsage:
    """
    Usage bookkeeping kept inside the meta-state document:
    activePlaybookUsageCounts, firstUsedAt, lastUsedAt, usageHistory (bounded).
    """

    def __init__(self, state: Dict[str, Any], *, now_fn: Callable[[], float],
                 history_max: int = 100, staleness_days: int = 30) -> None:
        self.state = state
        self.now_fn = now_fn
        self.history_max = int(history_max)
        self.staleness_days = int(staleness_days)

    def _now_iso(self) -> str:
        return iso(datetime.fromtimestamp(self.now_fn(), tz=timezone.utc))

    def record_use(self, playbook_id: str, key: str) -> Dict[str, Any]:
        now = self._now_iso()
        counts = self.state["activePlaybookUsageCounts"]
        counts[playbook_id] = int(counts.get(playbook_id, 0)) + 1
        self.state["firstUsedAt"].setdefault(playbook_id, now)
        self.state["lastUsedAt"][playbook_id] = now
        hist = self.state["usageHistory"].setdefault(playbook_id, [])
        hist.append(now)
        del hist[:-self.history_max]
        return {
            "playbookId": playbook_id,
            "patternKey": key,
            "useCount": counts[playbook_id],
            "firstUsedAt": self.state["firstUsedAt"][playbook_id],
            "lastUsedAt": now,
        }

    def stats(self, playbook_id: str, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """Usage summary; day counts are measured at `now` (defaults to the clock)."""
        count = int(self.state["activePlaybookUsageCounts"].get(playbook_id, 0))
        if not count:
            return None
        first = self.state["firstUsedAt"].get(playbook_id)
        last = self.state["lastUsedAt"].get(playbook_id)
        history = list(self.state["usageHistory"].get(playbook_id) or [])

        stamps = [parse_iso(h) for h in history]
        stamps = [s for s in stamps if s is not None]
        avg_ms: Optional[int] = None
        if len(stamps) >= 2:
            gaps = [(b - a).total_seconds() * 1000 for a, b in zip(stamps, stamps[1:])]
            avg_ms = int(round(sum(gaps) / len(gaps)))

        return {
            "playbookId": playbook_id,
            "useCount": count,
            "firstUsedAt": first,
            "lastUsedAt": last,
            "daysSinceFirstUse": self._days_since(first, now),
            "daysSinceLastUse": self._days_since(last, now),
            "avgIntervalMs": avg_ms,
            "avgIntervalHours": round(avg_ms / 3_600_000, 1) if avg_ms else None,
            "historyLength": len(history),
        }

    def _days_since(self, ts: Optional[str], now: Optional[float] = None) -> Optional[int]:
        dt = parse_iso(ts)
        if dt is None:
            return None
        now = self.now_fn() if now is None else now
        return int(round((now - dt.timestamp()) / DAY_S))

    def is_stale(self, playbook_id: str, now: Optional[float] = None) -> bool:
        """Unused for longer than the threshold. Observational only; untracked playbooks are never stale."""
        st = self.stats(playbook_id, now)
        if not st or st["daysSinceLastUse"] is None:
            return False
        return st["daysSinceLastUse"] > self.staleness_days


__all__ = ["draft_id", "build_draft", "load_active", "PlaybookUsage", "DRAFT_STEPS", "SUCCESS_CRITERIA"]
