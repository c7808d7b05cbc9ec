# meta/metaloop.py
# Meta-loop: logs every completed cycle, reviews it (waste flags, lookup bias, playbook drafts/matches), tracks step value.

from __future__ import annotations

import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.utils import dbg_enabled, iso
from observability import metrics as obs

from . import audit
from .config import METACFG, MetaConfig
from .normalize import pattern_key
from .playbooks import PlaybookUsage, build_draft, load_active
from .runlog import RunLog, sanitize_run
from .store import FileStateStore, StateStore
from .values import ValueTracker

STATE_DOC = "meta_state"
STATE_KEYS = ("lookupBias", "draftedKeys", "activePlaybookUsageCounts", "firstUsedAt", "lastUsedAt", "usageHistory")

# waste flag tokens
LOOKUP_NO_CHANGE = "lookup_did_not_change_decision"
PRECISION_CORRECTED = "precision_mode_had_user_corrections"
TOO_MANY_STEPS = "too_many_steps_for_low_stakes"
RESET_TRIGGERED = "reset_triggered"

LOW_STAKES_STEP_LIMIT = 12


class MetaLoop:
    """
    Observer/learning layer. Only appends run records, rewrites its own
    state documents and writes drafts; it never changes how the kernel
    assesses or executes. Consumers read lookup bias, step policy and
    response hints and decide for themselves.
    """

    def __init__(self, store: Optional[StateStore] = None, *, config: Optional[MetaConfig] = None,
                 now_fn: Callable[[], float] = time.time) -> None:
        self.cfg = config or METACFG
        self.cfg.normalized()
        self.store: StateStore = store if store is not None else FileStateStore(self.cfg)
        self.now_fn = now_fn
        self._lock = threading.RLock()

        self.runlog = RunLog(self.store, max_recent_scan=self.cfg.MAX_RECENT_SCAN)
        self.values = ValueTracker(self.store, config=self.cfg, now_fn=now_fn)
        self.state: Dict[str, Any] = self._load_state()
        self.usage = PlaybookUsage(self.state, now_fn=now_fn, history_max=self.cfg.USAGE_HISTORY_MAX,
                                   staleness_days=self.cfg.STALENESS_DAYS)
        self.active_playbooks: List[Dict[str, Any]] = load_active(self.store)

    @property
    def promote_after(self) -> int:
        return int(self.cfg.PROMOTE_AFTER)

    @property
    def max_recent_scan(self) -> int:
        return int(self.cfg.MAX_RECENT_SCAN)

    @property
    def staleness_days(self) -> int:
        return int(self.cfg.STALENESS_DAYS)

    # ---------- state ----------

    def _load_state(self) -> Dict[str, Any]:
        try:
            doc = self.store.load(STATE_DOC) or {}
        except Exception as e:
            self._dbg("meta state unreadable, starting empty:", e)
            doc = {}
        return {k: dict(doc.get(k) or {}) if isinstance(doc.get(k), dict) else {} for k in STATE_KEYS}

    def _save_state(self) -> None:
        self.store.save(STATE_DOC, self.state)

    def _now_iso(self) -> str:
        return iso(datetime.fromtimestamp(self.now_fn(), tz=timezone.utc))

    def _dbg(self, *a: Any) -> None:
        if self.cfg.DEBUG or dbg_enabled("METALOOP_DEBUG"):
            try:
                print("[metaloop]", *a, file=sys.stderr, flush=True)
            except Exception:
                pass

    # ---------- record / review ----------

    def record_and_review(self, run: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            safe = sanitize_run(run, now_fn=self.now_fn)
            self.runlog.append(safe)
            return self.after_action_review(safe)

    def after_action_review(self, run: Dict[str, Any]) -> Dict[str, Any]:
        """Review a sanitized run: playbook match, waste flags, lookup bias, draft promotion."""
        with self._lock:
            waste: List[str] = []
            adjustments: List[Dict[str, Any]] = []
            promotions: List[Dict[str, Any]] = []
            key = self.pattern_key(run)

            match: Optional[Dict[str, Any]] = None
            pb = self.find_active(key)
            if pb is not None:
                usage = self.usage.record_use(pb["id"], key)
                hints = pb.get("responseHints") or {}
                match = {
                    "playbookId": pb["id"],
                    "patternKey": key,
                    "useCount": usage["useCount"],
                    "stepNames": [s.get("name") for s in pb.get("steps") or []],
                    "responsePrefix": hints.get("prefix"),
                    "responseOutline": hints.get("outline"),
                }
                obs.inc_playbook_match(pb["id"])
                self._dbg(f"active playbook {pb['id']!r} matched (use #{usage['useCount']})")

            impact = run.get("lookupImpact") or {}
            if isinstance(impact.get("decisionChanged"), bool):
                changed = impact["decisionChanged"]
            else:
                changed = self.infer_lookup_impact(run)

            m, a, o = run["metrics"], run["assessment"], run["outcome"]
            if m["lookupUsed"] and not changed:
                waste.append(LOOKUP_NO_CHANGE)
            if o["userCorrections"] > 0 and a["precision"] == "strict":
                waste.append(PRECISION_CORRECTED)
            if m["stepCount"] > LOW_STAKES_STEP_LIMIT and a["stakes"] == "low":
                waste.append(TOO_MANY_STEPS)
            if m["resetTriggered"]:
                waste.append(RESET_TRIGGERED)

            bias_key = f"{run['domain']}|{run['taskType']}"
            prev = float(self.state["lookupBias"].get(bias_key, 0.0))
            new = prev
            step = float(self.cfg.BIAS_STEP)
            if m["lookupUsed"] and not changed:
                new -= step
            if not m["lookupUsed"] and o["status"] == "fail":
                new += step
            limit = float(self.cfg.BIAS_LIMIT)
            new = max(-limit, min(limit, new))
            if new != prev:
                self.state["lookupBias"][bias_key] = new
                adjustments.append({"type": "lookup_bias_update", "key": bias_key, "from": prev, "to": new})
                self._dbg(f"lookup bias {bias_key!r}: {prev:.2f} -> {new:.2f}")

            if o["status"] == "success" and key not in self.state["draftedKeys"]:
                count = self.count_recent_matches(key, run["domain"], run["taskType"])
                if count >= self.promote_after:
                    draft = build_draft(run, key, count, created_at=self._now_iso())
                    where = self.store.write_draft(draft["id"], draft)
                    self.state["draftedKeys"][key] = {"draftedAt": self._now_iso(), "draftPath": where}
                    promotions.append({"type": "playbook_draft", "patternKey": key, "count": count,
                                       "draftPath": where, "draftId": draft["id"]})
                    obs.inc_playbook_draft()
                    self._dbg(f"drafted playbook {draft['id']!r} ({count} successful runs) at {where}")

            self._save_state()

            return {
                "ts": self._now_iso(),
                "domain": run["domain"],
                "taskType": run["taskType"],
                "patternKey": key,
                "decisionChangedByLookup": changed,
                "wasteFlags": waste,
                "policyAdjustments": adjustments,
                "candidatePromotions": promotions,
                "playbookMatch": match,
                "hints": self._hints(match),
            }

    @staticmethod
    def _hints(match: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not match:
            return {}
        return {
            "prefix": match["responsePrefix"],
            "outline": match["responseOutline"],
            "step_names": list(match["stepNames"]),
        }

    @staticmethod
    def infer_lookup_impact(run: Dict[str, Any]) -> bool:
        """Crude: a lookup helped only in strict mode with no user corrections."""
        if not run["metrics"]["lookupUsed"]:
            return False
        if run["assessment"]["precision"] == "strict":
            return run["outcome"]["userCorrections"] == 0
        return False

    def get_lookup_bias(self, domain: str, task_type: str) -> float:
        return float(self.state["lookupBias"].get(f"{domain}|{task_type}", 0.0))

    # ---------- patterns ----------

    @staticmethod
    def pattern_key(run: Dict[str, Any]) -> str:
        return pattern_key(run)

    def count_recent_matches(self, key: str, domain: str, task_type: str) -> int:
        n = 0
        for r in self.runlog.recent():
            if r.get("domain") != domain or r.get("taskType") != task_type:
                continue
            if (r.get("outcome") or {}).get("status") == "success" and pattern_key(r) == key:
                n += 1
        return n

    # ---------- active playbooks ----------

    def reload_active_playbooks(self) -> int:
        """Re-read active playbooks from the store; returns how many passed validation."""
        with self._lock:
            self.active_playbooks = load_active(self.store)
            return len(self.active_playbooks)

    def find_active(self, key: str) -> Optional[Dict[str, Any]]:
        for pb in self.active_playbooks:
            if pb["trigger"]["patternKey"] == key:
                return pb
        return None

    def record_playbook_use(self, playbook_id: str, key: str) -> Dict[str, Any]:
        with self._lock:
            usage = self.usage.record_use(playbook_id, key)
            self._save_state()
            return usage

    def playbook_stats(self, playbook_id: str) -> Optional[Dict[str, Any]]:
        return self.usage.stats(playbook_id)

    def is_playbook_stale(self, playbook_id: str) -> bool:
        return self.usage.is_stale(playbook_id)

    def active_playbooks_with_stats(self, now: Optional[float] = None) -> List[Dict[str, Any]]:
        out = []
        for pb in self.active_playbooks:
            out.append({
                "id": pb["id"],
                "domain": pb.get("domain"),
                "taskType": pb.get("taskType"),
                "patternKey": pb["trigger"]["patternKey"],
                "description": pb["trigger"].get("description"),
                "stats": self.usage.stats(pb["id"], now) or {"useCount": 0},
                "isStale": self.usage.is_stale(pb["id"], now),
                "responsePrefix": (pb.get("responseHints") or {}).get("prefix"),
            })
        return out

    def draft_playbooks(self) -> List[Dict[str, Any]]:
        out = []
        try:
            entries = self.store.list_drafts()
        except Exception:
            return out
        for loc, d in entries:
            if not isinstance(d, dict):
                continue
            trig = d.get("trigger") or {}
            info = self.state["draftedKeys"].get(trig.get("patternKey")) or {}
            out.append({
                "id": d.get("id"),
                "domain": d.get("domain"),
                "taskType": d.get("taskType"),
                "patternKey": trig.get("patternKey"),
                "minSuccessCount": trig.get("minSuccessCount", 0),
                "createdAt": d.get("createdAt"),
                "location": loc,
                "draftedAt": info.get("draftedAt"),
            })
        return out

    def stale_playbooks(self, now: Optional[float] = None) -> List[Dict[str, Any]]:
        return [
            {"id": pb["id"], "domain": pb.get("domain"), "taskType": pb.get("taskType"),
             "patternKey": pb["trigger"]["patternKey"], "stats": self.usage.stats(pb["id"], now)}
            for pb in self.active_playbooks if self.usage.is_stale(pb["id"], now)
        ]

    # ---------- value tracking passthrough ----------

    def step_policy(self, name: str) -> Optional[Dict[str, Any]]:
        return self.values.step_policy(name)

    def record_step(self, name: str, changed: bool, cost_ms: Optional[float] = None) -> Dict[str, Any]:
        return self.values.record_step(name, changed, cost_ms)

    def low_value_steps(self) -> List[Dict[str, Any]]:
        return self.values.low_value_steps()

    def value_stats(self) -> Dict[str, Any]:
        return self.values.value_stats()

    def reset_step_priority(self, name: str) -> bool:
        return self.values.reset_step_priority(name)

    # ---------- introspection ----------

    def audit_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return audit.build_audit_snapshot(self)

    def debug_snapshot(self, limit: int = 10) -> Dict[str, Any]:
        with self._lock:
            return audit.build_debug_snapshot(self, limit)


__all__ = [
    "MetaLoop", "STATE_DOC", "STATE_KEYS",
    "LOOKUP_NO_CHANGE", "PRECISION_CORRECTED", "TOO_MANY_STEPS", "RESET_TRIGGERED",
]
