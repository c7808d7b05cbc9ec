# memory/working.py
# Working memory: the current session's beliefs (state + assumptions), active task, cycle history and new-info bookkeeping.

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .config import MEMCFG, MemoryConfig
from .models import Assumption

__all__ = ["WorkingMemory", "extract_topic", "TOPIC_KEYWORDS"]

NowFn = Callable[[], float]

TOPIC_KEYWORDS = ("ingredient", "temperature", "time", "method", "tool")


def extract_topic(text: str) -> str:
    lower = (text or "").lower()
    for kw in TOPIC_KEYWORDS:
        if kw in lower:
            return kw
    return "general"


class WorkingMemory:
    """
    Mutable "what we currently believe" for one session.

    Every state key carries its own write timestamp so decay() can drop
    individual entries. clear() wipes everything, including history and
    the new-info flags.
    """

    def __init__(self, *, config: Optional[MemoryConfig] = None, now_fn: NowFn = time.time) -> None:
        self.cfg = config or MEMCFG
        self.now_fn = now_fn
        self._lock = threading.RLock()
        self.session_start = self.now_fn()
        self._reset_fields()

    def _reset_fields(self) -> None:
        self.state: Dict[str, Any] = {}
        self._stamps: Dict[str, float] = {}
        self.assumptions: List[Assumption] = []
        self.active_task: Optional[Dict[str, Any]] = None
        self._history: List[Dict[str, Any]] = []
        self.new_info_received = False
        self.new_info_at: Optional[float] = None
        self.plan_updated = False
        self.plan_updated_at: Optional[float] = None
        self.last_update = self.now_fn()

    # ---------- state ----------

    def update(self, data: Dict[str, Any]) -> None:
        data = data or {}
        with self._lock:
            now = self.now_fn()
            for k, v in data.items():
                self.state[k] = v
                self._stamps[k] = now
            if data.get("assumption"):
                self.add_assumption(str(data["assumption"]), float(data.get("confidence", 0.8)))
            if isinstance(data.get("task"), dict):
                self.active_task = dict(data["task"], updated_at=now)
            self.last_update = now

    def get(self, key: Optional[str] = None, default: Any = None) -> Any:
        with self._lock:
            if key is None:
                return dict(self.state)
            return self.state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self.now_fn()
            self.state[key] = value
            self._stamps[key] = now
            self.last_update = now

    # ---------- assumptions ----------

    def add_assumption(self, text: str, confidence: float = 0.8) -> Assumption:
        with self._lock:
            a = Assumption(text=text, confidence=float(confidence), timestamp=self.now_fn())
            self.assumptions.append(a)
            return a

    def validate_assumption(self, index: int, valid: bool) -> bool:
        with self._lock:
            if 0 <= index < len(self.assumptions):
                self.assumptions[index].validated = bool(valid)
                self.assumptions[index].validated_at = self.now_fn()
                return True
            return False

    def get_assumptions(self) -> List[Assumption]:
        with self._lock:
            return list(self.assumptions)

    def has_contradictions(self) -> bool:
        """True when one inferred topic has assumptions validated both True and False."""
        with self._lock:
            topics: Dict[str, set] = {}
            for a in self.assumptions:
                if a.validated is None:
                    continue
                topics.setdefault(extract_topic(a.text), set()).add(a.validated)
            return any(len(v) > 1 for v in topics.values())

    # ---------- active task ----------

    def set_active_task(self, task: Dict[str, Any]) -> None:
        with self._lock:
            self.active_task = dict(task or {}, started_at=self.now_fn())
            self.last_update = self.now_fn()

    def get_active_task(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return dict(self.active_task) if self.active_task else None

    def clear_active_task(self) -> None:
        with self._lock:
            self.active_task = None
            self.last_update = self.now_fn()

    # ---------- history / new info ----------

    def record_history(self, entry: Dict[str, Any]) -> None:
        with self._lock:
            self._history.append(dict(entry, ts=self.now_fn()))
            overflow = len(self._history) - max(1, int(self.cfg.WORKING_HISTORY_MAX))
            if overflow > 0:
                del self._history[:overflow]

    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(h) for h in self._history]

    def mark_new_info(self) -> None:
        with self._lock:
            self.new_info_received = True
            self.new_info_at = self.now_fn()
            self.plan_updated = False

    def mark_plan_updated(self) -> None:
        with self._lock:
            self.plan_updated = True
            self.plan_updated_at = self.now_fn()

    def new_info_pending_s(self) -> Optional[float]:
        """Seconds since new info arrived without a plan update, or None."""
        with self._lock:
            if not self.new_info_received or self.plan_updated or self.new_info_at is None:
                return None
            return self.now_fn() - self.new_info_at

    # ---------- lifecycle ----------

    def decay(self, now: Optional[float] = None) -> int:
        """Drop state keys and assumptions older than the decay threshold. Returns how many were dropped."""
        with self._lock:
            now = self.now_fn() if now is None else now
            limit = self.cfg.WORKING_DECAY_S
            old_keys = [k for k, ts in self._stamps.items() if (now - ts) > limit]
            for k in old_keys:
                self.state.pop(k, None)
                self._stamps.pop(k, None)
            before = len(self.assumptions)
            self.assumptions = [a for a in self.assumptions if (now - a.timestamp) <= limit]
            return len(old_keys) + (before - len(self.assumptions))

    def extract_learnings(self) -> List[Dict[str, Any]]:
        with self._lock:
            out: List[Dict[str, Any]] = []
            for a in self.assumptions:
                if a.validated is True and a.confidence > self.cfg.LEARNING_MIN_CONFIDENCE:
                    out.append({"type": "assumption", "content": a.text, "confidence": a.confidence})
            t = self.active_task
            if t and t.get("completed") and t.get("successful"):
                out.append({"type": "task", "content": t.get("description") or "Task completed",
                            "method": t.get("method")})
            return out

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": dict(self.state),
                "assumptions": [a.to_dict() for a in self.assumptions],
                "active_task": dict(self.active_task) if self.active_task else None,
                "session_duration_ms": int((self.now_fn() - self.session_start) * 1000),
                "learned": self.extract_learnings(),
            }

    def clear(self) -> None:
        with self._lock:
            self._reset_fields()

    def size(self) -> int:
        with self._lock:
            return len(self.state) + len(self.assumptions) + (1 if self.active_task else 0)

    def is_stale(self) -> bool:
        return (self.now_fn() - self.last_update) > self.cfg.WORKING_DECAY_S

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state_keys": len(self.state),
                "assumptions": len(self.assumptions),
                "has_active_task": self.active_task is not None,
                "active_task": (self.active_task or {}).get("description"),
                "session_age_s": self.now_fn() - self.session_start,
                "last_update": self.last_update,
                "history": len(self._history),
                "has_contradictions": self.has_contradictions(),
            }
