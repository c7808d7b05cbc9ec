# memory/longterm.py
# Long-term memory: typed in-process knowledge base with reinforcement-driven promotion and age-based demotion.

from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .config import MEMCFG, MemoryConfig
from .models import LongTermEntry

__all__ = ["LongTermMemory"]

NowFn = Callable[[], float]

_INDEXED_TYPES = ("recipe", "preference", "pattern", "source", "playbook")


def _pattern_id(pattern: Dict[str, Any]) -> str:
    try:
        return json.dumps(pattern, sort_keys=True, separators=(",", ":"), default=str)
    except Exception:
        return str(sorted((pattern or {}).items()))


class LongTermMemory:
    """
    Durable knowledge (recipes, preferences, trusted sources, playbooks, learned patterns).

    Promotion: reinforce() counts uses of the same pattern inside a rolling
    window; the PROMOTION_USES-th use stores it once as a promoted pattern.
    Demotion: demote_old() removes entries not accessed for DEMOTION_AGE_S
    unless they are protected.
    """

    def __init__(self, *, config: Optional[MemoryConfig] = None, now_fn: NowFn = time.time) -> None:
        self.cfg = config or MEMCFG
        self.now_fn = now_fn
        self._lock = threading.RLock()
        self._entries: Dict[str, LongTermEntry] = {}
        self._uses: Dict[str, List[float]] = {}
        self._promoted: Dict[str, str] = {}

    # ---------- write ----------

    def store(self, payload: Dict[str, Any], *, type: Optional[str] = None, protected: bool = False,
              promoted: bool = False) -> str:
        with self._lock:
            entry = LongTermEntry.new(payload, type=type, now=self.now_fn(), protected=protected, promoted=promoted)
            self._entries[entry.id] = entry
            return entry.id

    def update(self, entry_id: str, updates: Dict[str, Any]) -> bool:
        with self._lock:
            e = self._entries.get(entry_id)
            if e is None:
                return False
            e.payload.update(updates or {})
            e.last_accessed = self.now_fn()
            return True

    def delete(self, entry_id: str) -> bool:
        with self._lock:
            return self._entries.pop(entry_id, None) is not None

    # ---------- read ----------

    def _touch(self, e: LongTermEntry) -> LongTermEntry:
        e.last_accessed = self.now_fn()
        e.access_count += 1
        return LongTermEntry.from_dict(e.to_dict())

    def get(self, entry_id: str) -> Optional[LongTermEntry]:
        with self._lock:
            e = self._entries.get(entry_id)
            return self._touch(e) if e else None

    def find(self, pattern: Dict[str, Any]) -> Optional[LongTermEntry]:
        with self._lock:
            for e in self._entries.values():
                if e.matches(pattern):
                    return self._touch(e)
            return None

    def search(self, query: str, type: Optional[str] = None) -> List[LongTermEntry]:
        q = (query or "").lower()
        out: List[LongTermEntry] = []
        with self._lock:
            for e in self._entries.values():
                if type and e.type != type:
                    continue
                blob = json.dumps(e.payload, default=str).lower()
                if q in blob:
                    out.append(self._touch(e))
        return out

    def by_type(self, type: str) -> List[LongTermEntry]:
        with self._lock:
            return [LongTermEntry.from_dict(e.to_dict()) for e in self._entries.values() if e.type == type]

    def recipes(self) -> List[LongTermEntry]:
        return self.by_type("recipe")

    def preferences(self) -> List[LongTermEntry]:
        return self.by_type("preference")

    def patterns(self) -> List[LongTermEntry]:
        return self.by_type("pattern")

    def playbooks(self) -> List[LongTermEntry]:
        return self.by_type("playbook")

    def trusted_sources(self) -> List[LongTermEntry]:
        return [e for e in self.by_type("source") if e.payload.get("trusted") is True]

    def trust_source(self, entry_id: str) -> bool:
        with self._lock:
            e = self._entries.get(entry_id)
            if e is None or e.type != "source":
                return False
            return self.update(entry_id, {"trusted": True})

    def store_preference(self, key: str, value: Any, rationale: str = "") -> str:
        return self.store({"key": key, "value": value, "rationale": rationale}, type="preference", protected=True)

    def get_preference(self, key: str, default: Any = None) -> Any:
        with self._lock:
            for e in self._entries.values():
                if e.type == "preference" and e.payload.get("key") == key:
                    return e.payload.get("value")
            return default

    # ---------- promotion / demotion ----------

    def reinforce(self, pattern: Dict[str, Any]) -> Optional[str]:
        """
        Count one use of `pattern`. Returns the promoted entry id once the
        pattern has been used PROMOTION_USES times inside the window, else None.
        """
        key = _pattern_id(pattern)
        with self._lock:
            now = self.now_fn()
            window_start = now - self.cfg.PROMOTION_WINDOW_S
            uses = [t for t in self._uses.get(key, []) if t >= window_start]
            uses.append(now)
            self._uses[key] = uses

            promoted_id = self._promoted.get(key)
            if promoted_id and promoted_id in self._entries:
                self._touch(self._entries[promoted_id])
                return promoted_id
            if len(uses) >= self.cfg.PROMOTION_USES:
                pid = self.store({"pattern": dict(pattern), "use_count": len(uses)}, type="pattern", promoted=True)
                self._promoted[key] = pid
                return pid
            return None

    def use_count(self, pattern: Dict[str, Any]) -> int:
        with self._lock:
            return len(self._uses.get(_pattern_id(pattern), []))

    def demote_old(self, now: Optional[float] = None) -> List[LongTermEntry]:
        with self._lock:
            now = self.now_fn() if now is None else now
            gone = [e for e in self._entries.values()
                    if (now - e.last_accessed) > self.cfg.DEMOTION_AGE_S and not e.protected]
            for e in gone:
                del self._entries[e.id]
            window_start = now - self.cfg.PROMOTION_WINDOW_S
            for key in list(self._uses):
                live = [t for t in self._uses[key] if t >= window_start]
                if live:
                    self._uses[key] = live
                else:
                    del self._uses[key]
            for key, pid in list(self._promoted.items()):
                if pid not in self._entries:
                    del self._promoted[key]
            return gone

    # ---------- bulk ----------

    def export(self) -> Dict[str, Any]:
        with self._lock:
            return {"entries": [e.to_dict() for e in self._entries.values()], "exported_at": self.now_fn()}

    def import_(self, data: Dict[str, Any]) -> bool:
        if not data or not isinstance(data.get("entries"), list):
            return False
        with self._lock:
            self._entries.clear()
            for d in data["entries"]:
                e = LongTermEntry.from_dict(d)
                self._entries[e.id] = e
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._uses.clear()
            self._promoted.clear()

    def size(self) -> int:
        return len(self._entries)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            out: Dict[str, Any] = {"total_items": len(self._entries)}
            for t in _INDEXED_TYPES:
                out[t + "s"] = sum(1 for e in self._entries.values() if e.type == t)
            return out
