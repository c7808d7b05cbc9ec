# memory/stream.py
# Stream memory: rolling window of raw inputs with an activity-adaptive capacity and a rolling summary.

from __future__ import annotations

import re
import threading
import time
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from .config import MEMCFG, MemoryConfig
from .models import StreamEntry

__all__ = ["StreamMemory", "WindowMode", "coarse_input_type"]

NowFn = Callable[[], float]

_WORD_RE = re.compile(r"\b\w{4,}\b")


class WindowMode:
    ACTIVE = "ACTIVE"
    RELAXED = "RELAXED"
    IDLE = "IDLE"


def coarse_input_type(text: str) -> str:
    lower = (text or "").lower()
    if "recipe" in lower:
        return "recipe"
    if "compare" in lower:
        return "compare"
    if "substitute" in lower:
        return "substitute"
    if "convert" in lower:
        return "conversion"
    return "general"


class StreamMemory:
    """
    Consciousness buffer. Entries are appended and never mutated.

    Window modes:
      ACTIVE   many entries inside the activity window -> small capacity
      RELAXED  normal pace -> large capacity
      IDLE     nothing for a while -> buffer collapses to a summary
    Entries trimmed off the front are folded into the rolling summary.
    """

    def __init__(self, *, config: Optional[MemoryConfig] = None, now_fn: NowFn = time.time,
                 classify: Callable[[str], str] = coarse_input_type) -> None:
        self.cfg = config or MEMCFG
        self.now_fn = now_fn
        self.classify = classify
        self._lock = threading.RLock()
        self._buffer: List[StreamEntry] = []
        self.mode = WindowMode.RELAXED
        self.max_size = self.cfg.stream_capacity(self.mode)
        self.last_activity = self.now_fn()
        self.summary: Optional[Dict[str, Any]] = None

    # ---------- write ----------

    def add(self, raw_input: Any, context: Optional[Dict[str, Any]] = None, sequence_number: int = 0) -> StreamEntry:
        with self._lock:
            now = self.now_fn()
            if self._buffer and (now - self.last_activity) > self.cfg.STREAM_IDLE_AFTER_S:
                self.mode = WindowMode.IDLE
                self.collapse_to_summary()
            entry = StreamEntry.new(raw_input, context=context, sequence_number=sequence_number, timestamp=now)
            self._buffer.append(entry)
            self.last_activity = now
            self._adjust_window_mode(now)
            self._trim()
            return entry

    def _adjust_window_mode(self, now: float) -> None:
        cutoff = now - self.cfg.STREAM_ACTIVE_WINDOW_S
        recent = sum(1 for e in self._buffer if e.timestamp > cutoff)
        self.mode = WindowMode.ACTIVE if recent >= self.cfg.STREAM_ACTIVE_COUNT else WindowMode.RELAXED
        self.max_size = self.cfg.stream_capacity(self.mode)

    def _trim(self) -> None:
        overflow = len(self._buffer) - self.max_size
        if overflow > 0:
            removed = self._buffer[:overflow]
            del self._buffer[:overflow]
            self._fold_into_summary(removed)

    def _fold_into_summary(self, entries: List[StreamEntry]) -> None:
        if self.summary is None:
            self.summary = {"count": 0, "input_types": {}, "key_topics": []}
        self.summary["count"] = int(self.summary.get("count", 0)) + len(entries)
        types = self.summary.setdefault("input_types", {})
        for t, n in self._input_types(entries).items():
            types[t] = types.get(t, 0) + n

    def collapse_to_summary(self) -> Optional[Dict[str, Any]]:
        """Summarize the buffer and keep only the most recent few entries. No-op when empty."""
        with self._lock:
            if not self._buffer:
                return self.summary
            self.summary = {
                "count": len(self._buffer),
                "timespan": {"start": self._buffer[0].timestamp, "end": self._buffer[-1].timestamp},
                "input_types": self._input_types(self._buffer),
                "key_topics": self._key_topics(self._buffer),
                "collapsed_at": self.now_fn(),
            }
            keep = max(0, int(self.cfg.STREAM_KEEP_ON_COLLAPSE))
            self._buffer = self._buffer[-keep:] if keep else []
            return self.summary

    def clear(self) -> None:
        with self._lock:
            self._buffer = []
            self.summary = None
            self.last_activity = self.now_fn()

    # ---------- read ----------

    def recent(self, count: int = 10) -> List[StreamEntry]:
        with self._lock:
            return self._buffer[-count:] if count > 0 else []

    def search(self, query: str) -> List[StreamEntry]:
        q = (query or "").lower()
        with self._lock:
            return [e for e in self._buffer if q in e.raw_input.lower()]

    def all(self) -> List[StreamEntry]:
        with self._lock:
            return list(self._buffer)

    def size(self) -> int:
        return len(self._buffer)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._buffer),
                "max_size": self.max_size,
                "mode": self.mode,
                "summary": dict(self.summary) if self.summary else None,
                "last_activity": self.last_activity,
            }

    # ---------- internals ----------

    def _input_types(self, entries: List[StreamEntry]) -> Dict[str, int]:
        return dict(Counter(self.classify(e.raw_input) for e in entries))

    def _key_topics(self, entries: List[StreamEntry]) -> List[str]:
        words: Counter = Counter()
        for e in entries:
            words.update(_WORD_RE.findall(e.raw_input.lower()))
        return [w for w, _ in words.most_common(self.cfg.STREAM_TOP_TOPICS)]
