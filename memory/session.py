# memory/session.py
# MemoryTiers: the explicit per-session bundle of stream, working and long-term memory.

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config import MEMCFG, MemoryConfig
from .longterm import LongTermMemory
from .stream import StreamMemory
from .working import WorkingMemory

__all__ = ["MemoryTiers"]


@dataclass
class MemoryTiers:
    stream: StreamMemory
    working: WorkingMemory
    long_term: LongTermMemory
    config: Optional[MemoryConfig] = None

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = MEMCFG

    @classmethod
    def create(cls, *, config: Optional[MemoryConfig] = None,
               now_fn: Callable[[], float] = time.time) -> "MemoryTiers":
        cfg = config or MEMCFG
        return cls(
            stream=StreamMemory(config=cfg, now_fn=now_fn),
            working=WorkingMemory(config=cfg, now_fn=now_fn),
            long_term=LongTermMemory(config=cfg, now_fn=now_fn),
            config=cfg,
        )

    def sizes(self) -> Dict[str, Any]:
        return {
            "stream": self.stream.size(),
            "working": self.working.size(),
            "long_term": self.long_term.size(),
        }
