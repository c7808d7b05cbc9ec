# memory/config.py
# Central configuration for ALIVE memory tiers: stream window sizes, working-memory decay, long-term promotion/demotion.

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import os

# ---------- Helpers ----------
def _to_int(v: Optional[str], default: int) -> int:
    try:
        return int(v) if v is not None else default
    except Exception:
        return default

def _to_float(v: Optional[str], default: float) -> float:
    try:
        return float(v) if v is not None else default
    except Exception:
        return default

# ---------- Config Dataclass ----------
@dataclass
class MemoryConfig:
    # Stream (rolling window)
    STREAM_ACTIVE_SIZE: int = 20          # capacity under rapid back-and-forth
    STREAM_RELAXED_SIZE: int = 100        # capacity at normal pace
    STREAM_ACTIVE_COUNT: int = 5          # entries within the activity window that flip to ACTIVE
    STREAM_ACTIVE_WINDOW_S: float = 60.0
    STREAM_IDLE_AFTER_S: float = 300.0    # no activity for this long -> IDLE (collapse)
    STREAM_KEEP_ON_COLLAPSE: int = 5
    STREAM_TOP_TOPICS: int = 5

    # Working memory
    WORKING_DECAY_S: float = 3600.0       # 1 hour
    WORKING_HISTORY_MAX: int = 50
    LEARNING_MIN_CONFIDENCE: float = 0.7

    # Long-term promotion / demotion
    PROMOTION_USES: int = 3
    PROMOTION_WINDOW_S: float = 30 * 24 * 3600.0
    DEMOTION_AGE_S: float = 90 * 24 * 3600.0

    def stream_capacity(self, mode: str) -> int:
        if mode == "ACTIVE":
            return self.STREAM_ACTIVE_SIZE
        return self.STREAM_RELAXED_SIZE

# ---------- Build config with env overrides ----------
def _build_from_env() -> MemoryConfig:
    cfg = MemoryConfig()
    # stream
    cfg.STREAM_ACTIVE_SIZE = _to_int(os.getenv("ALIVE_MEM_STREAM_ACTIVE"), cfg.STREAM_ACTIVE_SIZE)
    cfg.STREAM_RELAXED_SIZE = _to_int(os.getenv("ALIVE_MEM_STREAM_RELAXED"), cfg.STREAM_RELAXED_SIZE)
    cfg.STREAM_IDLE_AFTER_S = _to_float(os.getenv("ALIVE_MEM_STREAM_IDLE_S"), cfg.STREAM_IDLE_AFTER_S)

    # working
    cfg.WORKING_DECAY_S = _to_float(os.getenv("ALIVE_MEM_DECAY_S"), cfg.WORKING_DECAY_S)
    cfg.WORKING_HISTORY_MAX = _to_int(os.getenv("ALIVE_MEM_HISTORY_MAX"), cfg.WORKING_HISTORY_MAX)

    # long-term
    cfg.PROMOTION_USES = _to_int(os.getenv("ALIVE_MEM_PROMOTE_USES"), cfg.PROMOTION_USES)
    cfg.PROMOTION_WINDOW_S = _to_float(os.getenv("ALIVE_MEM_PROMOTE_WINDOW_S"), cfg.PROMOTION_WINDOW_S)
    cfg.DEMOTION_AGE_S = _to_float(os.getenv("ALIVE_MEM_DEMOTE_AGE_S"), cfg.DEMOTION_AGE_S)
    return cfg

MEMCFG = _build_from_env()

# ---------- Quick usage notes ----------
# from memory.config import MEMCFG
# cap = MEMCFG.stream_capacity("ACTIVE")
