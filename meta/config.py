# meta/config.py
# Meta-loop configuration: storage locations, promotion/scan/staleness limits, lookup-bias and value-tracking constants.

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
import os

# ---------- Helpers ----------
def _to_bool(v: Optional[str], default: bool) -> bool:
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y", "t"}

def _to_int(v: Optional[str], default: int) -> int:
    try:
        return int(v) if v is not None else default
    except Exception:
        return default

def _clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(v)))

# ---------- Config Dataclass ----------
@dataclass
class MetaConfig:
    ROOT: str = "."                        # data/ and playbooks/ live under here
    DATA_DIR: Optional[str] = None         # default <ROOT>/data
    DRAFT_DIR: Optional[str] = None        # default <ROOT>/playbooks/drafts
    ACTIVE_DIR: Optional[str] = None       # default <ROOT>/playbooks/active

    # Promotion / scanning / staleness (clamped in normalized())
    PROMOTE_AFTER: int = 3                 # 2..10
    MAX_RECENT_SCAN: int = 200             # 50..2000
    STALENESS_DAYS: int = 30               # 1..365

    # Lookup bias
    BIAS_STEP: float = 0.25
    BIAS_LIMIT: float = 2.0

    # Active playbook usage
    USAGE_HISTORY_MAX: int = 100

    # Value tracking
    VALUE_EMA_ALPHA: float = 0.3
    VALUE_MIN_SAMPLES: int = 3             # no scoring before this many uses
    VALUE_LOW_THRESHOLD: float = 0.3
    VALUE_LOW_STREAK: int = 3              # consecutive low scores AND non-changes before a reduction
    PRIORITY_REDUCTION: int = 3
    DEFAULT_PRIORITY: int = 5
    DEFAULT_COST_MS: float = 100.0
    VALUE_HISTORY_MAX: int = 10

    # Audit
    TOP_PATTERNS: int = 10

    DEBUG: bool = False                    # METALOOP_DEBUG=1

    def normalized(self) -> "MetaConfig":
        self.PROMOTE_AFTER = _clamp(self.PROMOTE_AFTER, 2, 10)
        self.MAX_RECENT_SCAN = _clamp(self.MAX_RECENT_SCAN, 50, 2000)
        self.STALENESS_DAYS = _clamp(self.STALENESS_DAYS, 1, 365)
        return self

    def paths(self) -> Dict[str, Path]:
        root = Path(self.ROOT)
        data = Path(self.DATA_DIR) if self.DATA_DIR else root / "data"
        return {
            "root": root,
            "data": data,
            "drafts": Path(self.DRAFT_DIR) if self.DRAFT_DIR else root / "playbooks" / "drafts",
            "active": Path(self.ACTIVE_DIR) if self.ACTIVE_DIR else root / "playbooks" / "active",
            "runlog": data / "runlog.jsonl",
            "meta_state": data / "meta_state.json",
            "policy": data / "meta_policy.json",
        }

# ---------- Build config with env overrides ----------
def _build_from_env() -> MetaConfig:
    cfg = MetaConfig()
    cfg.ROOT = os.getenv("ALIVE_META_ROOT", cfg.ROOT)
    cfg.DATA_DIR = os.getenv("ALIVE_META_DATA_DIR", cfg.DATA_DIR)

    cfg.PROMOTE_AFTER = _to_int(os.getenv("ALIVE_META_PROMOTE_AFTER"), cfg.PROMOTE_AFTER)
    cfg.MAX_RECENT_SCAN = _to_int(os.getenv("ALIVE_META_MAX_RECENT_SCAN"), cfg.MAX_RECENT_SCAN)
    cfg.STALENESS_DAYS = _to_int(os.getenv("ALIVE_META_STALENESS_DAYS"), cfg.STALENESS_DAYS)

    cfg.DEBUG = _to_bool(os.getenv("METALOOP_DEBUG"), cfg.DEBUG)
    return cfg.normalized()

METACFG = _build_from_env()

__all__ = ["MetaConfig", "METACFG"]
