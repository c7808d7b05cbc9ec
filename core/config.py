# core/config.py
# Kernel configuration: domain, default mode, budget constants, reset thresholds; env overrides via ALIVE_* variables.

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
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

def _to_float(v: Optional[str], default: float) -> float:
    try:
        return float(v) if v is not None else default
    except Exception:
        return default

# ---------- Config Dataclass ----------
@dataclass
class KernelConfig:
    DOMAIN: str = "cooking"
    MODE: str = "HEURISTIC"               # PRECISION | HEURISTIC

    # Triage
    MAX_PRIORITIES: int = 3

    # Budget
    DEFAULT_BUDGET_MS: int = 30_000
    MAX_ITERATIONS: int = 5
    MARGINAL_VALUE_MIN: float = 0.1       # keep iterating only above this change ratio
    ABORT_CONFIDENCE: float = 0.9

    # Reset
    STAGNATION_N: int = 3
    NEW_INFO_GRACE_S: float = 5.0

    # Skip policy
    SKIP_MAX_PRIORITY: int = 2
    SKIP_MAX_VALUE: float = 0.3

    # Metrics
    METRICS_ENABLED: bool = True

    # Remember step
    QUERY_SUMMARY_CHARS: int = 100

# ---------- Build config with env overrides ----------
def _build_from_env() -> KernelConfig:
    cfg = KernelConfig()
    cfg.DOMAIN = os.getenv("ALIVE_DOMAIN", cfg.DOMAIN)
    cfg.MODE = os.getenv("ALIVE_MODE", cfg.MODE).upper()

    cfg.MAX_PRIORITIES = _to_int(os.getenv("ALIVE_MAX_PRIORITIES"), cfg.MAX_PRIORITIES)
    cfg.DEFAULT_BUDGET_MS = _to_int(os.getenv("ALIVE_DEFAULT_BUDGET_MS"), cfg.DEFAULT_BUDGET_MS)
    cfg.MARGINAL_VALUE_MIN = _to_float(os.getenv("ALIVE_MARGINAL_VALUE_MIN"), cfg.MARGINAL_VALUE_MIN)

    cfg.STAGNATION_N = _to_int(os.getenv("ALIVE_STAGNATION_N"), cfg.STAGNATION_N)
    cfg.NEW_INFO_GRACE_S = _to_float(os.getenv("ALIVE_NEW_INFO_GRACE_S"), cfg.NEW_INFO_GRACE_S)

    cfg.METRICS_ENABLED = _to_bool(os.getenv("ALIVE_METRICS"), cfg.METRICS_ENABLED)
    return cfg

KERNCFG = _build_from_env()

__all__ = ["KernelConfig", "KERNCFG"]
