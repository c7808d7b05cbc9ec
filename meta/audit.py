# meta/audit.py
# Read-only audit and debug snapshots of meta-loop state. Nothing here writes or mutates.

from __future__ import annotations

import copy
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict

from core.utils import clamp_int, iso

from .normalize import pattern_key
from .runlog import summarize_runs

if TYPE_CHECKING:  # pragma: no cover
    from .metaloop import MetaLoop

SNAPSHOT_VERSION = "1.0"


def build_audit_snapshot(loop: "MetaLoop") -> Dict[str, Any]:
    """
    Deterministic view of config, state, playbooks, run-log statistics and
    the most frequent pattern keys. The clock is read once; day counts are
    measured against `timestamp`.
    """
    now = loop.now_fn()
    state = copy.deepcopy(loop.state)
    runs = loop.runlog.recent()

    counts = Counter()
    for r in runs:
        try:
            counts[pattern_key(r)] += 1
        except Exception:
            continue
    top = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[: int(loop.cfg.TOP_PATTERNS)]

    usage = state["activePlaybookUsageCounts"]
    active = sorted(loop.active_playbooks_with_stats(now), key=lambda p: p["id"])
    drafts = sorted(loop.draft_playbooks(), key=lambda d: (str(d.get("id")), str(d.get("location"))))
    stale = sorted(loop.stale_playbooks(now), key=lambda p: p["id"])

    return {
        "snapshotVersion": SNAPSHOT_VERSION,
        "timestamp": iso(datetime.fromtimestamp(now, tz=timezone.utc)),
        "config": {
            "promoteAfter": loop.promote_after,
            "maxRecentScan": loop.max_recent_scan,
            "stalenessThresholdDays": loop.staleness_days,
            "biasStep": loop.cfg.BIAS_STEP,
            "biasLimit": loop.cfg.BIAS_LIMIT,
        },
        "state": {
            "lookupBias": dict(sorted(state["lookupBias"].items())),
            "draftedKeysCount": len(state["draftedKeys"]),
            "draftedKeys": sorted(state["draftedKeys"]),
            "activePlaybookTracking": {
                "trackedCount": len(usage),
                "totalUses": sum(int(v) for v in usage.values()),
            },
        },
        "biasTable": [{"key": k, "bias": v} for k, v in sorted(state["lookupBias"].items())],
        "activePlaybooks": {"count": len(active), "playbooks": active},
        "draftPlaybooks": {"count": len(drafts), "playbooks": drafts},
        "stalePlaybooks": {"count": len(stale), "playbooks": stale},
        "runlog": summarize_runs(runs),
        "patterns": {"topPatterns": [{"patternKey": k, "occurrences": n} for k, n in top]},
        "values": loop.values.value_stats(),
        "paths": loop.store.paths(),
    }


def build_debug_snapshot(loop: "MetaLoop", limit: int = 10) -> Dict[str, Any]:
    """Last `limit` run records (1..200) plus the current bias and draft bookkeeping."""
    n = clamp_int(limit, 1, 200)
    return {
        "paths": loop.store.paths(),
        "lastRuns": loop.runlog.recent(n),
        "lookupBias": copy.deepcopy(loop.state["lookupBias"]),
        "draftedKeys": copy.deepcopy(loop.state["draftedKeys"]),
    }


__all__ = ["build_audit_snapshot", "build_debug_snapshot", "SNAPSHOT_VERSION"]
