# tests/meta_tests/audit_test.py
import copy

from core.utils import parse_iso

from meta.audit import SNAPSHOT_VERSION
from meta.config import MetaConfig
from meta.metaloop import MetaLoop
from meta.normalize import pattern_key
from meta.store import FileStateStore, InMemoryStateStore

# ---------- helpers ----------

DAY_S = 24 * 60 * 60

class FakeClock:
    def __init__(self, t=1_700_000_000.0): self.t = t
    def now(self): return self.t
    def step(self, dt): self.t += dt

class TickingClock(FakeClock):
    # every read advances time by `tick`, like a wall clock between calls
    tick = 0.0
    def now(self):
        self.t += self.tick
        return self.t

def mk_run(query="Compare brownie recipes", task_type="compare", lookup=False, status="success"):
    return {
        "domain": "cooking",
        "taskType": task_type,
        "assessment": {"urgency": "LATER", "stakes": "medium", "difficulty": "hard", "precision": "flexible"},
        "metrics": {"timeMs": 100, "stepCount": 3, "toolCalls": 3, "lookupUsed": lookup,
                    "lookupCount": 1 if lookup else 0, "resetTriggered": False},
        "outcome": {"status": status, "userCorrections": 0},
        "inputs": {"querySummary": query},
    }

def mk_active(key):
    return {
        "id": "pb_brownies",
        "domain": "cooking",
        "taskType": "compare",
        "trigger": {"patternKey": key},
        "steps": [{"name": "Gather"}],
        "responseHints": {"prefix": "Brownies:"},
    }

def populated_loop(store):
    clk = FakeClock()
    loop = MetaLoop(store, config=MetaConfig(), now_fn=clk.now)
    for _ in range(3):
        loop.record_and_review(mk_run(lookup=True))
    loop.record_and_review(mk_run(query="How to bake cookies", task_type="howto"))
    loop.record_step("gather", True, 50.0)
    return loop, clk

def store_view(store):
    return {
        "runs": store.recent_runs(10_000),
        "state": store.load("meta_state"),
        "policy": store.load("policy"),
        "drafts": store.list_drafts(),
        "active": store.list_active(),
    }

def tree_bytes(root):
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}

# ---------- side effects ----------

def test_snapshots_do_not_mutate_memory_store():
    key = pattern_key(mk_run())
    store = InMemoryStateStore(active=[mk_active(key)])
    loop, _ = populated_loop(store)
    state_before = copy.deepcopy(loop.state)
    store_before = store_view(store)

    loop.audit_snapshot()
    loop.debug_snapshot(5)

    assert loop.state == state_before
    assert store_view(store) == store_before

def test_snapshots_do_not_touch_files(tmp_path):
    store = FileStateStore(MetaConfig(ROOT=str(tmp_path)))
    loop, _ = populated_loop(store)
    before = tree_bytes(tmp_path)
    loop.audit_snapshot()
    loop.debug_snapshot(200)
    assert tree_bytes(tmp_path) == before

def test_snapshot_is_a_copy():
    loop, _ = populated_loop(InMemoryStateStore())
    snap = loop.debug_snapshot()
    snap["lookupBias"]["cooking|compare"] = 99.0
    snap["draftedKeys"].clear()
    assert loop.get_lookup_bias("cooking", "compare") != 99.0
    assert len(loop.state["draftedKeys"]) == 1

# ---------- audit contents ----------

def test_audit_is_deterministic_for_fixed_clock():
    loop, _ = populated_loop(InMemoryStateStore())
    assert loop.audit_snapshot() == loop.audit_snapshot()

def test_audit_contents():
    key = pattern_key(mk_run())
    store = InMemoryStateStore(active=[mk_active(key)])
    loop, clk = populated_loop(store)
    snap = loop.audit_snapshot()

    assert snap["snapshotVersion"] == SNAPSHOT_VERSION
    assert snap["timestamp"].startswith("2023-11-14T")
    assert snap["config"]["promoteAfter"] == 3
    assert snap["state"]["draftedKeysCount"] == 1
    assert snap["state"]["activePlaybookTracking"] == {"trackedCount": 1, "totalUses": 3}
    assert snap["biasTable"] == [{"key": "cooking|compare", "bias": -0.75}]
    assert snap["activePlaybooks"]["count"] == 1
    assert snap["activePlaybooks"]["playbooks"][0]["stats"]["useCount"] == 3
    assert snap["draftPlaybooks"]["count"] == 1
    assert snap["stalePlaybooks"]["count"] == 0
    assert snap["runlog"]["totalEntriesScanned"] == 4
    assert snap["values"]["trackedSteps"] == 1
    assert snap["paths"]["runlog"] == "mem://runs"

    clk.step(40 * 24 * 3600)
    assert loop.audit_snapshot()["stalePlaybooks"]["count"] == 1

def test_top_patterns_sorted_by_count_then_key():
    loop, _ = populated_loop(InMemoryStateStore())
    loop.record_and_review(mk_run(query="How to bake bread", task_type="howto"))
    top = loop.audit_snapshot()["patterns"]["topPatterns"]
    counts = [t["occurrences"] for t in top]
    assert counts[0] == 3
    assert counts == sorted(counts, reverse=True)
    ones = [t["patternKey"] for t in top if t["occurrences"] == 1]
    assert ones == sorted(ones)

def test_top_patterns_limit():
    loop = MetaLoop(InMemoryStateStore(), config=MetaConfig(TOP_PATTERNS=2), now_fn=FakeClock().now)
    for q in ["bake bread", "bake cookies", "bake pie", "bake cake"]:
        loop.record_and_review(mk_run(query=q, task_type="howto"))
    assert len(loop.audit_snapshot()["patterns"]["topPatterns"]) == 2

def test_day_counts_follow_the_snapshot_timestamp():
    key = pattern_key(mk_run())
    clk = TickingClock()
    loop = MetaLoop(InMemoryStateStore(active=[mk_active(key)]), config=MetaConfig(STALENESS_DAYS=30),
                    now_fn=clk.now)
    loop.record_and_review(mk_run())
    clk.step(30.3 * DAY_S)
    clk.tick = 0.15 * DAY_S
    snap = loop.audit_snapshot()
    ts = parse_iso(snap["timestamp"]).timestamp()
    pb = snap["activePlaybooks"]["playbooks"][0]
    last = parse_iso(pb["stats"]["lastUsedAt"]).timestamp()
    assert pb["stats"]["daysSinceLastUse"] == round((ts - last) / DAY_S)
    assert pb["stats"]["daysSinceLastUse"] == 30
    assert pb["isStale"] is False
    assert snap["stalePlaybooks"]["count"] == 0

# ---------- debug snapshot ----------

def test_debug_limit_is_clamped():
    loop, _ = populated_loop(InMemoryStateStore())
    assert len(loop.debug_snapshot(0)["lastRuns"]) == 1
    assert len(loop.debug_snapshot(-5)["lastRuns"]) == 1
    assert len(loop.debug_snapshot(2)["lastRuns"]) == 2
    assert len(loop.debug_snapshot(10_000)["lastRuns"]) == 4
    last = loop.debug_snapshot(1)["lastRuns"][0]
    assert last["taskType"] == "howto"
