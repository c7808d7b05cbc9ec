# tests/meta_tests/values_test.py
import pytest

from meta.config import MetaConfig
from meta.store import InMemoryStateStore
from meta.values import POLICY_DOC, ValueTracker

# ---------- helpers ----------

class FakeClock:
    def __init__(self, t=1_700_000_000.0): self.t = t
    def now(self): return self.t
    def step(self, dt): self.t += dt

def mk_tracker(store=None, **cfg):
    clk = FakeClock()
    store = store or InMemoryStateStore()
    return ValueTracker(store, config=MetaConfig(**cfg), now_fn=clk.now), store, clk

# ---------- scoring ----------

def test_no_score_before_min_samples():
    vt, _, _ = mk_tracker()
    vt.record_step("rank", False)
    vt.record_step("rank", False)
    assert vt.get_step_value_score("rank") == 1.0
    vt.record_step("rank", False)
    assert vt.get_step_value_score("rank") == pytest.approx(0.7)

def test_ema_rewards_changes():
    vt, _, _ = mk_tracker()
    for _ in range(3):
        vt.record_step("gather", True)
    assert vt.get_step_value_score("gather") == pytest.approx(1.0)
    assert vt.step_policy("gather")["changedOutcome"] == 3

def test_unknown_step_defaults():
    vt, _, _ = mk_tracker()
    assert vt.step_policy("nope") is None
    assert vt.get_step_priority("nope") == 5
    assert vt.get_step_cost_estimate("nope") == 100.0

# ---------- hysteresis ----------

def test_priority_reduced_only_after_sustained_low_value():
    vt, _, _ = mk_tracker()
    for _ in range(7):
        vt.record_step("rank", False)
    assert vt.get_step_priority("rank") == 5
    vt.record_step("rank", False)
    assert vt.get_step_priority("rank") == 2
    vt.record_step("rank", False)
    assert vt.get_step_priority("rank") == 1
    vt.record_step("rank", False)
    assert vt.get_step_priority("rank") == 1
    assert vt.step_policy("rank")["priorityReductions"] == 2

def test_a_single_change_breaks_the_streak():
    vt, _, _ = mk_tracker()
    for _ in range(7):
        vt.record_step("rank", False)
    vt.record_step("rank", True)
    vt.record_step("rank", False)
    assert vt.get_step_priority("rank") == 5
    assert vt.step_policy("rank")["consecutiveNonChanges"] == 1

def test_low_value_steps_and_reset():
    vt, _, _ = mk_tracker()
    for _ in range(8):
        vt.record_step("rank", False)
    for _ in range(3):
        vt.record_step("gather", True)
    low = vt.low_value_steps()
    assert [s["step"] for s in low] == ["rank"]
    stats = vt.value_stats()
    assert stats["trackedSteps"] == 2
    assert stats["reducedSteps"] == ["rank"]

    assert vt.reset_step_priority("rank")
    assert vt.get_step_priority("rank") == 5
    assert not vt.reset_step_priority("nope")

# ---------- cost ----------

def test_cost_ema_and_untracked_cost_ignored():
    vt, _, _ = mk_tracker()
    vt.record_step("gather", True, cost_ms=200.0)
    assert vt.get_step_cost_estimate("gather") == pytest.approx(0.3 * 200 + 0.7 * 100)
    vt.update_step_cost("gather", 200.0)
    assert vt.get_step_cost_estimate("gather") == pytest.approx(0.3 * 200 + 0.7 * 130)
    vt.update_step_cost("never_seen", 50.0)
    assert vt.step_policy("never_seen") is None

# ---------- persistence ----------

def test_policy_persists_across_instances():
    vt, store, _ = mk_tracker()
    for _ in range(8):
        vt.record_step("rank", False)
    doc = store.load(POLICY_DOC)
    assert doc["stepValues"]["rank"]["priority"] == 2
    assert doc["thresholds"] == {"lowValueTrigger": 3, "minValueScore": 0.3, "priorityReduction": 3}

    vt2, _, _ = mk_tracker(store=store)
    assert vt2.get_step_priority("rank") == 2

def test_step_policy_is_a_copy():
    vt, _, _ = mk_tracker()
    vt.record_step("gather", True)
    sp = vt.step_policy("gather")
    sp["priority"] = 99
    sp["history"].clear()
    assert vt.get_step_priority("gather") == 5
    assert len(vt.step_policy("gather")["history"]) == 1

def test_history_bounded():
    vt, _, _ = mk_tracker(VALUE_HISTORY_MAX=4)
    for _ in range(10):
        vt.record_step("gather", True)
    assert len(vt.step_policy("gather")["history"]) == 4
