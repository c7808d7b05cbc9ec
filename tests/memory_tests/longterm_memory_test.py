# tests/memory_tests/longterm_memory_test.py
from memory.config import MEMCFG, MemoryConfig
from memory.longterm import LongTermMemory
from memory.session import MemoryTiers

# ---------- helpers ----------

class FakeClock:
    def __init__(self, t=1_000.0): self.t = t
    def now(self): return self.t
    def step(self, dt): self.t += dt  # seconds

def mk_ltm(**cfg):
    clk = FakeClock()
    return LongTermMemory(config=MemoryConfig(**cfg), now_fn=clk.now), clk

# ---------- store / read ----------

def test_store_get_returns_copies_and_counts_access():
    ltm, _ = mk_ltm()
    eid = ltm.store({"name": "Classic", "ingredients": ["flour"]}, type="recipe")
    first = ltm.get(eid)
    first.payload["name"] = "mutated"
    again = ltm.get(eid)
    assert again.payload["name"] == "Classic"
    assert again.access_count == 2
    assert ltm.get("nope") is None

def test_search_and_type_indexes():
    ltm, _ = mk_ltm()
    ltm.store({"name": "Chewy cookies"}, type="recipe")
    ltm.store({"name": "Bread"}, type="recipe")
    src = ltm.store({"url": "example.org"}, type="source")
    assert [e.payload["name"] for e in ltm.search("chewy")] == ["Chewy cookies"]
    assert ltm.search("chewy", type="source") == []
    assert len(ltm.recipes()) == 2
    assert ltm.trusted_sources() == []
    assert ltm.trust_source(src) is True
    assert len(ltm.trusted_sources()) == 1
    assert ltm.status()["recipes"] == 2

def test_update_and_delete():
    ltm, _ = mk_ltm()
    eid = ltm.store({"a": 1})
    assert ltm.update(eid, {"b": 2})
    assert ltm.get(eid).payload == {"a": 1, "b": 2}
    assert ltm.delete(eid)
    assert not ltm.delete(eid)
    assert not ltm.update(eid, {"c": 3})

def test_preferences_are_protected():
    ltm, clk = mk_ltm(DEMOTION_AGE_S=10.0)
    ltm.store_preference("units", "metric")
    ltm.store({"x": 1})
    clk.step(20.0)
    gone = ltm.demote_old()
    assert len(gone) == 1
    assert ltm.get_preference("units") == "metric"
    assert ltm.get_preference("missing", "dflt") == "dflt"

# ---------- promotion ----------

def test_pattern_promoted_after_repeated_use_within_window():
    ltm, clk = mk_ltm(PROMOTION_USES=3, PROMOTION_WINDOW_S=100.0)
    pattern = {"input_type": "recipe_compare", "successful": True}
    assert ltm.reinforce(pattern) is None
    clk.step(10.0)
    assert ltm.reinforce(pattern) is None
    clk.step(10.0)
    pid = ltm.reinforce(pattern)
    assert pid is not None
    assert ltm.reinforce(pattern) == pid
    assert len(ltm.patterns()) == 1
    assert ltm.get(pid).promoted is True

def test_uses_outside_window_do_not_count():
    ltm, clk = mk_ltm(PROMOTION_USES=2, PROMOTION_WINDOW_S=5.0)
    p = {"k": 1}
    ltm.reinforce(p)
    clk.step(10.0)
    assert ltm.reinforce(p) is None
    assert ltm.use_count(p) == 1

def test_demote_old_prunes_expired_one_off_uses():
    ltm, clk = mk_ltm(PROMOTION_USES=3, PROMOTION_WINDOW_S=5.0)
    ltm.reinforce({"k": "once"})
    clk.step(3.0)
    ltm.reinforce({"k": "recent"})
    clk.step(3.0)
    ltm.demote_old()
    assert ltm.use_count({"k": "once"}) == 0
    assert ltm.use_count({"k": "recent"}) == 1
    assert len(ltm._uses) == 1

# ---------- bulk ----------

def test_export_import_round_trip():
    ltm, _ = mk_ltm()
    ltm.store({"name": "x"}, type="recipe")
    data = ltm.export()
    other, _ = mk_ltm()
    assert other.import_(data)
    assert other.size() == 1
    assert not other.import_({"entries": "nope"})

def test_tiers_bundle_sizes():
    clk = FakeClock()
    tiers = MemoryTiers.create(now_fn=clk.now)
    tiers.stream.add("hello")
    tiers.working.set("k", 1)
    assert tiers.sizes() == {"stream": 1, "working": 1, "long_term": 0}

def test_tiers_config_defaults_to_shared_and_keeps_explicit():
    clk = FakeClock()
    cfg = MemoryConfig(STREAM_ACTIVE_SIZE=7)
    built = MemoryTiers.create(config=cfg, now_fn=clk.now)
    assert built.config is cfg
    bare = MemoryTiers(stream=built.stream, working=built.working, long_term=built.long_term)
    assert bare.config is MEMCFG
