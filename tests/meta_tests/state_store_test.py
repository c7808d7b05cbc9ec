# tests/meta_tests/state_store_test.py
import json

from meta.config import MetaConfig
from meta.store import FileStateStore, InMemoryStateStore, StateStore

# ---------- helpers ----------

def mk_file_store(tmp_path):
    return FileStateStore(MetaConfig(ROOT=str(tmp_path)))

# ---------- file store ----------

def test_file_store_creates_layout(tmp_path):
    store = mk_file_store(tmp_path)
    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "playbooks" / "drafts").is_dir()
    assert (tmp_path / "playbooks" / "active").is_dir()
    paths = store.paths()
    assert paths["runlog"].endswith("runlog.jsonl")
    assert paths["policy"].endswith("meta_policy.json")

def test_file_store_documents(tmp_path):
    store = mk_file_store(tmp_path)
    assert store.load("meta_state") is None
    store.save("meta_state", {"lookupBias": {"a|b": 0.25}})
    store.save("policy", {"stepValues": {}})
    assert store.load("meta_state") == {"lookupBias": {"a|b": 0.25}}
    assert (tmp_path / "data" / "meta_state.json").exists()
    assert json.loads((tmp_path / "data" / "meta_policy.json").read_text()) == {"stepValues": {}}

def test_file_store_corrupt_document_reads_as_missing(tmp_path):
    store = mk_file_store(tmp_path)
    (tmp_path / "data" / "meta_state.json").write_text("{oops", encoding="utf-8")
    assert store.load("meta_state") is None

def test_file_store_run_log_is_append_only(tmp_path):
    store = mk_file_store(tmp_path)
    for i in range(4):
        store.append_run({"i": i})
    assert [r["i"] for r in store.recent_runs(2)] == [2, 3]
    lines = (tmp_path / "data" / "runlog.jsonl").read_text().splitlines()
    assert len(lines) == 4

def test_file_store_drafts_and_active(tmp_path):
    store = mk_file_store(tmp_path)
    where = store.write_draft("pb_x", {"id": "pb_x"})
    assert where.endswith("pb_x.json")
    assert store.list_drafts() == [(where, {"id": "pb_x"})]

    active = tmp_path / "playbooks" / "active"
    (active / "a.json").write_text(json.dumps({"id": "a"}), encoding="utf-8")
    (active / "b.json").write_text("not json", encoding="utf-8")
    (active / "notes.txt").write_text("ignored", encoding="utf-8")
    listed = store.list_active()
    assert [(loc.rsplit("/", 1)[-1], doc) for loc, doc in listed] == [("a.json", {"id": "a"}), ("b.json", None)]

def test_separate_data_dir(tmp_path):
    cfg = MetaConfig(ROOT=str(tmp_path / "root"), DATA_DIR=str(tmp_path / "elsewhere"))
    store = FileStateStore(cfg)
    store.append_run({"i": 1})
    assert (tmp_path / "elsewhere" / "runlog.jsonl").exists()

# ---------- in-memory store ----------

def test_in_memory_store_returns_copies():
    store = InMemoryStateStore()
    doc = {"a": [1]}
    store.save("x", doc)
    doc["a"].append(2)
    got = store.load("x")
    assert got == {"a": [1]}
    got["a"].append(3)
    assert store.load("x") == {"a": [1]}

def test_in_memory_store_runs_and_drafts():
    store = InMemoryStateStore()
    assert store.recent_runs(5) == []
    store.append_run({"i": 1})
    store.append_run({"i": 2})
    assert store.recent_runs(1) == [{"i": 2}]
    assert store.recent_runs(0) == []
    loc = store.write_draft("pb_y", {"id": "pb_y"})
    assert store.list_drafts() == [(loc, {"id": "pb_y"})]

def test_both_stores_satisfy_protocol(tmp_path):
    assert isinstance(InMemoryStateStore(), StateStore)
    assert isinstance(mk_file_store(tmp_path), StateStore)
