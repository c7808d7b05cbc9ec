# tests/core_tests/utils_test.py
from datetime import datetime, timezone

from core.utils import (
    append_jsonl,
    clamp_int,
    iso,
    iter_jsonl,
    parse_iso,
    read_json,
    stable_hash,
    stable_json,
    tail_jsonl,
    write_json,
)


def test_stable_json_and_hash_ignore_key_order():
    a = {"b": 1, "a": [1, 2]}
    b = {"a": [1, 2], "b": 1}
    assert stable_json(a) == stable_json(b)
    assert stable_hash(a) == stable_hash(b)
    assert len(stable_hash(a)) == 16
    assert len(stable_hash(a, n=8)) == 8
    assert stable_hash(a) != stable_hash({"a": [2, 1], "b": 1})

def test_iso_round_trip():
    dt = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    s = iso(dt)
    assert s.startswith("2025-01-02T03:04:05")
    assert parse_iso(s) == dt
    assert parse_iso("not a date") is None
    assert parse_iso(None) is None

def test_clamp_int_handles_junk():
    assert clamp_int(5, 0, 3) == 3
    assert clamp_int(-1, 0, 3) == 0
    assert clamp_int("2", 0, 3) == 2
    assert clamp_int("junk", 0, 3) == 0

def test_write_and_read_json(tmp_path):
    p = tmp_path / "sub" / "doc.json"
    write_json(p, {"x": 1})
    assert read_json(p) == {"x": 1}
    assert read_json(tmp_path / "missing.json", default={}) == {}
    assert list(p.parent.glob("._tmp_*")) == []

def test_read_json_corrupt_returns_default(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text("{not json", encoding="utf-8")
    assert read_json(p, default=None) is None

def test_jsonl_append_iter_and_tail(tmp_path):
    p = tmp_path / "log.jsonl"
    append_jsonl(p, [{"i": i} for i in range(5)])
    with open(p, "a", encoding="utf-8") as f:
        f.write("garbage line\n")
    append_jsonl(p, [{"i": 5}])
    assert [r["i"] for r in iter_jsonl(p)] == [0, 1, 2, 3, 4, 5]
    assert [r["i"] for r in tail_jsonl(p, 2)] == [4, 5]
    assert tail_jsonl(tmp_path / "none.jsonl", 3) == []
