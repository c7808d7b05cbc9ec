# tests/meta_tests/playbook_schema_test.py
import pytest

from meta.playbooks import build_draft, draft_id, load_active
from meta.schema import (
    is_valid_active_playbook,
    validate_active_playbook,
    validate_draft,
    validate_run_record,
)
from meta.store import InMemoryStateStore

# ---------- helpers ----------

def mk_active(**over):
    doc = {
        "id": "pb_cookie_compare",
        "domain": "cooking",
        "taskType": "recipe_compare",
        "trigger": {"patternKey": "cooking|recipe_compare|0123456789abcdef"},
        "steps": [{"name": "Gather"}, {"name": "Diff", "notes": "core vs variations"}],
        "responseHints": {"prefix": "Here you go:", "outline": ["core", "variations"]},
    }
    doc.update(over)
    return doc

RUN = {
    "domain": "cooking",
    "taskType": "recipe_compare",
    "assessment": {"urgency": "LATER", "stakes": "medium", "difficulty": "hard", "precision": "strict"},
    "inputs": {"querySummary": "compare cookies"},
}

# ---------- active playbooks ----------

def test_valid_active_playbook_passes():
    validate_active_playbook(mk_active())
    assert is_valid_active_playbook(mk_active(responseHints={}))

@pytest.mark.parametrize("broken", [
    mk_active(trigger={}),
    mk_active(steps=[{"notes": "no name"}]),
    mk_active(steps="Gather"),
    mk_active(responseHints={"outline": "not a list"}),
    {k: v for k, v in mk_active().items() if k != "responseHints"},
    "not even a dict",
])
def test_invalid_active_playbooks_rejected(broken):
    assert not is_valid_active_playbook(broken)

def test_validation_message_names_playbook_and_path():
    with pytest.raises(ValueError) as ei:
        validate_active_playbook(mk_active(steps=[{"name": ""}]))
    msg = str(ei.value)
    assert "'pb_cookie_compare'" in msg
    assert "$.steps[0].name" in msg

def test_load_active_skips_unparseable_and_invalid():
    store = InMemoryStateStore()
    store.add_active(mk_active())
    store.add_active(None, name="broken.json")
    store.add_active(mk_active(id="pb_bad", trigger={}))
    active = load_active(store)
    assert [pb["id"] for pb in active] == ["pb_cookie_compare"]
    assert active[0]["_location"] == "mem://active/pb_cookie_compare.json"

# ---------- drafts ----------

def test_draft_id_replaces_separators():
    assert draft_id("cooking|compare|abc") == "pb_cooking_compare_abc"

def test_build_draft_is_schema_valid():
    d = build_draft(RUN, "cooking|recipe_compare|abc", 3, created_at="2025-01-01T00:00:00+00:00")
    validate_draft(d)
    assert d["id"] == "pb_cooking_recipe_compare_abc"
    assert d["trigger"]["minSuccessCount"] == 3
    assert d["trigger"]["inputsExample"] == {"querySummary": "compare cookies"}
    assert [s["name"] for s in d["steps"]] == ["Orient", "Triage", "Execute", "Validate"]
    assert d["validation"]["precision"] == "strict"

def test_draft_without_steps_is_invalid():
    d = build_draft(RUN, "k|t|h", 3, created_at="x")
    d["steps"] = []
    with pytest.raises(ValueError):
        validate_draft(d)

# ---------- run records ----------

def test_run_record_enum_violation_rejected():
    rec = {
        "ts": "2025-01-01T00:00:00+00:00", "domain": "d", "taskType": "t",
        "assessment": {"urgency": "WHENEVER", "stakes": "low", "difficulty": "easy", "precision": "strict"},
        "metrics": {"timeMs": 1, "stepCount": 1, "toolCalls": 1, "lookupUsed": False, "lookupCount": 0,
                    "resetTriggered": False},
        "outcome": {"status": "success", "userCorrections": 0},
        "inputs": {},
    }
    with pytest.raises(ValueError) as ei:
        validate_run_record(rec)
    assert "$.assessment.urgency" in str(ei.value)
