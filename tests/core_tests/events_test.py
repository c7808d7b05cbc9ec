# tests/core_tests/events_test.py
import json

import pytest

from core.events import (
    EVENT_VERSION,
    EventKind,
    emit,
    event_to_line,
    make_cycle_event,
    make_task_event,
    to_sink_event,
)
from core.model import TaskResult


def test_cycle_event_fields_and_sink_shape():
    ev = make_cycle_event(EventKind.CycleFinished, 7, input_type="recipe_compare", success=True, elapsed_ms=12)
    d = to_sink_event(ev)
    assert d["kind"] == "CycleFinished"
    assert d["cycle"] == 7
    assert d["source"] == "kernel"
    assert "src" not in d
    assert d["v"] == EVENT_VERSION

def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        make_cycle_event("NotAKind", 1)

@pytest.mark.parametrize("result,kind,level", [
    (TaskResult("t", success=True), "TaskFinished", "info"),
    (TaskResult("t", success=False, error="boom"), "TaskFailed", "error"),
    (TaskResult("t", success=True, skipped=True), "TaskSkipped", "info"),
])
def test_task_event_kind_follows_result(result, kind, level):
    ev = make_task_event(3, "retrieval", result)
    assert ev.kind == kind
    assert ev.level == level
    assert ev.task_type == "retrieval"

def test_task_event_carries_error_in_extra():
    ev = make_task_event(1, "analysis", TaskResult("t", success=False, error="KeyError: 'x'"))
    assert ev.extra == {"error": "KeyError: 'x'"}

def test_event_to_line_is_single_line_json():
    ev = make_cycle_event("CycleFailed", 2, success=False, level="error", extra={"error": "a\nb"})
    line = event_to_line(ev)
    assert "\n" not in line
    assert json.loads(line)["extra"]["error"] == "a\nb"

def test_emit_without_sink_or_with_failing_sink_is_silent():
    ev = make_cycle_event("CycleStarted", 1)
    emit(None, ev)

    def bad(_):
        raise RuntimeError("down")

    emit(bad, ev)

    got = []
    emit(got.append, ev)
    assert got[0]["kind"] == "CycleStarted"
