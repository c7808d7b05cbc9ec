# tests/core_tests/triage_test.py
import pytest

from core.config import KernelConfig
from core.model import Assessment, Difficulty, Mode, Precision, Stakes, Task, Triage, Urgency
from core.triage import (
    TASK_TEMPLATES,
    Triager,
    consolidate_dependencies,
    dependencies_satisfied,
    score_task,
)

# ---------- helpers ----------

def mk_assessment(input_type="recipe_compare", urgency=Urgency.LATER, stakes=Stakes.MEDIUM,
                  difficulty=Difficulty.HARD, precision=Precision.FLEXIBLE):
    return Assessment(urgency=urgency, stakes=stakes, difficulty=difficulty,
                      precision=precision, input_type=input_type)

def mk_triager(**cfg):
    return Triager(config=KernelConfig(**cfg), now_fn=lambda: 0.0)

# ---------- scoring ----------

def test_score_adds_urgency_stakes_and_type_modifiers():
    a = mk_assessment()
    assert score_task(Task("gather_recipes", "retrieval"), a) == 10 + 20 + 10
    assert score_task(Task("extract_core", "analysis"), a) == 10 + 20
    assert score_task(Task("format_comparison", "presentation"), a) == 10 + 20 - 5

def test_difficulty_penalty_only_applies_when_urgent():
    now = mk_assessment(urgency=Urgency.NOW, difficulty=Difficulty.CRITICAL)
    later = mk_assessment(urgency=Urgency.LATER, difficulty=Difficulty.CRITICAL)
    t = Task("extract_core", "analysis")
    assert score_task(t, now) == 50 + 20 - 15
    assert score_task(t, later) == 10 + 20

def test_noise_tasks_score_negative_and_are_flagged():
    t = Task("noise_filler", "general")
    assert score_task(t, mk_assessment()) == -10
    assert t.noise is True

# ---------- prioritization ----------

def test_compare_request_priorities_in_score_order():
    tri = mk_triager().prioritize(mk_assessment(), Mode.HEURISTIC)
    assert tri.priority_actions() == ["gather_recipes", "extract_core", "identify_variations"]
    assert [t.action for t in tri.deferred] == ["detect_bloat", "format_comparison"]
    assert tri.dependencies == ["gather_recipes"]
    assert tri.mode is Mode.HEURISTIC

@pytest.mark.parametrize("input_type", sorted(TASK_TEMPLATES) + ["general", "unknown_kind"])
@pytest.mark.parametrize("mode", [Mode.HEURISTIC, Mode.PRECISION])
def test_never_more_than_three_priorities(input_type, mode):
    tri = mk_triager().prioritize(mk_assessment(input_type=input_type), mode)
    assert len(tri.priorities) <= 3

def test_max_priorities_is_configurable():
    tri = mk_triager(MAX_PRIORITIES=1).prioritize(mk_assessment(), Mode.HEURISTIC)
    assert tri.priority_actions() == ["gather_recipes"]

def test_configured_max_priorities_cannot_exceed_three():
    tri = mk_triager(MAX_PRIORITIES=5).prioritize(mk_assessment(), Mode.HEURISTIC)
    assert tri.priority_actions() == ["gather_recipes", "extract_core", "identify_variations"]
    assert [t.action for t in tri.deferred] == ["detect_bloat", "format_comparison"]
    assert mk_triager(MAX_PRIORITIES=0).max_priorities == 1

def test_precision_mode_keeps_only_precision_task_types():
    tri = mk_triager().prioritize(mk_assessment(input_type="conversion"), Mode.PRECISION)
    assert tri.priority_actions() == ["lookup_table", "calculate"]
    assert all(t.type in {"validation", "retrieval", "computation"} for t in tri.priorities)

def test_heuristic_keeps_validation_another_priority_depends_on():
    tri = mk_triager().prioritize(mk_assessment(input_type="recipe_add"), Mode.HEURISTIC)
    assert "validate_recipe" in tri.priority_actions()
    assert "store_recipe" in tri.priority_actions()

def test_heuristic_drops_validation_nothing_depends_on():
    templates = {"check": (("validate_input", "validation", ()), ("do_work", "general", ()))}
    tri = Triager(config=KernelConfig(), templates=templates, now_fn=lambda: 0.0).prioritize(
        mk_assessment(input_type="check"), Mode.HEURISTIC)
    assert tri.priority_actions() == ["do_work"]

def test_unknown_input_type_uses_general_template():
    tri = mk_triager().prioritize(mk_assessment(input_type="nonsense"), "heuristic")
    assert tri.priority_actions() == ["process_general"]

def test_invalid_mode_is_rejected():
    with pytest.raises(ValueError):
        mk_triager().prioritize(mk_assessment(), "SLOPPY")

# ---------- dependencies ----------

def test_every_priority_dependency_is_listed():
    for input_type in TASK_TEMPLATES:
        tri = mk_triager().prioritize(mk_assessment(input_type=input_type), Mode.HEURISTIC)
        for t in tri.priorities:
            assert set(t.dependencies) <= set(tri.dependencies)

def test_consolidate_dependencies_preserves_first_seen_order():
    tasks = [Task("c", "x", dependencies=["a", "b"]), Task("d", "x", dependencies=["b", "z"])]
    assert consolidate_dependencies(tasks) == ["a", "b", "z"]

def test_dependencies_satisfied():
    t = Task("calculate", "computation", dependencies=["parse_conversion", "lookup_table"])
    assert not dependencies_satisfied(t, ["parse_conversion"])
    assert dependencies_satisfied(t, ["lookup_table", "parse_conversion"])

def test_get_next_task_respects_dependencies():
    tri = mk_triager().prioritize(mk_assessment(), Mode.HEURISTIC)
    assert Triager.get_next_task(tri, []).action == "gather_recipes"
    assert Triager.get_next_task(tri, ["gather_recipes"]).action == "extract_core"
    assert Triager.get_next_task(tri, ["gather_recipes", "extract_core", "identify_variations"]) is None

def test_circular_dependencies_detected():
    cyc = Triage(priorities=[Task("a", "x", dependencies=["b"]), Task("b", "x", dependencies=["a"])])
    ok = Triage(priorities=[Task("a", "x"), Task("b", "x", dependencies=["a"])])
    assert Triager.has_circular_dependencies(cyc)
    assert not Triager.has_circular_dependencies(ok)

# ---------- simplicity bias / format ----------

def test_simplicity_bias_demotes_optional_work():
    tri = Triage(priorities=[Task("optional_garnish", "general", score=40), Task("core", "general", score=30)],
                 deferred=[Task("other", "general", score=28)])
    out = mk_triager(MAX_PRIORITIES=2).apply_simplicity_bias(tri)
    assert [t.action for t in out.priorities] == ["core", "other"]
    assert [t.action for t in out.deferred] == ["optional_garnish"]

def test_format_lists_each_bucket():
    tri = mk_triager().prioritize(mk_assessment(), Mode.HEURISTIC)
    out = Triager.format(tri)
    assert out["Top Priorities"] == tri.priority_actions()
    assert out["Deferred"] == ["detect_bloat", "format_comparison"]
    assert out["Discarded"] == []
