# core/triage.py
# Triager: expand an assessment into scored tasks, pick at most three priorities, track dependencies

from __future__ import annotations

import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .config import KERNCFG, KernelConfig
from .model import Assessment, Difficulty, Mode, Stakes, Task, Triage, Urgency

# (action, type, dependencies)
TaskTemplate = Tuple[str, str, Tuple[str, ...]]

_COMPARE_TEMPLATE: Sequence[TaskTemplate] = (
    ("gather_recipes", "retrieval", ()),
    ("extract_core", "analysis", ("gather_recipes",)),
    ("identify_variations", "analysis", ("gather_recipes",)),
    ("detect_bloat", "analysis", ("gather_recipes",)),
    ("format_comparison", "presentation", ("extract_core", "identify_variations")),
)

TASK_TEMPLATES: Dict[str, Sequence[TaskTemplate]] = {
    "recipe_add": (
        ("validate_recipe", "validation", ()),
        ("store_recipe", "storage", ("validate_recipe",)),
        ("index_recipe", "indexing", ("store_recipe",)),
    ),
    "recipe_search": (
        ("search_local", "retrieval", ()),
        ("rank_results", "processing", ("search_local",)),
    ),
    "recipe_compare": _COMPARE_TEMPLATE,
    "compare": _COMPARE_TEMPLATE,
    "substitute": (
        ("identify_function", "analysis", ()),
        ("find_substitutes", "retrieval", ("identify_function",)),
        ("rank_by_risk", "processing", ("find_substitutes",)),
    ),
    "conversion": (
        ("parse_conversion", "parsing", ()),
        ("lookup_table", "retrieval", ()),
        ("calculate", "computation", ("parse_conversion", "lookup_table")),
    ),
    "shopping": (
        ("extract_ingredients", "extraction", ()),
        ("check_pantry", "retrieval", ()),
        ("generate_list", "generation", ("extract_ingredients",)),
    ),
}
DEFAULT_TEMPLATE: Sequence[TaskTemplate] = (("process_general", "general", ()),)

URGENCY_SCORES = {Urgency.NOW: 50, Urgency.SOON: 30, Urgency.LATER: 10}
STAKES_SCORES = {Stakes.HIGH: 30, Stakes.MEDIUM: 20, Stakes.LOW: 10}
DIFFICULTY_PENALTY = {Difficulty.EASY: 0, Difficulty.MODERATE: 5, Difficulty.HARD: 10, Difficulty.CRITICAL: 15}
FOUNDATIONAL_TYPES = {"validation", "retrieval"}
DEFERRABLE_TYPES = {"presentation", "formatting"}
PRECISION_TYPES = {"validation", "retrieval", "computation"}
SIMPLICITY_MARKERS = ("extra", "optional", "enhancement")
NOISE_MARKER = "noise"
PRIORITY_CAP = 3  # MAX_PRIORITIES can only lower this


def score_task(task: Task, assessment: Assessment) -> int:
    """Urgency + stakes + type modifier - difficulty penalty (NOW only). Noise scores -10."""
    if NOISE_MARKER in task.action or task.noise:
        task.noise = True
        return -10
    score = URGENCY_SCORES.get(assessment.urgency, 10) + STAKES_SCORES.get(assessment.stakes, 20)
    if task.type in FOUNDATIONAL_TYPES:
        score += 10
    if task.type in DEFERRABLE_TYPES:
        score -= 5
    if assessment.urgency is Urgency.NOW:
        score -= DIFFICULTY_PENALTY.get(assessment.difficulty, 0)
    return score


def consolidate_dependencies(tasks: Iterable[Task]) -> List[str]:
    out: List[str] = []
    for t in tasks:
        for dep in t.dependencies:
            if dep not in out:
                out.append(dep)
    return out


def dependencies_satisfied(task: Task, completed: Iterable[str]) -> bool:
    done = set(completed)
    return all(dep in done for dep in task.dependencies)


class Triager:
    def __init__(self, *, config: Optional[KernelConfig] = None,
                 templates: Optional[Mapping[str, Sequence[TaskTemplate]]] = None,
                 now_fn: Callable[[], float] = time.time) -> None:
        self.cfg = config or KERNCFG
        self.templates = dict(TASK_TEMPLATES if templates is None else templates)
        self.max_priorities = min(PRIORITY_CAP, max(1, int(self.cfg.MAX_PRIORITIES)))
        self.now_fn = now_fn

    def extract_tasks(self, assessment: Assessment) -> List[Task]:
        tmpl = self.templates.get(assessment.input_type, DEFAULT_TEMPLATE)
        return [Task(action=a, type=t, dependencies=list(deps)) for a, t, deps in tmpl]

    def prioritize(self, assessment: Assessment, mode: Mode = Mode.HEURISTIC) -> Triage:
        mode = Mode.parse(mode)
        tasks = self.extract_tasks(assessment)
        for t in tasks:
            t.score = score_task(t, assessment)
        ranked = sorted(tasks, key=lambda t: -t.score)

        keep = [t for t in ranked if not t.noise and t.score > 0]
        triage = Triage(
            priorities=keep[: self.max_priorities],
            deferred=keep[self.max_priorities:],
            discarded=[t for t in ranked if t.noise or t.score <= 0],
            mode=mode,
            timestamp=self.now_fn(),
        )
        self.simplify_for_mode(triage, mode)
        triage.dependencies = consolidate_dependencies(triage.priorities)
        return triage

    def simplify_for_mode(self, triage: Triage, mode: Mode) -> Triage:
        """
        PRECISION keeps only validation/retrieval/computation priorities.
        HEURISTIC drops validation priorities unless marked critical or
        another priority depends on them.
        """
        if mode is Mode.PRECISION:
            triage.priorities = [t for t in triage.priorities if t.type in PRECISION_TYPES]
        else:
            needed: Set[str] = {d for t in triage.priorities for d in t.dependencies}
            triage.priorities = [
                t for t in triage.priorities
                if t.type != "validation" or "critical" in t.action or t.action in needed
            ]
        triage.dependencies = consolidate_dependencies(triage.priorities)
        return triage

    def apply_simplicity_bias(self, triage: Triage) -> Triage:
        for t in triage.priorities:
            if any(m in t.action for m in SIMPLICITY_MARKERS):
                t.score -= 15
        pool = sorted(triage.priorities + triage.deferred, key=lambda t: -t.score)
        triage.priorities = pool[: self.max_priorities]
        triage.deferred = [t for t in pool[self.max_priorities:] if t.score > 0]
        triage.dependencies = consolidate_dependencies(triage.priorities)
        return triage

    @staticmethod
    def get_next_task(triage: Triage, completed: Sequence[str] = ()) -> Optional[Task]:
        for t in triage.priorities:
            if t.action not in completed and dependencies_satisfied(t, completed):
                return t
        return None

    @staticmethod
    def has_circular_dependencies(triage: Triage) -> bool:
        graph: Dict[str, List[str]] = {t.action: list(t.dependencies) for t in triage.priorities}
        visited: Set[str] = set()
        on_stack: Set[str] = set()

        def visit(node: str) -> bool:
            visited.add(node)
            on_stack.add(node)
            for dep in graph.get(node, ()):
                if dep not in visited:
                    if visit(dep):
                        return True
                elif dep in on_stack:
                    return True
            on_stack.discard(node)
            return False

        return any(visit(n) for n in list(graph) if n not in visited)

    @staticmethod
    def format(triage: Triage) -> Dict[str, List[str]]:
        return {
            "Top Priorities": [t.action for t in triage.priorities],
            "Dependencies": list(triage.dependencies),
            "Deferred": [t.action for t in triage.deferred],
            "Discarded": [t.action for t in triage.discarded],
        }


__all__ = [
    "Triager", "TASK_TEMPLATES", "DEFAULT_TEMPLATE", "PRIORITY_CAP", "score_task",
    "consolidate_dependencies", "dependencies_satisfied",
]
