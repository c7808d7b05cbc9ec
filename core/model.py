# core/model.py
# Core enums and value objects for the ALIVE kernel (Assessment, Task, Triage, TaskBudget, BudgetPlan, results)

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils import to_jsonable


class Urgency(str, Enum):
    NOW = "NOW"
    SOON = "SOON"
    LATER = "LATER"


class Stakes(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, Enum):
    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"
    CRITICAL = "critical"


class Precision(str, Enum):
    STRICT = "strict"
    FLEXIBLE = "flexible"


class Mode(str, Enum):
    PRECISION = "PRECISION"
    HEURISTIC = "HEURISTIC"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        if isinstance(value, Mode):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Invalid mode: {value!r}") from None


@dataclass(frozen=True)
class Assessment:
    urgency: Urgency
    stakes: Stakes
    difficulty: Difficulty
    precision: Precision
    input_type: str
    reasoning: str = ""
    timestamp: float = 0.0

    def levels(self) -> Dict[str, str]:
        """The four enum dimensions as plain strings."""
        return {
            "urgency": self.urgency.value,
            "stakes": self.stakes.value,
            "difficulty": self.difficulty.value,
            "precision": self.precision.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.levels()
        d.update(input_type=self.input_type, reasoning=self.reasoning, timestamp=self.timestamp)
        return d


@dataclass
class Task:
    action: str
    type: str
    score: int = 0
    dependencies: List[str] = field(default_factory=list)
    noise: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Triage:
    priorities: List[Task] = field(default_factory=list)
    deferred: List[Task] = field(default_factory=list)
    discarded: List[Task] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    mode: Mode = Mode.HEURISTIC
    timestamp: float = 0.0

    def priority_actions(self) -> List[str]:
        return [t.action for t in self.priorities]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priorities": [t.to_dict() for t in self.priorities],
            "deferred": [t.to_dict() for t in self.deferred],
            "discarded": [t.to_dict() for t in self.discarded],
            "dependencies": list(self.dependencies),
            "mode": self.mode.value,
            "timestamp": self.timestamp,
        }


@dataclass
class TaskBudget:
    task: str
    max_time_ms: int
    max_iterations: int = 1
    time_per_iteration_ms: int = 0
    started_at: Optional[int] = None        # epoch ms
    completed_at: Optional[int] = None      # epoch ms
    exceeded: bool = False

    def elapsed_ms(self) -> Optional[int]:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EmergencyAction:
    action: str
    description: str
    reversible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BudgetPlan:
    tasks: List[TaskBudget] = field(default_factory=list)
    total_time_ms: int = 0
    total_iterations: int = 0
    cutoff_time_ms: int = 0
    emergency_action: Optional[EmergencyAction] = None
    timestamp: float = 0.0

    def for_task(self, action: str) -> Optional[TaskBudget]:
        for tb in self.tasks:
            if tb.task == action:
                return tb
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "total_time_ms": self.total_time_ms,
            "total_iterations": self.total_iterations,
            "cutoff_time_ms": self.cutoff_time_ms,
            "emergency_action": self.emergency_action.to_dict() if self.emergency_action else None,
            "timestamp": self.timestamp,
        }


@dataclass
class TaskResult:
    task: str
    success: bool
    result: Any = None
    error: Optional[str] = None
    skipped: bool = False
    elapsed_ms: int = 0
    within_budget: bool = True
    iterations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "success": self.success,
            "result": to_jsonable(self.result),
            "error": self.error,
            "skipped": self.skipped,
            "elapsed_ms": self.elapsed_ms,
            "within_budget": self.within_budget,
            "iterations": self.iterations,
        }


@dataclass
class ExecutionResult:
    type: str
    results: List[TaskResult] = field(default_factory=list)
    completed_tasks: List[str] = field(default_factory=list)
    success: bool = False
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "results": [r.to_dict() for r in self.results],
            "completed_tasks": list(self.completed_tasks),
            "success": self.success,
            "timestamp": self.timestamp,
        }


__all__ = [
    "Urgency", "Stakes", "Difficulty", "Precision", "Mode",
    "Assessment", "Task", "Triage", "TaskBudget", "EmergencyAction", "BudgetPlan",
    "TaskResult", "ExecutionResult",
]
