# core/assess.py
# Assessor: keyword rules that rate one request on urgency, stakes, difficulty and precision

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Sequence

from memory.models import StreamEntry
from memory.session import MemoryTiers

from .classify import InputClassifier, as_classifier
from .model import Assessment, Difficulty, Precision, Stakes, Urgency

URGENCY_KEYWORDS: Dict[Urgency, Sequence[str]] = {
    Urgency.NOW: ("urgent", "immediately", "now", "asap", "emergency", "critical", "burning"),
    Urgency.SOON: ("soon", "shortly", "quick", "fast", "today", "need"),
    Urgency.LATER: ("later", "eventually", "sometime", "when", "maybe", "consider"),
}

STAKES_KEYWORDS: Dict[Stakes, Sequence[str]] = {
    Stakes.HIGH: ("important", "critical", "must", "essential", "crucial", "vital", "safety", "health"),
    Stakes.MEDIUM: ("should", "would", "prefer", "better", "want"),
    Stakes.LOW: ("optional", "nice", "could", "might", "curious"),
}

TIME_SENSITIVE_WORDS = ("boiling", "cooking", "burning", "timing", "timer", "done", "ready", "overcook", "undercook")
SAFETY_WORDS = ("safe", "temperature", "food safety", "poison")
ALLERGY_WORDS = ("allerg", "intolerance")
STRICT_WORDS = ("exact", "precise", "convert", "temperature", "safe", "must")


def _contains_any(s: str, words: Sequence[str]) -> bool:
    return any(w in s for w in words)


class Assessor:
    """
    Rates a StreamEntry. Each dimension is an independent rule chain over
    the lowercased text; when nothing matches the dimension takes its
    default. Reads memory, never writes it.
    """

    def __init__(self, classifier: Optional[InputClassifier] = None, *, now_fn: Callable[[], float] = time.time) -> None:
        self.classifier = as_classifier(classifier)
        self.now_fn = now_fn

    def evaluate(self, entry: StreamEntry, memory: Optional[MemoryTiers] = None) -> Assessment:
        text = str(entry.raw_input or "")
        lower = text.lower()
        ctx = entry.context or {}
        urgency = self.assess_urgency(lower, ctx, memory)
        stakes = self.assess_stakes(lower)
        difficulty = self.assess_difficulty(lower)
        precision = self.assess_precision(lower, ctx)
        return Assessment(
            urgency=urgency,
            stakes=stakes,
            difficulty=difficulty,
            precision=precision,
            input_type=self.classifier.classify(text),
            reasoning=reasoning_for(urgency, stakes, difficulty, precision),
            timestamp=self.now_fn(),
        )

    # ---------- dimensions ----------

    def assess_urgency(self, lower: str, ctx: Dict[str, Any], memory: Optional[MemoryTiers]) -> Urgency:
        if _contains_any(lower, URGENCY_KEYWORDS[Urgency.NOW]):
            return Urgency.NOW
        if ctx.get("reset_triggered"):
            return Urgency.NOW
        if memory is not None:
            active = memory.working.get_active_task()
            if active and active.get("urgent"):
                return Urgency.NOW
        if _contains_any(lower, TIME_SENSITIVE_WORDS):
            return Urgency.NOW
        if _contains_any(lower, URGENCY_KEYWORDS[Urgency.SOON]):
            return Urgency.SOON
        return Urgency.LATER

    def assess_stakes(self, lower: str) -> Stakes:
        if _contains_any(lower, STAKES_KEYWORDS[Stakes.HIGH]):
            return Stakes.HIGH
        if _contains_any(lower, SAFETY_WORDS) or _contains_any(lower, ALLERGY_WORDS):
            return Stakes.HIGH
        if _contains_any(lower, STAKES_KEYWORDS[Stakes.MEDIUM]) or "compare" in lower:
            return Stakes.MEDIUM
        if _contains_any(lower, STAKES_KEYWORDS[Stakes.LOW]):
            return Stakes.LOW
        return Stakes.MEDIUM

    def assess_difficulty(self, lower: str) -> Difficulty:
        if "convert" in lower and "custom" in lower:
            return Difficulty.CRITICAL
        if "compare" in lower and "multiple" in lower:
            return Difficulty.CRITICAL
        if "compare" in lower or "analyze" in lower:
            return Difficulty.HARD
        if "substitute" in lower and "multiple" in lower:
            return Difficulty.HARD
        if "convert" in lower or "substitute" in lower:
            return Difficulty.MODERATE
        if "recipe" in lower and ("add" in lower or "save" in lower):
            return Difficulty.MODERATE
        if _contains_any(lower, ("get", "show", "list")):
            return Difficulty.EASY
        return Difficulty.MODERATE

    def assess_precision(self, lower: str, ctx: Dict[str, Any]) -> Precision:
        if _contains_any(lower, STRICT_WORDS):
            return Precision.STRICT
        if ctx.get("schema") or ctx.get("form"):
            return Precision.STRICT
        return Precision.FLEXIBLE


def reasoning_for(urgency: Urgency, stakes: Stakes, difficulty: Difficulty, precision: Precision) -> str:
    parts = [
        {Urgency.NOW: "Requires immediate attention",
         Urgency.SOON: "Should be handled promptly"}.get(urgency, "Can be planned/deferred"),
        {Stakes.HIGH: "High importance - critical outcome",
         Stakes.MEDIUM: "Moderate importance"}.get(stakes, "Low stakes - exploratory"),
        {Difficulty.CRITICAL: "Complex - requires external resources",
         Difficulty.HARD: "Challenging - multi-step reasoning",
         Difficulty.MODERATE: "Moderate complexity"}.get(difficulty, "Straightforward task"),
        "Requires exact/deterministic output" if precision is Precision.STRICT else "Flexible - good enough is acceptable",
    ]
    return "; ".join(parts)


__all__ = ["Assessor", "reasoning_for", "URGENCY_KEYWORDS", "STAKES_KEYWORDS"]
