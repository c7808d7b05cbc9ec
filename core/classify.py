# core/classify.py
# Pluggable input-type classification (keyword rules by default)

from __future__ import annotations

from typing import Callable, Protocol, Sequence, Tuple, Union, runtime_checkable

INPUT_TYPES = (
    "recipe_add", "recipe_search", "recipe_compare", "recipe",
    "compare", "substitute", "conversion", "shopping", "planning", "general",
)


@runtime_checkable
class InputClassifier(Protocol):
    """Maps raw request text to one of INPUT_TYPES."""

    def classify(self, text: str) -> str: ...


# (required words, any-of words, result). Evaluated in order, first match wins.
Rule = Tuple[Tuple[str, ...], Tuple[str, ...], str]

DEFAULT_RULES: Sequence[Rule] = (
    (("recipe",), ("add", "save"), "recipe_add"),
    (("recipe",), ("search", "find"), "recipe_search"),
    (("recipe",), ("compare",), "recipe_compare"),
    (("recipe",), (), "recipe"),
    ((), ("compare",), "compare"),
    ((), ("substitute", "replace"), "substitute"),
    ((), ("convert",), "conversion"),
    ((), ("shop", "list"), "shopping"),
    ((), ("plan",), "planning"),
)


class KeywordClassifier:
    """Substring rules over lowercased text; falls back to 'general'."""

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES, default: str = "general") -> None:
        self.rules = tuple(rules)
        self.default = default

    def classify(self, text: str) -> str:
        s = str(text or "").lower()
        for required, any_of, result in self.rules:
            if not all(w in s for w in required):
                continue
            if any_of and not any(w in s for w in any_of):
                continue
            return result
        return self.default


class _FunctionClassifier:
    def __init__(self, fn: Callable[[str], str]) -> None:
        self._fn = fn

    def classify(self, text: str) -> str:
        return str(self._fn(text))


def as_classifier(obj: Union[InputClassifier, Callable[[str], str], None]) -> InputClassifier:
    if obj is None:
        return KeywordClassifier()
    if isinstance(obj, InputClassifier):
        return obj
    if callable(obj):
        return _FunctionClassifier(obj)
    raise TypeError(f"not a classifier: {obj!r}")


__all__ = ["INPUT_TYPES", "InputClassifier", "KeywordClassifier", "DEFAULT_RULES", "as_classifier"]
