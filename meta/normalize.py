# meta/normalize.py
# Pattern keys: paraphrase-tolerant fingerprint of a run's domain, task type and intent.

from __future__ import annotations

import re
from typing import Any, Dict, List

from core.utils import stable_hash

_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")

STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "can", "could", "may", "might", "must", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    "my", "your", "his", "its", "our", "their", "please", "help",
    "make", "what", "some", "want", "need", "like", "about", "just", "also",
    "get", "give", "show", "tell", "one", "any",
})

# words that carry the request's shape, already captured by the task type
INTENT_CUES = frozenset({
    "compare", "comparison", "compared", "comparing", "versus", "vs",
    "difference", "differences", "better", "best", "which", "how", "steps", "instructions",
})

TASK_TYPE_SYNONYMS = {
    "difference": "compare",
    "vs": "compare",
    "versus": "compare",
    "which is better": "compare",
    "better": "compare",
    "comparison": "compare",
    "how to": "howto",
    "steps": "howto",
    "instructions": "howto",
}

_LOW = {"low", "easy", "later"}
_MED = {"med", "medium", "moderate", "soon"}
_HIGH = {"high", "hard", "critical", "now"}


def normalize_text(s: Any) -> str:
    if not isinstance(s, str):
        return ""
    return _WS_RE.sub(" ", _PUNCT_RE.sub(" ", s.lower())).strip()


def stem(word: str) -> str:
    """Light plural stripping: cookies -> cookie, recipes -> recipe; glass stays."""
    if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def canonical_tokens(text: Any) -> List[str]:
    """Sorted unique content tokens: stopwords and intent cues dropped, plurals folded."""
    out = set()
    for w in normalize_text(text).split():
        if w in STOPWORDS or w in INTENT_CUES:
            continue
        s = stem(w)
        if s in STOPWORDS or s in INTENT_CUES:
            continue
        out.add(s)
    return sorted(out)


def extract_entities(tokens: List[str], *, limit: int = 3, min_len: int = 4) -> List[str]:
    """Up to `limit` longest tokens (ties alphabetical)."""
    cands = sorted({t for t in tokens if len(t) >= min_len}, key=lambda t: (-len(t), t))
    return cands[:limit]


def normalize_task_type(task_type: Any) -> str:
    t = str(task_type or "").strip().lower()
    return TASK_TYPE_SYNONYMS.get(t, t)


def _bucket(v: Any) -> str:
    if hasattr(v, "value"):
        v = v.value
    if isinstance(v, bool):
        return "low"
    if isinstance(v, (int, float)):
        if v < 0.34:
            return "low"
        if v < 0.67:
            return "med"
        return "high"
    if isinstance(v, str):
        s = v.strip().lower()
        if s in _LOW:
            return "low"
        if s in _MED:
            return "med"
        if s in _HIGH:
            return "high"
        return s
    return "low"


def bucket_assessment(assessment: Dict[str, Any]) -> Dict[str, str]:
    a = assessment or {}
    precision = a.get("precision") or "flexible"
    if hasattr(precision, "value"):
        precision = precision.value
    return {
        "urgency": _bucket(a.get("urgency")),
        "stakes": _bucket(a.get("stakes")),
        "difficulty": _bucket(a.get("difficulty")),
        "precision": str(precision).strip().lower(),
    }


def normalize_intent(run: Dict[str, Any]) -> Dict[str, Any]:
    query = (run.get("inputs") or {}).get("querySummary") or ""
    tokens = canonical_tokens(query)
    return {
        "domain": str(run.get("domain") or "unknown").strip().lower(),
        "taskType": normalize_task_type(run.get("taskType")),
        "intent": {"tokens": tokens, "entities": extract_entities(tokens)},
        "assessment": bucket_assessment(run.get("assessment") or {}),
    }


def pattern_key(run: Dict[str, Any]) -> str:
    """domain|taskType|sha256-16 of the normalized intent. Pure and deterministic."""
    n = normalize_intent(run)
    return f"{n['domain']}|{n['taskType']}|{stable_hash(n, 16)}"


__all__ = [
    "STOPWORDS", "INTENT_CUES", "TASK_TYPE_SYNONYMS",
    "normalize_text", "stem", "canonical_tokens", "extract_entities",
    "normalize_task_type", "bucket_assessment", "normalize_intent", "pattern_key",
]
