# meta/schema.py
# JSON Schemas + validators for active playbooks, playbook drafts and sanitized run records

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator


# ---------------------------
# Public API
# ---------------------------

def validate_active_playbook(doc: Dict[str, Any]) -> None:
    """Raises ValueError with a readable message when an active playbook is malformed."""
    _validate_with_schema(ACTIVE_PLAYBOOK_SCHEMA, doc, where=f"active playbook {_ident(doc)}")


def validate_draft(doc: Dict[str, Any]) -> None:
    _validate_with_schema(DRAFT_PLAYBOOK_SCHEMA, doc, where=f"playbook draft {_ident(doc)}")


def validate_run_record(doc: Dict[str, Any]) -> None:
    _validate_with_schema(RUN_RECORD_SCHEMA, doc, where="run record")


def is_valid_active_playbook(doc: Any) -> bool:
    try:
        validate_active_playbook(doc)
        return True
    except ValueError:
        return False


# ---------------------------
# Internal: schemas
# ---------------------------

_STEP = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "notes": {"type": "string"},
    },
}

_TRIGGER = {
    "type": "object",
    "required": ["patternKey"],
    "properties": {
        "patternKey": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "minSuccessCount": {"type": "integer", "minimum": 0},
    },
}

ACTIVE_PLAYBOOK_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "domain", "taskType", "trigger", "steps", "responseHints"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "domain": {"type": "string"},
        "taskType": {"type": "string"},
        "trigger": _TRIGGER,
        "steps": {"type": "array", "items": _STEP},
        "responseHints": {
            "type": "object",
            "properties": {
                "prefix": {"type": ["string", "null"]},
                "outline": {"type": ["array", "null"], "items": {"type": "string"}},
            },
        },
    },
    "additionalProperties": True,
}

DRAFT_PLAYBOOK_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "version", "createdAt", "domain", "taskType", "trigger", "steps", "validation"],
    "properties": {
        "id": {"type": "string", "pattern": "^pb_"},
        "version": {"type": "string"},
        "createdAt": {"type": "string"},
        "domain": {"type": "string"},
        "taskType": {"type": "string"},
        "trigger": {**_TRIGGER, "required": ["patternKey", "description", "minSuccessCount"]},
        "steps": {"type": "array", "minItems": 1, "items": _STEP},
        "validation": {
            "type": "object",
            "required": ["successCriteria"],
            "properties": {"successCriteria": {"type": "array", "items": {"type": "string"}}},
        },
    },
    "additionalProperties": True,
}

_COUNT = {"type": "integer", "minimum": 0}

RUN_RECORD_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["ts", "domain", "taskType", "assessment", "metrics", "outcome", "inputs"],
    "properties": {
        "ts": {"type": "string"},
        "domain": {"type": "string"},
        "taskType": {"type": "string"},
        "assessment": {
            "type": "object",
            "required": ["urgency", "stakes", "difficulty", "precision"],
            "properties": {
                "urgency": {"enum": ["NOW", "SOON", "LATER"]},
                "stakes": {"enum": ["low", "medium", "high"]},
                "difficulty": {"enum": ["easy", "moderate", "hard", "critical"]},
                "precision": {"enum": ["strict", "flexible"]},
            },
        },
        "metrics": {
            "type": "object",
            "required": ["timeMs", "stepCount", "toolCalls", "lookupUsed", "lookupCount", "resetTriggered"],
            "properties": {
                "timeMs": {"type": "integer", "minimum": 0, "maximum": 86_400_000},
                "stepCount": {**_COUNT, "maximum": 10_000},
                "toolCalls": {**_COUNT, "maximum": 10_000},
                "lookupUsed": {"type": "boolean"},
                "lookupCount": {**_COUNT, "maximum": 1_000},
                "resetTriggered": {"type": "boolean"},
            },
        },
        "outcome": {
            "type": "object",
            "required": ["status", "userCorrections"],
            "properties": {
                "status": {"enum": ["success", "partial", "fail"]},
                "userCorrections": {**_COUNT, "maximum": 1_000},
            },
        },
        "inputs": {"type": "object"},
        "outputs": {"type": "object"},
        "lookupImpact": {"type": "object"},
    },
}


def _ident(doc: Any) -> str:
    if isinstance(doc, dict) and doc.get("id"):
        return repr(doc["id"])
    return "(no id)"


def _validate_with_schema(schema: Dict[str, Any], instance: Any, *, where: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.path])
    if not errors:
        return

    msgs: List[str] = []
    for e in errors[:5]:  # cap to first five
        path = "$" + "".join(f"[{repr(p)}]" if isinstance(p, int) else f".{p}" for p in e.path)
        msgs.append(f"{path}: {e.message}")
    more = "" if len(errors) <= 5 else f" (+{len(errors)-5} more)"
    raise ValueError(f"{where}: schema validation failed: " + "; ".join(msgs) + more)


__all__ = [
    "ACTIVE_PLAYBOOK_SCHEMA", "DRAFT_PLAYBOOK_SCHEMA", "RUN_RECORD_SCHEMA",
    "validate_active_playbook", "validate_draft", "validate_run_record", "is_valid_active_playbook",
]
