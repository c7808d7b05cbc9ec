# memory/models.py
# Core dataclasses for ALIVE memory tiers: StreamEntry, Assumption, LongTermEntry.

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Dict, Any
import uuid

__all__ = ["StreamEntry", "Assumption", "LongTermEntry", "infer_type"]

def _gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"

# -------------------------
# StreamEntry: one raw input, captured once
# -------------------------
@dataclass(frozen=True)
class StreamEntry:
    """
    A captured request.
    - raw_input: the request text exactly as received
    - context: caller-supplied flags (reset_triggered, schema, form, ...)
    - sequence_number: kernel cycle counter at capture time
    - timestamp: epoch seconds
    """
    raw_input: str
    context: Dict[str, Any]
    sequence_number: int
    timestamp: float
    id: str = ""

    @classmethod
    def new(cls, raw_input: Any, *, context: Optional[Dict[str, Any]] = None,
            sequence_number: int = 0, timestamp: float = 0.0) -> "StreamEntry":
        return cls(
            raw_input="" if raw_input is None else str(raw_input),
            context=dict(context or {}),
            sequence_number=int(sequence_number),
            timestamp=float(timestamp),
            id=_gen_id("stream"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "raw_input": self.raw_input,
            "context": dict(self.context),
            "sequence_number": self.sequence_number,
        }

# -------------------------
# Assumption: a belief held in working memory
# -------------------------
@dataclass
class Assumption:
    text: str
    confidence: float = 0.8
    validated: Optional[bool] = None    # None until checked
    timestamp: float = 0.0
    validated_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "validated": self.validated,
            "timestamp": self.timestamp,
            "validated_at": self.validated_at,
        }

# -------------------------
# LongTermEntry: durable knowledge
# -------------------------
def infer_type(payload: Dict[str, Any]) -> str:
    if "pattern" in payload:
        return "pattern"
    if "recipe" in payload or "ingredients" in payload:
        return "recipe"
    if "preference" in payload:
        return "preference"
    if "source" in payload or "url" in payload:
        return "source"
    if "playbook" in payload or "steps" in payload:
        return "playbook"
    return "general"

@dataclass
class LongTermEntry:
    id: str
    type: str                  # "recipe" | "preference" | "pattern" | "source" | "playbook" | "reset_snapshot" | ...
    payload: Dict[str, Any]
    stored_at: float
    last_accessed: float
    access_count: int = 0
    promoted: bool = False
    protected: bool = False

    @classmethod
    def new(cls, payload: Dict[str, Any], *, type: Optional[str] = None, now: float = 0.0,
            protected: bool = False, promoted: bool = False, id: Optional[str] = None) -> "LongTermEntry":
        body = dict(payload or {})
        t = type or str(body.get("type") or "") or infer_type(body)
        return cls(
            id=id or str(body.get("id") or "") or _gen_id(f"lt_{t}"),
            type=t,
            payload=body,
            stored_at=float(now),
            last_accessed=float(now),
            protected=bool(protected or body.get("protected", False)),
            promoted=bool(promoted),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LongTermEntry":
        return cls(
            id=str(d["id"]),
            type=str(d.get("type") or "general"),
            payload=dict(d.get("payload") or {}),
            stored_at=float(d.get("stored_at") or 0.0),
            last_accessed=float(d.get("last_accessed") or 0.0),
            access_count=int(d.get("access_count") or 0),
            promoted=bool(d.get("promoted", False)),
            protected=bool(d.get("protected", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "payload": dict(self.payload),
            "stored_at": self.stored_at,
            "last_accessed": self.last_accessed,
            "access_count": self.access_count,
            "promoted": self.promoted,
            "protected": self.protected,
        }

    def matches(self, pattern: Dict[str, Any]) -> bool:
        for k, v in (pattern or {}).items():
            if self.payload.get(k) != v:
                return False
        return True
