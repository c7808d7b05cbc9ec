# meta/store.py
# Persisted meta-loop state behind one interface: named JSON documents, the run log, playbook drafts and active playbooks.

from __future__ import annotations

import copy
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from core.utils import append_jsonl, ensure_dir, read_json, tail_jsonl, write_json

from .config import METACFG, MetaConfig


@runtime_checkable
class StateStore(Protocol):
    """
    Semantics:
      - load(name): the named document, or None when missing or unreadable.
      - save(name, doc): replace the document; readers never observe a partial write.
      - append_run / recent_runs: append-only run log; recent_runs(n) returns the last n, oldest first.
      - write_draft(id, doc): write a draft once; returns where it went.
      - list_drafts / list_active: (location, parsed doc or None when unparseable), sorted by location.
    """

    def load(self, name: str) -> Optional[Dict[str, Any]]: ...
    def save(self, name: str, doc: Dict[str, Any]) -> None: ...
    def append_run(self, record: Dict[str, Any]) -> None: ...
    def recent_runs(self, n: int) -> List[Dict[str, Any]]: ...
    def write_draft(self, draft_id: str, doc: Dict[str, Any]) -> str: ...
    def list_drafts(self) -> List[Tuple[str, Any]]: ...
    def list_active(self) -> List[Tuple[str, Any]]: ...
    def paths(self) -> Dict[str, str]: ...


class FileStateStore:
    """
    Layout (see MetaConfig.paths):
      <data>/runlog.jsonl, <data>/<name>.json (meta_state, meta_policy),
      <drafts>/<id>.json, <active>/*.json (operator-authored, read-only here).
    Writes are temp-then-rename under a process-local lock; there is no
    cross-process lock.
    """

    def __init__(self, config: Optional[MetaConfig] = None) -> None:
        self.cfg = config or METACFG
        self._p = self.cfg.paths()
        self._lock = threading.RLock()
        for key in ("data", "drafts", "active"):
            ensure_dir(self._p[key])

    def _doc_path(self, name: str) -> Path:
        if name == "policy":
            return self._p["policy"]
        return self._p["data"] / f"{name}.json"

    # ---- documents ----
    def load(self, name: str) -> Optional[Dict[str, Any]]:
        doc = read_json(self._doc_path(name), default=None)
        return doc if isinstance(doc, dict) else None

    def save(self, name: str, doc: Dict[str, Any]) -> None:
        with self._lock:
            write_json(self._doc_path(name), doc, indent=2, atomic=True)

    # ---- run log ----
    def append_run(self, record: Dict[str, Any]) -> None:
        with self._lock:
            append_jsonl(self._p["runlog"], [record])

    def recent_runs(self, n: int) -> List[Dict[str, Any]]:
        return tail_jsonl(self._p["runlog"], n)

    # ---- playbooks ----
    def write_draft(self, draft_id: str, doc: Dict[str, Any]) -> str:
        p = self._p["drafts"] / f"{draft_id}.json"
        with self._lock:
            write_json(p, doc, indent=2, atomic=True)
        return str(p)

    def list_drafts(self) -> List[Tuple[str, Any]]:
        return self._read_dir(self._p["drafts"])

    def list_active(self) -> List[Tuple[str, Any]]:
        return self._read_dir(self._p["active"])

    @staticmethod
    def _read_dir(d: Path) -> List[Tuple[str, Any]]:
        if not d.exists():
            return []
        out: List[Tuple[str, Any]] = []
        for p in sorted(d.glob("*.json")):
            try:
                out.append((str(p), json.loads(p.read_text(encoding="utf-8"))))
            except Exception:
                out.append((str(p), None))
        return out

    def paths(self) -> Dict[str, str]:
        return {k: str(v) for k, v in sorted(self._p.items())}


class InMemoryStateStore:
    """Same contract as FileStateStore, kept in dicts. Returned values are copies."""

    def __init__(self, *, active: Optional[List[Dict[str, Any]]] = None) -> None:
        self._lock = threading.RLock()
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.runs: List[Dict[str, Any]] = []
        self.drafts: Dict[str, Dict[str, Any]] = {}
        self.active: Dict[str, Any] = {}
        for doc in active or []:
            self.add_active(doc)

    def add_active(self, doc: Any, name: Optional[str] = None) -> str:
        with self._lock:
            if name is None:
                ident = doc.get("id") if isinstance(doc, dict) and doc.get("id") else len(self.active)
                name = f"{ident}.json"
            loc = f"mem://active/{name}"
            self.active[loc] = copy.deepcopy(doc)
            return loc

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self.docs.get(name)
            return copy.deepcopy(doc) if doc is not None else None

    def save(self, name: str, doc: Dict[str, Any]) -> None:
        with self._lock:
            self.docs[name] = json.loads(json.dumps(doc, default=str))

    def append_run(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self.runs.append(json.loads(json.dumps(record, default=str)))

    def recent_runs(self, n: int) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self.runs[-n:]) if n > 0 else []

    def write_draft(self, draft_id: str, doc: Dict[str, Any]) -> str:
        with self._lock:
            loc = f"mem://drafts/{draft_id}"
            self.drafts[loc] = copy.deepcopy(doc)
            return loc

    def list_drafts(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return [(k, copy.deepcopy(v)) for k, v in sorted(self.drafts.items())]

    def list_active(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return [(k, copy.deepcopy(v)) for k, v in sorted(self.active.items())]

    def paths(self) -> Dict[str, str]:
        return {"active": "mem://active", "drafts": "mem://drafts", "runlog": "mem://runs"}


__all__ = ["StateStore", "FileStateStore", "InMemoryStateStore"]
