# core/utils.py
# Common helpers for the ALIVE kernel: time, ids/hashing, JSON/JSONL I/O (atomic), env-gated debug output

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import sys
import tempfile
import time
from collections import deque
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

# ---------- time ----------

def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()

def parse_iso(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    ss = s.strip()
    if ss.endswith("Z"):
        ss = ss[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(ss)
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    except Exception:
        return None

def now_ms() -> int:
    return int(time.time() * 1000)

# ---------- ids & hashing ----------

def stable_json(obj: Any) -> str:
    return json.dumps(_jsonable(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

def stable_hash(obj: Any, n: int = 16) -> str:
    """sha256 over the key-sorted compact JSON form, truncated to n hex chars."""
    return hashlib.sha256(stable_json(obj).encode("utf-8")).hexdigest()[:n]

def clamp_int(v: Any, lo: int, hi: int) -> int:
    try:
        x = int(float(v))
    except Exception:
        x = lo
    return max(lo, min(hi, x))

# ---------- paths ----------

def ensure_dir(p: Union[str, Path]) -> Path:
    path = Path(p)
    path.mkdir(parents=True, exist_ok=True)
    return path

# ---------- I/O: JSON / JSONL / text (atomic) ----------

def _jsonable(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        if hasattr(obj, "to_dict"):
            return _jsonable(obj.to_dict())
        obj = asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    if isinstance(obj, datetime):
        return iso(obj)
    if isinstance(obj, Path):
        return str(obj)
    return obj

def to_jsonable(obj: Any) -> Any:
    return _jsonable(obj)

def write_text(path: Union[str, Path], text: str, *, atomic: bool = True) -> Path:
    p = Path(path)
    ensure_dir(p.parent)
    if not atomic:
        p.write_text(text, encoding="utf-8")
        return p
    fd, tmpname = tempfile.mkstemp(prefix="._tmp_", dir=str(p.parent))
    os.close(fd)
    tmp = Path(tmpname)
    try:
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(p)
    finally:
        with contextlib.suppress(Exception):
            if tmp.exists():
                tmp.unlink()
    return p

def write_json(path: Union[str, Path], data: Any, *, indent: Optional[int] = 2, atomic: bool = True) -> Path:
    p = Path(path)
    text = json.dumps(_jsonable(data), ensure_ascii=False, indent=indent)
    return write_text(p, text + ("\n" if not text.endswith("\n") else ""), atomic=atomic)

def read_json(path: Union[str, Path], *, default: Any = None) -> Any:
    p = Path(path)
    if not p.exists():
        return default
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except Exception:
        return default

def append_jsonl(path: Union[str, Path], records: Iterable[Dict[str, Any]]) -> Path:
    p = Path(path)
    ensure_dir(p.parent)
    with p.open("a", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(_jsonable(rec), ensure_ascii=False, separators=(",", ":")) + "\n")
    return p

def iter_jsonl(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        return
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except Exception:
                continue

def tail_jsonl(path: Union[str, Path], n: int) -> List[Dict[str, Any]]:
    """Last n parseable records, oldest first."""
    return list(deque(iter_jsonl(path), maxlen=max(0, int(n))))

# ---------- debug output ----------

def dbg_enabled(var: str = "ALIVE_DEBUG") -> bool:
    try:
        return os.getenv(var, "0") not in ("0", "", "false", "False")
    except Exception:
        return False

def dbg(tag: str, *a: Any, var: str = "ALIVE_DEBUG") -> None:
    if dbg_enabled(var):
        try:
            print(f"[{tag}]", *a, file=sys.stderr, flush=True)
        except Exception:
            pass


__all__ = [
    "iso", "parse_iso", "now_ms",
    "stable_json", "stable_hash", "clamp_int",
    "ensure_dir",
    "to_jsonable", "write_text", "write_json", "read_json", "append_jsonl", "iter_jsonl", "tail_jsonl",
    "dbg_enabled", "dbg",
]
