"""
Append-only job audit log with hash chaining.

Every job run (history commit, backup, restore) appends its events here so an
operator can tell afterwards what ran, when, and how it ended. One JSON object
per line:
  - run_id: str
  - type: JobStarted | JobCompleted | JobFailed
  - ts_utc: str (ISO 8601 UTC timestamp)
  - payload: Dict[str, Any] (secrets redacted)
  - prev_hash: Optional[str] (hash of previous line)
  - hash: str (SHA-256 over the canonical line with hash=None)
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import json
import time

from clawkeeper.core.codec import stable_sha256, canonical_json_bytes
from clawkeeper.core.types import AuditEvent
from clawkeeper.policy.engine import redact_text


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _redact_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    def walk(v: Any) -> Any:
        if isinstance(v, str):
            return redact_text(v)
        if isinstance(v, dict):
            return {k: walk(v[k]) for k in v}
        if isinstance(v, (list, tuple)):
            return [walk(x) for x in v]
        return v

    return walk(payload)  # type: ignore[return-value]


class AuditWriter:
    """
    Hash-chained JSONL writer. Survives restarts by recovering the last hash
    from the file tail.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._last_hash: Optional[str] = None
        if self.path.exists():
            self._last_hash = _read_last_hash(self.path)

    @property
    def last_hash(self) -> Optional[str]:
        return self._last_hash

    def append(self, run_id: str, type: str, payload: Dict[str, Any]) -> AuditEvent:
        ev = AuditEvent(
            run_id=run_id,
            type=type,  # type: ignore[arg-type]
            ts_utc=_utc_iso(),
            payload=_redact_payload(payload),
            prev_hash=self._last_hash,
            hash=None,
        )
        h = stable_sha256(asdict(ev))
        ev = AuditEvent(**{**asdict(ev), "hash": h})
        line = canonical_json_bytes(asdict(ev)).decode("utf-8")
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        self._last_hash = h
        return ev


def _read_last_hash(path: Path) -> Optional[str]:
    with path.open("rb") as f:
        f.seek(0, 2)
        size = f.tell()
        if size == 0:
            return None
        f.seek(max(0, size - 8192))
        tail = f.read().decode("utf-8", errors="ignore").splitlines()
    for line in reversed(tail):
        line = line.strip()
        if not line:
            continue
        try:
            return json.loads(line).get("hash")
        except ValueError:
            # A torn final line; chain verification will report it.
            return None
    return None


def verify_audit_log(path: Path) -> Tuple[bool, Optional[str]]:
    """
    Verify hash chain and hashes.
    Returns (ok, error_message).
    """
    if not path.exists():
        return False, "audit log does not exist"

    prev: Optional[str] = None
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            return False, f"invalid JSON at line {line_no}"
        if obj.get("prev_hash") != prev:
            return False, f"prev_hash mismatch at line {line_no}"
        expected = obj.get("hash")
        if expected != stable_sha256({**obj, "hash": None}):
            return False, f"hash mismatch at line {line_no}"
        prev = expected
    return True, None
