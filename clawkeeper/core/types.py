"""
Data types used throughout the system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Literal

RunId = str

@dataclass(frozen=True)
class HistorySnapshot:
    """
    One auto-commit in the data directory's linear history.
    """
    commit_id: str
    message: str
    timestamp: str  # ISO8601, UTC
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

@dataclass(frozen=True)
class BackupArchive:
    name: str  # openclaw-YYYYMMDD-HHMMSS.tar.<ext>
    remote_key: str  # backups/<name>

@dataclass(frozen=True)
class BackupReport:
    archive: BackupArchive
    snapshot: Optional[HistorySnapshot] = None
    deleted: List[str] = field(default_factory=list)
    delete_failures: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class RestoreReport:
    """
    Either a listing (restored is None) or the outcome of a restore.
    """
    available: List[str] = field(default_factory=list)
    restored: Optional[str] = None
    snapshot: Optional[HistorySnapshot] = None
    restart_required: bool = False

@dataclass(frozen=True)
class JobResult:
    run_id: RunId
    job_name: str
    ok: bool
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

AuditEventType = Literal[
    "JobStarted",
    "JobCompleted",
    "JobFailed",
]

@dataclass(frozen=True)
class AuditEvent:
    run_id: RunId
    type: AuditEventType
    ts_utc: str  # ISO8601
    payload: Dict[str, Any]
    prev_hash: Optional[str] = None
    hash: Optional[str] = None
