"""Replay a job audit log: verify the chain, then check per-run ordering.

A log holds many runs. Each run must open with JobStarted and close with
exactly one terminal event (JobCompleted or JobFailed); a run that was killed
mid-flight is reported as unterminated, not as corruption.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import json

from .writer import verify_audit_log
from clawkeeper.core.codec import stable_sha256

TERMINAL = {"JobCompleted", "JobFailed"}


@dataclass(frozen=True)
class ReplayResult:
    ok: bool
    error: Optional[str] = None
    events: int = 0
    runs: int = 0
    failed_runs: int = 0
    unterminated: List[str] = field(default_factory=list)
    replay_state_hash: Optional[str] = None


def replay_audit_log(path: Path) -> ReplayResult:
    ok, err = verify_audit_log(path)
    if not ok:
        return ReplayResult(ok=False, error=f"audit verification failed: {err}")

    lines = [ln for ln in path.read_text(encoding="utf-8").splitlines() if ln.strip()]
    if not lines:
        return ReplayResult(ok=False, error="empty audit log")

    state_hash = "GENESIS"
    # run_id -> "open" | "closed"
    runs: Dict[str, str] = {}
    failed = 0

    for i, ln in enumerate(lines, start=1):
        ev = json.loads(ln)
        run_id = ev.get("run_id")
        etype = ev.get("type")
        if not run_id or not etype or not ev.get("hash"):
            return ReplayResult(ok=False, error=f"missing run_id/type/hash at line {i}")

        state = runs.get(run_id)
        if etype == "JobStarted":
            if state is not None:
                return ReplayResult(ok=False, error=f"duplicate JobStarted for {run_id} at line {i}")
            runs[run_id] = "open"
        elif state is None:
            return ReplayResult(ok=False, error=f"{etype} before JobStarted for {run_id} at line {i}")
        elif state == "closed":
            return ReplayResult(ok=False, error=f"events after terminal event for {run_id} at line {i}")

        if etype in TERMINAL:
            runs[run_id] = "closed"
            if etype == "JobFailed":
                failed += 1

        state_hash = stable_sha256({"prev": state_hash, "event_hash": ev["hash"], "type": etype})

    unterminated = sorted(r for r, s in runs.items() if s == "open")
    return ReplayResult(
        ok=True,
        events=len(lines),
        runs=len(runs),
        failed_runs=failed,
        unterminated=unterminated,
        replay_state_hash=state_hash,
    )
