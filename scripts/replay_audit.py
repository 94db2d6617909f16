"""
Verify and replay a job audit log.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clawkeeper.core.audit import replay_audit_log  # noqa: E402


def main() -> int:
    if len(sys.argv) != 2:
        print("Usage: scripts/replay_audit.py <path-to-jobs-audit.jsonl>")
        return 2
    p = Path(sys.argv[1]).expanduser()
    res = replay_audit_log(p)
    if not res.ok:
        print(f"REPLAY FAIL: {res.error}")
        return 1
    print(f"REPLAY OK: runs={res.runs} failed={res.failed_runs} events={res.events} state_hash={res.replay_state_hash}")
    for run_id in res.unterminated:
        print(f"  unterminated: {run_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
