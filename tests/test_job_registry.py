"""
Job registry: every invocation is audited, failures become results.
"""

from __future__ import annotations

from pathlib import Path

from clawkeeper.config import parse_config
from clawkeeper.core.audit import AuditWriter, replay_audit_log, verify_audit_log
from clawkeeper.core.errors import ConfigError
from clawkeeper.supervisor import BACKUP_JOB, HISTORY_COMMIT_JOB, RESTORE_JOB, build_registry
from clawkeeper.supervisor.builtins import audit_log_path


def _registry(tmp_path: Path, data_dir: Path, store=None, tracker=None, **doc):
    cfg = parse_config({"data_dir": str(data_dir), **doc})
    audit = AuditWriter(tmp_path / "audit.jsonl")
    reg = build_registry(
        cfg,
        environ={},
        audit=audit,
        store_factory=(lambda: store) if store is not None else None,
        tracker=tracker,
        tmp_dir=tmp_path,
    )
    return reg, audit


def test_builtin_jobs_registered(tmp_path: Path, data_dir: Path, store):
    reg, _ = _registry(tmp_path, data_dir, store)
    assert reg.names() == sorted([BACKUP_JOB, HISTORY_COMMIT_JOB, RESTORE_JOB])


def test_backup_job_succeeds_and_is_audited(tmp_path: Path, data_dir: Path, store):
    reg, audit = _registry(tmp_path, data_dir, store, history={"enable": False})
    res = reg.invoke(job_name=BACKUP_JOB)
    assert res.ok is True
    assert res.result["remote_key"] in store.objects
    assert res.result["commit_id"] is None

    replay = replay_audit_log(audit.path)
    assert replay.ok is True
    assert replay.runs == 1 and replay.failed_runs == 0


def test_missing_credentials_fail_as_config_error(tmp_path: Path, data_dir: Path):
    reg, audit = _registry(tmp_path, data_dir)
    res = reg.invoke(job_name=BACKUP_JOB)
    assert res.ok is False
    assert res.result["error_type"] == ConfigError.__name__
    assert "OPENCLAW_S3_BUCKET" in res.error
    assert verify_audit_log(audit.path) == (True, None)


def test_unknown_job(tmp_path: Path, data_dir: Path, store):
    reg, audit = _registry(tmp_path, data_dir, store)
    res = reg.invoke(job_name="defrag", run_id="r-1")
    assert res.ok is False and res.error == "unknown job"
    replay = replay_audit_log(audit.path)
    assert replay.ok and replay.failed_runs == 1


def test_restore_listing_via_job(tmp_path: Path, data_dir: Path, store):
    reg, _ = _registry(tmp_path, data_dir, store, history={"enable": False})
    name = reg.invoke(job_name=BACKUP_JOB).result["archive"]
    res = reg.invoke(job_name=RESTORE_JOB)
    assert res.ok and res.result == {"available": [name]}


def test_history_commit_job(tmp_path: Path, data_dir: Path, store, tracker):
    reg, _ = _registry(tmp_path, data_dir, store, tracker=tracker)
    res = reg.invoke(job_name=HISTORY_COMMIT_JOB)
    assert res.ok and res.result == {"committed": False}
    (data_dir / "x.txt").write_text("x\n", encoding="utf-8")
    res = reg.invoke(job_name=HISTORY_COMMIT_JOB)
    assert res.ok and res.result["committed"] is True
    assert res.result["files_changed"] == 1


def test_audit_log_lives_under_excluded_logs_dir():
    cfg = parse_config({"data_dir": "/var/lib/openclaw"})
    assert audit_log_path(cfg) == Path("/var/lib/openclaw/logs/jobs-audit.jsonl")
