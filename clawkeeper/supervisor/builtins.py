"""
Built-in jobs and the wiring that builds a ready JobRegistry from a
DeployConfig.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from clawkeeper.backup.engine import BackupEngine
from clawkeeper.backup.restore import RestoreEngine
from clawkeeper.config.loader import load_credentials
from clawkeeper.config.schema import DeployConfig
from clawkeeper.core.audit import AuditWriter
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.policy.engine import RiskClass
from clawkeeper.storage.base import ObjectStore
from clawkeeper.storage.s3 import S3ObjectStore
from clawkeeper.supervisor.jobs import JobContext, JobRegistry, JobSpec

HISTORY_COMMIT_JOB = "history-commit"
BACKUP_JOB = "backup"
RESTORE_JOB = "restore"


def _tracker_for(ctx: JobContext) -> Optional[HistoryTracker]:
    return ctx.tracker if ctx.config.history.enable else None


def _history_commit(args: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
    snap = ctx.tracker.commit_if_changed(ctx.data_dir)
    if snap is None:
        return {"committed": False}
    return {"committed": True, **asdict(snap)}


def _backup(args: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
    engine = BackupEngine(
        store=ctx.store_factory(),
        tracker=_tracker_for(ctx),
        compression=ctx.config.backup.compression,
        tmp_dir=ctx.tmp_dir,
    )
    report = engine.run_backup(ctx.data_dir, ctx.config.backup.retention)
    return {
        "archive": report.archive.name,
        "remote_key": report.archive.remote_key,
        "commit_id": report.snapshot.commit_id if report.snapshot else None,
        "deleted": report.deleted,
        "delete_failures": report.delete_failures,
    }


def _restore(args: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
    engine = RestoreEngine(store=ctx.store_factory(), tracker=_tracker_for(ctx), tmp_dir=ctx.tmp_dir)
    report = engine.run_restore(ctx.data_dir, args.get("archive"))
    if report.restored is None:
        return {"available": report.available}
    return {
        "restored": report.restored,
        "commit_id": report.snapshot.commit_id if report.snapshot else None,
        "restart_required": report.restart_required,
    }


history_commit_spec = JobSpec(
    name=HISTORY_COMMIT_JOB,
    risks=frozenset({RiskClass.READ, RiskClass.WRITE}),
    handler=_history_commit,
    description="Auto-commit data directory changes",
)

# Backup commits first, so it needs write access to the data directory.
backup_spec = JobSpec(
    name=BACKUP_JOB,
    risks=frozenset({RiskClass.READ, RiskClass.WRITE, RiskClass.NETWORK}),
    handler=_backup,
    description="Back up data directory to S3-compatible storage",
)

restore_spec = JobSpec(
    name=RESTORE_JOB,
    risks=frozenset({RiskClass.READ, RiskClass.WRITE, RiskClass.NETWORK}),
    handler=_restore,
    description="List or restore data directory archives",
)

BUILTIN_JOBS = (history_commit_spec, backup_spec, restore_spec)


def default_store_factory(config: DeployConfig, environ: Mapping[str, str]) -> Callable[[], ObjectStore]:
    def factory() -> ObjectStore:
        creds = load_credentials(environ, config.environment_files)
        return S3ObjectStore.from_credentials(creds, config.backup.storage_provider)

    return factory


def audit_log_path(config: DeployConfig) -> Path:
    return Path(config.data_dir) / "logs" / "jobs-audit.jsonl"


def build_registry(
    config: DeployConfig,
    *,
    environ: Mapping[str, str],
    audit: Optional[AuditWriter] = None,
    store_factory: Optional[Callable[[], ObjectStore]] = None,
    tracker: Optional[HistoryTracker] = None,
    tmp_dir: Optional[Path] = None,
) -> JobRegistry:
    ctx = JobContext(
        config=config,
        data_dir=Path(config.data_dir),
        tracker=tracker or HistoryTracker(),
        store_factory=store_factory or default_store_factory(config, environ),
        tmp_dir=tmp_dir,
    )
    reg = JobRegistry(audit=audit or AuditWriter(audit_log_path(config)), context=ctx)
    for spec in BUILTIN_JOBS:
        reg.register(spec)
    return reg
