"""
clawkeeper-ctl: operator and supervisor entry point.

Exit status: 0 success, 1 failed job run, 2 configuration error.
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from clawkeeper.config import load_config
from clawkeeper.config.schema import DeployConfig
from clawkeeper.core.audit import replay_audit_log
from clawkeeper.core.errors import ConfigError, HistoryError
from clawkeeper.core.types import JobResult
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.models import write_models_config
from clawkeeper.supervisor import (
    BACKUP_JOB,
    HISTORY_COMMIT_JOB,
    RESTORE_JOB,
    build_registry,
    compile_units,
    ensure_layout,
    tmpfiles_rules,
    write_units,
)
from clawkeeper.supervisor.builtins import audit_log_path
from clawkeeper.supervisor.units import BACKUP_UNIT

from apps.ctl.status import collect_status, format_status, logs_command

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="clawkeeper-ctl")
    ap.add_argument(
        "--config",
        default=os.environ.get("CLAWKEEPER_CONFIG", "/etc/openclaw/deploy.yaml"),
        help="path to deploy.yaml",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("render", help="write the models config document")
    p.add_argument("--out", default="", help="override output path")

    p = sub.add_parser("units", help="write supervisor unit files")
    p.add_argument("--out", default="units", help="output directory")

    p = sub.add_parser("layout", help="create the data directory layout")
    p.add_argument("--tmpfiles", action="store_true", help="print tmpfiles rules instead")

    sub.add_parser("track", help="commit data directory changes")

    p = sub.add_parser("backup", help="run a backup now")
    p.add_argument("--via-supervisor", action="store_true", help="start the backup unit instead of running inline")

    p = sub.add_parser("restore", help="list archives, or restore one")
    p.add_argument("archive", nargs="?", default="", help="archive name (omit to list)")

    sub.add_parser("status", help="service health, logs, disk usage, history")

    p = sub.add_parser("logs", help="show gateway output")
    p.add_argument("--follow", "-f", action="store_true")
    p.add_argument("--lines", "-n", type=int, default=50)

    p = sub.add_parser("git", help="run git in the data directory")
    p.add_argument("git_args", nargs=argparse.REMAINDER)

    sub.add_parser("audit", help="verify the job audit log")
    return ap


def _configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else os.environ.get("CLAWKEEPER_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report(res: JobResult) -> int:
    if res.ok:
        return EXIT_OK
    print(f"{res.job_name} failed: {res.error}", file=sys.stderr)
    if res.result.get("error_type") == ConfigError.__name__:
        return EXIT_CONFIG
    return EXIT_FAILED


def _run_job(cfg: DeployConfig, job: str, args: Optional[dict] = None) -> JobResult:
    reg = build_registry(cfg, environ=os.environ)
    return reg.invoke(job_name=job, args=args or {})


def cmd_backup(cfg: DeployConfig, via_supervisor: bool) -> int:
    if via_supervisor:
        scope = ["--user"] if cfg.run_as_user_services else []
        unit = f"{BACKUP_UNIT}.service"
        print("Triggering backup...")
        rc = subprocess.call(["systemctl", *scope, "start", unit])
        subprocess.call(["journalctl", *scope, "-u", unit, "--since", "30 seconds ago", "--no-pager"])
        return EXIT_OK if rc == 0 else EXIT_FAILED

    res = _run_job(cfg, BACKUP_JOB)
    if res.ok:
        print(f"backup uploaded: {res.result['archive']}")
        for name in res.result.get("deleted", []):
            print(f"  pruned {name}")
    return _report(res)


def cmd_restore(cfg: DeployConfig, archive: str) -> int:
    res = _run_job(cfg, RESTORE_JOB, {"archive": archive} if archive else {})
    if not res.ok:
        return _report(res)
    if "available" in res.result:
        print("Available backups:")
        for name in res.result["available"]:
            print(name)
        print("")
        print("Usage: clawkeeper-ctl restore <archive>")
        return EXIT_OK
    print(f"restored from {res.result['restored']}; restart the gateway to apply")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    if args.command == "render":
        out = Path(args.out or cfg.resolved_models_config_path)
        write_models_config(cfg.registry, out)
        print(out)
        return EXIT_OK

    if args.command == "units":
        for p in write_units(compile_units(cfg), Path(args.out)):
            print(p)
        return EXIT_OK

    if args.command == "layout":
        if args.tmpfiles:
            print("\n".join(tmpfiles_rules(cfg)))
            return EXIT_OK
        for p in ensure_layout(cfg):
            print(f"created {p}")
        return EXIT_OK

    if args.command == "track":
        res = _run_job(cfg, HISTORY_COMMIT_JOB)
        if res.ok and res.result.get("committed"):
            print(res.result["message"])
        return _report(res)

    if args.command == "backup":
        return cmd_backup(cfg, args.via_supervisor)

    if args.command == "restore":
        return cmd_restore(cfg, args.archive)

    if args.command == "status":
        print(format_status(collect_status(cfg, HistoryTracker())))
        return EXIT_OK

    if args.command == "logs":
        return subprocess.call(logs_command(cfg, args.follow, args.lines))

    if args.command == "git":
        try:
            p = HistoryTracker().run(Path(cfg.data_dir), args.git_args)
        except HistoryError as e:
            print(str(e), file=sys.stderr)
            return EXIT_FAILED
        sys.stdout.write(p.stdout or "")
        sys.stderr.write(p.stderr or "")
        return p.returncode

    if args.command == "audit":
        res = replay_audit_log(audit_log_path(cfg))
        if not res.ok:
            print(f"AUDIT FAIL: {res.error}")
            return EXIT_FAILED
        print(f"AUDIT OK: runs={res.runs} failed={res.failed_runs} events={res.events} state_hash={res.replay_state_hash}")
        for run_id in res.unterminated:
            print(f"  unterminated run: {run_id}")
        return EXIT_OK

    return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
