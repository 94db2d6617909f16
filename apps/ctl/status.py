"""
Operator status and log helpers. They shell out to the host supervisor's
tools; a missing tool yields "(unavailable)" rather than an error.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Sequence, Tuple
import os
import subprocess

from clawkeeper.config.schema import DeployConfig
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.supervisor.units import GATEWAY_UNIT

Runner = Callable[..., subprocess.CompletedProcess]


def _scope(config: DeployConfig) -> List[str]:
    return ["--user"] if config.run_as_user_services else []


def _capture(runner: Runner, cmd: Sequence[str]) -> str:
    try:
        p = runner(list(cmd), capture_output=True, text=True)
    except FileNotFoundError:
        return "(unavailable)"
    return ((p.stdout or "") + (p.stderr or "")).rstrip() or "(no output)"


def _human(n: int) -> str:
    size = float(n)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{n}B"


def dir_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += (Path(root) / name).lstat().st_size
            except OSError:
                continue
    return total


def disk_usage(data_dir: Path) -> str:
    if not data_dir.is_dir():
        return "(empty)"
    rows = [f"{_human(dir_size(p)):>8}  {p.name}/" for p in sorted(data_dir.iterdir()) if p.is_dir()]
    return "\n".join(rows) or "(empty)"


def collect_status(
    config: DeployConfig,
    tracker: HistoryTracker,
    runner: Runner = subprocess.run,
) -> List[Tuple[str, str]]:
    data_dir = Path(config.data_dir)
    lines = config.tuning.status.log_lines
    sections = [
        ("service", _capture(runner, ["systemctl", *_scope(config), "status", GATEWAY_UNIT, "--no-pager"])),
        (
            f"last {lines} log lines",
            _capture(runner, ["journalctl", *_scope(config), "-u", GATEWAY_UNIT, "-n", str(lines), "--no-pager"]),
        ),
        ("disk usage", disk_usage(data_dir)),
    ]
    if config.history.enable:
        n = config.tuning.status.history_lines
        entries = tracker.log(data_dir, n)
        sections.append((f"history (last {n})", "\n".join(entries) or "(no commits)"))
    return sections


def format_status(sections: List[Tuple[str, str]]) -> str:
    out: List[str] = []
    for title, body in sections:
        if out:
            out.append("")
        out.append(f"== {title} ==")
        out.append(body)
    return "\n".join(out)


def logs_command(config: DeployConfig, follow: bool, lines: int) -> List[str]:
    cmd = ["journalctl", *_scope(config), "-u", GATEWAY_UNIT, "-n", str(lines)]
    if follow:
        cmd.append("-f")
    else:
        cmd.append("--no-pager")
    return cmd
