"""
History tracker tests against a real git binary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import subprocess

import pytest

from clawkeeper.core.errors import HistoryError
from clawkeeper.history import BOOTSTRAP_TAG, HistoryTracker, IGNORE_LIST
from clawkeeper.history.tracker import parse_shortstat


def _git(cmd, cwd: Path) -> str:
    p = subprocess.run(["git"] + cmd, cwd=str(cwd), capture_output=True, text=True)
    assert p.returncode == 0, (p.stderr or p.stdout)
    return p.stdout


def _commit_count(repo: Path) -> int:
    return int(_git(["rev-list", "--count", "HEAD"], repo).strip())


def test_ensure_repository_is_idempotent(tracker: HistoryTracker, data_dir: Path):
    assert tracker.ensure_repository(data_dir) is True
    for _ in range(3):
        assert tracker.ensure_repository(data_dir) is False
    assert _commit_count(data_dir) == 1
    assert _git(["tag", "--list"], data_dir).split() == [BOOTSTRAP_TAG]
    assert (data_dir / ".gitignore").read_text(encoding="utf-8").split() == IGNORE_LIST


def test_bootstrap_commit_allowed_on_empty_dir(tracker: HistoryTracker, tmp_path: Path):
    d = tmp_path / "empty"
    d.mkdir()
    assert tracker.ensure_repository(d) is True
    assert _commit_count(d) == 1


def test_no_op_commit_is_suppressed(tracker: HistoryTracker, data_dir: Path):
    tracker.ensure_repository(data_dir)
    (data_dir / "notes.md").write_text("hello\n", encoding="utf-8")

    first = tracker.commit_if_changed(data_dir)
    assert first is not None
    before = _commit_count(data_dir)

    assert tracker.commit_if_changed(data_dir) is None
    assert _commit_count(data_dir) == before


def test_commit_message_has_timestamp_and_stat(tracker: HistoryTracker, data_dir: Path):
    fixed = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    tracker = HistoryTracker(clock=lambda: fixed)
    tracker.ensure_repository(data_dir)
    (data_dir / "a.txt").write_text("1\n2\n", encoding="utf-8")

    snap = tracker.commit_if_changed(data_dir)
    assert snap is not None
    assert snap.timestamp == "2026-03-04T05:06:07Z"
    assert snap.message.startswith("auto: 2026-03-04T05:06:07Z - 1 file changed")
    assert (snap.files_changed, snap.insertions, snap.deletions) == (1, 2, 0)
    assert _git(["rev-parse", "HEAD"], data_dir).strip() == snap.commit_id


def test_ignored_subtrees_are_not_tracked(tracker: HistoryTracker, data_dir: Path):
    tracker.ensure_repository(data_dir)
    (data_dir / "logs").mkdir()
    (data_dir / "logs" / "gateway.log").write_text("noise\n", encoding="utf-8")
    (data_dir / "secrets").mkdir()
    (data_dir / "secrets" / "token").write_text("s3cr3t\n", encoding="utf-8")
    (data_dir / "scratch.tmp").write_text("x", encoding="utf-8")

    assert tracker.commit_if_changed(data_dir) is None
    tracked = _git(["ls-files"], data_dir).split()
    assert "logs/gateway.log" not in tracked
    assert "secrets/token" not in tracked


def test_commit_if_changed_bootstraps_missing_repository(tracker: HistoryTracker, data_dir: Path):
    # The bootstrap commit already captures the existing tree.
    assert tracker.commit_if_changed(data_dir) is None
    assert _commit_count(data_dir) == 1


def test_log_lists_recent_commits(tracker: HistoryTracker, data_dir: Path):
    assert tracker.log(data_dir) == []
    tracker.ensure_repository(data_dir)
    (data_dir / "b.txt").write_text("b\n", encoding="utf-8")
    tracker.commit_if_changed(data_dir)
    entries = tracker.log(data_dir, limit=5)
    assert len(entries) == 2
    assert "auto:" in entries[0]


def test_missing_directory_is_fatal(tracker: HistoryTracker, tmp_path: Path):
    with pytest.raises(HistoryError):
        tracker.commit_if_changed(tmp_path / "nope")


def test_parse_shortstat_variants():
    assert parse_shortstat(" 3 files changed, 10 insertions(+), 2 deletions(-)").files_changed == 3
    s = parse_shortstat(" 1 file changed, 4 deletions(-)")
    assert (s.files_changed, s.insertions, s.deletions) == (1, 0, 4)
    assert parse_shortstat("").files_changed == 0
