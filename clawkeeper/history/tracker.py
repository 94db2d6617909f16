"""History tracker: a linear git history of the data directory.

Every scheduled tick, and every backup or restore, calls commit_if_changed()
so that each recoverable point is also a commit. A run with nothing to commit
is a normal outcome (None), not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence
import logging
import re
import subprocess

from clawkeeper.core.errors import HistoryError
from clawkeeper.core.types import HistorySnapshot

logger = logging.getLogger(__name__)

# Volatile, cache and secret subtrees are never tracked.
IGNORE_LIST = ["logs/", "cache/", "*.tmp", "node_modules/", ".npm/", "secrets/"]

BOOTSTRAP_TAG = "bootstrap"
BOOTSTRAP_MESSAGE = "init: auto-tracked by clawkeeper"

_SHORTSTAT = re.compile(
    r"(?:(?P<files>\d+) files? changed)?"
    r"(?:, )?(?:(?P<ins>\d+) insertions?\(\+\))?"
    r"(?:, )?(?:(?P<dels>\d+) deletions?\(-\))?"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DiffStat:
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


def parse_shortstat(text: str) -> DiffStat:
    m = _SHORTSTAT.search(text.strip())
    if not m:
        return DiffStat()
    return DiffStat(
        files_changed=int(m.group("files") or 0),
        insertions=int(m.group("ins") or 0),
        deletions=int(m.group("dels") or 0),
    )


class HistoryTracker:
    """
    Drives the git executable. Does no locking of its own: the caller (the
    host supervisor) must not run two commits against one directory at once.
    """

    def __init__(
        self,
        git: str = "git",
        user_name: str = "OpenClaw Auto-Tracker",
        user_email: str = "openclaw-tracker@localhost",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._git_bin = git
        self._user_name = user_name
        self._user_email = user_email
        self._clock = clock or _utc_now

    def run(self, path: Path, args: Sequence[str]) -> subprocess.CompletedProcess:
        """Pass-through git invocation in the data directory (no checking)."""
        try:
            return subprocess.run(
                [self._git_bin, *args],
                cwd=str(path),
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise HistoryError(f"git executable not found: {self._git_bin}") from e

    def _git(self, path: Path, *args: str) -> str:
        p = self.run(path, args)
        if p.returncode != 0:
            err = (p.stderr or p.stdout).strip()
            raise HistoryError(f"git {args[0]} failed in {path}: {err or p.returncode}")
        return p.stdout

    def _commit(self, path: Path, message: str, *extra: str) -> str:
        self._git(path, "-c", "commit.gpgsign=false", "commit", "--quiet", "--no-verify", *extra, "-m", message)
        return self._git(path, "rev-parse", "HEAD").strip()

    def _has_head(self, path: Path) -> bool:
        return self.run(path, ["rev-parse", "--verify", "--quiet", "HEAD"]).returncode == 0

    def ensure_repository(self, path: Path) -> bool:
        """
        Create the history root if missing. Safe to call on every run;
        returns True only when this call created the bootstrap commit.
        """
        if not path.is_dir():
            raise HistoryError(f"data directory does not exist: {path}")

        if not (path / ".git").exists():
            self._git(path, "init", "--quiet")
            self._git(path, "config", "user.email", self._user_email)
            self._git(path, "config", "user.name", self._user_name)
            (path / ".gitignore").write_text("\n".join(IGNORE_LIST) + "\n", encoding="utf-8")
            logger.info("initialized history repository in %s", path)

        # A previous init may have been killed before its first commit.
        if self._has_head(path):
            return False

        self._git(path, "add", "-A")
        commit_id = self._commit(path, BOOTSTRAP_MESSAGE, "--allow-empty")
        self._git(path, "tag", "-f", BOOTSTRAP_TAG, commit_id)
        logger.info("created bootstrap commit %s in %s", commit_id[:12], path)
        return True

    def commit_if_changed(self, path: Path) -> Optional[HistorySnapshot]:
        """
        Stage everything; commit only if the staged tree differs from HEAD.
        Returns the new snapshot, or None when there was nothing to commit.
        """
        self.ensure_repository(path)
        self._git(path, "add", "-A")

        p = self.run(path, ["diff", "--cached", "--quiet"])
        if p.returncode == 0:
            logger.debug("no changes to commit in %s", path)
            return None
        if p.returncode != 1:
            err = (p.stderr or p.stdout).strip()
            raise HistoryError(f"git diff failed in {path}: {err or p.returncode}")

        stat_text = self._git(path, "diff", "--cached", "--shortstat").strip()
        stat = parse_shortstat(stat_text)
        ts = self._clock().astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        message = f"auto: {ts} - {stat_text}"
        commit_id = self._commit(path, message)
        logger.info("committed %s: %s", commit_id[:12], stat_text)
        return HistorySnapshot(
            commit_id=commit_id,
            message=message,
            timestamp=ts,
            files_changed=stat.files_changed,
            insertions=stat.insertions,
            deletions=stat.deletions,
        )

    def log(self, path: Path, limit: int = 10) -> List[str]:
        if not (path / ".git").exists():
            return []
        p = self.run(path, ["log", "--oneline", f"-{int(limit)}"])
        if p.returncode != 0:
            # An initialized repository with no commits yet.
            return []
        return [ln for ln in p.stdout.splitlines() if ln.strip()]
