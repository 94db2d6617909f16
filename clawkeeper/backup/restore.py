"""
Restore engine.

Without an archive name it only lists what is available. With a name it
downloads first (a missing archive aborts before anything local changes),
takes a best-effort safety commit, then extracts over the data directory.
The running gateway is not restarted here; the report says a restart is
required and the host supervisor owns that.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional
import logging
import tempfile

from clawkeeper.backup.archive import extract_archive, is_archive_name
from clawkeeper.backup.engine import safety_commit
from clawkeeper.core.types import RestoreReport
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.storage.base import BACKUP_PREFIX, ObjectStore

logger = logging.getLogger(__name__)


class RestoreEngine:
    def __init__(
        self,
        *,
        store: ObjectStore,
        tracker: Optional[HistoryTracker] = None,
        tmp_dir: Optional[Path] = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._tmp_dir = tmp_dir

    def list_archives(self) -> List[str]:
        return sorted(n for n in self._store.list_names(BACKUP_PREFIX) if is_archive_name(n))

    def run_restore(self, data_dir: Path, archive_name: Optional[str] = None) -> RestoreReport:
        name = (archive_name or "").strip()
        if not name:
            return RestoreReport(available=self.list_archives())

        if "/" in name or "\\" in name or ".." in name:
            raise ValueError("archive name must be a file name only")

        tmp_dir = self._tmp_dir or Path(tempfile.gettempdir())
        tmp_path = tmp_dir / f"openclaw-restore-{name}"
        try:
            self._store.download_file(BACKUP_PREFIX + name, tmp_path)
            snapshot = safety_commit(self._tracker, data_dir, "restore")
            extract_archive(tmp_path, data_dir)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info("restored %s into %s; restart the gateway to apply", name, data_dir)
        return RestoreReport(restored=name, snapshot=snapshot, restart_required=True)
