"""
Backup engine.

One run is strictly sequential:
  1. best-effort history commit (failure logged, backup continues)
  2. build the archive in a temporary directory
  3. upload it under backups/ (failure is fatal for this run, no retry)
  4. remove the local archive, whatever happened in 3
  5. best-effort retention, only after a successful upload
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple
import logging
import tempfile

from clawkeeper.backup.archive import archive_name, create_archive
from clawkeeper.backup.retention import select_expired
from clawkeeper.config.schema import RetentionPolicy
from clawkeeper.core.errors import StorageError
from clawkeeper.core.types import BackupArchive, BackupReport, HistorySnapshot
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.storage.base import BACKUP_PREFIX, ObjectStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def safety_commit(tracker: Optional[HistoryTracker], data_dir: Path, purpose: str) -> Optional[HistorySnapshot]:
    """Commit pending changes; never raises."""
    if tracker is None:
        return None
    try:
        return tracker.commit_if_changed(data_dir)
    except Exception as e:
        logger.warning("%s: history commit failed, continuing without it: %s", purpose, e)
        return None


class BackupEngine:
    def __init__(
        self,
        *,
        store: ObjectStore,
        tracker: Optional[HistoryTracker] = None,
        compression: str = "gz",
        tmp_dir: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._compression = compression
        self._tmp_dir = tmp_dir
        self._clock = clock or _utc_now

    def run_backup(self, data_dir: Path, retention: RetentionPolicy) -> BackupReport:
        snapshot = safety_commit(self._tracker, data_dir, "backup")

        name = archive_name(self._clock(), self._compression)
        archive = BackupArchive(name=name, remote_key=BACKUP_PREFIX + name)
        tmp_dir = self._tmp_dir or Path(tempfile.gettempdir())
        tmp_path = tmp_dir / name

        try:
            create_archive(data_dir, tmp_path, self._compression)
            self._store.upload_file(tmp_path, archive.remote_key)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info("backup uploaded: %s", archive.remote_key)
        deleted, failures = self.enforce_retention(retention)
        return BackupReport(archive=archive, snapshot=snapshot, deleted=deleted, delete_failures=failures)

    def enforce_retention(self, retention: RetentionPolicy) -> Tuple[List[str], List[str]]:
        """
        Delete everything but the newest retention.count archives. Never
        raises: a failed listing or deletion is logged and skipped.
        """
        if retention.count is None:
            return [], []
        try:
            names = self._store.list_names(BACKUP_PREFIX)
        except StorageError as e:
            logger.warning("retention skipped, listing failed: %s", e)
            return [], []

        deleted: List[str] = []
        failures: List[str] = []
        for name in select_expired(names, retention):
            try:
                self._store.delete(BACKUP_PREFIX + name)
                deleted.append(name)
            except StorageError as e:
                logger.warning("failed to delete old archive %s: %s", name, e)
                failures.append(name)
        if deleted:
            logger.info("retention removed %d archive(s), keeping %d", len(deleted), retention.count)
        return deleted, failures
