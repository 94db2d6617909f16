"""
Object store capability the backup and restore engines need.

Keys are full object keys ("backups/openclaw-....tar.gz"); list_names()
returns names relative to the given prefix, one level deep.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Protocol

from clawkeeper.core.errors import ObjectNotFound, StorageError

BACKUP_PREFIX = "backups/"


class ObjectStore(Protocol):
    def upload_file(self, local_path: Path, key: str) -> None:
        ...

    def download_file(self, key: str, local_path: Path) -> None:
        """Raises ObjectNotFound when key does not exist."""
        ...

    def list_names(self, prefix: str) -> List[str]:
        ...

    def delete(self, key: str) -> None:
        ...


__all__ = ["BACKUP_PREFIX", "ObjectStore", "ObjectNotFound", "StorageError"]
