"""Archive backup, restore and remote retention."""

from .archive import archive_name, create_archive, extract_archive, is_archive_name
from .engine import BackupEngine
from .restore import RestoreEngine
from .retention import select_expired

__all__ = [
    "BackupEngine",
    "RestoreEngine",
    "archive_name",
    "create_archive",
    "extract_archive",
    "is_archive_name",
    "select_expired",
]
