"""
Archive naming, packing and unpacking.

Names are openclaw-YYYYMMDD-HHMMSS.tar.<ext> in UTC. The timestamp is fixed
width and zero padded, so lexicographic order is creation order; retention
relies on that.
"""

from __future__ import annotations

from datetime import datetime, timezone
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Optional
import logging
import os
import posixpath
import re
import tarfile

from clawkeeper.core.errors import ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "openclaw"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

# Any path component with one of these names is left out; secrets never
# leave the host.
EXCLUDED_NAMES = frozenset({"logs", "cache", "secrets"})
EXCLUDED_PATTERNS = ("*.tmp",)

_NAME_RE = re.compile(rf"^{ARCHIVE_PREFIX}-(\d{{8}}-\d{{6}})\.tar\.(gz|bz2|xz)$")


def archive_name(now: datetime, compression: str = "gz") -> str:
    ts = now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
    return f"{ARCHIVE_PREFIX}-{ts}.tar.{compression}"


def is_archive_name(name: str) -> bool:
    return _NAME_RE.match(name) is not None


def archive_timestamp(name: str) -> Optional[datetime]:
    m = _NAME_RE.match(name)
    if not m:
        return None
    return datetime.strptime(m.group(1), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def is_excluded(arcname: str) -> bool:
    parts = [p for p in PurePosixPath(arcname).parts if p not in {".", ""}]
    if any(p in EXCLUDED_NAMES for p in parts):
        return True
    return bool(parts) and any(fnmatch(parts[-1], pat) for pat in EXCLUDED_PATTERNS)


def _escapes_root(info: tarfile.TarInfo) -> bool:
    if info.issym():
        target = info.linkname
        if posixpath.isabs(target):
            return True
        target = posixpath.normpath(posixpath.join(posixpath.dirname(info.name), target))
        return target == ".." or target.startswith("../")
    return False


def _exclude_filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
    # Returning None for a directory also prunes everything below it.
    if is_excluded(info.name):
        return None
    # Only members the restore side accepts go in: no device nodes or
    # FIFOs, no links leaving the data directory.
    if info.ischr() or info.isblk() or info.isfifo():
        logger.warning("skipping special file %s", info.name)
        return None
    if _escapes_root(info):
        logger.warning("skipping symlink %s -> %s (points outside the data directory)", info.name, info.linkname)
        return None
    return info


def create_archive(data_dir: Path, dest: Path, compression: str = "gz") -> Path:
    if not data_dir.is_dir():
        raise ArchiveError(f"data directory does not exist: {data_dir}")
    try:
        with tarfile.open(dest, mode=f"w:{compression}") as tar:
            tar.add(str(data_dir), arcname=".", filter=_exclude_filter)
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"failed to build archive {dest.name}: {e}") from e
    logger.info("built archive %s (%d bytes)", dest.name, dest.stat().st_size)
    return dest


def _unlink_existing(root: Path, member_name: str) -> None:
    # Existing files and links are replaced rather than written through;
    # git object files are read-only. Directories are left alone.
    target = Path(os.path.normpath(root / member_name))
    if root not in target.parents:
        return
    if target.is_symlink() or target.is_file():
        target.unlink()


def _check_members(tar: tarfile.TarFile, root: Path) -> None:
    for member in tar.getmembers():
        try:
            tarfile.data_filter(member, str(root))
        except tarfile.FilterError as e:
            raise ArchiveError(f"refusing to restore {member.name}: {e}") from e


def extract_archive(archive: Path, data_dir: Path) -> None:
    """
    Extract over data_dir, overwriting conflicting files.

    Every member is checked before anything is written, so an archive the
    data filter would reject leaves data_dir untouched. After that the tree
    is written member by member and is not transactional: a failure part way
    (disk full, a directory where the archive has a file) leaves earlier
    members overwritten and later ones as they were.
    """
    if not hasattr(tarfile, "data_filter"):
        raise ArchiveError("this Python's tarfile has no extraction filters; upgrade to restore safely")
    data_dir.mkdir(parents=True, exist_ok=True)
    root = data_dir.resolve()
    try:
        with tarfile.open(archive, mode="r:*") as tar:
            _check_members(tar, root)
            for member in tar.getmembers():
                if member.isfile() or member.islnk():
                    _unlink_existing(root, member.name)
                tar.extract(member, str(root), filter="data")
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"failed to extract {archive.name}: {e}") from e
    logger.info("extracted %s into %s", archive.name, data_dir)
