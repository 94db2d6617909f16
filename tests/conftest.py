"""
Shared fixtures: an in-memory object store and a git-tracked data dir.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Set
import shutil

import pytest

from clawkeeper.core.errors import ObjectNotFound, StorageError
from clawkeeper.history import HistoryTracker


class MemoryStore:
    """ObjectStore double. Records every call; failures are opt-in."""

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.calls: List[str] = []
        self.fail_upload = False
        self.fail_list = False
        self.fail_delete: Set[str] = set()

    def upload_file(self, local_path: Path, key: str) -> None:
        self.calls.append(f"upload:{key}")
        assert local_path.exists()
        if self.fail_upload:
            raise StorageError("upload refused")
        self.objects[key] = local_path.read_bytes()

    def download_file(self, key: str, local_path: Path) -> None:
        self.calls.append(f"download:{key}")
        if key not in self.objects:
            raise ObjectNotFound(key)
        local_path.write_bytes(self.objects[key])

    def list_names(self, prefix: str) -> List[str]:
        self.calls.append(f"list:{prefix}")
        if self.fail_list:
            raise StorageError("list refused")
        return [k[len(prefix):] for k in self.objects if k.startswith(prefix) and "/" not in k[len(prefix):]]

    def delete(self, key: str) -> None:
        self.calls.append(f"delete:{key}")
        if key in self.fail_delete:
            raise StorageError("delete refused")
        self.objects.pop(key, None)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data"
    d.mkdir()
    (d / "state.json").write_text('{"v": 1}\n', encoding="utf-8")
    return d


@pytest.fixture
def tracker() -> HistoryTracker:
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return HistoryTracker()


@pytest.fixture
def scratch(tmp_path: Path) -> Path:
    d = tmp_path / "scratch"
    d.mkdir()
    return d
