"""
Restore engine: listing, ordering and failure behavior.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import io
import os
import tarfile

import pytest

from clawkeeper.backup import BackupEngine, RestoreEngine
from clawkeeper.config.schema import RetentionPolicy
from clawkeeper.core.errors import ArchiveError, ObjectNotFound


class RecordingTracker:
    def __init__(self, calls):
        self.calls = calls

    def commit_if_changed(self, path):
        self.calls.append("commit")
        return None


def _seed_backup(store, data_dir: Path, scratch: Path) -> str:
    now = datetime(2026, 6, 1, 8, 30, 0, tzinfo=timezone.utc)
    report = BackupEngine(store=store, tmp_dir=scratch, clock=lambda: now).run_backup(data_dir, RetentionPolicy())
    return report.archive.name


def test_listing_without_name(store, data_dir: Path, scratch: Path):
    name = _seed_backup(store, data_dir, scratch)
    store.objects["backups/stray.bin"] = b""
    report = RestoreEngine(store=store).run_restore(data_dir)
    assert report.available == [name]
    assert report.restored is None
    assert report.restart_required is False


def test_listing_empty_store(store, data_dir: Path):
    assert RestoreEngine(store=store).run_restore(data_dir, "  ").available == []


def test_restore_overwrites_data(store, data_dir: Path, scratch: Path):
    name = _seed_backup(store, data_dir, scratch)
    (data_dir / "state.json").write_text('{"v": 2}\n', encoding="utf-8")
    (data_dir / "extra.txt").write_text("stays\n", encoding="utf-8")

    report = RestoreEngine(store=store, tmp_dir=scratch).run_restore(data_dir, name)

    assert report.restored == name
    assert report.restart_required is True
    assert (data_dir / "state.json").read_text(encoding="utf-8") == '{"v": 1}\n'
    # Extraction merges; files absent from the archive survive.
    assert (data_dir / "extra.txt").exists()
    assert list(scratch.iterdir()) == []


def test_download_precedes_safety_commit(store, data_dir: Path, scratch: Path):
    name = _seed_backup(store, data_dir, scratch)
    store.calls.clear()
    RestoreEngine(store=store, tracker=RecordingTracker(store.calls), tmp_dir=scratch).run_restore(data_dir, name)
    assert store.calls == [f"download:backups/{name}", "commit"]


def test_missing_archive_changes_nothing(store, data_dir: Path, scratch: Path):
    calls = []
    before = (data_dir / "state.json").read_bytes()
    with pytest.raises(ObjectNotFound):
        RestoreEngine(store=store, tracker=RecordingTracker(calls), tmp_dir=scratch).run_restore(
            data_dir, "openclaw-20200101-000000.tar.gz"
        )
    assert calls == []
    assert (data_dir / "state.json").read_bytes() == before
    assert list(scratch.iterdir()) == []


def test_safety_commit_captures_pre_restore_state(store, tracker, data_dir: Path, scratch: Path):
    tracker.ensure_repository(data_dir)
    name = _seed_backup(store, data_dir, scratch)
    (data_dir / "state.json").write_text('{"v": 99}\n', encoding="utf-8")

    report = RestoreEngine(store=store, tracker=tracker, tmp_dir=scratch).run_restore(data_dir, name)
    assert report.snapshot is not None
    shown = tracker.run(data_dir, ["show", f"{report.snapshot.commit_id}:state.json"]).stdout
    assert shown == '{"v": 99}\n'


@pytest.mark.parametrize("bad", ["../etc/passwd", "a/b.tar.gz", "x\\y"])
def test_path_like_names_rejected(store, data_dir: Path, bad):
    with pytest.raises(ValueError):
        RestoreEngine(store=store).run_restore(data_dir, bad)
    assert store.calls == []


def _upload_tar(store, tmp_path: Path, name: str, members) -> None:
    """members: (arcname, bytes) for files or (arcname, '->target') for symlinks."""
    p = tmp_path / name
    with tarfile.open(p, "w:gz") as tar:
        for arcname, body in members:
            info = tarfile.TarInfo(arcname)
            if isinstance(body, str):
                info.type = tarfile.SYMTYPE
                info.linkname = body[2:]
                tar.addfile(info)
            else:
                info.size = len(body)
                tar.addfile(info, io.BytesIO(body))
    store.objects["backups/" + name] = p.read_bytes()
    p.unlink()


def test_symlinks_in_data_dir_round_trip(store, data_dir: Path, scratch: Path):
    (data_dir / "00-link").symlink_to("/etc/hostname")
    (data_dir / "inner").symlink_to("state.json")
    (data_dir / "a.txt").write_text("a\n", encoding="utf-8")
    name = _seed_backup(store, data_dir, scratch)

    (data_dir / "a.txt").write_text("changed\n", encoding="utf-8")
    (data_dir / "inner").unlink()
    report = RestoreEngine(store=store, tmp_dir=scratch).run_restore(data_dir, name)

    assert report.restored == name
    assert (data_dir / "a.txt").read_text(encoding="utf-8") == "a\n"
    assert os.readlink(data_dir / "inner") == "state.json"
    # Links leaving the data directory are not archived, so not restored.
    assert os.readlink(data_dir / "00-link") == "/etc/hostname"


def test_rejected_member_leaves_data_untouched(store, data_dir: Path, scratch: Path, tmp_path: Path):
    (data_dir / "a.txt").write_text("current\n", encoding="utf-8")
    _upload_tar(
        store,
        tmp_path,
        "openclaw-20260101-000000.tar.gz",
        [("./a.txt", b"old\n"), ("./state.json", b"{}\n"), ("./zz-link", "->/etc/hostname")],
    )
    with pytest.raises(ArchiveError):
        RestoreEngine(store=store, tmp_dir=scratch).run_restore(data_dir, "openclaw-20260101-000000.tar.gz")
    assert (data_dir / "a.txt").read_text(encoding="utf-8") == "current\n"
    assert (data_dir / "state.json").read_text(encoding="utf-8") == '{"v": 1}\n'
    assert not (data_dir / "zz-link").is_symlink()


def test_failure_part_way_leaves_later_files_alone(store, data_dir: Path, scratch: Path):
    for n in ("a.txt", "m.txt", "z.txt"):
        (data_dir / n).write_text(f"{n} v1\n", encoding="utf-8")
    name = _seed_backup(store, data_dir, scratch)

    (data_dir / "a.txt").write_text("a.txt v2\n", encoding="utf-8")
    (data_dir / "m.txt").unlink()
    (data_dir / "m.txt").mkdir()
    (data_dir / "m.txt" / "keep").write_text("k\n", encoding="utf-8")
    (data_dir / "z.txt").write_text("z.txt v2\n", encoding="utf-8")

    with pytest.raises(ArchiveError):
        RestoreEngine(store=store, tmp_dir=scratch).run_restore(data_dir, name)

    # Members are written in archive order: a.txt was reached, z.txt was not.
    assert (data_dir / "a.txt").read_text(encoding="utf-8") == "a.txt v1\n"
    assert (data_dir / "m.txt" / "keep").read_text(encoding="utf-8") == "k\n"
    assert (data_dir / "z.txt").read_text(encoding="utf-8") == "z.txt v2\n"
    assert list(scratch.iterdir()) == []


def test_existing_symlink_is_replaced_not_written_through(store, data_dir: Path, scratch: Path):
    (data_dir / "a.txt").write_text("from archive\n", encoding="utf-8")
    name = _seed_backup(store, data_dir, scratch)

    (data_dir / "notes.txt").write_text("mine\n", encoding="utf-8")
    (data_dir / "a.txt").unlink()
    (data_dir / "a.txt").symlink_to("notes.txt")

    RestoreEngine(store=store, tmp_dir=scratch).run_restore(data_dir, name)
    assert not (data_dir / "a.txt").is_symlink()
    assert (data_dir / "a.txt").read_text(encoding="utf-8") == "from archive\n"
    assert (data_dir / "notes.txt").read_text(encoding="utf-8") == "mine\n"
