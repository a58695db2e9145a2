import errno
import json
import os
import sys
import time
import zipfile
from datetime import datetime
from pathlib import Path

import pytest

from dirarchiver.archive import ZIP_EPOCH, ZIP_MAX_DATE_TIME, commit, create_archive, resolve_timestamp
from dirarchiver.audit import AuditLogger
from dirarchiver.errors import (
    AbortedError,
    ArchiveError,
    ArchiveWarning,
    DestinationNotFoundError,
    PermissionDeniedError,
    SourceNotFoundError,
    UnsupportedNameError,
    WriterError,
)
from dirarchiver.models import ProgressEvent, WriterOptions
from dirarchiver.plan import build_plan
from dirarchiver.signals import CancelToken
from dirarchiver.writer import ZipFileWriter

from helpers import ALL_FILES, try_bad_name


def names(dest: Path) -> list[str]:
    with zipfile.ZipFile(dest) as zf:
        return zf.namelist()

class FailingWriter:
    """Delegates to a real writer and fails at a chosen step."""
    def __init__(self, dest: str, options: WriterOptions, fail_on: str, exc: BaseException, after: int = 0):
        self.inner = ZipFileWriter(dest, options)
        self.fail_on = fail_on
        self.exc = exc
        self.after = after
        self.added = 0
        self.aborted = False

    def add(self, zip_path, source_path, date_time, cancel=None):
        if self.fail_on == "add" and self.added >= self.after:
            raise self.exc
        self.inner.add(zip_path, source_path, date_time, cancel)
        self.added += 1

    def close(self, comment=None):
        if self.fail_on == "close":
            raise self.exc
        self.inner.close(comment)

    def abort(self):
        self.aborted = True
        self.inner.abort()

def failing_factory(fail_on: str, exc: BaseException, after: int = 0, created: list | None = None):
    def factory(dest: str, options: WriterOptions) -> FailingWriter:
        writer = FailingWriter(dest, options, fail_on, exc, after)
        if created is not None:
            created.append(writer)
        return writer
    return factory


def test_create_archive_writes_every_entry_in_plan_order(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    report = create_archive(source_tree, dest)

    listed = names(dest)
    assert set(listed) == ALL_FILES
    assert listed == sorted(listed)
    with zipfile.ZipFile(dest) as zf:
        assert zf.testzip() is None
        assert zf.read("root.txt") == b"root"
        assert zf.read("nested/root.txt") == b"nested-root"

    assert report.zip_path == str(dest)
    assert report.source_dir == str(source_tree)
    assert report.base_directory == "src"
    assert report.entry_count == len(ALL_FILES)
    assert report.total_bytes == sum(p.stat().st_size for p in source_tree.rglob("*") if p.is_file())
    assert report.archive_bytes == dest.stat().st_size
    assert report.duration_ms >= 0
    assert report.warnings == []
    assert report.entries is None

def test_report_totals_match_the_plan(source_tree: Path, tmp_path: Path):
    plan = build_plan(source_tree)
    report = commit(plan, tmp_path / "out.zip")
    assert report.total_bytes == plan.total_bytes
    assert report.entry_count == plan.entry_count

def test_manifest_report_lists_entries(source_tree: Path, tmp_path: Path):
    report = create_archive(source_tree, tmp_path / "out.zip", report="manifest", excludes=["deep"])
    assert report.entries is not None
    assert [e.zip_path for e in report.entries] == names(tmp_path / "out.zip")
    assert report.excludes == ["deep"]

def test_excludes_and_base_directory(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest, include_base_directory=True, excludes=["cache", "nested/skip.txt"])
    listed = names(dest)
    assert all(n.startswith("src/") for n in listed)
    assert "src/nested/skip.txt" not in listed
    assert not any("/cache/" in n for n in listed)
    assert "src/root.txt" in listed

def test_destination_inside_source(source_tree: Path):
    dest = source_tree / "out.zip"
    report = create_archive(source_tree, dest)
    assert "out.zip" not in names(dest)
    assert report.entry_count == len(ALL_FILES)

def test_existing_destination_is_replaced(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    dest.write_bytes(b"not a zip file at all")
    create_archive(source_tree, dest)
    assert zipfile.is_zipfile(dest)
    assert set(names(dest)) == ALL_FILES

def test_missing_destination_directory(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "missing" / "out.zip"
    with pytest.raises(DestinationNotFoundError):
        create_archive(source_tree, dest)
    assert not dest.exists()

def test_destination_is_a_directory(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    dest.mkdir()
    with pytest.raises(PermissionDeniedError, match="is a directory"):
        create_archive(source_tree, dest)
    assert dest.is_dir()

@pytest.mark.skipif(sys.platform in ("win32", "darwin"), reason="needs a filesystem that stores raw bytes names")
def test_non_utf8_name_fails_before_writing(source_tree: Path, tmp_path: Path):
    if not try_bad_name(source_tree):
        pytest.skip("filesystem rejects non-UTF-8 names")
    dest = tmp_path / "out.zip"
    with pytest.raises(UnsupportedNameError):
        create_archive(source_tree, dest)
    assert not dest.exists()

def test_missing_source_leaves_no_archive(tmp_path: Path):
    dest = tmp_path / "out.zip"
    with pytest.raises(SourceNotFoundError):
        create_archive(tmp_path / "missing", dest)
    assert not dest.exists()

def test_empty_source_gives_empty_archive(tmp_path: Path):
    src = tmp_path / "empty"
    src.mkdir()
    dest = tmp_path / "out.zip"
    report = create_archive(src, dest)
    assert names(dest) == []
    assert report.entry_count == 0

def test_commit_uses_plan_destination(source_tree: Path, tmp_path: Path):
    plan = build_plan(source_tree, dest_zip=tmp_path / "planned.zip")
    report = commit(plan)
    assert report.zip_path == str(tmp_path / "planned.zip")
    assert (tmp_path / "planned.zip").exists()

def test_commit_without_destination(source_tree: Path):
    with pytest.raises(ArchiveError):
        commit(build_plan(source_tree))

def test_plan_containing_the_destination_is_refused(source_tree: Path):
    dest = source_tree / "out.zip"
    dest.write_bytes(b"previous")
    plan = build_plan(source_tree)
    with pytest.raises(ArchiveError):
        commit(plan, dest)
    assert dest.read_bytes() == b"previous"


def test_write_progress(source_tree: Path, tmp_path: Path):
    plan = build_plan(source_tree)
    events: list[ProgressEvent] = []
    commit(plan, tmp_path / "out.zip", on_progress=events.append)

    assert all(e.phase == "write" for e in events)
    assert [e.entry.zip_path for e in events] == [e.zip_path for e in plan.entries]
    assert events[-1].entries_processed == plan.entry_count
    assert events[-1].bytes_processed == plan.total_bytes
    assert all(e.total_entries == plan.entry_count for e in events)
    assert all(e.total_bytes == plan.total_bytes for e in events)

def test_create_archive_reports_scan_then_write(source_tree: Path, tmp_path: Path):
    phases: list[str] = []
    create_archive(source_tree, tmp_path / "out.zip", on_progress=lambda e: phases.append(e.phase))
    assert phases == ["scan"] * len(ALL_FILES) + ["write"] * len(ALL_FILES)


def test_cancel_during_write_removes_archive(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    token = CancelToken()

    def on_progress(event: ProgressEvent) -> None:
        if event.phase == "write":
            token.cancel("user pressed Ctrl-C")

    with pytest.raises(AbortedError, match="Ctrl-C"):
        create_archive(source_tree, dest, cancel=token, on_progress=on_progress)
    assert not dest.exists()

def test_cancel_before_commit(source_tree: Path, tmp_path: Path):
    plan = build_plan(source_tree)
    token = CancelToken()
    token.cancel()
    dest = tmp_path / "out.zip"
    with pytest.raises(AbortedError):
        commit(plan, dest, cancel=token)
    assert not dest.exists()

def test_writer_checks_cancel_between_chunks(tmp_path: Path):
    big = tmp_path / "big.bin"
    big.write_bytes(b"x" * 4096)
    token = CancelToken()
    token.cancel()

    writer = ZipFileWriter(str(tmp_path / "out.zip"), WriterOptions(chunk_size=1024))
    with pytest.raises(AbortedError):
        writer.add("big.bin", str(big), ZIP_EPOCH, token)
    writer.abort()

@pytest.mark.parametrize("fail_on, exc", [
    ("add", RuntimeError("codec exploded")),
    ("add", OSError(errno.EIO, "I/O error")),
    ("close", OSError(errno.ENOSPC, "No space left on device")),
])
def test_writer_failure_removes_archive(source_tree: Path, tmp_path: Path, fail_on: str, exc: BaseException):
    dest = tmp_path / "out.zip"
    created: list[FailingWriter] = []
    with pytest.raises(WriterError):
        create_archive(source_tree, dest, writer_factory=failing_factory(fail_on, exc, after=2, created=created))
    assert not dest.exists()
    assert created and created[0].aborted

def test_keyboard_interrupt_still_removes_archive(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    with pytest.raises(KeyboardInterrupt):
        create_archive(source_tree, dest, writer_factory=failing_factory("add", KeyboardInterrupt(), after=1))
    assert not dest.exists()

def test_failed_run_removes_previous_archive(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest)
    with pytest.raises(WriterError):
        create_archive(source_tree, dest, writer_factory=failing_factory("close", RuntimeError("boom")))
    assert not dest.exists()


def test_vanished_file_becomes_a_warning(source_tree: Path, tmp_path: Path):
    plan = build_plan(source_tree)
    (source_tree / "nested" / "skip.txt").unlink()
    log_file = tmp_path / "audit.jsonl"

    dest = tmp_path / "out.zip"
    report = commit(plan, dest, logger=AuditLogger(log_file))

    assert len(report.warnings) == 1
    assert "skip.txt" in report.warnings[0]
    assert "nested/skip.txt" not in names(dest)
    assert "nested/nested.txt" in names(dest)

    events = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert events[0]["event"] == "writer_warning"
    assert events[0]["details"]["code"] == "ENOENT"

def test_unrecognized_warning_fails_the_run(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    exc = ArchiveWarning("EWEIRD", "something odd", path="x")
    with pytest.raises(WriterError, match="EWEIRD"):
        create_archive(source_tree, dest, writer_factory=failing_factory("add", exc))
    assert not dest.exists()


def test_zero_timestamps_are_reproducible(source_tree: Path, tmp_path: Path):
    first = tmp_path / "first.zip"
    second = tmp_path / "second.zip"
    create_archive(source_tree, first, timestamps="zero")
    os.utime(source_tree / "root.txt", (time.time() - 3600, time.time() - 3600))
    create_archive(source_tree, second, timestamps="zero")

    assert first.read_bytes() == second.read_bytes()
    with zipfile.ZipFile(first) as zf:
        assert all(info.date_time == ZIP_EPOCH for info in zf.infolist())

def test_fixed_timestamp(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest, timestamps=datetime(2021, 3, 4, 5, 6, 8))
    with zipfile.ZipFile(dest) as zf:
        assert {info.date_time for info in zf.infolist()} == {(2021, 3, 4, 5, 6, 8)}

def test_preserved_timestamp(source_tree: Path, tmp_path: Path):
    stamp = time.mktime((2020, 5, 17, 10, 30, 42, 0, 0, -1))
    os.utime(source_tree / "root.txt", (stamp, stamp))
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest)
    with zipfile.ZipFile(dest) as zf:
        assert zf.getinfo("root.txt").date_time == (2020, 5, 17, 10, 30, 42)

def test_resolve_timestamp_clamps_to_zip_range():
    assert resolve_timestamp("preserve", 0) == ZIP_EPOCH
    assert resolve_timestamp(datetime(1970, 6, 1), 0) == ZIP_EPOCH
    assert resolve_timestamp(datetime(2200, 1, 1), 0) == ZIP_MAX_DATE_TIME
    assert resolve_timestamp("zero", time.time() * 1000) == ZIP_EPOCH


def test_archive_comment(source_tree: Path, tmp_path: Path):
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest, comment="nightly build")
    with zipfile.ZipFile(dest) as zf:
        assert zf.comment == b"nightly build"

def test_already_compressed_types_are_stored(tmp_path: Path):
    src = tmp_path / "media"
    src.mkdir()
    (src / "photo.jpg").write_bytes(b"\xff\xd8" * 100)
    (src / "notes.txt").write_text("notes " * 100)

    dest = tmp_path / "out.zip"
    create_archive(src, dest)
    with zipfile.ZipFile(dest) as zf:
        assert zf.getinfo("photo.jpg").compress_type == zipfile.ZIP_STORED
        assert zf.getinfo("notes.txt").compress_type == zipfile.ZIP_DEFLATED

    create_archive(src, dest, writer_options=WriterOptions(store_compressed_types=False))
    with zipfile.ZipFile(dest) as zf:
        assert zf.getinfo("photo.jpg").compress_type == zipfile.ZIP_DEFLATED

@pytest.mark.parametrize("method, expected", [
    ("stored", zipfile.ZIP_STORED),
    ("bzip2", zipfile.ZIP_BZIP2),
    ("lzma", zipfile.ZIP_LZMA),
])
def test_compression_methods(source_tree: Path, tmp_path: Path, method: str, expected: int):
    dest = tmp_path / "out.zip"
    create_archive(source_tree, dest, writer_options=WriterOptions(compression=method))
    with zipfile.ZipFile(dest) as zf:
        assert {info.compress_type for info in zf.infolist()} == {expected}
        assert zf.read("nested/nested.txt") == b"nested"
