"""
Archive committer: turns a plan into a finished zip file, or into nothing at all.
"""
import os
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional

from .errors import (
    ArchiveError,
    ArchiveWarning,
    DestinationNotFoundError,
    DirArchiverError,
    PermissionDeniedError,
    WriterError,
    translate_os_error,
)
from .models import ArchivePlan, ArchiveReport, ProgressEvent, ReportMode, TimestampPolicy, WriterOptions
from .plan import build_plan
from .signals import CancelToken, raise_if_cancelled
from .utils import safe_unlink
from .walker import ProgressCallback
from .writer import DateTime, WriterFactory, ZipFileWriter, ZipWriter

if TYPE_CHECKING:
    from .audit import AuditLogger

ZIP_EPOCH: DateTime = (1980, 1, 1, 0, 0, 0)
ZIP_MAX_DATE_TIME: DateTime = (2107, 12, 31, 23, 59, 58)

# Writer warnings that leave the archive valid; anything else is escalated.
RECOGNIZED_WARNING_CODES = frozenset({"ENOENT"})


def resolve_timestamp(policy: TimestampPolicy, mtime_ms: float) -> DateTime:
    """Pick the zip date_time for an entry and clamp it into the range zip can store."""
    if policy == "zero":
        return ZIP_EPOCH
    if isinstance(policy, datetime):
        date_time: DateTime = policy.timetuple()[:6]  # type: ignore[assignment]
    elif policy == "preserve":
        date_time = time.localtime(mtime_ms / 1000)[:6]  # type: ignore[assignment]
    else:
        raise ArchiveError(f"Unknown timestamp policy: {policy!r}")
    return min(max(date_time, ZIP_EPOCH), ZIP_MAX_DATE_TIME)

def _ensure_writable_destination(dest: str) -> None:
    """Drop any previous archive, then create-and-close to fail before writing anything."""
    if os.path.isdir(dest):
        raise PermissionDeniedError(f"Destination '{dest}' is a directory, not a file.")
    try:
        safe_unlink(dest)
        with open(dest, "wb"):
            pass
    except FileNotFoundError as e:
        raise DestinationNotFoundError(f"Destination directory for '{dest}' does not exist.") from e
    except OSError as e:
        raise translate_os_error(e, f"Cannot create '{dest}'") from e

def _rollback(writer: Optional[ZipWriter], dest: str) -> None:
    if writer is not None:
        writer.abort()
    safe_unlink(dest)

def _commit(
    plan: ArchivePlan,
    dest: str,
    started_at: float,
    writer_options: Optional[WriterOptions],
    report: ReportMode,
    timestamps: TimestampPolicy,
    comment: Optional[str],
    cancel: Optional[CancelToken],
    on_progress: Optional[ProgressCallback],
    writer_factory: WriterFactory,
    logger: Optional["AuditLogger"],
) -> ArchiveReport:
    dest_key = os.path.normcase(dest)
    if any(os.path.normcase(e.source_path) == dest_key for e in plan.entries):
        raise ArchiveError(f"Plan contains the destination '{dest}' itself; rebuild the plan with this destination.")

    _ensure_writable_destination(dest)

    options = writer_options or WriterOptions()
    warnings: List[str] = []
    writer: Optional[ZipWriter] = None
    try:
        writer = writer_factory(dest, options)
        entries_written = 0
        bytes_written = 0
        for entry in plan.entries:
            raise_if_cancelled(cancel)
            try:
                writer.add(entry.zip_path, entry.source_path, resolve_timestamp(timestamps, entry.mtime_ms), cancel)
            except ArchiveWarning as w:
                if w.code not in RECOGNIZED_WARNING_CODES:
                    raise WriterError(f"Unrecognized writer warning ({w.code}): {w}") from w
                warnings.append(str(w))
                if logger is not None:
                    logger.log("writer_warning", code=w.code, path=w.path, message=str(w))
            entries_written += 1
            bytes_written += entry.size
            if on_progress is not None:
                on_progress(ProgressEvent(
                    phase="write",
                    entry=entry,
                    entries_processed=entries_written,
                    total_entries=plan.entry_count,
                    bytes_processed=bytes_written,
                    total_bytes=plan.total_bytes,
                ))

        writer.close(comment)
        archive_bytes = os.stat(dest).st_size
    except DirArchiverError:
        _rollback(writer, dest)
        raise
    except OSError as e:
        _rollback(writer, dest)
        raise translate_os_error(e, f"Failed to write '{dest}'") from e
    except Exception as e:
        _rollback(writer, dest)
        raise WriterError(f"Failed to write '{dest}': {e}") from e
    except BaseException:
        # KeyboardInterrupt and friends still must not leave a partial archive.
        _rollback(writer, dest)
        raise

    return ArchiveReport(
        source_dir=plan.source_dir,
        zip_path=dest,
        base_directory=plan.base_directory,
        include_base_directory=plan.include_base_directory,
        follow_symlinks=plan.follow_symlinks,
        excludes=plan.excludes,
        entry_count=plan.entry_count,
        total_bytes=plan.total_bytes,
        archive_bytes=archive_bytes,
        duration_ms=round((time.perf_counter() - started_at) * 1000),
        warnings=warnings,
        entries=plan.entries if report == "manifest" else None,
    )

def commit(
    plan: ArchivePlan,
    dest_zip: Optional[str | Path] = None,
    writer_options: Optional[WriterOptions] = None,
    report: ReportMode = "summary",
    timestamps: TimestampPolicy = "preserve",
    comment: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    writer_factory: WriterFactory = ZipFileWriter,
    logger: Optional["AuditLogger"] = None,
) -> ArchiveReport:
    """
    Write every plan entry into the destination zip, in plan order.

    On any failure, cancellation included, the destination is deleted before the
    error propagates: an existing file at the destination means a complete archive.
    """
    started_at = time.perf_counter()
    target = dest_zip if dest_zip is not None else plan.dest_zip
    if target is None:
        raise ArchiveError("No destination given and the plan has none.")
    return _commit(
        plan, os.path.abspath(target), started_at, writer_options, report, timestamps,
        comment, cancel, on_progress, writer_factory, logger,
    )

def create_archive(
    source_dir: str | Path,
    dest_zip: str | Path,
    include_base_directory: bool = False,
    follow_symlinks: bool = False,
    excludes: Optional[Iterable[str]] = None,
    report: ReportMode = "summary",
    timestamps: TimestampPolicy = "preserve",
    comment: Optional[str] = None,
    writer_options: Optional[WriterOptions] = None,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    writer_factory: WriterFactory = ZipFileWriter,
    logger: Optional["AuditLogger"] = None,
) -> ArchiveReport:
    """Scan `source_dir` and commit the resulting plan to `dest_zip`."""
    started_at = time.perf_counter()
    dest = os.path.abspath(dest_zip)
    plan = build_plan(
        source_dir,
        dest_zip=dest,
        include_base_directory=include_base_directory,
        follow_symlinks=follow_symlinks,
        excludes=excludes,
        cancel=cancel,
        on_progress=on_progress,
    )
    return _commit(
        plan, dest, started_at, writer_options, report, timestamps,
        comment, cancel, on_progress, writer_factory, logger,
    )
