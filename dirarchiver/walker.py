"""
Tree walker: iterative, symlink-cycle-safe traversal of the source directory.
"""
import os
import posixpath
import stat
from typing import Callable, Iterator, List, Optional, Set, Tuple

from .errors import PermissionDeniedError, SourceNotFoundError, UnsupportedNameError, translate_os_error
from .excludes import ExcludeMatcher
from .models import PlanEntry, ProgressEvent
from .signals import CancelToken, raise_if_cancelled

ProgressCallback = Callable[[ProgressEvent], None]


def _make_entry(
    full_path: str,
    relative_path: str,
    st: os.stat_result,
    base_directory: Optional[str],
    is_symlink: bool,
) -> PlanEntry:
    archive_relative = relative_path.replace(os.sep, "/")
    zip_path = posixpath.join(base_directory, archive_relative) if base_directory else archive_relative
    try:
        zip_path.encode("utf-8")
    except UnicodeEncodeError as e:
        raise UnsupportedNameError(
            f"Cannot archive {os.fsencode(full_path)!r}: the name is not valid UTF-8. Rename or exclude it."
        ) from e
    if not os.access(full_path, os.R_OK):
        raise PermissionDeniedError(f"Cannot read '{full_path}'.")
    return PlanEntry(
        source_path=full_path,
        relative_path=relative_path,
        zip_path=zip_path,
        size=st.st_size,
        mtime_ms=st.st_mtime_ns / 1_000_000,
        is_symlink=is_symlink,
    )

def _list_directory(path: str) -> List[os.DirEntry]:
    """Directory entries sorted by the bytes of their names."""
    try:
        with os.scandir(path) as it:
            return sorted(it, key=lambda d: os.fsencode(d.name))
    except OSError as e:
        raise translate_os_error(e, f"Cannot list directory '{path}'") from e

def walk_tree(
    source_dir: str,
    matcher: ExcludeMatcher,
    dest_zip: Optional[str] = None,
    base_directory: Optional[str] = None,
    follow_symlinks: bool = False,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Iterator[PlanEntry]:
    """
    Yield a PlanEntry for every file that survives exclusion, in traversal order.

    `source_dir` and `dest_zip` must already be absolute. `base_directory`, when
    given, prefixes every zip path. Sibling order is not significant: callers sort.
    """
    if not os.path.isdir(source_dir):
        raise SourceNotFoundError(f"Source directory '{source_dir}' does not exist or is not a directory.")

    dest_key = os.path.normcase(dest_zip) if dest_zip is not None else None
    # (absolute path, path relative to source_dir)
    worklist: List[Tuple[str, str]] = [(source_dir, "")]
    visited: Set[str] = set()
    entries_processed = 0
    bytes_processed = 0

    while worklist:
        raise_if_cancelled(cancel)
        current_dir, current_rel = worklist.pop()

        if follow_symlinks:
            try:
                real_path = os.path.realpath(current_dir, strict=True)
            except (OSError, RuntimeError):
                continue
            if real_path in visited:
                continue
            visited.add(real_path)

        # Pushed in reverse so the lowest-sorted path to a directory is descended first.
        subdirs: List[Tuple[str, str]] = []
        for dirent in _list_directory(current_dir):
            full_path = os.path.join(current_dir, dirent.name)
            if dest_key is not None and os.path.normcase(full_path) == dest_key:
                continue
            relative_path = os.path.join(current_rel, dirent.name) if current_rel else dirent.name
            if matcher.is_excluded(relative_path):
                continue

            try:
                if dirent.is_dir(follow_symlinks=False):
                    subdirs.append((full_path, relative_path))
                    continue

                if dirent.is_file(follow_symlinks=False):
                    entry = _make_entry(full_path, relative_path, dirent.stat(follow_symlinks=False), base_directory, False)
                elif dirent.is_symlink():
                    if not follow_symlinks:
                        continue
                    try:
                        target_stat = os.stat(full_path)
                    except (OSError, ValueError):
                        # Broken or unreadable link.
                        continue
                    if stat.S_ISDIR(target_stat.st_mode):
                        subdirs.append((full_path, relative_path))
                        continue
                    if not stat.S_ISREG(target_stat.st_mode):
                        continue
                    entry = _make_entry(full_path, relative_path, target_stat, base_directory, True)
                else:
                    # Sockets, FIFOs, devices.
                    continue
            except OSError as e:
                raise translate_os_error(e, f"Cannot stat '{full_path}'") from e

            entries_processed += 1
            bytes_processed += entry.size
            if on_progress is not None:
                on_progress(ProgressEvent(
                    phase="scan",
                    entry=entry,
                    entries_processed=entries_processed,
                    bytes_processed=bytes_processed,
                ))
            yield entry

        worklist.extend(reversed(subdirs))
