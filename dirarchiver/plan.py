"""
Plan builder: drives the walker and freezes its output into an ArchivePlan.
"""
import os
from pathlib import Path
from typing import Iterable, List, Optional

from .excludes import build_exclude_matcher
from .models import ArchivePlan, PlanEntry
from .signals import CancelToken
from .walker import ProgressCallback, walk_tree


def build_plan(
    source_dir: str | Path,
    dest_zip: Optional[str | Path] = None,
    include_base_directory: bool = False,
    follow_symlinks: bool = False,
    excludes: Optional[Iterable[str]] = None,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    case_insensitive: Optional[bool] = None,
) -> ArchivePlan:
    """
    Scan `source_dir` and return the immutable plan.

    Entries are sorted by the UTF-8 bytes of their zip paths, so two scans of an
    unchanged tree list the same entries in the same order whatever order the OS
    returns them in. Names that are not valid UTF-8 fail the scan with
    `UnsupportedNameError` unless excluded.
    """
    source = os.path.abspath(source_dir)
    dest = os.path.abspath(dest_zip) if dest_zip is not None else None
    exclude_list = list(excludes or [])
    base_directory = os.path.basename(source)

    matcher = build_exclude_matcher(source, dest, exclude_list, case_insensitive=case_insensitive)

    entries: List[PlanEntry] = list(walk_tree(
        source,
        matcher,
        dest_zip=dest,
        base_directory=base_directory if include_base_directory else None,
        follow_symlinks=follow_symlinks,
        cancel=cancel,
        on_progress=on_progress,
    ))
    entries.sort(key=lambda e: e.zip_path.encode("utf-8"))

    total_bytes = 0
    for entry in entries:
        total_bytes += entry.size

    return ArchivePlan(
        source_dir=source,
        dest_zip=dest,
        base_directory=base_directory,
        include_base_directory=include_base_directory,
        follow_symlinks=follow_symlinks,
        excludes=exclude_list,
        entries=tuple(entries),
        entry_count=len(entries),
        total_bytes=total_bytes,
    )
