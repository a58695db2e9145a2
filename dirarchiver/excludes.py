"""
Exclude matching against paths relative to the source root.
"""
import os
from pathlib import Path
from typing import FrozenSet, Iterable, Optional

from .normalize import normalize_excludes
from .utils import is_case_insensitive_fs, relative_inside


class ExcludeMatcher:
    """
    Pure predicate over precomputed sets.

    A relative path is excluded when the whole path is in `excluded_paths`, or
    when its basename is in `excluded_names` (filled only from bare-name excludes).
    """
    def __init__(
        self,
        excluded_paths: Iterable[str] = (),
        excluded_names: Iterable[str] = (),
        case_insensitive: Optional[bool] = None,
    ):
        if case_insensitive is None:
            case_insensitive = is_case_insensitive_fs()
        self.case_insensitive = case_insensitive
        self.excluded_paths: FrozenSet[str] = frozenset(self._fold(p) for p in excluded_paths)
        self.excluded_names: FrozenSet[str] = frozenset(self._fold(n) for n in excluded_names)

    def _fold(self, value: str) -> str:
        return value.lower() if self.case_insensitive else value

    def is_excluded(self, relative_path: str) -> bool:
        normalized = os.path.normpath(relative_path)
        if self._fold(normalized) in self.excluded_paths:
            return True
        return self._fold(os.path.basename(normalized)) in self.excluded_names

    def __repr__(self) -> str:
        return (
            f"ExcludeMatcher(paths={sorted(self.excluded_paths)}, "
            f"names={sorted(self.excluded_names)}, case_insensitive={self.case_insensitive})"
        )


def build_exclude_matcher(
    source_dir: str | Path,
    dest_zip: Optional[str | Path],
    excludes: Iterable[str],
    case_insensitive: Optional[bool] = None,
) -> ExcludeMatcher:
    """
    Build the run's matcher. A destination archive inside the source tree is
    always excluded by its relative path so the archive never contains itself.
    """
    paths = []
    names = []
    for exclude in normalize_excludes(excludes, source_dir):
        if exclude.is_absolute:
            continue
        paths.append(exclude.value)
        if exclude.is_bare_name:
            names.append(exclude.value)

    if dest_zip is not None:
        rel_dest = relative_inside(dest_zip, source_dir)
        if rel_dest is not None:
            paths.append(os.path.normpath(rel_dest))

    return ExcludeMatcher(paths, names, case_insensitive=case_insensitive)
