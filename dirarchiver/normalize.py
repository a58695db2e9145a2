"""
Exclude normalization: turns user-supplied strings into comparable relative paths.
"""
import os
import re
from pathlib import Path
from typing import Iterable, List, Optional

from .models import NormalizedExclude
from .utils import relative_inside

# Both conventions count as separators whatever the host uses.
_SEPARATOR_RUN = re.compile(r"[\\/]+")


def normalize_separators(value: str) -> str:
    """Collapse runs of `/` or `\\` into a single native separator."""
    return _SEPARATOR_RUN.sub(lambda _: os.sep, value)

def _is_root(value: str) -> bool:
    return os.path.dirname(value) == value

def normalize_exclude(raw: str, source_dir: str | Path) -> Optional[NormalizedExclude]:
    """
    Normalize a single exclude. Returns None when the exclude reduces to nothing
    (empty, whitespace, `.`, or a filesystem root).

    `cache` is a bare name and matches at any depth; `cache/` and `nested/cache`
    are path-qualified and match only that relative location.
    """
    trimmed = raw.strip()
    if not trimmed:
        return None

    value = normalize_separators(trimmed)
    if os.path.isabs(value):
        if _is_root(os.path.normpath(value)):
            return None
        rel = relative_inside(value, source_dir)
        if rel is None:
            if os.path.abspath(value) == os.path.abspath(source_dir):
                return None
            return NormalizedExclude(
                original=raw,
                value=os.path.normpath(value),
                is_bare_name=False,
                is_absolute=True,
            )
        value = rel

    has_trailing_separator = value.endswith(os.sep)
    normalized = os.path.normpath(value)
    if normalized in ("", os.curdir) or _is_root(normalized):
        return None

    return NormalizedExclude(
        original=raw,
        value=normalized,
        is_bare_name=not has_trailing_separator and os.sep not in normalized,
    )

def normalize_excludes(excludes: Iterable[str], source_dir: str | Path) -> List[NormalizedExclude]:
    """Normalize every exclude in order, dropping the ones that reduce to nothing."""
    result: List[NormalizedExclude] = []
    for raw in excludes:
        if not isinstance(raw, str):
            continue
        normalized = normalize_exclude(raw, source_dir)
        if normalized is not None:
            result.append(normalized)
    return result
