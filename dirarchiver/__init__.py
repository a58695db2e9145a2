"""
dirarchiver: deterministic, filterable zip archives of a directory tree.
"""
from .archive import commit, create_archive
from .errors import (
    AbortedError,
    DirArchiverError,
    NotFoundError,
    PermissionDeniedError,
    WriterError,
)
from .models import ArchivePlan, ArchiveReport, PlanEntry, ProgressEvent, WriterOptions
from .plan import build_plan
from .signals import CancelToken

__version__ = "1.0.0"

__all__ = [
    "AbortedError",
    "ArchivePlan",
    "ArchiveReport",
    "CancelToken",
    "DirArchiverError",
    "NotFoundError",
    "PermissionDeniedError",
    "PlanEntry",
    "ProgressEvent",
    "WriterError",
    "WriterOptions",
    "build_plan",
    "commit",
    "create_archive",
]
