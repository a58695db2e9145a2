"""
Pydantic v2 data models for dirarchiver.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

# Byte counters can exceed 2**53, so JSON carries them as decimal strings.
ByteCount = Annotated[
    int,
    Field(ge=0),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]

ReportMode = Literal["summary", "manifest"]
Phase = Literal["scan", "write"]
Compression = Literal["stored", "deflated", "bzip2", "lzma"]
TimestampPolicy = Union[Literal["preserve", "zero"], datetime]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)

class NormalizedExclude(FrozenModel):
    original: str
    value: str
    is_bare_name: bool
    is_absolute: bool = False  # outside the source root, never matches

class PlanEntry(FrozenModel):
    source_path: str
    relative_path: str  # native separators
    zip_path: str       # always forward slashes
    size: ByteCount
    mtime_ms: float
    is_symlink: bool = False

class ArchivePlan(FrozenModel):
    source_dir: str
    dest_zip: Optional[str] = None
    base_directory: str
    include_base_directory: bool = False
    follow_symlinks: bool = False
    excludes: List[str] = Field(default_factory=list)
    entries: Tuple[PlanEntry, ...] = ()
    entry_count: int = 0
    total_bytes: ByteCount = 0

class ProgressEvent(FrozenModel):
    phase: Phase
    entry: Optional[PlanEntry] = None
    entries_processed: int
    total_entries: Optional[int] = None
    bytes_processed: ByteCount
    total_bytes: Optional[ByteCount] = None

class ArchiveReport(FrozenModel):
    source_dir: str
    zip_path: str
    base_directory: str
    include_base_directory: bool
    follow_symlinks: bool
    excludes: List[str] = Field(default_factory=list)
    entry_count: int
    total_bytes: ByteCount
    archive_bytes: ByteCount
    duration_ms: int
    warnings: List[str] = Field(default_factory=list)
    entries: Optional[Tuple[PlanEntry, ...]] = None  # manifest report mode only

class WriterOptions(FrozenModel):
    compression: Compression = "deflated"
    compresslevel: Optional[int] = Field(default=None, ge=0, le=9)
    store_compressed_types: bool = True
    chunk_size: int = Field(default=1024 * 1024, gt=0)

class Profile(FrozenModel):
    name: str = Field(..., pattern=r"^[a-zA-Z0-9_-]+$")
    source_dir: str
    dest_zip: str
    excludes: List[str] = Field(default_factory=list)
    include_base_directory: bool = False
    follow_symlinks: bool = False
    timestamps: TimestampPolicy = "preserve"
    compression: Compression = "deflated"
    compresslevel: Optional[int] = Field(default=None, ge=0, le=9)
    comment: Optional[str] = None
    created_at: datetime

    @field_validator("excludes")
    @classmethod
    def validate_excludes(cls, v: List[str]) -> List[str]:
        return [e for e in v if e.strip()]

    @property
    def writer_options(self) -> WriterOptions:
        return WriterOptions(compression=self.compression, compresslevel=self.compresslevel)

class DoctorCheck(FrozenModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: str
