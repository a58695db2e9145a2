"""
Zip writer capability.

The committer only relies on the `ZipWriter` protocol: one `add` per plan entry,
then a single `close` (or `abort` on failure). `ZipFileWriter` implements it on
top of the standard library's zipfile module.
"""
import os
import zipfile
from pathlib import Path
from typing import Callable, Optional, Protocol, Set, Tuple

from .errors import ArchiveWarning
from .models import WriterOptions
from .signals import CancelToken, raise_if_cancelled

DateTime = Tuple[int, int, int, int, int, int]

COMPRESSION_METHODS = {
    "stored": zipfile.ZIP_STORED,
    "deflated": zipfile.ZIP_DEFLATED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
}

# Extensions that are already compressed, we store these as-is.
COMPRESSED_EXTS: Set[str] = {
    ".zip", ".gz", ".xz", ".bz2", ".7z", ".rar", ".zst",
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".mp4", ".mkv", ".mp3"
}


class ZipWriter(Protocol):
    """What the committer needs from a container writer."""

    def add(self, zip_path: str, source_path: str, date_time: DateTime, cancel: Optional[CancelToken] = None) -> None:
        ...

    def close(self, comment: Optional[str] = None) -> None:
        ...

    def abort(self) -> None:
        ...

WriterFactory = Callable[[str, WriterOptions], ZipWriter]


def should_compress(filename: str) -> bool:
    """Skip double-compression for media/archives."""
    return Path(filename).suffix.lower() not in COMPRESSED_EXTS


class ZipFileWriter:
    """Streams files into a zip container, checking the cancel token between chunks."""
    def __init__(self, dest_path: str, options: Optional[WriterOptions] = None):
        self.options = options or WriterOptions()
        self.dest_path = dest_path
        self._compression = COMPRESSION_METHODS[self.options.compression]
        self._zf: Optional[zipfile.ZipFile] = zipfile.ZipFile(
            dest_path,
            mode="w",
            compression=self._compression,
            compresslevel=self.options.compresslevel,
            allowZip64=True,
        )

    def _require_open(self) -> zipfile.ZipFile:
        if self._zf is None:
            raise ValueError(f"Writer for '{self.dest_path}' is already closed.")
        return self._zf

    def add(self, zip_path: str, source_path: str, date_time: DateTime, cancel: Optional[CancelToken] = None) -> None:
        zf = self._require_open()
        try:
            src = open(source_path, "rb")
        except FileNotFoundError as e:
            raise ArchiveWarning("ENOENT", f"'{source_path}' vanished before it could be archived.", path=source_path) from e
        except IsADirectoryError as e:
            raise ArchiveWarning("EISDIR", f"'{source_path}' is no longer a regular file.", path=source_path) from e

        with src:
            st = os.fstat(src.fileno())
            zinfo = zipfile.ZipInfo(zip_path, date_time=date_time)
            zinfo.create_system = 3  # Unix, so external_attr carries permissions
            zinfo.external_attr = (st.st_mode & 0xFFFF) << 16
            # Sizes the zip64 decision before any data is written.
            zinfo.file_size = st.st_size
            if self.options.store_compressed_types and not should_compress(zip_path):
                zinfo.compress_type = zipfile.ZIP_STORED
            else:
                zinfo.compress_type = self._compression
                zinfo._compresslevel = self.options.compresslevel

            with zf.open(zinfo, mode="w") as dst:
                for chunk in iter(lambda: src.read(self.options.chunk_size), b""):
                    raise_if_cancelled(cancel)
                    dst.write(chunk)

    def close(self, comment: Optional[str] = None) -> None:
        zf = self._require_open()
        if comment:
            zf.comment = comment.encode("utf-8")
        self._zf = None
        zf.close()

    def abort(self) -> None:
        """Release the file handle; the caller deletes the partial file afterwards."""
        if self._zf is None:
            return
        zf, self._zf = self._zf, None
        try:
            zf.close()
        except (OSError, ValueError):
            # Central directory could not be written; the file is discarded anyway.
            if zf.fp is not None:
                zf.fp.close()
