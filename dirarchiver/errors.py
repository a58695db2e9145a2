"""
Custom exception hierarchy for dirarchiver.
"""
import errno
from typing import Optional


class DirArchiverError(Exception):
    """Base exception for all dirarchiver errors."""
    pass

class NotFoundError(DirArchiverError):
    pass

class SourceNotFoundError(NotFoundError):
    pass

class DestinationNotFoundError(NotFoundError):
    pass

class PermissionDeniedError(DirArchiverError):
    pass

class AbortedError(DirArchiverError):
    """Raised when a cancellation token fires during a scan or a write."""
    pass

class WriterError(DirArchiverError):
    """The zip writer failed to add an entry or finalize the container."""
    pass

class UnsupportedNameError(DirArchiverError):
    """A file name that cannot be stored in the archive, such as one that is not valid UTF-8."""
    pass

class ArchiveWarning(DirArchiverError):
    """
    Non-fatal condition reported by a zip writer.
    The committer decides from `code` whether the run can continue.
    """
    def __init__(self, code: Optional[str], message: str, path: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.path = path

class ArchiveError(DirArchiverError):
    pass

class ConfigError(DirArchiverError):
    pass

class ProfileNotFoundError(ConfigError):
    pass

class ProfileValidationError(ConfigError):
    pass

class ManifestError(DirArchiverError):
    pass


def translate_os_error(exc: OSError, message: str) -> DirArchiverError:
    """Map an OSError onto the matching dirarchiver error kind."""
    detail = f"{message}: {exc.strerror or exc}"
    if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT:
        return NotFoundError(detail)
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return PermissionDeniedError(detail)
    return WriterError(detail)
