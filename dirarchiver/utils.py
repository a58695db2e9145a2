"""
Core utilities for dirarchiver.
"""
import os
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, Optional


def is_windows() -> bool:
    """Return True if running on Windows."""
    return sys.platform == "win32"

def is_case_insensitive_fs() -> bool:
    """Return True where the filesystem is conventionally case-insensitive."""
    return sys.platform in ("win32", "darwin")

def relative_inside(path: str | Path, base_dir: str | Path) -> Optional[str]:
    """
    Return `path` relative to `base_dir` when it lies strictly inside it, else None.
    Both are made absolute without resolving symlinks.
    """
    abs_path = os.path.abspath(path)
    abs_base = os.path.abspath(base_dir)
    try:
        rel = os.path.relpath(abs_path, abs_base)
    except ValueError:
        # Different drives on Windows.
        return None
    if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
        return None
    return rel

def safe_unlink(path: str | Path) -> None:
    """Remove a file, treating an already absent file as success."""
    Path(path).unlink(missing_ok=True)

def human_size(nbytes: int) -> str:
    """Convert bytes to a human-readable string (e.g. 1.2 MiB)."""
    if nbytes == 0:
        return "0 B"
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]
    i = 0
    value = float(nbytes)
    while value >= 1024 and i < len(suffixes) - 1:
        value /= 1024.0
        i += 1
    if i == 0:
        return f"{int(value)} {suffixes[i]}"
    return f"{value:.1f} {suffixes[i]}"

@contextmanager
def signal_handlers(on_signal: Callable[[], None]) -> Generator[None, None, None]:
    """Route SIGINT/SIGTERM to `on_signal` instead of exiting, restoring the previous handlers afterwards."""
    def handler(signum: Any, frame: Any) -> None:
        on_signal()

    if threading.current_thread() is not threading.main_thread():
        # Only the main thread may install handlers.
        yield
        return

    signums = [signal.SIGINT] if is_windows() else [signal.SIGINT, signal.SIGTERM]
    previous = {s: signal.signal(s, handler) for s in signums}
    try:
        yield
    finally:
        for s, h in previous.items():
            signal.signal(s, h if h is not None else signal.SIG_DFL)
