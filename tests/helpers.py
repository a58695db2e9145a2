import os
from pathlib import Path

DEEP_FILE = "deep/" + "/".join(f"level-{i}" for i in range(40)) + "/deep.txt"

ALL_FILES = {
    "root.txt",
    "nested/nested.txt",
    "nested/root.txt",
    "nested/skip.txt",
    "cache/cache.txt",
    "nested/cache/nested-cache.txt",
    DEEP_FILE,
}

def try_symlink(target: Path, link: Path, target_is_directory: bool = False) -> bool:
    try:
        os.symlink(target, link, target_is_directory=target_is_directory)
        return True
    except (OSError, NotImplementedError):
        return False

BAD_NAME = b"bad\xff.txt"

def try_bad_name(directory: Path) -> bool:
    """Create a file whose name is not valid UTF-8; False where the filesystem refuses."""
    try:
        with open(os.path.join(os.fsencode(directory), BAD_NAME), "wb") as f:
            f.write(b"bad")
        return True
    except OSError:
        return False
