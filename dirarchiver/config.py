"""
Configuration and saved archive profiles for dirarchiver.
"""
import json
import os
import stat
import sys
from pathlib import Path
from typing import List

from .errors import ProfileNotFoundError, ProfileValidationError
from .models import Profile

APP_NAME = "dirarchiver"

def get_config_dir() -> Path:
    """Returns the platform-specific configuration directory."""
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            base_dir = Path(appdata)
        else:
            base_dir = Path.home() / "AppData" / "Roaming"
    else:
        # XDG Base Directory specification
        xdg_config = os.getenv("XDG_CONFIG_HOME")
        if xdg_config:
            base_dir = Path(xdg_config)
        else:
            base_dir = Path.home() / ".config"

    config_dir = base_dir / APP_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir

def get_profiles_dir() -> Path:
    profiles_dir = get_config_dir() / "profiles"
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir

def list_profiles() -> List[str]:
    """List all available profile names."""
    profiles = []
    for fp in get_profiles_dir().glob("*.json"):
        if fp.is_file() and not fp.name.startswith("."):
            profiles.append(fp.stem)
    return sorted(profiles)

def get_profile_path(name: str) -> Path:
    """Return the filesystem path for a specific profile name."""
    return get_profiles_dir() / f"{name}.json"

def apply_secure_permissions(path: Path) -> None:
    """Apply chmod 600 equivalent permissions to a file."""
    if sys.platform != "win32":
        path.chmod(stat.S_IRUSR | stat.S_IWUSR)

def save_profile(profile: Profile) -> Path:
    """Write a profile to disk, replacing any profile with the same name."""
    path = get_profile_path(profile.name)
    with path.open("w", encoding="utf-8") as f:
        f.write(profile.model_dump_json(indent=2))
    apply_secure_permissions(path)
    return path

def load_profile(name: str) -> Profile:
    """Load a profile by name from disk."""
    path = get_profile_path(name)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile '{name}' does not exist.")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return Profile(**data)
    except Exception as e:
        raise ProfileValidationError(f"Failed to load profile '{name}': {e}") from e

def delete_profile(name: str) -> None:
    """Delete a profile."""
    path = get_profile_path(name)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile '{name}' does not exist.")
    path.unlink()
