"""
Environment diagnostics for dirarchiver.
"""
import importlib
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from .config import get_config_dir, list_profiles, load_profile
from .models import DoctorCheck

COMPRESSION_MODULES = [("deflated", "zlib"), ("bzip2", "bz2"), ("lzma", "lzma")]


def run_diagnostics(dest_dir: Optional[Path] = None) -> List[DoctorCheck]:
    """Execute the health checks synchronously."""
    checks: List[DoctorCheck] = []

    # 1-3. Compression backends
    for method, module_name in COMPRESSION_MODULES:
        name = f"Compression: {method}"
        try:
            module = importlib.import_module(module_name)
            version = getattr(module, "ZLIB_RUNTIME_VERSION", None) or "available"
            checks.append(DoctorCheck(name=name, status="pass", detail=f"{module_name} {version}"))
        except ImportError as e:
            # zlib is what "deflated", the default, needs.
            status = "fail" if module_name == "zlib" else "warn"
            checks.append(DoctorCheck(name=name, status=status, detail=str(e)))

    # 4. Config directory
    try:
        config_dir = get_config_dir()
        status = "pass" if os.access(config_dir, os.W_OK) else "warn"
        checks.append(DoctorCheck(name="Config Directory", status=status, detail=str(config_dir)))
    except OSError as e:
        checks.append(DoctorCheck(name="Config Directory", status="fail", detail=str(e)))
        config_dir = None

    # 5. Profile validity
    if config_dir is not None:
        profiles = list_profiles()
        invalid = []
        for p in profiles:
            try:
                load_profile(p)
            except Exception:
                invalid.append(p)
        if not invalid:
            checks.append(DoctorCheck(name="Profile Schema", status="pass", detail=f"{len(profiles)} profiles valid"))
        else:
            checks.append(DoctorCheck(name="Profile Schema", status="fail", detail=f"Corrupted: {', '.join(invalid)}"))

    # 6. Destination writable and 7. disk space
    target = Path(dest_dir) if dest_dir is not None else Path(tempfile.gettempdir())
    if target.is_dir() and os.access(target, os.W_OK):
        checks.append(DoctorCheck(name="Destination Writable", status="pass", detail=str(target)))
    else:
        checks.append(DoctorCheck(name="Destination Writable", status="fail", detail=f"{target} is missing or read-only"))
    try:
        free = shutil.disk_usage(target).free
        free_gb = free // (2**30)
        status = "pass" if free_gb > 1 else "warn"
        checks.append(DoctorCheck(name="Disk Space", status=status, detail=f"{free_gb} GB free at {target}"))
    except OSError as e:
        checks.append(DoctorCheck(name="Disk Space", status="fail", detail=str(e)))

    # 8. Dependencies
    try:
        import pydantic
        import rich  # noqa: F401
        import typer  # noqa: F401
        checks.append(DoctorCheck(name="Dependencies", status="pass", detail=f"pydantic {pydantic.VERSION}"))
    except ImportError as e:
        checks.append(DoctorCheck(name="Dependencies", status="fail", detail=str(e)))

    return checks
