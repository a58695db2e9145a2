"""
Run logging with structured JSON-Lines.
"""
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import get_config_dir


class AuditLogger:
    """Appends one JSON object per archive event to the audit log."""
    def __init__(self, log_file: Optional[Path] = None):
        self.log_file = log_file or get_config_dir() / "audit.jsonl"

    def log(self, event_type: str, **kwargs: Any) -> None:
        """Log a structured operation event."""
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "details": kwargs
        }

        try:
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            sys.stderr.write(f"[dirarchiver audit] Failed to write log: {e}\n")
            sys.stderr.write(json.dumps(entry, default=str) + "\n")

def get_audit_log(last_n: int = 50, log_file: Optional[Path] = None) -> list[Dict[str, Any]]:
    """Retrieve the last N events from the audit log."""
    log_file = log_file or get_config_dir() / "audit.jsonl"
    if not log_file.exists():
        return []

    with log_file.open("r", encoding="utf-8") as f:
        lines = f.readlines()

    parsed = []
    for line in lines[-last_n:]:
        if not line.strip():
            continue
        try:
            parsed.append(json.loads(line))
        except json.JSONDecodeError:
            # A line cut short by a crash mid-write.
            continue
    return parsed
