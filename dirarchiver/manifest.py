"""
Machine-readable rendering of plans and reports. Byte counters are emitted as
decimal strings so consumers never lose precision.
"""
import json

from .errors import ManifestError
from .models import ArchivePlan, ArchiveReport


def serialize_report(report: ArchiveReport) -> bytes:
    """Serialize a report to JSON bytes; `entries` is omitted unless present."""
    return report.model_dump_json(indent=2, exclude_none=True).encode("utf-8")

def load_report(data: bytes) -> ArchiveReport:
    """Deserialize and validate a report payload."""
    try:
        parsed = json.loads(data.decode("utf-8"))
        return ArchiveReport(**parsed)
    except Exception as e:
        raise ManifestError(f"Failed to parse report: {e}") from e

def serialize_plan(plan: ArchivePlan) -> bytes:
    """Serialize the plan to JSON bytes deterministically."""
    return plan.model_dump_json(indent=2).encode("utf-8")

def load_plan(data: bytes) -> ArchivePlan:
    """Deserialize and validate a plan, checking the ordering and totals it claims."""
    try:
        parsed = json.loads(data.decode("utf-8"))
        plan = ArchivePlan(**parsed)
    except Exception as e:
        raise ManifestError(f"Failed to parse plan: {e}") from e

    errors = verify_plan(plan)
    if errors:
        raise ManifestError("; ".join(errors))
    return plan

def verify_plan(plan: ArchivePlan) -> list[str]:
    """Return a list of consistency problems; empty when the plan is sound."""
    errors = []
    if plan.entry_count != len(plan.entries):
        errors.append(f"entry_count is {plan.entry_count} but {len(plan.entries)} entries are listed")
    total = sum(e.size for e in plan.entries)
    if total != plan.total_bytes:
        errors.append(f"total_bytes is {plan.total_bytes} but entries add up to {total}")
    seen = set()
    previous = None
    for entry in plan.entries:
        if entry.zip_path in seen:
            errors.append(f"Duplicate zip path: {entry.zip_path}")
        seen.add(entry.zip_path)
        if previous is not None and entry.zip_path < previous:
            errors.append(f"Entries out of order at {entry.zip_path}")
        previous = entry.zip_path
    return errors
