"""
Command Line Interface entry point using Typer.
"""
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel

from . import __version__
from .archive import create_archive
from .audit import AuditLogger
from .config import delete_profile, list_profiles, load_profile, save_profile
from .errors import AbortedError, DirArchiverError
from .manifest import serialize_plan, serialize_report
from .models import ArchiveReport, Profile, TimestampPolicy, WriterOptions
from .plan import build_plan
from .signals import CancelToken
from .ui import (
    ProgressRenderer,
    build_plan_tree,
    console,
    render_banner,
    render_error,
    render_progress,
    render_status,
    render_success_summary,
    render_table,
    render_tree,
    render_warning,
    report_stats,
)
from .utils import human_size, signal_handlers

app = typer.Typer(
    help=(
        "[bold cyan]DIRARCHIVER[/]\n\n"
        "Pack a directory into a zip archive with deterministic entry order,\n"
        "name- and path-based excludes, and all-or-nothing output."
    ),
    no_args_is_help=True,
    rich_markup_mode="rich"
)

EXIT_ABORTED = 130


class ReportChoice(str, Enum):
    summary = "summary"
    manifest = "manifest"

class CompressionChoice(str, Enum):
    stored = "stored"
    deflated = "deflated"
    bzip2 = "bzip2"
    lzma = "lzma"


def parse_timestamps(value: str) -> TimestampPolicy:
    """`preserve`, `zero`, or an ISO-8601 instant."""
    if value in ("preserve", "zero"):
        return value  # type: ignore[return-value]
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected 'preserve', 'zero' or an ISO-8601 timestamp, got '{value}'.")

def _render_report(report: ArchiveReport, json_output: bool, quiet: bool) -> None:
    if json_output:
        typer.echo(serialize_report(report).decode("utf-8"))
        return
    for w in report.warnings:
        render_warning(w)
    if quiet:
        typer.echo(f"Created {report.zip_path} of {human_size(report.archive_bytes)}")
        return
    render_success_summary(f"Created {report.zip_path} of {human_size(report.archive_bytes)}", report_stats(report))
    if report.entries is not None:
        rows = [[e.zip_path, human_size(e.size), "yes" if e.is_symlink else ""] for e in report.entries]
        render_table("Archive Manifest", ["Zip Path", "Size", "Symlink"], rows)

def _run_archive(
    source: str,
    dest: str,
    include_base_dir: bool,
    follow_symlinks: bool,
    excludes: List[str],
    report: str,
    timestamps: TimestampPolicy,
    comment: Optional[str],
    writer_options: WriterOptions,
    json_output: bool,
    quiet: bool,
) -> None:
    cancel = CancelToken()
    logger = AuditLogger()
    kwargs = dict(
        include_base_directory=include_base_dir,
        follow_symlinks=follow_symlinks,
        excludes=excludes,
        report=report,
        timestamps=timestamps,
        comment=comment,
        writer_options=writer_options,
        cancel=cancel,
        logger=logger,
    )
    try:
        with signal_handlers(lambda: cancel.cancel("Interrupted by signal")):
            if json_output or quiet:
                result = create_archive(source, dest, **kwargs)
            else:
                render_banner()
                with render_progress(f"Archiving {source}") as progress:
                    result = create_archive(source, dest, on_progress=ProgressRenderer(progress), **kwargs)
    except AbortedError as e:
        logger.log("archive_failed", source=source, dest=dest, kind="aborted", error=str(e))
        render_error(f"Aborted: {e}")
        raise typer.Exit(EXIT_ABORTED)
    except DirArchiverError as e:
        logger.log("archive_failed", source=source, dest=dest, kind=type(e).__name__, error=str(e))
        render_error(str(e))
        raise typer.Exit(1)

    logger.log(
        "archive_created",
        source=result.source_dir,
        dest=result.zip_path,
        entries=result.entry_count,
        total_bytes=str(result.total_bytes),
        archive_bytes=str(result.archive_bytes),
        duration_ms=result.duration_ms,
        warnings=len(result.warnings),
    )
    _render_report(result, json_output, quiet)


@app.command(name="create")
def create_cmd(
    source: str = typer.Argument(..., help="The path of the folder to archive."),
    dest: str = typer.Argument(..., help="The path of the zip file to create."),
    include_base_dir: bool = typer.Option(False, "--include-base-dir", "-b", help="Put everything under a top-level folder named after the source."),
    follow_symlinks: bool = typer.Option(False, "--follow-symlinks", "-L", help="Follow symlinks when traversing directories."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Name (any depth) or relative path (exact) to skip. Repeatable."),
    report: ReportChoice = typer.Option(ReportChoice.summary, "--report", help="Include the full entry list in the report."),
    timestamps: str = typer.Option("preserve", "--timestamps", help="preserve, zero, or an ISO-8601 instant."),
    comment: Optional[str] = typer.Option(None, "--comment", help="Archive-level comment."),
    compression: CompressionChoice = typer.Option(CompressionChoice.deflated, "--compression"),
    level: Optional[int] = typer.Option(None, "--level", min=0, max=9, help="Compression level."),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress bar, one summary line."),
):
    """Create a zip archive of a directory."""
    _run_archive(
        source,
        dest,
        include_base_dir,
        follow_symlinks,
        exclude or [],
        report.value,
        parse_timestamps(timestamps),
        comment,
        WriterOptions(compression=compression.value, compresslevel=level),
        json_output,
        quiet,
    )

@app.command(name="plan")
def plan_cmd(
    source: str = typer.Argument(..., help="The path of the folder to scan."),
    dest: Optional[str] = typer.Argument(None, help="Planned archive path, excluded from the scan if inside the source."),
    include_base_dir: bool = typer.Option(False, "--include-base-dir", "-b"),
    follow_symlinks: bool = typer.Option(False, "--follow-symlinks", "-L"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x"),
    json_output: bool = typer.Option(False, "--json", help="Print the plan as JSON."),
    tree: bool = typer.Option(False, "--tree", help="Show the plan as a directory tree."),
):
    """List what would be archived, without writing anything."""
    try:
        plan = build_plan(
            source,
            dest_zip=dest,
            include_base_directory=include_base_dir,
            follow_symlinks=follow_symlinks,
            excludes=exclude or [],
        )
    except DirArchiverError as e:
        render_error(str(e))
        raise typer.Exit(1)

    if json_output:
        typer.echo(serialize_plan(plan).decode("utf-8"))
        return
    if tree:
        render_tree(build_plan_tree(plan))
    else:
        rows = [[e.zip_path, human_size(e.size), "yes" if e.is_symlink else ""] for e in plan.entries]
        render_table(f"Archive Plan for {plan.source_dir}", ["Zip Path", "Size", "Symlink"], rows)
    render_status("info", f"{plan.entry_count} files, {human_size(plan.total_bytes)}")

@app.command(name="init")
def init(
    name: str = typer.Option(..., "--name", "-n", prompt="Profile Name"),
    source: str = typer.Option(..., "--source", "-s", prompt="Directory to archive"),
    dest: str = typer.Option(..., "--dest", "-d", prompt="Zip file to create"),
    include_base_dir: bool = typer.Option(False, "--include-base-dir", "-b"),
    follow_symlinks: bool = typer.Option(False, "--follow-symlinks", "-L"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x"),
    timestamps: str = typer.Option("preserve", "--timestamps"),
    compression: CompressionChoice = typer.Option(CompressionChoice.deflated, "--compression"),
    level: Optional[int] = typer.Option(None, "--level", min=0, max=9),
    comment: Optional[str] = typer.Option(None, "--comment"),
):
    """Save an archive profile for repeated runs."""
    try:
        profile = Profile(
            name=name,
            source_dir=str(Path(source).resolve()),
            dest_zip=str(Path(dest).resolve()),
            excludes=exclude or [],
            include_base_directory=include_base_dir,
            follow_symlinks=follow_symlinks,
            timestamps=parse_timestamps(timestamps),
            compression=compression.value,
            compresslevel=level,
            comment=comment,
            created_at=datetime.now(timezone.utc),
        )
    except ValueError as e:
        render_error(f"Invalid profile: {e}")
        raise typer.Exit(1)

    path = save_profile(profile)
    render_status("success", f"Profile '{name}' saved to {path}.")

@app.command(name="run")
def run_profile(
    name: str = typer.Argument(..., help="Profile to run"),
    report: ReportChoice = typer.Option(ReportChoice.summary, "--report"),
    json_output: bool = typer.Option(False, "--json"),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
):
    """Create the archive described by a saved profile."""
    try:
        profile = load_profile(name)
    except DirArchiverError as e:
        render_error(str(e))
        raise typer.Exit(1)

    _run_archive(
        profile.source_dir,
        profile.dest_zip,
        profile.include_base_directory,
        profile.follow_symlinks,
        profile.excludes,
        report.value,
        profile.timestamps,
        profile.comment,
        profile.writer_options,
        json_output,
        quiet,
    )

@app.command(name="profiles")
def list_profiles_cmd(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format.")
):
    """List all saved profiles."""
    import json

    profiles = list_profiles()
    if json_output:
        profiles_data = []
        for p in profiles:
            try:
                prof = load_profile(p)
            except DirArchiverError:
                continue
            profiles_data.append({"name": prof.name, "source_dir": prof.source_dir, "dest_zip": prof.dest_zip})
        typer.echo(json.dumps(profiles_data, indent=2))
        return

    if not profiles:
        typer.echo("No profiles found.")
        return

    rows = []
    for p in profiles:
        try:
            prof = load_profile(p)
            rows.append([prof.name, prof.source_dir, prof.dest_zip])
        except DirArchiverError as e:
            err_msg = str(e).split('\n')[0]
            if len(err_msg) > 60:
                err_msg = err_msg[:57] + "..."
            rows.append([p, "[red]ERROR[/]", err_msg])

    render_table("Saved Profiles", ["Name", "Source Directory", "Archive"], rows)

@app.command(name="delete")
def delete_profile_cmd(
    name: str = typer.Argument(..., help="Profile to delete")
):
    """Delete a saved profile."""
    try:
        delete_profile(name)
    except DirArchiverError as e:
        render_error(str(e))
        raise typer.Exit(1)
    render_status("delete", f"Profile '{name}' deleted.")

@app.command(name="audit")
def show_audit(last_n: int = typer.Option(50, "--last", "-n", help="Number of recent events to show")):
    """Show recent archive events."""
    from .audit import get_audit_log
    events = get_audit_log(last_n)
    if not events:
        render_status("info", "No audit events found.")
        return

    rows = []
    for e in events:
        rows.append([e["timestamp"], e["event"], str(e["details"])])

    render_table("Audit Log", ["Timestamp", "Event", "Details"], rows)

@app.command(name="doctor")
def run_doctor(
    dest_dir: Optional[Path] = typer.Option(None, "--dest-dir", help="Directory archives will be written to"),
):
    """Check compression backends, config and destination."""
    from .doctor import run_diagnostics
    results = run_diagnostics(dest_dir)

    rows = []
    for r in results:
        status_text = "[bold green]PASS[/]" if r.status == "pass" else "[bold yellow]WARN[/]" if r.status == "warn" else "[bold red]FAIL[/]"
        rows.append([status_text, r.name, r.detail])

    render_table("Doctor Diagnostics", ["Status", "Check", "Details"], rows)
    if any(r.status == "fail" for r in results):
        raise typer.Exit(1)

@app.command(name="version")
def version_cmd():
    """Display dirarchiver version information."""
    console.print(Panel(f"[bold cyan]DIRARCHIVER[/] v{__version__}", border_style="cyan", expand=False))


if __name__ == "__main__":
    app()
