"""
Rich terminal UI components.
Status lines, panels, tables, plan trees and a two-phase progress bar, with ASCII fallback.
"""
import sys
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .models import ArchivePlan, ArchiveReport, ProgressEvent
from .utils import human_size

# Detect ASCII fallback
try:
    "\U0001F4E6".encode(sys.stdout.encoding or "utf-8")
    HAS_UNICODE = True
except (UnicodeEncodeError, LookupError, AttributeError):
    HAS_UNICODE = False

ICONS: Dict[str, str] = {
    "archive": "\U0001F4E6",
    "success": "✅",
    "error": "❌",
    "warn": "⚠️",
    "info": "ℹ️",
    "delete": "\U0001F5D1️",
}

ASCII_ICONS: Dict[str, str] = {
    "archive": "[ZIP]",
    "success": "[OK]",
    "error": "[ERR]",
    "warn": "[WARN]",
    "info": "[INF]",
    "delete": "[DEL]",
}

def icon(name: str) -> str:
    return ICONS.get(name, "") if HAS_UNICODE else ASCII_ICONS.get(name, "")

console = Console(width=120)
err_console = Console(stderr=True, width=120)

def render_banner() -> None:
    """Render the one-line dirarchiver header."""
    banner_text = Text(f"{icon('archive')} DIRARCHIVER", style="bold cyan")
    banner_text.append("  deterministic directory archives", style="dim")
    console.print(banner_text)

def render_status(action: str, message: str, style: str = "white") -> None:
    """Print a single line status update."""
    i = icon(action)
    console.print(f"{i} [{style}]{message}[/]")

def render_error(message: str) -> None:
    """Print a styled error panel."""
    i = icon("error")
    err_console.print()
    err_console.print(Panel(Text(message, style="red"), border_style="red", expand=False, title=f"{i} ERROR"))

def render_warning(message: str) -> None:
    """Print a styled warning panel."""
    i = icon("warn")
    err_console.print()
    err_console.print(Panel(Text(message, style="yellow"), border_style="yellow", expand=False, title=f"{i} WARNING"))

def render_table(title: str, headers: list[str], rows: list[list[str]]) -> None:
    """Render a structured Rich Table."""
    console.print()
    table = Table(
        title=title,
        border_style="cyan",
        header_style="bold magenta",
        show_lines=True,
        box=box.ROUNDED if HAS_UNICODE else box.ASCII
    )

    if headers:
        table.add_column(headers[0], justify="left", no_wrap=True)
        for h in headers[1:]:
            table.add_column(h, justify="left", overflow="fold")

    for r in rows:
        table.add_row(*r)

    console.print(table)
    console.print()

def build_plan_tree(plan: ArchivePlan) -> Tree:
    """Nest the plan's zip paths into a Rich tree, one node per directory."""
    tree = Tree(f"[bold magenta]{plan.source_dir}[/]")
    nodes: Dict[str, Tree] = {"": tree}

    for entry in plan.entries:
        parts = entry.zip_path.split("/")
        parent_key = ""
        for depth, part in enumerate(parts[:-1]):
            key = "/".join(parts[:depth + 1])
            if key not in nodes:
                nodes[key] = nodes[parent_key].add(f"[bold blue]{part}/[/]")
            parent_key = key
        suffix = " [dim](symlink)[/]" if entry.is_symlink else ""
        nodes[parent_key].add(f"[green]{parts[-1]}[/] ({human_size(entry.size)}){suffix}")

    return tree

def render_tree(tree: Tree) -> None:
    """Render a Rich tree layout."""
    console.print(Panel(tree, border_style="magenta", title="Plan Preview"))

def render_success_summary(title: str, stats: Dict[str, str]) -> None:
    """Render a clean summary panel for operations."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="magenta")
    for key, value in stats.items():
        table.add_row(key, value)
    i_success = icon("success")
    console.print(Panel(table, title=f"[bold green]{i_success} {title}[/]", border_style="green", expand=False))

def report_stats(report: ArchiveReport) -> Dict[str, str]:
    return {
        "Source": report.source_dir,
        "Archive": report.zip_path,
        "Entries": str(report.entry_count),
        "Input size": human_size(report.total_bytes),
        "Archive size": human_size(report.archive_bytes),
        "Duration": f"{report.duration_ms} ms",
    }

@contextmanager
def render_progress(title: str = "Operation in progress...") -> Generator[Progress, None, None]:
    """Provide a unified Progress context manager."""
    progress = Progress(
        SpinnerColumn(spinner_name="dots2", style="cyan"),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40, style="magenta", complete_style="cyan"),
        "[progress.percentage]{task.percentage:>3.1f}%",
        DownloadColumn(),
        "•" if HAS_UNICODE else "-",
        TimeRemainingColumn(),
        console=console,
        transient=False,
    )
    console.print(f"[{title}]", style="bold cyan")
    with progress:
        yield progress


class ProgressRenderer:
    """Adapts ProgressEvents to a Rich Progress: an open-ended scan task, then a determinate write task."""
    def __init__(self, progress: Progress):
        self.progress = progress
        self._scan_task: Optional[TaskID] = None
        self._write_task: Optional[TaskID] = None
        self._scanned_bytes = 0

    def __call__(self, event: ProgressEvent) -> None:
        if event.phase == "scan":
            self._scanned_bytes = event.bytes_processed
            if self._scan_task is None:
                self._scan_task = self.progress.add_task("Scanning", total=None)
            self.progress.update(
                self._scan_task,
                completed=event.bytes_processed,
                description=f"Scanning ({event.entries_processed} files)",
            )
            return

        if self._write_task is None:
            if self._scan_task is not None:
                self.progress.update(self._scan_task, total=self._scanned_bytes, completed=self._scanned_bytes)
            self._write_task = self.progress.add_task("Writing", total=event.total_bytes)
        self.progress.update(
            self._write_task,
            completed=event.bytes_processed,
            description=f"Writing {event.entries_processed}/{event.total_entries}",
        )
