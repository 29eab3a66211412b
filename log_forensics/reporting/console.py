# log_forensics/reporting/console.py
"""
Console reporting functions for notes reports.
"""
from __future__ import annotations

from typing import List

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from log_forensics.analysis.base import NotesReport, Severity, StatusClass

console = Console()

STATUS_STYLES = {
    StatusClass.NOTHING: "bold red",
    StatusClass.LOADABLE: "red",
    StatusClass.INTRO: "yellow",
    StatusClass.INGAME: "yellow",
    StatusClass.PLAYABLE: "green",
    StatusClass.UNKNOWN: "dim",
}

SEVERITY_STYLES = {
    Severity.FAILURE: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
    Severity.CONFIRMED: "green",
}

FATAL_ERROR_LIMIT = 1020
LICENSE_LIMIT = 5


def _trim(text: str, length: int) -> str:
    return text if len(text) <= length else text[: length - 1] + "…"


def license_lines(names: List[str], limit: int = LICENSE_LIMIT) -> List[str]:
    """At most ``limit`` lines; the last one summarizes the rest when truncated."""
    if len(names) <= limit:
        return list(names)
    other = len(names) - limit + 1
    return names[: limit - 1] + [f"and {other} other license{'' if other == 1 else 's'}"]


def render_status(rep: NotesReport) -> None:
    style = STATUS_STYLES.get(rep.status, "white")
    console.print(
        Panel(f"[bold]Status:[/bold] [{style}]{rep.status.name.title()}[/{style}]", style="bold cyan")
    )


def render_fatal_error(rep: NotesReport) -> None:
    if rep.fatal_error is None:
        return
    console.print(
        Panel(escape(_trim(rep.fatal_error, FATAL_ERROR_LIMIT)), title="Fatal Error", border_style="red")
    )


def render_missing_licenses(rep: NotesReport) -> None:
    if not rep.missing_licenses:
        return
    console.print(
        Panel(escape("\n".join(license_lines(rep.missing_licenses))), title="Missing Licenses", expand=False)
    )


def render_notes(rep: NotesReport) -> None:
    """Render notes in their final display order."""
    if not rep.notes:
        return
    table = Table(title="Notes", box=box.ROUNDED, show_header=False, title_style="bold magenta")
    table.add_column("Severity", justify="center", width=3)
    table.add_column("Note")
    for note in rep.notes:
        style = SEVERITY_STYLES.get(note.severity, "magenta")
        table.add_row(note.severity.marker, f"[{style}]{escape(note.text)}[/{style}]")
    console.print(table)


def render_report(rep: NotesReport) -> None:
    """Renders the full console report."""
    render_status(rep)
    render_fatal_error(rep)
    render_missing_licenses(rep)
    render_notes(rep)
