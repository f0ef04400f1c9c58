# Rich terminal report for --format rich.

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from closecheck.findings.models import Finding

# Shown per resource type with --verbose
RESOURCE_REMEDIATIONS: dict[str, str] = {
    "ReadOnlyTransaction": (
        "Add `defer txn.Close()` right after creating the transaction, "
        "or use client.Single() for a one-shot read."
    ),
    "BatchReadOnlyTransaction": "Add `defer txn.Close()` right after the error check.",
    "RowIterator": "Add `defer iter.Stop()` right after the Query/Read call, or return the iterator to the caller.",
}

SEVERITY_STYLE = {
    "error": "bold red",
    "warning": "bold yellow",
}


def _file_table(path: str, findings: Sequence[Finding]) -> Table:
    table = Table(title=path, title_justify="left", title_style="bold cyan", box=box.SIMPLE, header_style="bold magenta")
    table.add_column("Pos", justify="right", style="dim", no_wrap=True)
    table.add_column("Resource", style="yellow", no_wrap=True)
    table.add_column("Message")
    for f in sorted(findings, key=Finding.sort_key):
        message = Text(f.message, style=SEVERITY_STYLE.get(f.severity, "bold white"))
        if f.location.snippet:
            message.append(f"\n{f.location.snippet.strip()}", style="dim")
        table.add_row(f"{f.location.line}:{f.location.column}", f.resource_name, message)
    return table


def print_findings(
    findings: Sequence[Finding],
    analyzed_files: Sequence[Path] | None = None,
    verbose: bool = False,
    console: Console | None = None,
) -> None:
    """
    One table per file with leaked handles, then (when analyzed_files is
    given) a LEAKS/OK line per analyzed file, then totals per resource type.
    """
    console = console or Console()

    by_file: dict[str, list[Finding]] = {}
    for f in findings:
        by_file.setdefault(str(f.location.path), []).append(f)

    for path in sorted(by_file):
        console.print(_file_table(path, by_file[path]))

    if verbose:
        for name in sorted({f.resource_name for f in findings}):
            hint = RESOURCE_REMEDIATIONS.get(name)
            if hint:
                console.print(f"  [dim][Fix][/dim] {name}: {hint}")

    if analyzed_files:
        _print_file_status(by_file, analyzed_files, console)
    _print_summary(findings, console)


def _print_file_status(
    by_file: dict[str, list[Finding]],
    analyzed_files: Sequence[Path],
    console: Console,
) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=box.ROUNDED)
    table.add_column("File")
    table.add_column("Status", width=6)
    table.add_column("Leaks", justify="right")
    # leaking files first
    for p in sorted(analyzed_files, key=lambda p: (str(p) not in by_file, str(p))):
        count = len(by_file.get(str(p), ()))
        status = Text("LEAKS", style="bold red") if count else Text("OK", style="bold green")
        table.add_row(str(p), status, str(count))
    console.print(table)


def _print_summary(findings: Sequence[Finding], console: Console) -> None:
    if not findings:
        console.print(Panel("[green]Every Spanner resource is deferred.[/green]", title="spannerclosecheck", border_style="green"))
        return
    counts = Counter(f.resource_name for f in findings)
    parts = [f"[bold]{len(findings)} finding{'s' if len(findings) != 1 else ''}[/bold]"]
    parts.extend(f"{count} {name}" for name, count in sorted(counts.items()))
    console.print(Panel(" | ".join(parts), title="spannerclosecheck", border_style="yellow"))
