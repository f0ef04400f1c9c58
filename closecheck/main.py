from __future__ import annotations

"""
Typer CLI entry point and orchestration of the analysis pipeline.

- Accepts Go files and/or directories (directories are walked recursively)
- Loads the target packages and their imports (see closecheck.loader)
- Runs every enabled rule on every target package
- Prints findings as "file:line:col: message" (or a Rich report) and exits
  with status 3 when anything was reported, like the go vet drivers do
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import typer

from closecheck.config import Config, get_default_config, get_enabled_rules
from closecheck.findings.models import Finding
from closecheck.loader import load_program
from closecheck.reporting.console import print_findings
from closecheck.traversal import find_go_files, is_go_file
from closecheck.version import BUILD_DATE, GIT_COMMIT, VERSION

logger = logging.getLogger(__name__)

EXIT_FINDINGS = 3

app = typer.Typer(help="spannerclosecheck - check that Cloud Spanner resources are closed with defer.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"spannerclosecheck {VERSION}")
        typer.echo(f"Build date: {BUILD_DATE}")
        typer.echo(f"Git commit: {GIT_COMMIT}")
        raise typer.Exit()


def _collect_go_files(targets: Sequence[Path]) -> List[Path]:
    """
    Resolve target paths into the list of .go files to analyze.

    - A .go file is taken as is
    - A directory is walked with traversal.find_go_files()
    - Anything else is rejected.
    """
    files: List[Path] = []
    for target in targets:
        if target.is_file():
            if not is_go_file(target):
                raise typer.BadParameter(f"Target file must have .go extension, got: {target}")
            files.append(target)
        elif target.is_dir():
            found = find_go_files(target)
            if not found:
                logger.warning("No .go files found under %s", target)
            files.extend(found)
        else:
            raise typer.BadParameter(f"Target path is neither a file nor a directory: {target}")
    return files


def _print_findings(findings: Sequence[Finding]) -> None:
    """Print findings in the grep-like format of the go analysis drivers."""
    for f in sorted(findings, key=Finding.sort_key):
        typer.echo(f"{f.location}: {f.message}")


def run_analysis(files: Sequence[Path], config: Config) -> List[Finding]:
    """Load the program for ``files`` and run every enabled rule on each target package."""
    program = load_program(files, config.source_roots)
    findings: List[Finding] = []
    for package in program.targets:
        for rule in get_enabled_rules(config):
            try:
                findings.extend(rule.run(package, program, config))
            except Exception as exc:  # pragma: no cover
                logger.exception("Rule %s failed on package %s: %s", rule.id, package.path, exc)
    return findings


@app.command()
def analyze(
    targets: List[Path] = typer.Argument(
        ...,
        exists=True,
        readable=True,
        resolve_path=True,
        help="Go files or directories to analyze.",
    ),
    src_root: Optional[List[Path]] = typer.Option(
        None,
        "--src-root",
        help="GOPATH-style root (containing src/<import path>) searched for imported packages. Repeatable.",
    ),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Analyze functions on this many threads."),
    output_format: str = typer.Option("text", "--format", help="Output format: text or rich."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and remediation hints."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Check the given Go packages for Spanner resources that are not closed with defer."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if output_format not in ("text", "rich"):
        raise typer.BadParameter(f"Unknown format {output_format!r}; expected text or rich")

    config: Config = get_default_config()
    config.source_roots = list(src_root or [])
    config.jobs = jobs

    files = _collect_go_files(targets)
    findings = run_analysis(files, config)

    if output_format == "rich":
        print_findings(findings, analyzed_files=files, verbose=verbose)
    else:
        _print_findings(findings)

    if findings:
        raise typer.Exit(code=EXIT_FINDINGS)


def main() -> None:
    """Entry point for `python -m closecheck.main`."""
    app()


if __name__ == "__main__":
    main()
