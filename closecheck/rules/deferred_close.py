# spannerclosecheck: Spanner transactions and row iterators must have their
# Close()/Stop() deferred in the function that creates them.

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Optional

from closecheck.analysis.coverage import CoverageAnalyzer, report_position
from closecheck.analysis.scan import ControlFlowScanner, source_functions
from closecheck.findings.models import Finding
from closecheck.findings.reporter import DiagnosticReporter
from closecheck.ir.nodes import Function
from closecheck.registry import TypeRegistry
from closecheck.rules.base import Rule
from closecheck.suppression import SuppressionFilter

if TYPE_CHECKING:
    from closecheck.config import Config
    from closecheck.loader import Package, Program

logger = logging.getLogger(__name__)


def _snippet(package: "Package", filename: str, line: int) -> Optional[str]:
    ctx = package.file(filename)
    if ctx is None:
        return None
    lines = ctx.source.decode("utf-8", errors="replace").splitlines()
    if 0 < line <= len(lines):
        return lines[line - 1]
    return None


class DeferredCloseRule(Rule):
    """Report Spanner handles whose cleanup is not guaranteed by a defer."""

    id = "spannerclosecheck"
    name = "Spanner resource must be closed with defer"

    def run(self, package: "Package", program: "Program", config: "Config") -> list[Finding]:
        registry = TypeRegistry.build(program, config.library_path, config.resources)
        if registry.is_empty:
            return []

        suppression = SuppressionFilter(
            {ctx.filename: ctx.comments for ctx in package.files},
            tool=config.tool_name,
            header_lines=config.file_directive_lines,
            generated_suffixes=config.generated_suffixes,
            generated_marker=config.generated_marker,
        )
        scanner = ControlFlowScanner(registry, suppression)
        coverage = CoverageAnalyzer(config.auto_release_accessors)
        reporter = DiagnosticReporter(self.id)

        def check(fn: Function) -> None:
            for candidate in scanner.candidates(fn):
                pos = report_position(candidate.value)
                if pos is None:
                    logger.debug("Skipping %s in %s: no position", candidate.descriptor.name, fn.name)
                    continue
                if suppression.is_suppressed(pos):
                    logger.debug("Suppressed by nolint at %s", pos)
                    continue
                if coverage.evaluate(candidate).reportable:
                    reporter.report(pos, candidate.descriptor, _snippet(package, pos.filename, pos.line))

        functions = list(source_functions(package))
        if config.jobs > 1 and len(functions) > 1:
            with ThreadPoolExecutor(max_workers=config.jobs) as executor:
                futures = {executor.submit(check, fn): fn for fn in functions}
                for future in as_completed(futures):
                    try:
                        future.result()
                    except Exception:
                        logger.exception("Rule %s failed on %s", self.id, futures[future].name)
        else:
            for fn in functions:
                try:
                    check(fn)
                except Exception:
                    logger.exception("Rule %s failed on %s", self.id, fn.name)

        return reporter.findings
