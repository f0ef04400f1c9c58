# Accumulates findings from one or more concurrent function analyses.

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from closecheck.findings.models import Finding, Location
from closecheck.ir.nodes import Position
from closecheck.registry import ResourceDescriptor

logger = logging.getLogger(__name__)


class DiagnosticReporter:
    """
    Formats ``(position, descriptor)`` pairs into findings.

    Appends are serialised with a lock so per-function analyses may run on a
    thread pool. Every report is kept: there is no deduplication and no
    ordering guarantee, callers sort for display.
    """

    def __init__(self, rule_id: str, severity: str = "error") -> None:
        self.rule_id = rule_id
        self.severity = severity
        self._findings: list[Finding] = []
        self._lock = threading.Lock()

    def report(
        self,
        pos: Position,
        descriptor: ResourceDescriptor,
        snippet: Optional[str] = None,
    ) -> Finding:
        finding = Finding(
            rule_id=self.rule_id,
            resource_name=descriptor.name,
            message=descriptor.message,
            location=Location(path=Path(pos.filename), line=pos.line, column=pos.column, snippet=snippet),
            severity=self.severity,
        )
        with self._lock:
            self._findings.append(finding)
        logger.debug("%s: %s", pos, finding.message)
        return finding

    @property
    def findings(self) -> list[Finding]:
        with self._lock:
            return list(self._findings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._findings)
