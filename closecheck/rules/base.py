# Rule interface (abstract base class): defines the contract all rules must implement.
# A rule analyses one compilation unit (a loaded, lowered Package) at a time.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from closecheck.config import Config
    from closecheck.findings.models import Finding
    from closecheck.loader import Package, Program


class Rule(ABC):
    """
    Abstract base class for analysis rules.

    Subclasses must define:
    - id: str - unique rule identifier, also the nolint tool name
    - name: str - human-readable rule name
    - run(package, program, config) -> list[Finding]
    """

    id: str
    name: str

    @abstractmethod
    def run(self, package: "Package", program: "Program", config: "Config") -> list["Finding"]:
        """
        Analyse one package and return any findings.

        Args:
            package: Target package with its functions already lowered.
            program: Every loaded package, for resolving library types.
            config: Checker config.

        Returns:
            List of Finding objects; empty if there is nothing to report.
        """
        ...
