from __future__ import annotations

"""
Checker configuration: which rules run and the knobs of the close check.

The defaults describe the Cloud Spanner client; every field can be
overridden by building a Config directly (the CLI maps its options here).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from closecheck.registry import SPANNER_PACKAGE, SPANNER_RESOURCES, ResourceDescriptor
from closecheck.rules.base import Rule
from closecheck.rules.deferred_close import DeferredCloseRule
from closecheck.suppression import FILE_DIRECTIVE_LINES, GENERATED_MARKER, GENERATED_SUFFIXES


@dataclass
class Config:
    """Checker configuration."""

    rules: Sequence[Rule] = field(default_factory=list)
    library_path: str = SPANNER_PACKAGE
    resources: Sequence[ResourceDescriptor] = SPANNER_RESOURCES
    tool_name: str = DeferredCloseRule.id
    auto_release_accessors: Sequence[str] = ("Single",)
    generated_suffixes: Sequence[str] = GENERATED_SUFFIXES
    generated_marker: str = GENERATED_MARKER
    file_directive_lines: int = FILE_DIRECTIVE_LINES
    source_roots: List[Path] = field(default_factory=list)
    jobs: int = 1


def get_default_config() -> Config:
    """Return the default configuration with the close check enabled."""
    rules: List[Rule] = [
        DeferredCloseRule(),
    ]
    return Config(rules=rules)


def get_enabled_rules(config: Config | None = None) -> Sequence[Rule]:
    """Return the list of enabled rules from the given config (or default config)."""
    if config is None:
        config = get_default_config()
    return config.rules
