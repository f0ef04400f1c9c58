"""
Package loading: group parsed files into packages and resolve imports.

A source root is a GOPATH-shaped directory: the package with import path
``cloud.google.com/go/spanner`` lives in ``<root>/src/cloud.google.com/go/spanner``.
Target packages are lowered to the def-use representation; imported
packages found under a source root only contribute declarations (types,
fields, method sets, function signatures), their bodies are never lowered.

The bundled stub root (``closecheck/stubs``) ships a declaration-only copy of
the Cloud Spanner client API and is always searched last, so a real copy of
the library under a user source root takes precedence.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from tree_sitter import Parser

from closecheck.context import FileContext, load_contexts
from closecheck.ir.builder import build_package, collect_signatures, collect_type_names
from closecheck.ir.nodes import Function
from closecheck.ir.types import Scope
from closecheck.parser import create_parser
from closecheck.traversal import is_go_file, is_test_file

logger = logging.getLogger(__name__)

BUNDLED_STUBS = Path(__file__).resolve().parent / "stubs"


class Package:
    """One compilation unit: the files of a directory sharing a package clause."""

    def __init__(self, path: str, name: str, files: Sequence[FileContext]) -> None:
        self.path = path
        self.name = name
        self.files = list(files)
        self.scope = Scope(path)
        self.functions: list[Function] = []

    @property
    def filenames(self) -> list[str]:
        return [ctx.filename for ctx in self.files]

    def file(self, filename: str) -> Optional[FileContext]:
        for ctx in self.files:
            if ctx.filename == filename:
                return ctx
        return None

    def __repr__(self) -> str:
        return f"Package({self.path!r}, {len(self.files)} file(s))"


class Program:
    """All loaded packages, keyed by import path, plus the analysis targets."""

    def __init__(self) -> None:
        self.packages: dict[str, Package] = {}
        self.targets: list[Package] = []

    def package(self, path: str) -> Optional[Package]:
        return self.packages.get(path)

    def add(self, package: Package) -> Package:
        self.packages[package.path] = package
        return package


def import_path_for(directory: Path, source_roots: Sequence[Path]) -> str:
    """
    Import path of a package directory.

    The path below ``<root>/src`` when the directory sits inside a source
    root, otherwise the directory name.
    """
    directory = directory.resolve()
    for root in source_roots:
        src = (root / "src").resolve()
        try:
            rel = directory.relative_to(src)
        except ValueError:
            continue
        if rel.parts:
            return rel.as_posix()
    return directory.name


def infer_source_roots(files: Iterable[Path]) -> list[Path]:
    """Source roots implied by targets living under a directory named ``src``."""
    roots: list[Path] = []
    for path in files:
        for parent in path.resolve().parents:
            if parent.name == "src" and parent.parent not in roots:
                roots.append(parent.parent)
                break
    return roots


def _find_package_dir(import_path: str, source_roots: Sequence[Path]) -> Optional[Path]:
    for root in list(source_roots) + [BUNDLED_STUBS]:
        candidate = root / "src" / import_path
        if candidate.is_dir():
            return candidate
    return None


def _group(contexts: Sequence[FileContext], source_roots: Sequence[Path]) -> list[Package]:
    groups: dict[tuple[Path, str], list[FileContext]] = {}
    for ctx in contexts:
        key = (ctx.path.resolve().parent, ctx.package_name)
        groups.setdefault(key, []).append(ctx)
    packages = []
    for (directory, name), files in groups.items():
        path = import_path_for(directory, source_roots)
        # external test packages (package foo_test) get their own unit
        if name.endswith("_test") and (directory, name[: -len("_test")]) in groups:
            path = f"{path}_test"
        packages.append(Package(path, name, files))
    return packages


def load_program(
    targets: Sequence[Path],
    source_roots: Sequence[Path] = (),
    parser: Optional[Parser] = None,
) -> Program:
    """
    Parse the target files, load their imports and lower the target packages.

    Args:
        targets: Go files to analyze (directories must be expanded by the caller).
        source_roots: GOPATH-shaped roots searched for imported packages.
        parser: Optional shared parser.

    Returns:
        A Program whose ``targets`` are ready for analysis.
    """
    if parser is None:
        parser = create_parser()
    roots = list(source_roots) or infer_source_roots(targets)

    program = Program()
    for package in _group(load_contexts(list(targets), parser=parser), roots):
        program.targets.append(program.add(package))

    # imports of imported packages are followed; declarations only
    pending = [path for package in program.targets for ctx in package.files for path in ctx.imports.values()]
    while pending:
        import_path = pending.pop()
        if import_path in program.packages:
            continue
        directory = _find_package_dir(import_path, roots)
        if directory is None:
            logger.debug("Import %s not found under any source root", import_path)
            continue
        files = sorted(p for p in directory.iterdir() if is_go_file(p) and not is_test_file(p))
        contexts = load_contexts(files, parser=parser)
        if not contexts:
            continue
        program.add(Package(import_path, contexts[0].package_name, contexts))
        logger.info("Loaded declarations of %s from %s", import_path, directory)
        pending.extend(path for ctx in contexts for path in ctx.imports.values())

    for package in program.packages.values():
        collect_type_names(package)
    for package in program.packages.values():
        collect_signatures(package, program)
    for package in program.targets:
        package.functions = build_package(package, program)

    logger.info(
        "Loaded %d target package(s), %d package(s) in total",
        len(program.targets),
        len(program.packages),
    )
    return program
