"""
Collect the .go files under a directory the way the go tool sees packages.

``testdata`` and ``vendor`` trees and directories whose name starts with
``.`` or ``_`` are never walked into; a few common build and dependency
directories are skipped as well.

    files = find_go_files(Path("./service"))
    prod_only = find_go_files(Path("./service"), include_tests=False)
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_DIRS: Set[str] = {
    "testdata",
    "vendor",
    "build",
    "dist",
    "bin",
    "out",
    "node_modules",
    "third_party",
    "__pycache__",
}


def is_go_file(path: Path) -> bool:
    """
    >>> is_go_file(Path("main.go"))
    True
    >>> is_go_file(Path("go.mod"))
    False
    """
    return path.suffix == ".go"


def is_test_file(path: Path) -> bool:
    return path.name.endswith("_test.go")


def should_ignore_directory(dir_path: Path, ignore_dirs: Set[str]) -> bool:
    """
    True for names in ``ignore_dirs`` and for any ``.``/``_`` prefixed name.

    >>> should_ignore_directory(Path("_scratch"), set())
    True
    >>> should_ignore_directory(Path("pkg"), DEFAULT_IGNORE_DIRS)
    False
    """
    name = dir_path.name
    return name[:1] in (".", "_") or name in ignore_dirs


def _iter_go_files(
    root: Path,
    ignore_dirs: Set[str],
    include_tests: bool,
    follow_symlinks: bool,
) -> Iterator[Path]:
    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            logger.warning("Cannot list %s: %s", directory, e)
            continue
        for entry in entries:
            if entry.is_symlink() and not follow_symlinks:
                logger.debug("Skipping symlink: %s", entry)
            elif entry.is_dir():
                if should_ignore_directory(entry, ignore_dirs):
                    logger.debug("Ignoring directory: %s", entry)
                else:
                    pending.append(entry)
            elif entry.is_file() and is_go_file(entry):
                if include_tests or not is_test_file(entry):
                    yield entry


def find_go_files(
    root: Path,
    ignore_dirs: Optional[Set[str]] = None,
    include_tests: bool = True,
    follow_symlinks: bool = False,
) -> list[Path]:
    """
    Sorted list of the .go files below ``root``.

    Raises:
        FileNotFoundError: ``root`` does not exist.
        NotADirectoryError: ``root`` is not a directory.
    """
    if ignore_dirs is None:
        ignore_dirs = DEFAULT_IGNORE_DIRS
    root = root.resolve()
    if not root.exists():
        raise FileNotFoundError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Root path is not a directory: {root}")

    logger.info("Starting traversal from: %s", root)
    files = sorted(_iter_go_files(root, ignore_dirs, include_tests, follow_symlinks))
    logger.info("Traversal complete: found %d Go file(s) in %s", len(files), root)
    return files
