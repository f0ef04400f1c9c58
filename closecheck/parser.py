# Go front end: tree-sitter-go grammar, parser construction, and parsing of
# source bytes or files into trees.

import logging
from pathlib import Path
from typing import Iterator, Optional

import tree_sitter
from tree_sitter import Language
from tree_sitter_go import language as _go_language_capsule

logger = logging.getLogger(__name__)

# tree-sitter-go ships the grammar as a capsule; Language wraps it once per process
GO_LANGUAGE = Language(_go_language_capsule())


def get_go_language() -> Language:
    """Return the tree-sitter Language object for Go."""
    return GO_LANGUAGE


def create_parser() -> tree_sitter.Parser:
    """
    Create a Parser configured for Go.

    Returns:
        A fresh parser. Parsers are not thread-safe; use one per thread.
    """
    return tree_sitter.Parser(GO_LANGUAGE)


def syntax_errors(tree: tree_sitter.Tree) -> Iterator[tuple[int, int]]:
    """
    Locate the ERROR and MISSING nodes of a tree.

    Args:
        tree: A tree returned by parse_bytes or parse_file.

    Returns:
        An iterator of 1-based (line, column) pairs. Subtrees without
        errors are not descended into.
    """
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            row, col = node.start_point
            yield row + 1, col + 1
            continue
        if node.has_error:
            stack.extend(reversed(node.children))


def parse_bytes(
    source: bytes,
    parser: Optional[tree_sitter.Parser] = None,
) -> tree_sitter.Tree:
    """
    Parse Go source bytes into an AST.

    Args:
        source: UTF-8 encoded Go source code.
        parser: Optional parser instance; if None, a new one is created.

    Returns:
        The parse tree. Broken input still yields a tree, with ERROR/MISSING
        nodes and a warning naming the first one.
    """
    if parser is None:
        parser = create_parser()
    tree = parser.parse(source)
    if tree.root_node.has_error:
        first = next(syntax_errors(tree), None)
        logger.warning("Parse completed with errors, first at %s", first)
    else:
        logger.debug("Parse succeeded: %d top-level node(s)", tree.root_node.named_child_count)
    return tree


def parse_file(path: Path, parser: Optional[tree_sitter.Parser] = None) -> Optional[tree_sitter.Tree]:
    """
    Parse a .go file into an AST.

    Args:
        path: Path to the .go file.
        parser: Optional parser instance; if None, a new one is created.

    Returns:
        The parse tree, or None if the file could not be read.
    """
    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None
    return parse_bytes(source, parser=parser)
