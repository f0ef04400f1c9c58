"""Tests for the tree-sitter Go parser wrapper."""

import logging
from pathlib import Path

from closecheck.parser import (
    create_parser,
    get_go_language,
    parse_bytes,
    parse_file,
    syntax_errors,
)

TESTDATA = Path(__file__).parent / "testdata"


def test_get_go_language_returns_language():
    """get_go_language() returns a tree-sitter Language object."""
    lang = get_go_language()
    assert lang is not None
    assert lang is get_go_language()


def test_create_parser_returns_parser():
    """create_parser() returns a configured Parser."""
    parser = create_parser()
    assert parser is not None
    assert parser.language is not None


def test_parse_bytes_success(caplog):
    """Parsing valid Go source succeeds and logs."""
    source = b"package main\n\nfunc main() {}\n"
    parser = create_parser()
    with caplog.at_level(logging.DEBUG):
        tree = parse_bytes(source, parser=parser)
    assert tree.root_node is not None
    assert not tree.root_node.has_error
    assert tree.root_node.type == "source_file"
    assert "Parse succeeded" in caplog.text


def test_parse_bytes_invalid_go_logs_failure(caplog):
    """Broken Go still yields a tree, with a warning."""
    source = b"package main\n\nfunc main( {\n"
    with caplog.at_level(logging.WARNING):
        tree = parse_bytes(source)
    assert tree.root_node is not None
    assert tree.root_node.has_error
    assert "with errors" in caplog.text


def test_parse_file_fixture():
    tree = parse_file(TESTDATA / "src" / "a" / "transactions.go")
    assert tree is not None
    assert not tree.root_node.has_error
    assert tree.root_node.type == "source_file"


def test_parse_file_nonexistent(caplog):
    """parse_file() on nonexistent path returns None and logs error."""
    with caplog.at_level(logging.ERROR):
        tree = parse_file(Path("/nonexistent/main.go"))
    assert tree is None
    assert "Failed to read" in caplog.text


def test_syntax_errors_positions():
    tree = parse_bytes(b"package main\n\nfunc main() {\n\tx := \n}\n")
    errors = list(syntax_errors(tree))
    assert errors
    assert all(line >= 3 for line, _ in errors)


def test_syntax_errors_clean_tree():
    tree = parse_bytes(b"package main\n\nfunc main() {}\n")
    assert list(syntax_errors(tree)) == []
