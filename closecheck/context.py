# One parsed Go file and what later stages read off it: package clause,
# import table (local name -> import path) and comments with their lines.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from closecheck.parser import create_parser, parse_bytes, syntax_errors
from tree_sitter import Parser, Tree
from tree_sitter import Node as TSNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Comment:
    """A single comment and the 1-based line it starts on."""

    line: int
    text: str


def _count_functions(root: TSNode) -> int:
    """Count top-level function and method declarations under root."""
    return sum(
        1 for child in root.children if child.type in ("function_declaration", "method_declaration")
    )


def _strip_string_literal(text: str) -> str:
    return text.strip().strip('"').strip("`")


class FileContext:
    """
    Per-file state for static analysis: path, raw source bytes, and AST.

    On construction the package name, imports (local name -> import path)
    and comments are read off the tree once, since every function in the
    file needs them.
    """

    def __init__(
        self,
        path: Path,
        source: bytes,
        tree: Tree,
        *,
        has_parse_errors: bool = False,
    ) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.has_parse_errors = has_parse_errors
        self.package_name = ""
        self.imports: dict[str, str] = {}
        self.comments: list[Comment] = []
        self._index()

    @property
    def root_node(self) -> TSNode:
        """Convenience access to the AST root."""
        return self.tree.root_node

    @property
    def filename(self) -> str:
        return str(self.path)

    @property
    def is_test_file(self) -> bool:
        return self.path.name.endswith("_test.go")

    def _index(self) -> None:
        root = self.root_node
        for child in root.children:
            if child.type == "package_clause":
                for sub in child.named_children:
                    if sub.type in ("package_identifier", "identifier"):
                        self.package_name = get_source_span(self, sub)
            elif child.type == "import_declaration":
                self._index_imports(child)
        self._collect_comments(root)

    def _index_imports(self, node: TSNode) -> None:
        if node.type == "import_spec":
            path_node = node.child_by_field_name("path")
            if path_node is None:
                return
            import_path = _strip_string_literal(get_source_span(self, path_node))
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                local = get_source_span(self, name_node)
                if local in ("_", "."):
                    return
            else:
                local = import_path.rsplit("/", 1)[-1]
            self.imports[local] = import_path
            return
        for child in node.named_children:
            self._index_imports(child)

    def _collect_comments(self, node: TSNode) -> None:
        if node.type == "comment":
            line, _ = get_line_col(node)
            self.comments.append(Comment(line=line, text=get_source_span(self, node)))
            return
        for child in node.children:
            self._collect_comments(child)


def get_source_span(context: FileContext, node: TSNode) -> str:
    """
    Get the source text for an AST node.

    Args:
        context: File context containing the source.
        node: Tree-sitter node from the context's tree.

    Returns:
        The text covered by the node; invalid UTF-8 is replaced, never raised.
    """
    return context.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def get_line_col(node: TSNode, one_based: bool = True) -> tuple[int, int]:
    """
    Get the start position of a node.

    Args:
        node: Tree-sitter node.
        one_based: If True, line and column are 1-based (as go/token reports them).

    Returns:
        (line, column) of the node start. Columns count bytes, not characters.
    """
    row, col = node.start_point
    if one_based:
        return row + 1, col + 1
    return row, col


def create_context(
    path: Path,
    parser: Optional[Parser] = None,
) -> Optional[FileContext]:
    """
    Read and parse one .go file.

    Args:
        path: Path to the .go file.
        parser: Optional parser instance; if None, a new one is created.

    Returns:
        The file context, or None (after logging) when the file cannot be
        read. A file with syntax errors still gets a context, flagged with
        has_parse_errors, so the well-formed functions in it are analysed.
    """
    if parser is None:
        parser = create_parser()

    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None

    tree = parse_bytes(source, parser=parser)
    errors = list(syntax_errors(tree))
    if errors:
        logger.warning("%s has %d syntax error(s), first at line %d", path, len(errors), errors[0][0])

    ctx = FileContext(path=path, source=source, tree=tree, has_parse_errors=bool(errors))
    logger.info(
        "Parsed %s: package %s, %d function(s), %d comment(s)",
        path,
        ctx.package_name or "?",
        _count_functions(tree.root_node),
        len(ctx.comments),
    )
    return ctx


def load_contexts(
    paths: list[Path],
    parser: Optional[Parser] = None,
) -> list[FileContext]:
    """
    Create contexts for several .go files, sharing one parser.

    Args:
        paths: Files to load.
        parser: Optional parser instance; if None, a new one is created.

    Returns:
        Contexts in input order. Files that cannot be read are left out.
    """
    if parser is None:
        parser = create_parser()
    contexts = (create_context(path, parser=parser) for path in paths)
    return [ctx for ctx in contexts if ctx is not None]
