"""
nolint directives and generated-file detection.

Recognised directive forms (matched anywhere in a comment's text):

    //nolint:spannerclosecheck          targeted (also in a list: nolint:errcheck,spannerclosecheck)
    //nolint:all                        all tools
    //nolint                            bare; the comment must contain no ':' at all

A directive on the reported line or the line above it suppresses that one
finding. A targeted or all-tools directive within the first lines of a file
(10 by default) suppresses the whole file; such files are excluded together
with generated files before any candidate in them is evaluated.
Anything else, including misspelt tool names, is not a directive.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from closecheck.context import Comment
from closecheck.ir.nodes import Position

logger = logging.getLogger(__name__)

GENERATED_SUFFIXES: tuple[str, ...] = (".yo.go", ".pb.go", "_gen.go")
GENERATED_MARKER = "generated"
FILE_DIRECTIVE_LINES = 10

_TOOL_LIST = re.compile(r"nolint:([\w\-]+(?:\s*,\s*[\w\-]+)*)")


class DirectiveKind(str, Enum):
    TARGETED = "targeted"
    ALL = "all"
    BARE = "bare"


class DirectiveScope(str, Enum):
    SAME_LINE = "same-line"
    PRECEDING_LINE = "preceding-line"
    FILE = "file"


@dataclass(frozen=True)
class SuppressionDirective:
    kind: DirectiveKind
    scope: DirectiveScope
    line: int


def parse_directive(text: str, tool: str) -> Optional[DirectiveKind]:
    """Classify a comment's text; None if it carries no directive for ``tool``."""
    for match in _TOOL_LIST.finditer(text):
        names = [n.strip() for n in match.group(1).split(",")]
        if tool in names:
            return DirectiveKind.TARGETED
        if "all" in names:
            return DirectiveKind.ALL
    if "nolint" in text and ":" not in text:
        return DirectiveKind.BARE
    return None


def is_generated_file(
    filename: str,
    suffixes: Sequence[str] = GENERATED_SUFFIXES,
    marker: str = GENERATED_MARKER,
) -> bool:
    if any(filename.endswith(suffix) for suffix in suffixes):
        return True
    return marker in filename


class SuppressionFilter:
    """
    Answers "is this file excluded" and "is this position suppressed".

    ``comments`` maps a filename to the comments of that file. Files without
    an entry have no comments; positions in them are never suppressed.
    """

    def __init__(
        self,
        comments: Mapping[str, Sequence[Comment]],
        tool: str = "spannerclosecheck",
        header_lines: int = FILE_DIRECTIVE_LINES,
        generated_suffixes: Sequence[str] = GENERATED_SUFFIXES,
        generated_marker: str = GENERATED_MARKER,
    ) -> None:
        self.comments = comments
        self.tool = tool
        self.header_lines = header_lines
        self.generated_suffixes = tuple(generated_suffixes)
        self.generated_marker = generated_marker
        self._excluded: dict[str, bool] = {}
        self._directives: dict[str, list[SuppressionDirective]] = {}

    def directives_for(self, filename: str) -> list[SuppressionDirective]:
        """Every directive in the file, classified by the scope it can act on."""
        cached = self._directives.get(filename)
        if cached is not None:
            return cached
        directives = []
        for comment in self.comments.get(filename, ()):
            kind = parse_directive(comment.text, self.tool)
            if kind is None:
                continue
            if kind is not DirectiveKind.BARE and comment.line <= self.header_lines:
                directives.append(SuppressionDirective(kind, DirectiveScope.FILE, comment.line))
            directives.append(SuppressionDirective(kind, DirectiveScope.SAME_LINE, comment.line))
            directives.append(SuppressionDirective(kind, DirectiveScope.PRECEDING_LINE, comment.line))
        self._directives[filename] = directives
        return directives

    def has_file_directive(self, filename: str) -> bool:
        return any(d.scope is DirectiveScope.FILE for d in self.directives_for(filename))

    def is_excluded_file(self, filename: str) -> bool:
        """Generated file, or file-level nolint in its header."""
        cached = self._excluded.get(filename)
        if cached is not None:
            return cached
        if is_generated_file(filename, self.generated_suffixes, self.generated_marker):
            logger.debug("Skipping generated file %s", filename)
            excluded = True
        elif self.has_file_directive(filename):
            logger.debug("Skipping %s: file-level nolint directive", filename)
            excluded = True
        else:
            excluded = False
        self._excluded[filename] = excluded
        return excluded

    def is_suppressed(self, pos: Position) -> bool:
        """nolint directive on the same line as ``pos`` or on the line before."""
        for d in self.directives_for(pos.filename):
            if d.scope is DirectiveScope.SAME_LINE and d.line == pos.line:
                return True
            if d.scope is DirectiveScope.PRECEDING_LINE and d.line == pos.line - 1:
                return True
        return False
