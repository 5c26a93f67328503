"""Tree-sitter parsing helpers shared by the detectors and fixers.

Provides:
- Grammar loading for Python, JavaScript, TypeScript and TSX
- SourceText: byte/line/column bookkeeping for one file
- Node traversal and text extraction utilities
"""

from functools import lru_cache
from typing import Iterator

import structlog
import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser, Tree

logger = structlog.get_logger()


GRAMMAR_LOADERS = {
    "python": tspython.language,
    "javascript": tsjavascript.language,
    "typescript": tstypescript.language_typescript,
    "tsx": tstypescript.language_tsx,
}


@lru_cache(maxsize=None)
def load_language(grammar: str) -> Language:
    """Load (once) the tree-sitter Language for a grammar name."""
    try:
        loader = GRAMMAR_LOADERS[grammar]
    except KeyError:
        raise ValueError(f"Unknown tree-sitter grammar: {grammar}") from None

    language = Language(loader())
    logger.debug("Tree-sitter grammar loaded", grammar=grammar)
    return language


def parse_bytes(data: bytes, grammar: str) -> Tree:
    """Parse source bytes with a fresh parser.

    Parsers are cheap to build and are not shared between worker threads.
    """
    parser = Parser(load_language(grammar))
    return parser.parse(data)


class SourceText:
    """Source bytes of one file with line and column bookkeeping."""

    def __init__(self, data: bytes):
        self.data = data
        self.text = data.decode("utf-8")
        self._lines = data.split(b"\n")
        self.newline = "\r\n" if b"\r\n" in data else "\n"

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line(self, number: int) -> str:
        """Text of a 1-based line, without its line terminator."""
        if number < 1 or number > len(self._lines):
            return ""
        return self._lines[number - 1].decode("utf-8").rstrip("\r")

    def location(self, node: Node) -> tuple[int, int]:
        """1-based line and 0-based character column of a node's start."""
        row, byte_col = node.start_point[0], node.start_point[1]
        prefix = self._lines[row][:byte_col] if row < len(self._lines) else b""
        return row + 1, len(prefix.decode("utf-8", errors="replace"))

    def row_start_offset(self, row: int) -> int:
        """Byte offset at which a 0-based row starts (len(data) past the end)."""
        if row <= 0:
            return 0
        if row >= len(self._lines):
            return len(self.data)
        return sum(len(chunk) + 1 for chunk in self._lines[:row])

    def is_suppressed(self, line: int, sentinel: str) -> bool:
        """True when the line before ``line`` carries the disable sentinel."""
        return line > 1 and sentinel in self.line(line - 1)


def node_text(node: Node | None, source: SourceText) -> str:
    """Get the text of a node."""
    if node is None:
        return ""
    return source.data[node.start_byte:node.end_byte].decode("utf-8")


def walk(root: Node, skip: frozenset[str] = frozenset()) -> Iterator[Node]:
    """Pre-order traversal, not descending into node types in ``skip``."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if node.type in skip and node is not root:
            continue
        stack.extend(reversed(node.children))


def top_level_statement(node: Node) -> Node:
    """The module-level statement that contains ``node``."""
    while node.parent is not None and node.parent.parent is not None:
        node = node.parent
    return node


def enclosing(node: Node, types: frozenset[str]) -> Node | None:
    """Nearest ancestor of one of the given types."""
    current = node.parent
    while current is not None:
        if current.type in types:
            return current
        current = current.parent
    return None


def first_error(root: Node) -> Node | None:
    """First ERROR or MISSING node in the tree, if the parse failed."""
    if not root.has_error:
        return None
    for node in walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node
    return root


def string_value(node: Node, source: SourceText) -> str:
    """Value of a quoted string literal node, quotes removed."""
    text = node_text(node, source)
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text
