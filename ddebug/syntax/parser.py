"""Rust parsing through tree-sitter"""

from typing import Optional

import tree_sitter_rust
from tree_sitter import Language, Node, Parser, Tree

from ..errors import ParseFailure

RUST_LANGUAGE = Language(tree_sitter_rust.language())


def first_error_node(tree: Tree) -> Optional[Node]:
    """First ERROR or MISSING node in document order, if any."""
    if not tree.root_node.has_error:
        return None

    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        # Only descend into subtrees that contain the error.
        stack.extend(child for child in reversed(node.children) if child.has_error)
    return tree.root_node


class RustParser:
    """Parses Rust source with the tree-sitter-rust grammar"""

    def __init__(self):
        self._parser = Parser(RUST_LANGUAGE)

    def parse(self, source: bytes, path: str = "<input>") -> Tree:
        """Parse source bytes, rejecting input with syntax errors.

        Args:
            source: UTF-8 encoded source text
            path: Name used in error messages

        Returns:
            tree-sitter Tree

        Raises:
            ParseFailure: If the source contains a syntax error
        """
        tree = self._parser.parse(source)
        error = first_error_node(tree)
        if error is not None:
            row, column = error.start_point[0], error.start_point[1]
            what = "missing token" if error.is_missing else "syntax error"
            raise ParseFailure(
                f"{path} does not parse",
                f"{what} at {path}:{row + 1}:{column + 1}"
            )
        return tree

    def parses(self, text: str) -> bool:
        """True if ``text`` parses without errors."""
        tree = self._parser.parse(text.encode("utf-8"))
        return not tree.root_node.has_error
