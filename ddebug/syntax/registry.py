"""Node registry - stable node identities, metadata and reconstruction"""

import bisect
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from tree_sitter import Node, Tree

from ..config import SizeMetric
from .kinds import LIST_MEMBER_KINDS, NodeKind, classify, is_removable
from .parser import RustParser

# Fields that carry the declared name of items and let bindings.
_NAME_FIELDS = ("name", "pattern")


@dataclass(frozen=True)
class Span:
    """Half-open byte range in the original source"""
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: "Span") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass
class SyntaxNode:
    """One registered syntax node.

    ``span`` is the node's own text. ``removal_span`` is what gets cut when
    the node is elided: the span plus an adjoining list separator or a
    trailing ``;`` token that belongs to the node's position.
    """
    id: int
    kind: NodeKind
    type: str
    parent: Optional[int]
    span: Span
    removal_span: Span
    depth: int
    children: List[int] = field(default_factory=list)
    descendant_count: int = 0

    @property
    def removable(self) -> bool:
        return is_removable(self.kind)


@dataclass
class SyntaxTree:
    """All nodes of one target file, indexed by preorder id"""
    source: bytes
    nodes: List[SyntaxNode]
    root_id: int = 0

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, node_id: int) -> SyntaxNode:
        return self.nodes[node_id]

    @property
    def root(self) -> SyntaxNode:
        return self.nodes[self.root_id]

    def text_of(self, node_id: int) -> str:
        span = self.nodes[node_id].span
        return self.source[span.start:span.end].decode("utf-8", errors="replace")


def _next_token(ts_node: Node) -> Optional[Node]:
    sibling = ts_node.next_sibling
    while sibling is not None and sibling.is_extra:
        sibling = sibling.next_sibling
    return sibling


def _prev_token(ts_node: Node) -> Optional[Node]:
    sibling = ts_node.prev_sibling
    while sibling is not None and sibling.is_extra:
        sibling = sibling.prev_sibling
    return sibling


def _removal_span(ts_node: Node, kind: NodeKind) -> Span:
    start, end = ts_node.start_byte, ts_node.end_byte
    # Comments sit anywhere; a separator after one belongs to the parent.
    if not is_removable(kind) or kind is NodeKind.COMMENT:
        return Span(start, end)

    following = _next_token(ts_node)
    if following is not None and not following.is_named and following.type in (",", ";"):
        return Span(start, following.end_byte)

    if kind in LIST_MEMBER_KINDS:
        preceding = _prev_token(ts_node)
        if preceding is not None and not preceding.is_named and preceding.type == ",":
            return Span(preceding.start_byte, end)

    return Span(start, end)


def _widen(source: bytes, span: Span) -> Span:
    """Extend a cut over whole blank-remaining lines or trailing blanks."""
    start, end = span.start, span.end
    line_start = source.rfind(b"\n", 0, start) + 1
    line_end = source.find(b"\n", end)
    if line_end == -1:
        line_end = len(source)

    before = source[line_start:start]
    after = source[end:line_end]
    if not before.strip(b" \t") and not after.strip(b" \t\r"):
        return Span(line_start, min(line_end + 1, len(source)))

    while end < len(source) and source[end:end + 1] in (b" ", b"\t"):
        end += 1
    return Span(start, end)


def _merge(spans: Iterable[Span]) -> List[Span]:
    merged: List[Span] = []
    for span in sorted(spans, key=lambda s: (s.start, s.end)):
        if merged and span.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Span(last.start, max(last.end, span.end))
        else:
            merged.append(span)
    return merged


def topmost(tree: SyntaxTree, node_ids: Iterable[int]) -> List[int]:
    """Ids from ``node_ids`` that have no ancestor in the same set, sorted."""
    id_set = set(node_ids)
    result = []
    for node_id in id_set:
        parent = tree[node_id].parent
        while parent is not None and parent not in id_set:
            parent = tree[parent].parent
        if parent is None:
            result.append(node_id)
    return sorted(result)


def reconstruct(tree: SyntaxTree, removed_ids: Iterable[int]) -> str:
    """Serialize the tree with the given nodes and their subtrees elided.

    No attempt is made to repair references to removed declarations; the
    build oracle decides whether the result is still meaningful.

    Args:
        tree: Syntax tree of the original file
        removed_ids: Nodes to elide; descendants of listed nodes are implied

    Returns:
        Source text
    """
    source = tree.source
    cuts = _merge(
        _widen(source, tree[node_id].removal_span)
        for node_id in topmost(tree, removed_ids)
    )

    pieces = []
    position = 0
    for cut in cuts:
        pieces.append(source[position:cut.start])
        position = cut.end
    pieces.append(source[position:])
    return b"".join(pieces).decode("utf-8")


class NodeRegistry:
    """Stable identities and metadata for every node of one file.

    Node ids are assigned in preorder by a single traversal over the
    tree-sitter tree and never change during a session; removals are
    expressed as id sets and applied only when text is reconstructed.
    """

    def __init__(self, tree: SyntaxTree, size_metric: SizeMetric = SizeMetric.BYTES):
        self.tree = tree
        self.size_metric = size_metric
        self._line_starts = [0] + [i + 1 for i, b in enumerate(tree.source) if b == 0x0A]
        # Non-owning name table, used for log messages only.
        self.declared: Dict[int, Tuple[str, ...]] = {}
        self.references: Dict[str, List[int]] = {}

    @classmethod
    def from_source(
        cls,
        text: str,
        parser: Optional[RustParser] = None,
        size_metric: SizeMetric = SizeMetric.BYTES,
        path: str = "<input>"
    ) -> "NodeRegistry":
        """Parse ``text`` and build its registry.

        Raises:
            ParseFailure: If the text does not parse
        """
        parser = parser or RustParser()
        source = text.encode("utf-8")
        return cls.build(parser.parse(source, path=path), source, size_metric)

    @classmethod
    def build(
        cls,
        ts_tree: Tree,
        source: bytes,
        size_metric: SizeMetric = SizeMetric.BYTES
    ) -> "NodeRegistry":
        """Register every named node of a parsed tree in one preorder pass.

        Args:
            ts_tree: tree-sitter tree
            source: Source bytes the tree was parsed from
            size_metric: Size policy for candidate ordering

        Returns:
            NodeRegistry
        """
        nodes: List[SyntaxNode] = []
        names: Dict[int, Tuple[str, ...]] = {}
        stack: List[Tuple[Node, Optional[int], int]] = [(ts_tree.root_node, None, 0)]

        while stack:
            ts_node, parent_id, depth = stack.pop()
            node_id = len(nodes)
            parent_type = nodes[parent_id].type if parent_id is not None else None
            kind = classify(ts_node.type, parent_type)

            nodes.append(SyntaxNode(
                id=node_id,
                kind=kind,
                type=ts_node.type,
                parent=parent_id,
                span=Span(ts_node.start_byte, ts_node.end_byte),
                removal_span=_removal_span(ts_node, kind),
                depth=depth,
            ))
            if parent_id is not None:
                nodes[parent_id].children.append(node_id)

            if kind in (NodeKind.ITEM, NodeKind.DECLARATION):
                declared = _declared_names(ts_node, source)
                if declared:
                    names[node_id] = declared

            for child in reversed(ts_node.named_children):
                stack.append((child, node_id, depth + 1))

        # Preorder ids: every descendant has a larger id than its ancestor.
        for node in reversed(nodes):
            if node.parent is not None:
                nodes[node.parent].descendant_count += node.descendant_count + 1

        registry = cls(SyntaxTree(source=source, nodes=nodes), size_metric)
        registry.declared = names
        for node_id, declared in names.items():
            for name in declared:
                registry.references.setdefault(name, []).append(node_id)
        return registry

    def __len__(self) -> int:
        return len(self.tree)

    def node(self, node_id: int) -> SyntaxNode:
        return self.tree[node_id]

    def children_of(self, node_id: int) -> List[int]:
        return list(self.tree[node_id].children)

    def size_of(self, node_id: int) -> int:
        """Node size under the configured metric."""
        node = self.tree[node_id]
        if self.size_metric is SizeMetric.DESCENDANTS:
            return node.descendant_count
        return len(node.span)

    @staticmethod
    def is_removable(kind: NodeKind) -> bool:
        return is_removable(kind)

    def priority(self, node_id: int) -> Tuple[int, int, int]:
        """Sort key: larger first, then document order."""
        node = self.tree[node_id]
        return (-self.size_of(node_id), node.span.start, node_id)

    def candidate_children(self, node_id: int) -> List[int]:
        """Nearest removable descendants, in document order.

        Non-removable nodes (blocks, expressions, ...) are looked through, so
        statements inside a function body are candidates of the function.
        """
        result = []
        stack = list(reversed(self.children_of(node_id)))
        while stack:
            child_id = stack.pop()
            child = self.tree[child_id]
            if child.removable:
                result.append(child_id)
            else:
                stack.extend(reversed(child.children))
        return result

    def descendants(self, node_id: int) -> List[int]:
        """All descendants of a node (excluding the node), preorder."""
        # Preorder ids make a subtree a contiguous id range.
        count = self.tree[node_id].descendant_count
        return list(range(node_id + 1, node_id + 1 + count))

    def is_ancestor(self, ancestor_id: int, node_id: int) -> bool:
        """True if ``ancestor_id`` is a proper ancestor of ``node_id``."""
        count = self.tree[ancestor_id].descendant_count
        return ancestor_id < node_id <= ancestor_id + count

    def topmost(self, node_ids: Iterable[int]) -> List[int]:
        return topmost(self.tree, node_ids)

    def reconstruct(self, removed_ids: Iterable[int]) -> str:
        """Source text with the given nodes elided."""
        return reconstruct(self.tree, removed_ids)

    def line_of(self, node_id: int) -> int:
        """1-based line number where a node starts."""
        return bisect.bisect_right(self._line_starts, self.tree[node_id].span.start)

    def describe(self, node_id: int) -> str:
        """Short label for logs, e.g. ``let_declaration@4 (b)``.

        Shadowed names also show which of their declarations this is, e.g.
        ``let_declaration@6 (b 2/2)``.
        """
        label = f"{self.tree[node_id].type}@{self.line_of(node_id)}"
        names = self.declared.get(node_id)
        if names:
            shown = []
            for name in names:
                declarations = self.references.get(name, [])
                if len(declarations) > 1:
                    name = f"{name} {declarations.index(node_id) + 1}/{len(declarations)}"
                shown.append(name)
            label = f"{label} ({', '.join(shown)})"
        return label


def _declared_names(ts_node: Node, source: bytes) -> Tuple[str, ...]:
    for field_name in _NAME_FIELDS:
        child = ts_node.child_by_field_name(field_name)
        if child is not None and child.type in ("identifier", "type_identifier"):
            return (source[child.start_byte:child.end_byte].decode("utf-8", errors="replace"),)
    return ()
