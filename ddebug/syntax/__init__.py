"""Syntax trees for reduction: parsing, node registry, reconstruction"""

from .kinds import NodeKind, REMOVABLE_KINDS, classify, is_removable
from .parser import RustParser, first_error_node
from .registry import (
    NodeRegistry,
    Span,
    SyntaxNode,
    SyntaxTree,
    reconstruct,
    topmost,
)

__all__ = [
    'NodeKind',
    'REMOVABLE_KINDS',
    'classify',
    'is_removable',
    'RustParser',
    'first_error_node',
    'NodeRegistry',
    'Span',
    'SyntaxNode',
    'SyntaxTree',
    'reconstruct',
    'topmost',
]
