"""Node kinds and the mapping from tree-sitter-rust node types"""

from enum import Enum
from typing import Optional


class NodeKind(Enum):
    """Closed set of syntax node kinds"""
    ROOT = "root"
    ITEM = "item"
    ATTRIBUTE = "attribute"
    DECLARATION = "declaration"
    STATEMENT = "statement"
    PARAMETER = "parameter"
    FIELD = "field"
    COMMENT = "comment"
    BLOCK = "block"
    EXPRESSION = "expression"
    OTHER = "other"


# Whole statements, items, declarations and list members only; deleting a
# sub-expression rarely leaves plausible source.
REMOVABLE_KINDS = frozenset({
    NodeKind.ITEM,
    NodeKind.ATTRIBUTE,
    NodeKind.DECLARATION,
    NodeKind.STATEMENT,
    NodeKind.PARAMETER,
    NodeKind.FIELD,
    NodeKind.COMMENT,
})

# Members of comma separated lists; their separator goes with them.
LIST_MEMBER_KINDS = frozenset({NodeKind.PARAMETER, NodeKind.FIELD})

ITEM_TYPES = frozenset({
    "function_item",
    "function_signature_item",
    "struct_item",
    "enum_item",
    "union_item",
    "impl_item",
    "trait_item",
    "type_item",
    "const_item",
    "static_item",
    "mod_item",
    "use_declaration",
    "extern_crate_declaration",
    "foreign_mod_item",
    "macro_definition",
    "associated_type",
})

BLOCK_TYPES = frozenset({
    "block",
    "declaration_list",
    "field_declaration_list",
    "enum_variant_list",
    "parameters",
})

KIND_BY_TYPE = {
    "source_file": NodeKind.ROOT,
    "attribute_item": NodeKind.ATTRIBUTE,
    "inner_attribute_item": NodeKind.ATTRIBUTE,
    "let_declaration": NodeKind.DECLARATION,
    "expression_statement": NodeKind.STATEMENT,
    "empty_statement": NodeKind.STATEMENT,
    "parameter": NodeKind.PARAMETER,
    "self_parameter": NodeKind.PARAMETER,
    "variadic_parameter": NodeKind.PARAMETER,
    "field_declaration": NodeKind.FIELD,
    "enum_variant": NodeKind.FIELD,
    "line_comment": NodeKind.COMMENT,
    "block_comment": NodeKind.COMMENT,
}

# Containers whose direct macro invocations are items, not expressions.
ITEM_CONTAINERS = frozenset({"source_file", "declaration_list"})

EXPRESSION_TYPES = frozenset({
    "identifier",
    "integer_literal",
    "float_literal",
    "string_literal",
    "raw_string_literal",
    "char_literal",
    "boolean_literal",
    "macro_invocation",
    "closure_expression",
})


def classify(node_type: str, parent_type: Optional[str] = None) -> NodeKind:
    """Map a tree-sitter node type to a NodeKind.

    Args:
        node_type: tree-sitter type name, e.g. ``"let_declaration"``
        parent_type: Type of the enclosing node, if any

    Returns:
        The node's kind
    """
    if node_type in KIND_BY_TYPE:
        return KIND_BY_TYPE[node_type]
    if node_type in ITEM_TYPES:
        return NodeKind.ITEM
    if node_type == "macro_invocation" and parent_type in ITEM_CONTAINERS:
        return NodeKind.ITEM
    if node_type in BLOCK_TYPES:
        return NodeKind.BLOCK
    if node_type.endswith("_expression") or node_type in EXPRESSION_TYPES:
        return NodeKind.EXPRESSION
    return NodeKind.OTHER


def is_removable(kind: NodeKind) -> bool:
    """Whether nodes of this kind are removal candidates."""
    return kind in REMOVABLE_KINDS
