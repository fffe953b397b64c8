"""Tests for parsing, the node registry and text reconstruction"""

import pytest

from ddebug.config import SizeMetric
from ddebug.errors import ParseFailure
from ddebug.reduction import ReductionState
from ddebug.syntax import NodeKind, NodeRegistry, RustParser, classify

from conftest import SCENARIO_SOURCE


def find(registry, node_type, text=None):
    """Ids of nodes of a type, optionally with exact text"""
    return [
        node.id for node in registry.tree.nodes
        if node.type == node_type and (text is None or registry.tree.text_of(node.id) == text)
    ]


class TestClassify:
    """Test node kind mapping"""

    def test_kinds(self):
        """Statements, items and list members are recognized"""
        assert classify("function_item") is NodeKind.ITEM
        assert classify("let_declaration") is NodeKind.DECLARATION
        assert classify("expression_statement") is NodeKind.STATEMENT
        assert classify("parameter") is NodeKind.PARAMETER
        assert classify("field_declaration") is NodeKind.FIELD
        assert classify("block") is NodeKind.BLOCK
        assert classify("binary_expression") is NodeKind.EXPRESSION

    def test_macro_items(self):
        """Macro invocations are items only at item level"""
        assert classify("macro_invocation", "source_file") is NodeKind.ITEM
        assert classify("macro_invocation", "block") is NodeKind.EXPRESSION


class TestParser:
    """Test tree-sitter parsing"""

    def test_parse_failure(self):
        """Unparseable input is reported with its location"""
        with pytest.raises(ParseFailure) as info:
            RustParser().parse(b"fn main( {\n", path="src/main.rs")
        assert "src/main.rs" in info.value.describe()

    def test_parses(self):
        """Quick parse check"""
        parser = RustParser()
        assert parser.parses(SCENARIO_SOURCE)
        assert not parser.parses("fn main() { let = ; }")


class TestRegistry:
    """Test node registration"""

    def test_preorder_ids(self):
        """Root is 0 and every child id is larger than its parent's"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)

        assert registry.tree.root.type == "source_file"
        for node in registry.tree.nodes:
            if node.parent is not None:
                assert node.parent < node.id
                assert registry.is_ancestor(node.parent, node.id)

    def test_descendants_are_subtree(self):
        """Descendant id ranges match the parent links"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        function = find(registry, "function_item")[0]

        descendants = set(registry.descendants(function))
        assert len(descendants) == registry.node(function).descendant_count
        for node_id in descendants:
            parent = registry.node(node_id).parent
            while parent != function:
                parent = registry.node(parent).parent
                assert parent is not None

    def test_candidate_children_look_through_blocks(self):
        """The statements of a function body are its candidates"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        function = find(registry, "function_item")[0]

        texts = [registry.tree.text_of(n) for n in registry.candidate_children(function)]
        assert texts == ["let b = 0;", "let a = 0;", "let c = 0;", "b = 10;"]

    def test_priority_orders_by_size_then_position(self):
        """Larger first, ties in document order"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        function = find(registry, "function_item")[0]

        ordered = sorted(registry.candidate_children(function), key=registry.priority)
        texts = [registry.tree.text_of(n) for n in ordered]
        assert texts == ["let b = 0;", "let a = 0;", "let c = 0;", "b = 10;"]

    def test_descendants_metric(self):
        """The descendant metric counts nodes, not bytes"""
        source = "fn f() { let long_name_here = 1; }\nfn g() { let x = (1, 2, 3); }\n"
        by_bytes = NodeRegistry.from_source(source, size_metric=SizeMetric.BYTES)
        by_nodes = NodeRegistry.from_source(source, size_metric=SizeMetric.DESCENDANTS)

        f, g = find(by_bytes, "let_declaration")
        assert by_bytes.size_of(f) > by_bytes.size_of(g)
        assert by_nodes.size_of(f) < by_nodes.size_of(g)

    def test_declared_names(self):
        """Let bindings and items record their names"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        let_b = find(registry, "let_declaration", "let b = 0;")[0]

        assert registry.declared[let_b] == ("b",)
        assert registry.describe(let_b) == "let_declaration@2 (b)"

    def test_shadowed_names(self):
        """Repeated declarations of a name are told apart in labels"""
        source = "fn main() {\n    let b = 0;\n    let b = 1;\n}\n"
        registry = NodeRegistry.from_source(source)
        first, second = find(registry, "let_declaration")

        assert registry.references["b"] == [first, second]
        assert registry.describe(second) == "let_declaration@3 (b 2/2)"

    def test_removable(self):
        """Only whole statements and items are removable"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        removable = {registry.node(n).type for n in ReductionState(registry).live_removable()}
        assert removable == {"function_item", "let_declaration", "expression_statement"}


class TestReconstruct:
    """Test source reconstruction"""

    def test_nothing_removed(self):
        """Empty removal set reproduces the input exactly"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        assert registry.reconstruct([]) == SCENARIO_SOURCE

    def test_whole_lines_removed(self):
        """A statement alone on its line takes the line with it"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        removed = find(registry, "let_declaration", "let a = 0;") + find(registry, "let_declaration", "let c = 0;")

        assert registry.reconstruct(removed) == "fn main() {\n    let b = 0;\n    b = 10;\n}\n"

    def test_descendants_implied(self):
        """Listing a descendant of a removed node changes nothing"""
        registry = NodeRegistry.from_source(SCENARIO_SOURCE)
        function = find(registry, "function_item")[0]
        let_a = find(registry, "let_declaration", "let a = 0;")[0]

        assert registry.reconstruct([function]) == ""
        assert registry.reconstruct([function, let_a]) == ""
        assert registry.topmost([let_a, function]) == [function]

    def test_parameter_takes_separator(self):
        """Removing a list member removes one comma with it"""
        source = "fn f(a: i32, b: i32, c: i32) {}\n"
        registry = NodeRegistry.from_source(source)
        a, b, c = find(registry, "parameter")

        assert registry.reconstruct([b]) == "fn f(a: i32, c: i32) {}\n"
        assert registry.reconstruct([c]) == "fn f(a: i32, b: i32) {}\n"
        assert registry.reconstruct([a, b, c]) == "fn f() {}\n"

    def test_inline_statements(self):
        """Statements sharing a line lose only their own text"""
        source = "fn main() { let a = 0; let b = 1; }\n"
        registry = NodeRegistry.from_source(source)
        let_a = find(registry, "let_declaration", "let a = 0;")[0]

        assert registry.reconstruct([let_a]) == "fn main() { let b = 1; }\n"

    def test_comment_keeps_statement_terminator(self):
        """A comment before a semicolon leaves the semicolon in place"""
        source = "fn main() {\n    let b = 0 /* why */;\n    b = 10;\n}\n"
        registry = NodeRegistry.from_source(source)
        comment = find(registry, "block_comment")[0]

        text = registry.reconstruct([comment])
        assert text == "fn main() {\n    let b = 0 ;\n    b = 10;\n}\n"
        assert RustParser().parses(text)

    def test_comment_keeps_list_separator(self):
        """A comment before a comma leaves the comma in place"""
        source = "fn f(a: i32 /* x */, b: i32) {}\n"
        registry = NodeRegistry.from_source(source)
        comment = find(registry, "block_comment")[0]
        a, b = find(registry, "parameter")

        text = registry.reconstruct([comment])
        assert text == "fn f(a: i32 , b: i32) {}\n"
        assert RustParser().parses(text)
        assert registry.reconstruct([a]) == "fn f(b: i32) {}\n"
        assert registry.reconstruct([b]) == "fn f(a: i32 /* x */) {}\n"
