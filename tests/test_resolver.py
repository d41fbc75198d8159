"""Tests for reference resolution."""

import pytest

from codeviz.models.extraction import RawEdge, TargetRef
from codeviz.models.graph import DeclarationNode, make_node_id
from codeviz.services.resolver import SymbolIndex, resolve_edges


def decl(kind, path, name, file):
    return DeclarationNode(id=make_node_id(kind, path, name), type=kind, name=name, path=path, file=file)


@pytest.fixture
def nodes():
    return [
        decl("function", "a", "f", "/p/a.rs"),
        decl("function", "b", "f", "/p/b.rs"),
        decl("struct", "b", "S", "/p/b.rs"),
        decl("function", "deep::b", "g", "/p/deep/b.rs"),
    ]


class TestSymbolIndex:
    """Tests for the three lookup tiers."""

    def test_scope_match_wins(self, nodes):
        index = SymbolIndex(nodes)
        ref = TargetRef(kinds=("function",), name="f", scopes=("b",))
        assert index.resolve(ref, "/p/a.rs") == "function:b:f"

    def test_scopes_tried_innermost_first(self, nodes):
        index = SymbolIndex(nodes)
        ref = TargetRef(kinds=("function",), name="f", scopes=("zzz", "a", "b"))
        assert index.resolve(ref, "/p/b.rs") == "function:a:f"

    def test_kind_order_within_scope(self, nodes):
        index = SymbolIndex(nodes + [decl("struct", "a", "f", "/p/a.rs")])
        ref = TargetRef(kinds=("struct", "function"), name="f", scopes=("a",))
        assert index.resolve(ref, "/p/a.rs") == "struct:a:f"

    def test_same_file_before_global(self, nodes):
        index = SymbolIndex(nodes)
        ref = TargetRef(kinds=("function",), name="f", scopes=("nowhere",))
        assert index.resolve(ref, "/p/b.rs") == "function:b:f"

    def test_global_bare_name_takes_first(self, nodes):
        index = SymbolIndex(nodes)
        ref = TargetRef(kinds=("function",), name="f")
        assert index.resolve(ref, "/p/other.rs") == "function:a:f"

    def test_qualifier_restricts_global_match(self, nodes):
        index = SymbolIndex(nodes)
        assert index.resolve(TargetRef(kinds=("function",), name="f", qualifier="b"), "/p/x.rs") == "function:b:f"
        assert index.resolve(TargetRef(kinds=("function",), name="g", qualifier="b"), "/p/x.rs") == "function:deep::b:g"
        assert index.lookup(TargetRef(kinds=("function",), name="g", qualifier="a"), "/p/x.rs") is None

    def test_unmatched_gets_synthetic_id(self, nodes):
        index = SymbolIndex(nodes)
        ref = TargetRef(kinds=("function", "struct"), name="missing", scopes=("a",), fallback_scope="a")
        assert index.lookup(ref, "/p/a.rs") is None
        assert index.resolve(ref, "/p/a.rs") == "function:a:missing"


class TestResolveEdges:
    """Tests for resolve_edges()."""

    def test_every_raw_edge_is_kept_in_order(self, nodes):
        raw = [
            RawEdge(kind="calls", file="/p/a.rs", source="function:a:f",
                    target_ref=TargetRef(kinds=("function",), name="nope")),
            RawEdge(kind="contains", file="/p/b.rs", source="struct:b:S", target="function:b:f"),
            RawEdge(kind="calls", file="/p/a.rs", source="function:a:f",
                    target_ref=TargetRef(kinds=("function",), name="nope")),
        ]

        edges = resolve_edges(nodes, raw)

        assert [(e.source, e.target, e.type) for e in edges] == [
            ("function:a:f", "function::nope", "calls"),
            ("struct:b:S", "function:b:f", "contains"),
            ("function:a:f", "function::nope", "calls"),
        ]

    def test_symbolic_source(self, nodes):
        raw = [RawEdge(
            kind="implements",
            file="/p/b.rs",
            source_ref=TargetRef(kinds=("struct", "enum"), name="S", scopes=("b",), fallback_scope="b"),
            target_ref=TargetRef(kinds=("trait",), name="Display"),
        )]

        edges = resolve_edges(nodes, raw)

        assert edges[0].source == "struct:b:S"
        assert edges[0].target == "trait::Display"
