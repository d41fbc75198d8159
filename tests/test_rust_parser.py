"""Tests for the Rust extractor."""

import textwrap
from pathlib import Path

import pytest

from codeviz.models.project import Language
from codeviz.services.assembler import assemble
from codeviz.services.parsers.rust_parser import RustParser, expand_use_tree, mask_source


def extract(tmp_path, source, rel="src/lib.rs"):
    parser = RustParser()
    return parser.extract_file(tmp_path / rel, textwrap.dedent(source), tmp_path)


def resolve(tmp_path, *results):
    return assemble(tmp_path, results, Language.rust)


def node(nodes, name, kind=None):
    found = [n for n in nodes if n.name == name and (kind is None or n.type == kind)]
    assert found, f"no node named {name!r}"
    return found[0]


class TestModulePath:
    """Tests for file → module path mapping."""

    @pytest.mark.parametrize("rel, expected", [
        ("src/lib.rs", "lib"),
        ("src/main.rs", "main"),
        ("src/net/tcp.rs", "net::tcp"),
        ("src/net/mod.rs", "net"),
        ("crates/core/src/util.rs", "crates::core::util"),
    ])
    def test_module_path(self, tmp_path, rel, expected):
        assert RustParser.module_path(tmp_path / rel, tmp_path) == expected


class TestMasking:
    """Tests for comment and literal blanking."""

    def test_preserves_length_and_newlines(self):
        source = 'let s = "a\\"b"; // note\n/* block\n */ let c = \'x\';\n'
        masked = mask_source(source)

        assert len(masked) == len(source)
        assert masked.count("\n") == source.count("\n")
        assert "note" not in masked
        assert "block" not in masked
        assert "a\\\"b" not in masked

    def test_lifetimes_survive(self):
        masked = mask_source("fn f<'a>(x: &'a str) -> &'a str { x }")
        assert "fn f<'a>" in masked

    def test_attributes_and_raw_strings_blanked(self):
        masked = mask_source('#[cfg(test)]\nlet r = r#"fn x() {}"#;\n')
        assert "cfg" not in masked
        assert "fn x" not in masked


class TestDeclarations:
    """Tests for item extraction."""

    def test_functions_and_call(self, tmp_path):
        result = extract(tmp_path, """
            pub fn a() { b(); }
            fn b() {}
        """)

        a = node(result.nodes, "a")
        b = node(result.nodes, "b")
        assert a.id == "function:lib:a"
        assert a.visibility == "public"
        assert b.visibility == "private"
        assert a.signature == "pub fn a()"

        project = resolve(tmp_path, result)
        calls = [e for e in project.dependencies if e.type == "calls"]
        assert [(e.source, e.target) for e in calls] == [("function:lib:a", "function:lib:b")]

    def test_visibility_variants(self, tmp_path):
        result = extract(tmp_path, """
            pub struct A;
            pub(crate) struct B;
            pub(super) enum C { X }
            pub(in crate::net) fn d() {}
            struct E(u8);
        """)

        assert node(result.nodes, "A").visibility == "public"
        assert node(result.nodes, "B").visibility == "crate"
        assert node(result.nodes, "C", "enum").visibility == "super"
        assert node(result.nodes, "d").visibility == "in"
        e = node(result.nodes, "E")
        assert e.visibility == "private"
        assert e.signature == "struct E(u8)"

    def test_comments_and_strings_are_ignored(self, tmp_path):
        result = extract(tmp_path, """
            // fn fake() {}
            /* struct Hidden; */
            fn real() {
                let s = "fn not_here() {}";
                println!("call(x)");
            }
        """)

        assert [n.name for n in result.nodes] == ["real"]
        assert result.edges == []

    def test_malformed_item_is_skipped(self, tmp_path):
        result = extract(tmp_path, "fn broken( {\n}\nfn ok() {}\n")

        assert [n.name for n in result.nodes] == ["ok"]

    def test_constants_and_statics(self, tmp_path):
        result = extract(tmp_path, """
            pub const MAX: usize = 10;
            static mut COUNTER: u32 = 0;
        """)

        max_node = node(result.nodes, "MAX")
        counter = node(result.nodes, "COUNTER")
        assert max_node.type == counter.type == "constant"
        assert max_node.signature == "pub const MAX: usize"
        assert max_node.visibility == "public"
        assert counter.signature == "static mut COUNTER: u32"
        assert counter.visibility == "private"

    def test_macro_rules(self, tmp_path):
        result = extract(tmp_path, """
            macro_rules! square {
                ($x:expr) => { $x * $x };
            }
        """)

        assert len(result.nodes) == 1
        assert result.nodes[0].id == "macro:lib:square"
        assert result.nodes[0].signature == "macro_rules! square"

    def test_doc_comments_and_attributes(self, tmp_path):
        result = extract(tmp_path, """
            /// Adds numbers.
            /// Second line.
            #[inline]
            pub fn add(a: i32, b: i32) -> i32 { a + b }
        """)

        add = node(result.nodes, "add")
        assert add.description == "Adds numbers.\nSecond line."
        assert add.attributes == ["inline"]
        assert add.signature == "pub fn add(a: i32, b: i32) -> i32"


    def test_attributes_stay_with_the_item_opening_the_line(self, tmp_path):
        result = extract(tmp_path, """
            #[cfg(test)]
            mod tests { fn t() {} }
        """)

        assert node(result.nodes, "tests").attributes == ["cfg(test)"]
        assert node(result.nodes, "t").attributes is None

    def test_turbofish_call(self, tmp_path):
        project = resolve(tmp_path, extract(tmp_path, """
            fn parse<T>(s: &str) -> T { todo!() }
            fn run() { let n = parse::<u8>("1"); }
        """))
        calls = [(e.source, e.target) for e in project.dependencies if e.type == "calls"]

        assert calls == [("function:lib:run", "function:lib:parse")]

class TestNesting:
    """Tests for scoped paths and contains edges."""

    SHAPES = """
        pub trait Shape: Clone + std::fmt::Debug {
            fn area(&self) -> f64;
        }

        #[derive(Clone, Debug)]
        pub struct Circle {
            r: f64,
        }

        impl Shape for Circle {
            fn area(&self) -> f64 {
                helper(self.r)
            }
        }

        fn helper(r: f64) -> f64 { r * r }
    """

    def test_trait_impl_and_methods(self, tmp_path):
        result = extract(tmp_path, self.SHAPES, rel="src/shapes.rs")
        ids = [n.id for n in result.nodes]

        assert ids == [
            "trait:shapes:Shape",
            "function:shapes::Shape:area",
            "struct:shapes:Circle",
            "impl:shapes:impl Shape for Circle",
            "function:shapes::Circle:area",
            "function:shapes:helper",
        ]
        assert node(result.nodes, "Circle").attributes == ["derive(Clone, Debug)"]

    def test_trait_impl_edges(self, tmp_path):
        project = resolve(tmp_path, extract(tmp_path, self.SHAPES, rel="src/shapes.rs"))
        pairs = {(e.type, e.source, e.target) for e in project.dependencies}

        assert ("implements", "struct:shapes:Circle", "trait:shapes:Shape") in pairs
        assert ("contains", "trait:shapes:Shape", "function:shapes::Shape:area") in pairs
        assert ("contains", "impl:shapes:impl Shape for Circle", "function:shapes::Circle:area") in pairs
        assert ("calls", "function:shapes::Circle:area", "function:shapes:helper") in pairs
        assert ("extends", "trait:shapes:Shape", "trait::Clone") in pairs
        assert ("extends", "trait:shapes:Shape", "trait::Debug") in pairs

    def test_implements_unknown_trait_keeps_written_path(self, tmp_path):
        project = resolve(tmp_path, extract(tmp_path, """
            pub struct S;
            impl fmt::Display for S {}
        """))
        implements = [(e.source, e.target) for e in project.dependencies if e.type == "implements"]

        assert implements == [("struct:lib:S", "trait:fmt:Display")]

    def test_nested_function_not_double_counted(self, tmp_path):
        project = resolve(tmp_path, extract(tmp_path, """
            fn outer() {
                fn inner() { target(); }
                inner();
            }
            fn target() {}
        """))
        calls = [(e.source, e.target) for e in project.dependencies if e.type == "calls"]

        assert calls == [
            ("function:lib::outer:inner", "function:lib:target"),
            ("function:lib:outer", "function:lib::outer:inner"),
        ]
        assert any(
            e.type == "contains" and e.source == "function:lib:outer" and e.target == "function:lib::outer:inner"
            for e in project.dependencies
        )

    def test_qualified_call_resolves_to_associated_function(self, tmp_path):
        project = resolve(tmp_path, extract(tmp_path, """
            pub struct Circle;
            impl Circle {
                pub fn new() -> Self { Circle }
            }
            fn build() { Circle::new(); }
        """))
        calls = [(e.source, e.target) for e in project.dependencies if e.type == "calls"]

        assert calls == [("function:lib:build", "function:lib::Circle:new")]

    def test_inline_and_declared_modules(self, tmp_path):
        result = extract(tmp_path, """
            pub mod net;
            mod inner {
                pub fn f() {}
            }
        """)
        ids = [n.id for n in result.nodes]

        assert ids == ["module::net", "module:lib:inner", "function:lib::inner:f"]
        assert node(result.nodes, "net").visibility == "public"
        contains = [(e.source, e.target) for e in result.edges if e.kind == "contains"]
        assert contains == [("module:lib:inner", "function:lib::inner:f")]

    def test_mod_rs_declares_children(self, tmp_path):
        result = extract(tmp_path, "pub mod tcp;\n", rel="src/net/mod.rs")
        assert [n.id for n in result.nodes] == ["module:net:tcp"]


class TestUse:
    """Tests for use declarations."""

    def test_expand_use_tree(self):
        assert expand_use_tree("a::{b, c::{d as e, f}}") == [["a", "b"], ["a", "c", "d"], ["a", "c", "f"]]
        assert expand_use_tree("std::io") == [["std", "io"]]

    def test_use_edges_resolve_across_files(self, tmp_path):
        lib = extract(tmp_path, """
            mod net;
            use crate::net::{Conn, self};
        """)
        net = extract(tmp_path, "pub struct Conn;\n", rel="src/net.rs")
        project = resolve(tmp_path, lib, net)

        use_node = node(project.nodes, "crate::net::{Conn, self}", "use")
        uses = [e.target for e in project.dependencies if e.type == "uses" and e.source == use_node.id]
        assert uses == ["struct:net:Conn", "module::net"]


class TestParseFile:
    """Tests for the never-raising file entry point."""

    def test_missing_file_yields_empty_result(self, tmp_path):
        result = RustParser().parse_file(tmp_path / "nope.rs", tmp_path)
        assert result.nodes == [] and result.edges == []

    def test_reads_from_disk(self, make_tree):
        root = make_tree({"src/lib.rs": "pub fn a() {}\n"})
        result = RustParser().parse_file(root / "src" / "lib.rs", root)
        assert [n.id for n in result.nodes] == ["function:lib:a"]
