"""Tests for project assembly."""

import pytest

from codeviz.models.extraction import FileExtraction, RawEdge, TargetRef
from codeviz.models.graph import DeclarationNode
from codeviz.services.assembler import assemble, parse_project, parse_python_project, parse_rust_project


RUST_TREE = {
    "Cargo.toml": "[package]\nname = \"demo\"\n",
    "src/lib.rs": """
        pub mod net;
        pub mod util;

        pub fn start() {
            net::connect();
            util::log("up");
        }
    """,
    "src/net.rs": """
        use crate::util::log;

        pub fn connect() {
            log("connecting");
            missing_helper();
        }
    """,
    "src/util.rs": """
        pub fn log(msg: &str) {}
    """,
}

PYTHON_TREE = {
    "app/__init__.py": "",
    "app/models.py": """
        class Model:
            def save(self):
                return self.validate()

            def validate(self):
                return True
    """,
    "app/views.py": """
        from .models import Model

        def create():
            m = Model()
            m.save()
    """,
}


class TestAssemble:
    """Tests for assemble()."""

    def test_dedupes_by_id_last_write_wins_first_position(self, tmp_path):
        first = DeclarationNode(id="function:m:f", type="function", name="f", path="m", file="/a.rs", signature="old")
        other = DeclarationNode(id="function:m:g", type="function", name="g", path="m", file="/a.rs")
        second = DeclarationNode(id="function:m:f", type="function", name="f", path="m", file="/b.rs", signature="new")

        project = assemble(tmp_path, [
            FileExtraction(file="/a.rs", nodes=[first, other]),
            FileExtraction(file="/b.rs", nodes=[second]),
        ], "rust")

        assert [n.id for n in project.nodes] == ["function:m:f", "function:m:g"]
        assert project.nodes[0].signature == "new"

    def test_name_defaults_to_root_dir(self, tmp_path):
        project = assemble(tmp_path / "demo", [], "rust")
        assert project.name == "demo"
        assert project.nodes == [] and project.dependencies == []

    def test_unresolved_edge_is_kept(self, tmp_path):
        a = DeclarationNode(id="function:m:a", type="function", name="a", path="m", file="/m.rs")
        edge = RawEdge(kind="calls", file="/m.rs", source=a.id,
                       target_ref=TargetRef(kinds=("function", "struct"), name="ghost", scopes=("m",)))

        project = assemble(tmp_path, [FileExtraction(file="/m.rs", nodes=[a], edges=[edge])], "rust")

        assert len(project.dependencies) == 1
        assert project.dependencies[0].source == "function:m:a"
        assert project.dependencies[0].target == "function::ghost"
        assert project.dependencies[0].target not in {n.id for n in project.nodes}


class TestParseProject:
    """End-to-end tests for parse_project()."""

    def test_rust_cross_file_calls(self, make_tree):
        root = make_tree(RUST_TREE)
        project = parse_rust_project(root)
        calls = {(e.source, e.target) for e in project.dependencies if e.type == "calls"}

        assert project.language == "rust"
        assert ("function:lib:start", "function:net:connect") in calls
        assert ("function:lib:start", "function:util:log") in calls
        assert ("function:net:connect", "function:util:log") in calls
        assert ("function:net:connect", "function::missing_helper") in calls
        uses = [e for e in project.dependencies if e.type == "uses"]
        assert [e.target for e in uses] == ["function:util:log"]

    def test_python_cross_file_calls(self, make_tree):
        root = make_tree(PYTHON_TREE)
        project = parse_python_project(root)
        calls = {(e.source, e.target) for e in project.dependencies if e.type == "calls"}

        assert ("function:app.views:create", "class:app.models:Model") in calls
        assert ("function:app.views:create", "method:app.models.Model:save") in calls
        assert ("method:app.models.Model:save", "method:app.models.Model:validate") in calls
        imports = [(e.source, e.target) for e in project.dependencies if e.type == "imports"]
        assert imports == [("module:app:views", "class:app.models:Model")]

    def test_deterministic(self, make_tree):
        root = make_tree(RUST_TREE)

        first = parse_project(root, "rust")
        second = parse_project(root, "rust")

        assert first.model_dump() == second.model_dump()

    def test_thread_pool_matches_sequential(self, make_tree):
        root = make_tree(PYTHON_TREE)

        sequential = parse_project(root, "python")
        pooled = parse_project(root, "python", workers=4)

        assert pooled.model_dump() == sequential.model_dump()

    def test_ids_unique(self, make_tree):
        root = make_tree({**RUST_TREE, **PYTHON_TREE})

        for language in ("rust", "python"):
            ids = [n.id for n in parse_project(root, language).nodes]
            assert len(ids) == len(set(ids))

    def test_empty_project(self, tmp_path):
        project = parse_rust_project(tmp_path)
        assert project.nodes == [] and project.dependencies == []
        assert project.name == tmp_path.name

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ValueError):
            parse_project(tmp_path / "absent", "rust")

    def test_unknown_language_raises(self, tmp_path):
        with pytest.raises(ValueError):
            parse_project(tmp_path, "cobol")

    def test_single_file_scenario(self, make_tree):
        root = make_tree({"lib.rs": "pub fn a() { b(); }\nfn b() {}\n"})
        project = parse_rust_project(root)

        functions = {n.name: n for n in project.nodes if n.type == "function"}
        assert set(functions) == {"a", "b"}
        assert functions["a"].visibility == "public"
        assert functions["b"].visibility == "private"
        assert [(e.source, e.target, e.type) for e in project.dependencies] == [
            (functions["a"].id, functions["b"].id, "calls"),
        ]
