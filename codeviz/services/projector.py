"""
Graph projections — pure transforms from a Project to the rendered views.

Public interface:
    project_to_flat_view(project)            → GraphView
    flat_view_to_hierarchical(view, name)    → HierarchicalView
    project_to_hierarchical(project)         → HierarchicalView
    filter_module_dependencies(view)         → GraphView
    filter_call_graph(view)                  → GraphView
    build_view(view, mode, name)             → GraphView | HierarchicalView

None of these mutate their input; identical input gives identical output.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from codeviz.models.graph import Project
from codeviz.models.graph_schemas import GraphLink, GraphNode, GraphView, HierarchicalView, TreeNode
from codeviz.models.project import Language, ViewMode

# ─── Presentation tables ────────────────────────────────
# kind → (val, color)

RUST_STYLES: Dict[str, Tuple[int, str]] = {
    "function": (5, "#4285F4"),
    "struct": (8, "#EA4335"),
    "enum": (7, "#FBBC05"),
    "trait": (9, "#34A853"),
    "impl": (6, "#9C27B0"),
    "module": (10, "#FF9800"),
    "constant": (4, "#795548"),
    "macro": (6, "#607D8B"),
    "use": (3, "#9E9E9E"),
}

PYTHON_STYLES: Dict[str, Tuple[int, str]] = {
    "function": (5, "#4CAF50"),
    "class": (10, "#2196F3"),
    "method": (3, "#4FC3F7"),
    "module": (15, "#673AB7"),
    "import": (2, "#9E9E9E"),
    "variable": (1, "#FF9800"),
    "constant": (1, "#FFC107"),
    "decorator": (2, "#F44336"),
}

DEFAULT_STYLE: Tuple[int, str] = (5, "#9E9E9E")

_STYLES = {Language.rust.value: RUST_STYLES, Language.python.value: PYTHON_STYLES}
_SEPARATORS = {Language.rust.value: "::", Language.python.value: "."}

MODULE_NODE_VAL = 10


def node_style(language: Optional[str], kind: str) -> Tuple[int, str]:
    return _STYLES.get(language or "", RUST_STYLES).get(kind, DEFAULT_STYLE)


def _separator(language: Optional[str], paths: Sequence[Optional[str]] = ()) -> str:
    if language in _SEPARATORS:
        return _SEPARATORS[language]
    if any(p and "::" in p for p in paths):
        return "::"
    return "."


def _view_separator(view: GraphView) -> str:
    language = next((n.language for n in view.nodes if n.language), None)
    return _separator(language, [n.path for n in view.nodes])


# ─── Flat view ──────────────────────────────────────────

def project_to_flat_view(project: Project) -> GraphView:
    sep = _separator(project.language, [n.path for n in project.nodes])
    nodes = []
    for node in project.nodes:
        val, color = node_style(project.language, node.type)
        if node.path:
            group = node.path.split(sep)[0]
        elif node.type == "module":
            group = node.name
        else:
            group = None
        nodes.append(GraphNode(
            id=node.id,
            name=node.name,
            type=node.type,
            val=val,
            color=color,
            group=group,
            path=node.path,
            file=node.file,
            signature=node.signature,
            visibility=node.visibility,
            language=project.language,
        ))

    links = [
        GraphLink(source=edge.source, target=edge.target, type=edge.type, value=edge.weight or 1)
        for edge in project.dependencies
    ]
    return GraphView(nodes=nodes, links=links)


# ─── Hierarchical view ──────────────────────────────────

def _build_tree(entries: Sequence[dict], sep: str, name: str) -> HierarchicalView:
    """
    Group flat node records into a module tree keyed by path prefix.

    Every prefix of every path gets a module (synthesized as ``module:<prefix>``
    unless a declared module sits at that full path); non-module records hang
    off the module equal to their path, pathless records sit at the root.
    """
    modules: Dict[str, TreeNode] = OrderedDict()
    roots: List[TreeNode] = []

    def ensure(full_path: str) -> TreeNode:
        parent: Optional[TreeNode] = None
        current = ""
        for part in full_path.split(sep):
            current = f"{current}{sep}{part}" if current else part
            module = modules.get(current)
            if module is None:
                module = TreeNode(id=f"module:{current}", name=part, type="module", path=current)
                modules[current] = module
                if parent is None:
                    roots.append(module)
                else:
                    parent.children.append(module)
            parent = module
        return parent

    for entry in entries:
        path = entry.get("path") or ""
        if entry["type"] == "module":
            full_path = f"{path}{sep}{entry['name']}" if path else entry["name"]
            module = ensure(full_path)
            # declared module replaces the synthesized placeholder's identity
            for key in ("id", "file", "signature", "visibility", "language", "docstring", "decorators"):
                value = entry.get(key)
                if value is not None:
                    setattr(module, key, value)
            continue

        leaf = TreeNode(
            id=entry["id"],
            name=entry["name"],
            type=entry["type"],
            path=path or None,
            file=entry.get("file"),
            signature=entry.get("signature"),
            visibility=entry.get("visibility"),
            language=entry.get("language"),
            docstring=entry.get("docstring"),
            decorators=entry.get("decorators"),
        )
        if path:
            ensure(path).children.append(leaf)
        else:
            roots.append(leaf)

    return HierarchicalView(name=name, children=roots)


def flat_view_to_hierarchical(view: GraphView, name: str = "root") -> HierarchicalView:
    sep = _view_separator(view)
    return _build_tree([n.model_dump() for n in view.nodes], sep, name)


def project_to_hierarchical(project: Project) -> HierarchicalView:
    """Like flat_view_to_hierarchical, but keeps docstrings and decorators."""
    sep = _separator(project.language, [n.path for n in project.nodes])
    entries = []
    for node in project.nodes:
        entry = node.model_dump()
        entry["language"] = project.language
        entries.append(entry)
    return _build_tree(entries, sep, project.name)


# ─── Derived graphs ─────────────────────────────────────

def filter_module_dependencies(view: GraphView) -> GraphView:
    """Collapse nodes to their top-level module and count cross-module links."""
    sep = _view_separator(view)
    language = next((n.language for n in view.nodes if n.language), None)

    module_of: Dict[str, str] = {}
    for node in view.nodes:
        if node.path:
            module_of[node.id] = node.path.split(sep)[0]
        elif node.type == "module":
            module_of[node.id] = node.name

    counts: Dict[Tuple[str, str], int] = OrderedDict()
    for link in view.links:
        source = module_of.get(link.source)
        target = module_of.get(link.target)
        if source is None or target is None or source == target:
            continue
        counts[(source, target)] = counts.get((source, target), 0) + 1

    _, color = node_style(language, "module")
    nodes = [
        GraphNode(id=module, name=module, type="module", val=MODULE_NODE_VAL, color=color, language=language)
        for module in dict.fromkeys(module_of.values())
    ]
    links = [
        GraphLink(source=source, target=target, type="uses", value=count)
        for (source, target), count in counts.items()
    ]
    return GraphView(nodes=nodes, links=links)


def filter_call_graph(view: GraphView) -> GraphView:
    """Function nodes and call links only; links may dangle."""
    return GraphView(
        nodes=[n.model_copy() for n in view.nodes if n.type == "function"],
        links=[l.model_copy() for l in view.links if l.type == "calls"],
    )


def build_view(
    view: GraphView,
    mode: Union[ViewMode, str],
    name: str = "root",
) -> Union[GraphView, HierarchicalView]:
    mode = ViewMode(mode)
    if mode == ViewMode.hierarchical:
        return flat_view_to_hierarchical(view, name)
    if mode == ViewMode.module_dependency:
        return filter_module_dependencies(view)
    if mode == ViewMode.call_graph:
        return filter_call_graph(view)
    return view
