"""
Canonical graph model produced by a parse run.

A Project holds declaration nodes and typed dependency edges.
Node ids are derived from (kind, qualified path, name) so they are stable
across runs over identical source text.
"""

import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


# ─── Enums ───────────────────────────────────────────────

class RustNodeType(str, enum.Enum):
    function = "function"
    struct = "struct"
    enum_ = "enum"
    trait = "trait"
    impl = "impl"
    module = "module"
    constant = "constant"
    macro = "macro"
    use = "use"


class PythonNodeType(str, enum.Enum):
    function = "function"
    class_ = "class"
    method = "method"
    module = "module"
    import_ = "import"
    variable = "variable"
    constant = "constant"
    decorator = "decorator"


class RustEdgeType(str, enum.Enum):
    calls = "calls"
    implements = "implements"
    uses = "uses"
    contains = "contains"
    extends = "extends"


class PythonEdgeType(str, enum.Enum):
    calls = "calls"
    imports = "imports"
    inherits = "inherits"
    contains = "contains"
    uses = "uses"


def make_node_id(kind: str, path: str, name: str) -> str:
    """Deterministic node id: ``kind:path:name``."""
    return f"{kind}:{path}:{name}"


# ─── Canonical records ───────────────────────────────────

class DeclarationNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str            # see RustNodeType / PythonNodeType
    name: str
    path: str            # enclosing scope, e.g. "net::tcp" or "pkg.util.Foo"
    file: str
    signature: Optional[str] = None
    visibility: Optional[str] = None       # Rust: public | private | crate | super | in
    docstring: Optional[str] = None        # Python
    decorators: Optional[List[str]] = None  # Python
    attributes: Optional[List[str]] = None  # Rust
    description: Optional[str] = None      # Rust doc comments


class DependencyEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str          # may name a node that is not in the project
    type: str            # see RustEdgeType / PythonEdgeType
    weight: Optional[int] = None


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    root: str
    language: str
    nodes: List[DeclarationNode] = []
    dependencies: List[DependencyEdge] = []
