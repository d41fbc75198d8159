"""
Intermediate records produced by the per-file extractors.

Edges leave the extractors with symbolic endpoints; the resolver turns
them into node ids once the whole project's nodes are known.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from codeviz.models.graph import DeclarationNode


@dataclass(frozen=True)
class TargetRef:
    """A symbolic reference to a declaration, as written in source."""
    kinds: Tuple[str, ...]          # candidate node kinds, preferred first
    name: str
    scopes: Tuple[str, ...] = ()    # candidate enclosing paths, innermost first
    qualifier: Optional[str] = None  # last path segment written before the name
    fallback_scope: str = ""        # scope used for the synthetic id


@dataclass
class RawEdge:
    kind: str
    file: str
    source: Optional[str] = None          # concrete source id
    source_ref: Optional[TargetRef] = None
    target: Optional[str] = None          # concrete target id
    target_ref: Optional[TargetRef] = None


@dataclass
class FileExtraction:
    """Result of scanning a single source file."""
    file: str
    nodes: List[DeclarationNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)
