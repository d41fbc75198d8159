"""
Reference resolution — turns symbolic edge endpoints into node ids.

Lookup tiers, first hit wins:
  1. the candidate scopes, innermost first, for each candidate kind
  2. any node of a candidate kind with that name in the same file
  3. any node of a candidate kind with that name in the project
     (restricted to paths ending in the qualifier when one was written)

A reference that matches nothing still yields an edge: its target is the
synthetic id built from the first candidate kind and the fallback scope.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from codeviz.models.extraction import RawEdge, TargetRef
from codeviz.models.graph import DeclarationNode, DependencyEdge, make_node_id

logger = logging.getLogger("graph.resolver")


def _qualifier_matches(path: str, qualifier: Optional[str]) -> bool:
    if not qualifier:
        return True
    return path == qualifier or path.endswith(f"::{qualifier}") or path.endswith(f".{qualifier}")


class SymbolIndex:
    """Name → nodes index over one project's declarations."""

    def __init__(self, nodes: Sequence[DeclarationNode]):
        self._by_name: Dict[str, List[DeclarationNode]] = defaultdict(list)
        for node in nodes:
            self._by_name[node.name].append(node)

    def lookup(self, ref: TargetRef, file: str) -> Optional[str]:
        candidates = self._by_name.get(ref.name)
        if not candidates:
            return None

        for scope in ref.scopes:
            for kind in ref.kinds:
                for node in candidates:
                    if node.type == kind and node.path == scope:
                        return node.id

        for kind in ref.kinds:
            for node in candidates:
                if node.type == kind and node.file == file and _qualifier_matches(node.path, ref.qualifier):
                    return node.id

        for kind in ref.kinds:
            for node in candidates:
                if node.type == kind and _qualifier_matches(node.path, ref.qualifier):
                    return node.id
        return None

    def resolve(self, ref: TargetRef, file: str) -> str:
        found = self.lookup(ref, file)
        if found is not None:
            return found
        return make_node_id(ref.kinds[0], ref.fallback_scope, ref.name)


def resolve_edges(nodes: Sequence[DeclarationNode], raw_edges: Sequence[RawEdge]) -> List[DependencyEdge]:
    """One DependencyEdge per raw edge, in input order; none are dropped."""
    index = SymbolIndex(nodes)
    edges: List[DependencyEdge] = []
    unresolved = 0

    for raw in raw_edges:
        source = raw.source
        if source is None:
            source = index.resolve(raw.source_ref, raw.file)
        target = raw.target
        if target is None:
            found = index.lookup(raw.target_ref, raw.file)
            if found is None:
                unresolved += 1
                found = make_node_id(raw.target_ref.kinds[0], raw.target_ref.fallback_scope, raw.target_ref.name)
            target = found
        edges.append(DependencyEdge(source=source, target=target, type=raw.kind))

    if unresolved:
        logger.debug(f"{unresolved}/{len(raw_edges)} references left as synthetic ids")
    return edges
