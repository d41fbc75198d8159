"""
Project assembly — discover → extract → merge → resolve.

Public interface:
    parse_project(root, language, workers=1)   → Project
    assemble(root, results, language)          → Project
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from codeviz.models.extraction import FileExtraction, RawEdge
from codeviz.models.graph import DeclarationNode, Project
from codeviz.models.project import Language
from codeviz.services.discovery import discover
from codeviz.services.parsers.registry import get_parser
from codeviz.services.resolver import resolve_edges

logger = logging.getLogger("graph.assembler")


def assemble(
    project_root: Union[str, Path],
    results: Iterable[FileExtraction],
    language: Union[Language, str],
    name: Optional[str] = None,
) -> Project:
    """
    Merge per-file results into one Project.

    Nodes are de-duplicated by id: the last occurrence supplies the record,
    the first occurrence fixes its position. Edges are resolved against the
    merged node set and kept in input order.
    """
    root = Path(project_root)
    merged: Dict[str, DeclarationNode] = {}
    raw_edges: List[RawEdge] = []
    duplicates = 0

    for result in results:
        for node in result.nodes:
            if node.id in merged:
                duplicates += 1
            merged[node.id] = node
        raw_edges.extend(result.edges)

    if duplicates:
        logger.debug(f"{duplicates} duplicate node ids merged")

    nodes = list(merged.values())
    dependencies = resolve_edges(nodes, raw_edges)
    return Project(
        name=name or root.name,
        root=str(root),
        language=Language(language).value,
        nodes=nodes,
        dependencies=dependencies,
    )


def parse_project(
    project_root: Union[str, Path],
    language: Union[Language, str],
    workers: int = 1,
    exclude_dirs: Optional[Iterable[str]] = None,
    max_file_bytes: Optional[int] = None,
    name: Optional[str] = None,
) -> Project:
    """
    Parse every source file of *language* under *project_root*.

    Per-file extraction may run on a thread pool (``workers > 1``); results
    are merged in discovery order either way, so output does not depend on
    scheduling.
    """
    root = Path(project_root).resolve()
    if not root.is_dir():
        raise ValueError(f"Project root is not a directory: {project_root}")

    parser = get_parser(language)
    excluded = set(parser.exclude_dirs)
    if exclude_dirs:
        excluded |= set(exclude_dirs)

    files = discover(root, parser.extensions, excluded, max_file_bytes)
    logger.info(f"Found {len(files)} {parser.language.value} files under {root}")

    if workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda fp: parser.parse_file(fp, root), files))
    else:
        results = [parser.parse_file(fp, root) for fp in files]

    project = assemble(root, results, parser.language, name=name)
    logger.info(
        f"Assembled {project.name}: {len(project.nodes)} nodes, "
        f"{len(project.dependencies)} edges"
    )
    return project


def parse_rust_project(project_root: Union[str, Path], **kwargs) -> Project:
    return parse_project(project_root, Language.rust, **kwargs)


def parse_python_project(project_root: Union[str, Path], **kwargs) -> Project:
    return parse_project(project_root, Language.python, **kwargs)
