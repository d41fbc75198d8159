"""
Project Service — registration plus the cached graph/view cascade.

Public interface:
    ProjectService.register_project(request)          → ProjectCreateResponse
    ProjectService.list_projects()                    → ProjectList
    ProjectService.get_metadata(project_id)           → ProjectMetadata
    ProjectService.get_graph(project_id, language)    → GraphView
    ProjectService.get_view(project_id, view)         → JSON-ready dict

Lookups fall through the cache in order: requested artifact → flat graph →
project data → fresh parse of the path recorded in the metadata.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from codeviz.config import get_settings
from codeviz.models.graph import Project
from codeviz.models.graph_schemas import GraphView
from codeviz.models.project import (
    Language, ProjectCreateRequest, ProjectCreateResponse, ProjectList,
    ProjectMetadata, ProjectSource, ProjectSummary, ViewMode,
)
from codeviz.services.assembler import parse_project
from codeviz.services.language import detect_language
from codeviz.services.project_store import ProjectStore
from codeviz.services.projector import build_view, project_to_flat_view

logger = logging.getLogger("projects.service")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProjectService:
    """Static methods — no instance state. Filesystem work runs in a thread."""

    # ── Public ───────────────────────────────────────

    @staticmethod
    async def register_project(request: ProjectCreateRequest) -> ProjectCreateResponse:
        root = Path(request.path).expanduser()
        if not root.is_dir():
            raise ValueError(f"Path not found: {request.path}")

        settings = get_settings()
        root = root.resolve()
        language = request.language or detect_language(root, settings.DEFAULT_LANGUAGE)
        metadata = ProjectMetadata(
            id=f"{_now_ms()}-{uuid.uuid4().hex[:8]}",
            name=request.name or root.name,
            path=str(root),
            type=request.type.value,
            timestamp=_now_ms(),
            language=language,
        )
        logger.info(f"[{metadata.id}] Registering {root} as {language.value}")

        store = ProjectService._store()
        project = await asyncio.to_thread(ProjectService._register, store, metadata)
        return ProjectCreateResponse(
            success=True,
            projectId=metadata.id,
            name=metadata.name,
            language=language,
            message=f"Parsed {len(project.nodes)} declarations and {len(project.dependencies)} dependencies",
        )

    @staticmethod
    async def list_projects() -> ProjectList:
        store = ProjectService._store()
        return await asyncio.to_thread(ProjectService._list, store)

    @staticmethod
    async def get_metadata(project_id: str) -> ProjectMetadata:
        store = ProjectService._store()
        return await asyncio.to_thread(ProjectService._metadata, store, project_id)

    @staticmethod
    async def get_graph(project_id: str, language: Optional[Language] = None) -> GraphView:
        store = ProjectService._store()
        return await asyncio.to_thread(ProjectService._graph, store, project_id, language)

    @staticmethod
    async def get_view(project_id: str, view: str) -> Dict[str, Any]:
        mode = ViewMode(view)
        store = ProjectService._store()
        return await asyncio.to_thread(ProjectService._view, store, project_id, mode)

    # ── Internal (sync, run in thread) ───────────────

    @staticmethod
    def _store() -> ProjectStore:
        return ProjectStore(get_settings().PROJECTS_DIR)

    @staticmethod
    def _parse(metadata: ProjectMetadata, language: Optional[Language] = None) -> Project:
        settings = get_settings()
        language = language or metadata.language or Language(settings.DEFAULT_LANGUAGE)
        return parse_project(
            metadata.path,
            language,
            workers=settings.PARSE_WORKERS,
            exclude_dirs=settings.EXCLUDE_DIRS,
            max_file_bytes=settings.MAX_FILE_BYTES,
            name=metadata.name,
        )

    @staticmethod
    def _register(store: ProjectStore, metadata: ProjectMetadata) -> Project:
        store.save_metadata(metadata)
        project = ProjectService._parse(metadata)
        store.save_project(metadata.id, project)
        store.save_graph(metadata.id, project_to_flat_view(project))
        logger.info(f"[{metadata.id}] Cached {len(project.nodes)} nodes, {len(project.dependencies)} edges")
        return project

    @staticmethod
    def _list(store: ProjectStore) -> ProjectList:
        summaries = []
        for project_id in store.list_ids():
            try:
                metadata = store.load_metadata(project_id)
            except KeyError:
                continue
            summaries.append(ProjectSummary(
                id=metadata.id,
                name=metadata.name,
                type=metadata.type,
                timestamp=metadata.timestamp,
            ))
        summaries.sort(key=lambda s: s.timestamp, reverse=True)
        return ProjectList(projects=summaries)

    @staticmethod
    def _metadata(store: ProjectStore, project_id: str) -> ProjectMetadata:
        if not store.exists(project_id):
            raise KeyError(project_id)
        try:
            return store.load_metadata(project_id)
        except KeyError:
            # Directory without a record: treat its contents as the project
            directory = store.project_dir(project_id)
            return ProjectMetadata(
                id=project_id,
                name=project_id,
                path=str(directory.resolve()),
                type=ProjectSource.upload.value,
                timestamp=int(directory.stat().st_mtime * 1000),
                language=Language.rust,
            )

    @staticmethod
    def _graph(store: ProjectStore, project_id: str, language: Optional[Language] = None) -> GraphView:
        metadata = ProjectService._metadata(store, project_id)

        if language is not None and language != metadata.language:
            if store.has(project_id, store.graph_filename(language.value)):
                return store.load_graph(project_id, language.value)
            logger.info(f"[{project_id}] Parsing as {language.value}")
            view = project_to_flat_view(ProjectService._parse(metadata, language))
            store.save_graph(project_id, view, language.value)
            return view

        if store.has(project_id, store.graph_filename()):
            return store.load_graph(project_id)

        if store.has(project_id, "project-data.json"):
            project = store.load_project(project_id)
        else:
            logger.info(f"[{project_id}] No cached data, parsing {metadata.path}")
            project = ProjectService._parse(metadata)
            store.save_project(project_id, project)

        view = project_to_flat_view(project)
        store.save_graph(project_id, view)
        return view

    @staticmethod
    def _view(store: ProjectStore, project_id: str, mode: ViewMode) -> Dict[str, Any]:
        if not store.exists(project_id):
            raise KeyError(project_id)
        if store.has(project_id, store.view_filename(mode.value)):
            return store.load_view(project_id, mode.value)

        graph = ProjectService._graph(store, project_id)
        data = build_view(graph, mode).model_dump(mode="json")
        store.save_view(project_id, mode.value, data)
        return data
