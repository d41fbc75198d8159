"""
On-disk artifact cache, one directory per project id:

    <base>/<id>/metadata.json
    <base>/<id>/project-data.json
    <base>/<id>/graph-data.json
    <base>/<id>/graph-data-<language>.json
    <base>/<id>/<view>-data.json
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Union

from codeviz.models.graph import Project
from codeviz.models.graph_schemas import GraphView
from codeviz.models.project import ProjectMetadata

logger = logging.getLogger("projects.store")

_SAFE_ID = re.compile(r"[A-Za-z0-9_-]+")


class ProjectStore:
    """Reads raise KeyError when the project or artifact is missing."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    # ── Layout ───────────────────────────────────────

    def project_dir(self, project_id: str) -> Path:
        if not _SAFE_ID.fullmatch(project_id):
            raise KeyError(project_id)
        return self.base_dir / project_id

    def exists(self, project_id: str) -> bool:
        try:
            return self.project_dir(project_id).is_dir()
        except KeyError:
            return False

    def list_ids(self) -> List[str]:
        if not self.base_dir.is_dir():
            return []
        return sorted(p.name for p in self.base_dir.iterdir() if p.is_dir() and _SAFE_ID.fullmatch(p.name))

    @staticmethod
    def graph_filename(language: Optional[str] = None) -> str:
        return f"graph-data-{language}.json" if language else "graph-data.json"

    @staticmethod
    def view_filename(view: str) -> str:
        return f"{view}-data.json"

    # ── Raw JSON ─────────────────────────────────────

    def _write(self, project_id: str, filename: str, payload: str) -> None:
        directory = self.project_dir(project_id)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / filename).write_text(payload, encoding="utf-8")
        logger.debug(f"[{project_id}] wrote {filename}")

    def _read(self, project_id: str, filename: str) -> str:
        fp = self.project_dir(project_id) / filename
        if not fp.is_file():
            raise KeyError(f"{project_id}/{filename}")
        return fp.read_text(encoding="utf-8")

    def has(self, project_id: str, filename: str) -> bool:
        try:
            return (self.project_dir(project_id) / filename).is_file()
        except KeyError:
            return False

    # ── Typed artifacts ──────────────────────────────

    def save_metadata(self, metadata: ProjectMetadata) -> None:
        self._write(metadata.id, "metadata.json", metadata.model_dump_json(indent=2))

    def load_metadata(self, project_id: str) -> ProjectMetadata:
        return ProjectMetadata.model_validate_json(self._read(project_id, "metadata.json"))

    def save_project(self, project_id: str, project: Project) -> None:
        self._write(project_id, "project-data.json", project.model_dump_json(indent=2))

    def load_project(self, project_id: str) -> Project:
        return Project.model_validate_json(self._read(project_id, "project-data.json"))

    def save_graph(self, project_id: str, view: GraphView, language: Optional[str] = None) -> None:
        self._write(project_id, self.graph_filename(language), view.model_dump_json(indent=2))

    def load_graph(self, project_id: str, language: Optional[str] = None) -> GraphView:
        return GraphView.model_validate_json(self._read(project_id, self.graph_filename(language)))

    def save_view(self, project_id: str, view: str, data: Any) -> None:
        self._write(project_id, self.view_filename(view), json.dumps(data, indent=2))

    def load_view(self, project_id: str, view: str) -> Any:
        return json.loads(self._read(project_id, self.view_filename(view)))
