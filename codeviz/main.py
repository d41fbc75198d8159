import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from codeviz.config import get_settings
from codeviz.models.graph_schemas import GraphView
from codeviz.models.project import (
    Language, ProjectCreateRequest, ProjectCreateResponse, ProjectList, ProjectMetadata, ViewMode,
)
from codeviz.services.project_service import ProjectService

# Setup Logging
settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("codeviz")

app = FastAPI(
    title="Codeviz",
    description="Declaration and dependency graphs for Rust and Python projects.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# ─── Projects ────────────────────────────────────────────

@app.post("/projects", response_model=ProjectCreateResponse)
async def create_project(request: ProjectCreateRequest):
    """Register a directory that has already been materialized on disk, then parse it."""
    try:
        return await ProjectService.register_project(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Project registration failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to register project: {e}")


@app.get("/projects", response_model=ProjectList)
async def list_projects():
    return await ProjectService.list_projects()


@app.get("/projects/{project_id}/metadata", response_model=ProjectMetadata)
async def get_project_metadata(project_id: str):
    try:
        return await ProjectService.get_metadata(project_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Project not found")


@app.get("/projects/{project_id}/graph", response_model=GraphView)
async def get_project_graph(project_id: str, language: Optional[Language] = None):
    try:
        return await ProjectService.get_graph(project_id, language)
    except KeyError:
        raise HTTPException(status_code=404, detail="Project data not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"[{project_id}] Graph build failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to build graph: {e}")


@app.get("/projects/{project_id}/analysis")
async def get_project_analysis(project_id: str, view: str = Query(ViewMode.force.value)) -> Dict[str, Any]:
    """View data for the 3d-force, hierarchical, module-dependency or call-graph views."""
    try:
        return await ProjectService.get_view(project_id, view)
    except KeyError:
        raise HTTPException(status_code=404, detail="Project data not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"[{project_id}] Analysis failed for view {view}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to analyze project: {e}")
