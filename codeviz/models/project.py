from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Language(str, Enum):
    rust = "rust"
    python = "python"


class ViewMode(str, Enum):
    force = "3d-force"
    hierarchical = "hierarchical"
    module_dependency = "module-dependency"
    call_graph = "call-graph"


class ProjectSource(str, Enum):
    local = "local"
    upload = "upload"
    git = "git"


class ProjectCreateRequest(BaseModel):
    path: str = Field(..., description="Directory the project was materialized into")
    name: Optional[str] = Field(None, description="Display name, defaults to the directory name")
    language: Optional[Language] = Field(None, description="Skip detection and parse as this language")
    type: ProjectSource = ProjectSource.local


class ProjectMetadata(BaseModel):
    id: str
    name: str
    path: str
    type: Optional[str] = None
    timestamp: int               # epoch millis
    language: Optional[Language] = None


class ProjectCreateResponse(BaseModel):
    success: bool
    projectId: str
    name: str
    language: Language
    message: str


class ProjectSummary(BaseModel):
    id: str
    name: str
    type: Optional[str] = None
    timestamp: int


class ProjectList(BaseModel):
    projects: List[ProjectSummary]
