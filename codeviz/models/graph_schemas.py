"""
Pydantic schemas for the view data served to the rendering layer.
"""

from typing import List, Optional
from pydantic import BaseModel


class GraphNode(BaseModel):
    id: str
    name: str
    type: str
    val: int             # render size hint
    color: Optional[str] = None
    group: Optional[str] = None   # first path segment
    path: Optional[str] = None
    file: Optional[str] = None
    signature: Optional[str] = None
    visibility: Optional[str] = None
    language: Optional[str] = None


class GraphLink(BaseModel):
    source: str
    target: str
    type: str
    value: Optional[int] = None


class GraphView(BaseModel):
    nodes: List[GraphNode] = []
    links: List[GraphLink] = []


class TreeNode(BaseModel):
    id: str
    name: str
    type: str
    path: Optional[str] = None
    file: Optional[str] = None
    signature: Optional[str] = None
    visibility: Optional[str] = None
    language: Optional[str] = None
    docstring: Optional[str] = None
    decorators: Optional[List[str]] = None
    children: List["TreeNode"] = []


class HierarchicalView(BaseModel):
    name: str
    children: List[TreeNode] = []


TreeNode.model_rebuild()
