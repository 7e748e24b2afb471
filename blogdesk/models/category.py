# blogdesk/models/category.py
from typing import Optional, List
from pydantic import BaseModel, ConfigDict
from .base import TimeStampedModel

class Category(TimeStampedModel):
    """Category row as stored in the database"""
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    depth: int = 0

class CategoryNode(BaseModel):
    """Category with hierarchy information

    A node with parent_id None is a root and has depth 0. Depth counts
    ancestors, so at most three levels exist (0, 1, 2).
    """
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    depth: int = 0
    post_count: Optional[int] = None

    # Not stored in DB, populated when the tree is built
    children: List['CategoryNode'] = []

    model_config = ConfigDict(from_attributes=True)

class CategoryPath(BaseModel):
    """Root-to-leaf category names with their ids"""
    segments: List[str] = []
    ids: List[str] = []
