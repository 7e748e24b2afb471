# blogdesk/models/post.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from .base import TimeStampedModel
from .category import CategoryNode

class Post(TimeStampedModel):
    """Blog post row as used by category listings"""
    id: str
    title: str
    slug: str
    locale: str = "en"
    status: str = "draft"
    category_id: Optional[str] = None
    view_count: int = 0
    published_at: Optional[datetime] = None

class CategoryWithPosts(BaseModel):
    """A subcategory with its latest published posts"""
    category: CategoryNode
    posts: List[Post] = []
