# blogdesk/models/analytics.py
from datetime import date
from typing import List, Optional
from pydantic import BaseModel

class PopularPost(BaseModel):
    id: str
    title: str
    slug: str
    locale: Optional[str] = None
    view_count: int = 0

class DailyViews(BaseModel):
    view_date: date
    views: int = 0

class PostViews(BaseModel):
    """View totals of one post, by day"""
    post_id: str
    total_views: int = 0
    views_by_date: List[DailyViews] = []

class LocaleCount(BaseModel):
    locale: str
    count: int = 0

class DashboardStats(BaseModel):
    """Aggregated numbers for the admin dashboard"""
    total_posts: int = 0
    published_posts: int = 0
    draft_posts: int = 0
    scheduled_posts: int = 0
    total_views: int = 0
    views_this_week: int = 0
    views_today: int = 0
    popular_posts: List[PopularPost] = []
