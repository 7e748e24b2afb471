# blogdesk/services/analytics_service.py
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
import pytz
import redis.asyncio as redis
from pydantic import TypeAdapter
from redis.exceptions import RedisError
from ..config import Config
from ..models.analytics import DailyViews, DashboardStats, LocaleCount, PopularPost, PostViews

PAGE_VIEWS_PREFIX = "pageviews"
DASHBOARD_CACHE_KEY = "analytics:dashboard"
LOCALES_CACHE_KEY = "analytics:locales"
POST_CACHE_PREFIX = "analytics:post"
VIEWS_OVER_TIME_PREFIX = "analytics:views"

_daily_views_list = TypeAdapter(List[DailyViews])
_locale_counts_list = TypeAdapter(List[LocaleCount])

class AnalyticsService:
    """Page-view counters buffered in Redis and flushed to PostgreSQL"""

    def __init__(self, db, cache: redis.Redis):
        self.db = db
        self.cache = cache
        self.tz = pytz.timezone(Config.TIMEZONE)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _views_key(post_id: str) -> str:
        return f"{PAGE_VIEWS_PREFIX}:{post_id}"

    @staticmethod
    def _post_cache_key(post_id: str) -> str:
        return f"{POST_CACHE_PREFIX}:{post_id}"

    async def increment_page_view(self, post_id: str) -> int:
        """Count one view; returns the buffered total for the post"""
        return await self.cache.incr(self._views_key(post_id))

    async def get_buffered_views(self, post_id: str) -> int:
        value = await self.cache.get(self._views_key(post_id))
        return int(value) if value else 0

    async def get_all_buffered_views(self) -> Dict[str, int]:
        """post_id -> buffered views, positive counts only"""
        keys = [key async for key in self.cache.scan_iter(match=f"{PAGE_VIEWS_PREFIX}:*")]
        if not keys:
            return {}

        values = await self.cache.mget(keys)
        views = {}
        for key, value in zip(keys, values):
            if isinstance(key, bytes):
                key = key.decode()
            count = int(value) if value else 0
            if count > 0:
                views[key[len(PAGE_VIEWS_PREFIX) + 1:]] = count
        return views

    async def flush_buffered_views(self) -> int:
        """Move buffered views into the database, returns views written

        Counters are decremented by the flushed amount after the
        transaction commits, so views counted during a flush are kept.
        Views buffered for posts that no longer exist are dropped.
        """
        views = await self.get_all_buffered_views()
        if not views:
            return 0

        today = datetime.now(self.tz).date()
        flushed: Dict[str, int] = {}
        skipped: List[str] = []

        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                for post_id, count in views.items():
                    result = await conn.execute("""
                        UPDATE posts SET view_count = view_count + $1 WHERE id = $2
                    """, count, post_id)
                    if result == "UPDATE 0":
                        skipped.append(post_id)
                        continue

                    await conn.execute("""
                        INSERT INTO page_views (post_id, view_date, views)
                        SELECT $1, $2, $3 FROM posts WHERE id = $1
                        ON CONFLICT (post_id, view_date)
                        DO UPDATE SET views = page_views.views + EXCLUDED.views
                    """, post_id, today, count)
                    flushed[post_id] = count

        for post_id, count in flushed.items():
            remaining = await self.cache.decrby(self._views_key(post_id), count)
            if remaining <= 0:
                await self.cache.delete(self._views_key(post_id))

        if skipped:
            self.logger.warning(f"Dropping buffered views for unknown posts: {', '.join(skipped)}")
            await self.cache.delete(*[self._views_key(post_id) for post_id in skipped])

        total = sum(flushed.values())
        self.logger.info(f"Flushed {total} views for {len(flushed)} posts")
        await self._cache_delete(DASHBOARD_CACHE_KEY, *[self._post_cache_key(p) for p in flushed])
        return total

    async def get_total_view_count(self, post_id: str) -> int:
        """Stored views plus views still waiting in the buffer"""
        async with self.db.pool.acquire() as conn:
            stored = await conn.fetchval("""
                SELECT view_count FROM posts WHERE id = $1
            """, post_id)
        return (stored or 0) + await self.get_buffered_views(post_id)

    async def get_post_views(self, post_id: str, start: Optional[date] = None,
                             end: Optional[date] = None) -> PostViews:
        """Daily views of a post; only the unfiltered result is cached"""
        ranged = start is not None or end is not None
        if not ranged:
            cached = await self._cache_get(self._post_cache_key(post_id))
            if cached:
                return PostViews.model_validate_json(cached)

        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT view_date, SUM(views) AS views
                FROM page_views
                WHERE post_id = $1
                AND ($2::date IS NULL OR view_date >= $2)
                AND ($3::date IS NULL OR view_date <= $3)
                GROUP BY view_date
                ORDER BY view_date
            """, post_id, start, end)

        by_date = [DailyViews(**dict(row)) for row in rows]
        stats = PostViews(
            post_id=post_id,
            total_views=sum(day.views for day in by_date),
            views_by_date=by_date
        )

        if not ranged:
            await self._cache_set(self._post_cache_key(post_id), stats.model_dump_json())
        return stats

    async def get_views_over_time(self, start: date, end: date) -> List[DailyViews]:
        """Views of all posts per day, start and end inclusive"""
        key = f"{VIEWS_OVER_TIME_PREFIX}:{start.isoformat()}:{end.isoformat()}"
        cached = await self._cache_get(key)
        if cached:
            return _daily_views_list.validate_json(cached)

        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT view_date, SUM(views) AS views
                FROM page_views
                WHERE view_date BETWEEN $1 AND $2
                GROUP BY view_date
                ORDER BY view_date
            """, start, end)

        by_date = [DailyViews(**dict(row)) for row in rows]
        await self._cache_set(key, _daily_views_list.dump_json(by_date).decode())
        return by_date

    async def get_posts_by_locale(self) -> List[LocaleCount]:
        """Published posts per locale"""
        cached = await self._cache_get(LOCALES_CACHE_KEY)
        if cached:
            return _locale_counts_list.validate_json(cached)

        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT locale, COUNT(*) AS count
                FROM posts
                WHERE status = 'published'
                GROUP BY locale
                ORDER BY locale
            """)

        locales = [LocaleCount(**dict(row)) for row in rows]
        await self._cache_set(LOCALES_CACHE_KEY, _locale_counts_list.dump_json(locales).decode())
        return locales

    async def get_popular_posts(self, limit: int = 10) -> List[PopularPost]:
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, title, slug, locale, view_count
                FROM posts
                WHERE status = 'published'
                ORDER BY view_count DESC
                LIMIT $1
            """, limit)
        return [PopularPost(**dict(row)) for row in rows]

    async def get_dashboard_stats(self) -> DashboardStats:
        cached = await self._cache_get(DASHBOARD_CACHE_KEY)
        if cached:
            return DashboardStats.model_validate_json(cached)

        today = datetime.now(self.tz).date()
        week_start = today - timedelta(days=7)

        async with self.db.pool.acquire() as conn:
            counts = await conn.fetchrow("""
                SELECT
                    COUNT(*) AS total_posts,
                    COUNT(*) FILTER (WHERE status = 'published') AS published_posts,
                    COUNT(*) FILTER (WHERE status = 'draft') AS draft_posts,
                    COUNT(*) FILTER (WHERE status = 'scheduled') AS scheduled_posts,
                    COALESCE(SUM(view_count), 0) AS total_views
                FROM posts
            """)

            views_this_week = await conn.fetchval("""
                SELECT COALESCE(SUM(views), 0)
                FROM page_views
                WHERE view_date > $1
            """, week_start)

            views_today = await conn.fetchval("""
                SELECT COALESCE(SUM(views), 0)
                FROM page_views
                WHERE view_date = $1
            """, today)

        stats = DashboardStats(
            **dict(counts),
            views_this_week=views_this_week or 0,
            views_today=views_today or 0,
            popular_posts=await self.get_popular_posts(5)
        )

        await self._cache_set(DASHBOARD_CACHE_KEY, stats.model_dump_json())
        return stats

    async def invalidate_dashboard_stats(self):
        await self._cache_delete(DASHBOARD_CACHE_KEY)

    async def invalidate_post_analytics(self, post_id: str):
        await self._cache_delete(self._post_cache_key(post_id))

    async def _cache_get(self, key: str) -> Optional[str]:
        try:
            return await self.cache.get(key)
        except RedisError as e:
            self.logger.warning(f"Analytics cache read failed for {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str):
        try:
            await self.cache.set(key, value, ex=Config.ANALYTICS_CACHE_TTL)
        except RedisError as e:
            self.logger.warning(f"Analytics cache write failed for {key}: {e}")

    async def _cache_delete(self, *keys: str):
        try:
            await self.cache.delete(*keys)
        except RedisError as e:
            self.logger.warning(f"Analytics cache invalidation failed: {e}")
