# main.py
import argparse
import asyncio
import logging
from datetime import datetime, timezone
import redis.asyncio as redis
from blogdesk.config import Config, setup_logging
from blogdesk.database.database import Database
from blogdesk.services.analytics_service import AnalyticsService
from blogdesk.services.category_service import CategoryService
from blogdesk.utils.category_path import format_path_for_display, path_from_ancestors, serialize_path
from blogdesk.utils.category_tree import flatten_tree
from blogdesk.utils.formatters import format_datetime, format_view_count

def parse_args():
    parser = argparse.ArgumentParser(description="Blog admin maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("tree", help="print the category tree")
    breadcrumb = subparsers.add_parser("breadcrumb", help="print the path of a category")
    breadcrumb.add_argument("slug")
    posts = subparsers.add_parser("posts", help="list the posts of a category")
    posts.add_argument("slug")
    posts.add_argument("--all", action="store_true", help="include subcategories")
    subparsers.add_parser("stats", help="print dashboard statistics")
    return parser.parse_args()

async def print_tree(categories: CategoryService):
    for node in flatten_tree(await categories.get_category_tree(with_counts=True)):
        print(f"{'  ' * node.depth}{node.name} ({node.slug}) - {node.post_count or 0} posts")

async def print_breadcrumb(categories: CategoryService, slug: str):
    chain = await categories.get_category_with_ancestors_by_slug(slug)
    if chain is None:
        print(f"No category with slug {slug}")
        return
    path = path_from_ancestors(chain)
    print(format_path_for_display(path))
    print(serialize_path(path))

async def print_posts(categories: CategoryService, slug: str, include_descendants: bool):
    category = await categories.get_category_by_slug(slug)
    if category is None:
        print(f"No category with slug {slug}")
        return
    for post in await categories.get_posts_in_category(category.id, include_descendants):
        print(f"[{post.status}] {post.title} ({post.locale}) - {format_datetime(post.last_modified)}")

async def print_stats(analytics: AnalyticsService):
    stats = await analytics.get_dashboard_stats()
    print(f"Generated at {format_datetime(datetime.now(timezone.utc))}")
    print(f"Posts: {stats.total_posts} ({stats.published_posts} published, "
          f"{stats.draft_posts} drafts, {stats.scheduled_posts} scheduled)")
    print(f"Views: {format_view_count(stats.total_views)} total, "
          f"{format_view_count(stats.views_this_week)} this week, "
          f"{format_view_count(stats.views_today)} today")
    for post in stats.popular_posts:
        print(f"  {post.title}: {format_view_count(post.view_count)}")
    for entry in await analytics.get_posts_by_locale():
        print(f"  [{entry.locale}] {entry.count} published")

async def main():
    args = parse_args()
    setup_logging()
    logger = logging.getLogger(__name__)

    db = Database()
    cache = redis.Redis.from_url(Config.REDIS_URL, decode_responses=True)
    try:
        await db.connect()
        if args.command == "tree":
            await print_tree(CategoryService(db, cache))
        elif args.command == "breadcrumb":
            await print_breadcrumb(CategoryService(db, cache), args.slug)
        elif args.command == "posts":
            await print_posts(CategoryService(db, cache), args.slug, args.all)
        elif args.command == "stats":
            await print_stats(AnalyticsService(db, cache))
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        raise
    finally:
        await db.close()
        await cache.aclose()

if __name__ == "__main__":
    asyncio.run(main())
