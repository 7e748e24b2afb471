# blogdesk/services/category_service.py
import json
import logging
from typing import List, Dict, Optional, Any
import redis.asyncio as redis
from redis.exceptions import RedisError
from ..config import Config
from ..models.category import Category, CategoryNode, CategoryPath
from ..models.post import CategoryWithPosts, Post
from ..utils.category_tree import build_category_tree, get_ancestors, get_descendants
from ..utils.category_path import path_from_ancestors
from ..utils.category_validation import MAX_CATEGORY_DEPTH, validate_no_cycle

TREE_CACHE_KEY = "categories:tree"

CATEGORY_COLUMNS = """
    SELECT c.id, c.name, c.slug, c.description, c.parent_id, c.depth,
           COUNT(p.id) AS post_count
    FROM categories c
    LEFT JOIN posts p ON p.category_id = c.id
"""

class CategoryError(ValueError):
    """Rejected category operation"""

class CategoryService:
    """Hierarchical category management"""

    def __init__(self, db, cache: Optional[redis.Redis] = None):
        self.db = db
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def _fetch_nodes(self, conn) -> List[CategoryNode]:
        rows = await conn.fetch(CATEGORY_COLUMNS + """
            GROUP BY c.id
            ORDER BY c.depth, c.name
        """)
        return [CategoryNode(**dict(row)) for row in rows]

    @staticmethod
    def _find(nodes: List[CategoryNode], category_id: Optional[str]) -> Optional[CategoryNode]:
        return next((node for node in nodes if node.id == category_id), None)

    @staticmethod
    def _name_taken(nodes: List[CategoryNode], name: str, parent_id: Optional[str],
                    exclude_id: Optional[str] = None) -> bool:
        # names are unique per parent, ignoring case
        return any(
            node.parent_id == parent_id
            and node.name.lower() == name.lower()
            and node.id != exclude_id
            for node in nodes
        )

    async def get_all_categories(self) -> List[CategoryNode]:
        """Flat category list with post counts"""
        async with self.db.pool.acquire() as conn:
            return await self._fetch_nodes(conn)

    async def get_category_tree(self, with_counts: bool = False) -> List[CategoryNode]:
        """Root categories with nested children

        The cached tree carries no post counts since posts change without
        touching categories. with_counts builds a fresh, uncached tree.
        """
        if with_counts:
            return build_category_tree(await self.get_all_categories())

        cached = await self._cache_get(TREE_CACHE_KEY)
        if cached:
            return [CategoryNode.model_validate(item) for item in json.loads(cached)]

        nodes = [
            node.model_copy(update={"post_count": None})
            for node in await self.get_all_categories()
        ]
        tree = build_category_tree(nodes)
        await self._cache_set(
            TREE_CACHE_KEY,
            json.dumps([node.model_dump() for node in tree]),
            Config.CATEGORY_CACHE_TTL
        )
        return tree

    async def get_category(self, category_id: str) -> Optional[CategoryNode]:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(CATEGORY_COLUMNS + """
                WHERE c.id = $1
                GROUP BY c.id
            """, category_id)
            return CategoryNode(**dict(row)) if row else None

    async def get_category_by_slug(self, slug: str) -> Optional[CategoryNode]:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(CATEGORY_COLUMNS + """
                WHERE c.slug = $1
                GROUP BY c.id
            """, slug)
            return CategoryNode(**dict(row)) if row else None

    async def get_category_with_ancestors(self, category_id: str) -> List[CategoryNode]:
        """Root-first chain ending with the category itself"""
        nodes = await self.get_all_categories()
        category = self._find(nodes, category_id)
        if category is None:
            raise CategoryError("Category not found")
        return get_ancestors(category_id, nodes) + [category]

    async def get_category_with_ancestors_by_slug(self, slug: str) -> Optional[List[CategoryNode]]:
        async with self.db.pool.acquire() as conn:
            category_id = await conn.fetchval("""
                SELECT id FROM categories WHERE slug = $1
            """, slug)

        if category_id is None:
            return None
        return await self.get_category_with_ancestors(category_id)

    async def get_category_path(self, category_id: str) -> CategoryPath:
        return path_from_ancestors(await self.get_category_with_ancestors(category_id))

    async def get_category_with_descendants(self, category_id: str) -> CategoryNode:
        """The category as a subtree root"""
        nodes = await self.get_all_categories()
        category = self._find(nodes, category_id)
        if category is None:
            raise CategoryError("Category not found")

        subtree = build_category_tree([category] + get_descendants(category_id, nodes))
        root = self._find(subtree, category_id)
        return root if root is not None else category.model_copy(update={"children": []})

    async def get_children(self, parent_id: Optional[str]) -> List[CategoryNode]:
        """Direct children of parent_id, roots when parent_id is None"""
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch(CATEGORY_COLUMNS + """
                WHERE c.parent_id IS NOT DISTINCT FROM $1
                GROUP BY c.id
                ORDER BY c.name
            """, parent_id)
            return [CategoryNode(**dict(row)) for row in rows]

    async def get_posts_in_category(self, category_id: str,
                                    include_descendants: bool = False) -> List[Post]:
        """Posts filed under the category, newest first"""
        async with self.db.pool.acquire() as conn:
            nodes = await self._fetch_nodes(conn)
            if self._find(nodes, category_id) is None:
                raise CategoryError("Category not found")

            category_ids = [category_id]
            if include_descendants:
                category_ids += [node.id for node in get_descendants(category_id, nodes)]

            rows = await conn.fetch("""
                SELECT * FROM posts
                WHERE category_id = ANY($1::text[])
                ORDER BY published_at DESC NULLS LAST, created_at DESC
            """, category_ids)
            return [Post(**dict(row)) for row in rows]

    async def get_children_with_posts(self, parent_id: str, limit: int = 3) -> List[CategoryWithPosts]:
        """Subcategories of parent_id, each with its latest published posts"""
        children = await self.get_children(parent_id)

        result = []
        async with self.db.pool.acquire() as conn:
            for child in children:
                rows = await conn.fetch("""
                    SELECT * FROM posts
                    WHERE category_id = $1 AND status = 'published'
                    ORDER BY published_at DESC NULLS LAST
                    LIMIT $2
                """, child.id, limit)
                result.append(CategoryWithPosts(
                    category=child,
                    posts=[Post(**dict(row)) for row in rows]
                ))
        return result

    async def create_category(self, category_data: Dict[str, Any]) -> Category:
        """Add a category, optionally under a parent"""
        name = category_data['name'].strip()
        slug = category_data['slug'].strip()
        parent_id = category_data.get('parent_id')

        async with self.db.pool.acquire() as conn:
            nodes = await self._fetch_nodes(conn)

            depth = 0
            if parent_id is not None:
                parent = self._find(nodes, parent_id)
                if parent is None:
                    raise CategoryError("Selected parent category does not exist")
                depth = parent.depth + 1
                if depth > MAX_CATEGORY_DEPTH:
                    raise CategoryError(
                        f"Cannot create subcategory: maximum nesting depth "
                        f"({MAX_CATEGORY_DEPTH + 1} levels) reached"
                    )

            if self._name_taken(nodes, name, parent_id):
                raise CategoryError("A category with this name already exists under the selected parent")
            if any(node.slug == slug for node in nodes):
                raise CategoryError("A category with this slug already exists")

            row = await conn.fetchrow("""
                INSERT INTO categories (name, slug, description, parent_id, depth)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
            """,
                name,
                slug,
                category_data.get('description'),
                parent_id,
                depth
            )

        await self.invalidate_cache()
        self.logger.info(f"Category {slug} created at depth {depth}")
        return Category(**dict(row))

    async def update_category(self, category_id: str, update_data: Dict[str, Any]) -> Category:
        """Change name, slug or description"""
        updates = {
            key: update_data[key]
            for key in ('name', 'slug', 'description')
            if key in update_data
        }
        if not updates:
            raise CategoryError("No fields to update")

        async with self.db.pool.acquire() as conn:
            nodes = await self._fetch_nodes(conn)
            category = self._find(nodes, category_id)
            if category is None:
                raise CategoryError("Category not found")

            if 'name' in updates and self._name_taken(
                    nodes, updates['name'], category.parent_id, exclude_id=category_id):
                raise CategoryError("A category with this name already exists under the selected parent")
            if 'slug' in updates and any(
                    node.slug == updates['slug'] and node.id != category_id for node in nodes):
                raise CategoryError("A category with this slug already exists")

            query_parts = []
            params = []
            for key, value in updates.items():
                params.append(value)
                query_parts.append(f"{key} = ${len(params)}")

            params.append(category_id)
            row = await conn.fetchrow(f"""
                UPDATE categories
                SET {', '.join(query_parts)}, updated_at = CURRENT_TIMESTAMP
                WHERE id = ${len(params)}
                RETURNING *
            """, *params)

        await self.invalidate_cache()
        return Category(**dict(row))

    async def move_category(self, category_id: str, new_parent_id: Optional[str]) -> Category:
        """Re-parent a category, shifting the depth of its whole subtree"""
        async with self.db.pool.acquire() as conn:
            nodes = await self._fetch_nodes(conn)
            category = self._find(nodes, category_id)
            if category is None:
                raise CategoryError("Category not found")

            if category.parent_id == new_parent_id:
                row = await conn.fetchrow("SELECT * FROM categories WHERE id = $1", category_id)
                return Category(**dict(row))

            new_depth = 0
            if new_parent_id is not None:
                new_parent = self._find(nodes, new_parent_id)
                if new_parent is None:
                    raise CategoryError("Selected parent category does not exist")
                if not validate_no_cycle(category_id, new_parent_id, nodes):
                    raise CategoryError("Cannot move category: would create circular reference")
                new_depth = new_parent.depth + 1

            descendants = get_descendants(category_id, nodes)
            depth_change = new_depth - category.depth
            deepest = max([new_depth] + [d.depth + depth_change for d in descendants])
            if deepest > MAX_CATEGORY_DEPTH:
                raise CategoryError(
                    f"Cannot move category: maximum nesting depth "
                    f"({MAX_CATEGORY_DEPTH + 1} levels) would be exceeded"
                )

            if self._name_taken(nodes, category.name, new_parent_id, exclude_id=category_id):
                raise CategoryError("A category with this name already exists under the selected parent")

            async with conn.transaction():
                row = await conn.fetchrow("""
                    UPDATE categories
                    SET parent_id = $1, depth = $2, updated_at = CURRENT_TIMESTAMP
                    WHERE id = $3
                    RETURNING *
                """, new_parent_id, new_depth, category_id)

                if depth_change != 0:
                    for descendant in descendants:
                        await conn.execute("""
                            UPDATE categories SET depth = $1 WHERE id = $2
                        """, descendant.depth + depth_change, descendant.id)

        await self.invalidate_cache()
        self.logger.info(f"Category {category_id} moved under {new_parent_id}")
        return Category(**dict(row))

    async def delete_category(self, category_id: str, reassign_posts_to: Optional[str] = None) -> bool:
        """Delete a category; its children move up to its parent

        Posts must be reassigned to another category when there are any.
        """
        async with self.db.pool.acquire() as conn:
            nodes = await self._fetch_nodes(conn)
            category = self._find(nodes, category_id)
            if category is None:
                raise CategoryError("Category not found")

            post_count = category.post_count or 0
            if post_count > 0:
                if not reassign_posts_to:
                    raise CategoryError("Cannot delete category with posts. Please reassign posts first")
                if reassign_posts_to == category_id or self._find(nodes, reassign_posts_to) is None:
                    raise CategoryError("Reassignment target category does not exist")

            descendants = get_descendants(category_id, nodes)

            async with conn.transaction():
                if post_count > 0:
                    await conn.execute("""
                        UPDATE posts SET category_id = $1 WHERE category_id = $2
                    """, reassign_posts_to, category_id)

                await conn.execute("""
                    UPDATE categories SET parent_id = $1 WHERE parent_id = $2
                """, category.parent_id, category_id)

                for descendant in descendants:
                    await conn.execute("""
                        UPDATE categories SET depth = $1 WHERE id = $2
                    """, descendant.depth - 1, descendant.id)

                result = await conn.execute("""
                    DELETE FROM categories WHERE id = $1
                """, category_id)

        await self.invalidate_cache()
        self.logger.info(f"Category {category_id} deleted, {post_count} posts reassigned")
        return result == "DELETE 1"

    async def invalidate_cache(self):
        if self.cache is None:
            return
        try:
            await self.cache.delete(TREE_CACHE_KEY)
        except RedisError as e:
            self.logger.warning(f"Category cache invalidation failed: {e}")

    async def _cache_get(self, key: str) -> Optional[str]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except RedisError as e:
            self.logger.warning(f"Category cache read failed: {e}")
            return None

    async def _cache_set(self, key: str, value: str, ttl: int):
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.warning(f"Category cache write failed: {e}")
