import json
from datetime import datetime

import pytest

from blogdesk.models.category import Category
from blogdesk.services.category_service import TREE_CACHE_KEY, CategoryError, CategoryService
from conftest import category_row, stored_row


@pytest.fixture
def service(db, cache, category_rows):
    db.conn.fetch.return_value = category_rows
    return CategoryService(db, cache)


def sql(text):
    return " ".join(text.split())


async def test_tree_is_built_and_cached(service, db, cache):
    tree = await service.get_category_tree()

    assert [n.id for n in tree] == ["tech", "news"]
    assert tree[0].children[0].children[0].id == "react"
    assert TREE_CACHE_KEY in cache.store

    again = await service.get_category_tree()

    assert [n.id for n in again] == ["tech", "news"]
    assert again[0].children[0].children[0].name == "React"
    assert db.conn.fetch.await_count == 1


async def test_ancestors_end_with_the_category(service):
    chain = await service.get_category_with_ancestors("react")

    assert [n.id for n in chain] == ["tech", "web", "react"]


async def test_ancestors_of_unknown_category(service):
    with pytest.raises(CategoryError, match="not found"):
        await service.get_category_with_ancestors("missing")


async def test_ancestors_by_slug(service, db):
    db.conn.fetchval.return_value = "web"

    chain = await service.get_category_with_ancestors_by_slug("web-development")

    assert [n.id for n in chain] == ["tech", "web"]
    assert db.conn.fetchval.call_args.args[1] == "web-development"


async def test_ancestors_by_unknown_slug(service, db):
    db.conn.fetchval.return_value = None

    assert await service.get_category_with_ancestors_by_slug("nope") is None


async def test_category_path(service):
    path = await service.get_category_path("react")

    assert path.segments == ["Technology", "Web Development", "React"]
    assert path.ids == ["tech", "web", "react"]


async def test_descendants_subtree(service):
    subtree = await service.get_category_with_descendants("web")

    assert subtree.id == "web"
    assert [n.id for n in subtree.children] == ["react"]


async def test_children_query_passes_parent(service, db):
    db.conn.fetch.return_value = [category_row("web", "Web Development", parent_id="tech", depth=1)]

    children = await service.get_children("tech")

    assert [c.id for c in children] == ["web"]
    assert "IS NOT DISTINCT FROM $1" in db.conn.fetch.call_args.args[0]
    assert db.conn.fetch.call_args.args[1] == "tech"


async def test_create_child_category(service, db, cache):
    cache.store[TREE_CACHE_KEY] = "[]"
    new_row = category_row("mobile", "Mobile", parent_id="tech", depth=1)
    db.conn.fetchrow.return_value = stored_row(new_row)

    category = await service.create_category({"name": " Mobile ", "slug": "mobile", "parent_id": "tech"})

    assert isinstance(category, Category)
    assert category.depth == 1
    assert db.conn.fetchrow.call_args.args[1:] == ("Mobile", "mobile", None, "tech", 1)
    assert TREE_CACHE_KEY not in cache.store


async def test_create_root_category(service, db):
    db.conn.fetchrow.return_value = stored_row(category_row("sport", "Sport"))

    await service.create_category({"name": "Sport", "slug": "sport"})

    assert db.conn.fetchrow.call_args.args[1:] == ("Sport", "sport", None, None, 0)


async def test_create_below_max_depth_is_rejected(service, db):
    with pytest.raises(CategoryError, match="maximum nesting depth"):
        await service.create_category({"name": "Hooks", "slug": "hooks", "parent_id": "react"})
    db.conn.fetchrow.assert_not_awaited()


async def test_create_with_unknown_parent(service):
    with pytest.raises(CategoryError, match="parent category does not exist"):
        await service.create_category({"name": "X", "slug": "x", "parent_id": "missing"})


async def test_create_duplicate_name_in_same_parent(service):
    with pytest.raises(CategoryError, match="name already exists"):
        await service.create_category({"name": "web development", "slug": "web-2", "parent_id": "tech"})


async def test_same_name_under_another_parent_is_allowed(service, db):
    db.conn.fetchrow.return_value = stored_row(
        category_row("news-web", "Web Development", parent_id="news", depth=1))

    category = await service.create_category(
        {"name": "Web Development", "slug": "news-web", "parent_id": "news"})

    assert category.parent_id == "news"


async def test_create_duplicate_slug(service):
    with pytest.raises(CategoryError, match="slug already exists"):
        await service.create_category({"name": "Tech 2", "slug": "tech"})


async def test_update_category(service, db):
    db.conn.fetchrow.return_value = stored_row(category_row("news", "World News"))

    category = await service.update_category("news", {"name": "World News", "ignored": 1})

    query, *params = db.conn.fetchrow.call_args.args
    assert "name = $1" in query
    assert "WHERE id = $2" in query
    assert params == ["World News", "news"]
    assert category.name == "World News"


async def test_update_rejects_sibling_name(service):
    with pytest.raises(CategoryError, match="name already exists"):
        await service.update_category("news", {"name": "TECHNOLOGY"})


async def test_update_rejects_taken_slug(service):
    with pytest.raises(CategoryError, match="slug already exists"):
        await service.update_category("news", {"slug": "react"})


async def test_update_needs_fields(service):
    with pytest.raises(CategoryError, match="No fields"):
        await service.update_category("news", {})


async def test_move_to_root_shifts_subtree(service, db):
    db.conn.fetchrow.return_value = stored_row(category_row("web", "Web Development"))

    moved = await service.move_category("web", None)

    assert moved.parent_id is None
    assert db.conn.fetchrow.call_args.args[1:] == (None, 0, "web")
    assert db.conn.executed() == [("UPDATE categories SET depth = $1 WHERE id = $2", (1, "react"))]
    assert db.conn.transactions == 1


async def test_move_leaf_under_child(service, db):
    db.conn.fetchrow.return_value = stored_row(category_row("news", "News", parent_id="web", depth=2))

    await service.move_category("news", "web")

    assert db.conn.fetchrow.call_args.args[1:] == ("web", 2, "news")


async def test_move_under_own_descendant(service):
    with pytest.raises(CategoryError, match="circular"):
        await service.move_category("tech", "react")


async def test_move_exceeding_depth(service):
    with pytest.raises(CategoryError, match="maximum nesting depth"):
        await service.move_category("tech", "news")


async def test_move_to_same_parent_is_noop(service, db):
    db.conn.fetchrow.return_value = stored_row(category_row("web", "Web Development", parent_id="tech", depth=1))

    await service.move_category("web", "tech")

    assert db.conn.transactions == 0
    assert sql(db.conn.fetchrow.call_args.args[0]).startswith("SELECT")


async def test_move_into_scope_with_same_name(service, db, category_rows):
    category_rows.append(category_row("news-react", "React", parent_id="news", depth=1))

    with pytest.raises(CategoryError, match="name already exists"):
        await service.move_category("news-react", "web")


async def test_delete_with_posts_needs_target(service):
    with pytest.raises(CategoryError, match="reassign posts"):
        await service.delete_category("news")


async def test_delete_with_unknown_target(service):
    with pytest.raises(CategoryError, match="target category does not exist"):
        await service.delete_category("news", reassign_posts_to="missing")


async def test_delete_reassigns_posts(service, db):
    assert await service.delete_category("news", reassign_posts_to="tech") is True

    executed = db.conn.executed()
    assert ("UPDATE posts SET category_id = $1 WHERE category_id = $2", ("tech", "news")) in executed
    assert executed[-1] == ("DELETE FROM categories WHERE id = $1", ("news",))
    assert db.conn.transactions == 1


async def test_delete_lifts_children(service, db, category_rows):
    category_rows[2]["post_count"] = 0

    assert await service.delete_category("web") is True

    executed = db.conn.executed()
    assert ("UPDATE categories SET parent_id = $1 WHERE parent_id = $2", ("tech", "web")) in executed
    assert ("UPDATE categories SET depth = $1 WHERE id = $2", (1, "react")) in executed
    assert not any(query.startswith("UPDATE posts") for query, _ in executed)


async def test_unknown_category_cannot_be_deleted(service):
    with pytest.raises(CategoryError, match="not found"):
        await service.delete_category("missing")


async def test_service_works_without_cache(db, category_rows):
    db.conn.fetch.return_value = category_rows
    service = CategoryService(db)

    tree = await service.get_category_tree()

    assert len(tree) == 2


async def test_cached_tree_is_json(service, cache):
    await service.get_category_tree()

    cached = json.loads(cache.store[TREE_CACHE_KEY])
    assert cached[0]["children"][0]["id"] == "web"
    assert cached[0]["post_count"] is None


async def test_tree_with_counts_is_fresh(service, db, cache):
    await service.get_category_tree()

    tree = await service.get_category_tree(with_counts=True)

    assert tree[1].post_count == 3
    assert tree[0].children[0].children[0].post_count == 1
    assert db.conn.fetch.await_count == 2


async def test_get_category(service, db):
    db.conn.fetchrow.return_value = category_row("web", "Web Development", parent_id="tech", depth=1)

    category = await service.get_category("web")

    assert category.parent_id == "tech"
    assert "WHERE c.id = $1" in sql(db.conn.fetchrow.await_args.args[0])
    assert db.conn.fetchrow.await_args.args[1] == "web"


async def test_get_category_by_unknown_slug(service, db):
    db.conn.fetchrow.return_value = None

    assert await service.get_category_by_slug("missing") is None
    assert "WHERE c.slug = $1" in sql(db.conn.fetchrow.await_args.args[0])


def post_row(id, category_id, status="published"):
    return {
        "id": id,
        "title": id.title(),
        "slug": id,
        "locale": "en",
        "status": status,
        "category_id": category_id,
        "view_count": 0,
        "published_at": datetime(2024, 5, 2, 9, 0, 0),
        "created_at": datetime(2024, 5, 1, 12, 0, 0),
        "updated_at": None,
    }


async def test_posts_in_category_only(service, db, category_rows):
    db.conn.fetch.side_effect = [category_rows, [post_row("intro", "tech")]]

    posts = await service.get_posts_in_category("tech")

    assert [p.id for p in posts] == ["intro"]
    query, ids = db.conn.fetch.await_args.args
    assert "category_id = ANY($1::text[])" in sql(query)
    assert ids == ["tech"]


async def test_posts_in_category_with_descendants(service, db, category_rows):
    db.conn.fetch.side_effect = [
        category_rows,
        [post_row("hooks", "react"), post_row("intro", "tech")],
    ]

    posts = await service.get_posts_in_category("tech", include_descendants=True)

    assert [p.category_id for p in posts] == ["react", "tech"]
    assert sorted(db.conn.fetch.await_args.args[1]) == ["react", "tech", "web"]


async def test_posts_in_unknown_category(service):
    with pytest.raises(CategoryError, match="not found"):
        await service.get_posts_in_category("missing", include_descendants=True)


async def test_children_with_posts(service, db):
    db.conn.fetch.side_effect = [
        [category_row("web", "Web Development", parent_id="tech", depth=1)],
        [post_row("hooks", "web")],
    ]

    sections = await service.get_children_with_posts("tech", limit=2)

    assert len(sections) == 1
    assert sections[0].category.id == "web"
    assert [p.id for p in sections[0].posts] == ["hooks"]
    assert db.conn.fetch.await_args.args[1:] == ("web", 2)
