import fnmatch
from datetime import datetime
from unittest.mock import AsyncMock

import pytest


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.transactions += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeConnection:
    """Stand-in for an asyncpg connection; queries are AsyncMocks"""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(side_effect=self._status)
        self.transactions = 0

    @staticmethod
    def _status(query, *args):
        return "DELETE 1" if query.strip().startswith("DELETE") else "UPDATE 1"

    def transaction(self):
        return FakeTransaction(self)

    def executed(self):
        """(normalized sql, params) for every execute call"""
        return [(" ".join(c.args[0].split()), c.args[1:]) for c in self.execute.call_args_list]


class FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakePool:
    def __init__(self, conn):
        self.conn = conn

    def acquire(self):
        return FakeAcquire(self.conn)


class FakeDatabase:
    def __init__(self):
        self.conn = FakeConnection()
        self.pool = FakePool(self.conn)


class FakeRedis:
    """The subset of redis.asyncio.Redis used by the services (decode_responses=True)"""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def incr(self, key):
        return await self.incrby(key, 1)

    async def incrby(self, key, amount):
        value = int(self.store.get(key, 0)) + amount
        self.store[key] = str(value)
        return value

    async def decrby(self, key, amount):
        return await self.incrby(key, -amount)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def mget(self, keys):
        return [self.store.get(key) for key in keys]

    async def scan_iter(self, match=None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


def category_row(id, name, parent_id=None, depth=0, post_count=0, slug=None, description=None):
    return {
        "id": id,
        "name": name,
        "slug": slug or id,
        "description": description,
        "parent_id": parent_id,
        "depth": depth,
        "post_count": post_count,
    }


def stored_row(row):
    """Row as returned by RETURNING *"""
    stored = {k: v for k, v in row.items() if k != "post_count"}
    stored["created_at"] = datetime(2024, 5, 1, 12, 0, 0)
    stored["updated_at"] = None
    return stored


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def cache():
    return FakeRedis()


@pytest.fixture
def category_rows():
    return [
        category_row("tech", "Technology", post_count=2),
        category_row("news", "News", post_count=3),
        category_row("web", "Web Development", parent_id="tech", depth=1, slug="web-development"),
        category_row("react", "React", parent_id="web", depth=2, post_count=1),
    ]
