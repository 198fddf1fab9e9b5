"""Pytest configuration and shared fixtures."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import asyncpg
import pytest


# ═══════════════════════════════════════════════════════════════
# In-memory stand-in for an asyncpg pool (posts table only)
# ═══════════════════════════════════════════════════════════════

class FakePostsDB:
    """Holds the posts table and enforces UNIQUE(slug) like Postgres does.

    Every query yields to the event loop once, so two concurrent
    check-then-insert sequences interleave the way they can on a real
    server.
    """

    def __init__(self):
        self.rows: dict[int, dict] = {}
        self.next_id = 1
        self.queries: list[str] = []
        self.error: Optional[Exception] = None
        self.acquire_error: Optional[Exception] = None
        self.transactions: list[tuple[str, bool]] = []
        self.released = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def insert(self, slug, title, description, html_content, author_id, author_name) -> dict:
        if any(r["slug"] == slug for r in self.rows.values()):
            raise asyncpg.UniqueViolationError(
                'duplicate key value violates unique constraint "posts_slug_key"'
            )
        self._clock += timedelta(seconds=1)
        row = {
            "id": self.next_id,
            "slug": slug,
            "title": title,
            "description": description,
            "html_content": html_content,
            "author_id": author_id,
            "author_name": author_name,
            "created_at": self._clock,
            "updated_at": self._clock,
        }
        self.rows[self.next_id] = row
        self.next_id += 1
        return dict(row)

    def by_slug(self, slug) -> Optional[dict]:
        return next((dict(r) for r in self.rows.values() if r["slug"] == slug), None)

    def newest_first(self, author_id=None) -> list[dict]:
        rows = [r for r in self.rows.values() if author_id is None or r["author_id"] == author_id]
        return sorted(rows, key=lambda r: (r["created_at"], r["id"]), reverse=True)


class FakeConnection:
    def __init__(self, db: FakePostsDB):
        self.db = db

    @asynccontextmanager
    async def transaction(self, isolation="read_committed", readonly=False):
        self.db.transactions.append((isolation, readonly))
        yield

    def _check(self, query: str):
        self.db.queries.append(" ".join(query.split()))
        if self.db.error is not None:
            raise self.db.error

    async def fetchval(self, query, *args):
        self._check(query)
        if "COUNT(*)" in query:
            result = len(self.db.rows)
        elif "WHERE slug = $1" in query:
            row = self.db.by_slug(args[0])
            result = row["id"] if row else None
        else:
            raise AssertionError(f"unexpected fetchval: {query}")
        await asyncio.sleep(0)
        return result

    async def fetchrow(self, query, *args):
        self._check(query)
        if "INSERT INTO posts" in query:
            result = self.db.insert(*args)
        elif "WHERE slug = $1" in query:
            result = self.db.by_slug(args[0])
        elif "WHERE id = $1" in query:
            row = self.db.rows.get(args[0])
            result = dict(row) if row else None
        else:
            raise AssertionError(f"unexpected fetchrow: {query}")
        await asyncio.sleep(0)
        return result

    async def fetch(self, query, *args):
        self._check(query)
        if "WHERE author_id = $1" in query:
            author_id, limit, offset = args
            rows = self.db.newest_first(author_id)
        else:
            limit, offset = args
            rows = self.db.newest_first()
        await asyncio.sleep(0)
        return [dict(r) for r in rows[offset:offset + limit]]

    async def execute(self, query, *args):
        self._check(query)
        return "OK"


class FakePool:
    def __init__(self):
        self.db = FakePostsDB()

    async def acquire(self, timeout=None):
        if self.db.acquire_error is not None:
            raise self.db.acquire_error
        await asyncio.sleep(0)
        return FakeConnection(self.db)

    async def release(self, conn):
        self.db.released += 1

    async def close(self):
        pass


@pytest.fixture
def fake_db(monkeypatch):
    """Install a FakePool as the module-level pool; yields its FakePostsDB."""
    from pagedrop.db import connection

    pool = FakePool()
    monkeypatch.setattr(connection, "_pool", pool)
    yield pool.db


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env."""
    from pagedrop.config import PagedropSettings

    return PagedropSettings(
        _env_file=None,
        llm_api_key=None,
        telegram_bot_token=None,
        base_url="https://pages.test",
        log_file=None,
    )
