"""Post store: the durable record of published posts.

Only creation happens here; updates and deletion belong to other tools.
"""

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

import asyncpg

from ..errors import DuplicateSlugError, StoreError, ValidationError
from ..slugs import validate_slug
from .connection import get_connection, get_transaction

logger = logging.getLogger("pagedrop.db")

POST_COLUMNS = "id, slug, title, description, html_content, author_id, author_name, created_at, updated_at"

REQUIRED_FIELDS = ("slug", "title", "description", "html_content", "author_id", "author_name")


@dataclass
class Post:
    id: int
    slug: str
    title: str
    description: str
    html_content: str
    author_id: str
    author_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Post":
        return cls(**{k: row[k] for k in POST_COLUMNS.split(", ")})

    def to_dict(self) -> dict:
        return asdict(self)

    def to_summary(self) -> dict:
        """Everything except the HTML body."""
        data = self.to_dict()
        data.pop("html_content")
        return data


@contextmanager
def _translate_errors(action: str):
    """Re-raise driver errors as StoreError. UniqueViolationError passes through."""
    try:
        yield
    except asyncpg.UniqueViolationError:
        raise
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        logger.error(f"Database error during {action}: {type(e).__name__}: {e}")
        raise StoreError(f"Database error during {action} ({type(e).__name__})") from e


def validate_post_fields(fields: dict) -> list[str]:
    """Problems with a post about to be created; empty when valid."""
    errors = []
    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if value is None or not str(value).strip():
            errors.append(f"{name} is required")

    if fields.get("slug"):
        errors.extend(validate_slug(fields["slug"]).errors)
    return errors


async def create_post(
    slug: str,
    title: str,
    description: str,
    html_content: str,
    author_id: str,
    author_name: str,
) -> Post:
    """Insert a new post.

    The existence check and the insert share one transaction; the UNIQUE
    constraint on ``slug`` is what actually guarantees one post per slug.
    Two racing callers both pass the check, and the loser's insert fails
    on the constraint.

    Raises:
        ValidationError: a required field is blank or the slug is invalid.
        DuplicateSlugError: the slug is already taken.
        StoreError: any other persistence failure.
    """
    fields = {
        "slug": slug,
        "title": title,
        "description": description,
        "html_content": html_content,
        "author_id": author_id,
        "author_name": author_name,
    }
    errors = validate_post_fields(fields)
    if errors:
        raise ValidationError(f"Validation failed: {', '.join(errors)}", errors)

    try:
        with _translate_errors("create_post"):
            async with get_transaction() as conn:
                existing = await conn.fetchval("SELECT id FROM posts WHERE slug = $1", slug)
                if existing is not None:
                    raise DuplicateSlugError(slug)

                row = await conn.fetchrow(f"""
                    INSERT INTO posts (slug, title, description, html_content, author_id, author_name)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING {POST_COLUMNS}
                """, slug, title, description, html_content, str(author_id), author_name)
    except asyncpg.UniqueViolationError as e:
        logger.warning(f"Slug '{slug}' claimed concurrently (unique constraint)")
        raise DuplicateSlugError(slug) from e

    post = Post.from_row(row)
    logger.info(f"Post created: id={post.id} slug={post.slug} author={post.author_id}")
    return post


async def get_post_by_slug(slug: str) -> Optional[Post]:
    """Find a post by slug. Returns None if not found."""
    if not slug or not slug.strip():
        return None
    with _translate_errors("get_post_by_slug"):
        async with get_connection() as conn:
            row = await conn.fetchrow(f"SELECT {POST_COLUMNS} FROM posts WHERE slug = $1", slug.strip())
    return Post.from_row(row) if row else None


async def get_post_by_id(post_id: int) -> Optional[Post]:
    """Find a post by id. Returns None if not found."""
    try:
        post_id = int(post_id)
    except (TypeError, ValueError):
        return None
    with _translate_errors("get_post_by_id"):
        async with get_connection() as conn:
            row = await conn.fetchrow(f"SELECT {POST_COLUMNS} FROM posts WHERE id = $1", post_id)
    return Post.from_row(row) if row else None


async def slug_exists(slug: str) -> bool:
    """Fast-path existence check used while resolving a unique slug."""
    with _translate_errors("slug_exists"):
        async with get_connection() as conn:
            existing = await conn.fetchval("SELECT id FROM posts WHERE slug = $1", slug)
    return existing is not None


async def list_posts(limit: int = 20, offset: int = 0, author_id: Optional[str] = None) -> list[Post]:
    """Newest posts first, optionally only one author's."""
    limit = min(max(1, limit), 100)
    offset = max(0, offset)
    with _translate_errors("list_posts"):
        async with get_transaction(readonly=True) as conn:
            if author_id:
                rows = await conn.fetch(f"""
                    SELECT {POST_COLUMNS} FROM posts WHERE author_id = $1
                    ORDER BY created_at DESC, id DESC LIMIT $2 OFFSET $3
                """, str(author_id), limit, offset)
            else:
                rows = await conn.fetch(f"""
                    SELECT {POST_COLUMNS} FROM posts
                    ORDER BY created_at DESC, id DESC LIMIT $1 OFFSET $2
                """, limit, offset)
    return [Post.from_row(r) for r in rows]


async def count_posts() -> int:
    with _translate_errors("count_posts"):
        async with get_connection() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM posts")
