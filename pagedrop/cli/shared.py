"""Shared utilities for PageDrop CLI commands."""

import os
from contextlib import asynccontextmanager

from rich.console import Console

console = Console()


def schema_path() -> str:
    """Location of the bundled schema.sql."""
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "db", "schema.sql")


@asynccontextmanager
async def database():
    """Open the pool from settings for the duration of a command."""
    from pagedrop.config import load_settings
    from pagedrop.db.connection import close_db, init_db

    settings = load_settings()
    pool = await init_db(settings.database_url)
    try:
        yield pool
    finally:
        await close_db()
