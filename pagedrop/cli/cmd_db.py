"""Database management commands."""

import asyncio

from pagedrop.db.connection import get_connection

from . import cli
from .shared import console, database, schema_path


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
def db_init():
    """Initialize database schema."""
    async def _init():
        with open(schema_path()) as f:
            schema = f.read()

        async with database():
            async with get_connection() as conn:
                await conn.execute(schema)

        console.print("[green]✓ Database schema initialized[/green]")

    asyncio.run(_init())
