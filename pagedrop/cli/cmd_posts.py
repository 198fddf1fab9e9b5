"""Post browsing commands."""

import asyncio
import sys

import click
from rich.panel import Panel
from rich.table import Table

from . import cli
from .shared import console, database


@cli.group()
def posts():
    """Browse published posts."""
    pass


@posts.command("list")
@click.option("--limit", "-n", default=20, show_default=True, help="Number of posts")
@click.option("--offset", default=0, help="Skip this many posts")
@click.option("--author", default=None, help="Only posts by this author id")
def posts_list(limit, offset, author):
    """List recent posts, newest first."""
    async def _list():
        from pagedrop.db.posts import count_posts, list_posts

        async with database():
            rows = await list_posts(limit=limit, offset=offset, author_id=author)
            total = await count_posts()

        if not rows:
            console.print("[dim]No posts yet.[/dim]")
            return

        table = Table(title=f"Posts ({len(rows)} of {total})")
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Slug", style="cyan")
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Created", style="dim")
        for post in rows:
            created = post.created_at.strftime("%Y-%m-%d %H:%M") if post.created_at else ""
            table.add_row(str(post.id), post.slug, post.title, post.author_name, created)
        console.print(table)

    asyncio.run(_list())


@posts.command("show")
@click.argument("slug")
@click.option("--html", "show_html", is_flag=True, help="Print the stored HTML too")
def posts_show(slug, show_html):
    """Show one post by slug."""
    async def _show():
        from pagedrop.db.posts import get_post_by_slug

        async with database():
            post = await get_post_by_slug(slug)

        if post is None:
            console.print(f"[red]No post with slug '{slug}'.[/red]")
            sys.exit(1)

        body = "\n".join([
            f"[bold]{post.title}[/bold]",
            f"[italic]{post.description}[/italic]",
            "",
            f"Slug:    {post.slug}",
            f"Author:  {post.author_name} ({post.author_id})",
            f"Created: {post.created_at}",
            f"Size:    {len(post.html_content)} chars",
        ])
        console.print(Panel(body, title=f"Post #{post.id}", expand=False))
        if show_html:
            from rich.syntax import Syntax
            console.print(Syntax(post.html_content, "html", word_wrap=True))

    asyncio.run(_show())
