"""Start command."""

import asyncio
import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the PageDrop Telegram bot."""
    from pagedrop.main import run
    console.print("[bold blue]Starting PageDrop...[/bold blue]")
    asyncio.run(run(debug=debug))
