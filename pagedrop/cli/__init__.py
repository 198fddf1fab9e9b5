"""PageDrop CLI: run the bot, manage the post store, try the analyzer offline."""

import click
from rich.table import Table

from pagedrop import __version__
from .shared import console

# Section shown in the overview for each top-level command
SECTIONS = {
    "start": "Bot",
    "analyze": "Content",
    "db": "Store",
    "posts": "Store",
}
SECTION_ORDER = ("Bot", "Content", "Store", "Other")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pagedrop")
@click.pass_context
def cli(ctx):
    """Publish chat-submitted HTML as sanitized, addressable posts."""
    if ctx.invoked_subcommand is None:
        _show_overview()


def _iter_commands(group: click.Group, prefix: str = ""):
    for name in sorted(group.commands):
        command = group.commands[name]
        if command.hidden:
            continue
        if isinstance(command, click.Group):
            yield from _iter_commands(command, f"{prefix}{name} ")
        else:
            yield f"{prefix}{name}", command


def _show_overview():
    """Registered commands as one table, grouped by section."""
    console.print(f"[bold]pagedrop {__version__}[/bold]\n")

    by_section: dict[str, list] = {}
    for name, command in _iter_commands(cli):
        section = SECTIONS.get(name.split()[0], "Other")
        by_section.setdefault(section, []).append((name, command.get_short_help_str(limit=60)))

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column(style="bold")
    table.add_column(style="dim")
    for section in SECTION_ORDER:
        for i, (name, summary) in enumerate(by_section.get(section, [])):
            table.add_row(section if i == 0 else "", name, summary)

    console.print(table)
    console.print("\n[dim]pagedrop COMMAND --help shows the options of one command.[/dim]")


# Command modules register themselves on import
from . import cmd_start  # noqa: E402, F401
from . import cmd_db  # noqa: E402, F401
from . import cmd_posts  # noqa: E402, F401
from . import cmd_analyze  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_overview()


def main():
    """Console-script entry point; maps failures to exit codes."""
    import sys

    import asyncpg

    from pagedrop.communication.errors import classify_error
    from pagedrop.errors import PagedropError

    try:
        cli(standalone_mode=False)
    except click.UsageError as e:
        if e.ctx:
            click.echo(e.ctx.command.get_usage(e.ctx), err=True)
        click.echo(f"Error: {e.format_message()}", err=True)
        click.echo("Run 'pagedrop' without arguments to list commands.", err=True)
        sys.exit(2)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.code)
    except click.Abort:
        click.echo("Cancelled.", err=True)
        sys.exit(1)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        console.print(f"[red]Post store unavailable:[/red] {type(e).__name__}: {e}")
        console.print("[dim]Check PAGEDROP_DATABASE_URL and that PostgreSQL is running.[/dim]")
        sys.exit(3)
    except PagedropError as e:
        console.print(f"[red]{classify_error(e)}[/red]")
        sys.exit(1)
