"""Offline analysis of a local HTML file (no database, no chat)."""

import asyncio
import os
import sys

import click
from rich.table import Table

from . import cli
from .shared import console


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--strict", is_flag=True, help="Fail instead of using fallback metadata")
def analyze(file, strict):
    """Sanitize and analyze a local HTML file, print the metadata."""
    async def _analyze():
        from pagedrop.analyzer import MetadataAnalyzer
        from pagedrop.communication.errors import classify_error
        from pagedrop.config import load_settings
        from pagedrop.content.sanitizer import sanitize_html, validate_html_content
        from pagedrop.errors import AnalysisTerminalError
        from pagedrop.submission import SubmissionPipeline, title_hint

        settings = load_settings()

        with open(file, encoding="utf-8-sig", errors="replace") as f:
            raw = f.read()

        clean = sanitize_html(raw)
        problems = validate_html_content(clean, settings.max_content_length)
        if problems:
            console.print(f"[red]Content rejected:[/red] {', '.join(problems)}")
            sys.exit(1)

        analyzer = MetadataAnalyzer(SubmissionPipeline._build_client(settings))
        try:
            result = await analyzer.analyze_content(
                clean,
                fallback_title=title_hint(raw, os.path.basename(file)),
                strict=strict,
            )
        except AnalysisTerminalError as e:
            console.print(f"[red]{classify_error(e)}[/red] [dim]({e})[/dim]")
            sys.exit(1)

        table = Table(show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Slug", result.slug)
        table.add_row("Title", result.title)
        table.add_row("Description", result.description)
        table.add_row("Type", result.content_type)
        table.add_row("Words", f"{result.word_count} ({result.reading_time_minutes} min read)")
        table.add_row("Features", ", ".join(k for k, v in result.features.items() if v) or "-")
        table.add_row("Tags", ", ".join(result.tags) or "-")
        table.add_row("Sanitized", f"{len(raw)} -> {len(clean)} chars")
        if result.used_fallback:
            table.add_row("Fallback", f"[yellow]yes[/yellow] ({result.error_kind})")
        console.print(table)

    asyncio.run(_analyze())
