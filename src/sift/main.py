"""
sift CLI - search your conversations and notes

Main entry point for the command-line interface.
"""

import asyncio
import sys
from datetime import datetime
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console

app = typer.Typer(
    name="sift",
    help="Search your conversations and curated notes with AI-assisted query expansion",
    add_completion=False,
)

console = Console()

KIND_LABELS = {
    "conversation": ("Chat", "cyan"),
    "memory_node": ("Note", "magenta"),
    "semantic_match": ("Related", "yellow"),
}


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging with loguru."""
    logger.remove()  # Remove default handler

    log_level = "DEBUG" if verbose else "WARNING"

    # Console logging with colors
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=log_level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
        )


def _parse_date(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Error:[/red] {option} must be an ISO date, got '{value}'")
        raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument(..., help="What to search for"),
    corpus: Optional[str] = typer.Option(None, "--corpus", "-c", help="Path to a JSON corpus file"),
    since: Optional[str] = typer.Option(None, "--since", help="Only conversations started on/after this ISO date"),
    until: Optional[str] = typer.Option(None, "--until", help="Only conversations started on/before this ISO date"),
    note_types: Optional[List[str]] = typer.Option(None, "--type", "-t", help="Only notes of this type (repeatable)"),
    min_relevance: Optional[float] = typer.Option(None, "--min-relevance", help="Minimum score for conversation hits"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of results to show"),
    no_expand: bool = typer.Option(False, "--no-expand", help="Skip AI query expansion"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Search conversations and notes.

    Process: Expand query (Claude) → Retrieve (chats, notes, related) → Rank → Display
    """
    from sift.config import get_settings

    settings = get_settings()
    setup_logging(verbose, settings.log_file)

    try:
        from pathlib import Path
        from rich.panel import Panel
        from rich.progress import Progress, SpinnerColumn, TextColumn
        from rich.table import Table

        from sift.core.search import create_engine
        from sift.models.schema import NoteType, SearchFilters

        try:
            types = [NoteType(t.lower()) for t in note_types] if note_types else None
        except ValueError:
            valid = ", ".join(t.value for t in NoteType)
            console.print(f"[red]Error:[/red] Unknown note type. Valid types: {valid}")
            raise typer.Exit(1)

        filters = SearchFilters(
            start_date=_parse_date(since, "--since"),
            end_date=_parse_date(until, "--until"),
            note_types=types,
            min_relevance=settings.min_relevance if min_relevance is None else min_relevance,
        )

        engine = create_engine(
            settings,
            corpus_path=Path(corpus) if corpus else None,
            use_expansion=not no_expand,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Searching for '{query}'...", total=None)
            results = asyncio.run(engine.search(query, filters))

        if not results:
            console.print(
                Panel(
                    f"[yellow]No results for[/yellow] [bold]{query}[/bold]",
                    title="Search",
                    border_style="yellow",
                )
            )
        else:
            results_table = Table(
                title=f"{len(results)} result(s) for '{query}'", show_header=True
            )
            results_table.add_column("Score", style="bold", justify="right")
            results_table.add_column("Source")
            results_table.add_column("Title")
            results_table.add_column("Snippet")
            results_table.add_column("When", style="dim")

            for result in results[:limit]:
                label, color = KIND_LABELS.get(result.kind, ("?", "white"))
                if result.note_type:
                    label = f"{label} ({result.note_type})"
                results_table.add_row(
                    f"{result.relevance_score:.3f}",
                    f"[{color}]{label}[/{color}]",
                    result.title,
                    result.snippet,
                    result.timestamp.strftime("%Y-%m-%d"),
                )

            console.print(results_table)

        suggestions = engine.get_suggestions()
        if suggestions:
            console.print("\n[dim]Try next:[/dim]")
            for suggestion in suggestions:
                console.print(f"  • [cyan]{suggestion}[/cyan]")

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"\n[red]Error during search:[/red] {e}")
        if verbose:
            import traceback
            console.print(f"\n[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(1)


@app.command()
def history(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Show recent searches, most recent first.
    """
    setup_logging(verbose)

    try:
        from rich.table import Table

        from sift.config import get_settings
        from sift.core.history import SearchHistory
        from sift.db.stores import JsonFileKeyValueStore

        settings = get_settings()
        search_history = SearchHistory(
            JsonFileKeyValueStore(settings.state_path),
            limit=settings.history_limit,
            key=settings.history_key,
        )
        entries = search_history.load()

        if not entries:
            console.print(
                "[dim]No searches yet. Use [cyan]sift search <query>[/cyan] to start.[/dim]"
            )
            raise typer.Exit(0)

        history_table = Table(show_header=True, box=None, padding=(0, 2))
        history_table.add_column("#", style="dim", justify="right")
        history_table.add_column("Query", style="cyan")

        for i, entry in enumerate(entries, 1):
            history_table.add_row(str(i), entry)

        console.print(history_table)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if verbose:
            import traceback
            console.print(f"\n[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(1)


@app.command()
def stats(
    corpus: Optional[str] = typer.Option(None, "--corpus", "-c", help="Path to a JSON corpus file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Display statistics about the corpus and its index.

    Shows:
    - Number of conversations, messages and notes
    - Notes per type
    - Inverted index size
    """
    setup_logging(verbose)
    console.print("[bold cyan]Corpus Statistics[/bold cyan]\n")

    try:
        from pathlib import Path
        from rich.table import Table

        from sift.config import get_settings
        from sift.core.index import InvertedIndex
        from sift.db.stores import load_corpus
        from sift.models.schema import NoteType

        settings = get_settings()
        conversations, notes = load_corpus(Path(corpus) if corpus else settings.corpus_path)

        all_conversations = conversations.list_conversations()
        index = InvertedIndex()
        index.rebuild(all_conversations)

        stats_table = Table(show_header=False, box=None, padding=(0, 2))
        stats_table.add_column("Metric", style="cyan")
        stats_table.add_column("Value", style="bold")

        stats_table.add_row("Conversations", f"{len(all_conversations):,}")
        stats_table.add_row(
            "Messages", f"{sum(len(c.messages) for c in all_conversations):,}"
        )
        stats_table.add_row("Notes", f"{len(notes):,}")
        for note_type in NoteType:
            count = len(notes.list_by_type(note_type))
            if count:
                stats_table.add_row(f"  {note_type.value}", f"{count:,}")
        stats_table.add_row("Indexed terms", f"{len(index):,}")

        console.print(stats_table)
        console.print()

        if not all_conversations and not len(notes):
            console.print(
                "[dim]The corpus is empty. Point [cyan]CORPUS_PATH[/cyan] at a JSON export.[/dim]"
            )

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if verbose:
            import traceback
            console.print(f"\n[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
