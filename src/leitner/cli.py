"""
Leitner CLI: developer host for the scheduling engine.

A Rich terminal interface to inspect and drive the engine against a JSON
catalog file and a JSON-file storage backend.

Commands:
- leitner due          - Show the ordered due set
- leitner answer       - Record an answer for one item
- leitner progress     - Show one item's review record
- leitner stats        - Show learning statistics
- leitner session      - Show (restore or build) the current session
- leitner session-end  - End the current session and show results
- leitner session-new  - Discard the current session and build a new one
- leitner target       - Show or set the daily target
- leitner reset        - Clear all progress
- leitner migrate      - Migrate the storage schema
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from config import get_settings

from .catalog import load_catalog
from .engine import LeitnerEngine
from .errors import LeitnerError
from .migration import migrate_storage
from .models import CatalogItem
from .storage import JsonFileStorage

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="leitner",
    help="Leitner box scheduling engine CLI",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
}

BOX_COLORS = {1: "red", 2: "yellow", 3: "green"}


def style_box(box: int) -> str:
    color = BOX_COLORS.get(box, "white")
    return f"[{color}]{box}[/{color}]"


# =============================================================================
# Engine Helpers
# =============================================================================


def _open_engine(storage_path: Optional[Path]) -> LeitnerEngine:
    """Storage is migrated to the configured schema before the engine sees it."""
    settings = get_settings()
    storage = JsonFileStorage(storage_path or settings.storage_path)
    migrate_storage(storage, settings.schema_version)
    return LeitnerEngine(storage, settings)


def _load_catalog(path: Path, topic: Optional[str] = None) -> list[CatalogItem]:
    try:
        return load_catalog(path, topic=topic)
    except LeitnerError as e:
        console.print(f"[{STYLES['incorrect']}]{e}[/{STYLES['incorrect']}]")
        raise typer.Exit(1)


def _fail(message: str) -> None:
    console.print(f"[{STYLES['incorrect']}]{message}[/{STYLES['incorrect']}]")
    raise typer.Exit(1)


def _items_table(items: list[CatalogItem], engine: LeitnerEngine, title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim")
    table.add_column("ID")
    table.add_column("Topic")
    table.add_column("Box")
    table.add_column("Answered")

    for index, item in enumerate(items, start=1):
        record = engine.get_question_progress(item.id)
        submission = engine.sessions.submissions.get(item.id)
        if submission is None:
            answered = ""
        elif submission.is_correct:
            answered = "[green]correct[/green]"
        else:
            answered = "[red]incorrect[/red]"
        table.add_row(
            str(index),
            item.id,
            item.topic,
            style_box(record.current_box) if record else "[dim]new[/dim]",
            answered,
        )
    return table


# =============================================================================
# Commands
# =============================================================================


@app.command()
def due(
    catalog: Path = typer.Option(..., "--catalog", "-c", help="JSON catalog file"),
    topic: Optional[str] = typer.Option(None, "--topic", "-t", help="Only items of this topic"),
    limit: int = typer.Option(20, "--limit", "-l", help="Rows to show"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Show the due set in study order."""
    items = _load_catalog(catalog, topic)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            scheduled = await engine.get_due_questions(items)

            table = Table(title=f"Due ({len(scheduled)} items)")
            table.add_column("ID")
            table.add_column("Topic")
            table.add_column("Box")
            table.add_column("Status")

            for s in scheduled[:limit]:
                if s.is_new:
                    status = "[cyan]new[/cyan]"
                elif s.is_due:
                    status = "[yellow]due[/yellow]"
                elif s.resurfaced:
                    status = "[magenta]review[/magenta]"
                else:
                    status = "[dim]extra[/dim]"
                table.add_row(s.id, s.topic, style_box(s.current_box), status)

            console.print(table)

    asyncio.run(run())


@app.command()
def answer(
    item_id: str = typer.Argument(..., help="Item id"),
    correct: bool = typer.Option(..., "--correct/--wrong", help="Was the answer correct?"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", "-c", help="JSON catalog file"),
    choices: Optional[list[int]] = typer.Option(None, "--choice", help="Selected option index"),
    in_session: bool = typer.Option(False, "--session", help="Record as a session submission"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Record an answer and move the item between boxes."""
    if in_session and catalog is None:
        _fail("--session needs --catalog")
    items = _load_catalog(catalog) if catalog else None

    async def run() -> None:
        async with _open_engine(storage) as engine:
            try:
                if in_session:
                    await engine.load_session(items)
                    result = engine.submit_answer(item_id, choices or [], correct)
                else:
                    if items is not None:
                        await engine.get_due_questions(items)
                    result = engine.process_answer(item_id, correct)
            except LeitnerError as e:
                _fail(str(e))

            style = STYLES["correct"] if result.correct else STYLES["incorrect"]
            verdict = "Correct" if result.correct else "Incorrect"
            console.print(
                f"[{style}]{verdict}[/{style}]  box {style_box(result.moved_from_box)} -> "
                f"{style_box(result.moved_to_box)}, next review {result.next_review.isoformat()}"
            )

    asyncio.run(run())


@app.command()
def progress(
    item_id: str = typer.Argument(..., help="Item id"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Show the review record of one item."""

    async def run() -> None:
        async with _open_engine(storage) as engine:
            record = engine.get_question_progress(item_id)
            if record is None:
                console.print(f"[dim]{item_id} has not been answered yet[/dim]")
                return

            table = Table(show_header=False, box=None)
            table.add_column("Field", style="dim")
            table.add_column("Value", style="bold")
            table.add_row("Box", style_box(record.current_box))
            table.add_row("Next review", record.next_review_date.isoformat())
            table.add_row("Times correct", str(record.times_correct))
            table.add_row("Times incorrect", str(record.times_incorrect))
            table.add_row(
                "Last reviewed",
                record.last_reviewed.strftime("%Y-%m-%d %H:%M") if record.last_reviewed else "?",
            )
            table.add_row("Last answer", "correct" if record.last_answer_correct else "incorrect")
            console.print(table)

    asyncio.run(run())


@app.command()
def stats(
    catalog: Path = typer.Option(..., "--catalog", "-c", help="JSON catalog file"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Show learning statistics and progress."""
    items = _load_catalog(catalog)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            snapshot = await engine.get_stats(items)
            completion = await engine.get_completion_progress(items)
            today = await engine.get_today_progress()
            history = await engine.get_daily_activity_history()

            console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
            console.print("=" * 40)

            table = Table(show_header=False, box=None)
            table.add_column("Metric", style="dim")
            table.add_column("Value", style="bold")
            table.add_row("Items", str(snapshot.total_items))
            table.add_row("Items started", str(snapshot.items_started))
            table.add_row("Accuracy", f"{snapshot.accuracy_rate * 100:.1f}%")
            table.add_row("Mostly correct", f"{completion.correct_items}/{completion.answered_items}")
            table.add_row("Streak", f"{snapshot.streak_days} days")
            table.add_row("Left for today", str(snapshot.due_today))
            table.add_row(
                "Reviewed today",
                f"{today.completed}/{today.target} ({today.percentage:.0f}%)",
            )
            console.print(table)

            boxes = Table(title="Boxes")
            boxes.add_column("Box")
            boxes.add_column("Items")
            for box, count in sorted(snapshot.box_distribution.items()):
                boxes.add_row(style_box(box), str(count))
            console.print(boxes)

            if history:
                recent = list(history.items())[-7:]
                console.print("\n[bold]Recent Activity[/bold]")
                for day, count in recent:
                    console.print(f"  {day}  {count}")

    asyncio.run(run())


@app.command()
def session(
    catalog: Path = typer.Option(..., "--catalog", "-c", help="JSON catalog file"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Show the current session, restoring or building one."""
    items = _load_catalog(catalog)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            session_items = await engine.load_session(items)
            if not session_items:
                console.print("[dim]Nothing to study[/dim]")
                return
            console.print(_items_table(session_items, engine, f"Session ({len(session_items)} items)"))

    asyncio.run(run())


@app.command("session-end")
def session_end(
    catalog: Path = typer.Option(..., "--catalog", "-c", help="JSON catalog file"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """End the current session and show its results."""
    items = _load_catalog(catalog)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            if engine.sessions.resume_for_end(items) is None:
                _fail("No active session")
            results = engine.end_session()

            console.print(Panel(
                f"[bold]Session Complete![/bold]\n\n"
                f"Correct: {results.correct}\n"
                f"Incorrect: {results.incorrect}\n"
                f"Accuracy: {results.accuracy * 100:.1f}%",
                title="Summary",
                border_style="green",
            ))

    asyncio.run(run())


@app.command("session-new")
def session_new(
    catalog: Path = typer.Option(..., "--catalog", "-c", help="JSON catalog file"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Discard the current session and build a new one."""
    items = _load_catalog(catalog)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            session_items = await engine.start_new_session(items)
            console.print(_items_table(session_items, engine, f"New session ({len(session_items)} items)"))

    asyncio.run(run())


@app.command()
def target(
    value: Optional[int] = typer.Argument(None, help="New daily target (1-500)"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Show or set the daily answer target."""

    async def run() -> None:
        async with _open_engine(storage) as engine:
            if value is None:
                console.print(f"Daily target: [bold]{engine.get_daily_target()}[/bold]")
                return
            try:
                engine.set_daily_target(value)
            except ValueError as e:
                _fail(str(e))
            console.print(f"[green]Daily target set to {value}[/green]")

    asyncio.run(run())


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Clear all progress, activity and the current session."""
    if not confirm and not Confirm.ask("Reset ALL progress? This cannot be undone!", default=False):
        raise typer.Exit(0)

    async def run() -> None:
        async with _open_engine(storage) as engine:
            engine.clear_all_progress()

    asyncio.run(run())
    console.print("[green]All progress has been reset.[/green]")


@app.command()
def migrate(
    target_version: Optional[str] = typer.Option(None, "--to", help="Schema version to migrate to"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage file"),
) -> None:
    """Migrate the storage schema and purge dead keys."""
    settings = get_settings()
    backend = JsonFileStorage(storage or settings.storage_path)
    result = migrate_storage(backend, target_version or settings.schema_version)

    if not result.changed:
        console.print(f"[dim]Storage already at schema {result.to_version}[/dim]")
        return
    console.print(
        f"[green]Migrated storage from {result.from_version or 'unversioned'} "
        f"to {result.to_version}[/green], removed {len(result.removed_keys)} keys"
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
