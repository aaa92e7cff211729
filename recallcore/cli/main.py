"""
CLI entry point for recallcore.
"""

# Standard library imports
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Third-party imports
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Local application imports
from recallcore.cli.review_ui import format_interval, start_review_flow
from recallcore.config import SchedulerConfig, SchedulerSettings
from recallcore.converter import convert, to_record
from recallcore.exceptions import CardStoreError, RecallcoreError
from recallcore.models import MemoryState, ensure_utc
from recallcore.review_queue import count_due_cards, select_due_cards
from recallcore.scheduler import FSRS_Scheduler
from recallcore.session import ReviewSession
from recallcore.store import JsonFileCardStore


console = Console()

app = typer.Typer(
    name="recallcore",
    help="Recallcore: FSRS spaced-repetition scheduling from the command line.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config() -> SchedulerConfig:
    """Build the scheduler configuration from RECALLCORE_* settings. Exits on invalid values."""
    try:
        return SchedulerSettings().to_config()
    except ValidationError as e:
        console.print(f"[bold red]Invalid scheduler settings:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)


def _parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO 8601 timestamp (naive means UTC); None means now."""
    if value is None:
        return datetime.now(timezone.utc)
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        raise typer.BadParameter(f"'{value}' is not an ISO 8601 timestamp.")


def _load_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Error: could not read {path}: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)


def _load_card(path: Path) -> Dict[str, Any]:
    record = _load_json(path)
    if not isinstance(record, dict):
        console.print("[bold red]Error: the card file must contain a JSON object.[/bold red]")
        raise typer.Exit(code=1)
    return record


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.4f}"


def _state_table(state: MemoryState, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("State", state.state.name)
    table.add_row("Due", state.due.isoformat())
    table.add_row("Stability", _fmt(state.stability))
    table.add_row("Difficulty", _fmt(state.difficulty))
    table.add_row("Lapses", str(state.lapses))
    table.add_row(
        "Last review", state.last_review.isoformat() if state.last_review else "-"
    )
    return table


_at_option = typer.Option(  # noqa: B008
    None,
    "--at",
    help="Review time as ISO 8601 (naive means UTC). Defaults to now.",
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log scheduling details."
    ),
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Schedule / preview
# ---------------------------------------------------------------------------


@app.command()
def schedule(
    card_file: Path = typer.Argument(  # noqa: B008
        ..., help="JSON file holding one card record."
    ),
    grade: str = typer.Option(
        ..., "--grade", "-g", help="Again, Hard, Good, Easy or 1-4."
    ),
    at: Optional[str] = _at_option,
    as_json: bool = typer.Option(
        False, "--json", help="Print the new state as a storage record."
    ),
):
    """
    Compute a card's memory state after one review.

    Parameters:
        card_file: JSON object with the card's stored scheduling fields.
        grade: The recall grade.
        at: Review timestamp; defaults to the current time.
        as_json: Print the result in the storage shape instead of a table.
    """
    record = _load_card(card_file)
    config = _load_config()
    reviewed_at = _parse_timestamp(at)
    try:
        memory_state = convert(record, reviewed_at, config)
        outcome = FSRS_Scheduler(config).review(memory_state, grade, reviewed_at)
    except RecallcoreError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(to_record(outcome.state)))
        return
    console.print(
        _state_table(
            outcome.state,
            title=f"After {outcome.grade.name} (next in {format_interval(outcome.scheduled_interval)})",
        )
    )
    if outcome.lapse_recorded:
        console.print("[yellow]Lapse recorded.[/yellow]")


@app.command()
def preview(
    card_file: Path = typer.Argument(  # noqa: B008
        ..., help="JSON file holding one card record."
    ),
    at: Optional[str] = _at_option,
):
    """Show what each of the four grades would do to a card."""
    record = _load_card(card_file)
    config = _load_config()
    reviewed_at = _parse_timestamp(at)
    scheduler = FSRS_Scheduler(config)
    try:
        memory_state = convert(record, reviewed_at, config)
        outcomes = scheduler.preview(memory_state, reviewed_at)
        retrievability = scheduler.retrievability(memory_state, reviewed_at)
    except RecallcoreError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(
        title=f"{memory_state.state.name} card, recall probability {retrievability:.1%}"
    )
    for column in ("Grade", "State", "Interval", "Due", "Stability", "Difficulty"):
        table.add_column(column)
    for grade, outcome in outcomes.items():
        table.add_row(
            grade.name,
            outcome.state.state.name,
            format_interval(outcome.scheduled_interval),
            outcome.due.strftime("%Y-%m-%d %H:%M"),
            _fmt(outcome.state.stability),
            _fmt(outcome.state.difficulty),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Due queue
# ---------------------------------------------------------------------------


@app.command()
def due(
    deck_file: Path = typer.Argument(  # noqa: B008
        ..., help="JSON file holding a list of card records."
    ),
    now: Optional[str] = typer.Option(
        None, "--now", help="Selection time as ISO 8601. Defaults to now."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Maximum cards to list."
    ),
):
    """List the cards due for review, earliest first."""
    records = _load_json(deck_file)
    if not isinstance(records, list):
        console.print("[bold red]Error: the deck file must contain a JSON list.[/bold red]")
        raise typer.Exit(code=1)
    config = _load_config()
    at = _parse_timestamp(now)

    queue = select_due_cards(records, at, limit, config)
    if not queue:
        console.print("[bold yellow]No cards are due for review.[/bold yellow]")
        return

    table = Table(title=f"{len(queue)} of {count_due_cards(records, at, config)} due cards")
    for column in ("#", "Card", "State", "Due", "Front"):
        table.add_column(column)
    for index, card in enumerate(queue, start=1):
        front = card.record.get("front", "") if isinstance(card.record, dict) else ""
        table.add_row(
            str(index),
            str(card.card_id),
            card.memory_state.state.name,
            card.memory_state.due.strftime("%Y-%m-%d %H:%M"),
            str(front),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@app.command()
def review(
    deck_file: Path = typer.Argument(  # noqa: B008
        ..., help="JSON deck file; ratings are saved back to it."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Maximum cards in the session."
    ),
):
    """Review the due cards of a JSON deck interactively."""
    config = _load_config()
    try:
        store = JsonFileCardStore(deck_file)
    except CardStoreError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)

    session = ReviewSession(store, FSRS_Scheduler(config), limit=limit, config=config)
    start_review_flow(session)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application.

    If an unexpected exception occurs, print a bold red error message to the console and exit the process with status code 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
