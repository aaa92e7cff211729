"""
Command-line interface for reviewing flashcards.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from recallcore.exceptions import InvalidGradeError, RecallcoreError
from recallcore.models import Grade, coerce_grade
from recallcore.review_queue import DueCard
from recallcore.session import ReviewSession, SessionState

logger = logging.getLogger(__name__)
console = Console()


def format_interval(interval: timedelta) -> str:
    """Human-readable length of a scheduling interval, e.g. '10 minutes' or '3 days'."""
    seconds = int(interval.total_seconds())
    if seconds < 3600:
        value, unit = max(1, round(seconds / 60)), "minute"
    elif seconds < 86400:
        value, unit = round(seconds / 3600), "hour"
    else:
        value, unit = interval.days, "day"
    return f"{value} {unit}{'' if value == 1 else 's'}"


def _get_user_grade() -> Grade:
    """
    Prompt until the user enters a valid grade (1-4 or a grade name).

    Returns:
        Grade: The grade entered.
    """
    while True:
        grade_str = console.input(
            "[bold]Rating (1:Again, 2:Hard, 3:Good, 4:Easy): [/bold]"
        )
        try:
            return coerce_grade(grade_str)
        except InvalidGradeError:
            console.print(
                "[bold red]Invalid rating. Please enter a number between 1 and 4.[/bold red]"
            )


def _display_card(card: DueCard) -> None:
    """Show a card's front, wait for Enter, then reveal the back."""
    record = card.record if isinstance(card.record, dict) else {}
    console.print(Panel(str(record.get("front", "")), title="Front", border_style="green"))
    console.input("[italic]Press Enter to see the back...[/italic]")
    console.print(Panel(str(record.get("back", "")), title="Back", border_style="blue"))


def start_review_flow(
    session: ReviewSession, now: Optional[datetime] = None
) -> None:
    """
    Runs an interactive review session in the terminal.

    Args:
        session: A ReviewSession that has not been started yet.
        now: Session start time used to select due cards; defaults to now.
    """
    console.print("[bold cyan]Starting review session...[/bold cyan]")
    state = session.start(now)

    if state == SessionState.ERROR:
        console.print(f"[bold red]Could not load cards: {session.error}[/bold red]")
        return
    if state == SessionState.EMPTY:
        console.print("[bold yellow]No cards are due for review.[/bold yellow]")
        console.print("[bold cyan]Review session finished.[/bold cyan]")
        return

    total = session.progress.total
    while (card := session.current_card) is not None:
        console.rule(f"[bold]Card {session.current_index + 1} of {total}[/bold]")
        _display_card(card)
        session.show_answer()
        grade = _get_user_grade()

        try:
            outcome = session.rate(grade)
        except RecallcoreError as e:
            logger.error(f"Failed to submit review for {card.card_id}: {e}")
            console.print(
                f"[bold red]Error submitting review: {e}. Review session stopped.[/bold red]"
            )
            return

        due_str = outcome.due.strftime("%Y-%m-%d %H:%M")
        console.print(
            f"[green]Reviewed.[/green] Next due in "
            f"[bold]{format_interval(outcome.scheduled_interval)}[/bold] on {due_str} UTC."
        )
        console.print("")

    progress = session.progress
    tally = ", ".join(
        f"{grade.name}: {count}" for grade, count in progress.grade_counts.items()
    )
    console.print(f"Reviewed [bold]{progress.reviewed}[/bold] cards ({tally}).")
    console.print("[bold cyan]Review session finished. Well done![/bold cyan]")
