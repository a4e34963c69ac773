"""
Command-line study loop.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from vocabcore.exceptions import DatabaseError, SchedulerError
from vocabcore.models import Rating, VocabularyItem
from vocabcore.queue import SessionEndReason, SessionEndState, StudyQueues
from vocabcore.study_session import StudySession

logger = logging.getLogger(__name__)
console = Console()

END_MESSAGES = {
    SessionEndReason.LEARNING_PENDING: "No cards are due right now. Learning cards are waiting for their next step.",  # noqa: E501
    SessionEndReason.NEW_LIMIT_REACHED: "Daily new card limit reached.",
    SessionEndReason.REVIEW_LIMIT_REACHED: "Daily review limit reached.",
    SessionEndReason.BOTH_LIMITS_REACHED: "Daily new card and review limits reached.",  # noqa: E501
    SessionEndReason.ALL_DONE: "All done for today!",
}


def _get_user_rating() -> Rating:
    """
    Prompt until the user enters a valid rating between 1 and 4.
    """
    while True:
        rating_str = console.input(
            "[bold]Rating (1:Again, 2:Hard, 3:Good, 4:Easy): [/bold]"
        )
        try:
            return Rating.parse(int(rating_str))
        except ValueError:
            console.print(
                "[bold red]Invalid rating. Please enter a number between 1 and 4.[/bold red]"  # noqa: E501
            )


def _display_card(item: VocabularyItem) -> None:
    """Show the term, wait for Enter, then reveal the translation."""
    console.print(Panel(item.term, title="Term", border_style="green"))
    console.input("[italic]Press Enter to see the translation...[/italic]")
    back = item.translation
    if item.example:
        back = f"{back}\n\n[italic]{item.example}[/italic]"
    console.print(Panel(back, title="Translation", border_style="blue"))


def describe_due(due_at: Optional[datetime], now: datetime) -> str:
    """Human-friendly "in 10 minutes" / "in 3 days" text."""
    if due_at is None:
        return "now"
    seconds = (due_at - now).total_seconds()
    if seconds <= 0:
        return "now"
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    hours = round(seconds / 3600)
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    days = round(seconds / 86400)
    return f"in {days} day{'s' if days != 1 else ''} on {due_at:%Y-%m-%d}"


def describe_end_state(end_state: SessionEndState, queues: StudyQueues) -> str:
    message = END_MESSAGES.get(end_state.reason, end_state.reason)
    if (
        end_state.reason == SessionEndReason.LEARNING_PENDING
        and queues.next_learning_card is not None
    ):
        minutes = queues.next_learning_card.minutes_until_due
        message += f" Next card in {minutes} minute{'s' if minutes != 1 else ''}."
    return message


def start_study_flow(session: StudySession) -> int:
    """
    Runs the interactive study loop until no card is eligible.

    Returns:
        int: Number of cards rated.
    """
    console.print("[bold cyan]Starting study session...[/bold cyan]")
    session.start()

    rated_count = 0
    while (card := session.next_card()) is not None:
        rated_count += 1
        console.rule(f"[bold]Card {rated_count}[/bold] ({card.state.name})")

        _display_card(card.item)
        rating = _get_user_rating()

        try:
            record = session.submit_rating(card.id, rating)
        except (DatabaseError, SchedulerError) as e:
            logger.error(f"Failed to submit rating for {card.id}: {e}")
            console.print(
                f"[bold red]Error saving your rating: {e}. Ending session.[/bold red]"  # noqa: E501
            )
            return rated_count - 1

        due_text = describe_due(record.due_at, datetime.now(timezone.utc))
        console.print(f"[green]Rated.[/green] Next due [bold]{due_text}[/bold].")
        console.print("")

    end_state = session.end_state()
    console.print(
        f"[bold cyan]{describe_end_state(end_state, session.queues)}[/bold cyan]"
    )
    console.print(
        f"[bold cyan]Study session finished. {rated_count} cards rated.[/bold cyan]"
    )
    return rated_count
