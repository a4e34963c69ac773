"""
CLI entry point for vocabcore.
"""

# Standard library imports
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Third-party imports
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

# Local application imports
from vocabcore.catalog import YAMLCatalog
from vocabcore.config import settings
from vocabcore.db.database import ProgressDatabase
from vocabcore.exceptions import CatalogLoadError, DatabaseError, SchedulerError
from vocabcore.queue import build_queues
from vocabcore.study_session import StudySession
from vocabcore.today_stats import (
    calculate_daily_stats,
    remaining_new_cards,
    remaining_reviews,
)
from vocabcore.cli.review_ui import start_study_flow


console = Console()

app = typer.Typer(
    name="vocabcore",
    help="vocabcore: SM-2 spaced repetition for vocabulary.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers for resolving paths and learner from flags or VOCABCORE_* settings
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    return db if db is not None else settings.db_path


def _resolve_catalog_path(catalog: Optional[Path]) -> Path:
    """Resolve catalog path from CLI flag or VOCABCORE_CATALOG_PATH. Exits on missing."""
    if catalog is not None:
        return catalog
    if settings.catalog_path is not None:
        return settings.catalog_path
    console.print(
        "[bold red]Error: --catalog is required "
        "(or set the VOCABCORE_CATALOG_PATH environment variable).[/bold red]"
    )
    raise typer.Exit(code=1)


def _resolve_learner(learner: Optional[str]) -> str:
    return learner or settings.learner_id


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB progress database. "
    "Falls back to VOCABCORE_DB_PATH.",
)

_catalog_option = typer.Option(  # noqa: B008
    None,
    "--catalog",
    help="YAML vocabulary catalog. Falls back to VOCABCORE_CATALOG_PATH.",
)

_learner_option = typer.Option(  # noqa: B008
    None,
    "--learner",
    help="Learner id. Falls back to VOCABCORE_LEARNER_ID.",
)

_level_option = typer.Option(  # noqa: B008
    None,
    "--level",
    help="Only study catalog items of this level.",
)

_verbose_option = typer.Option(  # noqa: B008
    False,
    "--verbose",
    "-v",
    help="Show scheduler debug logging.",
)


# ---------------------------------------------------------------------------
# Study command
# ---------------------------------------------------------------------------


@app.command()
def study(
    catalog: Optional[Path] = _catalog_option,
    db: Optional[Path] = _db_option,
    learner: Optional[str] = _learner_option,
    level: Optional[str] = _level_option,
    verbose: bool = _verbose_option,
):
    """
    Start an interactive study session: learning cards first, then due
    reviews, then new cards, within today's limits.
    """
    _configure_logging(verbose)
    catalog_path = _resolve_catalog_path(catalog)
    db_path = _resolve_db_path(db)

    try:
        with ProgressDatabase(db_path=db_path) as db_inst:
            session = StudySession(
                catalog=YAMLCatalog(catalog_path),
                repository=db_inst,
                learner_id=_resolve_learner(learner),
                options=settings.options,
                level=level,
                day_key_fn=settings.day_key_fn(),
            )
            start_study_flow(session)
    except (CatalogLoadError, DatabaseError, SchedulerError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Stats command
# ---------------------------------------------------------------------------


@app.command()
def stats(
    db: Optional[Path] = _db_option,
    learner: Optional[str] = _learner_option,
    verbose: bool = _verbose_option,
):
    """Show today's counters, remaining quota and cards per state."""
    _configure_logging(verbose)
    learner_id = _resolve_learner(learner)
    options = settings.options

    try:
        with ProgressDatabase(db_path=_resolve_db_path(db)) as db_inst:
            records = db_inst.list(learner_id)
            state_counts = db_inst.get_state_counts(learner_id)
    except (DatabaseError, SchedulerError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    today = calculate_daily_stats(
        records, datetime.now(timezone.utc), settings.day_key_fn()
    )

    table = Table(title=f"Study day {today.date_key} ({learner_id})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="magenta")
    table.add_row("New introduced today", str(today.new_introduced_today))
    table.add_row("Reviews done today", str(today.reviews_done_today))
    table.add_row("New remaining", str(remaining_new_cards(today, options)))
    table.add_row("Reviews remaining", str(remaining_reviews(today, options)))
    for state_name, count in state_counts.items():
        if state_name != "New":
            table.add_row(f"Cards in {state_name}", str(count))
    console.print(table)


# ---------------------------------------------------------------------------
# Queues command
# ---------------------------------------------------------------------------


@app.command()
def queues(
    catalog: Optional[Path] = _catalog_option,
    db: Optional[Path] = _db_option,
    learner: Optional[str] = _learner_option,
    level: Optional[str] = _level_option,
    verbose: bool = _verbose_option,
):
    """Show what is available to study right now."""
    _configure_logging(verbose)
    catalog_path = _resolve_catalog_path(catalog)
    learner_id = _resolve_learner(learner)
    now = datetime.now(timezone.utc)

    try:
        items = YAMLCatalog(catalog_path).list_items(level=level)
        with ProgressDatabase(db_path=_resolve_db_path(db)) as db_inst:
            records = db_inst.list(learner_id)
    except (CatalogLoadError, DatabaseError, SchedulerError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    study_queues = build_queues(items, records, now, settings.options)

    table = Table(title=f"Queues for {learner_id}")
    table.add_column("Queue", style="cyan")
    table.add_column("Cards", justify="right", style="magenta")
    table.add_row("Learning (intraday, due)", str(len(study_queues.intraday_learning)))
    table.add_row("Learning (interday, due)", str(len(study_queues.interday_learning)))
    table.add_row("Reviews due", str(len(study_queues.review_due)))
    table.add_row("New (unseen)", str(study_queues.total_unseen))
    table.add_row("Learning (total)", str(study_queues.total_learning))
    console.print(table)

    if study_queues.next_learning_card is not None:
        console.print(
            f"Next learning card in [bold]{study_queues.next_learning_card.minutes_until_due}[/bold] minutes."  # noqa: E501
        )


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
