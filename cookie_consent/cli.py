"""
Cookie consent command line interface.

    cookie-consent archive [--date YYYY-MM-DD] [--output-format log|csv|html] [--dry-run]

Archives consent records older than a cutoff date into
<project-dir>/var/cookie-consent/ and deletes them from the database.
Missing options are asked for interactively.
"""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress
from rich.table import Table
from rich.text import Text

from cookie_consent import database
from cookie_consent.config import settings
from cookie_consent.exceptions import CookieConsentException
from cookie_consent.middleware.logging import setup_structured_logging
from cookie_consent.services.archive_service import (
    ARCHIVE_DIRECTORY,
    CUTOFF_CHOICES,
    DEFAULT_CUTOFF_CHOICE,
    DEFAULT_OUTPUT_FORMAT,
    EXPORT_HEADERS,
    SUPPORTED_FORMATS,
    ArchiveReporter,
    ArchiveResult,
    ArchiveService,
    ArchiveStatus,
    parse_cutoff_date,
    record_row,
    resolve_cutoff_choice,
)
from cookie_consent.services.storage_service import ConsentStorageService

logger = logging.getLogger(__name__)


class ConsoleArchiveReporter(ArchiveReporter):
    """Reports archive progress on a rich console."""

    def __init__(self, console: Console, dry_run: bool = False):
        self.console = console
        self.dry_run = dry_run
        self._progress: Progress | None = None
        self._task = None

    def records_found(self, result: ArchiveResult) -> None:
        if self.dry_run:
            self.console.print(
                f"[cyan]Dry run: The following records would be archived "
                f"(from {result.oldest_date} to {result.newest_date})[/cyan]"
            )
            self.console.print(records_table(result))

    def export_started(self, path: Path, total: int) -> None:
        self.console.print(f"[cyan]Archiving {total} records to {escape(str(path))}[/cyan]")
        self._progress = Progress(console=self.console)
        self._progress.start()
        self._task = self._progress.add_task("Exporting", total=total)

    def record_exported(self) -> None:
        if self._progress is not None:
            self._progress.advance(self._task)

    def export_finished(self, path: Path) -> None:
        self.close()
        self.console.print(
            f"[green]Records successfully written to {path.suffix.lstrip('.').upper()} file "
            f"in {escape(str(path.parent))} folder.[/green]"
        )

    def records_deleted(self, count: int) -> None:
        self.console.print(f"[green]{count} archived records successfully deleted from the database.[/green]")

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None


def records_table(result: ArchiveResult) -> Table:
    table = Table(title=f"Consent records before {result.cutoff:%Y-%m-%d}")
    for name in EXPORT_HEADERS:
        table.add_column(name, overflow="fold")
    for record in result.records:
        table.add_row(*(Text(value) for value in record_row(record)))
    return table


def ask_for_date() -> str:
    return click.prompt(
        "Please select a date range",
        type=click.Choice(list(CUTOFF_CHOICES)),
        default=DEFAULT_CUTOFF_CHOICE,
        show_choices=True,
    )


def ask_for_output_format() -> str:
    return click.prompt(
        "Please select an output format",
        type=click.Choice(SUPPORTED_FORMATS),
        default=DEFAULT_OUTPUT_FORMAT,
        show_choices=True,
    )


async def run_archive(
    cutoff: datetime,
    output_format: str | None,
    dry_run: bool,
    project_dir: Path,
    reporter: ArchiveReporter,
) -> ArchiveResult:
    try:
        async with database.AsyncSessionLocal() as db:
            service = ArchiveService(ConsentStorageService(db), project_dir, reporter)
            return await service.run(
                cutoff,
                output_format=output_format,
                dry_run=dry_run,
                choose_format=ask_for_output_format,
            )
    finally:
        await database.engine.dispose()


@click.group()
def cli() -> None:
    """Cookie consent management commands."""


@cli.command("archive")
@click.option("--date", "date_option", default=None, help="Date to archive records before (format: YYYY-MM-DD)")
@click.option("--output-format", default=None, help="Output format: log, csv or html")
@click.option("--dry-run", is_flag=True, help="Perform a dry run without modifying any data")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"Install root; exports are written to <project-dir>/{ARCHIVE_DIRECTORY.as_posix()}",
)
def archive(date_option: str | None, output_format: str | None, dry_run: bool, project_dir: Path | None) -> None:
    """Archive and delete old cookie consent records."""
    setup_structured_logging(settings.log_level, json_format=False)
    console = Console()
    reporter = ConsoleArchiveReporter(console, dry_run=dry_run)

    try:
        cutoff = parse_cutoff_date(date_option) if date_option else resolve_cutoff_choice(ask_for_date())
        result = asyncio.run(run_archive(cutoff, output_format, dry_run, project_dir or settings.project_dir, reporter))
    except CookieConsentException as e:
        reporter.close()
        logger.error(f"Archive failed: {e.message}")
        console.print(f"[red]{escape(e.message)}[/red]")
        sys.exit(1)

    if result.status == ArchiveStatus.EMPTY:
        console.print("[green]No records found to archive.[/green]")
    elif result.status == ArchiveStatus.ARCHIVED:
        console.print("[green]Records archived and deleted successfully.[/green]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
