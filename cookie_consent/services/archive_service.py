"""
Archive Service

Moves aged consent records out of the database: selects every record
consented before a cutoff, writes them to a static export (log, CSV or HTML)
and then deletes exactly that record set in one commit.

Run order is fixed: fetch, export, delete. Nothing is deleted unless the
export file was written completely.
"""

import csv
import html
import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from cookie_consent.exceptions import ArchiveExportError, UnsupportedFormatError, ValidationError
from cookie_consent.models.consent_record import ConsentRecord
from cookie_consent.services.storage_service import ConsentStorageService
from cookie_consent.utils.relative_time import resolve_offset

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ["log", "csv", "html"]

# Column order shared by every export writer and the dry-run listing
ARCHIVE_FIELDS = (
    "id",
    "consent_data",
    "consent_date",
    "expiration_date",
    "ip",
    "user_agent",
    "uuid",
    "version",
)

# Export header per field, in the audit entity's property naming
EXPORT_HEADERS = (
    "id",
    "consentData",
    "consentDate",
    "expirationDate",
    "ip",
    "userAgent",
    "uuid",
    "version",
)

EXPORT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
RANGE_DATE_FORMAT = "%Y-%m-%d"
RUN_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
ARCHIVE_DIRECTORY = Path("var") / "cookie-consent"

# Interactive cutoff menu; "Today" reaches into tomorrow so today's records qualify
CUTOFF_CHOICES = {
    "Today": "+1 day",
    "1 week ago": "-1 week",
    "1 month ago": "-1 month",
    "6 months ago": "-6 months",
    "12 months ago": "-12 months",
    "24 months ago": "-24 months",
}
DEFAULT_CUTOFF_CHOICE = "1 week ago"
DEFAULT_OUTPUT_FORMAT = "log"


class ArchiveStatus(str, Enum):
    EMPTY = "empty"
    DRY_RUN = "dry_run"
    ARCHIVED = "archived"


@dataclass
class ArchiveResult:
    """Outcome of one archive run"""

    status: ArchiveStatus
    cutoff: datetime
    records: list[ConsentRecord] = field(default_factory=list)
    oldest_date: str | None = None
    newest_date: str | None = None
    output_format: str | None = None
    export_path: Path | None = None
    deleted_count: int = 0

    @property
    def record_count(self) -> int:
        return len(self.records)


class ArchiveReporter:
    """Progress hooks for an archive run; the default implementation is silent."""

    def records_found(self, result: ArchiveResult) -> None:
        pass

    def export_started(self, path: Path, total: int) -> None:
        pass

    def record_exported(self) -> None:
        pass

    def export_finished(self, path: Path) -> None:
        pass

    def records_deleted(self, count: int) -> None:
        pass


# ============================================================================
# Value formatting
# ============================================================================


def stringify_value(value: Any) -> str:
    """
    Render one field value for export.

    Datetimes use ``YYYY-MM-DD HH:MM:SS``, mappings and sequences their JSON
    text, other objects their own string form when they define one and JSON
    otherwise. None becomes an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(EXPORT_DATETIME_FORMAT)
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    if type(value).__str__ is not object.__str__:
        return str(value)
    return json.dumps(value, default=str)


def record_row(record: ConsentRecord) -> list[str]:
    return [stringify_value(getattr(record, name)) for name in ARCHIVE_FIELDS]


def get_date_range(records: Sequence[ConsentRecord]) -> tuple[str, str]:
    """Oldest and newest consent dates among the records, as ``YYYY-MM-DD``."""
    dates = [record.consent_date.strftime(RANGE_DATE_FORMAT) for record in records]
    return min(dates), max(dates)


def parse_cutoff_date(value: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` cutoff into midnight of that day."""
    try:
        return datetime.combine(date.fromisoformat(value.strip()), time.min)
    except ValueError as e:
        raise ValidationError(f"Invalid date '{value}', expected format YYYY-MM-DD", field="date") from e


def resolve_cutoff_choice(choice: str, now: datetime | None = None) -> datetime:
    """Turn an interactive menu choice into a concrete cutoff date."""
    if choice not in CUTOFF_CHOICES:
        raise ValidationError(f"Invalid date choice '{choice}'", field="date")
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    return datetime.combine(resolve_offset(CUTOFF_CHOICES[choice], now).date(), time.min)


def validate_output_format(output_format: str) -> str:
    if output_format not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(output_format, SUPPORTED_FORMATS)
    return output_format


def build_export_path(project_dir: Path, oldest: str, newest: str, output_format: str, started_at: datetime) -> Path:
    file_name = f"{oldest}-{newest}_exported_{started_at.strftime(RUN_TIMESTAMP_FORMAT)}.{output_format}"
    return Path(project_dir) / ARCHIVE_DIRECTORY / file_name


# ============================================================================
# Export writers
# ============================================================================


def write_log(handle: TextIO, rows: Iterable[list[str]]) -> None:
    handle.write(" | ".join(EXPORT_HEADERS) + "\n")
    for row in rows:
        handle.write(" | ".join(row) + "\n")


def write_csv(handle: TextIO, rows: Iterable[list[str]]) -> None:
    writer = csv.writer(handle)
    writer.writerow(EXPORT_HEADERS)
    for row in rows:
        writer.writerow(row)


def write_html(handle: TextIO, rows: Iterable[list[str]]) -> None:
    handle.write("<html><body><table border='1'>\n<tr>")
    handle.write("".join(f"<th>{html.escape(name)}</th>" for name in EXPORT_HEADERS))
    handle.write("</tr>\n")
    for row in rows:
        handle.write("<tr>" + "".join(f"<td>{html.escape(value)}</td>" for value in row) + "</tr>\n")
    handle.write("</table></body></html>")


EXPORT_WRITERS: dict[str, Callable[[TextIO, Iterable[list[str]]], None]] = {
    "log": write_log,
    "csv": write_csv,
    "html": write_html,
}


# ============================================================================
# Service
# ============================================================================


class ArchiveService:
    """Export-then-purge of aged consent records"""

    def __init__(
        self,
        storage: ConsentStorageService,
        project_dir: Path,
        reporter: ArchiveReporter | None = None,
    ):
        self.storage = storage
        self.project_dir = Path(project_dir)
        self.reporter = reporter or ArchiveReporter()

    def export_records(self, records: Sequence[ConsentRecord], output_format: str, path: Path) -> Path:
        """
        Write records to ``path`` in the given format.

        Raises:
            ArchiveExportError: If the directory or file could not be written
        """
        writer = EXPORT_WRITERS[validate_output_format(output_format)]
        self.reporter.export_started(path, len(records))

        def rows() -> Iterable[list[str]]:
            for record in records:
                yield record_row(record)
                self.reporter.record_exported()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8", newline="") as handle:
                writer(handle, rows())
        except OSError as e:
            logger.error(f"Archive export to {path} failed: {e}")
            raise ArchiveExportError(str(path), str(e)) from e

        self.reporter.export_finished(path)
        return path

    async def run(
        self,
        cutoff: datetime,
        output_format: str | None = None,
        dry_run: bool = False,
        choose_format: Callable[[], str] | None = None,
        started_at: datetime | None = None,
    ) -> ArchiveResult:
        """
        Archive every record consented before ``cutoff``.

        Args:
            cutoff: Records with an earlier consent date are selected
            output_format: ``log``, ``csv`` or ``html``; asked via ``choose_format`` when omitted
            dry_run: Only list the selected records
            choose_format: Called to pick a format when none was given
            started_at: Run timestamp used in the export file name

        Raises:
            UnsupportedFormatError: Before anything is written or deleted
            ArchiveExportError: Export failed; no records were deleted
            DatabaseError: Fetch or delete failed
        """
        started_at = started_at or datetime.now(timezone.utc).replace(tzinfo=None)
        if output_format is not None and not dry_run:
            validate_output_format(output_format)

        records = await self.storage.fetch_before(cutoff)
        result = ArchiveResult(status=ArchiveStatus.EMPTY, cutoff=cutoff, records=records)
        if not records:
            logger.info("Archive: no consent records before %s", cutoff.date())
            return result

        result.oldest_date, result.newest_date = get_date_range(records)
        self.reporter.records_found(result)

        if dry_run:
            result.status = ArchiveStatus.DRY_RUN
            logger.info(
                "Archive dry run: %d records from %s to %s",
                len(records),
                result.oldest_date,
                result.newest_date,
            )
            return result

        if output_format is None:
            output_format = choose_format() if choose_format else DEFAULT_OUTPUT_FORMAT
        result.output_format = validate_output_format(output_format)

        path = build_export_path(self.project_dir, result.oldest_date, result.newest_date, output_format, started_at)
        result.export_path = self.export_records(records, output_format, path)

        result.deleted_count = await self.storage.delete_records(records)
        self.reporter.records_deleted(result.deleted_count)
        result.status = ArchiveStatus.ARCHIVED

        logger.info(
            "Archive: exported %d records (%s to %s) to %s, deleted %d",
            len(records),
            result.oldest_date,
            result.newest_date,
            result.export_path,
            result.deleted_count,
        )
        return result
