"""
Scheduled Archival

Runs the consent archive job as a recurring APScheduler job, so aged
consent records are exported and purged without an operator running the
CLI. Disabled unless ARCHIVE_SCHEDULE_ENABLED is set.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cookie_consent import database
from cookie_consent.exceptions import CookieConsentException
from cookie_consent.services.archive_service import ArchiveService
from cookie_consent.services.storage_service import ConsentStorageService

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)


async def archive_old_consents(retention_days: int, output_format: str, project_dir: Path) -> int:
    """
    Archive consent records older than retention_days.

    Opens its own DB session. Returns the count of archived records, or 0
    on failure; export files written before a failure are left in place.
    """
    cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=retention_days)

    async with database.AsyncSessionLocal() as db:
        service = ArchiveService(ConsentStorageService(db), project_dir)
        try:
            result = await service.run(cutoff, output_format=output_format)
        except CookieConsentException as exc:
            logger.warning("consent_archive: run failed: %s", exc.message)
            return 0
    return result.deleted_count


def install_archive_policy(
    scheduler,
    retention_days: int,
    output_format: str,
    project_dir: Path,
    interval_hours: int = 24,
) -> None:
    """
    Register the consent archive job with the shared APScheduler instance.

    Args:
        scheduler: The application's AsyncIOScheduler.
        retention_days: Consent records older than this many days are archived.
        output_format: Export format for archived records.
        project_dir: Install root; exports go to <project_dir>/var/cookie-consent.
        interval_hours: How often to run (default: once daily).
    """
    scheduler.add_job(
        archive_old_consents,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[retention_days, output_format, project_dir],
        id="consent_archive",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "consent_archive: installed (retention=%d days, format=%s, interval=%dh)",
        retention_days,
        output_format,
        interval_hours,
    )
