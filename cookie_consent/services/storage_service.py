"""
Consent Storage Service

Persists cookie consent audit records and serves the archive job's
date-range queries. All methods are async and use the injected AsyncSession;
each write is committed as its own transaction.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cookie_consent.exceptions import DatabaseError
from cookie_consent.models.consent_record import USER_AGENT_MAX_LENGTH, ConsentRecord
from cookie_consent.services.cookie_codec import to_naive_utc

logger = logging.getLogger(__name__)

# Keeps IN (...) lists below common bind-parameter limits
DELETE_BATCH_SIZE = 500


class ConsentStorageService:
    """Audit trail of consent events"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_consent(
        self,
        uuid: str,
        consent_data: dict[str, Any],
        consent_date: datetime,
        expiration_date: datetime,
        ip: str | None,
        version: int,
        user_agent: str | None,
    ) -> ConsentRecord:
        """
        Insert one consent record.

        Raises:
            DatabaseError: If the record could not be stored
        """
        record = ConsentRecord(
            uuid=str(uuid),
            consent_data=dict(consent_data),
            consent_date=to_naive_utc(consent_date),
            expiration_date=to_naive_utc(expiration_date),
            ip=ip,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent is not None else None,
            version=version,
        )
        try:
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store consent record {uuid}: {e}")
            raise DatabaseError("Failed to store consent record", operation="save_consent") from e

        logger.info("Consent recorded: uuid=%s version=%d", record.uuid, record.version)
        return record

    async def get_by_uuid(self, uuid: str) -> ConsentRecord | None:
        """Return the consent record matching a cookie uuid, if any."""
        try:
            result = await self.db.execute(select(ConsentRecord).where(ConsentRecord.uuid == str(uuid)))
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load consent record", operation="get_by_uuid") from e
        return result.scalars().first()

    async def fetch_before(self, cutoff: datetime) -> list[ConsentRecord]:
        """Return all records with a consent date strictly before ``cutoff``, oldest first."""
        try:
            result = await self.db.execute(
                select(ConsentRecord)
                .where(ConsentRecord.consent_date < to_naive_utc(cutoff))
                .order_by(ConsentRecord.consent_date, ConsentRecord.id)
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch consent records before {cutoff}: {e}")
            raise DatabaseError("Failed to fetch consent records", operation="fetch_before") from e
        return list(result.scalars().all())

    async def delete_records(self, records: Sequence[ConsentRecord]) -> int:
        """
        Delete exactly the given records in a single commit.

        Returns:
            Number of deleted rows
        """
        ids = [record.id for record in records]
        if not ids:
            return 0

        deleted = 0
        try:
            for start in range(0, len(ids), DELETE_BATCH_SIZE):
                batch = ids[start : start + DELETE_BATCH_SIZE]
                result = await self.db.execute(delete(ConsentRecord).where(ConsentRecord.id.in_(batch)))
                deleted += result.rowcount
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete {len(ids)} archived consent records: {e}")
            raise DatabaseError("Failed to delete archived consent records", operation="delete_records") from e

        logger.info("Deleted %d archived consent records", deleted)
        return deleted
