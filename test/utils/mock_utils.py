"""
Mock utilities for creating test data

Provides helper functions for creating consent records and cookie values.
"""

import uuid as uuid_lib
from datetime import datetime, timedelta, timezone

from cookie_consent.models.consent_record import ConsentRecord
from cookie_consent.services import cookie_codec


async def create_test_consent_record(
    db_session,
    consent_date: datetime,
    consent_data: dict | None = None,
    ip: str | None = "127.0.0.1",
    user_agent: str | None = "pytest-agent",
    version: int = 1,
    consent_uuid: str | None = None,
):
    """Create a consent record dated at consent_date"""
    record = ConsentRecord(
        uuid=consent_uuid or str(uuid_lib.uuid4()),
        consent_data=consent_data if consent_data is not None else {"technical": "true", "analytics": "false"},
        consent_date=consent_date,
        expiration_date=consent_date + timedelta(days=730),
        ip=ip,
        user_agent=user_agent,
        version=version,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


def create_test_cookie(
    decision: dict | None = None,
    now: datetime | None = None,
    expiration: str = "+2 years",
    version: int = 1,
    consent_uuid: str = "6f1c2d3e-0000-4000-8000-000000000001",
) -> str:
    """Encode a consent cookie value as the browser would send it back"""
    return cookie_codec.encode(
        decision if decision is not None else {"technical": "true", "analytics": "true", "marketing": "false"},
        consent_uuid,
        now or datetime.now(timezone.utc),
        expiration,
        version,
    )
