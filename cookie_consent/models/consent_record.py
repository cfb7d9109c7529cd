"""
ConsentRecord model for cookie consent audit tracking.

Records each consent decision submitted through the cookie banner,
providing a timestamped trail that can be matched against the uuid
stored in the visitor's COOKIE_CONSENT cookie.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from cookie_consent.database import Base

USER_AGENT_MAX_LENGTH = 255


class ConsentRecord(Base):
    """
    One cookie consent event.

    Rows are append-only: every save creates a new row even when the
    decision repeats an earlier one. Retracting consent leaves rows untouched;
    only the archive job deletes them.
    """

    __tablename__ = "user_cookie_consent"

    id = Column(Integer, primary_key=True)
    consent_data = Column(JSON, nullable=False, default=dict)
    # Naive UTC timestamps
    consent_date = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
    )
    expiration_date = Column(DateTime, nullable=False)
    # IPv6 addresses can be up to 39 chars; 45 allows for mapped IPv4 addresses
    ip = Column(String(45), nullable=True)
    user_agent = Column(String(USER_AGENT_MAX_LENGTH), nullable=True)
    uuid = Column(String(36), nullable=False)
    version = Column(Integer, nullable=False)

    __table_args__ = (
        Index("uuid_idx", "uuid"),
        Index("idx_cookie_consent_date", "consent_date"),
    )

    def __repr__(self) -> str:
        return f"<ConsentRecord id={self.id} uuid={self.uuid} version={self.version}>"
