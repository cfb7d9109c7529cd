"""
Cookie Consent Service

Single entry point for saving, retracting and querying a visitor's cookie
consent. Combines the cookie codec with the audit storage; HTTP handlers
never talk to either directly.

A service instance is built per request together with a
``ConsentCookieCache`` holding that request's cookie, so the cookie is
decoded at most once however many times templates or handlers ask.
"""

import logging
import uuid as uuid_lib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from cookie_consent.config import Settings, settings
from cookie_consent.schemas.consent import CategoryDefinition, ConsentCookiePayload
from cookie_consent.services import cookie_codec
from cookie_consent.services.storage_service import ConsentStorageService
from cookie_consent.utils.relative_time import resolve_offset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedCookie:
    """A consent cookie ready to be attached to a response."""

    name: str
    value: str
    expires: datetime
    uuid: str
    path: str = "/"
    domain: str | None = None
    httponly: bool = True
    samesite: str = "lax"


@dataclass(frozen=True)
class CookieDeletion:
    """Instructions for clearing the consent cookie on a response."""

    name: str
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class ConsentCookieCache:
    """Request-scoped memo of the decoded consent cookie."""

    def __init__(self, raw_value: str | None = None):
        self.raw_value = raw_value
        self._payload: ConsentCookiePayload | None = None
        self._decoded = False

    @property
    def payload(self) -> ConsentCookiePayload | None:
        if not self._decoded:
            self._payload = cookie_codec.decode(self.raw_value)
            self._decoded = True
        return self._payload

    def replace(self, raw_value: str | None) -> None:
        self.raw_value = raw_value
        self._payload = None
        self._decoded = False

    def clear(self) -> None:
        self.replace(None)


class CookieConsentService:
    """Orchestrates consent cookie and audit record operations"""

    def __init__(
        self,
        storage: ConsentStorageService,
        cache: ConsentCookieCache,
        categories: list[CategoryDefinition],
        expiration: str,
        version: int,
        theme_mode: str = "auto",
        domain: str | None = None,
    ):
        self.storage = storage
        self.cache = cache
        self.categories = categories
        self.expiration = expiration
        self.version = version
        self.theme_mode = theme_mode
        self.domain = domain

    @classmethod
    def from_settings(
        cls,
        storage: ConsentStorageService,
        cache: ConsentCookieCache,
        config: Settings = settings,
    ) -> "CookieConsentService":
        return cls(
            storage=storage,
            cache=cache,
            categories=config.consent_categories,
            expiration=config.consent_expiration,
            version=config.consent_version,
            theme_mode=config.consent_theme_mode,
            domain=config.consent_domain,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def apply_required_categories(self, raw_decision: Mapping[str, Any]) -> dict[str, str]:
        """Encode a submitted decision, forcing every required category to accepted."""
        decision = {str(name): cookie_codec.encode_acceptance(value) for name, value in raw_decision.items()}
        for category in self.categories:
            if category.required:
                decision[category.name] = "true"
        return decision

    async def save_consent(
        self,
        raw_decision: Mapping[str, Any],
        client_ip: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> EncodedCookie:
        """
        Record a new consent decision.

        Every call is a new consent event: a fresh uuid, a new cookie value
        and one new audit record, even when the decision repeats an earlier one.

        Raises:
            DatabaseError: If the audit record could not be stored
        """
        now = now or datetime.now(timezone.utc)
        decision = self.apply_required_categories(raw_decision)
        consent_uuid = str(uuid_lib.uuid4())
        expiration_date = resolve_offset(self.expiration, cookie_codec.to_naive_utc(now))

        cookie_value = cookie_codec.encode(decision, consent_uuid, now, self.expiration, self.version)

        await self.storage.save_consent(
            uuid=consent_uuid,
            consent_data=decision,
            consent_date=now,
            expiration_date=expiration_date,
            ip=client_ip,
            version=self.version,
            user_agent=user_agent,
        )
        self.cache.replace(cookie_value)

        return EncodedCookie(
            name=cookie_codec.COOKIE_NAME,
            value=cookie_value,
            expires=expiration_date.replace(tzinfo=timezone.utc),
            uuid=consent_uuid,
            domain=self.domain,
        )

    def retract_consent(self) -> CookieDeletion:
        """
        Withdraw consent on the client side.

        The audit trail is left untouched; only the cookie is cleared.
        """
        payload = self.cache.payload
        self.cache.clear()
        logger.info("Consent retracted: uuid=%s", payload.uuid if payload else None)
        return CookieDeletion(name=cookie_codec.COOKIE_NAME, domain=self.domain)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_consent_given(self, now: datetime | None = None) -> bool:
        return cookie_codec.is_valid(self.cache.payload, self.version, now or datetime.now(timezone.utc))

    def is_category_accepted(self, categories: str | Iterable[str], now: datetime | None = None) -> bool:
        return cookie_codec.is_category_accepted(
            self.cache.payload,
            categories,
            self.version,
            now or datetime.now(timezone.utc),
        )

    def get_categories(self) -> list[CategoryDefinition]:
        return self.categories

    def get_theme_mode(self) -> str:
        return self.theme_mode

    def get_cookie_name(self) -> str:
        return cookie_codec.COOKIE_NAME

    def get_current_version(self) -> int:
        return self.version

    def get_consent_cookie(self) -> ConsentCookiePayload | None:
        return self.cache.payload

    def get_consent_datetime(self) -> str | None:
        payload = self.cache.payload
        return payload.datetime if payload else None

    def get_consent_expiration(self) -> str | None:
        payload = self.cache.payload
        return payload.expiration if payload else None

    def get_consent_uuid(self) -> str | None:
        payload = self.cache.payload
        return payload.uuid if payload else None

    def get_consent_version(self) -> int | None:
        payload = self.cache.payload
        return payload.version if payload else None

    def get_consent_categories(self) -> dict[str, bool]:
        """Categories from the cookie with their string values turned into booleans."""
        payload = self.cache.payload
        if payload is None:
            return {}
        return {name: cookie_codec.parse_acceptance(value) for name, value in payload.consent_data.items()}
