"""
Consent Cookie Codec

Encodes and decodes the COOKIE_CONSENT payload and decides whether the
consent it carries is still valid.

Wire format (JSON object, keys in this order):
    uuid         consent event identifier, shared with the audit record
    datetime     consent timestamp, ``YYYY/MM/DD HH:MM:SS`` (UTC)
    expiration   expiry timestamp, same format
    version      policy version the visitor agreed to
    consentData  category name -> ``"true"`` / ``"false"``

Category values are strings, not JSON booleans: the banner script compares
them with ``=== 'true'``.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from cookie_consent.exceptions import ValidationError
from cookie_consent.schemas.consent import ConsentCookiePayload
from cookie_consent.utils.relative_time import resolve_offset

logger = logging.getLogger(__name__)

COOKIE_NAME = "COOKIE_CONSENT"
COOKIE_DATETIME_FORMAT = "%Y/%m/%d %H:%M:%S"

_TRUE_STRINGS = {"1", "true", "on", "yes"}


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_cookie_datetime(value: datetime) -> str:
    return to_naive_utc(value).strftime(COOKIE_DATETIME_FORMAT)


def parse_cookie_datetime(value: str) -> datetime:
    return datetime.strptime(value, COOKIE_DATETIME_FORMAT)


def encode_acceptance(value: Any) -> str:
    """
    Render a submitted acceptance value in its cookie form.

    None means not accepted. Only scalars are allowed on the wire.

    Raises:
        ValidationError: For mappings, lists and other composite values
    """
    if value is None:
        return "false"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValidationError(f"Unsupported consent value of type {type(value).__name__}", field="consentData")


def parse_acceptance(value: Any) -> bool:
    """Interpret a cookie acceptance value as a real boolean for display."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def encode(
    decision: Mapping[str, Any],
    uuid: str,
    now: datetime,
    expiration_offset: str,
    version: int,
) -> str:
    """
    Build the cookie value for a consent decision.

    Args:
        decision: Category name -> acceptance (booleans or their string form)
        uuid: Identifier of this consent event
        now: Consent time
        expiration_offset: Relative time expression, e.g. ``"+2 years"``
        version: Policy version in force

    Returns:
        Compact JSON string
    """
    expiration = resolve_offset(expiration_offset, to_naive_utc(now))
    payload = {
        "uuid": str(uuid),
        "datetime": format_cookie_datetime(now),
        "expiration": format_cookie_datetime(expiration),
        "version": version,
        "consentData": {name: encode_acceptance(value) for name, value in decision.items()},
    }
    return json.dumps(payload, separators=(",", ":"))


def decode(raw: str | None) -> ConsentCookiePayload | None:
    """
    Parse a cookie value.

    Returns None for an absent cookie, invalid JSON or a payload missing
    required fields; never raises.
    """
    if not raw:
        return None

    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        return ConsentCookiePayload.model_validate(data)
    except (ValueError, TypeError, PydanticValidationError) as e:
        logger.debug(f"Ignoring malformed consent cookie: {e}")
        return None


def is_valid(payload: ConsentCookiePayload | None, current_version: int, now: datetime) -> bool:
    """True while the payload matches the current policy version and has not expired."""
    if payload is None or payload.version != current_version:
        return False

    try:
        expiration = parse_cookie_datetime(payload.expiration)
    except ValueError:
        return False

    return expiration > to_naive_utc(now)


def is_category_accepted(
    payload: ConsentCookiePayload | None,
    category_names: str | Iterable[str],
    current_version: int,
    now: datetime,
) -> bool:
    """
    Check that every requested category is accepted.

    A category missing from the payload counts as accepted.
    """
    if not is_valid(payload, current_version, now):
        return False

    if isinstance(category_names, str):
        category_names = [category_names]

    for name in category_names:
        if name in payload.consent_data and payload.consent_data[name] != "true":
            return False
    return True
