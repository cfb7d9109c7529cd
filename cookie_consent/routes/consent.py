"""
Cookie Consent Routes

Endpoints used by the consent banner script:
- Save a consent decision (sets the COOKIE_CONSENT cookie)
- Retract consent (clears the cookie, keeps the audit trail)
- Read the current consent state
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from cookie_consent.database import get_db
from cookie_consent.exceptions import ConsentProcessingError, ValidationError
from cookie_consent.schemas.consent import ConsentSaveResponse, ConsentStatusResponse, StatusResponse
from cookie_consent.services.consent_service import ConsentCookieCache, CookieConsentService
from cookie_consent.services.cookie_codec import COOKIE_NAME
from cookie_consent.services.storage_service import ConsentStorageService

router = APIRouter(tags=["Cookie Consent"])

logger = logging.getLogger(__name__)


def get_consent_cache(request: Request) -> ConsentCookieCache:
    """Return the consent cookie cache for this request, creating it on first use."""
    cache = getattr(request.state, "consent_cache", None)
    if cache is None:
        cache = ConsentCookieCache(request.cookies.get(COOKIE_NAME))
        request.state.consent_cache = cache
    return cache


def get_consent_service(
    db: AsyncSession = Depends(get_db),
    cache: ConsentCookieCache = Depends(get_consent_cache),
) -> CookieConsentService:
    return CookieConsentService.from_settings(ConsentStorageService(db), cache)


async def _read_decision(request: Request) -> dict[str, Any]:
    """Read the submitted category decisions from a form or JSON body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        data = await request.json()
        if not isinstance(data, dict):
            raise ValidationError("Consent data must be a JSON object", field="body")
        return data

    form = await request.form()
    return dict(form)


@router.post("/cookie-consent", response_model=ConsentSaveResponse)
async def save_consent(
    request: Request,
    response: Response,
    service: CookieConsentService = Depends(get_consent_service),
) -> ConsentSaveResponse:
    """
    Save the visitor's cookie consent.

    Required categories are always stored as accepted. Responds with the
    encoded cookie value so the banner can update without a reload.
    Malformed submissions are answered with 400; every other failure with
    the generic 500.
    """
    try:
        decision = await _read_decision(request)
        cookie = await service.save_consent(
            decision,
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Error processing cookie consent: {e}")
        raise ConsentProcessingError() from e

    response.set_cookie(
        key=cookie.name,
        value=cookie.value,
        expires=cookie.expires,
        path=cookie.path,
        domain=cookie.domain,
        httponly=cookie.httponly,
        samesite=cookie.samesite,
    )
    return ConsentSaveResponse(cookie_value=cookie.value)


@router.post("/retract-consent", response_model=StatusResponse)
async def retract_consent(
    response: Response,
    service: CookieConsentService = Depends(get_consent_service),
) -> StatusResponse:
    """Clear the consent cookie. Stored consent records are not modified."""
    try:
        deletion = service.retract_consent()
    except Exception as e:
        logger.error(f"Error retracting cookie consent: {e}")
        raise ConsentProcessingError() from e

    response.delete_cookie(
        key=deletion.name,
        path=deletion.path,
        domain=deletion.domain,
        secure=deletion.secure,
        httponly=deletion.httponly,
        samesite=deletion.samesite,
    )
    return StatusResponse()


@router.get("/cookie-consent", response_model=ConsentStatusResponse)
async def get_consent_status(
    service: CookieConsentService = Depends(get_consent_service),
) -> ConsentStatusResponse:
    """Current consent state for banner rendering and client scripts."""
    consent_given = service.is_consent_given()
    return ConsentStatusResponse(
        consent_given=consent_given,
        show_banner=not consent_given,
        cookie_name=service.get_cookie_name(),
        theme_mode=service.get_theme_mode(),
        current_version=service.get_current_version(),
        categories=service.get_categories(),
        uuid=service.get_consent_uuid(),
        datetime=service.get_consent_datetime(),
        expiration=service.get_consent_expiration(),
        version=service.get_consent_version(),
        consent_categories=service.get_consent_categories(),
    )
