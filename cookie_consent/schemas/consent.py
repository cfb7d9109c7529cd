from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CategoryDefinition(BaseModel):
    """A configured cookie category."""

    name: str
    required: bool = False


class ConsentCookiePayload(BaseModel):
    """
    Decoded contents of the COOKIE_CONSENT cookie.

    Timestamps stay in their wire form (``YYYY/MM/DD HH:MM:SS``) and the
    category map keeps the ``"true"``/``"false"`` strings the client script
    compares against.
    """

    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    datetime: str
    expiration: str
    version: int = Field(strict=True)
    consent_data: dict[str, Any] = Field(default_factory=dict, alias="consentData")

    @field_validator("consent_data", mode="before")
    @classmethod
    def empty_list_as_empty_map(cls, value: Any) -> Any:
        # An empty decision may be serialized as a JSON array
        if isinstance(value, list) and not value:
            return {}
        return value


class ConsentSaveResponse(BaseModel):
    status: str = "success"
    cookie_value: str = Field(serialization_alias="cookieValue")


class StatusResponse(BaseModel):
    status: str = "success"


class ConsentStatusResponse(BaseModel):
    """Consent state exposed to client scripts and page rendering."""

    consent_given: bool = Field(serialization_alias="consentGiven")
    show_banner: bool = Field(serialization_alias="showBanner")
    cookie_name: str = Field(serialization_alias="cookieName")
    theme_mode: str = Field(serialization_alias="themeMode")
    current_version: int = Field(serialization_alias="currentVersion")
    categories: list[CategoryDefinition]
    uuid: str | None = None
    datetime: str | None = None
    expiration: str | None = None
    version: int | None = None
    consent_categories: dict[str, bool] = Field(default_factory=dict, serialization_alias="consentCategories")
