from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cookie_consent.schemas.consent import CategoryDefinition
from cookie_consent.utils.relative_time import parse_offset

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Cookie Consent"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # Cookie consent settings
    consent_categories: list[CategoryDefinition] = [
        CategoryDefinition(name="technical", required=True),
        CategoryDefinition(name="analytics"),
        CategoryDefinition(name="marketing"),
    ]
    consent_domain: str | None = None
    consent_expiration: str = "+2 years"
    consent_theme_mode: Literal["light", "dark", "auto"] = "auto"
    consent_version: int = 1

    # Archive settings
    project_dir: Path = Path.cwd()
    archive_schedule_enabled: bool = False
    archive_retention_days: int = 730
    archive_interval_hours: int = 24
    archive_output_format: Literal["log", "csv", "html"] = "csv"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("consent_categories")
    @classmethod
    def validate_unique_category_names(cls, categories: list[CategoryDefinition]) -> list[CategoryDefinition]:
        names = [category.name for category in categories]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate cookie category names: {', '.join(duplicates)}")
        return categories

    @field_validator("consent_expiration")
    @classmethod
    def validate_expiration(cls, expression: str) -> str:
        parse_offset(expression)
        return expression


settings = Settings()
