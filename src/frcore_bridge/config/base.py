"""Base configuration settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from frcore_bridge.utils.date_formatting import offset_timezone


class Settings(BaseSettings):
    """Application settings.

    Values are read from the environment (prefix ``FRCORE_``) or a local
    ``.env`` file. None of them are needed for a default conversion.
    """

    model_config = SettingsConfigDict(
        env_prefix="FRCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "FR-Core HL7 Bridge"
    app_version: str = "1.0.0"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # Rule catalog
    catalog_path: Optional[str] = Field(
        default=None,
        description="JSON file replacing the embedded FR-Core rule catalog",
    )

    # Conversion
    utc_offset: str = Field(
        default="+02:00",
        description="Fixed offset appended to every converted date/time",
    )
    event_uri_base: str = "https://hl7.fr/ig/fhir/core"

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only console and json renderers exist."""
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @field_validator("utc_offset")
    @classmethod
    def validate_utc_offset(cls, v: str) -> str:
        """Offsets are written as +HH:MM or -HH:MM, strictly within a day."""
        if len(v) != 6 or v[0] not in "+-" or v[3] != ":":
            raise ValueError(f"Invalid UTC offset: {v}")
        if not v[1:3].isdigit() or not v[4:].isdigit() or int(v[4:]) > 59:
            raise ValueError(f"Invalid UTC offset: {v}")
        offset_timezone(v)
        return v
