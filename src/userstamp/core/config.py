"""Configuration management for userstamp.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once, the first
time it is needed, and is treated as immutable afterwards.
"""

from functools import lru_cache
from typing import Literal, NamedTuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StampAttributes(NamedTuple):
    """Column names used for the creator, updater and deleter stamps."""

    creator: str
    updater: str
    deleter: str


# Identifier-style names (compatibility mode off)
DEFAULT_ATTRIBUTES = StampAttributes("creator_id", "updater_id", "deleter_id")

# Descriptive names (compatibility mode on)
COMPATIBILITY_ATTRIBUTES = StampAttributes("created_by", "updated_by", "deleted_by")


class Settings(BaseSettings):
    """Userstamp configuration settings.

    Settings are loaded from environment variables prefixed with
    ``USERSTAMP_`` and from a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="USERSTAMP_",
        case_sensitive=False,
        extra="ignore",
    )

    # Stamping Settings
    compatibility_mode: bool = Field(
        default=False,
        description="Use created_by/updated_by/deleted_by instead of creator_id/updater_id/deleter_id",
    )
    default_stamper_name: str = "user"
    session_key: str = Field(
        default="user_id",
        description="Session key holding the id of the acting user",
    )
    soft_delete_column: str = Field(
        default="deleted_at",
        description="Column marking soft-deleted actors",
    )

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("default_stamper_name", "session_key", "soft_delete_column")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty names."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @property
    def stamp_attributes(self) -> StampAttributes:
        """Default stamp column names for the configured naming convention."""
        return default_stamp_attributes(self.compatibility_mode)


def default_stamp_attributes(compatibility_mode: bool | None = None) -> StampAttributes:
    """Get the default stamp column names.

    Args:
        compatibility_mode: Naming convention to use. Defaults to the
            ``compatibility_mode`` setting.

    Returns:
        StampAttributes: The creator, updater and deleter column names.
    """
    if compatibility_mode is None:
        compatibility_mode = get_settings().compatibility_mode
    return COMPATIBILITY_ATTRIBUTES if compatibility_mode else DEFAULT_ATTRIBUTES


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Call ``get_settings.cache_clear()`` to reload from the environment.

    Returns:
        Settings: Cached settings instance.
    """
    return Settings()
