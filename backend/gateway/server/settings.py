"""Rate limiter configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource

_STRING_LIST_FIELDS = frozenset({"cors_origins", "protected_prefixes"})


class RateLimitSettings(BaseSettings):
    model_config = {"env_prefix": "RATE_LIMIT_"}

    # Invalid values fail startup with a ValidationError; limiting is never silently disabled.
    requests_per_minute: int = Field(default=30, ge=1)
    protected_prefixes: list[str] = ["/api/"]
    retry_after_seconds: int = Field(default=60, ge=1)
    adaptive_retry_after: bool = False

    # A bucket idle for a full minute is back at capacity, so evicting it later is invisible to the client.
    idle_ttl_seconds: int = Field(default=600, ge=60)
    cleanup_interval_seconds: int = Field(default=300, ge=1)

    cors_origins: list[str] = []
    log_dir: str | None = None

    @field_validator("protected_prefixes", mode="before")
    @classmethod
    def validate_protected_prefixes(cls, v: str | list[str]) -> list[str]:
        prefixes = parse_string_list(v)
        for prefix in prefixes:
            if not prefix.startswith("/"):
                raise ValueError(f"Protected prefix must start with '/': {prefix!r}")
        return prefixes

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            StringListEnvSettingsSource(settings_cls, string_list_fields=_STRING_LIST_FIELDS),
            dotenv_settings,
            file_secret_settings,
        )
