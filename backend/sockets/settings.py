"""Connection manager configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list, validate_subprotocols
from sockets.message_log import DEFAULT_LOG_CAPACITY

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class SocketSettings(BaseSettings):
    model_config = {"env_prefix": "WS_"}

    log_capacity: int = Field(default=DEFAULT_LOG_CAPACITY, ge=2)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    listen_poll_interval_seconds: float = Field(default=0.1, gt=0)
    listen_default_seconds: float = Field(default=30.0, ge=0)
    listen_default_max_messages: int = Field(default=100, ge=1)
    close_timeout_seconds: float = Field(default=10.0, gt=0)
    # Hard ceiling on an opening handshake, enforced by the transport even
    # after open() has stopped waiting for it.
    handshake_timeout_seconds: float = Field(default=60.0, gt=0)
    # Protocol-level keepalive run by the websockets library; None disables it.
    # Unrelated to the application-level ping operation.
    keepalive_interval_seconds: float | None = Field(default=20.0, gt=0)
    max_message_bytes: int | None = Field(default=2**20, ge=1)
    default_protocols: list[str] = []

    @field_validator("default_protocols", mode="before")
    @classmethod
    def validate_default_protocols(cls, v: str | list[str]) -> list[str]:
        return validate_subprotocols(parse_string_list(v, allow_empty=True))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
