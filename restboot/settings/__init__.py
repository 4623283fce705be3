"""
Environment-driven settings.

AppSettings carries infrastructure values (logging). BootstrapSettings is an
external configuration source that ConfigurationBuilder.import_from() accepts,
reading RESTBOOT_* environment variables.
"""

import ssl
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from restboot import constants
from restboot.configuration.store import ClientAuthMode
from restboot.errors import InvalidConfigurationError


class SettingsError(Exception):
    """Raised when application settings are invalid or unavailable."""


class AppSettings(BaseSettings):
    """
    Infrastructure settings loaded from environment variables.

    Controls logfire export and the optional activity log file.
    """

    model_config = SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX, env_file=None, extra="ignore"
    )

    logfire: bool = False
    activity_log: Optional[Path] = None
    log_level: str = "INFO"

    @field_validator("activity_log", mode="before")
    @classmethod
    def _expand_log_path(cls, value):
        """Expand user paths to absolute Path instances."""
        if value in (None, ""):
            return None
        return Path(value).expanduser()

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if value.upper() not in valid_levels:
            raise ValueError(f"Invalid log_level '{value}'. Must be one of: {valid_levels}")
        return value.upper()


class BootstrapSettings(BaseSettings):
    """
    Bootstrap values read from RESTBOOT_* environment variables.

    Unset fields stay None so they never shadow values from other sources.
    TLS certificate material, when given, is turned into a server SSLContext.
    """

    model_config = SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX, env_file=None, extra="ignore"
    )

    protocol: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    root_path: Optional[str] = None
    tls_client_auth_mode: Optional[ClientAuthMode] = None
    tls_certfile: Optional[Path] = None
    tls_keyfile: Optional[Path] = None
    tls_cafile: Optional[Path] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tls_client_auth_mode", mode="before")
    @classmethod
    def _upper_mode(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def build_tls_context(self) -> Optional[ssl.SSLContext]:
        """Create a server TLS context from the configured certificate files, if any."""
        if self.tls_certfile is None:
            return None
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        try:
            context.load_cert_chain(
                certfile=str(self.tls_certfile),
                keyfile=str(self.tls_keyfile) if self.tls_keyfile else None,
            )
            if self.tls_cafile is not None:
                context.load_verify_locations(cafile=str(self.tls_cafile))
        except (OSError, ssl.SSLError) as exc:
            raise InvalidConfigurationError(f"Cannot load TLS material: {exc}") from exc
        return context

    def as_properties(self) -> Dict[str, Any]:
        """Return the configured values keyed by canonical configuration key."""
        properties: Dict[str, Any] = dict(self.properties)
        fields = {
            constants.PROTOCOL: self.protocol,
            constants.HOST: self.host,
            constants.PORT: self.port,
            constants.ROOT_PATH: self.root_path,
            constants.TLS_CLIENT_AUTH_MODE: self.tls_client_auth_mode,
            constants.TLS_CONTEXT: self.build_tls_context(),
        }
        properties.update({key: value for key, value in fields.items() if value is not None})
        return properties


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Return cached infrastructure settings."""
    try:
        return AppSettings()
    except ValueError as exc:
        raise SettingsError(f"Invalid environment settings: {exc}") from exc


def refresh_app_settings_cache() -> None:
    """Clear the settings cache so future calls re-read the environment."""
    get_app_settings.cache_clear()  # type: ignore[attr-defined]
