"""
Settings file loader.

Provides typed access to YAML bootstrap settings files of the form:

    bootstrap:
      protocol: HTTPS
      port: 8443
      root_path: /api
      tls_certfile: /etc/restboot/server.pem
    properties:
      uvicorn.log_level: debug
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from restboot.errors import InvalidConfigurationError
from . import BootstrapSettings


class BootstrapSection(BaseModel):
    """`bootstrap:` section; same fields as the environment settings."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    protocol: str | None = None
    host: str | None = None
    port: int | None = None
    root_path: str | None = Field(default=None, alias="rootPath")
    tls_client_auth_mode: str | None = Field(default=None, alias="tlsClientAuthMode")
    tls_certfile: Path | None = None
    tls_keyfile: Path | None = None
    tls_cafile: Path | None = None


class SettingsFile(BaseModel):
    """Root schema for a bootstrap settings file."""

    bootstrap: BootstrapSection = Field(default_factory=BootstrapSection)
    properties: Dict[str, Any] = Field(default_factory=dict)

    def as_properties(self) -> Dict[str, Any]:
        """Return file values keyed by canonical configuration key."""
        # Reuse the env settings model for TLS material and key mapping
        # without reading the environment.
        settings = BootstrapSettings.model_construct(
            **self.bootstrap.model_dump(exclude_none=True),
            properties=self.properties,
        )
        return settings.as_properties()


def load_settings_file(path: Path) -> SettingsFile:
    """
    Load and validate a YAML bootstrap settings file.

    Raises:
        InvalidConfigurationError: If the file is missing, unreadable or invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw_data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise InvalidConfigurationError(f"Cannot read settings file {path}: {exc}") from exc

    if not isinstance(raw_data, dict):
        raise InvalidConfigurationError(f"Settings file {path} must contain a mapping")

    for section in ("bootstrap", "properties"):
        if raw_data.get(section) is None:
            raw_data[section] = {}

    try:
        return SettingsFile.model_validate(raw_data)
    except ValidationError as exc:
        raise InvalidConfigurationError(f"Invalid settings file {path}: {exc}") from exc
