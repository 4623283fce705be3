"""
Configuration builder.

Accumulates explicit single-key values and values bulk-imported from external
sources, then materializes an immutable Configuration.

Precedence is deliberate and differs from a "last call wins" builder: an
explicit set() always beats an imported value for the same key, whether the
import happened before or after the set. Among imports the most recent one
wins.
"""

from __future__ import annotations

import ssl
from typing import Any, Dict, Optional

from restboot import constants
from restboot.errors import InvalidConfigurationError
from restboot.logger import UnifiedLogger
from .sources import MappingProvider, as_provider
from .store import ClientAuthMode, Configuration, default_values, expected_type


logger = UnifiedLogger(tag="configuration-builder")

# Explicit marker for "revert this key to its default"
_USE_DEFAULT = object()


class ConfigurationBuilder:
    """Mutable accumulator producing Configuration snapshots."""

    def __init__(self):
        self._explicit: Dict[str, Any] = {}
        self._imported: Dict[str, Any] = {}

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> "ConfigurationBuilder":
        """Seed a builder with every pair of an existing store as explicit values."""
        builder = cls()
        for name, value in configuration.items():
            builder.set(name, value)
        return builder

    def known_keys(self) -> list[str]:
        """Well-known keys followed by any other key this builder has seen."""
        keys = list(constants.WELL_KNOWN_KEYS)
        for name in list(self._explicit) + list(self._imported):
            if name not in keys:
                keys.append(name)
        return keys

    # Explicit values

    def set(self, name: str, value: Any) -> "ConfigurationBuilder":
        """
        Set ``name`` to ``value``, or back to its default when ``value`` is None.

        The value is not validated here; typed accessors on the built
        Configuration check it on read.
        """
        self._explicit[name] = _USE_DEFAULT if value is None else value
        return self

    def protocol(self, protocol: Optional[str]) -> "ConfigurationBuilder":
        return self.set(constants.PROTOCOL, protocol)

    def host(self, host: Optional[str]) -> "ConfigurationBuilder":
        return self.set(constants.HOST, host)

    def port(self, port: Optional[int]) -> "ConfigurationBuilder":
        return self.set(constants.PORT, port)

    def root_path(self, root_path: str) -> "ConfigurationBuilder":
        if root_path is None:
            raise InvalidConfigurationError("rootPath must not be None")
        return self.set(constants.ROOT_PATH, root_path)

    def tls_context(self, context: Optional[ssl.SSLContext]) -> "ConfigurationBuilder":
        return self.set(constants.TLS_CONTEXT, context)

    def tls_client_auth_mode(self, mode: Optional[ClientAuthMode]) -> "ConfigurationBuilder":
        return self.set(constants.TLS_CLIENT_AUTH_MODE, mode)

    # Bulk import

    def import_from(self, source: Any) -> "ConfigurationBuilder":
        """
        Bulk-load values from an external source.

        Supported sources are a provider callable ``(key, expected_type) ->
        value or None``, a mapping, a BootstrapSettings instance and a path to
        a YAML settings file. Anything else is ignored.
        """
        provider = as_provider(source)
        if provider is None:
            logger.debug(
                "Ignoring unsupported configuration source",
                source_type=type(source).__name__,
            )
            return self

        names = self.known_keys()
        if isinstance(provider, MappingProvider):
            names.extend(key for key in provider.keys() if key not in names)

        imported = []
        for name in names:
            wanted = expected_type(name)
            value = provider(name, wanted)
            if value is None:
                continue
            if not isinstance(value, wanted) or (wanted is int and isinstance(value, bool)):
                logger.warning(
                    "Discarding imported value of unexpected type",
                    key=name,
                    expected=wanted.__name__,
                    actual=type(value).__name__,
                )
                continue
            if name in self._explicit:
                continue
            self._imported[name] = value
            imported.append(name)

        logger.debug("Imported configuration values", keys=imported)
        return self

    # Materialization

    def build(self) -> Configuration:
        """Return an immutable snapshot: defaults, then imports, then explicit values."""
        defaults = default_values()
        values = dict(defaults)
        values.update(self._imported)
        for name, value in self._explicit.items():
            if value is not _USE_DEFAULT:
                values[name] = value
            elif name in defaults:
                values[name] = defaults[name]
            else:
                values.pop(name, None)
        return Configuration(values)


def builder() -> ConfigurationBuilder:
    """Return a configuration builder from the active runtime delegate."""
    from restboot.runtime.state import get_runtime_delegate

    return get_runtime_delegate().create_configuration_builder()
