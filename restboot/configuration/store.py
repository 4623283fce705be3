"""
Immutable configuration store.

Holds the effective key/value pairs used to bind a running instance. Typed
accessors cover the well-known keys; anything else is reachable through
get() and is otherwise ignored.
"""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Iterator

from restboot import constants
from restboot.errors import TypeMismatchError


class ClientAuthMode(str, Enum):
    """TLS client certificate policy."""

    NONE = "NONE"
    OPTIONAL = "OPTIONAL"
    MANDATORY = "MANDATORY"


# Expected value type per well-known key; unknown keys accept any object
EXPECTED_TYPES: Dict[str, type] = {
    constants.PROTOCOL: str,
    constants.HOST: str,
    constants.PORT: int,
    constants.ROOT_PATH: str,
    constants.TLS_CONTEXT: ssl.SSLContext,
    constants.TLS_CLIENT_AUTH_MODE: ClientAuthMode,
}


def expected_type(name: str) -> type:
    """Return the type a value stored under ``name`` must have."""
    return EXPECTED_TYPES.get(name, object)


@lru_cache(maxsize=1)
def default_tls_context() -> ssl.SSLContext:
    """
    Return the process-wide platform default server TLS context.

    Created once so that repeated builds share the same object.
    """
    return ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)


def default_values() -> Dict[str, Any]:
    """Return the defaults for every well-known key."""
    return {
        constants.PROTOCOL: constants.DEFAULT_PROTOCOL,
        constants.HOST: constants.DEFAULT_HOST,
        constants.PORT: constants.DEFAULT_PORT,
        constants.ROOT_PATH: constants.DEFAULT_ROOT_PATH,
        constants.TLS_CONTEXT: default_tls_context(),
        constants.TLS_CLIENT_AUTH_MODE: ClientAuthMode.NONE,
    }


class Configuration(Mapping):
    """
    Read-only mapping of configuration keys to values.

    Instances are produced by ConfigurationBuilder.build() or derived from an
    existing store with with_properties(). Two stores holding the same pairs
    compare equal.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]):
        self._values = MappingProxyType(dict(values))

    # Mapping protocol

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        shown = {k: v for k, v in self._values.items() if k != constants.TLS_CONTEXT}
        return f"Configuration({shown!r})"

    # Raw access

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value stored under ``name``, or ``default`` when absent."""
        return self._values.get(name, default)

    def property(self, name: str) -> Any:
        """Same as get(name)."""
        return self._values.get(name)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def with_properties(self, updates: Mapping[str, Any]) -> "Configuration":
        """Return a new store with ``updates`` applied over this one."""
        merged = dict(self._values)
        merged.update(updates)
        return Configuration(merged)

    # Typed accessors

    def _typed(self, name: str) -> Any:
        value = self._values.get(name)
        wanted = expected_type(name)
        # bool is an int subclass but never a valid port
        if not isinstance(value, wanted) or (wanted is int and isinstance(value, bool)):
            raise TypeMismatchError(name, wanted, value)
        return value

    def protocol(self) -> str:
        return self._typed(constants.PROTOCOL)

    def host(self) -> str:
        return self._typed(constants.HOST)

    def port(self) -> int:
        """
        Return the port.

        On a running instance's configuration this is the port actually bound,
        even when the request asked for constants.DEFAULT_PORT.
        """
        return self._typed(constants.PORT)

    def root_path(self) -> str:
        return self._typed(constants.ROOT_PATH)

    def tls_context(self) -> ssl.SSLContext:
        return self._typed(constants.TLS_CONTEXT)

    def tls_client_auth_mode(self) -> ClientAuthMode:
        return self._typed(constants.TLS_CLIENT_AUTH_MODE)
