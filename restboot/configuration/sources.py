"""
Bulk-import adapters for ConfigurationBuilder.import_from().

Every supported source is turned into a provider callable with the signature
``provider(key, expected_type) -> value or None``. Sources that are not
understood map to None and the import becomes a no-op.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from restboot import constants
from restboot.logger import UnifiedLogger
from restboot.settings import BootstrapSettings
from restboot.settings.store import load_settings_file
from .store import ClientAuthMode


logger = UnifiedLogger(tag="configuration-sources")

Provider = Callable[[str, type], Optional[Any]]

# Types that string values from files and environments can be coerced to
_COERCIBLE_TYPES = (str, int, ClientAuthMode)

_YAML_SUFFIXES = (".yaml", ".yml")


@lru_cache(maxsize=None)
def _adapter(target: type) -> TypeAdapter:
    return TypeAdapter(target)


def coerce(value: Any, target: type) -> Any:
    """
    Best-effort conversion of ``value`` to ``target``.

    Returns the value unchanged when it already fits or cannot be converted;
    the builder discards values that still have the wrong type.
    """
    if target is object or isinstance(value, target):
        return value
    if target not in _COERCIBLE_TYPES:
        return value
    if target is ClientAuthMode and isinstance(value, str):
        value = value.strip().upper()
    try:
        return _adapter(target).validate_python(value)
    except ValidationError:
        return value


def canonical_key(name: str) -> str:
    """Map snake_case spellings onto the canonical key names."""
    return constants.KEY_ALIASES.get(name, name)


class MappingProvider:
    """
    Provider answering from a plain mapping of key names to values.

    Unlike a bare provider callable it also knows its own keys, so the builder
    imports implementation-specific keys the mapping carries.
    """

    def __init__(self, mapping: Mapping[str, Any]):
        self._values = {canonical_key(str(key)): value for key, value in mapping.items()}

    def keys(self) -> list[str]:
        return [key for key, value in self._values.items() if value is not None]

    def __call__(self, name: str, target: type) -> Optional[Any]:
        if self._values.get(name) is None:
            return None
        return coerce(self._values[name], target)


def _is_yaml_path(source: Any) -> bool:
    if isinstance(source, os.PathLike):
        source = os.fspath(source)
    return isinstance(source, str) and source.lower().endswith(_YAML_SUFFIXES)


def as_provider(source: Any) -> Optional[Provider]:
    """Return a provider for ``source``, or None when the source is unsupported."""
    if isinstance(source, BootstrapSettings):
        return MappingProvider(source.as_properties())

    if isinstance(source, Mapping):
        return MappingProvider(source)

    if _is_yaml_path(source):
        settings_file = load_settings_file(Path(source))
        logger.debug("Loaded bootstrap settings file", path=str(source))
        return MappingProvider(settings_file.as_properties())

    if callable(source) and not isinstance(source, type):
        return source

    return None
