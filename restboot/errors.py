"""
Custom exceptions for the bootstrap subsystem.

Configuration failures are raised synchronously at the offending call.
Startup failures are only ever delivered through the future returned by
restboot.runtime.bootstrap.start().
"""

from typing import Any, Optional


class BootstrapError(Exception):
    """Base exception for bootstrap failures."""
    pass


class TypeMismatchError(BootstrapError, TypeError):
    """Raised when a stored value or native handle is not of the requested type."""

    def __init__(self, name: str, expected: type, actual: Any):
        self.name = name
        self.expected = expected
        self.actual_type = type(actual)
        super().__init__(
            f"'{name}' expected {expected.__name__}, got {type(actual).__name__}"
        )


class InvalidConfigurationError(BootstrapError, ValueError):
    """Raised when a configuration value is rejected outright (e.g. a null root path)."""
    pass


class RuntimeStartupError(BootstrapError):
    """Raised when an instance cannot be bound or started."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class RuntimeStateError(BootstrapError):
    """Raised when the runtime delegate registry is used incorrectly."""
    pass
