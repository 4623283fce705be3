"""
Global runtime delegate state management.

Provides singleton access to the runtime delegate used by start() and
builder(), with explicit teardown for test isolation.
"""

from typing import TYPE_CHECKING, Optional

from restboot.errors import RuntimeStateError

if TYPE_CHECKING:
    from .delegate import RuntimeDelegate


# Global runtime delegate instance
_runtime_delegate: Optional["RuntimeDelegate"] = None


def set_runtime_delegate(delegate: Optional["RuntimeDelegate"]) -> None:
    """
    Set the global runtime delegate.

    Allows explicit teardown by passing None. Only one delegate can be
    installed at a time.

    Args:
        delegate: RuntimeDelegate instance or None to clear

    Raises:
        RuntimeStateError: If attempting to set a delegate when one already exists
    """
    global _runtime_delegate

    if delegate is not None and _runtime_delegate is not None:
        raise RuntimeStateError(
            "Runtime delegate already installed. Call set_runtime_delegate(None) "
            "to clear it before installing a new one."
        )

    _runtime_delegate = delegate


def get_runtime_delegate() -> "RuntimeDelegate":
    """
    Get the active runtime delegate.

    Installs the uvicorn delegate on first use when none was set explicitly.
    """
    global _runtime_delegate

    if _runtime_delegate is None:
        from .uvicorn_delegate import UvicornRuntimeDelegate

        _runtime_delegate = UvicornRuntimeDelegate()

    return _runtime_delegate


def has_runtime_delegate() -> bool:
    """Return True when a delegate has been installed or created."""
    return _runtime_delegate is not None


def clear_runtime_delegate() -> None:
    """
    Clear the current runtime delegate.

    Convenience method equivalent to set_runtime_delegate(None).
    """
    set_runtime_delegate(None)
