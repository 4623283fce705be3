"""
restboot: bootstrap ASGI applications from a resolved configuration.

Import concrete functionality from explicit submodules:
- `restboot.configuration.builder` for building configurations
- `restboot.runtime.bootstrap` for start()/stop()
"""

__version__ = "0.1.0"

__all__: list[str] = []
