"""
Demo application served by the bootstrap CLI.

Import concrete functionality from explicit submodules:
- `restboot.api.endpoints` for the router and create_app()
- `restboot.api.exceptions` for API error types
"""

__all__: list[str] = []
