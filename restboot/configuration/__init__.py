"""
Configuration package.

Import concrete functionality from explicit submodules:
- `restboot.configuration.store` for the immutable Configuration store
- `restboot.configuration.builder` for ConfigurationBuilder
- `restboot.configuration.sources` for bulk-import adapters
"""

__all__: list[str] = []
