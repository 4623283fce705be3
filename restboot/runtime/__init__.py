"""
Runtime package.

Import concrete functionality from explicit submodules:
- `restboot.runtime.bootstrap` for start()/stop()
- `restboot.runtime.delegate` for the RuntimeDelegate contract
- `restboot.runtime.uvicorn_delegate` for the uvicorn-backed delegate
- `restboot.runtime.instance` for running instances and stop results
- `restboot.runtime.state` for the active delegate registry
"""

__all__: list[str] = []
