"""
Bootstrap entry points.

start() hands an application and its configuration to the active runtime
delegate and returns immediately with a future; stop() is the matching
shutdown call for a running instance.

Usage:
    config = builder().port(8080).root_path("api").build()
    instance = await start(app, config)
    print(instance.configuration().port())
    result = await instance.stop()
"""

import asyncio
from typing import Any, Optional

from restboot.configuration.builder import ConfigurationBuilder
from restboot.configuration.store import Configuration
from restboot.logger import UnifiedLogger
from .instance import RunningInstance, StopFuture
from .state import get_runtime_delegate


logger = UnifiedLogger(tag="runtime-bootstrap")


def start(
    application: Any, configuration: Optional[Configuration] = None
) -> "asyncio.Future[RunningInstance]":
    """
    Start serving ``application`` according to ``configuration``.

    Must be called from a running event loop. Binding happens in a task on
    that loop; the returned future resolves with the RunningInstance once it
    accepts connections, or fails with RuntimeStartupError. Cancelling the
    returned future does not cancel the startup itself.

    Args:
        application: ASGI application to serve
        configuration: Requested configuration; defaults for every key when None

    Returns:
        Future resolving to a RunningInstance in RUNNING state
    """
    if configuration is None:
        configuration = ConfigurationBuilder().build()

    delegate = get_runtime_delegate()
    logger.info(
        "Starting application with {delegate}",
        delegate=type(delegate).__name__,
        requested=repr(configuration),
    )

    task = asyncio.ensure_future(delegate.bootstrap(application, configuration))
    return asyncio.shield(task)


def stop(instance: RunningInstance) -> StopFuture:
    """Stop ``instance``; same as instance.stop()."""
    return instance.stop()
