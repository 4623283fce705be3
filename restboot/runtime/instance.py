"""
Running instance handle and stop results.

A RunningInstance is created by a runtime delegate while it binds, moves to
RUNNING before it is handed to the caller, and is shut down at most once no
matter how many times stop() is called.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar, Union

from restboot import constants
from restboot.configuration.store import Configuration
from restboot.errors import RuntimeStateError, TypeMismatchError
from restboot.logger import UnifiedLogger


logger = UnifiedLogger(tag="running-instance")

T = TypeVar("T")


class LifecycleState(str, Enum):
    """Lifecycle of a running instance; transitions only move forward."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


_ALLOWED_TRANSITIONS = {
    LifecycleState.STARTING: {LifecycleState.RUNNING},
    LifecycleState.RUNNING: {LifecycleState.STOPPING},
    LifecycleState.STOPPING: {LifecycleState.STOPPED},
    LifecycleState.STOPPED: set(),
}


@dataclass(frozen=True)
class NativeHandle:
    """Implementation-native object exposed through a typed downcast."""

    value: Any = None

    def unwrap(self, expected_type: Type[T], required: bool = False) -> Optional[T]:
        """
        Return the native object if it is an instance of ``expected_type``.

        Returns None when there is no native object. A native object of another
        type yields None, or raises TypeMismatchError when ``required`` is set.
        """
        if self.value is None:
            return None
        if isinstance(self.value, expected_type):
            return self.value
        if required:
            raise TypeMismatchError("native handle", expected_type, self.value)
        return None


@dataclass(frozen=True)
class StopResult:
    """Outcome of stopping an instance, wrapping the native shutdown result."""

    native: NativeHandle

    def unwrap(self, expected_type: Type[T], required: bool = False) -> Optional[T]:
        return self.native.unwrap(expected_type, required=required)


StopFuture = Union["asyncio.Future[StopResult]", "concurrent.futures.Future[StopResult]"]


class RunningInstance:
    """
    Handle of a started application.

    Attributes:
        native: Typed wrapper around the delegate's server object
        started_at: When the instance finished binding
    """

    def __init__(
        self,
        configuration: Configuration,
        native: Any,
        shutdown: Callable[[], Awaitable[Any]],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._configuration = configuration
        self.native = NativeHandle(native)
        self._shutdown = shutdown
        self._loop = loop or asyncio.get_running_loop()
        self._state = LifecycleState.STARTING
        self._stop_task: Optional["asyncio.Task[StopResult]"] = None
        self.started_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"<RunningInstance {self.url} state={self._state.value}>"

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def url(self) -> str:
        """Base URL of the effective configuration."""
        config = self._configuration
        host = config.get(constants.HOST)
        if isinstance(host, str) and ":" in host:
            host = f"[{host}]"
        root = config.get(constants.ROOT_PATH) or "/"
        return f"{str(config.get(constants.PROTOCOL)).lower()}://{host}:{config.get(constants.PORT)}{root}"

    def configuration(self) -> Configuration:
        """Return the effective configuration, including the port actually bound."""
        return self._configuration

    def unwrap(self, expected_type: Type[T], required: bool = False) -> Optional[T]:
        return self.native.unwrap(expected_type, required=required)

    def mark_running(self) -> None:
        """Called by the delegate once the listener accepts connections."""
        self._transition(LifecycleState.RUNNING)

    def _transition(self, new_state: LifecycleState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeStateError(
                f"Invalid lifecycle transition {self._state.value} -> {new_state.value}"
            )
        logger.debug(
            "Instance state {old} -> {new}", old=self._state.value, new=new_state.value
        )
        self._state = new_state
        if new_state is LifecycleState.RUNNING:
            self.started_at = datetime.now()

    def stop(self) -> StopFuture:
        """
        Shut the instance down.

        Returns a future resolving to the StopResult. The shutdown runs once;
        later or concurrent calls get futures for the same result. Called from
        another event loop, the future belongs to that loop. Called from a
        thread with no running loop, it returns a concurrent.futures.Future.
        """
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is not self._loop:
            future = asyncio.run_coroutine_threadsafe(self._stop_on_loop(), self._loop)
            if running_loop is None:
                return future
            return asyncio.wrap_future(future, loop=running_loop)

        if self._stop_task is None:
            if self._state is not LifecycleState.RUNNING:
                raise RuntimeStateError(f"Cannot stop instance in state {self._state.value}")
            self._transition(LifecycleState.STOPPING)
            self._stop_task = self._loop.create_task(self._run_shutdown())

        # A cancelled waiter must not cancel the shared shutdown task
        return asyncio.shield(self._stop_task)

    async def _stop_on_loop(self) -> StopResult:
        return await self.stop()

    async def _run_shutdown(self) -> StopResult:
        try:
            native_result = await self._shutdown()
        finally:
            self._transition(LifecycleState.STOPPED)
        return StopResult(NativeHandle(native_result))
