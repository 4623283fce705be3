"""
uvicorn-backed runtime delegate.

Binds listening sockets from a Configuration, mounts the ASGI application
under the configured root path and serves it with an embedded uvicorn server
that leaves process signal handling to the host program.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import inspect
import socket
import ssl
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Tuple

import uvicorn
from starlette.routing import Mount, Router

from restboot import constants
from restboot.configuration.store import ClientAuthMode, Configuration, default_tls_context
from restboot.errors import RuntimeStartupError
from restboot.logger import UnifiedLogger
from .delegate import RuntimeDelegate
from .instance import RunningInstance


logger = UnifiedLogger(tag="uvicorn-delegate")

_VERIFY_MODES = {
    ClientAuthMode.NONE: ssl.CERT_NONE,
    ClientAuthMode.OPTIONAL: ssl.CERT_OPTIONAL,
    ClientAuthMode.MANDATORY: ssl.CERT_REQUIRED,
}

# uvicorn.Config parameters owned by the delegate; never taken from uvicorn.* keys
_RESERVED_OPTIONS = {
    "self", "app", "host", "port", "uds", "fd", "root_path", "reload", "workers",
    "ssl_keyfile", "ssl_certfile", "ssl_keyfile_password", "ssl_version",
    "ssl_cert_reqs", "ssl_ca_certs", "ssl_ciphers",
}

# Bind errors that only rule out one resolved address, not the whole host
_SKIPPABLE_ERRNOS = {errno.EADDRNOTAVAIL, errno.EAFNOSUPPORT}


@dataclass(frozen=True)
class ShutdownReport:
    """Native shutdown result of a uvicorn-served instance."""

    started_at: datetime
    stopped_at: datetime
    released: Tuple[str, ...]


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that does not install process signal handlers."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class RootPathApp:
    """
    ASGI wrapper serving an application below a path prefix.

    Lifespan events go straight to the wrapped application so its startup and
    shutdown hooks still run.
    """

    def __init__(self, app: Any, root_path: str):
        self.app = app
        self.root_path = root_path
        self._router = Router(routes=[Mount(root_path, app=app)])

    async def __call__(self, scope, receive, send):
        if scope["type"] == "lifespan":
            await self.app(scope, receive, send)
        else:
            await self._router(scope, receive, send)


def normalize_root_path(root_path: str) -> str:
    """Return ``root_path`` with exactly one leading slash and no trailing slash."""
    stripped = root_path.strip().strip("/")
    return f"/{stripped}" if stripped else "/"


def _format_address(sockaddr: Tuple) -> str:
    host, port = sockaddr[0], sockaddr[1]
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


class UvicornRuntimeDelegate(RuntimeDelegate):
    """Runtime delegate serving ASGI applications with uvicorn."""

    def __init__(self, startup_timeout: float = constants.STARTUP_TIMEOUT):
        self.startup_timeout = startup_timeout

    async def bootstrap(self, application: Any, configuration: Configuration) -> RunningInstance:
        """
        Bind, start uvicorn and resolve once the server reports it has started.

        Raises:
            RuntimeStartupError: On unsupported protocol, bad TLS settings, bind
                failures, lifespan startup failures or startup timeout
        """
        loop = asyncio.get_running_loop()
        sockets: List[socket.socket] = []
        serve_task = None

        try:
            protocol = configuration.protocol().upper()
            if protocol not in constants.SUPPORTED_PROTOCOLS:
                raise ValueError(
                    f"Unsupported protocol '{protocol}'. Must be one of: {constants.SUPPORTED_PROTOCOLS}"
                )
            host = configuration.host()
            requested_port = configuration.port()
            if requested_port != constants.DEFAULT_PORT and not 0 <= requested_port <= 65535:
                raise ValueError(f"Port out of range: {requested_port}")
            root_path = normalize_root_path(configuration.root_path())
            tls_context = self._tls_context(configuration) if protocol == "HTTPS" else None

            async with logger.async_span("bind", host=host, port=requested_port):
                sockets, bound_port = await self._bind(host, requested_port)

            effective = configuration.with_properties({
                constants.PROTOCOL: protocol,
                constants.PORT: bound_port,
                constants.ROOT_PATH: root_path,
            })

            app = application if root_path == "/" else RootPathApp(application, root_path)
            config = uvicorn.Config(app, **self._server_options(configuration))
            config.load()
            if tls_context is not None:
                config.ssl = tls_context

            server = EmbeddedServer(config)
            released = tuple(_format_address(sock.getsockname()) for sock in sockets)
            instance = RunningInstance(
                effective,
                server,
                shutdown=lambda: self._shutdown(instance, server, serve_task, sockets, released),
                loop=loop,
            )

            serve_task = loop.create_task(server.serve(sockets=sockets))
            await self._wait_started(server, serve_task)

            instance.mark_running()
            logger.activity(
                "Instance started",
                metadata={"url": instance.url, "addresses": list(released)},
            )
            return instance

        except Exception as exc:
            logger.error(
                "Instance startup failed: {error}", error=str(exc), host=configuration.get(constants.HOST)
            )
            if serve_task is not None and not serve_task.done():
                serve_task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await serve_task
            for sock in sockets:
                sock.close()
            if isinstance(exc, RuntimeStartupError):
                raise
            raise RuntimeStartupError(f"Failed to start instance: {exc}", cause=exc) from exc

    def _tls_context(self, configuration: Configuration) -> ssl.SSLContext:
        """Return the configured TLS context with the client-auth policy applied."""
        context = configuration.tls_context()
        mode = configuration.tls_client_auth_mode()
        if context is default_tls_context():
            # The shared default is never mutated
            context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.verify_mode = _VERIFY_MODES[mode]
        return context

    async def _bind(self, host: str, port: int) -> Tuple[List[socket.socket], int]:
        """
        Bind a listening socket for every address ``host`` resolves to.

        With the auto port the first socket picks a free port and the remaining
        addresses reuse it. Addresses the machine cannot bind are skipped as
        long as at least one succeeds.
        """
        loop = asyncio.get_running_loop()
        wanted_port = 0 if port == constants.DEFAULT_PORT else port
        infos = await loop.getaddrinfo(
            host, wanted_port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
        )

        sockets: List[socket.socket] = []
        seen = set()
        last_error = None

        for family, sock_type, proto, _canonname, sockaddr in infos:
            if (family, sockaddr[0]) in seen:
                continue
            seen.add((family, sockaddr[0]))

            sock = None
            try:
                sock = socket.socket(family, sock_type, proto)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                if family == socket.AF_INET6:
                    sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
                bind_port = sockets[0].getsockname()[1] if sockets else wanted_port
                sock.bind((sockaddr[0], bind_port) + tuple(sockaddr[2:]))
                sock.setblocking(False)
            except OSError as exc:
                if sock is not None:
                    sock.close()
                if exc.errno not in _SKIPPABLE_ERRNOS and not (sockets and port == constants.DEFAULT_PORT):
                    for bound in sockets:
                        bound.close()
                    raise
                logger.warning(
                    "Skipping address {address}: {error}", address=sockaddr[0], error=str(exc)
                )
                last_error = exc
                continue
            sockets.append(sock)

        if not sockets:
            raise last_error or OSError(f"No bindable address for host '{host}'")

        return sockets, sockets[0].getsockname()[1]

    def _server_options(self, configuration: Configuration) -> Dict[str, Any]:
        """Build uvicorn.Config keyword arguments, honoring uvicorn.* keys."""
        options: Dict[str, Any] = {
            "log_config": None,
            "log_level": "warning",
            "lifespan": "auto",
            "timeout_graceful_shutdown": constants.DEFAULT_GRACE_PERIOD,
        }
        accepted = set(inspect.signature(uvicorn.Config.__init__).parameters) - _RESERVED_OPTIONS

        for key, value in configuration.items():
            if not key.startswith(constants.UVICORN_KEY_PREFIX):
                continue
            name = key[len(constants.UVICORN_KEY_PREFIX):]
            if name in accepted:
                options[name] = value
            else:
                logger.debug("Ignoring unsupported server option", key=key)

        return options

    async def _wait_started(self, server: EmbeddedServer, serve_task: asyncio.Task) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.startup_timeout

        while not server.started:
            if serve_task.done():
                cause = None if serve_task.cancelled() else serve_task.exception()
                raise RuntimeStartupError(
                    "Server exited before it started accepting connections", cause=cause
                )
            if loop.time() > deadline:
                raise RuntimeStartupError(
                    f"Server did not start within {self.startup_timeout}s",
                    cause=TimeoutError(),
                )
            await asyncio.sleep(constants.STARTUP_POLL_INTERVAL)

    async def _shutdown(
        self,
        instance: RunningInstance,
        server: EmbeddedServer,
        serve_task: asyncio.Task,
        sockets: List[socket.socket],
        released: Tuple[str, ...],
    ) -> ShutdownReport:
        """Ask uvicorn to exit, wait for in-flight requests and release the sockets."""
        server.should_exit = True
        try:
            await serve_task
        finally:
            for sock in sockets:
                sock.close()

        report = ShutdownReport(
            started_at=instance.started_at,
            stopped_at=datetime.now(),
            released=released,
        )
        logger.activity(
            "Instance stopped",
            metadata={"url": instance.url, "addresses": list(released)},
        )
        return report
