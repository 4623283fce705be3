"""End-to-end tests starting and stopping real uvicorn instances on loopback"""

import asyncio
import socket
import ssl
from contextlib import asynccontextmanager

import httpx
import pytest
import uvicorn
from fastapi import FastAPI

from restboot import constants
from restboot.configuration.builder import builder
from restboot.configuration.store import ClientAuthMode
from restboot.errors import RuntimeStartupError, RuntimeStateError, TypeMismatchError
from restboot.runtime.bootstrap import start, stop
from restboot.runtime.delegate import RuntimeDelegate
from restboot.runtime.instance import LifecycleState, RunningInstance
from restboot.runtime.state import (
    get_runtime_delegate,
    has_runtime_delegate,
    set_runtime_delegate,
)
from restboot.runtime.uvicorn_delegate import ShutdownReport, normalize_root_path


LOOPBACK = "127.0.0.1"


def loopback_builder():
    return builder().host(LOOPBACK).port(constants.DEFAULT_PORT)


def port_is_free(port):
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        probe.bind((LOOPBACK, port))
        return True
    except OSError:
        return False
    finally:
        probe.close()


@pytest.mark.parametrize(
    "raw, expected",
    [("/", "/"), ("", "/"), ("api", "/api"), ("/api/", "/api"), ("//a/b//", "/a/b")],
)
def test_normalize_root_path(raw, expected):
    assert normalize_root_path(raw) == expected


@pytest.mark.asyncio
async def test_auto_port_is_published_in_configuration(app):
    instance = await start(app, loopback_builder().build())
    try:
        config = instance.configuration()

        assert instance.state is LifecycleState.RUNNING
        assert config.port() > 0
        assert config.protocol() == "HTTP"
        assert config.host() == LOOPBACK
        assert instance.url == f"http://{LOOPBACK}:{config.port()}/"
    finally:
        await instance.stop()


@pytest.mark.asyncio
async def test_application_served_under_root_path(app):
    instance = await start(app, loopback_builder().root_path("api").build())
    try:
        port = instance.configuration().port()
        assert instance.configuration().root_path() == "/api"

        async with httpx.AsyncClient(base_url=f"http://{LOOPBACK}:{port}") as client:
            greeting = await client.get("/api/greetings/Ada")
            health = await client.get("/api/health")
            outside = await client.get("/greetings/Ada")

        assert greeting.status_code == 200
        assert greeting.json() == {"message": "Hello, Ada!"}
        assert health.json()["status"] == "healthy"
        assert outside.status_code == 404
    finally:
        await instance.stop()


@pytest.mark.asyncio
async def test_concurrent_stops_release_port_once(app):
    instance = await start(app, loopback_builder().build())
    port = instance.configuration().port()

    first, second = await asyncio.gather(instance.stop(), stop(instance))

    assert first == second
    assert instance.state is LifecycleState.STOPPED
    assert port_is_free(port)

    report = first.unwrap(ShutdownReport, required=True)
    assert report.released == (f"{LOOPBACK}:{port}",)
    assert report.started_at <= report.stopped_at


@pytest.mark.asyncio
async def test_native_handle_is_uvicorn_server(app):
    instance = await start(app, loopback_builder().build())
    try:
        assert isinstance(instance.unwrap(uvicorn.Server), uvicorn.Server)
        assert instance.unwrap(str) is None
        with pytest.raises(TypeMismatchError):
            instance.unwrap(str, required=True)
    finally:
        await instance.stop()


@pytest.mark.asyncio
async def test_port_in_use_fails_startup(app, occupied_port):
    config = builder().host(LOOPBACK).port(occupied_port).build()

    with pytest.raises(RuntimeStartupError) as exc_info:
        await start(app, config)

    assert isinstance(exc_info.value.cause, OSError)


@pytest.mark.asyncio
async def test_unsupported_protocol_fails_startup(app):
    config = loopback_builder().protocol("FTP").build()

    with pytest.raises(RuntimeStartupError) as exc_info:
        await start(app, config)

    assert isinstance(exc_info.value.cause, ValueError)


@pytest.mark.asyncio
async def test_out_of_range_port_fails_startup(app):
    with pytest.raises(RuntimeStartupError):
        await start(app, builder().host(LOOPBACK).port(70000).build())


@pytest.mark.asyncio
async def test_wrongly_typed_tls_context_fails_startup(app):
    config = (
        loopback_builder()
        .protocol("HTTPS")
        .set(constants.TLS_CONTEXT, "not-a-context")
        .build()
    )

    with pytest.raises(RuntimeStartupError) as exc_info:
        await start(app, config)

    assert isinstance(exc_info.value.cause, TypeMismatchError)


@pytest.mark.asyncio
async def test_https_applies_client_auth_mode(app):
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    config = (
        loopback_builder()
        .protocol("https")
        .tls_context(context)
        .tls_client_auth_mode(ClientAuthMode.MANDATORY)
        .build()
    )

    instance = await start(app, config)
    try:
        server = instance.unwrap(uvicorn.Server, required=True)

        assert instance.configuration().protocol() == "HTTPS"
        assert server.config.ssl is context
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert instance.url.startswith("https://")
    finally:
        await instance.stop()


@pytest.mark.asyncio
async def test_lifespan_failure_fails_startup():
    @asynccontextmanager
    async def broken_lifespan(app):
        raise RuntimeError("database unavailable")
        yield

    broken = FastAPI(lifespan=broken_lifespan)
    config = loopback_builder().set("uvicorn.lifespan", "on").build()

    with pytest.raises(RuntimeStartupError):
        await start(broken, config)


@pytest.mark.asyncio
async def test_uvicorn_keys_pass_through(app):
    config = (
        loopback_builder()
        .set("uvicorn.timeout_graceful_shutdown", 1)
        .set("uvicorn.not_an_option", True)
        .set("uvicorn.port", 1)
        .build()
    )

    instance = await start(app, config)
    try:
        server = instance.unwrap(uvicorn.Server, required=True)

        assert server.config.timeout_graceful_shutdown == 1
        assert instance.configuration().port() != 1
    finally:
        await instance.stop()


@pytest.mark.asyncio
async def test_start_without_configuration_uses_defaults(app):
    instance = await start(app)
    try:
        config = instance.configuration()

        assert config.host() == constants.DEFAULT_HOST
        assert config.port() > 0
        assert config.root_path() == "/"
    finally:
        await instance.stop()


class RecordingDelegate(RuntimeDelegate):
    def __init__(self):
        self.calls = []

    async def bootstrap(self, application, configuration):
        self.calls.append((application, configuration))

        async def shutdown():
            return "recorded"

        instance = RunningInstance(configuration, application, shutdown=shutdown)
        instance.mark_running()
        return instance


@pytest.mark.asyncio
async def test_installed_delegate_is_used(app):
    delegate = RecordingDelegate()
    assert not has_runtime_delegate()
    set_runtime_delegate(delegate)
    assert has_runtime_delegate()
    config = builder().port(1234).build()

    instance = await start(app, config)
    result = await instance.stop()

    assert get_runtime_delegate() is delegate
    assert delegate.calls == [(app, config)]
    assert instance.configuration() is config
    assert result.unwrap(str) == "recorded"


def test_second_delegate_cannot_be_installed():
    set_runtime_delegate(RecordingDelegate())

    with pytest.raises(RuntimeStateError):
        set_runtime_delegate(RecordingDelegate())
