"""Pytest fixtures for bootstrap tests"""

import os
import socket

import pytest

from restboot.api.endpoints import create_app
from restboot.runtime.state import clear_runtime_delegate
from restboot.settings import refresh_app_settings_cache


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Remove RESTBOOT_* variables so host settings never leak into tests"""
    for name in list(os.environ):
        if name.upper().startswith("RESTBOOT_"):
            monkeypatch.delenv(name, raising=False)
    refresh_app_settings_cache()
    yield
    refresh_app_settings_cache()


@pytest.fixture(autouse=True)
def reset_runtime_delegate():
    """Drop any delegate a test installed"""
    yield
    clear_runtime_delegate()


@pytest.fixture
def app():
    """Demo FastAPI application"""
    return create_app()


@pytest.fixture
def occupied_port():
    """A loopback port held by a listening socket for the duration of a test"""
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    yield blocker.getsockname()[1]
    blocker.close()
