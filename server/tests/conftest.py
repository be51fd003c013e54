"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import nearhelp.main as main_module
from nearhelp.config import AppConfig
from nearhelp.core.stats import EngineStats
from nearhelp.storage.memory_storage import MemoryDocumentStore, MemoryLocationHistory


@pytest.fixture
def config():
    config = AppConfig()
    config.logging.level = "warning"
    return config


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def history():
    return MemoryLocationHistory()


@pytest.fixture
def stats(config):
    return EngineStats(active_window_seconds=config.limits.active_window_seconds)


@pytest.fixture
def service(config, store, history, stats):
    return main_module.build_service(config, store, history, stats)


@pytest.fixture(autouse=True)
def _init_server(config, stats, service):
    """Initialize server singletons for every test, on in-memory storage."""
    main_module._config = config
    main_module._stats = stats
    main_module._service = service

    yield

    main_module._config = None
    main_module._stats = None
    main_module._service = None


@pytest.fixture
async def client():
    from nearhelp.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
