"""
Shared fixtures: isolated settings, a seeded in-memory store and an
HTTP client bound to the FastAPI app with the store dependency overridden.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from restaurant_api.core.config import get_settings
from restaurant_api.main import app
from restaurant_api.repositories import MemoryStore, get_store, reset_store


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("UPLOAD_DIRECTORY", str(tmp_path / "uploads"))
    monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path / "data"))
    monkeypatch.setenv("EXPORT_ORDERS", "false")
    get_settings.cache_clear()
    reset_store()
    yield get_settings()
    get_settings.cache_clear()
    reset_store()


@pytest.fixture
async def store(anyio_backend, settings):
    store = MemoryStore(seed_menu=True)
    await store.init()
    return store


@pytest.fixture
async def client(anyio_backend, store):
    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
