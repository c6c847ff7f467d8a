"""
Store Factory

Provides a single entry point for obtaining the storage backend.
The rest of the application stays agnostic about which implementation
is being used.

Usage:
    from restaurant_api.repositories import get_store

    store = get_store()
    items = await store.list_menu()

Backend Switching:
    - STORAGE_BACKEND=memory → MemoryStore (nothing survives a restart)
    - STORAGE_BACKEND=json → JsonFileStore (DATA_DIRECTORY/JSON_STORE_FILENAME)
    - STORAGE_BACKEND=postgres → SqlStore (DATABASE_URL)
"""

import logging
from functools import lru_cache

from restaurant_api.core.config import StorageBackend, get_settings
from restaurant_api.repositories.base import BaseStore, SettleFn
from restaurant_api.repositories.json_file import JsonFileStore
from restaurant_api.repositories.memory import MemoryStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> BaseStore:
    """
    Get the configured store instance.

    The instance is cached so every request shares the same state.
    Tests replace it through FastAPI's ``dependency_overrides``.
    """
    settings = get_settings()

    if settings.storage_backend == StorageBackend.JSON:
        logger.info(f"Store: Using JsonFileStore ({settings.json_store_path})")
        return JsonFileStore(
            settings.json_store_path,
            lock_timeout=settings.file_lock_timeout,
            seed_menu=settings.seed_menu,
        )

    if settings.storage_backend == StorageBackend.POSTGRES:
        # Imported here so the memory/json backends never load a DB driver
        from restaurant_api.database import get_engine
        from restaurant_api.repositories.sql import SqlStore

        logger.info("Store: Using SqlStore")
        return SqlStore(get_engine(), seed_menu=settings.seed_menu)

    logger.info("Store: Using MemoryStore (data is not persisted)")
    return MemoryStore(seed_menu=settings.seed_menu)


def reset_store() -> None:
    """
    Clear the cached store instance.

    The next call to get_store() will create a new instance.
    """
    get_store.cache_clear()
    logger.debug("Store cache cleared")


__all__ = [
    "get_store",
    "reset_store",
    "BaseStore",
    "SettleFn",
    "MemoryStore",
    "JsonFileStore",
]
