"""
JSON File Store with Concurrency Control

Persists the in-memory layout to a single JSON document:

    {"menu": [...], "members": {...}, "orders": [...], "counters": {...}}

Every mutation rewrites the whole file atomically (temp file + os.replace)
while holding a FileLock, so a crashed write never leaves a truncated file
behind and two processes never interleave writes. A write that fails
(lock timeout, disk error) propagates and the staged change is dropped, so
memory never runs ahead of the file.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from restaurant_api.repositories.memory import MemoryStore, empty_state

logger = logging.getLogger(__name__)


class JsonFileStore(MemoryStore):
    """File-backed variant of MemoryStore."""

    def __init__(self, path: Path, lock_timeout: float = 30, seed_menu: bool = True):
        super().__init__(seed_menu=seed_menu)
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    @property
    def backend_name(self) -> str:
        return "json"

    async def init(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._state = await asyncio.to_thread(self._load)
        logger.info(
            f"Loaded JSON store {self.path} "
            f"({len(self._state['menu'])} menu items, {len(self._state['orders'])} orders)"
        )
        await super().init()

    async def health_check(self) -> bool:
        return self.path.parent.exists() and os.access(self.path.parent, os.W_OK)

    def _load(self) -> dict[str, Any]:
        state = empty_state()
        if not self.path.exists():
            return state
        with FileLock(str(self.lock_path), timeout=self.lock_timeout):
            with self.path.open("r", encoding="utf-8") as fh:
                loaded = json.load(fh)
        for key, default in state.items():
            value = loaded.get(key, default)
            if isinstance(default, dict):
                value = {**default, **value}
            state[key] = value
        return state

    def _write(self, snapshot: str) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                try:
                    tmp_path.write_text(snapshot, encoding="utf-8")
                    os.replace(tmp_path, self.path)
                except OSError as e:
                    tmp_path.unlink(missing_ok=True)
                    logger.error(f"Could not write {self.path}: {e}")
                    raise
        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) writing {self.path}")
            raise

    async def _persist(self, state: dict[str, Any]) -> None:
        snapshot = json.dumps(state, ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write, snapshot)
        logger.debug(f"JSON store written to {self.path}")
