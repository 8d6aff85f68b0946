"""State manager facade over the pluggable backends."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from driverelay.server.services.backends.interface import StateBackend

logger = logging.getLogger(__name__)


class BackendType(str, Enum):
    """Available state backends."""

    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class StateManager:
    """Key-value access used by the session registry."""

    def __init__(self, backend: StateBackend) -> None:
        self.backend = backend

    @property
    def durable(self) -> bool:
        return self.backend.durable

    async def connect(self) -> None:
        await self.backend.connect()

    async def close(self) -> None:
        await self.backend.close()

    async def get(self, key: str) -> Optional[str]:
        return await self.backend.get(key)

    async def set(self, key: str, value: str, nx: bool = False) -> bool:
        return await self.backend.set(key, value, nx=nx)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def scan_keys(self, pattern: str) -> list[str]:
        return await self.backend.scan_keys(pattern)


async def create_state_manager(
    backend_type: BackendType,
    storage_path: Optional[Path] = None,
    redis_url: Optional[str] = None,
) -> StateManager:
    """Build and connect a state manager.

    Args:
        backend_type: Which backend to use
        storage_path: Base directory (file backend keeps its data in ``state/``)
        redis_url: Connection URL (redis backend)

    Returns:
        Connected StateManager
    """
    backend: StateBackend
    if backend_type == BackendType.MEMORY:
        from driverelay.server.services.backends.memory import MemoryStateBackend

        backend = MemoryStateBackend()
        logger.warning("Using in-memory state backend: uploads will not survive a restart")
    elif backend_type == BackendType.FILE:
        from driverelay.server.services.backends.file import FileStateBackend

        if storage_path is None:
            raise ValueError("storage_path is required for the file state backend")
        backend = FileStateBackend(Path(storage_path) / "state")
    elif backend_type == BackendType.REDIS:
        from driverelay.server.services.backends.redis import RedisStateBackend

        if not redis_url:
            raise ValueError("redis_url is required for the redis state backend")
        backend = RedisStateBackend(redis_url)
    else:
        raise ValueError(f"Unknown state backend: {backend_type}")

    manager = StateManager(backend)
    await manager.connect()
    logger.info("State backend ready: %s", backend_type.value)
    return manager
