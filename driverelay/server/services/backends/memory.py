"""In-memory state backend for tests and development."""

import fnmatch
from typing import Optional

from driverelay.server.services.backends.interface import StateBackend


class MemoryStateBackend(StateBackend):
    """Dict-backed state. Lost when the process exits."""

    durable = False

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str, nx: bool = False) -> bool:
        if nx and key in self._data:
            return False
        self._data[key] = value
        return True

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def scan_keys(self, pattern: str) -> list[str]:
        return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
