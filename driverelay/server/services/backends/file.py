"""File state backend: one JSON file per key."""

import asyncio
import fnmatch
import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

from driverelay.server.services.backends.interface import StateBackend

_SUFFIX = ".json"


class FileStateBackend(StateBackend):
    """Persist each key in its own file under a directory.

    Writes go to a temp file that is fsynced and then renamed over the
    target, so a reader sees either the old or the new value.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        # Serialises check-then-set for nx within this process
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)

    def _key_path(self, key: str) -> Path:
        return self.path / f"{quote(key, safe='')}{_SUFFIX}"

    async def get(self, key: str) -> Optional[str]:
        try:
            async with aiofiles.open(self._key_path(key), "r", encoding="utf-8") as f:
                record = json.loads(await f.read())
        except FileNotFoundError:
            return None
        return record["value"]  # type: ignore[no-any-return]

    async def set(self, key: str, value: str, nx: bool = False) -> bool:
        async with self._lock:
            target = self._key_path(key)
            if nx and await aiofiles.os.path.exists(target):
                return False

            tmp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(json.dumps({"key": key, "value": value}))
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(tmp, target)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            try:
                await aiofiles.os.remove(self._key_path(key))
            except FileNotFoundError:
                return False
            return True

    async def scan_keys(self, pattern: str) -> list[str]:
        if not self.path.exists():
            return []
        keys = []
        for name in await aiofiles.os.listdir(self.path):
            if name.startswith(".") or not name.endswith(_SUFFIX):
                continue
            key = unquote(name[: -len(_SUFFIX)])
            if fnmatch.fnmatchcase(key, pattern):
                keys.append(key)
        return sorted(keys)
