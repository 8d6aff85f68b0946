"""Redis state backend for multi-worker deployments."""

from typing import Optional

from redis.asyncio import Redis

from driverelay.server.services.backends.interface import StateBackend


class RedisStateBackend(StateBackend):
    """State kept in Redis. Durability follows the server's persistence config."""

    def __init__(self, redis_url: str) -> None:
        self.redis_url = redis_url
        self._client: Optional[Redis] = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis backend not connected")
        return self._client

    async def connect(self) -> None:
        if self._client is None:
            self._client = Redis.from_url(self.redis_url, decode_responses=True)
            await self._client.ping()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)  # type: ignore[no-any-return]

    async def set(self, key: str, value: str, nx: bool = False) -> bool:
        return bool(await self.client.set(key, value, nx=nx))

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(key))

    async def scan_keys(self, pattern: str) -> list[str]:
        return [key async for key in self.client.scan_iter(match=pattern)]
