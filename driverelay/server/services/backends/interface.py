"""State backend interface."""

from abc import ABC, abstractmethod
from typing import Optional


class StateBackend(ABC):
    """Key-value store holding upload state.

    Every method is atomic for a single key. No multi-key transactions
    are offered.
    """

    #: Whether values survive a process restart
    durable: bool = True

    async def connect(self) -> None:
        """Open connections or directories."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str, nx: bool = False) -> bool:
        """Store value under key.

        Args:
            key: Key
            value: Value
            nx: Only set if the key does not exist yet

        Returns:
            True if the value was stored
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""

    @abstractmethod
    async def scan_keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob pattern."""
