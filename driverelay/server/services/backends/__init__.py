"""State storage backends."""

from driverelay.server.services.backends.file import FileStateBackend
from driverelay.server.services.backends.interface import StateBackend
from driverelay.server.services.backends.memory import MemoryStateBackend

__all__ = [
    "StateBackend",
    "MemoryStateBackend",
    "FileStateBackend",
]
