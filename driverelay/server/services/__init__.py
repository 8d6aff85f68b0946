"""Server services - state management."""

from driverelay.server.services.backends import FileStateBackend, MemoryStateBackend, StateBackend
from driverelay.server.services.state import BackendType, StateManager, create_state_manager

__all__ = [
    # State management
    "StateManager",
    "BackendType",
    "create_state_manager",
    # Backends
    "StateBackend",
    "MemoryStateBackend",
    "FileStateBackend",
]
