"""Pytest configuration and shared fixtures."""

from typing import AsyncIterator, BinaryIO, Iterable

import pytest

from driverelay.server.remote.base import RemoteStore
from driverelay.server.remote.local import LocalRemoteStore
from driverelay.server.services.backends.memory import MemoryStateBackend
from driverelay.server.services.state import StateManager
from driverelay.server.tus.events import UploadEvents
from driverelay.server.tus.metadata import encode_metadata
from driverelay.server.tus.storage import TusStorage


async def byte_stream(*chunks: bytes) -> AsyncIterator[bytes]:
    """Async body made of the given chunks."""
    for chunk in chunks:
        yield chunk


async def failing_stream(chunks: Iterable[bytes], exc: Exception) -> AsyncIterator[bytes]:
    """Async body that raises after yielding its chunks."""
    for chunk in chunks:
        yield chunk
    raise exc


class FlakyRemote(RemoteStore):
    """Remote that records uploads and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.objects: dict[str, bytes] = {}
        self.calls = 0

    async def ensure_container(self) -> str:
        return "container-1"

    async def create_object(self, name: str, content_type: str, container_id: str, body: BinaryIO, size: int) -> str:
        self.calls += 1
        if self.fail:
            raise RuntimeError("backend unavailable")
        remote_id = f"obj-{self.calls}"
        self.objects[remote_id] = body.read()
        return remote_id

    def get_backend_name(self) -> str:
        return "flaky"


@pytest.fixture
def metadata_header():
    """Upload-Metadata for a small text file."""
    return encode_metadata({"name": "test.txt", "type": "text/plain"})


@pytest.fixture
def state_manager():
    """State manager over an in-memory backend."""
    return StateManager(MemoryStateBackend())


@pytest.fixture
def remote_dir(tmp_path):
    """Existing directory used as the remote container."""
    path = tmp_path / "remote"
    path.mkdir()
    return path


@pytest.fixture
def events():
    return UploadEvents()


@pytest.fixture
def completed(events):
    """Collects upload-complete payloads."""
    received = []
    events.on(UploadEvents.UPLOAD_COMPLETE, received.append)
    return received


@pytest.fixture
async def storage(tmp_path, state_manager, remote_dir, events):
    """Initialized relay store writing to a local remote directory."""
    store = TusStorage(
        storage_path=tmp_path / "staging",
        state_manager=state_manager,
        remote=LocalRemoteStore(remote_dir),
        events=events,
        fsync=False,
    )
    await store.initialize()
    return store
