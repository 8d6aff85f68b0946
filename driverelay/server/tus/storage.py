"""TUS relay store: staging, session registry and remote finalization."""

import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterable, Callable, Optional

from driverelay.common.constants import TUS_EXTENSIONS
from driverelay.server.tus.events import UploadEvents
from driverelay.server.tus.finalizer import Finalizer, is_complete
from driverelay.server.tus.metadata import decode_metadata, resolve_target
from driverelay.server.tus.models import SessionState, TusError, TusErrors, UploadSession, UploadStatus
from driverelay.server.tus.registry import SessionRegistry
from driverelay.server.tus.staging import StagingWriter

if TYPE_CHECKING:
    from driverelay.server.remote.base import RemoteStore
    from driverelay.server.services.state import StateManager

logger = logging.getLogger(__name__)


def default_naming_function(request: Any = None) -> str:
    """Generate a random upload id."""
    return uuid.uuid4().hex


class TusStorage:
    """TUS data store relaying finished uploads to a remote store.

    This store handles:
    - Session records via the SessionRegistry (StateManager backed)
    - Upload bytes in local staging artifacts
    - Remote object creation and cleanup once an upload is complete

    ``initialize()`` must succeed before any upload is accepted: it
    verifies the remote container exists.
    """

    extensions = TUS_EXTENSIONS

    def __init__(
        self,
        storage_path: Path,
        state_manager: "StateManager",
        remote: "RemoteStore",
        events: Optional[UploadEvents] = None,
        naming_function: Callable[[Any], str] = default_naming_function,
        max_size: Optional[int] = None,
        fsync: bool = True,
        recover_on_startup: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            storage_path: Base path for local staging
            state_manager: StateManager instance for session state
            remote: Destination of finished uploads
            events: Event sink (created if omitted)
            naming_function: Returns a new upload id for a request
            max_size: Maximum upload size in bytes (None = unlimited)
            fsync: fsync staging writes before acknowledging them
            recover_on_startup: Resume interrupted finalizations in initialize()
        """
        self.storage_path = Path(storage_path)
        self.uploads_path = self.storage_path / "uploads"
        self.remote = remote
        self.events = events if events is not None else UploadEvents()
        self.naming_function = naming_function
        self.max_size = max_size
        self.recover_on_startup = recover_on_startup

        self.registry = SessionRegistry(state_manager)
        self.staging = StagingWriter(self.uploads_path, fsync=fsync)
        self.finalizer = Finalizer(self.registry, self.staging, remote, self.events)

    @property
    def container_id(self) -> Optional[str]:
        return self.finalizer.container_id

    async def initialize(self) -> None:
        """Prepare directories and verify the remote container.

        Raises:
            TusError: ContainerMissing; the store must not be used
        """
        await self.staging.initialize()
        self.finalizer.container_id = await self.remote.ensure_container()
        logger.info(
            "Store ready: staging=%s remote=%s container=%s",
            self.uploads_path,
            self.remote.get_backend_name(),
            self.container_id,
        )
        if self.recover_on_startup:
            await self.recover()

    def _require_ready(self) -> None:
        if self.container_id is None:
            raise RuntimeError("TusStorage.initialize() has not completed")

    def generate_upload_id(self, request: Any = None) -> str:
        """Get a new upload id from the naming function."""
        try:
            upload_id = self.naming_function(request)
        except Exception as e:
            logger.error("Naming function failed: %s", e, exc_info=True)
            raise TusErrors.id_generation_failure(str(e)) from e

        if not upload_id or not isinstance(upload_id, str) or "/" in upload_id or "\\" in upload_id:
            raise TusErrors.id_generation_failure(f"unusable upload id {upload_id!r}")
        return upload_id

    async def create(
        self,
        upload_id: str,
        upload_length: Optional[int],
        upload_defer_length: bool = False,
        upload_metadata: Optional[str] = None,
    ) -> UploadSession:
        """Create a new upload.

        Args:
            upload_id: Id from ``generate_upload_id``
            upload_length: Declared total size, or None when deferred
            upload_defer_length: Length will be sent with a later write
            upload_metadata: Raw Upload-Metadata header

        Returns:
            The new session
        """
        self._require_ready()

        # Reject metadata that could never be finalized before any byte is sent
        resolve_target(decode_metadata(upload_metadata))

        if upload_length is not None and self.max_size is not None and upload_length > self.max_size:
            raise TusErrors.upload_too_large()

        session = await self.registry.create(upload_id, upload_length, upload_defer_length, upload_metadata)
        try:
            await self.staging.create(upload_id)
        except OSError as e:
            logger.error("Could not create staging artifact for %s: %s", upload_id, e)
            raise TusErrors.write_failure(upload_id) from e
        logger.info("Created upload %s (length=%s)", upload_id, upload_length)
        self.events.emit(UploadEvents.FILE_CREATED, {"file": session})

        if is_complete(session, 0):
            await self.finalizer.finalize(session)

        return session

    async def get_offset(self, upload_id: str) -> UploadStatus:
        """Get the current offset and declared length of an upload."""
        session = await self.registry.get(upload_id)
        return UploadStatus(
            upload_id=upload_id,
            offset=await self.staging.size(upload_id),
            declared_length=session.declared_length,
            length_deferred=session.length_deferred,
            raw_metadata=session.raw_metadata,
        )

    def _remaining(self, session: UploadSession, offset: int) -> Optional[int]:
        if session.declared_length is not None:
            return max(0, session.declared_length - offset)
        if self.max_size is not None:
            return max(0, self.max_size - offset)
        return None

    async def write(
        self,
        upload_id: str,
        offset: int,
        stream: AsyncIterable[bytes],
        upload_length: Optional[int] = None,
    ) -> int:
        """Write a byte stream at ``offset`` and finalize when complete.

        Args:
            upload_id: Upload identifier
            offset: Starting offset (must equal the staged size)
            stream: Request body
            upload_length: Resolves a deferred length

        Returns:
            New offset

        Raises:
            TusError: Any write or finalization failure; a finalization
                failure is reported even though the bytes were staged
        """
        self._require_ready()

        session = await self.registry.get(upload_id)
        if session.remote_object_id:
            # Remote object exists and the artifact may already be gone: finish cleanup only
            await self.finalizer.finalize(session)
            return session.declared_length if session.declared_length is not None else offset

        if session.state in (SessionState.COMPLETING, SessionState.REMOTE_CREATED):
            # Bytes are all staged; a write (usually empty) retries finalization
            new_offset = await self.staging.write(upload_id, offset, stream, limit=0)
            await self.finalizer.finalize(session)
            return new_offset

        if upload_length is not None:
            if self.max_size is not None and upload_length > self.max_size:
                raise TusErrors.upload_too_large()
            if upload_length < offset:
                raise TusErrors.invalid_length(f"Upload-Length {upload_length} is below offset {offset}")
            session = await self.registry.declare_length(upload_id, upload_length)

        session = await self.registry.transition(upload_id, SessionState.WRITING)
        try:
            new_offset = await self.staging.write(upload_id, offset, stream, limit=self._remaining(session, offset))
        finally:
            await self.registry.transition(upload_id, SessionState.PENDING)

        if is_complete(session, new_offset):
            logger.info("Upload %s complete (%d bytes), finalizing", upload_id, new_offset)
            await self.finalizer.finalize(session)

        return new_offset

    async def finalize(self, upload_id: str) -> str:
        """Retry finalization of a fully staged upload."""
        self._require_ready()
        session = await self.registry.get(upload_id)
        if not session.remote_object_id and not is_complete(session, await self.staging.size(upload_id)):
            raise TusErrors.upload_incomplete(upload_id)
        return await self.finalizer.finalize(session)

    async def recover(self) -> int:
        """Finish finalizations interrupted by a crash or a remote failure.

        Returns:
            Number of uploads finalized
        """
        recovered = 0
        for session in await self.registry.list_sessions():
            try:
                if not session.remote_object_id:
                    if not await self.staging.exists(session.id):
                        logger.warning("Upload %s has no staging artifact, skipping", session.id)
                        continue
                    if not is_complete(session, await self.staging.size(session.id)):
                        continue
                await self.finalizer.finalize(session)
                recovered += 1
            except TusError as e:
                logger.error("Recovery of upload %s failed: %s", session.id, e.message)

        if recovered:
            logger.info("Recovered %d interrupted upload(s)", recovered)
        return recovered
