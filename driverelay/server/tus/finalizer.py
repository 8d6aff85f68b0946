"""Completion detection and remote finalization."""

import logging
from typing import TYPE_CHECKING, Optional

from driverelay.server.tus.events import UploadEvents
from driverelay.server.tus.metadata import decode_metadata, resolve_target
from driverelay.server.tus.models import SessionState, TusError, TusErrors, UploadSession

if TYPE_CHECKING:
    from driverelay.server.remote.base import RemoteStore
    from driverelay.server.tus.registry import SessionRegistry
    from driverelay.server.tus.staging import StagingWriter

logger = logging.getLogger(__name__)


def is_complete(session: UploadSession, offset: int) -> bool:
    """Whether ``offset`` reaches the declared length.

    Always False while the length is still deferred.
    """
    if session.declared_length is None:
        return False
    return offset == session.declared_length


class Finalizer:
    """Moves a fully staged upload to the remote store, then cleans up.

    Steps: decode metadata, create the remote object from the staging
    artifact, record its id, delete the artifact, delete the session,
    emit events. A failure before the id is recorded leaves all local
    state in place.
    """

    def __init__(
        self,
        registry: "SessionRegistry",
        staging: "StagingWriter",
        remote: "RemoteStore",
        events: UploadEvents,
    ) -> None:
        self.registry = registry
        self.staging = staging
        self.remote = remote
        self.events = events
        self.container_id: Optional[str] = None

    async def finalize(self, session: UploadSession) -> str:
        """Finalize one session.

        Args:
            session: Session whose artifact holds all declared bytes

        Returns:
            Remote object id

        Raises:
            TusError: InvalidMetadata, NotFound or RemoteCreateFailure
        """
        if self.container_id is None:
            raise RuntimeError("Finalizer used before the remote container was verified")

        if session.remote_object_id:
            # Remote object already exists (crash after create): only clean up
            logger.info(
                "Upload %s already in remote store as %s, resuming cleanup",
                session.id,
                session.remote_object_id,
            )
            await self._cleanup(session, session.remote_object_id)
            return session.remote_object_id

        target = resolve_target(decode_metadata(session.raw_metadata))
        session = await self.registry.transition(session.id, SessionState.COMPLETING)
        size = await self.staging.size(session.id)

        try:
            with self.staging.open_reader(session.id) as body:
                remote_id = await self.remote.create_object(
                    name=target.name,
                    content_type=target.content_type,
                    container_id=self.container_id,
                    body=body,
                    size=size,
                )
        except TusError:
            raise
        except Exception as e:
            logger.error(
                "Remote create failed for %s (%s): %s",
                session.id,
                self.remote.get_backend_name(),
                e,
                exc_info=True,
            )
            raise TusErrors.remote_create_failure(session.id) from e

        session = await self.registry.set_remote_object_id(session.id, remote_id)
        await self._cleanup(session, remote_id)
        return remote_id

    async def _cleanup(self, session: UploadSession, remote_id: str) -> None:
        await self.staging.remove(session.id)
        await self.registry.delete(session.id)
        session.state = SessionState.CLEANED
        logger.info("Upload %s finalized as %s", session.id, remote_id)

        self.events.emit(UploadEvents.UPLOAD_COMPLETE, {"file": session})
        if remote_id != session.id:
            self.events.emit(UploadEvents.UPLOAD_COMPLETE_REMOTE, {"file": session, "remote_id": remote_id})
