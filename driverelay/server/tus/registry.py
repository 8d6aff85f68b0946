"""Session registry: durable upload-id to session state mapping."""

import json
import logging
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from driverelay.common.constants import StateKeys
from driverelay.server.tus.models import ALLOWED_TRANSITIONS, SessionState, TusErrors, UploadSession

if TYPE_CHECKING:
    from driverelay.server.services.state import StateManager

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Upload sessions kept in a StateManager.

    Each operation touches a single key. Read-modify-write sequences rely
    on the caller issuing at most one in-flight operation per upload id.
    """

    def __init__(self, state_manager: "StateManager") -> None:
        self.state = state_manager

    def _key(self, upload_id: str) -> str:
        return f"{StateKeys.UPLOAD_PREFIX}{upload_id}"

    async def create(
        self,
        upload_id: str,
        declared_length: Optional[int],
        length_deferred: bool,
        raw_metadata: Optional[str],
    ) -> UploadSession:
        """Register a new session.

        Exactly one of ``declared_length`` and ``length_deferred`` must be
        given.

        Raises:
            TusError: InvalidLength, or IdGenerationFailure if the id is taken
        """
        if declared_length is None and not length_deferred:
            raise TusErrors.invalid_length()
        if declared_length is not None and length_deferred:
            raise TusErrors.invalid_length("Upload-Length and Upload-Defer-Length are mutually exclusive")
        if declared_length is not None and declared_length < 0:
            raise TusErrors.invalid_length("Upload-Length must not be negative")

        session = UploadSession(
            id=upload_id,
            declared_length=declared_length,
            length_deferred=length_deferred,
            raw_metadata=raw_metadata or "",
        )
        stored = await self.state.set(self._key(upload_id), session.to_state_json(), nx=True)
        if not stored:
            raise TusErrors.id_generation_failure(f"upload id {upload_id} already in use")

        logger.debug("Registered upload %s (length=%s, deferred=%s)", upload_id, declared_length, length_deferred)
        return session

    async def get(self, upload_id: str) -> UploadSession:
        """Get a session by id.

        Raises:
            TusError: NotFound if absent or unreadable
        """
        data = await self.state.get(self._key(upload_id))
        if not data:
            raise TusErrors.upload_not_found()

        try:
            return UploadSession.from_state_json(data)
        except (json.JSONDecodeError, ValidationError, ValueError):
            logger.error("Unreadable session record for %s", upload_id, exc_info=True)
            raise TusErrors.upload_not_found()

    async def _save(self, session: UploadSession) -> None:
        await self.state.set(self._key(session.id), session.to_state_json())

    async def declare_length(self, upload_id: str, length: int) -> UploadSession:
        """Resolve a deferred length. A no-op when the same length is already set."""
        session = await self.get(upload_id)
        if length < 0:
            raise TusErrors.invalid_length("Upload-Length must not be negative")
        if session.declared_length is not None:
            if session.declared_length != length:
                raise TusErrors.invalid_length(
                    f"Upload-Length {length} conflicts with declared length {session.declared_length}"
                )
            return session

        session.declared_length = length
        await self._save(session)
        logger.info("Upload %s length resolved to %d", upload_id, length)
        return session

    async def transition(self, upload_id: str, state: SessionState) -> UploadSession:
        """Move a session to a new lifecycle state."""
        session = await self.get(upload_id)
        if state not in ALLOWED_TRANSITIONS[session.state]:
            raise ValueError(f"Upload {upload_id}: cannot go from {session.state.value} to {state.value}")
        if session.state != state:
            session.state = state
            await self._save(session)
        return session

    async def set_remote_object_id(self, upload_id: str, remote_id: str) -> UploadSession:
        """Record the remote object. Must happen before the staging artifact is deleted."""
        session = await self.get(upload_id)
        session.state = SessionState.REMOTE_CREATED
        session.remote_object_id = remote_id
        await self._save(session)
        return session

    async def delete(self, upload_id: str) -> None:
        """Remove a session whose remote object exists."""
        session = await self.get(upload_id)
        if not session.remote_object_id:
            raise TusErrors.not_finalized(upload_id)
        await self.state.delete(self._key(upload_id))

    async def list_sessions(self) -> list[UploadSession]:
        """All readable sessions."""
        sessions = []
        for key in await self.state.scan_keys(f"{StateKeys.UPLOAD_PREFIX}*"):
            data = await self.state.get(key)
            if not data:
                continue
            try:
                sessions.append(UploadSession.from_state_json(data))
            except (json.JSONDecodeError, ValidationError, ValueError):
                logger.warning("Skipping unreadable session record %s", key)
        return sessions
