"""Upload lifecycle notifications."""

import asyncio
import logging
from typing import Any, Optional

from pyee.asyncio import AsyncIOEventEmitter

logger = logging.getLogger(__name__)


class UploadEvents(AsyncIOEventEmitter):
    """Event sink for upload lifecycle notifications.

    Listeners receive a single dict payload. Coroutine listeners are
    scheduled on the running loop.
    """

    # Session registered and staging artifact created
    FILE_CREATED = "file-created"
    # {"file": UploadSession}

    # Remote object created and local state cleaned up
    UPLOAD_COMPLETE = "upload-complete"
    # {"file": UploadSession}

    # Remote object id differs from the upload id
    UPLOAD_COMPLETE_REMOTE = "upload-complete-remote"
    # {"file": UploadSession, "remote_id": str}

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__(loop=loop)
        # A failing listener must not turn a finished upload into an error
        self.on("error", self._on_listener_error)

    @staticmethod
    def _on_listener_error(exc: BaseException) -> None:
        logger.error("Upload event listener failed: %s", exc, exc_info=(type(exc), exc, exc.__traceback__))

    def emit(self, event: str, *args: Any, **kwargs: Any) -> bool:
        """Emit an event with logging.

        Returns:
            True if the event had listeners, False otherwise.
        """
        payload = args[0] if args else {}
        upload = payload.get("file") if isinstance(payload, dict) else None
        logger.info("EVENT %s: upload=%s", event, getattr(upload, "id", None))
        return super().emit(event, *args, **kwargs)
