"""Google shared drive remote store (Drive v3 REST)."""

import asyncio
import logging
from typing import Any, BinaryIO

import requests
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession

from driverelay.server.remote.base import RemoteStore
from driverelay.server.tus.models import TusErrors

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]


class DriveRemoteStore(RemoteStore):
    """Files created at the root of a shared drive, or in a folder within it."""

    def __init__(
        self,
        credentials: Credentials,
        drive_id: str,
        folder_id: str = "",
        timeout: float = 300.0,
    ) -> None:
        if not drive_id:
            raise ValueError("Shared drive id not configured")
        self.session = AuthorizedSession(credentials)
        self.drive_id = drive_id
        self.folder_id = folder_id
        self.timeout = timeout

    def _get_drive(self) -> dict[str, Any]:
        response = self.session.get(
            f"{DRIVE_API_URL}/drives/{self.drive_id}",
            params={"fields": "id,name"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]

    async def ensure_container(self) -> str:
        try:
            drive = await asyncio.to_thread(self._get_drive)
        except (requests.RequestException, GoogleAuthError, ValueError) as e:
            logger.error("Shared drive %s lookup failed: %s", self.drive_id, e)
            raise TusErrors.container_missing(f"shared drive {self.drive_id}: {e}") from e

        if not drive.get("id"):
            raise TusErrors.container_missing(f"shared drive {self.drive_id} has no id")

        logger.info("Using shared drive %s (%s)", drive.get("name"), drive["id"])
        return self.folder_id or drive["id"]  # type: ignore[no-any-return]

    def _upload(self, name: str, content_type: str, parent_id: str, body: BinaryIO, size: int) -> str:
        # Resumable session: metadata first, then the body in one PUT
        start = self.session.post(
            DRIVE_UPLOAD_URL,
            params={"uploadType": "resumable", "supportsAllDrives": "true"},
            json={"name": name, "mimeType": content_type, "parents": [parent_id]},
            headers={
                "X-Upload-Content-Type": content_type,
                "X-Upload-Content-Length": str(size),
            },
            timeout=self.timeout,
        )
        start.raise_for_status()
        session_url = start.headers.get("Location")
        if not session_url:
            raise RuntimeError("Drive did not return an upload session URL")

        response = self.session.put(
            session_url,
            data=body,
            headers={"Content-Type": content_type, "Content-Length": str(size)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        file_id = response.json().get("id")
        if not file_id:
            raise RuntimeError("Drive upload response carries no file id")
        return file_id  # type: ignore[no-any-return]

    async def create_object(
        self,
        name: str,
        content_type: str,
        container_id: str,
        body: BinaryIO,
        size: int,
    ) -> str:
        file_id = await asyncio.to_thread(self._upload, name, content_type, container_id, body, size)
        logger.info(
            "Uploaded %s to shared drive %s as %s",
            name,
            self.drive_id,
            file_id,
            extra={"size": size, "content_type": content_type},
        )
        return file_id

    def get_backend_name(self) -> str:
        return "drive"
