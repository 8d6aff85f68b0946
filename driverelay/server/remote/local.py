"""Local directory remote store for development and tests."""

import asyncio
import logging
import re
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from driverelay.common.constants import COPY_CHUNK_SIZE
from driverelay.server.remote.base import RemoteStore
from driverelay.server.tus.models import TusErrors

logger = logging.getLogger(__name__)


class LocalRemoteStore(RemoteStore):
    """Objects written as files into an existing directory."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)

    async def ensure_container(self) -> str:
        if not self.base_path.is_dir():
            raise TusErrors.container_missing(f"directory {self.base_path} does not exist")
        return str(self.base_path.resolve())

    def _copy(self, body: BinaryIO, target: Path) -> None:
        with open(target, "xb") as f:
            shutil.copyfileobj(body, f, COPY_CHUNK_SIZE)

    async def create_object(
        self,
        name: str,
        content_type: str,
        container_id: str,
        body: BinaryIO,
        size: int,
    ) -> str:
        object_id = f"{uuid.uuid4().hex[:12]}_{self._sanitize_filename(name)}"
        target = Path(container_id) / object_id
        await asyncio.to_thread(self._copy, body, target)
        logger.info("Stored %s as %s", name, target, extra={"size": size, "content_type": content_type})
        return object_id

    def get_backend_name(self) -> str:
        return "local"

    @staticmethod
    def _sanitize_filename(filename: str) -> str:
        """Remove path traversal and dangerous characters."""
        safe = filename.replace("../", "").replace("..\\", "")
        safe = safe.replace("/", "_").replace("\\", "_")
        safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
        return safe[:200]
