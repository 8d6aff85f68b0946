"""Staging writer: local artifacts that accumulate upload bytes."""

import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterable, BinaryIO, Optional

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

from driverelay.server.tus.models import TusError, TusErrors

logger = logging.getLogger(__name__)


class StagingWriter:
    """One file per upload id under ``uploads_path``.

    The artifact size is the upload offset. A write is acknowledged only
    after its bytes are flushed (and fsynced unless disabled).
    """

    def __init__(self, uploads_path: Path, fsync: bool = True) -> None:
        self.uploads_path = Path(uploads_path)
        self.fsync = fsync

    async def initialize(self) -> None:
        """Create the staging directory."""
        self.uploads_path.mkdir(parents=True, exist_ok=True)

    def get_file_path(self, upload_id: str) -> Path:
        """Get the staging path for an upload."""
        if not upload_id or "/" in upload_id or "\\" in upload_id or upload_id in (".", ".."):
            raise TusErrors.upload_not_found()
        return self.uploads_path / upload_id

    async def create(self, upload_id: str) -> None:
        """Create an empty artifact (grows as chunks arrive)."""
        async with aiofiles.open(self.get_file_path(upload_id), "wb") as _:
            pass

    async def exists(self, upload_id: str) -> bool:
        return await aiofiles.os.path.exists(self.get_file_path(upload_id))  # type: ignore[no-any-return]

    async def size(self, upload_id: str) -> int:
        """Current artifact size, which is the durable offset."""
        try:
            stat = await aiofiles.os.stat(self.get_file_path(upload_id))
        except FileNotFoundError:
            raise TusErrors.upload_not_found()
        return stat.st_size  # type: ignore[no-any-return]

    async def write(
        self,
        upload_id: str,
        offset: int,
        stream: AsyncIterable[bytes],
        limit: Optional[int] = None,
    ) -> int:
        """Append a byte stream at ``offset``.

        Args:
            upload_id: Upload identifier
            offset: Where the caller believes the artifact ends
            stream: Inbound bytes, consumed chunk by chunk
            limit: Maximum number of bytes accepted after ``offset``

        Returns:
            New offset (``offset`` + bytes written)

        Raises:
            TusError: OffsetMismatch, UploadTooLarge, NotFound or WriteFailure
        """
        current = await self.size(upload_id)
        if current != offset:
            raise TusErrors.offset_mismatch(current, offset)

        file_path = self.get_file_path(upload_id)
        written = 0
        try:
            async with aiofiles.open(file_path, "r+b") as f:
                await f.seek(offset)
                try:
                    async for chunk in stream:
                        if not chunk:
                            continue
                        if limit is not None and written + len(chunk) > limit:
                            raise TusErrors.upload_too_large()
                        await f.write(chunk)
                        written += len(chunk)
                finally:
                    await f.flush()
                    if self.fsync:
                        await asyncio.to_thread(os.fsync, f.fileno())
        except TusError:
            raise
        except Exception as e:
            # Drop any torn chunk so the artifact ends on an acknowledged boundary
            await self._truncate(file_path, offset + written)
            logger.warning(
                "Write to %s failed after %d bytes at offset %d: %s",
                upload_id,
                written,
                offset,
                e,
            )
            raise TusErrors.write_failure(upload_id) from e

        logger.debug("%d bytes written to %s", written, upload_id)
        return offset + written

    async def _truncate(self, file_path: Path, length: int) -> None:
        try:
            await asyncio.to_thread(os.truncate, file_path, length)
        except OSError:
            logger.error("Could not truncate %s to %d bytes", file_path, length, exc_info=True)

    def open_reader(self, upload_id: str) -> BinaryIO:
        """Open the artifact for a single read pass."""
        try:
            return open(self.get_file_path(upload_id), "rb")
        except FileNotFoundError:
            raise TusErrors.upload_not_found()

    async def remove(self, upload_id: str) -> None:
        """Delete the artifact. Missing artifacts are ignored."""
        try:
            await aiofiles.os.remove(self.get_file_path(upload_id))
        except FileNotFoundError:
            pass
