"""Google Cloud Storage remote store."""

import asyncio
import logging
from typing import BinaryIO

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from driverelay.server.remote.base import RemoteStore
from driverelay.server.tus.models import TusErrors

logger = logging.getLogger(__name__)


class GCSRemoteStore(RemoteStore):
    """Objects created in a GCS bucket.

    The authenticated client is passed in; nothing is configured globally.
    """

    def __init__(self, client: storage.Client, bucket_name: str, prefix: str = "") -> None:
        if not bucket_name:
            raise ValueError("GCS bucket name not configured")
        self.client = client
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")

    def _object_name(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    async def ensure_container(self) -> str:
        try:
            bucket = await asyncio.to_thread(self.client.get_bucket, self.bucket_name)
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.error("Bucket %s lookup failed: %s", self.bucket_name, e)
            raise TusErrors.container_missing(f"bucket {self.bucket_name}: {e}") from e

        if bucket is None or not getattr(bucket, "name", None):
            raise TusErrors.container_missing(f"bucket {self.bucket_name} does not exist")

        logger.info("Using GCS bucket %s", bucket.name)
        return bucket.name  # type: ignore[no-any-return]

    async def create_object(
        self,
        name: str,
        content_type: str,
        container_id: str,
        body: BinaryIO,
        size: int,
    ) -> str:
        blob = self.client.bucket(container_id).blob(self._object_name(name))

        await asyncio.to_thread(
            blob.upload_from_file,
            body,
            size=size,
            content_type=content_type,
        )

        object_id = blob.id or f"{container_id}/{blob.name}"
        logger.info(
            "Uploaded %s to gs://%s/%s",
            name,
            container_id,
            blob.name,
            extra={"size": size, "content_type": content_type},
        )
        return object_id  # type: ignore[no-any-return]

    def get_backend_name(self) -> str:
        return "gcs"
