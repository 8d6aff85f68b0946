"""Remote store interface."""

from abc import ABC, abstractmethod
from typing import BinaryIO


class RemoteStore(ABC):
    """Durable destination of finished uploads.

    Only two calls are needed: check the container once at startup and
    create one object per finished upload.
    """

    @abstractmethod
    async def ensure_container(self) -> str:
        """Verify the configured container exists.

        Returns:
            Container identity passed to ``create_object``

        Raises:
            TusError: ContainerMissing
        """

    @abstractmethod
    async def create_object(
        self,
        name: str,
        content_type: str,
        container_id: str,
        body: BinaryIO,
        size: int,
    ) -> str:
        """Create an object from a byte stream.

        Args:
            name: Object name
            content_type: MIME type
            container_id: Value returned by ``ensure_container``
            body: Readable binary stream positioned at 0
            size: Number of bytes in ``body``

        Returns:
            Identifier of the created object
        """

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
