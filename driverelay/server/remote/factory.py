"""Remote store selection."""

from typing import TYPE_CHECKING

from driverelay.server.remote.base import RemoteStore

if TYPE_CHECKING:
    from driverelay.server.config import ServerSettings

GCS_SCOPES = ["https://www.googleapis.com/auth/devstorage.read_write"]


def get_remote_store(settings: "ServerSettings") -> RemoteStore:
    """Build the configured remote store with its own credential.

    Raises:
        ValueError: If the backend is unknown or misconfigured
    """
    if settings.remote_backend == "gcs":
        from google.cloud import storage

        from driverelay.server.remote.credentials import load_credentials
        from driverelay.server.remote.gcs import GCSRemoteStore

        credentials = load_credentials(settings, GCS_SCOPES)
        client = storage.Client(project=settings.gcp_project, credentials=credentials)
        return GCSRemoteStore(client, settings.gcs_bucket, prefix=settings.gcs_prefix)

    if settings.remote_backend == "drive":
        from driverelay.server.remote.credentials import load_credentials
        from driverelay.server.remote.drive import DRIVE_SCOPES, DriveRemoteStore

        credentials = load_credentials(settings, DRIVE_SCOPES)
        return DriveRemoteStore(
            credentials,
            settings.drive_id,
            folder_id=settings.drive_folder_id,
            timeout=settings.remote_timeout,
        )

    if settings.remote_backend == "local":
        from driverelay.server.remote.local import LocalRemoteStore

        return LocalRemoteStore(settings.local_remote_path)

    raise ValueError(f"Unknown remote backend: {settings.remote_backend}")
