"""FastAPI server main entry point."""

import logging
from pathlib import Path
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from driverelay import __version__
from driverelay.common.constants import TusHeaders
from driverelay.server.config import ServerSettings, load_server_settings
from driverelay.server.logging_setup import setup_logging
from driverelay.server.remote import RemoteStore, get_remote_store
from driverelay.server.services.state import BackendType, create_state_manager
from driverelay.server.tus.events import UploadEvents
from driverelay.server.tus.handler import TusHandler
from driverelay.server.tus.models import TusError
from driverelay.server.tus.storage import TusStorage

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ServerSettings] = None,
    remote: Optional[RemoteStore] = None,
    events: Optional[UploadEvents] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Server settings (None = load from env/config via auto-discovery)
        remote: Remote store to relay into (None = built from settings)
        events: Event sink shared with the store (None = a fresh one)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = load_server_settings()

    app = FastAPI(
        title="DriveRelay Server",
        description="TUS upload server relaying finished uploads to cloud storage",
        version=__version__,
    )
    app.state.settings = settings
    app.state.storage = None
    app.state.events = events if events is not None else UploadEvents()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            TusHeaders.TUS_RESUMABLE,
            TusHeaders.TUS_VERSION,
            TusHeaders.TUS_EXTENSION,
            TusHeaders.TUS_MAX_SIZE,
            TusHeaders.UPLOAD_OFFSET,
            TusHeaders.UPLOAD_LENGTH,
            TusHeaders.UPLOAD_DEFER_LENGTH,
            TusHeaders.UPLOAD_METADATA,
            TusHeaders.LOCATION,
        ],
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        """Initialize services on startup."""
        setup_logging(settings)

        state_manager = await create_state_manager(
            backend_type=BackendType(settings.state_backend),
            storage_path=settings.storage_path,
            redis_url=settings.redis_url,
        )
        app.state.state_manager = state_manager

        storage = TusStorage(
            storage_path=settings.storage_path,
            state_manager=state_manager,
            remote=remote if remote is not None else get_remote_store(settings),
            events=app.state.events,
            max_size=settings.max_upload_size,
            fsync=settings.staging_fsync,
            recover_on_startup=settings.recover_on_startup,
        )
        try:
            await storage.initialize()
        except TusError as e:
            # No uploads are accepted without a verified destination
            logger.critical("Refusing to start: %s", e.message)
            await state_manager.close()
            raise

        app.state.storage = storage
        logger.info("Started on port %s (state backend: %s)", settings.port, settings.state_backend)
        if settings.max_upload_size:
            logger.info("Max upload size: %d bytes", settings.max_upload_size)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Cleanup on shutdown."""
        state_manager = getattr(app.state, "state_manager", None)
        if state_manager is not None:
            await state_manager.close()
        logger.info("Shutdown complete")

    class StorageProxy:
        """Resolves to the store created at startup."""

        def __getattr__(self, name: str) -> Any:
            storage = app.state.storage
            if storage is None:
                raise RuntimeError("Storage not initialized")
            return getattr(storage, name)

    TusHandler(StorageProxy(), settings.tus_path).install(app)  # type: ignore[arg-type]

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Liveness and destination summary."""
        storage = app.state.storage
        return {
            "status": "ok" if storage is not None else "starting",
            "version": __version__,
            "remote_backend": settings.remote_backend,
            "container_id": storage.container_id if storage is not None else None,
        }

    return app


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    workers: Optional[int] = None,
    config_path: Optional[Path] = None,
    storage_path: Optional[Path] = None,
    state_backend: Optional[str] = None,
    redis_url: Optional[str] = None,
    remote_backend: Optional[str] = None,
) -> None:
    """Run the server.

    Args:
        host: Bind host
        port: Bind port
        workers: Number of workers
        config_path: Path to config file (None = auto-discover)
        storage_path: Path to storage directory
        state_backend: State backend type (memory, file, redis)
        redis_url: Redis connection URL (if using redis backend)
        remote_backend: Destination type (gcs, drive, local)
    """
    settings = load_server_settings(
        config_path,
        host=host,
        port=port,
        workers=workers,
        storage_path=storage_path,
        state_backend=state_backend,
        redis_url=redis_url,
        remote_backend=remote_backend,
    )
    settings.storage_path.mkdir(parents=True, exist_ok=True)

    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        log_config=None,
    )


if __name__ == "__main__":
    run_server()
