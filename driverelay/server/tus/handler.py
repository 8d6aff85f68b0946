"""TUS protocol handler for FastAPI."""

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, Response

from driverelay.common.constants import CONTENT_TYPE_OFFSET, TUS_VERSION, TusHeaders
from driverelay.server.tus.models import TusError, TusErrors
from driverelay.server.tus.storage import TusStorage

logger = logging.getLogger(__name__)


def get_tus_headers() -> dict:
    """Get common TUS response headers."""
    return {
        TusHeaders.TUS_RESUMABLE: TUS_VERSION,
        TusHeaders.TUS_VERSION: TUS_VERSION,
    }


def _parse_int_header(request: Request, header: str) -> Optional[int]:
    value = request.headers.get(header)
    if value is None:
        return None
    # Plain ASCII digits only: no sign, whitespace or underscores
    if not (value.isascii() and value.isdigit()):
        raise TusErrors.invalid_header(header)
    return int(value)


def create_tus_router(
    storage: TusStorage,
    path: str = "/files",
) -> APIRouter:
    """Create a TUS protocol router.

    Args:
        storage: TUS relay store (initialized)
        path: Base path of the upload collection

    Returns:
        FastAPI router with TUS endpoints
    """
    router = APIRouter(tags=["TUS"])
    base = "/" + path.strip("/")

    def validate_tus_version(request: Request) -> None:
        """Validate Tus-Resumable header."""
        tus_version = request.headers.get(TusHeaders.TUS_RESUMABLE)
        if tus_version and tus_version != TUS_VERSION:
            raise TusErrors.invalid_version()

    @router.options(base)
    @router.options(base + "/{upload_id}")
    async def tus_options(request: Request) -> Response:
        """Handle OPTIONS request - return server capabilities."""
        headers = get_tus_headers()
        headers[TusHeaders.TUS_EXTENSION] = ",".join(storage.extensions)
        if storage.max_size:
            headers[TusHeaders.TUS_MAX_SIZE] = str(storage.max_size)

        return Response(status_code=204, headers=headers)

    @router.post(base)
    async def tus_create(request: Request) -> Response:
        """Handle POST request - create new upload."""
        validate_tus_version(request)

        upload_length = _parse_int_header(request, TusHeaders.UPLOAD_LENGTH)
        defer_header = request.headers.get(TusHeaders.UPLOAD_DEFER_LENGTH)
        if defer_header is not None and defer_header != "1":
            raise TusErrors.invalid_header(TusHeaders.UPLOAD_DEFER_LENGTH)

        upload_id = storage.generate_upload_id(request)
        session = await storage.create(
            upload_id,
            upload_length=upload_length,
            upload_defer_length=defer_header == "1",
            upload_metadata=request.headers.get(TusHeaders.UPLOAD_METADATA),
        )

        offset = 0
        # creation-with-upload
        if request.headers.get(TusHeaders.CONTENT_TYPE) == CONTENT_TYPE_OFFSET and session.declared_length != 0:
            offset = await storage.write(upload_id, 0, request.stream())

        headers = get_tus_headers()
        headers[TusHeaders.LOCATION] = str(request.url).rstrip("/") + f"/{upload_id}"
        headers[TusHeaders.UPLOAD_OFFSET] = str(offset)

        return Response(status_code=201, headers=headers)

    @router.head(base + "/{upload_id}")
    async def tus_head(upload_id: str, request: Request) -> Response:
        """Handle HEAD request - get upload offset."""
        validate_tus_version(request)

        status = await storage.get_offset(upload_id)

        headers = get_tus_headers()
        headers[TusHeaders.UPLOAD_OFFSET] = str(status.offset)
        if status.declared_length is not None:
            headers[TusHeaders.UPLOAD_LENGTH] = str(status.declared_length)
        else:
            headers[TusHeaders.UPLOAD_DEFER_LENGTH] = "1"
        if status.raw_metadata:
            headers[TusHeaders.UPLOAD_METADATA] = status.raw_metadata

        # Add cache control to prevent caching
        headers["Cache-Control"] = "no-store"

        return Response(status_code=200, headers=headers)

    @router.patch(base + "/{upload_id}")
    async def tus_patch(upload_id: str, request: Request) -> Response:
        """Handle PATCH request - stream bytes into the upload."""
        validate_tus_version(request)

        if request.headers.get(TusHeaders.CONTENT_TYPE) != CONTENT_TYPE_OFFSET:
            raise TusErrors.invalid_content_type()

        offset = _parse_int_header(request, TusHeaders.UPLOAD_OFFSET)
        if offset is None:
            raise TusErrors.missing_header(TusHeaders.UPLOAD_OFFSET)

        new_offset = await storage.write(
            upload_id,
            offset,
            request.stream(),
            upload_length=_parse_int_header(request, TusHeaders.UPLOAD_LENGTH),
        )

        headers = get_tus_headers()
        headers[TusHeaders.UPLOAD_OFFSET] = str(new_offset)

        return Response(status_code=204, headers=headers)

    return router


async def tus_error_handler(request: Request, exc: TusError) -> Response:
    """Render a TusError as a plain-text response."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)

    return Response(
        content=exc.message,
        status_code=exc.status_code,
        headers=get_tus_headers(),
        media_type="text/plain",
    )


class TusHandler:
    """TUS protocol handler wrapper for easier integration."""

    def __init__(self, storage: TusStorage, path: str = "/files") -> None:
        self.storage = storage
        self.path = path
        self.router = create_tus_router(storage, path)

    def get_router(self) -> APIRouter:
        """Get the TUS router."""
        return self.router

    def install(self, app: FastAPI) -> None:
        """Mount the router and the TusError handler on an app."""
        app.include_router(self.router)
        app.add_exception_handler(TusError, tus_error_handler)  # type: ignore[arg-type]
