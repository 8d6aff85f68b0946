"""TUS protocol implementation for FastAPI."""

__all__ = [
    "TusHandler",
    "TusStorage",
    "UploadSession",
    "UploadEvents",
    "TusError",
    "ErrorKind",
    "decode_metadata",
]

# Lazy imports


def __getattr__(name):
    if name == "TusHandler":
        from driverelay.server.tus.handler import TusHandler

        return TusHandler
    if name == "TusStorage":
        from driverelay.server.tus.storage import TusStorage

        return TusStorage
    if name == "UploadEvents":
        from driverelay.server.tus.events import UploadEvents

        return UploadEvents
    if name == "decode_metadata":
        from driverelay.server.tus.metadata import decode_metadata

        return decode_metadata
    if name in ("UploadSession", "TusError", "ErrorKind"):
        from driverelay.server.tus.models import ErrorKind, TusError, UploadSession

        return locals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
