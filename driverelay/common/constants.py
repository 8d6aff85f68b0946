"""Protocol constants."""

TUS_VERSION = "1.0.0"

TUS_EXTENSIONS = [
    "creation",
    "creation-defer-length",
    "creation-with-upload",
]

CONTENT_TYPE_OFFSET = "application/offset+octet-stream"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Streaming granularity when copying local files
COPY_CHUNK_SIZE = 1024 * 1024

# Metadata keys, in lookup order
NAME_METADATA_KEYS = ("name", "filename")
TYPE_METADATA_KEYS = ("type", "filetype", "content_type")


class TusHeaders:
    """TUS header names."""

    TUS_RESUMABLE = "Tus-Resumable"
    TUS_VERSION = "Tus-Version"
    TUS_EXTENSION = "Tus-Extension"
    TUS_MAX_SIZE = "Tus-Max-Size"
    UPLOAD_OFFSET = "Upload-Offset"
    UPLOAD_LENGTH = "Upload-Length"
    UPLOAD_DEFER_LENGTH = "Upload-Defer-Length"
    UPLOAD_METADATA = "Upload-Metadata"
    CONTENT_TYPE = "Content-Type"
    LOCATION = "Location"


class StateKeys:
    """Key prefixes in the state backend."""

    UPLOAD_PREFIX = "driverelay:upload:"
