"""TUS relay models and errors."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from driverelay.common.constants import DEFAULT_CONTENT_TYPE


class SessionState(str, Enum):
    """Lifecycle of one upload session."""

    PENDING = "pending"  # Created, waiting for bytes
    WRITING = "writing"  # A write is streaming into the staging artifact
    COMPLETING = "completing"  # All bytes staged, remote create in progress or failed
    REMOTE_CREATED = "remote_created"  # Remote object exists, local cleanup pending
    CLEANED = "cleaned"  # Record and artifact removed (never persisted)


ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.PENDING: frozenset({SessionState.WRITING, SessionState.COMPLETING}),
    SessionState.WRITING: frozenset({SessionState.PENDING, SessionState.WRITING, SessionState.COMPLETING}),
    SessionState.COMPLETING: frozenset({SessionState.COMPLETING, SessionState.REMOTE_CREATED}),
    SessionState.REMOTE_CREATED: frozenset({SessionState.CLEANED}),
    SessionState.CLEANED: frozenset(),
}


class UploadSession(BaseModel):
    """Upload session state stored in the registry."""

    id: str = Field(..., description="Unique upload identifier")
    declared_length: Optional[int] = Field(None, description="Total size in bytes, None while deferred")
    length_deferred: bool = Field(False, description="Length supplied by a later write")
    raw_metadata: str = Field("", description="Upload-Metadata header as received")
    remote_object_id: Optional[str] = Field(None, description="Object id in the remote store")
    state: SessionState = Field(SessionState.PENDING)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def length_known(self) -> bool:
        return self.declared_length is not None

    def to_state_json(self) -> str:
        """Serialize for the state backend."""
        return self.model_dump_json()

    @classmethod
    def from_state_json(cls, data: str) -> "UploadSession":
        """Create from a state backend value."""
        return cls.model_validate_json(data)


class UploadTarget(BaseModel):
    """Name and type of the remote object, resolved from metadata."""

    name: str
    content_type: str = DEFAULT_CONTENT_TYPE


class UploadStatus(BaseModel):
    """Answer to an offset query (HEAD)."""

    upload_id: str
    offset: int
    declared_length: Optional[int] = None
    length_deferred: bool = False
    raw_metadata: str = ""


class ErrorKind(str, Enum):
    """Failure taxonomy of the relay."""

    INVALID_LENGTH = "InvalidLength"
    ID_GENERATION_FAILURE = "IdGenerationFailure"
    OFFSET_MISMATCH = "OffsetMismatch"
    WRITE_FAILURE = "WriteFailure"
    INVALID_METADATA = "InvalidMetadata"
    REMOTE_CREATE_FAILURE = "RemoteCreateFailure"
    NOT_FOUND = "NotFound"
    CONTAINER_MISSING = "ContainerMissing"
    UPLOAD_TOO_LARGE = "UploadTooLarge"
    PROTOCOL = "Protocol"


class TusError(Exception):
    """TUS protocol error."""

    def __init__(self, status_code: int, message: str, kind: ErrorKind = ErrorKind.PROTOCOL) -> None:
        self.status_code = status_code
        self.message = message
        self.kind = kind
        super().__init__(message)

    def __repr__(self) -> str:
        return f"TusError({self.kind.value}, {self.status_code}, {self.message!r})"


class TusErrors:
    """Common TUS errors."""

    @staticmethod
    def invalid_length(detail: str = "Upload-Length or Upload-Defer-Length required") -> TusError:
        return TusError(400, f"Bad Request: {detail}", ErrorKind.INVALID_LENGTH)

    @staticmethod
    def id_generation_failure(detail: str) -> TusError:
        return TusError(500, f"Could not assign upload id: {detail}", ErrorKind.ID_GENERATION_FAILURE)

    @staticmethod
    def offset_mismatch(expected: int, got: int) -> TusError:
        return TusError(409, f"Conflict: expected offset {expected}, got {got}", ErrorKind.OFFSET_MISMATCH)

    @staticmethod
    def write_failure(upload_id: str) -> TusError:
        return TusError(500, f"Failed to write upload {upload_id}", ErrorKind.WRITE_FAILURE)

    @staticmethod
    def invalid_metadata(detail: str) -> TusError:
        return TusError(400, f"Invalid Upload-Metadata: {detail}", ErrorKind.INVALID_METADATA)

    @staticmethod
    def remote_create_failure(upload_id: str) -> TusError:
        return TusError(502, f"Remote store rejected upload {upload_id}", ErrorKind.REMOTE_CREATE_FAILURE)

    @staticmethod
    def upload_not_found() -> TusError:
        return TusError(404, "Upload not found", ErrorKind.NOT_FOUND)

    @staticmethod
    def container_missing(detail: str) -> TusError:
        return TusError(503, f"Remote container unavailable: {detail}", ErrorKind.CONTAINER_MISSING)

    @staticmethod
    def upload_too_large() -> TusError:
        return TusError(413, "Request Entity Too Large", ErrorKind.UPLOAD_TOO_LARGE)

    @staticmethod
    def invalid_version() -> TusError:
        return TusError(412, "Precondition Failed: Invalid Tus-Resumable header")

    @staticmethod
    def invalid_content_type() -> TusError:
        return TusError(415, "Unsupported Media Type")

    @staticmethod
    def missing_header(header: str) -> TusError:
        return TusError(400, f"Bad Request: Missing required header {header}")

    @staticmethod
    def invalid_header(header: str) -> TusError:
        return TusError(400, f"Bad Request: Invalid {header} header")

    @staticmethod
    def upload_incomplete(upload_id: str) -> TusError:
        return TusError(409, f"Conflict: upload {upload_id} is not complete")

    @staticmethod
    def not_finalized(upload_id: str) -> TusError:
        return TusError(409, f"Conflict: upload {upload_id} has no remote object yet")
