"""Upload-Metadata codec.

Format: ``key1 base64value1,key2 base64value2,...``. A key may appear
without a value.
"""

import base64
import binascii
from typing import Mapping, Optional

from driverelay.common.constants import DEFAULT_CONTENT_TYPE, NAME_METADATA_KEYS, TYPE_METADATA_KEYS
from driverelay.server.tus.models import TusErrors, UploadTarget


def decode_metadata(header_value: Optional[str]) -> dict[str, str]:
    """Parse an Upload-Metadata header value.

    Raises:
        TusError: InvalidMetadata on an empty pair, empty or duplicate key,
            or a value that is not base64-encoded UTF-8
    """
    metadata: dict[str, str] = {}
    if not header_value or not header_value.strip():
        return metadata

    for item in header_value.split(","):
        item = item.strip()
        if not item:
            raise TusErrors.invalid_metadata("empty key/value pair")

        parts = item.split(" ", 1)
        key = parts[0]
        if not key:
            raise TusErrors.invalid_metadata("empty key")
        if key in metadata:
            raise TusErrors.invalid_metadata(f"duplicate key {key!r}")

        if len(parts) == 2 and parts[1].strip():
            try:
                value = base64.b64decode(parts[1].strip(), validate=True).decode("utf-8")
            except (binascii.Error, ValueError) as e:
                raise TusErrors.invalid_metadata(f"value of {key!r} is not base64 UTF-8") from e
        else:
            value = ""

        metadata[key] = value

    return metadata


def encode_metadata(metadata: Mapping[str, str]) -> str:
    """Build an Upload-Metadata header value."""
    items = []
    for key, value in metadata.items():
        if value:
            items.append(f"{key} {base64.b64encode(value.encode()).decode()}")
        else:
            items.append(key)
    return ",".join(items)


def _first(metadata: Mapping[str, str], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = metadata.get(key)
        if value and value.strip():
            return value.strip()
    return None


def resolve_target(metadata: Mapping[str, str]) -> UploadTarget:
    """Pick the remote object name and content type.

    The name is mandatory, the content type falls back to
    application/octet-stream.
    """
    name = _first(metadata, NAME_METADATA_KEYS)
    if name is None:
        raise TusErrors.invalid_metadata(f"one of {', '.join(NAME_METADATA_KEYS)} is required")

    # Keep only the last path component
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    if name in ("", ".", ".."):
        raise TusErrors.invalid_metadata("object name is empty")

    return UploadTarget(
        name=name,
        content_type=_first(metadata, TYPE_METADATA_KEYS) or DEFAULT_CONTENT_TYPE,
    )
