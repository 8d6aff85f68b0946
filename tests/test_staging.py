"""Tests for the staging writer."""

import pytest

from driverelay.server.tus.models import ErrorKind, TusError
from driverelay.server.tus.staging import StagingWriter

from .conftest import byte_stream, failing_stream


@pytest.fixture
async def staging(tmp_path):
    writer = StagingWriter(tmp_path / "uploads", fsync=False)
    await writer.initialize()
    await writer.create("u1")
    return writer


class TestStagingWriter:
    """Tests for StagingWriter."""

    async def test_create_empty_artifact(self, staging):
        assert await staging.exists("u1")
        assert await staging.size("u1") == 0

    async def test_sequential_writes(self, staging):
        assert await staging.write("u1", 0, byte_stream(b"hel", b"lo")) == 5
        assert await staging.write("u1", 5, byte_stream(b" world")) == 11
        with staging.open_reader("u1") as f:
            assert f.read() == b"hello world"

    async def test_fsync_enabled(self, tmp_path):
        writer = StagingWriter(tmp_path / "synced")
        await writer.initialize()
        await writer.create("u1")
        assert await writer.write("u1", 0, byte_stream(b"abc")) == 3

    async def test_offset_mismatch_leaves_artifact_unchanged(self, staging):
        await staging.write("u1", 0, byte_stream(b"hello"))
        with pytest.raises(TusError) as exc_info:
            await staging.write("u1", 3, byte_stream(b"XX"))
        assert exc_info.value.kind == ErrorKind.OFFSET_MISMATCH
        assert exc_info.value.status_code == 409
        with staging.open_reader("u1") as f:
            assert f.read() == b"hello"

    async def test_stream_failure_keeps_received_bytes(self, staging):
        with pytest.raises(TusError) as exc_info:
            await staging.write("u1", 0, failing_stream([b"abc", b"de"], ConnectionError("client went away")))
        assert exc_info.value.kind == ErrorKind.WRITE_FAILURE
        assert exc_info.value.status_code == 500
        assert await staging.size("u1") == 5

        # Client resumes from the durable offset
        assert await staging.write("u1", 5, byte_stream(b"f")) == 6

    async def test_limit_rejects_excess_bytes(self, staging):
        with pytest.raises(TusError) as exc_info:
            await staging.write("u1", 0, byte_stream(b"abc", b"defg"), limit=5)
        assert exc_info.value.kind == ErrorKind.UPLOAD_TOO_LARGE
        assert exc_info.value.status_code == 413
        assert await staging.size("u1") == 3

    async def test_missing_artifact(self, staging):
        with pytest.raises(TusError) as exc_info:
            await staging.write("nope", 0, byte_stream(b"x"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.parametrize("upload_id", ["", ".", "..", "a/b", "a\\b"])
    async def test_unsafe_ids(self, staging, upload_id):
        with pytest.raises(TusError):
            staging.get_file_path(upload_id)

    async def test_remove(self, staging):
        await staging.remove("u1")
        assert not await staging.exists("u1")
        # Removing twice is harmless
        await staging.remove("u1")
