"""Tests for the relay store: create, write, finalize, recover."""

import pytest

from driverelay.server.remote.local import LocalRemoteStore
from driverelay.server.tus.events import UploadEvents
from driverelay.server.tus.metadata import encode_metadata
from driverelay.server.tus.models import ErrorKind, SessionState, TusError
from driverelay.server.tus.storage import TusStorage

from .conftest import FlakyRemote, byte_stream


def remote_files(remote_dir):
    return sorted(remote_dir.iterdir())


async def make_storage(tmp_path, state_manager, remote, events=None, **kwargs):
    store = TusStorage(
        storage_path=tmp_path / "staging",
        state_manager=state_manager,
        remote=remote,
        events=events,
        fsync=False,
        **kwargs,
    )
    await store.initialize()
    return store


class TestUploadFlow:
    """Uploads relayed into a local remote directory."""

    async def test_single_write_finalizes(self, storage, metadata_header, remote_dir, completed):
        await storage.create("u1", 5, upload_metadata=metadata_header)
        assert await storage.write("u1", 0, byte_stream(b"hello")) == 5

        files = remote_files(remote_dir)
        assert len(files) == 1
        assert files[0].name.endswith("_test.txt")
        assert files[0].read_bytes() == b"hello"

        assert len(completed) == 1
        assert completed[0]["file"].id == "u1"
        assert completed[0]["file"].state == SessionState.CLEANED

        assert not await storage.staging.exists("u1")
        with pytest.raises(TusError) as exc_info:
            await storage.get_offset("u1")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    async def test_multiple_writes_finalize_once(self, storage, metadata_header, remote_dir, completed):
        await storage.create("u1", 11, upload_metadata=metadata_header)
        assert await storage.write("u1", 0, byte_stream(b"hello")) == 5
        assert completed == []
        assert (await storage.get_offset("u1")).offset == 5

        assert await storage.write("u1", 5, byte_stream(b" ", b"world")) == 11
        assert len(completed) == 1
        assert [f.read_bytes() for f in remote_files(remote_dir)] == [b"hello world"]

    async def test_remote_id_event(self, storage, metadata_header, events):
        received = []
        events.on(UploadEvents.UPLOAD_COMPLETE_REMOTE, received.append)

        await storage.create("u1", 2, upload_metadata=metadata_header)
        await storage.write("u1", 0, byte_stream(b"hi"))

        assert len(received) == 1
        assert received[0]["remote_id"].endswith("_test.txt")

    async def test_file_created_event(self, storage, metadata_header, events):
        created = []
        events.on(UploadEvents.FILE_CREATED, created.append)
        await storage.create("u1", 5, upload_metadata=metadata_header)
        assert created[0]["file"].id == "u1"

    async def test_zero_length_finalizes_at_create(self, storage, metadata_header, remote_dir, completed):
        await storage.create("u0", 0, upload_metadata=metadata_header)
        files = remote_files(remote_dir)
        assert len(files) == 1
        assert files[0].read_bytes() == b""
        assert len(completed) == 1

    async def test_deferred_length(self, storage, metadata_header, remote_dir, completed):
        await storage.create("u1", None, upload_defer_length=True, upload_metadata=metadata_header)
        assert await storage.write("u1", 0, byte_stream(b"abc")) == 3
        status = await storage.get_offset("u1")
        assert status.declared_length is None
        assert status.length_deferred is True

        assert await storage.write("u1", 3, byte_stream(b"de"), upload_length=5) == 5
        assert len(completed) == 1
        assert remote_files(remote_dir)[0].read_bytes() == b"abcde"

    async def test_length_below_offset(self, storage, metadata_header):
        await storage.create("u1", None, upload_defer_length=True, upload_metadata=metadata_header)
        await storage.write("u1", 0, byte_stream(b"abcd"))
        with pytest.raises(TusError) as exc_info:
            await storage.write("u1", 4, byte_stream(b""), upload_length=2)
        assert exc_info.value.kind == ErrorKind.INVALID_LENGTH

    async def test_bytes_beyond_declared_length(self, storage, metadata_header):
        await storage.create("u1", 3, upload_metadata=metadata_header)
        with pytest.raises(TusError) as exc_info:
            await storage.write("u1", 0, byte_stream(b"abcdef"))
        assert exc_info.value.status_code == 413
        session = await storage.registry.get("u1")
        assert session.state == SessionState.PENDING

    async def test_offset_mismatch(self, storage, metadata_header):
        await storage.create("u1", 10, upload_metadata=metadata_header)
        await storage.write("u1", 0, byte_stream(b"hello"))
        with pytest.raises(TusError) as exc_info:
            await storage.write("u1", 2, byte_stream(b"xyz"))
        assert exc_info.value.kind == ErrorKind.OFFSET_MISMATCH
        assert (await storage.get_offset("u1")).offset == 5

    async def test_write_unknown_upload(self, storage):
        with pytest.raises(TusError) as exc_info:
            await storage.write("nope", 0, byte_stream(b"x"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


class TestCreateValidation:
    async def test_missing_name_rejected_before_registration(self, storage):
        with pytest.raises(TusError) as exc_info:
            await storage.create("u1", 5, upload_metadata=encode_metadata({"type": "text/plain"}))
        assert exc_info.value.kind == ErrorKind.INVALID_METADATA
        assert await storage.registry.list_sessions() == []

    async def test_max_size(self, tmp_path, state_manager, remote_dir, metadata_header):
        store = await make_storage(tmp_path, state_manager, LocalRemoteStore(remote_dir), max_size=5)
        with pytest.raises(TusError) as exc_info:
            await store.create("u1", 10, upload_metadata=metadata_header)
        assert exc_info.value.kind == ErrorKind.UPLOAD_TOO_LARGE

    async def test_naming_function_failure(self, tmp_path, state_manager, remote_dir):
        def broken(request):
            raise RuntimeError("no entropy")

        store = await make_storage(tmp_path, state_manager, LocalRemoteStore(remote_dir), naming_function=broken)
        with pytest.raises(TusError) as exc_info:
            store.generate_upload_id()
        assert exc_info.value.kind == ErrorKind.ID_GENERATION_FAILURE

    async def test_generated_ids_are_unique(self, storage):
        assert storage.generate_upload_id() != storage.generate_upload_id()


class TestRemoteFailure:
    async def test_failure_keeps_local_state_and_retries(self, tmp_path, state_manager, metadata_header, events):
        remote = FlakyRemote(fail=True)
        store = await make_storage(tmp_path, state_manager, remote, events=events)

        await store.create("u1", 5, upload_metadata=metadata_header)
        with pytest.raises(TusError) as exc_info:
            await store.write("u1", 0, byte_stream(b"hello"))
        assert exc_info.value.kind == ErrorKind.REMOTE_CREATE_FAILURE
        assert exc_info.value.status_code == 502

        session = await store.registry.get("u1")
        assert session.state == SessionState.COMPLETING
        assert session.remote_object_id is None
        assert await store.staging.size("u1") == 5

        remote.fail = False
        assert await store.write("u1", 5, byte_stream()) == 5
        assert remote.objects == {"obj-2": b"hello"}
        assert not await store.staging.exists("u1")

    async def test_finalize_retry(self, tmp_path, state_manager, metadata_header):
        remote = FlakyRemote(fail=True)
        store = await make_storage(tmp_path, state_manager, remote)
        await store.create("u1", 5, upload_metadata=metadata_header)
        with pytest.raises(TusError):
            await store.write("u1", 0, byte_stream(b"hello"))

        remote.fail = False
        assert await store.finalize("u1") == "obj-2"

    async def test_finalize_incomplete(self, storage, metadata_header):
        await storage.create("u1", 5, upload_metadata=metadata_header)
        with pytest.raises(TusError) as exc_info:
            await storage.finalize("u1")
        assert exc_info.value.status_code == 409


class TestInitializeAndRecover:
    async def test_container_missing(self, tmp_path, state_manager):
        store = TusStorage(
            storage_path=tmp_path / "staging",
            state_manager=state_manager,
            remote=LocalRemoteStore(tmp_path / "does-not-exist"),
        )
        with pytest.raises(TusError) as exc_info:
            await store.initialize()
        assert exc_info.value.kind == ErrorKind.CONTAINER_MISSING
        assert exc_info.value.status_code == 503

        with pytest.raises(RuntimeError):
            await store.create("u1", 5, upload_metadata="name YQ==")

    async def test_recover_completes_staged_upload(self, tmp_path, state_manager, metadata_header):
        remote = FlakyRemote()
        first = TusStorage(tmp_path / "staging", state_manager, remote, fsync=False)
        await first.staging.initialize()
        await first.registry.create("u1", 3, False, metadata_header)
        await first.staging.create("u1")
        await first.staging.write("u1", 0, byte_stream(b"abc"))

        second = await make_storage(tmp_path, state_manager, remote)
        assert remote.objects == {"obj-1": b"abc"}
        assert await second.registry.list_sessions() == []

    async def test_recover_with_remote_id_only_cleans_up(self, tmp_path, state_manager, metadata_header, events):
        remote = FlakyRemote()
        first = TusStorage(tmp_path / "staging", state_manager, remote, fsync=False)
        await first.staging.initialize()
        await first.registry.create("u1", 3, False, metadata_header)
        await first.staging.create("u1")
        await first.staging.write("u1", 0, byte_stream(b"abc"))
        await first.registry.transition("u1", SessionState.COMPLETING)
        await first.registry.set_remote_object_id("u1", "obj-existing")

        completed = []
        events.on(UploadEvents.UPLOAD_COMPLETE, completed.append)
        second = await make_storage(tmp_path, state_manager, remote, events=events)

        assert remote.calls == 0
        assert not await second.staging.exists("u1")
        assert await second.registry.list_sessions() == []
        assert len(completed) == 1

    async def test_recover_skips_incomplete(self, tmp_path, state_manager, metadata_header):
        remote = FlakyRemote()
        first = await make_storage(tmp_path, state_manager, remote)
        await first.create("u1", 10, upload_metadata=metadata_header)
        await first.write("u1", 0, byte_stream(b"abc"))

        assert await first.recover() == 0
        assert remote.calls == 0
        assert (await first.get_offset("u1")).offset == 3


class TestFinalizationEdgeCases:
    async def test_failing_listener_does_not_fail_upload(self, storage, metadata_header, events):
        remote_events = []

        def broken_listener(payload):
            raise RuntimeError("listener broke")

        events.on(UploadEvents.UPLOAD_COMPLETE, broken_listener)
        events.on(UploadEvents.UPLOAD_COMPLETE_REMOTE, remote_events.append)

        await storage.create("u1", 5, upload_metadata=metadata_header)
        assert await storage.write("u1", 0, byte_stream(b"hello")) == 5

        assert len(remote_events) == 1
        assert await storage.registry.list_sessions() == []

    async def test_missing_name_at_finalization_stays_retryable(self, storage):
        await storage.registry.create("u2", 2, False, "type dGV4dC9wbGFpbg==")
        await storage.staging.create("u2")

        with pytest.raises(TusError) as exc_info:
            await storage.write("u2", 0, byte_stream(b"hi"))
        assert exc_info.value.kind == ErrorKind.INVALID_METADATA

        session = await storage.registry.get("u2")
        assert session.remote_object_id is None
        assert await storage.staging.size("u2") == 2

    async def test_write_after_artifact_removed_finishes_cleanup(self, tmp_path, state_manager, metadata_header):
        remote = FlakyRemote()
        store = await make_storage(tmp_path, state_manager, remote)
        await store.registry.create("u1", 3, False, metadata_header)
        await store.staging.create("u1")
        await store.staging.write("u1", 0, byte_stream(b"abc"))
        await store.registry.transition("u1", SessionState.COMPLETING)
        await store.registry.set_remote_object_id("u1", "obj-existing")
        # Crash between artifact removal and record deletion
        await store.staging.remove("u1")

        assert await store.write("u1", 3, byte_stream()) == 3
        assert remote.calls == 0
        assert await store.registry.list_sessions() == []
