import asyncio
import threading
from datetime import timedelta

import pytest

from filestore.storage.base import FileStore, run_blocking


class RecordingStore(FileStore):
    def __init__(self) -> None:
        self.closed = False

    @property
    def backend_name(self) -> str:
        return "memory"

    async def save(self, content, original_filename, content_type):
        return "key"

    async def retrieve(self, key):
        raise NotImplementedError

    async def delete(self, key):
        return False

    async def exists(self, key):
        return False

    async def get_access_url(self, key, expiry: timedelta):
        return f"/files/{key}"

    async def close(self) -> None:
        self.closed = True


class TestRunBlocking:
    def test_returns_result(self):
        result = asyncio.run(run_blocking(lambda cancelled, a, b=0: a + b, 2, b=3))
        assert result == 5

    def test_passes_unset_event(self):
        event = asyncio.run(run_blocking(lambda cancelled: cancelled))
        assert isinstance(event, threading.Event)
        assert not event.is_set()

    def test_propagates_exceptions(self):
        def boom(cancelled):
            raise OSError("disk full")

        with pytest.raises(OSError, match="disk full"):
            asyncio.run(run_blocking(boom))

    def test_cancellation_sets_flag_for_worker(self):
        started = threading.Event()
        release = threading.Event()
        seen = {}

        def work(cancelled):
            started.set()
            release.wait(5)
            seen["cancelled"] = cancelled.is_set()

        async def scenario():
            task = asyncio.create_task(run_blocking(work))
            await asyncio.to_thread(started.wait, 5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            release.set()

        asyncio.run(scenario())
        assert seen["cancelled"] is True


class TestFileStoreContextManager:
    def test_closes_on_exit(self):
        store = RecordingStore()

        async def scenario():
            async with store as entered:
                assert entered is store
                assert not store.closed

        asyncio.run(scenario())
        assert store.closed

    def test_closes_on_error(self):
        store = RecordingStore()

        async def scenario():
            async with store:
                raise RuntimeError("caller failed")

        with pytest.raises(RuntimeError):
            asyncio.run(scenario())
        assert store.closed

    def test_default_close_is_noop(self):
        class NoClose(RecordingStore):
            close = FileStore.close

        asyncio.run(NoClose().close())
