from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta
from types import TracebackType
from typing import BinaryIO, TypeVar

T = TypeVar("T")

CHUNK_SIZE = 64 * 1024


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run blocking I/O in a worker thread.

    ``func`` receives a ``threading.Event`` as its first argument. The event is
    set when the awaiting task is cancelled so long copies can stop between
    chunks. The caller always sees the native ``asyncio.CancelledError``.
    """
    cancelled = threading.Event()
    try:
        return await asyncio.to_thread(func, cancelled, *args, **kwargs)
    except asyncio.CancelledError:
        cancelled.set()
        raise


class FileStore(ABC):
    """Storage contract shared by every provider.

    Keys are generated by ``save`` and are opaque to callers.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the name of this backend (e.g. 'local', 's3')."""
        ...

    @abstractmethod
    async def save(self, content: BinaryIO, original_filename: str, content_type: str) -> str:
        """Persist ``content`` under a newly generated key and return the key."""
        ...

    @abstractmethod
    async def retrieve(self, key: str) -> BinaryIO:
        """Return a readable stream positioned at the start of the file."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete the file; deleting an absent key is not an error."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def get_access_url(self, key: str, expiry: timedelta) -> str:
        """Return a URL usable without further authentication for at least ``expiry``."""
        ...

    async def close(self) -> None:
        """Release the underlying client handle, if any."""

    async def __aenter__(self) -> FileStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
