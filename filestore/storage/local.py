from __future__ import annotations

import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

from filestore.storage.base import CHUNK_SIZE, FileStore, run_blocking
from filestore.storage.errors import ErrorKind, StorageError
from filestore.storage.keys import MAX_KEY_ATTEMPTS, generate_key, is_safe_key

logger = logging.getLogger(__name__)


class LocalStoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_dir: Path
    url_prefix: str = "/files"


class LocalFileStore(FileStore):
    """Stores files as flat entries of a single directory.

    Local disks have no signed URLs: ``get_access_url`` returns the
    application route that serves the file, and authorizing that route is the
    web layer's job.
    """

    def __init__(self, config: LocalStoreConfig) -> None:
        self.config = config
        self.base_dir = config.base_dir.resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def backend_name(self) -> str:
        return "local"

    def path_for(self, key: str) -> Path | None:
        """Resolve ``key`` inside the base directory, or None if it would escape it."""
        if not is_safe_key(key):
            return None
        path = (self.base_dir / key).resolve()
        if path.parent != self.base_dir:
            return None
        return path

    def _not_found(self, key: str) -> StorageError:
        return StorageError(ErrorKind.NOT_FOUND, f"File not found: {key}", filename=key)

    async def save(self, content: BinaryIO, original_filename: str, content_type: str) -> str:
        try:
            key, size = await run_blocking(self._write, content, original_filename)
        except StorageError:
            raise
        except Exception as exc:
            logger.exception("Error saving file to local storage: %s", original_filename)
            raise StorageError(
                ErrorKind.SAVE_FAILED, f"Failed to save file: {original_filename}", filename=original_filename
            ) from exc
        logger.info("File saved to local storage: %s (%d bytes, %s)", key, size, content_type)
        return key

    def _write(self, cancelled: threading.Event, content: BinaryIO, original_filename: str) -> tuple[str, int]:
        for _ in range(MAX_KEY_ATTEMPTS):
            key = generate_key(original_filename)
            path = self.base_dir / key
            try:
                out = path.open("xb")
            except FileExistsError:
                logger.warning("Key collision on %s, generating a new one", key)
                continue

            size = 0
            try:
                with out:
                    for chunk in iter(lambda: content.read(CHUNK_SIZE), b""):
                        if cancelled.is_set():
                            raise StorageError(
                                ErrorKind.CANCELLED, f"Save cancelled: {original_filename}", filename=original_filename
                            )
                        out.write(chunk)
                        size += len(chunk)
            except BaseException as exc:
                path.unlink(missing_ok=True)
                if isinstance(exc, StorageError):
                    logger.info("Save of %s cancelled, partial file removed", original_filename)
                raise
            return key, size

        raise FileExistsError(f"No free key for {original_filename!r} after {MAX_KEY_ATTEMPTS} attempts")

    async def retrieve(self, key: str) -> BinaryIO:
        path = self.path_for(key)
        if path is None:
            raise self._not_found(key)

        logger.debug("Reading %s from %s", key, path)
        try:
            return await run_blocking(lambda _cancelled: path.open("rb"))
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise self._not_found(key) from exc
        except Exception as exc:
            logger.exception("Error retrieving file from local storage: %s", key)
            raise StorageError(ErrorKind.RETRIEVE_FAILED, f"Failed to retrieve file: {key}", filename=key) from exc

    async def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if path is None:
            return False

        try:
            deleted = await run_blocking(self._unlink, path)
        except Exception as exc:
            logger.exception("Error deleting file from local storage: %s", key)
            raise StorageError(ErrorKind.DELETE_FAILED, f"Failed to delete file: {key}", filename=key) from exc
        if deleted:
            logger.info("File deleted from local storage: %s", key)
        return deleted

    @staticmethod
    def _unlink(cancelled: threading.Event, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    async def exists(self, key: str) -> bool:
        path = self.path_for(key)
        if path is None:
            return False

        try:
            return await run_blocking(lambda _cancelled: path.is_file())
        except Exception as exc:
            logger.exception("Error checking file in local storage: %s", key)
            raise StorageError(
                ErrorKind.EXISTS_CHECK_FAILED, f"Failed to check if file exists: {key}", filename=key
            ) from exc

    async def get_access_url(self, key: str, expiry: timedelta) -> str:
        if self.path_for(key) is None:
            raise self._not_found(key)
        url = f"{self.config.url_prefix.rstrip('/')}/{quote(key)}"
        logger.debug("Resolved URL for %s: %s", key, url)
        return url
