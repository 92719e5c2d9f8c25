from __future__ import annotations

import io
import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import BinaryIO
from urllib.parse import quote

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, ContentSettings, generate_blob_sas
from pydantic import BaseModel, ConfigDict, Field

from filestore.storage.base import FileStore, run_blocking
from filestore.storage.errors import ErrorKind, StorageError
from filestore.storage.keys import MAX_KEY_ATTEMPTS, generate_key, is_safe_key

logger = logging.getLogger(__name__)


class AzureStoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    connection_string: str = Field(min_length=1)
    container_name: str = "files"


class AzureBlobFileStore(FileStore):
    def __init__(self, config: AzureStoreConfig) -> None:
        self.config = config
        self.service_client = BlobServiceClient.from_connection_string(config.connection_string)
        self.container_client = self.service_client.get_container_client(config.container_name)
        try:
            self.container_client.create_container()
            logger.info("Created blob container %s", config.container_name)
        except ResourceExistsError:
            logger.debug("Blob container %s already exists", config.container_name)

    @property
    def backend_name(self) -> str:
        return "azure"

    def _not_found(self, key: str) -> StorageError:
        return StorageError(ErrorKind.NOT_FOUND, f"File not found in Azure Blob Storage: {key}", filename=key)

    def _failure(self, kind: ErrorKind, message: str, filename: str) -> StorageError:
        logger.exception("%s: %s", message, filename)
        return StorageError(kind, f"{message}: {filename}", filename=filename)

    async def save(self, content: BinaryIO, original_filename: str, content_type: str) -> str:
        try:
            key = await run_blocking(self._upload, content, original_filename, content_type)
        except StorageError:
            raise
        except Exception as exc:
            raise self._failure(
                ErrorKind.SAVE_FAILED, "Failed to upload file to Azure Blob Storage", original_filename
            ) from exc
        logger.info("File uploaded to Azure Blob Storage: %s", key)
        return key

    def _upload(self, cancelled: threading.Event, content: BinaryIO, original_filename: str, content_type: str) -> str:
        def abort_if_cancelled(current: int, total: int | None) -> None:
            if cancelled.is_set():
                raise StorageError(
                    ErrorKind.CANCELLED, f"Upload cancelled: {original_filename}", filename=original_filename
                )

        start = content.tell() if content.seekable() else None
        for _ in range(MAX_KEY_ATTEMPTS):
            key = generate_key(original_filename)
            try:
                self.container_client.get_blob_client(key).upload_blob(
                    content,
                    overwrite=False,
                    content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
                    metadata={
                        "original_filename": quote(original_filename),
                        "uploaded_at": datetime.now(UTC).isoformat(),
                    },
                    progress_hook=abort_if_cancelled,
                )
            except ResourceExistsError:
                if start is None:
                    raise
                logger.warning("Key collision on %s, generating a new one", key)
                content.seek(start)
                continue
            return key

        raise FileExistsError(f"No free key for {original_filename!r} after {MAX_KEY_ATTEMPTS} attempts")

    async def retrieve(self, key: str) -> BinaryIO:
        if not is_safe_key(key):
            raise self._not_found(key)

        logger.debug("Downloading %s from container %s", key, self.config.container_name)
        try:
            data = await run_blocking(lambda _cancelled: self.container_client.download_blob(key).readall())
        except ResourceNotFoundError as exc:
            raise self._not_found(key) from exc
        except Exception as exc:
            raise self._failure(
                ErrorKind.RETRIEVE_FAILED, "Failed to retrieve file from Azure Blob Storage", key
            ) from exc
        return io.BytesIO(data)

    async def delete(self, key: str) -> bool:
        if not is_safe_key(key):
            return False

        try:
            await run_blocking(
                lambda _cancelled: self.container_client.delete_blob(key, delete_snapshots="include")
            )
        except ResourceNotFoundError:
            return False
        except Exception as exc:
            raise self._failure(ErrorKind.DELETE_FAILED, "Failed to delete file from Azure Blob Storage", key) from exc
        logger.info("File deleted from Azure Blob Storage: %s", key)
        return True

    async def exists(self, key: str) -> bool:
        if not is_safe_key(key):
            return False

        try:
            return await run_blocking(lambda _cancelled: self.container_client.get_blob_client(key).exists())
        except Exception as exc:
            raise self._failure(
                ErrorKind.EXISTS_CHECK_FAILED, "Failed to check if file exists in Azure Blob Storage", key
            ) from exc

    async def get_access_url(self, key: str, expiry: timedelta) -> str:
        if not is_safe_key(key):
            raise self._not_found(key)

        blob_client = self.container_client.get_blob_client(key)
        account_key = getattr(self.service_client.credential, "account_key", None)
        if not account_key:
            # SAS tokens need the account key; without one the blob must be publicly readable.
            logger.warning("No account key configured, returning unsigned URL for %s", key)
            return blob_client.url

        try:
            sas_token = generate_blob_sas(
                account_name=blob_client.account_name,
                container_name=self.config.container_name,
                blob_name=key,
                account_key=account_key,
                permission=BlobSasPermissions(read=True),
                expiry=datetime.now(UTC) + expiry,
            )
        except Exception as exc:
            raise self._failure(
                ErrorKind.URL_FAILED, "Failed to generate SAS URL for Azure Blob Storage file", key
            ) from exc
        return f"{blob_client.url}?{sas_token}"

    async def close(self) -> None:
        self.service_client.close()
        logger.debug("Azure Blob client closed")
