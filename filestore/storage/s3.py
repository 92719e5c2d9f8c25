from __future__ import annotations

import logging
import math
import threading
from datetime import timedelta
from typing import BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict, Field

from filestore.storage.base import FileStore, run_blocking
from filestore.storage.errors import ErrorKind, StorageError
from filestore.storage.keys import generate_key, is_safe_key

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive 7 days.
MAX_PRESIGNED_EXPIRY = 604800

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3StoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bucket_name: str = Field(min_length=1)
    region: str = ""
    service_url: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    max_attempts: int = Field(default=3, ge=1)

    @property
    def use_path_style(self) -> bool:
        # MinIO and most S3-compatible services only support path-style addressing.
        return bool(self.service_url)


def _is_not_found(exc: ClientError) -> bool:
    response = exc.response or {}
    status_code = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    error_code = str((response.get("Error") or {}).get("Code") or "")
    return status_code == 404 or error_code in _NOT_FOUND_CODES


class S3FileStore(FileStore):
    """S3 (or S3-compatible) bucket storage.

    Objects are written with SSE-S3 (AES256) encryption at rest. ``delete``
    reports True for every successful call because S3 answers 204 whether or
    not the key existed.
    """

    def __init__(self, config: S3StoreConfig) -> None:
        self.config = config
        self.bucket = config.bucket_name

        client_kwargs: dict = {
            "service_name": "s3",
            "config": Config(
                signature_version="s3v4",
                s3={"addressing_style": "path" if config.use_path_style else "auto"},
                retries={"max_attempts": config.max_attempts, "mode": "standard"},
            ),
        }
        if config.region:
            client_kwargs["region_name"] = config.region
        if config.service_url:
            client_kwargs["endpoint_url"] = config.service_url
        if config.access_key_id and config.secret_access_key:
            client_kwargs["aws_access_key_id"] = config.access_key_id
            client_kwargs["aws_secret_access_key"] = config.secret_access_key

        self.client = boto3.client(**client_kwargs)

    @property
    def backend_name(self) -> str:
        return "s3"

    def _not_found(self, key: str) -> StorageError:
        return StorageError(ErrorKind.NOT_FOUND, f"File not found in S3: {key}", filename=key)

    def _failure(self, kind: ErrorKind, message: str, filename: str) -> StorageError:
        logger.exception("%s: %s", message, filename)
        return StorageError(kind, f"{message}: {filename}", filename=filename)

    async def save(self, content: BinaryIO, original_filename: str, content_type: str) -> str:
        key = generate_key(original_filename)
        try:
            await run_blocking(self._upload, content, key, content_type)
        except StorageError:
            raise
        except Exception as exc:
            raise self._failure(ErrorKind.SAVE_FAILED, "Failed to upload file to S3", original_filename) from exc
        logger.info("File uploaded to S3: %s", key)
        return key

    def _upload(self, cancelled: threading.Event, content: BinaryIO, key: str, content_type: str) -> None:
        def abort_if_cancelled(_bytes_transferred: int) -> None:
            if cancelled.is_set():
                raise StorageError(ErrorKind.CANCELLED, f"Upload cancelled: {key}", filename=key)

        self.client.upload_fileobj(
            content,
            self.bucket,
            key,
            ExtraArgs={
                "ContentType": content_type or "application/octet-stream",
                "ServerSideEncryption": "AES256",
            },
            Callback=abort_if_cancelled,
        )

    async def retrieve(self, key: str) -> BinaryIO:
        if not is_safe_key(key):
            raise self._not_found(key)

        logger.debug("Fetching %s from bucket", key)
        try:
            response = await run_blocking(lambda _cancelled: self.client.get_object(Bucket=self.bucket, Key=key))
        except ClientError as exc:
            if _is_not_found(exc):
                raise self._not_found(key) from exc
            raise self._failure(ErrorKind.RETRIEVE_FAILED, "Failed to retrieve file from S3", key) from exc
        except Exception as exc:
            raise self._failure(ErrorKind.RETRIEVE_FAILED, "Failed to retrieve file from S3", key) from exc
        return response["Body"]

    async def delete(self, key: str) -> bool:
        if not is_safe_key(key):
            return False

        try:
            await run_blocking(lambda _cancelled: self.client.delete_object(Bucket=self.bucket, Key=key))
        except Exception as exc:
            raise self._failure(ErrorKind.DELETE_FAILED, "Failed to delete file from S3", key) from exc
        logger.info("File deleted from S3: %s", key)
        return True

    async def exists(self, key: str) -> bool:
        if not is_safe_key(key):
            return False

        try:
            await run_blocking(lambda _cancelled: self.client.head_object(Bucket=self.bucket, Key=key))
        except ClientError as exc:
            if _is_not_found(exc):
                return False
            raise self._failure(ErrorKind.EXISTS_CHECK_FAILED, "Failed to check if file exists in S3", key) from exc
        except Exception as exc:
            raise self._failure(ErrorKind.EXISTS_CHECK_FAILED, "Failed to check if file exists in S3", key) from exc
        return True

    async def get_access_url(self, key: str, expiry: timedelta) -> str:
        if not is_safe_key(key):
            raise self._not_found(key)

        expires_in = max(math.ceil(expiry.total_seconds()), 1)
        if expires_in > MAX_PRESIGNED_EXPIRY:
            raise StorageError(
                ErrorKind.URL_FAILED,
                f"Presigned URL expiry must not exceed {MAX_PRESIGNED_EXPIRY} seconds",
                filename=key,
            )

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except Exception as exc:
            raise self._failure(ErrorKind.URL_FAILED, "Failed to generate presigned URL for S3 file", key) from exc

    async def close(self) -> None:
        self.client.close()
        logger.debug("S3 client closed")
