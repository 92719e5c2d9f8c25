from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from filestore.settings import Settings, settings
from filestore.storage.base import FileStore
from filestore.storage.errors import ConfigurationError

if TYPE_CHECKING:
    from filestore.storage.azure import AzureStoreConfig
    from filestore.storage.local import LocalStoreConfig
    from filestore.storage.s3 import S3StoreConfig

logger = logging.getLogger(__name__)


class StorageDriver(str, Enum):
    LOCAL = "local"
    S3 = "s3"
    AZURE = "azure"

    @classmethod
    def parse(cls, value: str) -> StorageDriver:
        normalized = (value or "").strip().lower()
        if normalized == "azureblob":
            normalized = cls.AZURE.value
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(f"Unsupported storage driver: {value}") from None


def build_local_config(settings: Settings) -> LocalStoreConfig:
    from filestore.storage.local import LocalStoreConfig

    return LocalStoreConfig(base_dir=Path(settings.local_path), url_prefix=settings.local_url_prefix)


def build_s3_config(settings: Settings) -> S3StoreConfig:
    from filestore.storage.s3 import S3StoreConfig

    if not settings.s3_bucket_name:
        raise ConfigurationError("S3 bucket name is required (FILE_STORAGE_S3_BUCKET_NAME)")
    return S3StoreConfig(
        bucket_name=settings.s3_bucket_name,
        region=settings.s3_region,
        service_url=settings.s3_service_url,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        max_attempts=settings.s3_max_attempts,
    )


def build_azure_config(settings: Settings) -> AzureStoreConfig:
    from filestore.storage.azure import AzureStoreConfig

    if not settings.azure_connection_string:
        raise ConfigurationError("Azure Storage connection string is required (FILE_STORAGE_AZURE_CONNECTION_STRING)")
    return AzureStoreConfig(
        connection_string=settings.azure_connection_string,
        container_name=settings.azure_container_name,
    )


def create_file_store(settings: Settings) -> FileStore:
    driver = StorageDriver.parse(settings.driver)

    if driver is StorageDriver.LOCAL:
        from filestore.storage.local import LocalFileStore

        logger.info("Using storage driver: local path=%s", settings.local_path)
        return LocalFileStore(build_local_config(settings))

    if driver is StorageDriver.S3:
        from filestore.storage.s3 import S3FileStore

        config = build_s3_config(settings)
        logger.info("Using storage driver: s3 bucket=%s", config.bucket_name)
        return S3FileStore(config)

    from filestore.storage.azure import AzureBlobFileStore

    config = build_azure_config(settings)
    logger.info("Using storage driver: azure container=%s", config.container_name)
    return AzureBlobFileStore(config)


def get_storage() -> FileStore:
    return create_file_store(settings)
