"""Root conftest: storage fixtures shared by the provider and CLI tests."""

from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from filestore.storage.local import LocalFileStore, LocalStoreConfig


@pytest.fixture()
def local_store(tmp_path) -> LocalFileStore:
    return LocalFileStore(LocalStoreConfig(base_dir=tmp_path))


@pytest.fixture()
def client_error():
    """Build a botocore ClientError with the given error code and HTTP status."""

    def _make(code: str, status: int, operation: str = "HeadObject") -> ClientError:
        return ClientError(
            {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
            operation,
        )

    return _make
