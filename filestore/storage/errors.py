from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    SAVE_FAILED = "save_failed"
    RETRIEVE_FAILED = "retrieve_failed"
    DELETE_FAILED = "delete_failed"
    EXISTS_CHECK_FAILED = "exists_check_failed"
    URL_FAILED = "url_failed"
    CANCELLED = "cancelled"


PUBLIC_MESSAGES = {
    ErrorKind.NOT_FOUND: "File not found",
    ErrorKind.SAVE_FAILED: "An error occurred while uploading the file",
    ErrorKind.RETRIEVE_FAILED: "An error occurred while downloading the file",
    ErrorKind.DELETE_FAILED: "An error occurred while deleting the file",
    ErrorKind.EXISTS_CHECK_FAILED: "An error occurred while checking the file",
    ErrorKind.URL_FAILED: "An error occurred while generating the file URL",
    ErrorKind.CANCELLED: "The operation was cancelled",
}


class StorageError(Exception):
    """Uniform failure raised by every file store provider.

    The provider-specific exception, when there is one, is chained as
    ``__cause__``.
    """

    def __init__(self, kind: ErrorKind, message: str, filename: str | None = None) -> None:
        self.kind = kind
        self.message = message
        self.filename = filename
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return 404 if self.kind == ErrorKind.NOT_FOUND else 500

    @property
    def public_message(self) -> str:
        """Message safe to show to end users (no paths, buckets or credentials)."""
        return PUBLIC_MESSAGES[self.kind]

    def __repr__(self) -> str:
        return f"StorageError(kind={self.kind.value!r}, message={self.message!r}, filename={self.filename!r})"


class ConfigurationError(ValueError):
    """Raised at startup when the storage configuration is unusable."""
