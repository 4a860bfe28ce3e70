"""
Error taxonomy for hubfs.

The object store client classifies every remote failure into an ErrorKind so
that the write/read pipeline never branches on transport status codes.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of object store failures."""

    NOT_FOUND = "not_found"
    INVALID_REPO = "invalid_repo"
    CONFLICT = "conflict"
    TOO_LARGE = "too_large"
    TRANSIENT = "transient"


class HubfsError(Exception):
    """Base exception for all hubfs errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class HubfsConfigError(HubfsError, ValueError):
    """Raised when required configuration or call arguments are invalid."""

    pass


class ObjectStoreError(HubfsError):
    """Raised when the remote object store rejects or fails a request."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.operation = operation

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, kind={self.kind.value}, "
            f"status_code={self.status_code}, operation={self.operation!r})"
        )


class InvalidRepositoryError(ObjectStoreError):
    """The repository or branch does not exist or is not accessible."""

    def __init__(
        self,
        message: str = "Invalid repo",
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, ErrorKind.INVALID_REPO, status_code, operation)


class HubfsFileNotFoundError(ObjectStoreError):
    """The path does not exist at the requested ref."""

    def __init__(
        self,
        message: str = "File not found",
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, ErrorKind.NOT_FOUND, status_code, operation)


class HubfsFileExistsError(ObjectStoreError):
    """A create-only write collided with an existing path."""

    def __init__(
        self,
        path: str,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"File already exists: {path}",
            ErrorKind.CONFLICT,
            status_code,
            operation,
        )
        self.path = path


def translate_store_error(error: ObjectStoreError) -> ObjectStoreError:
    """Map a raw store error onto the caller-facing exception for its kind."""
    if isinstance(
        error, (InvalidRepositoryError, HubfsFileNotFoundError, HubfsFileExistsError)
    ):
        return error
    if error.kind is ErrorKind.INVALID_REPO:
        return InvalidRepositoryError(
            status_code=error.status_code, operation=error.operation
        )
    if error.kind is ErrorKind.NOT_FOUND:
        return HubfsFileNotFoundError(
            status_code=error.status_code, operation=error.operation
        )
    return error
