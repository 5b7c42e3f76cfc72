# util/errors.py
from fastapi import HTTPException, status

from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)

    @classmethod
    def of(cls, error: ErrorMessage) -> "AppError":
        return cls(error.value.message, error.value.http_status)


class KeyCodecError(ValueError):
    """Base class for key encode/decode failures."""


class UnknownNamespaceError(KeyCodecError):
    def __init__(self, namespace: str) -> None:
        super().__init__(f"Unknown namespace: {namespace}")
        self.namespace = namespace


class UnparseableKeyError(KeyCodecError):
    def __init__(self, full_key: str) -> None:
        super().__init__(f"Unable to parse key: {full_key}")
        self.full_key = full_key


class RegistryConfigError(ValueError):
    """Namespace registry is structurally invalid (overlapping prefixes etc)."""


class StorageError(Exception):
    """Transport failure or non-2xx answer from the key-value store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProjectSetupError(Exception):
    pass
