# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class KVBackend(str, Enum):
    HTTP = "http"
    REDIS = "redis"


class LookupStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    UNREACHABLE = "unreachable"


class ProjectStatus(str, Enum):
    ACTIVE = "active"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    UNKNOWN_NAMESPACE = ErrorInfo("Unknown namespace", status.HTTP_404_NOT_FOUND)
    NOT_FOUND = ErrorInfo("Record not found", status.HTTP_404_NOT_FOUND)
    PROJECT_EXISTS = ErrorInfo("Project already exists", status.HTTP_409_CONFLICT)
    PROJECT_NOT_FOUND = ErrorInfo("Project not found", status.HTTP_404_NOT_FOUND)
    CONFIRMATION_REQUIRED = ErrorInfo(
        "Confirmation required for destructive operation",
        status.HTTP_400_BAD_REQUEST,
    )
    STORE_UNAVAILABLE = ErrorInfo(
        "Key-value store unavailable", status.HTTP_502_BAD_GATEWAY
    )
    WRITE_FAILED = ErrorInfo("Write to key-value store failed", status.HTTP_502_BAD_GATEWAY)
    INTERNAL_ERROR = ErrorInfo("Internal Error", status.HTTP_502_BAD_GATEWAY)
