from typing import Any
from pydantic import BaseModel, ConfigDict


class StoredRecord(BaseModel):
    """One row of the raw store listing; `key` is fully qualified."""

    model_config = ConfigDict(extra="ignore")

    key: str
    value: Any = None
    created_at: str | None = None
    updated_at: str | None = None


class NamespaceRecord(BaseModel):
    """
    A decoded record as handed to callers: local key plus its table, and the
    sync markers lifted out of the value when the record came from a sync.
    """

    namespace: str
    table: str
    key: str
    value: Any = None
    created_at: str | None = None
    updated_at: str | None = None
    synced_from: str | None = None
    synced_at: str | None = None
