from typing import Any, Dict, List
from pydantic import BaseModel, Field

from model.record import NamespaceRecord


class WriteValueRequest(BaseModel):
    value: Any = None


class ValueResponse(BaseModel):
    namespace: str
    table: str
    key: str
    value: Any = None


class OkResponse(BaseModel):
    ok: bool


class NamespaceSummary(BaseModel):
    namespace: str
    prefix: str
    tables: Dict[str, str]


class NamespacesResponse(BaseModel):
    current: str
    sharedPrefix: str
    namespaces: List[NamespaceSummary]


class SyncRecordRequest(BaseModel):
    sourceNamespace: str | None = None  # defaults to the configured namespace
    targetNamespace: str = Field(min_length=1)
    table: str = Field(min_length=1)
    key: str = Field(min_length=1)
    value: Any = None


class ProjectSyncRequest(BaseModel):
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    tables: List[str] = Field(default_factory=list)


class GroupedRecordsResponse(BaseModel):
    table: str | None = None
    namespaces: Dict[str, List[NamespaceRecord]]


class ConfigFileResponse(BaseModel):
    filename: str
    content: str
