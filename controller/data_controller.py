from typing import List, Optional
from fastapi import APIRouter, Depends, status
from controller.controller_dependencies import (
    bearer_token,
    bind_namespace,
    get_data_manager,
    rate_limiter,
)
from core.entities import Lookup
from model.api import (
    GroupedRecordsResponse,
    NamespaceSummary,
    NamespacesResponse,
    OkResponse,
    SyncRecordRequest,
    ValueResponse,
    WriteValueRequest,
)
from model.project import TableStatus
from model.record import NamespaceRecord
from repository.namespaces import SHARED_NAMESPACE
from service.data_manager import CrossProjectDataManager
from util.constants import InternalURIs
from util.enums import ErrorMessage, LookupStatus
from util.errors import AppError

data_router = APIRouter(dependencies=[Depends(rate_limiter)])


def _value_or_raise(lookup: Lookup):
    if lookup.status is LookupStatus.UNREACHABLE:
        raise AppError.of(ErrorMessage.STORE_UNAVAILABLE)
    if lookup.status is LookupStatus.ABSENT:
        raise AppError.of(ErrorMessage.NOT_FOUND)
    return lookup.value


def _ok_or_raise(ok: bool) -> OkResponse:
    if not ok:
        raise AppError.of(ErrorMessage.WRITE_FAILED)
    return OkResponse(ok=True)


@data_router.get(InternalURIs.NAMESPACES, response_model=NamespacesResponse)
async def list_namespaces(
    data: CrossProjectDataManager = Depends(get_data_manager),
) -> NamespacesResponse:
    reg = data.registry
    return NamespacesResponse(
        current=data.namespace,
        sharedPrefix=reg.shared.prefix,
        namespaces=[
            NamespaceSummary(namespace=name, prefix=cfg.prefix, tables=dict(cfg.tables))
            for name, cfg in reg.namespaces.items()
        ],
    )


@data_router.get(InternalURIs.SYNC_STATUS, response_model=List[TableStatus])
async def sync_status(
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> List[TableStatus]:
    return await data.table_statuses(token=token)


@data_router.get(InternalURIs.DATA, response_model=ValueResponse)
async def read_record(
    namespace: str,
    table: str,
    key: str,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> ValueResponse:
    if not data.registry.has_namespace(namespace):
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
    lookup = await data.lookup_cross_project_data(namespace, table, key, token=token)
    return ValueResponse(
        namespace=namespace, table=table, key=key, value=_value_or_raise(lookup)
    )


@data_router.put(InternalURIs.DATA, response_model=OkResponse)
async def write_record(
    namespace: str,
    table: str,
    key: str,
    payload: WriteValueRequest,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    handle = bind_namespace(data, namespace)
    return _ok_or_raise(
        await handle.set_namespace_data(table, key, payload.value, token=token)
    )


@data_router.delete(InternalURIs.DATA, response_model=OkResponse)
async def delete_record(
    namespace: str,
    table: str,
    key: str,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    handle = bind_namespace(data, namespace)
    return _ok_or_raise(await handle.delete_namespace_data(table, key, token=token))


@data_router.get(InternalURIs.TABLE_RECORDS, response_model=GroupedRecordsResponse)
async def records_by_namespace(
    table: str,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> GroupedRecordsResponse:
    grouped = await data.get_all_namespace_data(table, token=token)
    return GroupedRecordsResponse(table=table, namespaces=grouped)


@data_router.get(InternalURIs.SHARED_TABLE, response_model=List[NamespaceRecord])
async def shared_records(
    table: str,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> List[NamespaceRecord]:
    return await data.get_all_shared_data(table, token=token)


@data_router.get(InternalURIs.SHARED, response_model=ValueResponse)
async def read_shared(
    table: str,
    key: str,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> ValueResponse:
    lookup = await data.lookup_shared_data(table, key, token=token)
    return ValueResponse(
        namespace=SHARED_NAMESPACE, table=table, key=key, value=_value_or_raise(lookup)
    )


@data_router.put(InternalURIs.SHARED, response_model=OkResponse)
async def write_shared(
    table: str,
    key: str,
    payload: WriteValueRequest,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    return _ok_or_raise(await data.set_shared_data(table, key, payload.value, token=token))


@data_router.post(
    InternalURIs.SYNC, response_model=OkResponse, status_code=status.HTTP_200_OK
)
async def sync_record(
    payload: SyncRecordRequest,
    data: CrossProjectDataManager = Depends(get_data_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    sender = bind_namespace(data, payload.sourceNamespace) if payload.sourceNamespace else data
    if not data.registry.has_namespace(payload.targetNamespace):
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
    ok = await sender.sync_to_project(
        payload.targetNamespace, payload.table, payload.key, payload.value, token=token
    )
    return _ok_or_raise(ok)
