from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from controller.controller_dependencies import (
    bearer_token,
    get_project_setup_manager,
    rate_limiter,
)
from model.api import ConfigFileResponse, OkResponse, ProjectSyncRequest
from model.project import (
    PROJECT_TEMPLATES,
    ProjectDescriptor,
    ProjectExport,
    ProjectSetupConfig,
    SyncReport,
)
from service.project_setup import ProjectSetupManager
from util.constants import InternalURIs
from util.enums import ErrorMessage
from util.errors import AppError, StorageError, UnknownNamespaceError

project_router = APIRouter(dependencies=[Depends(rate_limiter)])


@project_router.get(InternalURIs.PROJECTS, response_model=List[ProjectDescriptor])
async def list_projects(
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> List[ProjectDescriptor]:
    return await service.list_projects(token=token)


@project_router.get(
    InternalURIs.PROJECT_TEMPLATES, response_model=Dict[str, ProjectSetupConfig]
)
async def project_templates() -> Dict[str, ProjectSetupConfig]:
    return PROJECT_TEMPLATES


@project_router.post(
    InternalURIs.PROJECTS,
    response_model=ProjectDescriptor,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    config: ProjectSetupConfig,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> ProjectDescriptor:
    if await service.check_project_exists(config.namespace, token=token):
        raise AppError.of(ErrorMessage.PROJECT_EXISTS)
    if not await service.initialize_project(config, token=token):
        raise AppError.of(ErrorMessage.WRITE_FAILED)
    created = await service.get_project(config.namespace, token=token)
    if created is None:
        raise AppError.of(ErrorMessage.STORE_UNAVAILABLE)
    return created


@project_router.get(InternalURIs.PROJECT_EXISTS, response_model=OkResponse)
async def project_exists(
    namespace: str,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    return OkResponse(ok=await service.check_project_exists(namespace, token=token))


@project_router.get(InternalURIs.PROJECT_EXPORT, response_model=ProjectExport)
async def export_project(
    namespace: str,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> ProjectExport:
    try:
        bundle = await service.export_project_data(namespace, token=token)
    except UnknownNamespaceError:
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
    if bundle is None:
        raise AppError.of(ErrorMessage.STORE_UNAVAILABLE)
    return bundle


@project_router.post(InternalURIs.PROJECT_IMPORT, response_model=OkResponse)
async def import_project(
    bundle: ProjectExport,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    try:
        imported = await service.import_project_data(bundle, token=token)
    except UnknownNamespaceError:
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
    if not imported:
        raise AppError.of(ErrorMessage.WRITE_FAILED)
    return OkResponse(ok=True)


@project_router.post(InternalURIs.PROJECT_SYNC, response_model=SyncReport)
async def sync_project(
    payload: ProjectSyncRequest,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> SyncReport:
    try:
        return await service.sync_project_data_report(
            payload.source, payload.target, payload.tables, token=token
        )
    except UnknownNamespaceError:
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
    except StorageError:
        raise AppError.of(ErrorMessage.STORE_UNAVAILABLE)


@project_router.delete(InternalURIs.PROJECT, response_model=OkResponse)
async def cleanup_project(
    namespace: str,
    confirm: bool = Query(default=False),
    service: ProjectSetupManager = Depends(get_project_setup_manager),
    token: Optional[str] = Depends(bearer_token),
) -> OkResponse:
    if not confirm:
        raise AppError.of(ErrorMessage.CONFIRMATION_REQUIRED)
    if not await service.check_project_exists(namespace, token=token):
        raise AppError.of(ErrorMessage.PROJECT_NOT_FOUND)
    return OkResponse(ok=await service.cleanup_project(namespace, confirm=True, token=token))


@project_router.post(InternalURIs.PROJECT_CONFIG_FILE, response_model=ConfigFileResponse)
async def project_config_file(
    config: ProjectSetupConfig,
    service: ProjectSetupManager = Depends(get_project_setup_manager),
) -> ConfigFileResponse:
    return ConfigFileResponse(
        filename=f"{config.namespace}.env",
        content=service.generate_config_file(config),
    )
