from typing import Optional
from fastapi import Request
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from repository.kv_store import HttpKVStore, KVStore, RedisKVStore
from service.data_manager import CrossProjectDataManager
from service.project_setup import ProjectSetupManager
from util.enums import ErrorMessage, KVBackend
from util.errors import AppError, UnknownNamespaceError

# Module-level so tests can override it via app.dependency_overrides.
rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)


def get_kv_store() -> KVStore:
    if settings.KV_BACKEND == KVBackend.REDIS:
        return RedisKVStore()
    return HttpKVStore()


def get_data_manager() -> CrossProjectDataManager:
    return CrossProjectDataManager(get_kv_store(), settings.PROJECT_NAMESPACE)


def get_project_setup_manager() -> ProjectSetupManager:
    return ProjectSetupManager(get_data_manager())


def bearer_token(request: Request) -> Optional[str]:
    """Caller's bearer token, forwarded to the store as-is."""
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def bind_namespace(
    data: CrossProjectDataManager, namespace: str
) -> CrossProjectDataManager:
    try:
        return data.for_namespace(namespace)
    except UnknownNamespaceError:
        raise AppError.of(ErrorMessage.UNKNOWN_NAMESPACE)
