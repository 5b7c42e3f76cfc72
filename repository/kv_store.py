# repository/kv_store.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from config.cache import get_redis
from config.kv_client import get_kv_client
from config.settings import settings
from model.record import StoredRecord
from util.constants import ExternalURIs
from util.errors import StorageError
from util.functions import utc_now_iso

logger = logging.getLogger(__name__)


class KVStore(ABC):
    """
    The only thing the data layer knows about storage: point get/set/delete on
    fully-qualified keys plus a listing that may be narrowed by key prefix.

    Implementations raise StorageError for transport failures and rejected
    requests; a missing key is not an error (get returns None).
    `token` is the caller's bearer token, passed through unexamined.
    """

    @abstractmethod
    async def get(self, key: str, *, token: Optional[str] = None) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, *, token: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str, *, token: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def list(
        self, prefix: Optional[str] = None, *, token: Optional[str] = None
    ) -> List[StoredRecord]:
        ...


class HttpKVStore(KVStore):
    """
    Hosted key-value endpoints:
      GET    /data/<key>  -> {"value": ...}   (404 = absent)
      POST   /data        <- {"key", "value"}
      DELETE /data/<key>
      GET    /data[?prefix=]  -> {"records": [...]}
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        anon_key: Optional[str] = None,
    ) -> None:
        self._http = client
        self._anon_key = settings.KV_ANON_KEY if anon_key is None else anon_key

    async def _client(self) -> httpx.AsyncClient:
        if self._http is not None:
            return self._http
        return await get_kv_client()

    def _headers(self, token: Optional[str]) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token or self._anon_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _path(key: str) -> str:
        return f"{ExternalURIs.DATA}/{quote(key, safe='')}"

    async def _send(
        self, method: str, url: str, *, op: str, key: str, token: Optional[str], **kw
    ) -> httpx.Response:
        client = await self._client()
        try:
            return await client.request(method, url, headers=self._headers(token), **kw)
        except httpx.RequestError as e:
            logger.error("kv.%s.request_error key=%s err=%s", op, key, type(e).__name__)
            raise StorageError(f"{op} failed for {key}: {type(e).__name__}") from e

    @staticmethod
    def _ensure_ok(res: httpx.Response, *, op: str, key: str) -> None:
        if res.status_code // 100 == 2:
            return
        logger.error("kv.%s.bad_status key=%s status=%d", op, key, res.status_code)
        raise StorageError(f"{op} failed for {key}", status_code=res.status_code)

    @staticmethod
    def _json(res: httpx.Response, *, op: str) -> dict:
        try:
            body = res.json()
        except ValueError as e:
            logger.error("kv.%s.bad_body", op)
            raise StorageError(f"{op}: response is not JSON") from e
        return body if isinstance(body, dict) else {}

    async def get(self, key: str, *, token: Optional[str] = None) -> Optional[Any]:
        res = await self._send("GET", self._path(key), op="get", key=key, token=token)
        if res.status_code == 404:
            return None
        self._ensure_ok(res, op="get", key=key)
        return self._json(res, op="get").get("value")

    async def set(self, key: str, value: Any, *, token: Optional[str] = None) -> None:
        res = await self._send(
            "POST",
            ExternalURIs.DATA,
            op="set",
            key=key,
            token=token,
            json={"key": key, "value": value},
        )
        self._ensure_ok(res, op="set", key=key)

    async def delete(self, key: str, *, token: Optional[str] = None) -> None:
        res = await self._send("DELETE", self._path(key), op="delete", key=key, token=token)
        if res.status_code == 404:
            return
        self._ensure_ok(res, op="delete", key=key)

    async def list(
        self, prefix: Optional[str] = None, *, token: Optional[str] = None
    ) -> List[StoredRecord]:
        res = await self._send(
            "GET",
            ExternalURIs.DATA,
            op="list",
            key=prefix or "*",
            token=token,
            params={"prefix": prefix} if prefix else None,
        )
        self._ensure_ok(res, op="list", key=prefix or "*")
        out: List[StoredRecord] = []
        for raw in self._json(res, op="list").get("records") or []:
            try:
                rec = StoredRecord.model_validate(raw)
            except ValidationError:
                # Skip malformed rows instead of failing the whole listing
                logger.warning("kv.list.malformed_row")
                continue
            # Servers may ignore ?prefix=; filter here so the contract holds anyway.
            if prefix and not rec.key.startswith(prefix):
                continue
            out.append(rec)
        return out


def _glob_escape(text: str) -> str:
    return "".join(f"\\{ch}" if ch in "*?[]\\" else ch for ch in text)


def _text(v: Any) -> str:
    return v.decode("utf-8") if isinstance(v, (bytes, bytearray)) else str(v)


class RedisKVStore(KVStore):
    """
    Redis-backed store with the same contract as the hosted endpoints.
    Each record is a JSON envelope {"value", "created_at", "updated_at"}
    under <key_root><fully-qualified key>. Tokens are ignored.
    """

    def __init__(
        self, redis: Optional[Redis] = None, key_root: Optional[str] = None
    ) -> None:
        self._redis = redis
        self._root = settings.REDIS_KEY_ROOT if key_root is None else key_root

    async def _client(self) -> Redis:
        if self._redis is not None:
            return self._redis
        return await get_redis()

    def _key(self, key: str) -> str:
        return f"{self._root}{key}"

    @staticmethod
    def _unpack(raw: Any) -> dict:
        envelope = json.loads(_text(raw))
        if not isinstance(envelope, dict):
            raise ValueError("envelope is not an object")
        return envelope

    async def get(self, key: str, *, token: Optional[str] = None) -> Optional[Any]:
        r = await self._client()
        try:
            raw = await r.get(self._key(key))
        except RedisError as e:
            logger.error("kv.get.redis_error key=%s err=%s", key, type(e).__name__)
            raise StorageError(f"get failed for {key}") from e
        if raw is None:
            return None
        try:
            return self._unpack(raw).get("value")
        except ValueError as e:
            logger.error("kv.get.bad_envelope key=%s", key)
            raise StorageError(f"corrupt record at {key}") from e

    async def set(self, key: str, value: Any, *, token: Optional[str] = None) -> None:
        r = await self._client()
        now = utc_now_iso()
        try:
            existing = await r.get(self._key(key))
            created = now
            if existing is not None:
                try:
                    created = self._unpack(existing).get("created_at") or now
                except ValueError:
                    created = now
            payload = json.dumps(
                {"value": value, "created_at": created, "updated_at": now},
                ensure_ascii=False,
            )
            await r.set(self._key(key), payload)
        except (TypeError, ValueError) as e:
            logger.error("kv.set.unserializable key=%s", key)
            raise StorageError(f"value for {key} is not JSON serializable") from e
        except RedisError as e:
            logger.error("kv.set.redis_error key=%s err=%s", key, type(e).__name__)
            raise StorageError(f"set failed for {key}") from e

    async def delete(self, key: str, *, token: Optional[str] = None) -> None:
        r = await self._client()
        try:
            await r.delete(self._key(key))
        except RedisError as e:
            logger.error("kv.delete.redis_error key=%s err=%s", key, type(e).__name__)
            raise StorageError(f"delete failed for {key}") from e

    async def list(
        self, prefix: Optional[str] = None, *, token: Optional[str] = None
    ) -> List[StoredRecord]:
        r = await self._client()
        pattern = f"{_glob_escape(self._root + (prefix or ''))}*"
        try:
            keys = [_text(k) async for k in r.scan_iter(match=pattern, count=500)]
            raws = await r.mget(keys) if keys else []
        except RedisError as e:
            logger.error("kv.list.redis_error err=%s", type(e).__name__)
            raise StorageError("list failed") from e

        out: List[StoredRecord] = []
        for full, raw in zip(keys, raws):
            if raw is None:
                continue  # deleted between SCAN and MGET
            try:
                env = self._unpack(raw)
            except ValueError:
                logger.warning("kv.list.bad_envelope key=%s", full)
                continue
            out.append(
                StoredRecord(
                    key=full[len(self._root):],
                    value=env.get("value"),
                    created_at=env.get("created_at"),
                    updated_at=env.get("updated_at"),
                )
            )
        return out
