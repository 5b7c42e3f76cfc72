import logging
from typing import Any, Dict, Iterable, List, Optional

from config.settings import settings
from core.entities import Lookup, ParsedKey
from core.key_codec import (
    decode_in_namespace,
    encode_namespaced,
    encode_shared,
    namespace_prefix,
    try_decode,
)
from model.project import TableStatus
from model.record import NamespaceRecord, StoredRecord
from repository.kv_store import KVStore
from repository.namespaces import NamespaceRegistry, get_registry
from util.enums import LookupStatus
from util.errors import StorageError, UnknownNamespaceError
from util.functions import sync_markers, utc_now_iso, with_sync_markers
from util.timing import timed

logger = logging.getLogger(__name__)


class CrossProjectDataManager:
    """
    Namespace-bound handle over the shared key-value store.

    A handle never changes namespace; use for_namespace() to get another one.
    Reads return the value or None ("absent" and "unreachable" look the same);
    the lookup_* variants keep the two apart. Writes return a bool. Store
    failures are logged and never raised from these methods, except
    list_namespace_records which raises StorageError so bulk jobs can abort.
    """

    def __init__(
        self,
        store: KVStore,
        namespace: Optional[str] = None,
        registry: Optional[NamespaceRegistry] = None,
    ) -> None:
        self._store = store
        self._registry = registry if registry is not None else get_registry()
        ns = namespace or settings.PROJECT_NAMESPACE
        if not self._registry.has_namespace(ns):
            raise UnknownNamespaceError(ns)
        self._namespace = ns

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def registry(self) -> NamespaceRegistry:
        return self._registry

    def for_namespace(self, namespace: str) -> "CrossProjectDataManager":
        return CrossProjectDataManager(self._store, namespace, self._registry)

    # ---------------- Primitives ----------------

    async def _lookup(self, full_key: str, token: Optional[str]) -> Lookup:
        try:
            value = await self._store.get(full_key, token=token)
        except StorageError:
            logger.warning("data.get.unreachable key=%s", full_key)
            return Lookup.unreachable()
        if value is None:
            return Lookup.absent()
        return Lookup(LookupStatus.FOUND, value)

    async def _write(self, full_key: str, value: Any, token: Optional[str]) -> bool:
        try:
            await self._store.set(full_key, value, token=token)
        except StorageError:
            logger.warning("data.set.failed key=%s", full_key)
            return False
        return True

    async def _remove(self, full_key: str, token: Optional[str]) -> bool:
        try:
            await self._store.delete(full_key, token=token)
        except StorageError:
            logger.warning("data.delete.failed key=%s", full_key)
            return False
        return True

    async def _listing(
        self, prefix: Optional[str], token: Optional[str]
    ) -> List[StoredRecord]:
        with timed(logger, "data.list", prefix=prefix or "*"):
            return await self._store.list(prefix, token=token)

    @staticmethod
    def _to_record(parsed: ParsedKey, rec: StoredRecord) -> NamespaceRecord:
        synced_from, synced_at = sync_markers(rec.value)
        return NamespaceRecord(
            namespace=parsed.namespace,
            table=parsed.table,
            key=parsed.local_key,
            value=rec.value,
            created_at=rec.created_at,
            updated_at=rec.updated_at,
            synced_from=synced_from,
            synced_at=synced_at,
        )

    # ---------------- Own namespace ----------------

    async def lookup_namespace_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> Lookup:
        full = encode_namespaced(self._namespace, table, key, self._registry)
        return await self._lookup(full, token)

    async def get_namespace_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> Optional[Any]:
        return (await self.lookup_namespace_data(table, key, token=token)).value

    async def set_namespace_data(
        self, table: str, key: str, value: Any, *, token: Optional[str] = None
    ) -> bool:
        full = encode_namespaced(self._namespace, table, key, self._registry)
        return await self._write(full, value, token)

    async def delete_namespace_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> bool:
        full = encode_namespaced(self._namespace, table, key, self._registry)
        return await self._remove(full, token)

    # ---------------- Shared area ----------------

    async def lookup_shared_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> Lookup:
        return await self._lookup(encode_shared(table, key, self._registry), token)

    async def get_shared_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> Optional[Any]:
        return (await self.lookup_shared_data(table, key, token=token)).value

    async def set_shared_data(
        self, table: str, key: str, value: Any, *, token: Optional[str] = None
    ) -> bool:
        return await self._write(encode_shared(table, key, self._registry), value, token)

    async def delete_shared_data(
        self, table: str, key: str, *, token: Optional[str] = None
    ) -> bool:
        return await self._remove(encode_shared(table, key, self._registry), token)

    async def get_all_shared_data(
        self, table: Optional[str] = None, *, token: Optional[str] = None
    ) -> List[NamespaceRecord]:
        try:
            records = await self._listing(self._registry.shared.prefix, token)
        except StorageError:
            logger.warning("data.list.shared.unreachable")
            return []
        out: List[NamespaceRecord] = []
        for rec in records:
            parsed = try_decode(rec.key, self._registry)
            if parsed is None or not parsed.is_shared:
                continue
            if table and parsed.table != table:
                continue
            out.append(self._to_record(parsed, rec))
        return out

    # ---------------- Other namespaces ----------------

    async def lookup_cross_project_data(
        self, target_namespace: str, table: str, key: str, *, token: Optional[str] = None
    ) -> Lookup:
        # No access control here: the store's bearer-token check is the only gate.
        full = encode_namespaced(target_namespace, table, key, self._registry)
        return await self._lookup(full, token)

    async def get_cross_project_data(
        self, target_namespace: str, table: str, key: str, *, token: Optional[str] = None
    ) -> Optional[Any]:
        found = await self.lookup_cross_project_data(
            target_namespace, table, key, token=token
        )
        return found.value

    async def get_all_namespace_data(
        self, table: Optional[str] = None, *, token: Optional[str] = None
    ) -> Dict[str, List[NamespaceRecord]]:
        """
        Scan the whole store and group non-shared records of `table` by namespace.
        An empty/None table keeps every table. Keys that do not decode are skipped.
        """
        try:
            records = await self._listing(None, token)
        except StorageError:
            logger.warning("data.list.unreachable")
            return {}

        grouped: Dict[str, List[NamespaceRecord]] = {}
        skipped = 0
        for rec in records:
            parsed = try_decode(rec.key, self._registry)
            if parsed is None:
                skipped += 1
                continue
            if parsed.is_shared or (table and parsed.table != table):
                continue
            grouped.setdefault(parsed.namespace, []).append(self._to_record(parsed, rec))

        if skipped:
            logger.info("data.list.skipped count=%d", skipped)
        return grouped

    async def list_namespace_records(
        self,
        namespace: str,
        tables: Optional[Iterable[str]] = None,
        *,
        token: Optional[str] = None,
    ) -> List[NamespaceRecord]:
        """
        Every record of one namespace, via a prefix-scoped listing. Keys written
        to unregistered tables are included under the table they were written to.
        Raises UnknownNamespaceError / StorageError.
        """
        prefix = namespace_prefix(namespace, self._registry)
        allow = set(tables) if tables else None
        out: List[NamespaceRecord] = []
        for rec in await self._listing(prefix, token):
            parsed = decode_in_namespace(rec.key, namespace, self._registry)
            if parsed is None:
                logger.info("data.list.undecodable ns=%s key=%s", namespace, rec.key)
                continue
            if allow is not None and parsed.table not in allow:
                continue
            out.append(self._to_record(parsed, rec))
        return out

    async def sync_to_project(
        self,
        target_namespace: str,
        table: str,
        key: str,
        value: Any,
        *,
        token: Optional[str] = None,
    ) -> bool:
        """
        One-way, last-write-wins copy of a single record into another namespace,
        stamped with synced_from / synced_at.
        """
        full = encode_namespaced(target_namespace, table, key, self._registry)
        body = with_sync_markers(value, self._namespace, utc_now_iso())
        ok = await self._write(full, body, token)
        if ok:
            logger.info(
                "data.sync.ok from=%s to=%s table=%s", self._namespace, target_namespace, table
            )
        return ok

    async def table_statuses(self, *, token: Optional[str] = None) -> List[TableStatus]:
        """Record counts for every registered namespace/table from a single listing."""
        checked_at = utc_now_iso()
        try:
            records = await self._listing(None, token)
        except StorageError:
            return [
                TableStatus(namespace=ns, table=t, checkedAt=checked_at, status="error")
                for ns, cfg in self._registry.namespaces.items()
                for t in cfg.tables
            ]

        counts: Dict[tuple[str, str], int] = {}
        for rec in records:
            parsed = try_decode(rec.key, self._registry)
            if parsed is None or parsed.is_shared:
                continue
            slot = (parsed.namespace, parsed.table)
            counts[slot] = counts.get(slot, 0) + 1

        return [
            TableStatus(
                namespace=ns,
                table=t,
                checkedAt=checked_at,
                status="success",
                recordCount=counts.get((ns, t), 0),
            )
            for ns, cfg in self._registry.namespaces.items()
            for t in cfg.tables
        ]
