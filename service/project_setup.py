import json
import logging
from typing import Iterable, List, Optional

from config.settings import settings
from core.key_codec import namespace_prefix
from model.project import (
    SAMPLE_SETTINGS,
    SAMPLE_USER_SCHEMA,
    ProjectDescriptor,
    ProjectExport,
    ProjectSetupConfig,
    SyncReport,
    TableMetadata,
)
from pydantic import ValidationError
from repository.namespaces import GLOBAL_CONFIG_TABLE, PROJECT_DESCRIPTOR_PREFIX
from service.data_manager import CrossProjectDataManager
from util.errors import ProjectSetupError
from util.functions import utc_now_iso

logger = logging.getLogger(__name__)

METADATA_KEY = "_metadata"


def descriptor_key(namespace: str) -> str:
    return f"{PROJECT_DESCRIPTOR_PREFIX}{namespace}"


class ProjectSetupManager:
    """
    Project (namespace) lifecycle on top of CrossProjectDataManager:
    unregistered -> active (initialize_project) -> cleaned up (cleanup_project).

    Multi-step operations are best-effort: nothing is rolled back when a later
    step fails, and each step is attempted exactly once.
    """

    def __init__(self, data: CrossProjectDataManager) -> None:
        self._data = data

    # ---------------- Provisioning ----------------

    async def initialize_project(
        self, config: ProjectSetupConfig, *, token: Optional[str] = None
    ) -> bool:
        """
        Descriptor -> per-table metadata -> sample data.
        Returns False on the first failed step; earlier writes stay in place.
        """
        try:
            # Resolve first so an unregistered namespace writes nothing.
            target = self._data.for_namespace(config.namespace)
            now = utc_now_iso()
            descriptor = ProjectDescriptor(
                name=config.projectName,
                namespace=config.namespace,
                description=config.description,
                tables=dict(config.tables),
                adminEmail=config.adminEmail,
                createdAt=now,
            )
            if not await self._data.set_shared_data(
                GLOBAL_CONFIG_TABLE,
                descriptor_key(config.namespace),
                descriptor.model_dump(mode="json"),
                token=token,
            ):
                logger.error("project.init.descriptor.error ns=%s", config.namespace)
                return False

            for table, description in config.tables.items():
                meta = TableMetadata(
                    tableName=table,
                    description=description,
                    createdAt=now,
                    recordCount=0,
                    lastUpdated=now,
                )
                if not await target.set_namespace_data(
                    table, METADATA_KEY, meta.model_dump(mode="json"), token=token
                ):
                    logger.error(
                        "project.init.metadata.error ns=%s table=%s", config.namespace, table
                    )
                    return False

            if not await self.create_sample_data(config.namespace, token=token):
                return False
        except Exception as e:
            logger.error(
                "project.init.error ns=%s err=%s", config.namespace, type(e).__name__
            )
            return False

        logger.info(
            "project.init.ok ns=%s tables=%d", config.namespace, len(config.tables)
        )
        return True

    async def create_sample_data(
        self, namespace: str, *, token: Optional[str] = None
    ) -> bool:
        target = self._data.for_namespace(namespace)
        ok = await target.set_namespace_data(
            "settings", "default", SAMPLE_SETTINGS, token=token
        )
        ok = ok and await target.set_namespace_data(
            "schemas", "users", SAMPLE_USER_SCHEMA, token=token
        )
        if not ok:
            logger.error("project.sample.error ns=%s", namespace)
        return ok

    # ---------------- Lookup ----------------

    async def get_project(
        self, namespace: str, *, token: Optional[str] = None
    ) -> Optional[ProjectDescriptor]:
        raw = await self._data.get_shared_data(
            GLOBAL_CONFIG_TABLE, descriptor_key(namespace), token=token
        )
        if raw is None:
            return None
        try:
            return ProjectDescriptor.model_validate(raw)
        except ValidationError:
            logger.warning("project.descriptor.malformed ns=%s", namespace)
            return None

    async def check_project_exists(
        self, namespace: str, *, token: Optional[str] = None
    ) -> bool:
        raw = await self._data.get_shared_data(
            GLOBAL_CONFIG_TABLE, descriptor_key(namespace), token=token
        )
        return raw is not None

    async def list_projects(
        self, *, token: Optional[str] = None
    ) -> List[ProjectDescriptor]:
        out: List[ProjectDescriptor] = []
        for rec in await self._data.get_all_shared_data(GLOBAL_CONFIG_TABLE, token=token):
            if not rec.key.startswith(PROJECT_DESCRIPTOR_PREFIX) or rec.value is None:
                continue
            try:
                out.append(ProjectDescriptor.model_validate(rec.value))
            except ValidationError:
                logger.warning("project.list.malformed key=%s", rec.key)
                continue
        return out

    # ---------------- Bulk data movement ----------------

    async def sync_project_data_report(
        self,
        source: str,
        target: str,
        tables: Optional[Iterable[str]] = None,
        *,
        token: Optional[str] = None,
    ) -> SyncReport:
        """
        Copy every record of `source` (optionally only `tables`) into `target`.
        Raises UnknownNamespaceError / StorageError before any write happens.
        """
        namespace_prefix(target, self._data.registry)
        allow = set(tables) if tables else None
        sender = self._data.for_namespace(source)
        records = await self._data.list_namespace_records(source, token=token)

        report = SyncReport(source=source, target=target)
        for rec in records:
            if allow is not None and rec.table not in allow:
                report.skipped += 1
                continue
            if await sender.sync_to_project(target, rec.table, rec.key, rec.value, token=token):
                report.synced += 1
            else:
                report.failed += 1
                report.failedKeys.append(f"{rec.table}/{rec.key}")

        logger.info(
            "project.sync.done from=%s to=%s synced=%d failed=%d skipped=%d",
            source,
            target,
            report.synced,
            report.failed,
            report.skipped,
        )
        return report

    async def sync_project_data(
        self,
        source: str,
        target: str,
        tables: Optional[Iterable[str]] = None,
        *,
        token: Optional[str] = None,
    ) -> bool:
        """True when the loop ran to the end, whatever the per-record outcome."""
        try:
            await self.sync_project_data_report(source, target, tables, token=token)
        except Exception as e:
            logger.error(
                "project.sync.error from=%s to=%s err=%s", source, target, type(e).__name__
            )
            return False
        return True

    async def export_project_data(
        self, namespace: str, *, token: Optional[str] = None
    ) -> Optional[ProjectExport]:
        """None when the store fails. Raises UnknownNamespaceError."""
        namespace_prefix(namespace, self._data.registry)
        try:
            records = await self._data.list_namespace_records(namespace, token=token)
        except Exception as e:
            logger.error("project.export.error ns=%s err=%s", namespace, type(e).__name__)
            return None
        return ProjectExport(
            namespace=namespace,
            exportedAt=utc_now_iso(),
            recordCount=len(records),
            data=records,
        )

    async def import_project_data(
        self, bundle: ProjectExport, *, token: Optional[str] = None
    ) -> bool:
        target = self._data.for_namespace(bundle.namespace)
        try:
            failed = 0
            for rec in bundle.data:
                if not await target.set_namespace_data(rec.table, rec.key, rec.value, token=token):
                    failed += 1
        except Exception as e:
            logger.error(
                "project.import.error ns=%s err=%s", bundle.namespace, type(e).__name__
            )
            return False

        logger.info(
            "project.import.done ns=%s records=%d failed=%d",
            bundle.namespace,
            len(bundle.data),
            failed,
        )
        return failed == 0

    async def cleanup_project(
        self, namespace: str, confirm: bool = False, *, token: Optional[str] = None
    ) -> bool:
        """
        Delete every record of `namespace` and then its descriptor.
        Destructive; refuses to run without confirm=True.
        """
        if not confirm:
            raise ProjectSetupError(
                "cleanup requires confirmation; it permanently deletes all project data"
            )
        try:
            target = self._data.for_namespace(namespace)
            records = await self._data.list_namespace_records(namespace, token=token)
            deleted = 0
            for rec in records:
                if await target.delete_namespace_data(rec.table, rec.key, token=token):
                    deleted += 1
            descriptor_gone = await self._data.delete_shared_data(
                GLOBAL_CONFIG_TABLE, descriptor_key(namespace), token=token
            )
        except Exception as e:
            logger.error("project.cleanup.error ns=%s err=%s", namespace, type(e).__name__)
            return False

        logger.info(
            "project.cleanup.done ns=%s deleted=%d of=%d", namespace, deleted, len(records)
        )
        return descriptor_gone and deleted == len(records)

    # ---------------- Artifacts ----------------

    def generate_config_file(self, config: ProjectSetupConfig) -> str:
        """Human-readable dotenv-style summary plus a suggested registry entry."""
        registry_entry = {
            config.namespace: {
                "prefix": f"{config.namespace}_",
                "tables": {table: f"{table}:" for table in config.tables},
            }
        }
        lines = [
            f"# Project configuration - {config.projectName}",
            f"# Generated at {utc_now_iso()}",
            "#",
            f"# {config.description}" if config.description else "#",
            "",
            f"PROJECT_NAMESPACE={config.namespace}",
            f"KV_BASE_URL={settings.KV_BASE_URL}",
            "# Set KV_ANON_KEY in the environment, never in this file",
            "KV_ANON_KEY=",
            f"ADMIN_EMAIL={config.adminEmail}",
            "",
            "# Tables",
        ]
        lines += [f"#   {table}: {desc}" for table, desc in config.tables.items()]
        lines += [
            "",
            "# Namespace registry entry (add to the file named by NAMESPACE_CONFIG_FILE):",
        ]
        lines += [f"# {line}" for line in json.dumps(registry_entry, indent=2).splitlines()]
        return "\n".join(lines)
