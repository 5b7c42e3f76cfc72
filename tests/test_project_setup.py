"""Tests for service.project_setup: ProjectSetupManager."""

import pytest

from model.project import PROJECT_TEMPLATES, ProjectSetupConfig
from repository.namespaces import load_registry
from service.data_manager import CrossProjectDataManager
from service.project_setup import METADATA_KEY, ProjectSetupManager, descriptor_key
from util.enums import ProjectStatus
from util.errors import ProjectSetupError, UnknownNamespaceError


def _config(namespace: str = "projB", **overrides) -> ProjectSetupConfig:
    data = {
        "projectName": "Grimoire Companion",
        "namespace": namespace,
        "description": "Storyteller notes",
        "tables": {"users": "Players", "settings": "App settings"},
        "adminEmail": "storyteller@example.com",
    }
    data.update(overrides)
    return ProjectSetupConfig(**data)


DESCRIPTOR_KEY = "shared_shared_config:project_projB"


# ---------------------------------------------------------------------------
# initialize_project / check / list
# ---------------------------------------------------------------------------

class TestInitializeProject:
    async def test_writes_descriptor_metadata_and_samples(self, kv, setup_manager):
        assert await setup_manager.initialize_project(_config())

        descriptor = kv.value(DESCRIPTOR_KEY)
        assert descriptor["name"] == "Grimoire Companion"
        assert descriptor["namespace"] == "projB"
        assert descriptor["status"] == "active"
        assert descriptor["adminEmail"] == "storyteller@example.com"

        users_meta = kv.value(f"b_user:{METADATA_KEY}")
        assert users_meta["tableName"] == "users"
        assert users_meta["description"] == "Players"
        assert users_meta["recordCount"] == 0
        assert kv.value(f"b_settings:{METADATA_KEY}")["tableName"] == "settings"

        assert kv.value("b_settings:default")["theme"] == "light"
        assert "schema" in kv.value("b_schemas:users")

    async def test_project_becomes_visible(self, setup_manager):
        assert not await setup_manager.check_project_exists("projB")
        await setup_manager.initialize_project(_config())
        assert await setup_manager.check_project_exists("projB")

        projects = await setup_manager.list_projects()
        assert [p.namespace for p in projects] == ["projB"]
        assert projects[0].status is ProjectStatus.ACTIVE

    async def test_unregistered_namespace_writes_nothing(self, kv, setup_manager):
        assert await setup_manager.initialize_project(_config("nowhere")) is False
        assert kv.rows == {}

    async def test_failed_step_keeps_earlier_writes(self, kv, setup_manager):
        kv.fail_keys.add(f"b_settings:{METADATA_KEY}")
        assert await setup_manager.initialize_project(_config()) is False
        # No rollback: descriptor and the first table's metadata stay behind.
        assert DESCRIPTOR_KEY in kv.rows
        assert f"b_user:{METADATA_KEY}" in kv.rows
        assert "b_settings:default" not in kv.rows

    async def test_store_down(self, kv, setup_manager):
        kv.down = True
        assert await setup_manager.initialize_project(_config()) is False

    async def test_list_skips_malformed_descriptors(self, kv, setup_manager):
        await setup_manager.initialize_project(_config())
        kv.seed("shared_shared_config:project_broken", {"name": "no namespace"})
        kv.seed("shared_shared_config:theme", {"mode": "dark"})
        assert [p.namespace for p in await setup_manager.list_projects()] == ["projB"]

    async def test_get_project(self, setup_manager):
        await setup_manager.initialize_project(_config())
        project = await setup_manager.get_project("projB")
        assert project.tables == {"users": "Players", "settings": "App settings"}
        assert await setup_manager.get_project("projA") is None

    def test_descriptor_key(self):
        assert descriptor_key("botc") == "project_botc"


# ---------------------------------------------------------------------------
# sync_project_data
# ---------------------------------------------------------------------------

class TestSyncProjectData:
    @pytest.fixture
    def seeded(self, kv):
        kv.seed("a_user:u1", {"name": "Washerwoman"})
        kv.seed("a_user:u2", {"name": "Librarian"})
        kv.seed("a_settings:theme", {"mode": "dark"})
        kv.seed("a_settings:lang", {"code": "en"})
        return kv

    async def test_table_filter(self, seeded, setup_manager):
        assert await setup_manager.sync_project_data("projA", "projB", ["settings"])
        target = sorted(k for k in seeded.rows if k.startswith("b_"))
        assert target == ["b_settings:lang", "b_settings:theme"]
        assert seeded.value("b_settings:theme")["synced_from"] == "projA"

    async def test_all_tables(self, seeded, setup_manager):
        report = await setup_manager.sync_project_data_report("projA", "projB")
        assert (report.synced, report.failed, report.skipped) == (4, 0, 0)
        assert seeded.value("b_user:u1")["name"] == "Washerwoman"

    async def test_partial_failure_still_true(self, seeded, setup_manager):
        seeded.fail_keys.add("b_user:u2")
        assert await setup_manager.sync_project_data("projA", "projB")
        report = await setup_manager.sync_project_data_report("projA", "projB", ["users"])
        assert report.failed == 1
        assert report.failedKeys == ["users/u2"]
        assert report.skipped == 2

    async def test_unknown_target(self, seeded, setup_manager):
        assert await setup_manager.sync_project_data("projA", "nowhere") is False
        with pytest.raises(UnknownNamespaceError):
            await setup_manager.sync_project_data_report("projA", "nowhere")
        assert not any(k.startswith("b_") for k in seeded.rows)

    async def test_store_down(self, seeded, setup_manager):
        seeded.down = True
        assert await setup_manager.sync_project_data("projA", "projB") is False


# ---------------------------------------------------------------------------
# export / import / cleanup / config file
# ---------------------------------------------------------------------------

class TestExportImport:
    async def test_export(self, kv, setup_manager):
        kv.seed("a_user:u1", {"name": "Chef"})
        kv.seed("a_settings:theme", {"mode": "dark"})
        kv.seed("b_user:u9", {"name": "Other"})
        bundle = await setup_manager.export_project_data("projA")
        assert bundle.namespace == "projA"
        assert bundle.recordCount == 2
        assert {(r.table, r.key) for r in bundle.data} == {
            ("users", "u1"),
            ("settings", "theme"),
        }

    async def test_export_is_read_only(self, kv, setup_manager):
        kv.seed("a_user:u1", 1)
        before = {k: dict(v) for k, v in kv.rows.items()}
        await setup_manager.export_project_data("projA")
        assert kv.rows == before
        assert all(r.method == "GET" for r in kv.requests)

    async def test_export_store_down(self, kv, setup_manager):
        kv.down = True
        assert await setup_manager.export_project_data("projA") is None

    async def test_import_into_another_namespace(self, kv, setup_manager):
        kv.seed("a_user:u1", {"name": "Chef"})
        bundle = await setup_manager.export_project_data("projA")
        moved = bundle.model_copy(update={"namespace": "projB"})
        assert await setup_manager.import_project_data(moved)
        assert kv.value("b_user:u1") == {"name": "Chef"}

    async def test_import_reports_failures(self, kv, setup_manager):
        kv.seed("a_user:u1", 1)
        bundle = await setup_manager.export_project_data("projA")
        kv.fail_keys.add("a_user:u1")
        assert await setup_manager.import_project_data(bundle) is False


class TestCleanup:
    async def test_requires_confirmation(self, kv, setup_manager):
        kv.seed("a_user:u1", 1)
        with pytest.raises(ProjectSetupError):
            await setup_manager.cleanup_project("projA")
        assert "a_user:u1" in kv.rows

    async def test_deletes_records_and_descriptor(self, kv, setup_manager):
        await setup_manager.initialize_project(_config())
        kv.seed("a_user:keep", 1)
        assert await setup_manager.cleanup_project("projB", confirm=True)
        assert not any(k.startswith("b_") for k in kv.rows)
        assert DESCRIPTOR_KEY not in kv.rows
        assert "a_user:keep" in kv.rows
        assert not await setup_manager.check_project_exists("projB")


class TestConfigFile:
    def test_contains_namespace_and_registry_entry(self, setup_manager):
        text = setup_manager.generate_config_file(_config())
        assert text.startswith("# Project configuration - Grimoire Companion")
        assert "PROJECT_NAMESPACE=projB" in text
        assert "ADMIN_EMAIL=storyteller@example.com" in text
        assert '"prefix": "projB_"' in text
        assert "#   users: Players" in text

    def test_templates_are_valid_configs(self, setup_manager):
        for name, template in PROJECT_TEMPLATES.items():
            assert template.tables, name
            assert f"PROJECT_NAMESPACE={template.namespace}" in setup_manager.generate_config_file(
                template
            )


# ---------------------------------------------------------------------------
# Built-in registry
# ---------------------------------------------------------------------------

@pytest.fixture
def builtin_setup(store) -> ProjectSetupManager:
    return ProjectSetupManager(CrossProjectDataManager(store, "botc", load_registry()))


class TestBuiltinRegistry:
    async def test_export_and_cleanup_reach_unregistered_tables(self, kv, builtin_setup):
        config = _config("project2", tables={"data": "Data", "logs": "Logs"})
        assert await builtin_setup.initialize_project(config)

        bundle = await builtin_setup.export_project_data("project2")
        assert sorted((r.table, r.key) for r in bundle.data) == [
            ("data", METADATA_KEY),
            ("logs", METADATA_KEY),
            ("schemas", "users"),
            ("settings", "default"),
        ]
        assert bundle.recordCount == 4

        assert await builtin_setup.cleanup_project("project2", confirm=True)
        assert not any(k.startswith("proj2_") for k in kv.rows)

    async def test_sync_copies_unregistered_tables(self, kv, builtin_setup):
        await builtin_setup.initialize_project(_config("project2", tables={"logs": "Logs"}))
        report = await builtin_setup.sync_project_data_report("project2", "botc", ["settings"])
        assert report.synced == 1
        assert kv.value("botc_settings:default")["synced_from"] == "project2"

    @pytest.mark.parametrize("name", sorted(PROJECT_TEMPLATES))
    async def test_every_template_provisions(self, kv, builtin_setup, name):
        template = PROJECT_TEMPLATES[name]
        assert await builtin_setup.initialize_project(template)
        assert await builtin_setup.check_project_exists(template.namespace)

        bundle = await builtin_setup.export_project_data(template.namespace)
        tables = {r.table for r in bundle.data}
        assert set(template.tables) | {"settings", "schemas"} <= tables

    async def test_export_unknown_namespace_raises(self, builtin_setup):
        with pytest.raises(UnknownNamespaceError):
            await builtin_setup.export_project_data("nowhere")
