import json
import os

os.environ["APP_ENV"] = "test"  # keep a developer .env out of the test run
os.environ.pop("NAMESPACE_CONFIG_FILE", None)
os.environ.pop("KV_BACKEND", None)
os.environ.pop("PROJECT_NAMESPACE", None)

import httpx
import pytest

from repository.kv_store import HttpKVStore
from repository.namespaces import NamespaceRegistry
from service.data_manager import CrossProjectDataManager
from service.project_setup import ProjectSetupManager

TEST_REGISTRY = {
    "namespaces": {
        "botc": {
            "prefix": "botc_",
            "tables": {"scripts": "script:", "characters": "character:"},
        },
        "projA": {
            "prefix": "a_",
            "tables": {
                "users": "user:",
                "settings": "settings:",
                "schemas": "schemas:",
            },
        },
        "projB": {
            "prefix": "b_",
            "tables": {
                "users": "user:",
                "settings": "settings:",
                "schemas": "schemas:",
            },
        },
    },
    "shared": {
        "prefix": "shared_",
        "tables": {
            "globalConfig": "shared_config:",
            "crossProjectData": "shared_data:",
        },
    },
}


class FakeKVServer:
    """In-memory stand-in for the hosted /data endpoints."""

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self.junk_rows: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.fail_keys: set[str] = set()
        self.down = False
        self.honor_prefix = True
        self._clock = 0

    def _now(self) -> str:
        self._clock += 1
        return f"2026-01-01T00:00:{self._clock:02d}.000Z"

    def seed(self, key: str, value) -> None:
        now = self._now()
        self.rows[key] = {"value": value, "created_at": now, "updated_at": now}

    def value(self, key: str):
        return self.rows[key]["value"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("store down", request=request)

        path = request.url.path
        if not path.startswith("/data"):
            return httpx.Response(404, json={"error": "no route"})
        rest = path[len("/data"):]

        if rest in ("", "/"):
            if request.method == "GET":
                prefix = request.url.params.get("prefix") if self.honor_prefix else None
                records = [
                    {"key": k, **row}
                    for k, row in self.rows.items()
                    if not prefix or k.startswith(prefix)
                ]
                return httpx.Response(200, json={"records": records + self.junk_rows})
            if request.method == "POST":
                body = json.loads(request.content)
                key = body["key"]
                if key in self.fail_keys:
                    return httpx.Response(500, json={"error": "boom"})
                now = self._now()
                created = self.rows.get(key, {}).get("created_at", now)
                self.rows[key] = {
                    "value": body.get("value"),
                    "created_at": created,
                    "updated_at": now,
                }
                return httpx.Response(200, json={"key": key})

        key = rest[1:]
        if key in self.fail_keys:
            return httpx.Response(500, json={"error": "boom"})
        if request.method == "GET":
            row = self.rows.get(key)
            if row is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"value": row["value"]})
        if request.method == "DELETE":
            if self.rows.pop(key, None) is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"message": "deleted"})
        return httpx.Response(405)


@pytest.fixture
def registry() -> NamespaceRegistry:
    return NamespaceRegistry.from_mapping(TEST_REGISTRY)


@pytest.fixture
def kv() -> FakeKVServer:
    return FakeKVServer()


@pytest.fixture
def store(kv: FakeKVServer) -> HttpKVStore:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(kv.handler), base_url="http://kv.test"
    )
    return HttpKVStore(client=client, anon_key="anon-key")


@pytest.fixture
def manager(store: HttpKVStore, registry: NamespaceRegistry) -> CrossProjectDataManager:
    return CrossProjectDataManager(store, "projA", registry)


@pytest.fixture
def setup_manager(manager: CrossProjectDataManager) -> ProjectSetupManager:
    return ProjectSetupManager(manager)
