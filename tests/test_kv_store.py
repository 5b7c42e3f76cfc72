"""Tests for repository.kv_store: HTTP and Redis adapters."""

import json
import re

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from repository.kv_store import HttpKVStore, RedisKVStore
from util.errors import StorageError


# ---------------------------------------------------------------------------
# HttpKVStore
# ---------------------------------------------------------------------------

class TestHttpKVStore:
    async def test_get_found(self, kv, store):
        kv.seed("botc_script:1", {"name": "Trouble Brewing"})
        assert await store.get("botc_script:1") == {"name": "Trouble Brewing"}

    async def test_get_absent_is_none(self, store):
        assert await store.get("botc_script:missing") is None

    async def test_get_server_error_raises(self, kv, store):
        kv.fail_keys.add("botc_script:1")
        with pytest.raises(StorageError) as exc:
            await store.get("botc_script:1")
        assert exc.value.status_code == 500

    async def test_get_transport_error_raises(self, kv, store):
        kv.down = True
        with pytest.raises(StorageError):
            await store.get("botc_script:1")

    async def test_key_is_url_encoded(self, kv, store):
        await store.get("botc_script:a/b")
        raw = kv.requests[-1].url.raw_path
        assert raw.endswith(b"/data/botc_script%3Aa%2Fb")

    async def test_anon_key_used_without_token(self, kv, store):
        await store.get("k")
        assert kv.requests[-1].headers["Authorization"] == "Bearer anon-key"

    async def test_caller_token_passed_through(self, kv, store):
        await store.get("k", token="user-jwt")
        assert kv.requests[-1].headers["Authorization"] == "Bearer user-jwt"

    async def test_set_posts_key_and_value(self, kv, store):
        await store.set("botc_user:7", {"role": "admin"})
        sent = json.loads(kv.requests[-1].content)
        assert sent == {"key": "botc_user:7", "value": {"role": "admin"}}
        assert kv.value("botc_user:7") == {"role": "admin"}

    async def test_set_rejected_raises(self, kv, store):
        kv.fail_keys.add("botc_user:7")
        with pytest.raises(StorageError):
            await store.set("botc_user:7", 1)

    async def test_delete_missing_is_ok(self, store):
        await store.delete("nothing-here")

    async def test_delete_removes(self, kv, store):
        kv.seed("k", 1)
        await store.delete("k")
        assert "k" not in kv.rows

    async def test_list_sends_prefix(self, kv, store):
        kv.seed("a_user:1", 1)
        kv.seed("b_user:1", 2)
        records = await store.list("a_")
        assert [r.key for r in records] == ["a_user:1"]
        assert kv.requests[-1].url.params["prefix"] == "a_"

    async def test_list_filters_when_server_ignores_prefix(self, kv, store):
        kv.honor_prefix = False
        kv.seed("a_user:1", 1)
        kv.seed("b_user:1", 2)
        assert [r.key for r in await store.list("b_")] == ["b_user:1"]

    async def test_list_skips_malformed_rows(self, kv, store):
        kv.seed("a_user:1", 1)
        kv.junk_rows.append({"value": "row without key"})
        records = await store.list()
        assert [r.key for r in records] == ["a_user:1"]
        assert records[0].created_at is not None

    async def test_list_transport_error_raises(self, kv, store):
        kv.down = True
        with pytest.raises(StorageError):
            await store.list()


# ---------------------------------------------------------------------------
# RedisKVStore
# ---------------------------------------------------------------------------

class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisKVStore (decode_responses=True)."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.broken = False
        self.patterns: list[str] = []

    def _check(self) -> None:
        if self.broken:
            raise RedisConnectionError("redis down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value):
        self._check()
        self.data[key] = value
        return True

    async def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    async def mget(self, keys):
        self._check()
        return [self.data.get(k) for k in keys]

    async def scan_iter(self, match=None, count=None):
        self._check()
        self.patterns.append(match)
        assert match.endswith("*")
        prefix = re.sub(r"\\(.)", r"\1", match[:-1])
        for key in list(self.data):
            if key.startswith(prefix):
                yield key


class TestRedisKVStore:
    @pytest.fixture
    def redis(self) -> FakeRedis:
        return FakeRedis()

    @pytest.fixture
    def rstore(self, redis) -> RedisKVStore:
        return RedisKVStore(redis=redis, key_root="kv:")

    async def test_set_then_get(self, redis, rstore):
        await rstore.set("botc_script:1", {"name": "Sects & Violets"})
        assert await rstore.get("botc_script:1") == {"name": "Sects & Violets"}
        envelope = json.loads(redis.data["kv:botc_script:1"])
        assert envelope["created_at"] == envelope["updated_at"]

    async def test_get_absent(self, rstore):
        assert await rstore.get("missing") is None

    async def test_overwrite_keeps_created_at(self, redis, rstore):
        await rstore.set("k", 1)
        first = json.loads(redis.data["kv:k"])
        redis.data["kv:k"] = json.dumps({**first, "created_at": "2020-01-01T00:00:00.000Z"})
        await rstore.set("k", 2)
        second = json.loads(redis.data["kv:k"])
        assert second["value"] == 2
        assert second["created_at"] == "2020-01-01T00:00:00.000Z"

    async def test_list_by_prefix_strips_root(self, rstore):
        await rstore.set("a_user:1", 1)
        await rstore.set("b_user:1", 2)
        records = await rstore.list("a_")
        assert [(r.key, r.value) for r in records] == [("a_user:1", 1)]

    async def test_list_escapes_glob_characters(self, redis, rstore):
        await rstore.set("odd*key", 1)
        await rstore.list("odd*")
        assert redis.patterns[-1] == "kv:odd\\**"

    async def test_list_skips_corrupt_envelopes(self, redis, rstore):
        await rstore.set("a_user:1", 1)
        redis.data["kv:a_user:2"] = "not json"
        assert [r.key for r in await rstore.list()] == ["a_user:1"]

    async def test_unserializable_value_raises(self, rstore):
        with pytest.raises(StorageError):
            await rstore.set("k", object())

    async def test_redis_errors_become_storage_errors(self, redis, rstore):
        redis.broken = True
        with pytest.raises(StorageError):
            await rstore.get("k")
        with pytest.raises(StorageError):
            await rstore.list()

    async def test_delete(self, redis, rstore):
        await rstore.set("k", 1)
        await rstore.delete("k")
        assert "kv:k" not in redis.data
