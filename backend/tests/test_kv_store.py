"""
test_kv_store.py — Unit tests for the key-value persistence backends.
"""

import json
import os

from app.services.kv_store import (
    InMemoryStore,
    JsonFileStore,
    RedisStore,
    build_store,
)


class FakeRedis:
    """Just enough of redis.Redis for RedisStore."""

    def __init__(self, fail=False):
        self.data = {}
        self.fail = fail

    def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    def set(self, key, value):
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value.encode("utf-8")


class TestInMemoryStore:

    def test_get_missing(self):
        assert InMemoryStore().get("nope") is None

    def test_set_then_get(self):
        store = InMemoryStore()
        assert store.set("k", "v") is True
        assert store.get("k") == "v"


class TestJsonFileStore:

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "kv" / "store.json")
        JsonFileStore(path).set("boq_usage", '{"A001": 1}')
        assert JsonFileStore(path).get("boq_usage") == '{"A001": 1}'

    def test_keeps_other_keys(self, tmp_path):
        path = str(tmp_path / "store.json")
        store = JsonFileStore(path)
        store.set("a", "1")
        store.set("b", "2")
        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {"a": "1", "b": "2"}

    def test_missing_file_reads_none(self, tmp_path):
        assert JsonFileStore(str(tmp_path / "absent.json")).get("a") is None

    def test_corrupt_file_reads_none_then_recovers(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{broken", encoding="utf-8")
        store = JsonFileStore(str(path))
        assert store.get("a") is None
        assert store.set("a", "1") is True
        assert store.get("a") == "1"

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "store.json"))
        store.set("a", "1")
        assert os.listdir(tmp_path) == ["store.json"]


class TestRedisStore:

    def test_prefix_and_decode(self):
        client = FakeRedis()
        store = RedisStore(client=client)
        assert store.set("boq_usage", "{}") is True
        assert "sitebook:boq_usage" in client.data
        assert store.get("boq_usage") == "{}"

    def test_failures_degrade(self):
        store = RedisStore(client=FakeRedis(fail=True))
        assert store.get("k") is None
        assert store.set("k", "v") is False


class TestBuildStore:

    def test_file_backend(self, tmp_path):
        assert isinstance(build_store("file", str(tmp_path / "s.json")), JsonFileStore)

    def test_file_without_path_falls_back(self):
        assert isinstance(build_store("file", ""), InMemoryStore)

    def test_unknown_backend(self):
        assert isinstance(build_store("etcd"), InMemoryStore)
