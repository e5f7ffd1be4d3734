"""
Unit tests for the model snapshot stores.

The DuckDB store runs against a throwaway file under tmp_path.
"""

import pytest

from gameinsights.storage import DuckDBKeyValueStore, InMemoryKeyValueStore, StorageError


@pytest.fixture
def duckdb_store(tmp_path):
    store = DuckDBKeyValueStore(db_path=str(tmp_path / "models" / "state.duckdb"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "duckdb"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryKeyValueStore()
    else:
        s = DuckDBKeyValueStore(db_path=str(tmp_path / "state.duckdb"))
        yield s
        s.close()


class TestKeyValueStoreContract:
    """Behaviour shared by every store implementation."""

    def test_get_missing_key_returns_none(self, store):
        assert store.get("absent") is None

    def test_set_then_get(self, store):
        store.set("model", '{"a": 1}')
        assert store.get("model") == '{"a": 1}'

    def test_set_replaces_whole_value(self, store):
        store.set("model", "first")
        store.set("model", "second")
        assert store.get("model") == "second"
        assert store.keys() == ["model"]

    def test_delete_reports_existence(self, store):
        store.set("model", "x")
        assert store.delete("model") is True
        assert store.delete("model") is False
        assert store.get("model") is None

    def test_keys_sorted(self, store):
        for key in ("b", "a", "c"):
            store.set(key, key)
        assert store.keys() == ["a", "b", "c"]


class TestInMemoryKeyValueStore:
    def test_initial_contents(self):
        store = InMemoryKeyValueStore(initial={"k": "v"})
        assert store.get("k") == "v"


class TestDuckDBKeyValueStore:
    def test_creates_parent_directory(self, tmp_path, duckdb_store):
        assert (tmp_path / "models").is_dir()

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "persist.duckdb")
        first = DuckDBKeyValueStore(db_path=path)
        first.set("retention_predictor_model", "payload")
        first.close()

        second = DuckDBKeyValueStore(db_path=path)
        assert second.get("retention_predictor_model") == "payload"
        second.close()

    def test_clear_for_testing(self, duckdb_store):
        duckdb_store.set("a", "1")
        duckdb_store.clear_for_testing()
        assert duckdb_store.keys() == []

    def test_unreachable_database_raises_storage_error(self, tmp_path):
        # A directory cannot be opened as a database file
        blocker = tmp_path / "occupied.duckdb"
        blocker.mkdir()
        with pytest.raises(StorageError):
            DuckDBKeyValueStore(db_path=str(blocker))
