"""Tests for quota record storage."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from lorekeeper.quota import InMemoryQuotaStore, UsagePeriod, UsageRecord, UsageWindow
from lorekeeper.quota.store import (
    Neo4jQuotaStore,
    record_from_properties,
    record_to_properties,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def record():
    """A record partway through its windows."""
    return UsageRecord(
        daily=UsageWindow(count=2, limit=10, last_reset=NOW),
        weekly=UsageWindow(count=5, limit=30, last_reset=NOW - timedelta(days=3)),
        monthly=UsageWindow(count=9, limit=100, last_reset=NOW - timedelta(days=12)),
        custom_limit=15,
        last_extraction=NOW,
    )


@pytest.fixture
def mock_session():
    """Patch the Neo4j session used by the quota store."""
    session = MagicMock()
    with patch("lorekeeper.quota.store.neo4j_session") as factory:
        factory.return_value.__enter__.return_value = session
        yield session


class TestInMemoryQuotaStore:
    """Test the process-local store."""

    def test_missing_record(self):
        assert InMemoryQuotaStore().get("user-1") is None

    def test_transact_writes_returned_record(self, record):
        store = InMemoryQuotaStore()

        result = store.transact("user-1", lambda current: (record, "written"))

        assert result == "written"
        assert store.get("user-1") == record

    def test_transact_none_leaves_storage(self, record):
        store = InMemoryQuotaStore()
        store.transact("user-1", lambda current: (record, None))

        store.transact("user-1", lambda current: (None, None))

        assert store.get("user-1").daily.count == 2

    def test_callers_get_copies(self, record):
        """Test mutating a read record does not leak into storage."""
        store = InMemoryQuotaStore()
        store.transact("user-1", lambda current: (record, None))

        copy = store.get("user-1")
        copy.daily.count = 99

        assert store.get("user-1").daily.count == 2

    def test_transact_sees_current_record(self, record):
        store = InMemoryQuotaStore()
        store.transact("user-1", lambda current: (record, None))

        seen = store.transact("user-1", lambda current: (None, current.weekly.count))

        assert seen == 5


class TestRecordProperties:
    """Test flattening records into node properties."""

    def test_flattened_keys(self, record):
        props = record_to_properties(record)

        for period in UsagePeriod:
            assert f"{period.value}_count" in props
            assert f"{period.value}_limit" in props
            assert isinstance(props[f"{period.value}_last_reset"], str)
        assert props["custom_limit"] == 15
        assert not props["is_unlimited"]

    def test_restores_record(self, record):
        assert record_from_properties(record_to_properties(record)) == record

    def test_node_without_counters(self):
        assert record_from_properties({"user_id": "user-1", "locked_at": "x"}) is None


class TestNeo4jQuotaStore:
    """Test the graph-backed store against a mocked session."""

    def test_get_missing(self, mock_session):
        mock_session.run.return_value.single.return_value = None

        assert Neo4jQuotaStore().get("user-1") is None

    def test_get_existing(self, mock_session, record):
        mock_session.run.return_value.single.return_value = {
            "u": {"user_id": "user-1", **record_to_properties(record)}
        }

        assert Neo4jQuotaStore().get("user-1") == record

    def test_transact_locks_then_writes(self, mock_session, record):
        """Test the node is locked before the callback reads it."""
        tx = MagicMock()
        tx.run.return_value.single.return_value = {"u": {"user_id": "user-1"}}
        mock_session.execute_write.side_effect = lambda work: work(tx)
        seen = []
        queries_before_fn = []

        def _fn(current):
            seen.append(current)
            queries_before_fn.extend(c.args[0] for c in tx.run.call_args_list)
            return record, "ok"

        result = Neo4jQuotaStore().transact("user-1", _fn)

        assert result == "ok"
        assert seen == [None]
        assert len(queries_before_fn) == 1
        lock_query = queries_before_fn[0]
        assert "MERGE" in lock_query
        assert "locked_at" in lock_query
        write_kwargs = tx.run.call_args_list[1].kwargs
        assert write_kwargs["props"] == record_to_properties(record)

    def test_transact_skips_write(self, mock_session):
        tx = MagicMock()
        tx.run.return_value.single.return_value = {"u": {"user_id": "user-1"}}
        mock_session.execute_write.side_effect = lambda work: work(tx)

        Neo4jQuotaStore().transact("user-1", lambda current: (None, None))

        assert tx.run.call_count == 1
