"""Atomic storage for per-user usage records.

Every read-check-write of a usage record goes through `transact`, which
runs the whole update as one unit at the storage layer. Two concurrent
reservations therefore cannot both observe the same "under limit" count.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, TypeVar

from lorekeeper.core.database import neo4j_session
from lorekeeper.quota.models import UsagePeriod, UsageRecord, UsageWindow

T = TypeVar("T")

# Receives the stored record (None if absent) and returns
# (record to write or None to leave storage untouched, result for the caller)
Transaction = Callable[[Optional[UsageRecord]], tuple[Optional[UsageRecord], T]]


class QuotaStore(Protocol):
    """Storage contract for the quota engine."""

    def get(self, user_id: str) -> Optional[UsageRecord]: ...

    def transact(self, user_id: str, fn: Transaction) -> T: ...


class InMemoryQuotaStore:
    """Process-local store, for single-process deployments and tests."""

    def __init__(self):
        self._records: dict[str, UsageRecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[UsageRecord]:
        with self._lock:
            record = self._records.get(user_id)
            return record.model_copy(deep=True) if record else None

    def transact(self, user_id: str, fn: Transaction) -> T:
        with self._lock:
            current = self._records.get(user_id)
            updated, result = fn(current.model_copy(deep=True) if current else None)
            if updated is not None:
                self._records[user_id] = updated.model_copy(deep=True)
            return result


def record_to_properties(record: UsageRecord) -> dict:
    """Flatten a usage record into node properties."""
    props = {
        "custom_limit": record.custom_limit,
        "is_unlimited": record.is_unlimited,
        "last_extraction": (
            record.last_extraction.isoformat() if record.last_extraction else None
        ),
    }
    for period in UsagePeriod:
        window = record.window(period)
        props[f"{period.value}_count"] = window.count
        props[f"{period.value}_limit"] = window.limit
        props[f"{period.value}_last_reset"] = window.last_reset.isoformat()
    return props


def record_from_properties(props: dict) -> Optional[UsageRecord]:
    """Rebuild a usage record; None if the node holds no counters yet."""
    if props.get("daily_count") is None:
        return None

    windows = {
        period.value: UsageWindow(
            count=props[f"{period.value}_count"],
            limit=props[f"{period.value}_limit"],
            last_reset=datetime.fromisoformat(props[f"{period.value}_last_reset"]),
        )
        for period in UsagePeriod
    }
    last_extraction = props.get("last_extraction")
    return UsageRecord(
        **windows,
        custom_limit=props.get("custom_limit"),
        is_unlimited=bool(props.get("is_unlimited", False)),
        last_extraction=(
            datetime.fromisoformat(last_extraction) if last_extraction else None
        ),
    )


class Neo4jQuotaStore:
    """Usage records stored as `QuotaUsage` nodes."""

    def get(self, user_id: str) -> Optional[UsageRecord]:
        query = """
        MATCH (u:QuotaUsage {user_id: $user_id})
        RETURN u
        """

        with neo4j_session() as session:
            record = session.run(query, user_id=user_id).single()
            return record_from_properties(dict(record["u"])) if record else None

    def transact(self, user_id: str, fn: Transaction) -> T:
        """Run `fn` inside one write transaction.

        The first statement writes to the node, which takes its write lock
        before the counters are read; concurrent transactions on the same
        user queue behind it until commit.
        """

        def _work(tx):
            row = tx.run(
                """
                MERGE (u:QuotaUsage {user_id: $user_id})
                SET u.locked_at = $now
                RETURN u
                """,
                user_id=user_id,
                now=datetime.now(timezone.utc).isoformat(),
            ).single()

            updated, result = fn(record_from_properties(dict(row["u"])))
            if updated is not None:
                tx.run(
                    """
                    MATCH (u:QuotaUsage {user_id: $user_id})
                    SET u += $props
                    """,
                    user_id=user_id,
                    props=record_to_properties(updated),
                )
            return result

        with neo4j_session() as session:
            return session.execute_write(_work)
