"""Extraction usage quota.

Three independent windows (daily, weekly, monthly) bound how often a user
may call the inference service. Counters live in an atomic store and are
reset lazily whenever they are read or reserved.
"""

from lorekeeper.quota.engine import (
    QuotaEngine,
    fill_percentage,
    period_summary,
    severity,
)
from lorekeeper.quota.models import (
    ContactInfo,
    UsagePeriod,
    UsageRecord,
    UsageStatus,
    UsageWindow,
)
from lorekeeper.quota.store import InMemoryQuotaStore, Neo4jQuotaStore, QuotaStore

__all__ = [
    # Engine
    "QuotaEngine",
    "fill_percentage",
    "period_summary",
    "severity",
    # Storage
    "InMemoryQuotaStore",
    "Neo4jQuotaStore",
    "QuotaStore",
    # Models
    "ContactInfo",
    "UsagePeriod",
    "UsageRecord",
    "UsageStatus",
    "UsageWindow",
]
