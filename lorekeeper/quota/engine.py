"""Per-user extraction quota across daily, weekly and monthly windows."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from lorekeeper.core.config import settings
from lorekeeper.errors import QuotaUnavailable
from lorekeeper.quota.models import (
    ContactInfo,
    NextReset,
    UsagePeriod,
    UsageRecord,
    UsageStatus,
    UsageWindow,
)
from lorekeeper.quota.store import InMemoryQuotaStore, QuotaStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reset_if_due(record: UsageRecord, now: datetime) -> tuple[UsageRecord, bool]:
    """Zero every window whose boundary has passed.

    Each window is checked independently; a reset window restarts its
    cadence at `now`.

    Returns:
        Tuple of (record, whether any window was reset).
    """
    updated = record.model_copy(deep=True)
    changed = False

    for period in UsagePeriod:
        if now >= record.next_reset(period):
            window = updated.window(period)
            window.count = 0
            window.last_reset = now
            changed = True

    return updated, changed


def first_exceeded_period(record: UsageRecord) -> Optional[UsagePeriod]:
    """First window (daily, weekly, monthly) that one more call would overfill."""
    if record.is_unlimited:
        return None

    for period in UsagePeriod:
        if record.window(period).count + 1 > record.effective_limit(period):
            return period
    return None


def build_status(
    record: UsageRecord,
    exceeded_period: Optional[UsagePeriod] = None,
) -> UsageStatus:
    return UsageStatus(
        usage=record,
        limit_exceeded=exceeded_period is not None,
        exceeded_period=exceeded_period,
        next_reset=NextReset(
            **{period.value: record.next_reset(period) for period in UsagePeriod}
        ),
    )


class QuotaEngine:
    """Authoritative usage quota for entity extraction."""

    def __init__(
        self,
        store: Optional[QuotaStore] = None,
        limits: Optional[dict[UsagePeriod, int]] = None,
        contact: Optional[ContactInfo] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the engine.

        Args:
            store: Atomic record storage. In-memory if None.
            limits: Default window limits for new records.
            contact: Payload returned with limit rejections.
            clock: Current-time source.
        """
        self.store = store or InMemoryQuotaStore()
        self.limits = limits or {
            UsagePeriod.DAILY: settings.quota_daily_limit,
            UsagePeriod.WEEKLY: settings.quota_weekly_limit,
            UsagePeriod.MONTHLY: settings.quota_monthly_limit,
        }
        self.contact = contact or ContactInfo(
            message=settings.contact_message,
            contact_url=settings.contact_url,
            prefilled_subject=settings.contact_subject,
        )
        self.clock = clock

    def default_record(self, now: datetime) -> UsageRecord:
        """Fresh record with default limits, all windows starting now."""
        return UsageRecord(
            **{
                period.value: UsageWindow(count=0, limit=self.limits[period], last_reset=now)
                for period in UsagePeriod
            }
        )

    async def check_and_reserve(self, user_id: str) -> UsageStatus:
        """Reserve one extraction if every window has room.

        The check and the increment happen in one store transaction. On
        rejection no counter moves and the status names the first full
        window.

        Raises:
            QuotaUnavailable: If the store cannot be reached.
        """
        now = self.clock()

        def _reserve(current: Optional[UsageRecord]):
            record, changed = reset_if_due(current or self.default_record(now), now)
            changed = changed or current is None

            exceeded = first_exceeded_period(record)
            if exceeded is not None:
                return (record if changed else None), build_status(record, exceeded)

            for period in UsagePeriod:
                record.window(period).count += 1
            record.last_extraction = now
            return record, build_status(record)

        status = self._transact(user_id, _reserve)
        if status.limit_exceeded:
            logger.info(
                f"Extraction quota exceeded for user {user_id} "
                f"({status.exceeded_period.value})"
            )
        return status

    async def read_status(self, user_id: str) -> UsageStatus:
        """Evaluate usage without consuming or persisting anything.

        Raises:
            QuotaUnavailable: If the store cannot be reached.
        """
        now = self.clock()
        try:
            current = self.store.get(user_id)
        except Exception as e:
            logger.error(f"Quota store read failed for user {user_id}: {e}")
            raise QuotaUnavailable() from e

        record, _ = reset_if_due(current or self.default_record(now), now)
        return build_status(record, first_exceeded_period(record))

    async def set_limits(
        self,
        user_id: str,
        custom_limit: Optional[int] = None,
        is_unlimited: bool = False,
    ) -> UsageStatus:
        """Operator override of the daily limit and unlimited flag."""
        now = self.clock()

        def _update(current: Optional[UsageRecord]):
            record, _ = reset_if_due(current or self.default_record(now), now)
            record.custom_limit = custom_limit
            record.is_unlimited = is_unlimited
            return record, build_status(record, first_exceeded_period(record))

        return self._transact(user_id, _update)

    async def reset_usage(self, user_id: str) -> UsageStatus:
        """Operator reset of every window, keeping limit overrides."""
        now = self.clock()

        def _reset(current: Optional[UsageRecord]):
            record = current or self.default_record(now)
            for period in UsagePeriod:
                window = record.window(period)
                window.count = 0
                window.last_reset = now
            return record, build_status(record, first_exceeded_period(record))

        return self._transact(user_id, _reset)

    def _transact(self, user_id: str, fn):
        try:
            return self.store.transact(user_id, fn)
        except Exception as e:
            logger.error(f"Quota store transaction failed for user {user_id}: {e}")
            raise QuotaUnavailable() from e


def fill_percentage(status: UsageStatus) -> float:
    """Display fill of the usage indicator, 0-100.

    Daily pressure dominates; weekly and monthly pressure count at half
    and three-tenths weight.
    """
    if status.limit_exceeded:
        return 100.0

    usage = status.usage

    def _pct(period: UsagePeriod) -> float:
        return min(usage.window(period).count / usage.effective_limit(period) * 100, 100.0)

    return max(
        _pct(UsagePeriod.DAILY),
        _pct(UsagePeriod.WEEKLY) * 0.5,
        _pct(UsagePeriod.MONTHLY) * 0.3,
    )


def severity(status: UsageStatus) -> str:
    """Indicator band: exceeded, warning, elevated or ok."""
    if status.limit_exceeded:
        return "exceeded"

    percentage = fill_percentage(status)
    if percentage >= 80:
        return "warning"
    if percentage >= 60:
        return "elevated"
    return "ok"


def period_summary(status: UsageStatus, period: UsagePeriod) -> str:
    """`count/limit` text for one window."""
    usage = status.usage
    return f"{usage.window(period).count}/{usage.effective_limit(period)}"
