"""Data models for extraction usage tracking."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UsagePeriod(str, Enum):
    """Usage window, in the order windows are checked."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def cadence(self) -> timedelta:
        """Fixed length of the window."""
        return PERIOD_CADENCE[self]


PERIOD_CADENCE = {
    UsagePeriod.DAILY: timedelta(days=1),
    UsagePeriod.WEEKLY: timedelta(days=7),
    UsagePeriod.MONTHLY: timedelta(days=30),
}


class UsageWindow(BaseModel):
    """Counter for one usage window."""

    count: int = Field(ge=0, default=0)
    limit: int = Field(gt=0)
    last_reset: datetime


class UsageRecord(BaseModel):
    """Authoritative per-user usage record."""

    daily: UsageWindow
    weekly: UsageWindow
    monthly: UsageWindow
    custom_limit: Optional[int] = Field(default=None, gt=0)  # Set by an operator
    is_unlimited: bool = False  # Set by an operator
    last_extraction: Optional[datetime] = None

    def window(self, period: UsagePeriod) -> UsageWindow:
        return getattr(self, period.value)

    def effective_limit(self, period: UsagePeriod) -> int:
        """Limit in force for a window; the custom limit only overrides daily."""
        if period == UsagePeriod.DAILY and self.custom_limit:
            return self.custom_limit
        return self.window(period).limit

    def next_reset(self, period: UsagePeriod) -> datetime:
        return self.window(period).last_reset + period.cadence


class NextReset(BaseModel):
    """When each window resets next."""

    daily: datetime
    weekly: datetime
    monthly: datetime


class UsageStatus(BaseModel):
    """Read-only usage snapshot served to callers."""

    usage: UsageRecord
    limit_exceeded: bool = False
    exceeded_period: Optional[UsagePeriod] = None
    next_reset: NextReset


class ContactInfo(BaseModel):
    """Where to ask for a higher limit."""

    message: str
    contact_url: str
    prefilled_subject: str
