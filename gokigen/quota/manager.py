"""
Metered allowance shared by the AI-backed features.

Empathy generation and reformulation draw from one "rewrite" allowance:
- free: a daily counter with a small limit
- lifetime: a monthly counter with a larger limit
- subscription: unlimited, counters are never touched

Period keys are formatted in one fixed reference timezone with a
locale-independent format, so changing device settings mid-day can neither
skip nor repeat a reset.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from loguru import logger

from gokigen.storage.kv import KeyValueStore, PeriodCounter
from gokigen.utils.helpers import as_aware, utcnow

DAY_COUNTER = "quota.rewrite.day"
MONTH_COUNTER = "quota.rewrite.month"


class Plan(str, Enum):
    """Subscription tier resolved from entitlements."""

    FREE = "free"
    SUBSCRIPTION = "subscription"
    LIFETIME = "lifetime"


def resolve_timezone(name: str | None) -> tzinfo:
    """Resolve an IANA zone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name or "UTC")
    except (KeyError, ValueError) as e:
        logger.warning("Unknown timezone {!r}, using UTC: {}", name, e)
        return ZoneInfo("UTC")


def day_key(now: datetime, tz: tzinfo) -> str:
    """YYYY-MM-DD for now in the reference timezone."""
    local = as_aware(now).astimezone(tz)
    return f"{local.year:04d}-{local.month:02d}-{local.day:02d}"


def month_key(now: datetime, tz: tzinfo) -> str:
    """YYYY-MM for now in the reference timezone."""
    local = as_aware(now).astimezone(tz)
    return f"{local.year:04d}-{local.month:02d}"


class QuotaManager:
    """Tracks and enforces the rewrite allowance for the current plan."""

    UNLIMITED_TEXT = "無制限"

    def __init__(
        self,
        store: KeyValueStore,
        free_daily_limit: int = 10,
        lifetime_monthly_limit: int = 200,
        timezone: str | tzinfo | None = "UTC",
        plan: Plan = Plan.FREE,
    ):
        self.free_daily_limit = free_daily_limit
        self.lifetime_monthly_limit = lifetime_monthly_limit
        self.tz = timezone if isinstance(timezone, tzinfo) else resolve_timezone(timezone)
        self._plan = plan
        self._day = PeriodCounter(store, DAY_COUNTER)
        self._month = PeriodCounter(store, MONTH_COUNTER)

    @property
    def plan(self) -> Plan:
        return self._plan

    def set_plan(self, plan: Plan) -> None:
        if plan != self._plan:
            logger.info("Plan changed: {} -> {}", self._plan.value, plan.value)
            self._plan = plan

    def used(self, now: datetime | None = None) -> int:
        """Usage in the plan's current period (0 for subscription)."""
        now = now or utcnow()
        if self._plan == Plan.FREE:
            return self._day.value(day_key(now, self.tz))
        if self._plan == Plan.LIFETIME:
            return self._month.value(month_key(now, self.tz))
        return 0

    def remaining(self, now: datetime | None = None) -> int | None:
        """Remaining uses in the current period, or None when unlimited."""
        if self._plan == Plan.SUBSCRIPTION:
            return None
        limit = self.free_daily_limit if self._plan == Plan.FREE else self.lifetime_monthly_limit
        return max(0, limit - self.used(now))

    def can_consume(self, now: datetime | None = None) -> bool:
        remaining = self.remaining(now)
        return remaining is None or remaining > 0

    def consume(self, now: datetime | None = None) -> bool:
        """
        Record one performed AI call.

        Call exactly once per remote call actually made, never speculatively.

        Returns:
            False if the allowance was already exhausted (nothing recorded).
        """
        now = now or utcnow()
        if not self.can_consume(now):
            logger.debug("consume() refused: allowance exhausted for plan {}", self._plan.value)
            return False
        if self._plan == Plan.FREE:
            self._day.increment(day_key(now, self.tz))
        elif self._plan == Plan.LIFETIME:
            self._month.increment(month_key(now, self.tz))
        return True

    def remaining_text(self, now: datetime | None = None) -> str:
        """Human-readable remaining allowance."""
        remaining = self.remaining(now)
        if remaining is None:
            return self.UNLIMITED_TEXT
        if self._plan == Plan.FREE:
            return f"本日あと{remaining}回"
        return f"今月あと{remaining}回"
