"""Usage quota and plan resolution."""

from gokigen.quota.entitlements import (
    EntitlementProvider,
    EntitlementRecord,
    EntitlementService,
    resolve_plan,
)
from gokigen.quota.manager import Plan, QuotaManager, day_key, month_key

__all__ = [
    "Plan",
    "QuotaManager",
    "day_key",
    "month_key",
    "EntitlementProvider",
    "EntitlementRecord",
    "EntitlementService",
    "resolve_plan",
]
