"""
Plan resolution from store entitlements.

The purchase store reports owned products. Revoked or expired records are
ignored; of what remains, a lifetime purchase outranks a subscription,
which outranks nothing (free).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from loguru import logger

from gokigen.quota.manager import Plan, QuotaManager
from gokigen.utils.helpers import as_aware, utcnow


@dataclass(frozen=True)
class EntitlementRecord:
    """One verified transaction for an owned product."""

    product_id: str
    expires_at: datetime | None = None
    revoked_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        if self.revoked_at is not None:
            return False
        if self.expires_at is not None and as_aware(self.expires_at) <= as_aware(now):
            return False
        return True


class EntitlementProvider(ABC):
    """Abstract purchase-store collaborator."""

    @abstractmethod
    async def current_entitlements(self) -> list[EntitlementRecord]:
        """Return the verified entitlements currently owned by the user."""
        pass


def resolve_plan(
    records: Iterable[EntitlementRecord],
    now: datetime,
    subscription_ids: Iterable[str],
    lifetime_ids: Iterable[str],
) -> Plan:
    """Resolve exactly one plan. Priority: lifetime > subscription > free."""
    owned = {r.product_id for r in records if r.is_active(now)}
    if owned & set(lifetime_ids):
        return Plan.LIFETIME
    if owned & set(subscription_ids):
        return Plan.SUBSCRIPTION
    return Plan.FREE


class EntitlementService:
    """Keeps the quota manager's plan in step with the purchase store."""

    def __init__(
        self,
        provider: EntitlementProvider,
        quota: QuotaManager,
        subscription_ids: Iterable[str],
        lifetime_ids: Iterable[str],
    ):
        self.provider = provider
        self.quota = quota
        self.subscription_ids = list(subscription_ids)
        self.lifetime_ids = list(lifetime_ids)
        self.last_error: str | None = None

    async def refresh(self, now: datetime | None = None) -> Plan:
        """
        Re-read entitlements and update the plan.

        On failure the current plan is kept and the error is recorded in
        last_error; the exception is not propagated.
        """
        try:
            records = await self.provider.current_entitlements()
        except Exception as e:
            logger.warning("Entitlement refresh failed, keeping plan {}: {}", self.quota.plan.value, e)
            self.last_error = str(e)
            return self.quota.plan

        plan = resolve_plan(records, now or utcnow(), self.subscription_ids, self.lifetime_ids)
        self.quota.set_plan(plan)
        self.last_error = None
        return plan
