"""
Entitlement value objects.

Provides:
- ResolvedSubscription: snapshot of the tenant's entitling subscription
- FeatureGrant: a feature the plan includes, with its limits map
- UsageCheck: outcome of a usage limit check (remaining quota)
- UsageStats: current-period usage of one feature
- is_unlimited(): the single definition of "no limit"

All value objects are frozen - safe to share across a request's gates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional

from accessgate.constants.roles import SubscriptionStatus

UNLIMITED = -1


def is_unlimited(limit: Any) -> bool:
    """A limit of None or -1 means unlimited."""
    return limit is None or limit == UNLIMITED


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def frozen_limits(limits: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(limits or {}))


@dataclass(frozen=True)
class ResolvedSubscription:
    """
    Snapshot of a subscription, taken once per request.

    Period bounds are half-open: [current_period_start, current_period_end).
    """
    id: str
    tenant_id: str
    plan_id: str
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    plan_code: Optional[str] = None

    @classmethod
    def from_model(cls, subscription, plan_code: Optional[str] = None) -> "ResolvedSubscription":
        return cls(
            id=subscription.id,
            tenant_id=subscription.tenant_id,
            plan_id=subscription.plan_id,
            status=SubscriptionStatus(subscription.status),
            current_period_start=as_utc(subscription.current_period_start),
            current_period_end=as_utc(subscription.current_period_end),
            plan_code=plan_code,
        )

    def period_contains(self, now: datetime) -> bool:
        return self.current_period_start <= now < self.current_period_end


@dataclass(frozen=True)
class FeatureGrant:
    """A feature included in the actor's plan and the quotas attached to it."""
    feature_code: str
    limits: Mapping[str, Any] = field(default_factory=lambda: frozen_limits({}))

    def get_limit(self, limit_key: str) -> Optional[int]:
        return self.limits.get(limit_key)


@dataclass(frozen=True)
class UsageCheck:
    """
    Outcome of an allowed usage check.

    remaining is None when the limit is unlimited or the actor bypasses limits.
    """
    feature_code: str
    limit_key: str
    current_usage: int = 0
    max_limit: Optional[int] = None
    remaining: Optional[int] = None

    @property
    def is_unlimited(self) -> bool:
        return self.remaining is None


@dataclass(frozen=True)
class UsageStats:
    """Current-period usage of a feature for a subscription."""
    feature_code: str
    usage_count: int
    period_start: datetime
    period_end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_code": self.feature_code,
            "usage_count": self.usage_count,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
        }
