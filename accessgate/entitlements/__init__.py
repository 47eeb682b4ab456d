"""
Subscription entitlements: feature gating and usage accounting.

- context_resolver: once-per-request subscription and plan feature snapshot
- feature_gate: require_feature / require_active_subscription
- usage_ledger: check_usage_limit / increment_usage / get_usage_stats

Only value objects and errors are re-exported here; import the gate
modules directly (they depend on accessgate.platform).
"""

from accessgate.entitlements.models import (
    UNLIMITED,
    is_unlimited,
    ResolvedSubscription,
    FeatureGrant,
    UsageCheck,
    UsageStats,
)
from accessgate.entitlements.errors import (
    EntitlementDeniedError,
    UsageLimitExceededError,
)

__all__ = [
    "UNLIMITED",
    "is_unlimited",
    "ResolvedSubscription",
    "FeatureGrant",
    "UsageCheck",
    "UsageStats",
    "EntitlementDeniedError",
    "UsageLimitExceededError",
]
