"""
Structured error classes for entitlement enforcement.

Both errors are 403 PermissionDeniedError subclasses so generic handlers
treat them as authorization failures, while callers that want upgrade
prompts can read the machine-readable fields from details.
"""

from typing import Optional

from accessgate.platform.errors import PermissionDeniedError


class EntitlementDeniedError(PermissionDeniedError):
    """
    Feature, plan or subscription check failed.

    reason is a stable code: feature_unavailable, feature_not_in_plan,
    no_subscription, subscription_inactive, subscription_expired.
    """

    error_code = "ENTITLEMENT_DENIED"

    def __init__(
        self,
        message: str,
        reason: str,
        feature: Optional[str] = None,
        subscription_status: Optional[str] = None,
    ):
        self.reason = reason
        self.feature = feature
        self.subscription_status = subscription_status
        details = {"reason": reason}
        if feature:
            details["feature"] = feature
        if subscription_status:
            details["subscription_status"] = subscription_status
        super().__init__(message=message, details=details)


class UsageLimitExceededError(PermissionDeniedError):
    """Usage in the current billing period reached the plan limit."""

    error_code = "USAGE_LIMIT_EXCEEDED"

    def __init__(
        self,
        feature: str,
        limit_key: str,
        limit: int,
        current_usage: int,
    ):
        self.feature = feature
        self.limit_key = limit_key
        self.limit = limit
        self.current_usage = current_usage
        super().__init__(
            message=(
                f"You have reached your {describe_limit(limit_key)} limit ({limit}). "
                "Please upgrade your plan for more."
            ),
            details={
                "feature": feature,
                "limit_key": limit_key,
                "limit": limit,
                "current_usage": current_usage,
            },
        )


def describe_limit(limit_key: str) -> str:
    """
    Human-readable limit name.

    "max_leads" -> "leads", "max_campaigns_month" -> "campaigns month"
    """
    name = limit_key[len("max_"):] if limit_key.startswith("max_") else limit_key
    return name.replace("_", " ")
