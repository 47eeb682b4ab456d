"""
Feature gate: plan-based feature access and subscription status checks.

Order of checks in require_feature():
1. Super admin -> allowed, no limits attached
2. Global Feature.is_enabled kill switch -> "currently unavailable"
3. Plan includes the feature (precomputed plan_features) -> "not included"
4. Attach the feature's limits to the returned RequestContext

Messages are user-facing and distinguish each failure so the UI can show
the right upgrade or renewal prompt.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.orm import Session

from accessgate.config.access_policy import get_access_policy
from accessgate.constants.roles import FeatureCode
from accessgate.entitlements.errors import EntitlementDeniedError
from accessgate.entitlements.models import FeatureGrant
from accessgate.models.plan import Feature
from accessgate.platform.request_context import RequestContext

logger = logging.getLogger(__name__)


def is_feature_globally_enabled(db: Session, feature_code: str) -> bool:
    feature = db.query(Feature).filter(Feature.code == feature_code).first()
    return bool(feature and feature.is_enabled)


def require_feature(
    db: Session,
    ctx: RequestContext,
    feature_code: Union[FeatureCode, str],
) -> RequestContext:
    """
    Require that the actor's plan includes an enabled feature.

    Returns:
        New RequestContext with current_feature set to the feature's grant

    Raises:
        EntitlementDeniedError: feature disabled globally or not in the plan
    """
    if isinstance(feature_code, FeatureCode):
        feature_code = feature_code.value

    if ctx.is_super_admin:
        logger.debug(
            "Feature check bypassed for super admin",
            extra={"user_id": ctx.user_id, "feature": feature_code},
        )
        return ctx.with_feature(FeatureGrant(feature_code=feature_code))

    if not is_feature_globally_enabled(db, feature_code):
        logger.warning(
            "Feature globally unavailable",
            extra={"tenant_id": ctx.tenant_id, "user_id": ctx.user_id, "feature": feature_code},
        )
        raise EntitlementDeniedError(
            f"Feature '{feature_code}' is currently unavailable",
            reason="feature_unavailable",
            feature=feature_code,
        )

    if feature_code not in ctx.plan_features:
        logger.warning(
            "Feature not in plan",
            extra={
                "tenant_id": ctx.tenant_id,
                "user_id": ctx.user_id,
                "feature": feature_code,
                "plan_code": ctx.subscription.plan_code if ctx.subscription else None,
            }
        )
        raise EntitlementDeniedError(
            f"Your subscription does not include access to '{feature_code}'",
            reason="feature_not_in_plan",
            feature=feature_code,
        )

    return ctx.with_feature(
        FeatureGrant(feature_code=feature_code, limits=ctx.plan_features[feature_code])
    )


def require_active_subscription(ctx: RequestContext, now: Optional[datetime] = None) -> None:
    """
    Require a trial/active subscription whose period has not ended.

    Raises:
        EntitlementDeniedError: no subscription, wrong status, or period over
    """
    if ctx.is_super_admin:
        return

    subscription = ctx.subscription
    if subscription is None:
        raise EntitlementDeniedError(
            "No active subscription. Please subscribe to a plan.",
            reason="no_subscription",
        )

    if subscription.status not in get_access_policy().entitling_statuses:
        raise EntitlementDeniedError(
            f"Your subscription is {subscription.status.value}. Please renew to continue.",
            reason="subscription_inactive",
            subscription_status=subscription.status.value,
        )

    now = now or datetime.now(timezone.utc)
    if now >= subscription.current_period_end:
        logger.info(
            "Subscription period ended",
            extra={"tenant_id": ctx.tenant_id, "subscription_id": subscription.id},
        )
        raise EntitlementDeniedError(
            "Your subscription has expired. Please renew to continue.",
            reason="subscription_expired",
            subscription_status=subscription.status.value,
        )
