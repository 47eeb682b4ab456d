"""
Entitlement context resolution.

Runs ONCE per request, after the actor and effective tenant are known:
- Subscription: the newest subscription in an entitling status (trial/active)
- Plan features: feature_code -> limits for plan features whose plan-feature
  flag AND global feature flag are both enabled

Gates read this snapshot from the RequestContext and never re-query it.
No cross-request caching: a plan change applies on the very next request.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from accessgate.config.access_policy import get_access_policy
from accessgate.entitlements.models import ResolvedSubscription, frozen_limits
from accessgate.models.plan import Feature, Plan, PlanFeature
from accessgate.models.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantEntitlements:
    """Subscription snapshot and enabled plan features for one tenant."""
    subscription: Optional[ResolvedSubscription] = None
    plan_features: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def includes(self, feature_code: str) -> bool:
        return feature_code in self.plan_features


def load_current_subscription(db: Session, tenant_id: str) -> Optional[Subscription]:
    """Newest subscription of the tenant whose status entitles plan features."""
    statuses = [s.value for s in get_access_policy().entitling_statuses]
    return (
        db.query(Subscription)
        .filter(
            Subscription.tenant_id == tenant_id,
            Subscription.status.in_(statuses),
        )
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )


def load_plan_features(db: Session, plan_id: str) -> dict[str, Mapping[str, Any]]:
    rows = (
        db.query(Feature.code, PlanFeature.limits)
        .join(PlanFeature, PlanFeature.feature_id == Feature.id)
        .filter(
            PlanFeature.plan_id == plan_id,
            PlanFeature.is_enabled.is_(True),
            Feature.is_enabled.is_(True),
        )
        .all()
    )
    return {code: frozen_limits(limits) for code, limits in rows}


def resolve_entitlements(db: Session, tenant_id: Optional[str]) -> TenantEntitlements:
    """
    Resolve the tenant's current subscription and plan features.

    Returns an empty TenantEntitlements when there is no tenant or no
    entitling subscription.
    """
    if not tenant_id:
        return TenantEntitlements()

    subscription = load_current_subscription(db, tenant_id)
    if subscription is None:
        logger.info("No entitling subscription", extra={"tenant_id": tenant_id})
        return TenantEntitlements()

    plan_code = db.query(Plan.code).filter(Plan.id == subscription.plan_id).scalar()
    features = load_plan_features(db, subscription.plan_id)

    logger.debug(
        "Entitlements resolved",
        extra={
            "tenant_id": tenant_id,
            "subscription_id": subscription.id,
            "plan_code": plan_code,
            "feature_count": len(features),
        }
    )
    return TenantEntitlements(
        subscription=ResolvedSubscription.from_model(subscription, plan_code=plan_code),
        plan_features=MappingProxyType(features),
    )
