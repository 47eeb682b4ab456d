"""
Immutable per-request authorization context.

RequestContext is threaded through every gate. Gates never mutate it: a
gate that learns something (entitlements, the current feature's limits,
remaining quota, a super admin tenant switch) returns a NEW context built
with dataclasses.replace(). Each gate can therefore be tested in isolation
and the order of enrichment is explicit at the call site.

Typical flow:
    ctx = RequestContext.for_actor(actor)
    ctx = ctx.with_entitlements(subscription, plan_features)
    ctx = require_feature(db, ctx, "leads")
    ctx = check_usage_limit(db, ctx, "leads", "max_leads")
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional

from accessgate.entitlements.models import (
    FeatureGrant,
    ResolvedSubscription,
    UsageCheck,
    frozen_limits,
)
from accessgate.platform.actor import Actor
from accessgate.platform.errors import generate_correlation_id


@dataclass(frozen=True)
class RequestContext:
    """
    Authorization facts for one request.

    tenant_id / partner_id are the EFFECTIVE scope: the actor's own
    memberships, or a tenant explicitly selected by a super admin
    (tenant_override=True).
    """
    actor: Actor
    tenant_id: Optional[str] = None
    tenant_partner_id: Optional[str] = None
    partner_id: Optional[str] = None
    tenant_override: bool = False
    subscription: Optional[ResolvedSubscription] = None
    plan_features: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    current_feature: Optional[FeatureGrant] = None
    usage: Optional[UsageCheck] = None
    correlation_id: str = field(default_factory=generate_correlation_id)

    @classmethod
    def for_actor(cls, actor: Actor, correlation_id: Optional[str] = None) -> "RequestContext":
        """Initial context: scope taken from the actor's own memberships."""
        membership = actor.tenant_membership
        return cls(
            actor=actor,
            tenant_id=membership.tenant_id if membership else None,
            tenant_partner_id=membership.partner_id if membership else None,
            partner_id=actor.partner_id,
            correlation_id=correlation_id or generate_correlation_id(),
        )

    @property
    def is_super_admin(self) -> bool:
        return self.actor.is_super_admin

    @property
    def user_id(self) -> str:
        return self.actor.user_id

    def with_entitlements(
        self,
        subscription: Optional[ResolvedSubscription],
        plan_features: Mapping[str, Mapping[str, Any]],
    ) -> "RequestContext":
        frozen = MappingProxyType({
            code: frozen_limits(limits) for code, limits in plan_features.items()
        })
        return replace(self, subscription=subscription, plan_features=frozen)

    def with_tenant_override(self, tenant_id: str, tenant_partner_id: Optional[str]) -> "RequestContext":
        """Explicit super admin tenant switch. Entitlements must be re-resolved."""
        return replace(
            self,
            tenant_id=tenant_id,
            tenant_partner_id=tenant_partner_id,
            tenant_override=True,
            subscription=None,
            plan_features=MappingProxyType({}),
            current_feature=None,
            usage=None,
        )

    def with_feature(self, grant: FeatureGrant) -> "RequestContext":
        return replace(self, current_feature=grant)

    def with_usage(self, check: UsageCheck) -> "RequestContext":
        return replace(self, usage=check)

    def feature_limits(self, feature_code: str) -> Mapping[str, Any]:
        """Limits for a feature: the attached grant first, then the plan map."""
        if self.current_feature and self.current_feature.feature_code == feature_code:
            return self.current_feature.limits
        return self.plan_features.get(feature_code, MappingProxyType({}))
