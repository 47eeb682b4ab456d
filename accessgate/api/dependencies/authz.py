"""
Authorization dependencies for FastAPI routes.

Wires the engine's gates into FastAPI's dependency system in the fixed
order Role -> Scope -> Entitlement -> Usage. Each dependency returns the
(possibly enriched) RequestContext so handlers can read limits and quota.

Authentication is external: an upstream middleware must set
request.state.user_id (and optionally tenant_id / partner_id pinned by the
verified token) before these dependencies run.

Usage:
    @router.post("/leads")
    def create_lead(
        ctx: RequestContext = Depends(usage_limit_required("leads", "max_leads")),
        db: Session = Depends(get_db_session),
    ):
        lead = ...
        increment_usage(db, ctx, "leads")
"""

import logging
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from accessgate.config.access_policy import get_access_policy
from accessgate.constants.roles import RoleName
from accessgate.database.session import get_db_session
from accessgate.entitlements.context_resolver import resolve_entitlements
from accessgate.entitlements.feature_gate import require_active_subscription, require_feature
from accessgate.entitlements.usage_ledger import check_usage_limit
from accessgate.platform.actor import resolve_actor
from accessgate.platform.audit import AuditRecorder
from accessgate.platform.errors import AuthenticationError, get_correlation_id
from accessgate.platform.request_context import RequestContext
from accessgate.platform.role_hierarchy import (
    require_partner_access,
    require_partner_admin,
    require_permission,
    require_roles,
    require_super_admin,
    require_tenant_access,
    require_tenant_admin,
    require_tenant_manager,
)
from accessgate.platform.scope import (
    ScopeFilter,
    enforce_partner_scope,
    enforce_tenant_scope,
    set_tenant_context,
)

logger = logging.getLogger(__name__)


def get_request_context(
    request: Request,
    db: Session = Depends(get_db_session),
) -> RequestContext:
    """
    Build the request's RequestContext.

    Steps: resolve the Actor, apply a super admin tenant switch if one was
    requested, then resolve entitlements for the effective tenant.

    Raises:
        AuthenticationError: no authenticated user on the request
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationError()

    actor = resolve_actor(
        db,
        user_id,
        tenant_id=getattr(request.state, "tenant_id", None),
        partner_id=getattr(request.state, "partner_id", None),
    )
    correlation_id = get_correlation_id(request)
    request.state.correlation_id = correlation_id
    ctx = RequestContext.for_actor(actor, correlation_id=correlation_id)

    policy = get_access_policy()
    ctx = set_tenant_context(
        db,
        ctx,
        header_value=request.headers.get(policy.tenant_switch_header),
        query_value=request.query_params.get(policy.tenant_switch_query_param),
    )

    entitlements = resolve_entitlements(db, ctx.tenant_id)
    return ctx.with_entitlements(entitlements.subscription, entitlements.plan_features)


def role_gate(gate: Callable[[RequestContext], None]) -> Callable:
    """Wrap a role gate (ctx -> None, raises on denial) as a dependency."""

    def dependency(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        gate(ctx)
        return ctx

    dependency.__name__ = f"{gate.__name__}_dependency"
    return dependency


super_admin_required = role_gate(require_super_admin)
partner_access_required = role_gate(require_partner_access)
partner_admin_required = role_gate(require_partner_admin)
tenant_access_required = role_gate(require_tenant_access)
tenant_manager_required = role_gate(require_tenant_manager)
tenant_admin_required = role_gate(require_tenant_admin)
active_subscription_required = role_gate(require_active_subscription)


def permission_required(*codes: str) -> Callable:
    """Dependency requiring ANY of the permission codes."""
    return role_gate(lambda ctx: require_permission(ctx, *codes))


def roles_required(*roles: RoleName) -> Callable:
    """Dependency requiring ANY of the flattened role names."""
    return role_gate(lambda ctx: require_roles(ctx, *roles))


def tenant_scope(ctx: RequestContext = Depends(get_request_context)) -> ScopeFilter:
    return enforce_tenant_scope(ctx)


def partner_scope(ctx: RequestContext = Depends(get_request_context)) -> ScopeFilter:
    return enforce_partner_scope(ctx)


def feature_required(feature_code: str) -> Callable:
    """Dependency requiring a plan feature; returns ctx with the feature's limits."""

    def dependency(
        ctx: RequestContext = Depends(get_request_context),
        db: Session = Depends(get_db_session),
    ) -> RequestContext:
        return require_feature(db, ctx, feature_code)

    return dependency


def usage_limit_required(feature_code: str, limit_key: str) -> Callable:
    """Feature gate followed by the usage check; returns ctx with remaining quota."""
    feature_dependency = feature_required(feature_code)

    def dependency(
        ctx: RequestContext = Depends(feature_dependency),
        db: Session = Depends(get_db_session),
    ) -> RequestContext:
        return check_usage_limit(db, ctx, feature_code, limit_key)

    return dependency


def get_audit_recorder(db: Session = Depends(get_db_session)) -> AuditRecorder:
    return AuditRecorder(db)
