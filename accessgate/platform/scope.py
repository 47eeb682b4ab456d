"""
Tenant and partner scope enforcement.

CRITICAL SECURITY REQUIREMENTS:
- A non-super-admin request ALWAYS carries a RestrictedTo filter; an
  Unrestricted filter can only be built for a super admin actor
- Cross-partner tenant lookups answer NotFound, never Forbidden, so other
  partners' tenant ids are not disclosed
- Tenant switching via X-Tenant-Id / ?tenant_id= is honored for super admins
  only and is silently ignored for everyone else
- Every super admin cross-scope access is paired with a scope.override audit entry

Usage:
    scope = enforce_tenant_scope(ctx)
    leads = apply_scope(db.query(Lead), Lead, scope).all()
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Query, Session

from accessgate.models.partner import Partner
from accessgate.models.tenant import Tenant
from accessgate.platform.actor import Actor
from accessgate.platform.audit import AuditAction, AuditRecorder
from accessgate.platform.errors import NotFoundError, PermissionDeniedError
from accessgate.platform.request_context import RequestContext

logger = logging.getLogger(__name__)

SCOPE_COLUMNS = frozenset({"tenant_id", "partner_id"})


@dataclass(frozen=True)
class Unrestricted:
    """No automatic restriction. Only a super admin actor can hold one."""
    granted_to: Actor

    def __post_init__(self):
        if not self.granted_to.is_super_admin:
            raise ValueError("Unrestricted scope requires a super admin actor")


@dataclass(frozen=True)
class RestrictedTo:
    """Restrict every downstream query to column == value."""
    column: str
    value: str

    def __post_init__(self):
        if self.column not in SCOPE_COLUMNS:
            raise ValueError(f"Unsupported scope column: {self.column}")
        if not self.value:
            raise ValueError("RestrictedTo requires a non-empty value")

    def as_dict(self) -> dict[str, str]:
        return {self.column: self.value}


ScopeFilter = Union[Unrestricted, RestrictedTo]


def _audit_override(
    db: Session,
    ctx: RequestContext,
    resource_type: str,
    resource_id: str,
    reason: str,
) -> None:
    AuditRecorder(db).record(
        actor_id=ctx.user_id,
        tenant_id=ctx.tenant_id,
        partner_id=ctx.partner_id,
        action=AuditAction.SCOPE_OVERRIDE,
        resource_type=resource_type,
        resource_id=resource_id,
        change_details={"reason": reason},
        request_metadata={"correlation_id": ctx.correlation_id},
    )


def enforce_tenant_scope(ctx: RequestContext) -> ScopeFilter:
    """
    Scope filter for tenant-owned data.

    Super admins are unrestricted unless they explicitly switched tenant.

    Raises:
        PermissionDeniedError: non-super-admin without a tenant context
    """
    if ctx.is_super_admin:
        if ctx.tenant_override and ctx.tenant_id:
            return RestrictedTo("tenant_id", ctx.tenant_id)
        return Unrestricted(granted_to=ctx.actor)

    if not ctx.tenant_id:
        logger.warning(
            "Tenant scope missing",
            extra={"user_id": ctx.user_id, "correlation_id": ctx.correlation_id},
        )
        raise PermissionDeniedError("Tenant context required")
    return RestrictedTo("tenant_id", ctx.tenant_id)


def enforce_partner_scope(ctx: RequestContext) -> ScopeFilter:
    """Scope filter for partner-owned data."""
    if ctx.is_super_admin:
        return Unrestricted(granted_to=ctx.actor)

    if not ctx.partner_id:
        logger.warning(
            "Partner scope missing",
            extra={"user_id": ctx.user_id, "correlation_id": ctx.correlation_id},
        )
        raise PermissionDeniedError("Partner context required")
    return RestrictedTo("partner_id", ctx.partner_id)


def validate_tenant_ownership(db: Session, ctx: RequestContext, tenant_id: str) -> Tenant:
    """
    Resolve a target tenant the actor may act on.

    - Super admin: any existing tenant (audited)
    - Partner actor: tenants of their partner; anything else is NotFound
    - Tenant actor: only their own tenant; anything else is Forbidden

    Raises:
        NotFoundError: tenant absent, or hidden from a partner actor
        PermissionDeniedError: tenant actor targeting another tenant
    """
    if ctx.is_super_admin:
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if tenant is None:
            raise NotFoundError("Tenant not found")
        logger.debug(
            "Super admin tenant access",
            extra={"user_id": ctx.user_id, "tenant_id": tenant.id},
        )
        _audit_override(db, ctx, "tenant", tenant.id, "validate_tenant_ownership")
        return tenant

    partner_id = ctx.actor.partner_id
    if partner_id:
        tenant = (
            db.query(Tenant)
            .filter(Tenant.id == tenant_id, Tenant.partner_id == partner_id)
            .first()
        )
        if tenant is None:
            logger.warning(
                "Partner tenant lookup denied",
                extra={"user_id": ctx.user_id, "partner_id": partner_id, "target_tenant_id": tenant_id},
            )
            raise NotFoundError("Tenant not found")
        return tenant

    own_tenant_id = ctx.actor.tenant_id
    if own_tenant_id is None:
        raise PermissionDeniedError("Tenant context required")
    if own_tenant_id != tenant_id:
        logger.warning(
            "Cross-tenant access denied",
            extra={"user_id": ctx.user_id, "tenant_id": own_tenant_id, "target_tenant_id": tenant_id},
        )
        raise PermissionDeniedError("Access denied to this tenant")

    tenant = db.query(Tenant).filter(Tenant.id == own_tenant_id).first()
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def validate_partner_access(db: Session, ctx: RequestContext, partner_id: str) -> Partner:
    """
    Resolve a target partner the actor may act on.

    Raises:
        NotFoundError: partner absent (super admin path)
        PermissionDeniedError: actor is not a member of that partner
    """
    if ctx.is_super_admin:
        partner = db.query(Partner).filter(Partner.id == partner_id).first()
        if partner is None:
            raise NotFoundError("Partner not found")
        _audit_override(db, ctx, "partner", partner.id, "validate_partner_access")
        return partner

    own_partner_id = ctx.actor.partner_id
    if own_partner_id is None:
        raise PermissionDeniedError("Partner context required")
    if own_partner_id != partner_id:
        logger.warning(
            "Cross-partner access denied",
            extra={"user_id": ctx.user_id, "partner_id": own_partner_id, "target_partner_id": partner_id},
        )
        raise PermissionDeniedError("Access denied to this partner")

    partner = db.query(Partner).filter(Partner.id == own_partner_id).first()
    if partner is None:
        raise NotFoundError("Partner not found")
    return partner


def set_tenant_context(
    db: Session,
    ctx: RequestContext,
    header_value: Optional[str] = None,
    query_value: Optional[str] = None,
) -> RequestContext:
    """
    Apply a super admin tenant switch (header wins over query parameter).

    Returns the context unchanged when no tenant was requested, the actor is
    not a super admin, or the tenant does not exist.
    """
    requested = (header_value or query_value or "").strip()
    if not requested:
        return ctx

    if not ctx.is_super_admin:
        logger.info(
            "Tenant switch ignored for non-super-admin",
            extra={"user_id": ctx.user_id, "requested_tenant_id": requested, "correlation_id": ctx.correlation_id},
        )
        return ctx

    tenant = db.query(Tenant).filter(Tenant.id == requested).first()
    if tenant is None:
        logger.info(
            "Tenant switch target not found",
            extra={"user_id": ctx.user_id, "requested_tenant_id": requested},
        )
        return ctx

    switched = ctx.with_tenant_override(tenant.id, tenant.partner_id)
    _audit_override(db, switched, "tenant", tenant.id, "set_tenant_context")
    return switched


def apply_scope(query: Query, model, scope: ScopeFilter) -> Query:
    """
    Merge a scope filter into a SQLAlchemy query.

    Raises:
        ValueError: model has no column for a RestrictedTo filter
    """
    if isinstance(scope, Unrestricted):
        return query
    if isinstance(scope, RestrictedTo):
        column = getattr(model, scope.column, None)
        if column is None:
            raise ValueError(f"{model.__name__} has no {scope.column} column")
        return query.filter(column == scope.value)
    raise TypeError(f"Unknown scope filter: {scope!r}")
