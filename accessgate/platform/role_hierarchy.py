"""
Role hierarchy resolution for the three-tier trust model.

CRITICAL SECURITY REQUIREMENTS:
- Role checks MUST be enforced server-side for every protected operation
- The super admin bypass is evaluated FIRST in every check
- Precedence is declared ONCE (the *_RULES tuples below) and shared by all gates

Tenant role precedence (first rule with an opinion wins):
    1. super_admin_bypass      - platform operator satisfies everything
    2. partner_manages_tenant  - partner admin/manager satisfies tenant requirements
                                 for tenants belonging to their partner
    3. tenant_membership       - own tenant role on the scale user < manager < admin

Usage:
    facts = resolve_role_facts(ctx.actor, tenant_id=ctx.tenant_id,
                               tenant_partner_id=ctx.tenant_partner_id)
    if facts.has_tenant_role_at_least(TenantRole.MANAGER):
        ...

    require_tenant_admin(ctx)            # raises PermissionDeniedError
    require_permission(ctx, "leads:write")
"""

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from accessgate.constants.roles import (
    PartnerRole,
    TenantRole,
    RoleName,
    TENANT_MANAGING_PARTNER_ROLES,
    WILDCARD_PERMISSION,
    resource_admin_permission,
)
from accessgate.platform.actor import Actor
from accessgate.platform.errors import PermissionDeniedError
from accessgate.platform.request_context import RequestContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleRule:
    """
    A named precedence rule.

    decide() returns True/False to settle the query, or None to fall through
    to the next rule.
    """
    name: str
    decide: Callable[["RoleFacts", object], Optional[bool]]


# ---------------------------------------------------------------------------
# Rule predicates
# ---------------------------------------------------------------------------

def _super_admin_bypass(facts: "RoleFacts", _required) -> Optional[bool]:
    return True if facts.actor.is_super_admin else None


def _partner_manages_tenant(facts: "RoleFacts", _required: TenantRole) -> Optional[bool]:
    membership = facts.actor.partner_membership
    if membership is None or membership.role not in TENANT_MANAGING_PARTNER_ROLES:
        return None
    # A tenant under evaluation must belong to the actor's partner
    if facts.tenant_id is not None and facts.tenant_partner_id != membership.partner_id:
        return None
    return True


def _tenant_membership(facts: "RoleFacts", required: TenantRole) -> Optional[bool]:
    membership = facts.actor.tenant_membership
    if membership is None:
        return False
    if facts.tenant_id is not None and membership.tenant_id != facts.tenant_id:
        return False
    return membership.role.at_least(required)


def _partner_membership(facts: "RoleFacts", required: PartnerRole) -> Optional[bool]:
    membership = facts.actor.partner_membership
    if membership is None:
        return False
    return membership.role.at_least(required)


def _admin_holds_all_permissions(facts: "RoleFacts", _code: str) -> Optional[bool]:
    partner = facts.actor.partner_membership
    tenant = facts.actor.tenant_membership
    if partner is not None and partner.role == PartnerRole.ADMIN:
        return True
    if tenant is not None and (tenant.role == TenantRole.ADMIN or tenant.is_owner):
        return True
    return None


def _explicit_permission(facts: "RoleFacts", code: str) -> Optional[bool]:
    membership = facts.actor.tenant_membership
    granted = set(membership.permissions) if membership else set()
    return (
        code in granted
        or resource_admin_permission(code) in granted
        or WILDCARD_PERMISSION in granted
    )


TENANT_ROLE_RULES: tuple[RoleRule, ...] = (
    RoleRule("super_admin_bypass", _super_admin_bypass),
    RoleRule("partner_manages_tenant", _partner_manages_tenant),
    RoleRule("tenant_membership", _tenant_membership),
)

PARTNER_ROLE_RULES: tuple[RoleRule, ...] = (
    RoleRule("super_admin_bypass", _super_admin_bypass),
    RoleRule("partner_membership", _partner_membership),
)

PERMISSION_RULES: tuple[RoleRule, ...] = (
    RoleRule("super_admin_bypass", _super_admin_bypass),
    RoleRule("admin_holds_all_permissions", _admin_holds_all_permissions),
    RoleRule("explicit_permission", _explicit_permission),
)


def _evaluate(rules: tuple[RoleRule, ...], facts: "RoleFacts", required) -> tuple[bool, Optional[str]]:
    """Run rules in order. Returns (decision, name of the deciding rule)."""
    for rule in rules:
        decision = rule.decide(facts, required)
        if decision is not None:
            return decision, rule.name
    return False, None


# ---------------------------------------------------------------------------
# RoleFacts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoleFacts:
    """
    Pure, side-effect-free role queries over an already-resolved Actor.

    tenant_id / tenant_partner_id describe the tenant the question is asked
    about (normally the request's effective tenant).
    """
    actor: Actor
    tenant_id: Optional[str] = None
    tenant_partner_id: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.actor.is_super_admin

    def has_partner_role_at_least(self, level: PartnerRole) -> bool:
        return _evaluate(PARTNER_ROLE_RULES, self, level)[0]

    def has_tenant_role_at_least(self, level: TenantRole) -> bool:
        return _evaluate(TENANT_ROLE_RULES, self, level)[0]

    def has_permission(self, code: str) -> bool:
        return _evaluate(PERMISSION_RULES, self, code)[0]

    def deciding_tenant_rule(self, level: TenantRole) -> Optional[str]:
        """Name of the rule that settled a tenant role query (for audit/debug)."""
        return _evaluate(TENANT_ROLE_RULES, self, level)[1]

    @property
    def role_names(self) -> FrozenSet[RoleName]:
        names = set()
        if self.actor.is_super_admin:
            names.add(RoleName.SUPER_ADMIN)
        if self.actor.partner_membership:
            names.add(RoleName.for_partner(self.actor.partner_membership.role))
        if self.actor.tenant_membership:
            names.add(RoleName.for_tenant(self.actor.tenant_membership.role))
        return frozenset(names)


def resolve_role_facts(
    actor: Actor,
    tenant_id: Optional[str] = None,
    tenant_partner_id: Optional[str] = None,
) -> RoleFacts:
    """Compute role facts for an actor, optionally about a specific tenant."""
    return RoleFacts(actor=actor, tenant_id=tenant_id, tenant_partner_id=tenant_partner_id)


def role_facts_for(ctx: RequestContext) -> RoleFacts:
    """Role facts about the request's effective tenant."""
    return resolve_role_facts(
        ctx.actor,
        tenant_id=ctx.tenant_id,
        tenant_partner_id=ctx.tenant_partner_id,
    )


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------

def _deny(ctx: RequestContext, required: str, message: str) -> PermissionDeniedError:
    logger.warning(
        "Role check failed",
        extra={
            "user_id": ctx.user_id,
            "tenant_id": ctx.tenant_id,
            "partner_id": ctx.partner_id,
            "required": required,
            "correlation_id": ctx.correlation_id,
        }
    )
    return PermissionDeniedError(message=message, details={"required": required})


def require_super_admin(ctx: RequestContext) -> None:
    if not ctx.is_super_admin:
        raise _deny(ctx, RoleName.SUPER_ADMIN.value, "Super Admin access required")


def require_partner_access(ctx: RequestContext) -> None:
    """Any partner role."""
    if not role_facts_for(ctx).has_partner_role_at_least(PartnerRole.VIEWER):
        raise _deny(ctx, RoleName.PARTNER_VIEWER.value, "Partner access required")


def require_partner_admin(ctx: RequestContext) -> None:
    """Partner admin or manager."""
    if not role_facts_for(ctx).has_partner_role_at_least(PartnerRole.MANAGER):
        raise _deny(ctx, RoleName.PARTNER_MANAGER.value, "Partner Admin access required")


def require_tenant_access(ctx: RequestContext) -> None:
    """Any tenant role (or a partner managing the tenant)."""
    if not role_facts_for(ctx).has_tenant_role_at_least(TenantRole.USER):
        raise _deny(ctx, RoleName.TENANT_USER.value, "Tenant access required")


def require_tenant_manager(ctx: RequestContext) -> None:
    if not role_facts_for(ctx).has_tenant_role_at_least(TenantRole.MANAGER):
        raise _deny(ctx, RoleName.TENANT_MANAGER.value, "Tenant Manager access required")


def require_tenant_admin(ctx: RequestContext) -> None:
    if not role_facts_for(ctx).has_tenant_role_at_least(TenantRole.ADMIN):
        raise _deny(ctx, RoleName.TENANT_ADMIN.value, "Tenant Admin access required")


def require_permission(ctx: RequestContext, *codes: str) -> None:
    """Require ANY of the given permission codes."""
    if not codes:
        raise ValueError("require_permission needs at least one permission code")
    facts = role_facts_for(ctx)
    if not any(facts.has_permission(code) for code in codes):
        joined = " or ".join(codes)
        raise _deny(ctx, joined, f"Missing required permission: {joined}")


def require_roles(ctx: RequestContext, *allowed: RoleName) -> None:
    """Require ANY of the given flattened role names. Super admins always pass."""
    if not allowed:
        raise ValueError("require_roles needs at least one role")
    if ctx.is_super_admin:
        return
    if not role_facts_for(ctx).role_names.intersection(allowed):
        raise _deny(ctx, ",".join(r.value for r in allowed), "Insufficient role privileges")
