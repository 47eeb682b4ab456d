"""
Tests for the Role Hierarchy Resolver and role gates.

Pure tests over in-memory Actors: no database involved.
"""

import pytest

from accessgate.constants.roles import PartnerRole, TenantRole, RoleName
from accessgate.platform.actor import Actor, PartnerMembership, TenantMembership
from accessgate.platform.errors import PermissionDeniedError
from accessgate.platform.request_context import RequestContext
from accessgate.platform.role_hierarchy import (
    TENANT_ROLE_RULES,
    resolve_role_facts,
    role_facts_for,
    require_partner_access,
    require_partner_admin,
    require_permission,
    require_roles,
    require_super_admin,
    require_tenant_access,
    require_tenant_admin,
    require_tenant_manager,
)


def tenant_actor(role=TenantRole.USER, permissions=(), is_owner=False, tenant_id="t1", partner_id=None):
    return Actor(
        user_id="u-tenant",
        tenant_membership=TenantMembership(
            tenant_id=tenant_id,
            role=role,
            partner_id=partner_id,
            permissions=tuple(permissions),
            is_owner=is_owner,
        ),
    )


def partner_actor(role=PartnerRole.ADMIN, partner_id="p1"):
    return Actor(
        user_id="u-partner",
        partner_membership=PartnerMembership(partner_id=partner_id, role=role),
    )


SUPER_ADMIN = Actor(user_id="u-root", is_super_admin=True)
NOBODY = Actor(user_id="u-nobody")


class TestRulePrecedence:
    """The tenant rules are declared once, in a fixed order."""

    def test_rule_order(self):
        assert [r.name for r in TENANT_ROLE_RULES] == [
            "super_admin_bypass",
            "partner_manages_tenant",
            "tenant_membership",
        ]

    def test_super_admin_decided_by_first_rule(self):
        facts = resolve_role_facts(SUPER_ADMIN, tenant_id="t9", tenant_partner_id="p9")
        assert facts.deciding_tenant_rule(TenantRole.ADMIN) == "super_admin_bypass"

    def test_partner_evaluated_before_own_tenant_role(self):
        actor = Actor(
            user_id="u-both",
            tenant_membership=TenantMembership(tenant_id="t1", role=TenantRole.USER, partner_id="p1"),
            partner_membership=PartnerMembership(partner_id="p1", role=PartnerRole.MANAGER),
        )
        facts = resolve_role_facts(actor, tenant_id="t1", tenant_partner_id="p1")
        assert facts.has_tenant_role_at_least(TenantRole.ADMIN)
        assert facts.deciding_tenant_rule(TenantRole.ADMIN) == "partner_manages_tenant"


class TestSuperAdmin:
    """Super admin satisfies every query."""

    @pytest.mark.parametrize("level", list(TenantRole))
    def test_tenant_roles(self, level):
        assert resolve_role_facts(SUPER_ADMIN).has_tenant_role_at_least(level)

    @pytest.mark.parametrize("level", list(PartnerRole))
    def test_partner_roles(self, level):
        assert resolve_role_facts(SUPER_ADMIN).has_partner_role_at_least(level)

    def test_any_permission(self):
        assert resolve_role_facts(SUPER_ADMIN).has_permission("billing:delete")

    def test_every_gate_passes(self):
        ctx = RequestContext.for_actor(SUPER_ADMIN)
        require_super_admin(ctx)
        require_partner_access(ctx)
        require_partner_admin(ctx)
        require_tenant_access(ctx)
        require_tenant_manager(ctx)
        require_tenant_admin(ctx)
        require_permission(ctx, "anything:write")
        require_roles(ctx, RoleName.TENANT_USER)


class TestPartnerManagesTenant:
    """Partner admin/manager inherit tenant admin for their own tenants."""

    @pytest.mark.parametrize("role", [PartnerRole.ADMIN, PartnerRole.MANAGER])
    def test_tenant_of_own_partner(self, role):
        facts = resolve_role_facts(partner_actor(role), tenant_id="t1", tenant_partner_id="p1")
        assert facts.has_tenant_role_at_least(TenantRole.ADMIN)

    def test_tenant_of_other_partner(self):
        facts = resolve_role_facts(partner_actor(), tenant_id="t2", tenant_partner_id="p2")
        assert not facts.has_tenant_role_at_least(TenantRole.USER)

    def test_direct_signup_tenant(self):
        facts = resolve_role_facts(partner_actor(), tenant_id="t3", tenant_partner_id=None)
        assert not facts.has_tenant_role_at_least(TenantRole.USER)

    def test_viewer_does_not_inherit(self):
        facts = resolve_role_facts(partner_actor(PartnerRole.VIEWER), tenant_id="t1", tenant_partner_id="p1")
        assert not facts.has_tenant_role_at_least(TenantRole.USER)

    def test_no_tenant_under_evaluation(self):
        facts = resolve_role_facts(partner_actor(PartnerRole.MANAGER))
        assert facts.has_tenant_role_at_least(TenantRole.ADMIN)


class TestTenantMembership:
    """Own tenant role compared on user < manager < admin."""

    @pytest.mark.parametrize("role,level,expected", [
        (TenantRole.USER, TenantRole.USER, True),
        (TenantRole.USER, TenantRole.MANAGER, False),
        (TenantRole.MANAGER, TenantRole.MANAGER, True),
        (TenantRole.MANAGER, TenantRole.ADMIN, False),
        (TenantRole.ADMIN, TenantRole.ADMIN, True),
        (TenantRole.ADMIN, TenantRole.USER, True),
    ])
    def test_scale(self, role, level, expected):
        facts = resolve_role_facts(tenant_actor(role), tenant_id="t1")
        assert facts.has_tenant_role_at_least(level) is expected

    def test_role_in_other_tenant_does_not_count(self):
        facts = resolve_role_facts(tenant_actor(TenantRole.ADMIN), tenant_id="t2")
        assert not facts.has_tenant_role_at_least(TenantRole.USER)

    def test_no_membership(self):
        assert not resolve_role_facts(NOBODY).has_tenant_role_at_least(TenantRole.USER)
        assert not resolve_role_facts(NOBODY).has_partner_role_at_least(PartnerRole.VIEWER)


class TestPermissions:
    """Admins hold everything; others need an explicit grant."""

    def test_tenant_admin_holds_all(self):
        assert resolve_role_facts(tenant_actor(TenantRole.ADMIN)).has_permission("leads:delete")

    def test_partner_admin_holds_all(self):
        assert resolve_role_facts(partner_actor(PartnerRole.ADMIN)).has_permission("leads:delete")

    def test_partner_manager_needs_grant(self):
        assert not resolve_role_facts(partner_actor(PartnerRole.MANAGER)).has_permission("leads:delete")

    def test_tenant_owner_holds_all(self):
        assert resolve_role_facts(tenant_actor(is_owner=True)).has_permission("leads:delete")

    def test_exact_match(self):
        facts = resolve_role_facts(tenant_actor(permissions=["leads:read"]))
        assert facts.has_permission("leads:read")
        assert not facts.has_permission("leads:write")

    def test_resource_admin_wildcard(self):
        facts = resolve_role_facts(tenant_actor(permissions=["leads:admin"]))
        assert facts.has_permission("leads:write")
        assert not facts.has_permission("campaigns:write")

    def test_global_wildcard(self):
        assert resolve_role_facts(tenant_actor(permissions=["*"])).has_permission("campaigns:send")


class TestGates:
    """Gates raise PermissionDeniedError naming the unmet requirement."""

    def test_require_super_admin(self):
        with pytest.raises(PermissionDeniedError, match="Super Admin access required"):
            require_super_admin(RequestContext.for_actor(tenant_actor(TenantRole.ADMIN)))

    def test_require_tenant_admin_denied(self):
        ctx = RequestContext.for_actor(tenant_actor(TenantRole.MANAGER))
        require_tenant_manager(ctx)
        with pytest.raises(PermissionDeniedError, match="Tenant Admin access required") as exc:
            require_tenant_admin(ctx)
        assert exc.value.http_status == 403
        assert exc.value.details == {"required": "tenant_admin"}

    def test_require_partner_admin(self):
        require_partner_admin(RequestContext.for_actor(partner_actor(PartnerRole.MANAGER)))
        with pytest.raises(PermissionDeniedError, match="Partner Admin access required"):
            require_partner_admin(RequestContext.for_actor(partner_actor(PartnerRole.VIEWER)))

    def test_require_partner_access_for_tenant_user(self):
        with pytest.raises(PermissionDeniedError, match="Partner access required"):
            require_partner_access(RequestContext.for_actor(tenant_actor()))

    def test_require_tenant_access_without_membership(self):
        with pytest.raises(PermissionDeniedError, match="Tenant access required"):
            require_tenant_access(RequestContext.for_actor(NOBODY))

    def test_require_permission_any_of(self):
        ctx = RequestContext.for_actor(tenant_actor(permissions=["leads:read"]))
        require_permission(ctx, "leads:write", "leads:read")
        with pytest.raises(PermissionDeniedError, match="Missing required permission: leads:write or leads:delete"):
            require_permission(ctx, "leads:write", "leads:delete")

    def test_require_permission_needs_codes(self):
        with pytest.raises(ValueError):
            require_permission(RequestContext.for_actor(SUPER_ADMIN))

    def test_require_roles(self):
        ctx = RequestContext.for_actor(tenant_actor(TenantRole.MANAGER))
        require_roles(ctx, RoleName.TENANT_ADMIN, RoleName.TENANT_MANAGER)
        with pytest.raises(PermissionDeniedError, match="Insufficient role privileges"):
            require_roles(ctx, RoleName.PARTNER_ADMIN)

    def test_gate_uses_context_tenant(self):
        """A partner manager passes tenant gates for a switched-to tenant of their partner."""
        ctx = RequestContext.for_actor(partner_actor(PartnerRole.MANAGER))
        ctx = ctx.with_tenant_override("t1", "p1")
        require_tenant_admin(ctx)
        assert role_facts_for(ctx).tenant_id == "t1"


class TestRoleNames:
    def test_flattened_names(self):
        actor = Actor(
            user_id="u",
            is_super_admin=True,
            tenant_membership=TenantMembership(tenant_id="t1", role=TenantRole.MANAGER),
            partner_membership=PartnerMembership(partner_id="p1", role=PartnerRole.VIEWER),
        )
        assert resolve_role_facts(actor).role_names == {
            RoleName.SUPER_ADMIN,
            RoleName.TENANT_MANAGER,
            RoleName.PARTNER_VIEWER,
        }
