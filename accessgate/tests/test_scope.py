"""
Tests for the Scope Enforcer.

Covers scope filters, ownership validation for every actor tier, the
super admin tenant switch and its audit trail.
"""

import pytest

from accessgate.models import Feature, Tenant
from accessgate.platform.audit import AuditLog
from accessgate.platform.actor import Actor
from accessgate.platform.errors import NotFoundError, PermissionDeniedError
from accessgate.platform.scope import (
    RestrictedTo,
    Unrestricted,
    apply_scope,
    enforce_partner_scope,
    enforce_tenant_scope,
    set_tenant_context,
    validate_partner_access,
    validate_tenant_ownership,
)


@pytest.fixture
def world(factory):
    """Two partners with one tenant each, plus a direct signup tenant."""
    p1, p2 = factory.partner(), factory.partner()
    return {
        "p1": p1,
        "p2": p2,
        "t1": factory.tenant(partner=p1),
        "t2": factory.tenant(partner=p2),
        "direct": factory.tenant(),
    }


def audit_entries(db_session, action="scope.override"):
    return db_session.query(AuditLog).filter(AuditLog.action == action).all()


class TestScopeFilterTypes:
    """An empty or implicit filter cannot be built for a restricted actor."""

    def test_unrestricted_requires_super_admin(self):
        with pytest.raises(ValueError):
            Unrestricted(granted_to=Actor(user_id="u"))

    def test_restricted_requires_value(self):
        with pytest.raises(ValueError):
            RestrictedTo("tenant_id", "")

    def test_restricted_column_whitelist(self):
        with pytest.raises(ValueError):
            RestrictedTo("owner_id", "x")

    def test_as_dict(self):
        assert RestrictedTo("partner_id", "p1").as_dict() == {"partner_id": "p1"}


class TestEnforceScope:

    def test_tenant_actor_restricted(self, factory, build_context, world):
        user = factory.user()
        factory.tenant_member(user, world["t1"])
        scope = enforce_tenant_scope(build_context(user))
        assert scope == RestrictedTo("tenant_id", world["t1"].id)

    def test_missing_tenant_context(self, factory, build_context):
        with pytest.raises(PermissionDeniedError, match="Tenant context required"):
            enforce_tenant_scope(build_context(factory.user()))

    def test_super_admin_unrestricted(self, factory, build_context):
        scope = enforce_tenant_scope(build_context(factory.user(is_super_admin=True)))
        assert isinstance(scope, Unrestricted)

    def test_super_admin_switched_context_restricted(self, db_session, factory, build_context, world):
        ctx = build_context(factory.user(is_super_admin=True))
        ctx = set_tenant_context(db_session, ctx, header_value=world["t2"].id)
        assert enforce_tenant_scope(ctx) == RestrictedTo("tenant_id", world["t2"].id)

    def test_partner_scope(self, factory, build_context, world):
        user = factory.user()
        factory.partner_member(user, world["p1"])
        assert enforce_partner_scope(build_context(user)) == RestrictedTo("partner_id", world["p1"].id)

    def test_partner_scope_missing(self, factory, build_context, world):
        user = factory.user()
        factory.tenant_member(user, world["t1"])
        with pytest.raises(PermissionDeniedError, match="Partner context required"):
            enforce_partner_scope(build_context(user))


class TestValidateTenantOwnership:

    @pytest.mark.security
    def test_tenant_actor_own_tenant(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.tenant_member(user, world["t1"], role="admin")
        assert validate_tenant_ownership(db_session, build_context(user), world["t1"].id).id == world["t1"].id

    @pytest.mark.security
    @pytest.mark.parametrize("target", ["t2", "direct"])
    def test_tenant_actor_other_tenant_forbidden(self, db_session, factory, build_context, world, target):
        user = factory.user()
        factory.tenant_member(user, world["t1"], role="admin")
        with pytest.raises(PermissionDeniedError, match="Access denied to this tenant"):
            validate_tenant_ownership(db_session, build_context(user), world[target].id)

    @pytest.mark.security
    def test_partner_actor_own_tenant(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.partner_member(user, world["p1"], role="manager")
        assert validate_tenant_ownership(db_session, build_context(user), world["t1"].id).id == world["t1"].id

    @pytest.mark.security
    def test_partner_actor_hidden_tenant_is_not_found(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.partner_member(user, world["p1"])
        ctx = build_context(user)

        with pytest.raises(NotFoundError) as hidden:
            validate_tenant_ownership(db_session, ctx, world["t2"].id)
        with pytest.raises(NotFoundError) as missing:
            validate_tenant_ownership(db_session, ctx, "does-not-exist")

        assert hidden.value.message == missing.value.message == "Tenant not found"

    def test_super_admin_any_tenant_is_audited(self, db_session, factory, build_context, world):
        admin = factory.user(is_super_admin=True)
        tenant = validate_tenant_ownership(db_session, build_context(admin), world["t2"].id)

        assert tenant.id == world["t2"].id
        entries = audit_entries(db_session)
        assert len(entries) == 1
        assert entries[0].user_id == admin.id
        assert entries[0].resource_id == world["t2"].id

    def test_super_admin_missing_tenant(self, db_session, factory, build_context):
        with pytest.raises(NotFoundError, match="Tenant not found"):
            validate_tenant_ownership(db_session, build_context(factory.user(is_super_admin=True)), "nope")

    def test_actor_without_memberships(self, db_session, factory, build_context, world):
        with pytest.raises(PermissionDeniedError):
            validate_tenant_ownership(db_session, build_context(factory.user()), world["t1"].id)


class TestValidatePartnerAccess:

    def test_own_partner(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.partner_member(user, world["p1"])
        assert validate_partner_access(db_session, build_context(user), world["p1"].id).id == world["p1"].id

    def test_other_partner_forbidden(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.partner_member(user, world["p1"])
        with pytest.raises(PermissionDeniedError, match="Access denied to this partner"):
            validate_partner_access(db_session, build_context(user), world["p2"].id)

    def test_tenant_actor_forbidden(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.tenant_member(user, world["t1"])
        with pytest.raises(PermissionDeniedError, match="Partner context required"):
            validate_partner_access(db_session, build_context(user), world["p1"].id)

    def test_super_admin(self, db_session, factory, build_context, world):
        ctx = build_context(factory.user(is_super_admin=True))
        assert validate_partner_access(db_session, ctx, world["p2"].id).id == world["p2"].id
        with pytest.raises(NotFoundError, match="Partner not found"):
            validate_partner_access(db_session, ctx, "nope")


class TestSetTenantContext:

    @pytest.mark.security
    def test_ignored_for_non_super_admin(self, db_session, factory, build_context, world):
        user = factory.user()
        factory.tenant_member(user, world["t1"], role="admin")
        ctx = build_context(user)

        switched = set_tenant_context(db_session, ctx, header_value=world["t2"].id)

        assert switched is ctx
        assert switched.tenant_id == world["t1"].id
        assert audit_entries(db_session) == []

    def test_super_admin_header(self, db_session, factory, build_context, world):
        ctx = build_context(factory.user(is_super_admin=True))

        switched = set_tenant_context(db_session, ctx, header_value=world["t1"].id)

        assert switched.tenant_id == world["t1"].id
        assert switched.tenant_partner_id == world["p1"].id
        assert switched.tenant_override is True
        assert ctx.tenant_id is None
        assert len(audit_entries(db_session)) == 1

    def test_header_wins_over_query(self, db_session, factory, build_context, world):
        ctx = build_context(factory.user(is_super_admin=True))
        switched = set_tenant_context(db_session, ctx, header_value=world["t1"].id, query_value=world["t2"].id)
        assert switched.tenant_id == world["t1"].id

    def test_query_param(self, db_session, factory, build_context, world):
        ctx = build_context(factory.user(is_super_admin=True))
        assert set_tenant_context(db_session, ctx, query_value=world["t2"].id).tenant_id == world["t2"].id

    def test_unknown_tenant_ignored(self, db_session, factory, build_context):
        ctx = build_context(factory.user(is_super_admin=True))
        assert set_tenant_context(db_session, ctx, header_value="nope") is ctx

    def test_nothing_requested(self, db_session, factory, build_context):
        ctx = build_context(factory.user(is_super_admin=True))
        assert set_tenant_context(db_session, ctx) is ctx


class TestApplyScope:

    def test_restricted_filters_query(self, db_session, world):
        query = apply_scope(db_session.query(Tenant), Tenant, RestrictedTo("partner_id", world["p1"].id))
        assert [t.id for t in query.all()] == [world["t1"].id]

    def test_unrestricted_keeps_query(self, db_session, world):
        scope = Unrestricted(granted_to=Actor(user_id="root", is_super_admin=True))
        assert apply_scope(db_session.query(Tenant), Tenant, scope).count() == 3

    def test_model_without_column(self, db_session):
        with pytest.raises(ValueError):
            apply_scope(db_session.query(Feature), Feature, RestrictedTo("tenant_id", "t"))
