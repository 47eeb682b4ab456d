"""
Actor resolution.

An Actor is the authenticated identity for the duration of ONE request,
built from persisted membership records right after authentication and
immutable afterwards. It is re-resolved on every request so role and plan
changes take effect immediately without cache invalidation.

Invariant: an Actor carries at most one tenant membership and at most one
partner membership. When the token does not pin one, the owner membership
wins, then the oldest.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from accessgate.constants.roles import MembershipStatus, PartnerRole, TenantRole
from accessgate.models.partner import Partner, PartnerUser
from accessgate.models.tenant import Tenant, TenantUser
from accessgate.models.user import User
from accessgate.platform.errors import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantMembership:
    """Resolved membership of the actor in one tenant."""
    tenant_id: str
    role: TenantRole
    partner_id: Optional[str] = None  # Partner owning the tenant
    permissions: tuple[str, ...] = ()
    is_owner: bool = False


@dataclass(frozen=True)
class PartnerMembership:
    """Resolved membership of the actor in one partner."""
    partner_id: str
    role: PartnerRole
    is_owner: bool = False


@dataclass(frozen=True)
class Actor:
    """Immutable authenticated identity for one request."""
    user_id: str
    is_super_admin: bool = False
    tenant_membership: Optional[TenantMembership] = None
    partner_membership: Optional[PartnerMembership] = None
    email: Optional[str] = field(default=None, compare=False)

    @property
    def tenant_id(self) -> Optional[str]:
        return self.tenant_membership.tenant_id if self.tenant_membership else None

    @property
    def partner_id(self) -> Optional[str]:
        return self.partner_membership.partner_id if self.partner_membership else None

    def __repr__(self) -> str:
        return (
            f"Actor(user_id={self.user_id}, super_admin={self.is_super_admin}, "
            f"tenant_id={self.tenant_id}, partner_id={self.partner_id})"
        )


def _preferred(memberships: list):
    """Owner first, then the oldest membership."""
    if not memberships:
        return None
    return sorted(
        memberships,
        key=lambda m: (not m.is_owner, m.created_at, m.id),
    )[0]


def _load_tenant_membership(
    db: Session,
    user_id: str,
    tenant_id: Optional[str],
) -> Optional[TenantMembership]:
    query = (
        db.query(TenantUser, Tenant)
        .join(Tenant, Tenant.id == TenantUser.tenant_id)
        .filter(
            TenantUser.user_id == user_id,
            TenantUser.is_active.is_(True),
            Tenant.status == MembershipStatus.ACTIVE.value,
        )
    )
    if tenant_id:
        query = query.filter(TenantUser.tenant_id == tenant_id)

    rows = query.all()
    if not rows:
        if tenant_id:
            logger.info(
                "Tenant membership not found",
                extra={"user_id": user_id, "tenant_id": tenant_id},
            )
        return None

    tenants = {tu.id: tenant for tu, tenant in rows}
    member = _preferred([tu for tu, _ in rows])
    return TenantMembership(
        tenant_id=member.tenant_id,
        role=TenantRole(member.role),
        partner_id=tenants[member.id].partner_id,
        permissions=tuple(member.permissions or ()),
        is_owner=bool(member.is_owner),
    )


def _load_partner_membership(
    db: Session,
    user_id: str,
    partner_id: Optional[str],
) -> Optional[PartnerMembership]:
    query = (
        db.query(PartnerUser)
        .join(Partner, Partner.id == PartnerUser.partner_id)
        .filter(
            PartnerUser.user_id == user_id,
            PartnerUser.is_active.is_(True),
            Partner.status == MembershipStatus.ACTIVE.value,
        )
    )
    if partner_id:
        query = query.filter(PartnerUser.partner_id == partner_id)

    member = _preferred(query.all())
    if member is None:
        return None
    return PartnerMembership(
        partner_id=member.partner_id,
        role=PartnerRole(member.role),
        is_owner=bool(member.is_owner),
    )


def resolve_actor(
    db: Session,
    user_id: str,
    tenant_id: Optional[str] = None,
    partner_id: Optional[str] = None,
) -> Actor:
    """
    Build the request's Actor from persisted membership records.

    Args:
        db: Database session
        user_id: Authenticated user id (from the verified token)
        tenant_id: Tenant pinned by the token, if any
        partner_id: Partner pinned by the token, if any

    Returns:
        Immutable Actor

    Raises:
        AuthenticationError: user unknown or not active
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is suspended or inactive")

    actor = Actor(
        user_id=user.id,
        is_super_admin=bool(user.is_super_admin),
        tenant_membership=_load_tenant_membership(db, user.id, tenant_id),
        partner_membership=_load_partner_membership(db, user.id, partner_id),
        email=user.email,
    )
    logger.debug("Actor resolved", extra={"user_id": actor.user_id, "tenant_id": actor.tenant_id, "partner_id": actor.partner_id})
    return actor
