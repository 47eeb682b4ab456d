"""
Tenant and TenantUser models.

Tenant is the unit of data isolation. Tenant.id IS the tenant_id used by
every tenant-scoped query. A tenant optionally belongs to a Partner
(partner_id is NULL for direct signups).

SECURITY: tenant_id for a request is resolved from the actor's membership,
never from client input (super admin context switches excepted).
"""

from sqlalchemy import (
    Column, String, Boolean, ForeignKey, Index, UniqueConstraint, JSON
)
from sqlalchemy.orm import relationship

from accessgate.models.base import Base, TimestampMixin, generate_uuid
from accessgate.constants.roles import MembershipStatus, TenantRole


class Tenant(Base, TimestampMixin):
    """Customer organization."""

    __tablename__ = "tenants"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key - this IS the tenant_id used across all models"
    )
    partner_id = Column(
        String(36),
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Owning partner (NULL for direct signups)"
    )
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    status = Column(
        String(20),
        nullable=False,
        default=MembershipStatus.ACTIVE.value,
        index=True,
        comment="active, suspended, cancelled"
    )

    partner = relationship("Partner", back_populates="tenants")
    members = relationship("TenantUser", back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, partner_id={self.partner_id}, status={self.status})>"


class TenantUser(Base, TimestampMixin):
    """
    Membership of a user in a tenant.

    Role values come from accessgate.constants.roles.TenantRole.
    permissions holds explicit permission codes ("leads:read", "leads:admin", "*").
    """

    __tablename__ = "tenant_users"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role = Column(
        String(20),
        nullable=False,
        default=TenantRole.USER.value,
        comment="admin, manager, user"
    )
    permissions = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Explicit permission codes granted to this member"
    )
    is_owner = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    tenant = relationship("Tenant", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_tenant_users_user_tenant"),
        Index("ix_tenant_users_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<TenantUser(user_id={self.user_id}, tenant_id={self.tenant_id}, role={self.role})>"
