"""
Partner and PartnerUser models.

A Partner is a reseller/affiliate that owns a set of tenants.
PartnerUser is the membership junction between users and partners.
"""

from sqlalchemy import (
    Column, String, Boolean, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from accessgate.models.base import Base, TimestampMixin, generate_uuid
from accessgate.constants.roles import MembershipStatus, PartnerRole


class Partner(Base, TimestampMixin):
    """Reseller organization administering a set of tenants."""

    __tablename__ = "partners"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    name = Column(String(255), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=MembershipStatus.ACTIVE.value,
        index=True,
        comment="active, suspended, inactive"
    )

    tenants = relationship("Tenant", back_populates="partner")
    members = relationship("PartnerUser", back_populates="partner")

    def __repr__(self) -> str:
        return f"<Partner(id={self.id}, status={self.status})>"


class PartnerUser(Base, TimestampMixin):
    """
    Membership of a user in a partner organization.

    Role values come from accessgate.constants.roles.PartnerRole.
    """

    __tablename__ = "partner_users"

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
    partner_id = Column(
        String(36),
        ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role = Column(
        String(20),
        nullable=False,
        default=PartnerRole.VIEWER.value,
        comment="admin, manager, viewer"
    )
    is_owner = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    partner = relationship("Partner", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "partner_id", name="uq_partner_users_user_partner"),
        Index("ix_partner_users_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<PartnerUser(user_id={self.user_id}, partner_id={self.partner_id}, role={self.role})>"
