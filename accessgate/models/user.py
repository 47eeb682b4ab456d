"""
User model.

A User is a platform identity. Tenant and partner access is granted through
the TenantUser and PartnerUser membership tables; platform operators carry
the is_super_admin flag instead.
"""

from sqlalchemy import Column, String, Boolean, Index

from accessgate.models.base import Base, TimestampMixin, generate_uuid
from accessgate.constants.roles import MembershipStatus


class User(Base, TimestampMixin):
    """Authenticated platform identity."""

    __tablename__ = "users"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    email = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login email"
    )
    name = Column(String(255), nullable=True)
    is_super_admin = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Platform operator - bypasses every authorization gate"
    )
    status = Column(
        String(20),
        nullable=False,
        default=MembershipStatus.ACTIVE.value,
        comment="active, suspended, pending"
    )

    __table_args__ = (
        Index("ix_users_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, super_admin={self.is_super_admin})>"

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE.value
