"""
Subscription model.

CRITICAL DESIGN:
- A subscription belongs to exactly one tenant and references one plan
- At most one subscription per tenant is trial/active at any time
- Subscriptions are never hard-deleted (billing history)
- [current_period_start, current_period_end) is the usage accounting window
"""

from sqlalchemy import (
    Column, String, DateTime, Text,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from accessgate.models.base import Base, TimestampMixin, generate_uuid
from accessgate.constants.roles import ENTITLING_SUBSCRIPTION_STATUSES, SubscriptionStatus

_ENTITLING_VALUES = sorted(s.value for s in ENTITLING_SUBSCRIPTION_STATUSES)


class Subscription(Base, TimestampMixin):
    """Tracks a tenant's plan subscription and current billing period."""

    __tablename__ = "subscriptions"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    plan_id = Column(
        String(36),
        ForeignKey("plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    partner_id = Column(
        String(36),
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    status = Column(
        String(30),
        nullable=False,
        default=SubscriptionStatus.TRIAL.value,
        index=True,
        comment="trial, active, past_due, suspended, cancelled, expired"
    )
    billing_cycle = Column(
        String(20),
        nullable=False,
        default="monthly",
        comment="monthly, yearly"
    )

    current_period_start = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of current billing period (inclusive)"
    )
    current_period_end = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="End of current billing period (exclusive)"
    )
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    plan = relationship("Plan", back_populates="subscriptions")

    __table_args__ = (
        Index("ix_subscriptions_tenant_status", "tenant_id", "status"),
        # At most one trial/active subscription per tenant
        Index(
            "uq_subscriptions_tenant_entitling",
            "tenant_id",
            unique=True,
            postgresql_where=Column("status").in_(_ENTITLING_VALUES),
            sqlite_where=Column("status").in_(_ENTITLING_VALUES),
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, tenant_id={self.tenant_id}, status={self.status})>"
