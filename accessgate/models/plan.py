"""
Plan, Feature and PlanFeature models for subscription tiers.

Plans and Features are GLOBAL (not tenant-scoped) - they define the product
offering. PlanFeature is the entitlement join: which features a plan
includes and the named quotas (limits) attached to each.

These tables are read-only from the authorization engine's perspective.
"""

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, JSON,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from accessgate.models.base import Base, TimestampMixin, generate_uuid


class Feature(Base, TimestampMixin):
    """
    Platform-wide feature definition.

    is_enabled is a global kill switch: when False the feature is unavailable
    to every tenant regardless of plan.
    """

    __tablename__ = "features"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    code = Column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
        comment="Stable feature code (leads, campaigns, ...)"
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_enabled = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Global kill switch"
    )

    plan_features = relationship("PlanFeature", back_populates="feature")

    def __repr__(self) -> str:
        return f"<Feature(code={self.code}, enabled={self.is_enabled})>"


class Plan(Base, TimestampMixin):
    """Pricing tier."""

    __tablename__ = "plans"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    code = Column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
        comment="URL-safe identifier (starter, growth, enterprise)"
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(
        Boolean,
        default=True,
        index=True,
        comment="Whether plan is available for new subscriptions"
    )
    trial_days = Column(Integer, default=14)

    plan_features = relationship("PlanFeature", back_populates="plan")
    subscriptions = relationship("Subscription", back_populates="plan")

    def __repr__(self) -> str:
        return f"<Plan(code={self.code})>"


class PlanFeature(Base, TimestampMixin):
    """
    Feature entitlement for a plan.

    limits maps limit keys to values, e.g. {"max_leads": 1000}.
    A value of None or -1 means unlimited.
    """

    __tablename__ = "plan_features"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    plan_id = Column(
        String(36),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    feature_id = Column(
        String(36),
        ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    is_enabled = Column(Boolean, nullable=False, default=True)
    limits = Column(JSON, nullable=False, default=dict)

    plan = relationship("Plan", back_populates="plan_features")
    feature = relationship("Feature", back_populates="plan_features")

    __table_args__ = (
        UniqueConstraint("plan_id", "feature_id", name="uq_plan_features_plan_feature"),
        Index("ix_plan_features_plan_enabled", "plan_id", "is_enabled"),
    )

    def __repr__(self) -> str:
        return f"<PlanFeature(plan_id={self.plan_id}, feature_id={self.feature_id}, enabled={self.is_enabled})>"
