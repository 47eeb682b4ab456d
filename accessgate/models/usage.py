"""
Usage counter model for per-period feature metering.

SubscriptionUsage: one row per (subscription, feature, billing period).
Rows are created lazily on the first increment inside a period; when the
subscription renews, the next increment starts a new row, so no reset job
is needed.
"""

from sqlalchemy import (
    Column, String, Integer, DateTime,
    ForeignKey, Index, UniqueConstraint
)

from accessgate.models.base import Base, TimestampMixin, generate_uuid


class SubscriptionUsage(Base, TimestampMixin):
    """
    Running consumption counter for a feature within one billing period.

    The unique constraint on (subscription_id, feature_code, usage_period_start)
    is the conflict target of the atomic increment upsert.
    """

    __tablename__ = "subscription_usage"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    subscription_id = Column(
        String(36),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    feature_code = Column(
        String(100),
        nullable=False,
        index=True
    )
    usage_count = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Units consumed in the period"
    )
    usage_period_start = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Period start (inclusive)"
    )
    usage_period_end = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Period end (exclusive)"
    )

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "feature_code", "usage_period_start",
            name="uq_subscription_usage_period"
        ),
        Index("ix_subscription_usage_window", "usage_period_start", "usage_period_end"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionUsage(subscription_id={self.subscription_id}, "
            f"feature={self.feature_code}, count={self.usage_count})>"
        )
