"""
Usage accounting ledger: per-period consumption counters and limit checks.

CRITICAL DESIGN:
- Counters are keyed by (subscription_id, feature_code, usage_period_start)
  and created lazily by the first increment of a period
- Lookups filter by the subscription's CURRENT period start AND a window
  containing now, so a renewed subscription starts from zero without a reset job
- increment_usage() is a single INSERT ... ON CONFLICT DO UPDATE statement,
  never read-modify-write, so concurrent increments are never lost
- increment_usage() runs after the business operation succeeded and never
  raises: failures come back as a SideEffectOutcome
- Increments run in their own unit of work (side_effect_session), so they
  never commit or roll back the caller's session

Known looseness: check_usage_limit() and increment_usage() are separate
steps. Concurrent requests may all pass the check before any of them
increments, overshooting the limit by at most the concurrency degree.
increment_usage_within_limit() is the opt-in stricter path.

Usage:
    ctx = check_usage_limit(db, ctx, "leads", "max_leads")
    lead = create_lead(...)
    increment_usage(db, ctx, "leads")
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from accessgate.entitlements.errors import EntitlementDeniedError, UsageLimitExceededError
from accessgate.entitlements.models import (
    ResolvedSubscription,
    UsageCheck,
    UsageStats,
    as_utc,
    is_unlimited,
)
from accessgate.models.base import utcnow
from accessgate.models.subscription import Subscription
from accessgate.models.usage import SubscriptionUsage
from accessgate.platform.request_context import RequestContext
from accessgate.platform.side_effects import SideEffectOutcome, run_best_effort, side_effect_session

logger = logging.getLogger(__name__)

_CONFLICT_TARGET = ["subscription_id", "feature_code", "usage_period_start"]

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else datetime.now(timezone.utc)


def get_current_usage(
    db: Session,
    subscription_id: str,
    period_start: datetime,
    feature_code: str,
    now: Optional[datetime] = None,
) -> int:
    """Units consumed in the period starting at period_start, 0 if no counter."""
    now = _now(now)
    count = (
        db.query(SubscriptionUsage.usage_count)
        .filter(
            SubscriptionUsage.subscription_id == subscription_id,
            SubscriptionUsage.feature_code == feature_code,
            SubscriptionUsage.usage_period_start == period_start,
            SubscriptionUsage.usage_period_start <= now,
            SubscriptionUsage.usage_period_end > now,
        )
        .scalar()
    )
    return count or 0


def check_usage_limit(
    db: Session,
    ctx: RequestContext,
    feature_code: str,
    limit_key: str,
    now: Optional[datetime] = None,
) -> RequestContext:
    """
    Check current-period usage against the feature's limit.

    Reads the limit from the feature grant attached by require_feature(),
    falling back to the request's plan features.

    Returns:
        New RequestContext with usage set to a UsageCheck (remaining quota)

    Raises:
        EntitlementDeniedError: no subscription
        UsageLimitExceededError: current usage >= limit
    """
    if ctx.is_super_admin:
        return ctx.with_usage(UsageCheck(feature_code=feature_code, limit_key=limit_key))

    subscription = ctx.subscription
    if subscription is None:
        raise EntitlementDeniedError("No active subscription", reason="no_subscription")

    max_limit = ctx.feature_limits(feature_code).get(limit_key)
    if is_unlimited(max_limit):
        return ctx.with_usage(UsageCheck(feature_code=feature_code, limit_key=limit_key))

    current_usage = get_current_usage(
        db, subscription.id, subscription.current_period_start, feature_code, now
    )
    if current_usage >= max_limit:
        logger.warning(
            "Usage limit reached",
            extra={
                "tenant_id": ctx.tenant_id,
                "subscription_id": subscription.id,
                "feature": feature_code,
                "limit_key": limit_key,
                "limit": max_limit,
                "current_usage": current_usage,
            }
        )
        raise UsageLimitExceededError(
            feature=feature_code,
            limit_key=limit_key,
            limit=max_limit,
            current_usage=current_usage,
        )

    return ctx.with_usage(UsageCheck(
        feature_code=feature_code,
        limit_key=limit_key,
        current_usage=current_usage,
        max_limit=max_limit,
        remaining=max_limit - current_usage,
    ))


def _increment_statement(
    db: Session,
    subscription: ResolvedSubscription,
    feature_code: str,
    amount: int,
    max_limit: Optional[int] = None,
):
    """
    Build the atomic upsert for the counter of the subscription's current period.

    With max_limit, an existing counter is only updated while the result stays
    within the limit; a suppressed update returns no row.
    """
    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Atomic usage increment not supported on {dialect}")

    timestamp = utcnow()
    stmt = insert(SubscriptionUsage).values(
        subscription_id=subscription.id,
        feature_code=feature_code,
        usage_count=amount,
        usage_period_start=subscription.current_period_start,
        usage_period_end=subscription.current_period_end,
        created_at=timestamp,
        updated_at=timestamp,
    )
    new_count = SubscriptionUsage.usage_count + stmt.excluded.usage_count
    stmt = stmt.on_conflict_do_update(
        index_elements=_CONFLICT_TARGET,
        set_={"usage_count": new_count, "updated_at": stmt.excluded.updated_at},
        where=(new_count <= max_limit) if max_limit is not None else None,
    )
    return stmt.returning(SubscriptionUsage.usage_count)


def _apply_increment(
    db: Session,
    subscription: ResolvedSubscription,
    feature_code: str,
    amount: int,
    max_limit: Optional[int] = None,
) -> Optional[int]:
    """
    Execute the upsert in its own unit of work. Returns the new count, None if suppressed.

    db is only used for its bind; pending work in db is neither flushed nor committed.
    """
    with side_effect_session(db) as session:
        row = session.execute(
            _increment_statement(session, subscription, feature_code, amount, max_limit)
        ).first()
    return row[0] if row is not None else None


def increment_usage(
    db: Session,
    ctx: RequestContext,
    feature_code: str,
    amount: int = 1,
) -> SideEffectOutcome:
    """
    Add amount to the feature's counter for the current billing period.

    Call only after the gated operation succeeded. Never raises for storage
    failures: only the increment is rolled back and a failed outcome is returned.

    Returns:
        SideEffectOutcome whose value is the new usage_count
    """
    if amount < 1:
        raise ValueError("amount must be a positive integer")

    subscription = ctx.subscription
    if subscription is None:
        return SideEffectOutcome.skipped("usage.increment", "no subscription")

    outcome = run_best_effort(
        "usage.increment",
        lambda: _apply_increment(db, subscription, feature_code, amount),
        context={
            "subscription_id": subscription.id,
            "feature": feature_code,
            "amount": amount,
        },
    )
    if outcome.ok:
        logger.debug(
            "Usage incremented",
            extra={
                "subscription_id": subscription.id,
                "feature": feature_code,
                "usage_count": outcome.value,
            }
        )
    return outcome


def increment_usage_within_limit(
    db: Session,
    ctx: RequestContext,
    feature_code: str,
    limit_key: str,
    amount: int = 1,
) -> RequestContext:
    """
    Opt-in conditional increment: reserve quota before the operation runs.

    The counter is only incremented when usage_count + amount <= limit, in one
    statement, so concurrent reservations cannot overshoot the limit. This
    changes the default semantics: the quota is consumed even if the gated
    operation later fails, and storage errors propagate to the caller.

    Super admins and unlimited features fall back to a best-effort increment.

    Raises:
        EntitlementDeniedError: no subscription
        UsageLimitExceededError: the reservation would exceed the limit
    """
    if amount < 1:
        raise ValueError("amount must be a positive integer")

    subscription = ctx.subscription
    if ctx.is_super_admin:
        increment_usage(db, ctx, feature_code, amount)
        return ctx.with_usage(UsageCheck(feature_code=feature_code, limit_key=limit_key))

    if subscription is None:
        raise EntitlementDeniedError("No active subscription", reason="no_subscription")

    max_limit = ctx.feature_limits(feature_code).get(limit_key)
    if is_unlimited(max_limit):
        increment_usage(db, ctx, feature_code, amount)
        return ctx.with_usage(UsageCheck(feature_code=feature_code, limit_key=limit_key))

    new_count = None
    if amount <= max_limit:
        new_count = _apply_increment(db, subscription, feature_code, amount, max_limit)

    if new_count is None:
        current_usage = get_current_usage(
            db, subscription.id, subscription.current_period_start, feature_code
        )
        logger.warning(
            "Usage reservation refused",
            extra={
                "subscription_id": subscription.id,
                "feature": feature_code,
                "limit_key": limit_key,
                "limit": max_limit,
                "current_usage": current_usage,
            }
        )
        raise UsageLimitExceededError(
            feature=feature_code,
            limit_key=limit_key,
            limit=max_limit,
            current_usage=current_usage,
        )

    return ctx.with_usage(UsageCheck(
        feature_code=feature_code,
        limit_key=limit_key,
        current_usage=new_count,
        max_limit=max_limit,
        remaining=max_limit - new_count,
    ))


def get_usage_stats(
    db: Session,
    subscription_id: str,
    feature_code: str,
    now: Optional[datetime] = None,
) -> Optional[UsageStats]:
    """Current-period usage of a feature, or None for an unknown subscription."""
    subscription = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if subscription is None:
        return None

    period_start = as_utc(subscription.current_period_start)
    return UsageStats(
        feature_code=feature_code,
        usage_count=get_current_usage(db, subscription.id, period_start, feature_code, now),
        period_start=period_start,
        period_end=as_utc(subscription.current_period_end),
    )
