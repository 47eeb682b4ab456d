"""
Model factories and schema helpers shared by the test suite.

ModelFactory creates persisted rows with sensible defaults. It flushes and
never commits, so rows live inside the caller's transaction.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session


def create_all_tables(engine) -> None:
    from accessgate.db_base import Base
    from accessgate import models  # noqa: F401 - registers every model
    from accessgate.platform import audit  # noqa: F401 - audit log model

    Base.metadata.create_all(bind=engine)


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


class ModelFactory:
    """Creates persisted rows with sensible defaults."""

    def __init__(self, session: Session):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _add(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj

    def user(self, is_super_admin: bool = False, status: str = "active", **kwargs):
        from accessgate.models import User
        n = self._next()
        return self._add(User(
            email=kwargs.pop("email", f"user{n}@example.com"),
            name=kwargs.pop("name", f"User {n}"),
            is_super_admin=is_super_admin,
            status=status,
            **kwargs,
        ))

    def partner(self, status: str = "active", **kwargs):
        from accessgate.models import Partner
        n = self._next()
        return self._add(Partner(name=kwargs.pop("name", f"Partner {n}"), status=status, **kwargs))

    def tenant(self, partner=None, status: str = "active", **kwargs):
        from accessgate.models import Tenant
        n = self._next()
        return self._add(Tenant(
            name=kwargs.pop("name", f"Tenant {n}"),
            slug=kwargs.pop("slug", f"tenant-{n}"),
            partner_id=partner.id if partner else None,
            status=status,
            **kwargs,
        ))

    def tenant_member(self, user, tenant, role: str = "user", permissions=None, **kwargs):
        from accessgate.models import TenantUser
        return self._add(TenantUser(
            user_id=user.id,
            tenant_id=tenant.id,
            role=role,
            permissions=list(permissions or []),
            **kwargs,
        ))

    def partner_member(self, user, partner, role: str = "viewer", **kwargs):
        from accessgate.models import PartnerUser
        return self._add(PartnerUser(user_id=user.id, partner_id=partner.id, role=role, **kwargs))

    def feature(self, code: str, is_enabled: bool = True):
        from accessgate.models import Feature
        return self._add(Feature(code=code, name=code.replace("_", " ").title(), is_enabled=is_enabled))

    def plan(self, code: Optional[str] = None, features: Optional[dict] = None):
        """
        Create a plan; features maps Feature rows to limits dicts.

        Usage:
            plan = factory.plan("starter", {leads: {"max_leads": 2}})
        """
        from accessgate.models import Plan, PlanFeature
        n = self._next()
        plan = self._add(Plan(code=code or f"plan-{n}", name=f"Plan {n}"))
        for feature, limits in (features or {}).items():
            self._add(PlanFeature(plan_id=plan.id, feature_id=feature.id, limits=limits or {}))
        return plan

    def subscription(
        self,
        tenant,
        plan,
        status: str = "active",
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        **kwargs,
    ):
        from accessgate.models import Subscription
        now = datetime.now(timezone.utc).replace(microsecond=0)
        return self._add(Subscription(
            tenant_id=tenant.id,
            plan_id=plan.id,
            status=status,
            current_period_start=period_start or now - timedelta(days=10),
            current_period_end=period_end or now + timedelta(days=20),
            **kwargs,
        ))

    def usage(self, subscription, feature_code: str, count: int, period_start=None, period_end=None):
        from accessgate.models import SubscriptionUsage
        return self._add(SubscriptionUsage(
            subscription_id=subscription.id,
            feature_code=feature_code,
            usage_count=count,
            usage_period_start=period_start or subscription.current_period_start,
            usage_period_end=period_end or subscription.current_period_end,
        ))
