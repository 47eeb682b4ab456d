"""
Database models for the authorization engine.

Importing this package registers every table on the shared Base metadata.
"""

from accessgate.models.user import User
from accessgate.models.partner import Partner, PartnerUser
from accessgate.models.tenant import Tenant, TenantUser
from accessgate.models.plan import Feature, Plan, PlanFeature
from accessgate.models.subscription import Subscription
from accessgate.models.usage import SubscriptionUsage

__all__ = [
    "User",
    "Partner",
    "PartnerUser",
    "Tenant",
    "TenantUser",
    "Feature",
    "Plan",
    "PlanFeature",
    "Subscription",
    "SubscriptionUsage",
]
