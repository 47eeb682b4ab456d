"""
Canonical role, status and feature constants for the authorization engine.

IMPORTANT: This is the single source of truth for role tiers and statuses.
All gate checks MUST reference these enums instead of raw strings.

Role Hierarchy (three tiers):
- Platform: SUPER_ADMIN (bypasses every gate)
- Partner:  ADMIN > MANAGER > VIEWER (resellers administering their tenants)
- Tenant:   ADMIN > MANAGER > USER (day-to-day CRM usage)

Partner ADMIN/MANAGER additionally satisfy tenant-admin requirements for
tenants that belong to their partner.
"""

from enum import Enum
from typing import FrozenSet


class PartnerRole(str, Enum):
    """Roles a user can hold inside a partner (reseller) organization."""
    ADMIN = "admin"
    MANAGER = "manager"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _PARTNER_RANK[self]

    def at_least(self, required: "PartnerRole") -> bool:
        return self.rank >= required.rank


class TenantRole(str, Enum):
    """Roles a user can hold inside a tenant (customer organization)."""
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"

    @property
    def rank(self) -> int:
        return _TENANT_RANK[self]

    def at_least(self, required: "TenantRole") -> bool:
        return self.rank >= required.rank


_PARTNER_RANK = {
    PartnerRole.VIEWER: 0,
    PartnerRole.MANAGER: 1,
    PartnerRole.ADMIN: 2,
}

_TENANT_RANK = {
    TenantRole.USER: 0,
    TenantRole.MANAGER: 1,
    TenantRole.ADMIN: 2,
}

# Partner roles that manage the tenants belonging to their partner
TENANT_MANAGING_PARTNER_ROLES: FrozenSet[PartnerRole] = frozenset({
    PartnerRole.ADMIN,
    PartnerRole.MANAGER,
})


class RoleName(str, Enum):
    """
    Flattened role names used by generic role checks.

    Format: <tier>_<role>, e.g. "partner_admin", "tenant_user".
    """
    SUPER_ADMIN = "super_admin"
    PARTNER_ADMIN = "partner_admin"
    PARTNER_MANAGER = "partner_manager"
    PARTNER_VIEWER = "partner_viewer"
    TENANT_ADMIN = "tenant_admin"
    TENANT_MANAGER = "tenant_manager"
    TENANT_USER = "tenant_user"

    @classmethod
    def for_partner(cls, role: PartnerRole) -> "RoleName":
        return cls(f"partner_{role.value}")

    @classmethod
    def for_tenant(cls, role: TenantRole) -> "RoleName":
        return cls(f"tenant_{role.value}")


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses that entitle a tenant to plan features
ENTITLING_SUBSCRIPTION_STATUSES: FrozenSet[SubscriptionStatus] = frozenset({
    SubscriptionStatus.TRIAL,
    SubscriptionStatus.ACTIVE,
})


class MembershipStatus(str, Enum):
    """Status shared by users, partners and tenants."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PENDING = "pending"


class FeatureCode(str, Enum):
    """Feature codes (must match the features table)."""
    LEADS = "leads"
    CAMPAIGNS = "campaigns"
    TEMPLATES = "templates"
    WORKFLOWS = "workflows"
    ANALYTICS = "analytics"
    NETWORK = "network"
    QUICK_REPLIES = "quick_replies"
    CATALOG = "catalog"
    LMS = "lms"
    META_ADS = "meta_ads"
    DRIP_SEQUENCES = "drip_sequences"
    WHITE_LABEL = "white_label"
    API_ACCESS = "api_access"


# Global wildcard permission and per-resource wildcard action
WILDCARD_PERMISSION = "*"
RESOURCE_ADMIN_ACTION = "admin"


def resource_admin_permission(permission: str) -> str:
    """
    Return the resource-level wildcard for a permission code.

    "leads:write" -> "leads:admin"
    """
    resource = permission.split(":", 1)[0]
    return f"{resource}:{RESOURCE_ADMIN_ACTION}"
