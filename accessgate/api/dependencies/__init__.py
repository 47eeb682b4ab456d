"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from accessgate.api.dependencies.authz import (
    get_request_context,
    role_gate,
    super_admin_required,
    partner_access_required,
    partner_admin_required,
    tenant_access_required,
    tenant_manager_required,
    tenant_admin_required,
    active_subscription_required,
    permission_required,
    roles_required,
    tenant_scope,
    partner_scope,
    feature_required,
    usage_limit_required,
    get_audit_recorder,
)

__all__ = [
    "get_request_context",
    "role_gate",
    "super_admin_required",
    "partner_access_required",
    "partner_admin_required",
    "tenant_access_required",
    "tenant_manager_required",
    "tenant_admin_required",
    "active_subscription_required",
    "permission_required",
    "roles_required",
    "tenant_scope",
    "partner_scope",
    "feature_required",
    "usage_limit_required",
    "get_audit_recorder",
]
