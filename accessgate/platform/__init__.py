"""
Platform-level modules for multi-tenant authorization.

- actor: Actor resolution from membership records
- request_context: Immutable per-request authorization context
- role_hierarchy: Role Hierarchy Resolver and role gates
- scope: Tenant/partner Scope Enforcer
- audit: Audit Recorder
- side_effects: Best-effort side effect execution
- errors: Consistent error handling
"""

from accessgate.platform.errors import (
    AppError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    register_error_handlers,
)

from accessgate.platform.side_effects import (
    SideEffectOutcome,
    run_best_effort,
)

from accessgate.platform.actor import (
    Actor,
    TenantMembership,
    PartnerMembership,
    resolve_actor,
)

from accessgate.platform.request_context import RequestContext

from accessgate.platform.role_hierarchy import (
    RoleFacts,
    resolve_role_facts,
    require_super_admin,
    require_partner_access,
    require_partner_admin,
    require_tenant_access,
    require_tenant_manager,
    require_tenant_admin,
    require_permission,
    require_roles,
)

from accessgate.platform.scope import (
    ScopeFilter,
    Unrestricted,
    RestrictedTo,
    enforce_tenant_scope,
    enforce_partner_scope,
    validate_tenant_ownership,
    validate_partner_access,
    set_tenant_context,
    apply_scope,
)

from accessgate.platform.audit import (
    AuditAction,
    AuditOutcome,
    AuditRecorder,
    query_audit_logs,
    extract_client_info,
)

__all__ = [
    # Errors
    "AppError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "register_error_handlers",
    # Side effects
    "SideEffectOutcome",
    "run_best_effort",
    # Actor
    "Actor",
    "TenantMembership",
    "PartnerMembership",
    "resolve_actor",
    "RequestContext",
    # Roles
    "RoleFacts",
    "resolve_role_facts",
    "require_super_admin",
    "require_partner_access",
    "require_partner_admin",
    "require_tenant_access",
    "require_tenant_manager",
    "require_tenant_admin",
    "require_permission",
    "require_roles",
    # Scope
    "ScopeFilter",
    "Unrestricted",
    "RestrictedTo",
    "enforce_tenant_scope",
    "enforce_partner_scope",
    "validate_tenant_ownership",
    "validate_partner_access",
    "set_tenant_context",
    "apply_scope",
    # Audit
    "AuditAction",
    "AuditOutcome",
    "AuditRecorder",
    "query_audit_logs",
    "extract_client_info",
]
