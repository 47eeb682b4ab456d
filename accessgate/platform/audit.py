"""
Audit recorder for authorization-relevant actions.

CRITICAL REQUIREMENTS:
- audit_logs is append-only: rows are inserted, never updated or deleted
- Sensitive keys (password, password_hash, token, secret, api_key) are
  redacted before persistence, case-insensitively and recursively
- Recording NEVER fails or rolls back the originating operation: every write
  goes through run_best_effort() in its own unit of work (side_effect_session)
  and returns a SideEffectOutcome; the caller's session is never committed
  or rolled back

Usage:
    recorder = AuditRecorder(db)
    recorder.record(
        actor_id=ctx.user_id,
        tenant_id=ctx.tenant_id,
        partner_id=ctx.partner_id,
        action=AuditAction.SCOPE_OVERRIDE,
        resource_type="tenant",
        resource_id=tenant.id,
        request_metadata={"correlation_id": ctx.correlation_id},
    )
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Optional, Union

from fastapi import Request
from sqlalchemy import Column, String, Text, DateTime, JSON, Index
from sqlalchemy.orm import Session

from accessgate.config.access_policy import get_access_policy
from accessgate.models.base import Base, generate_uuid, utcnow
from accessgate.platform.side_effects import SideEffectOutcome, run_best_effort, side_effect_session

logger = logging.getLogger(__name__)
fallback_logger = logging.getLogger("audit.fallback")


class AuditAction(str, Enum):
    """Actions recorded by the engine and its helpers."""
    # Scope
    SCOPE_OVERRIDE = "scope.override"

    # Authentication
    AUTH_LOGIN = "auth.login"
    AUTH_LOGIN_FAILED = "auth.login_failed"
    AUTH_LOGOUT = "auth.logout"
    AUTH_TOKEN_REFRESH = "auth.token_refresh"
    AUTH_PASSWORD_CHANGED = "auth.password_changed"

    # Subscription lifecycle
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPGRADED = "subscription.upgraded"
    SUBSCRIPTION_DOWNGRADED = "subscription.downgraded"
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"


class AuditOutcome(str, Enum):
    """Outcome of the audited action."""
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"


class AuditRedactor:
    """
    Replaces sensitive values with "[REDACTED]", keeping the structure.

    Field names come from config/access_policy.yml (audit.redacted_fields).
    """

    REDACTION_MARKER = "[REDACTED]"

    def __init__(self, fields: Optional[FrozenSet[str]] = None):
        source = fields if fields is not None else get_access_policy().redacted_fields
        self.fields = frozenset(f.lower() for f in source)

    def redact(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: self.REDACTION_MARKER
                if isinstance(key, str) and key.lower() in self.fields
                else self.redact(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return [self.redact(item) for item in data]
        return data


class AuditLog(Base):
    """
    Audit log database model.

    CRITICAL: This table is append-only. No UPDATE or DELETE operations are allowed.
    """
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=True, index=True)  # NULL for system events
    tenant_id = Column(String(36), nullable=True, index=True)
    partner_id = Column(String(36), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=True, index=True)
    resource_id = Column(String(255), nullable=True)
    changes = Column(JSON, nullable=False, default=dict)
    ip_address = Column(String(45), nullable=True)  # IPv6 max length
    user_agent = Column(Text, nullable=True)
    request_metadata = Column(JSON, nullable=False, default=dict)
    correlation_id = Column(String(36), nullable=True, index=True)
    outcome = Column(String(20), nullable=False, default=AuditOutcome.SUCCESS.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_audit_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, tenant_id={self.tenant_id})>"


@dataclass(frozen=True)
class AuditEvent:
    """One audit entry before redaction and persistence."""
    action: Union[AuditAction, str]
    actor_id: Optional[str] = None
    tenant_id: Optional[str] = None
    partner_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    change_details: dict[str, Any] = field(default_factory=dict)
    request_metadata: dict[str, Any] = field(default_factory=dict)
    outcome: AuditOutcome = AuditOutcome.SUCCESS

    @property
    def action_value(self) -> str:
        return self.action.value if isinstance(self.action, AuditAction) else self.action

    def to_row(self, redactor: AuditRedactor) -> dict[str, Any]:
        metadata = dict(self.request_metadata)
        ip_address = metadata.pop("ip_address", None)
        user_agent = metadata.pop("user_agent", None)
        correlation_id = metadata.pop("correlation_id", None)
        return {
            "user_id": self.actor_id,
            "tenant_id": self.tenant_id,
            "partner_id": self.partner_id,
            "action": self.action_value,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "changes": redactor.redact(self.change_details),
            "ip_address": ip_address,
            "user_agent": user_agent,
            "request_metadata": redactor.redact(metadata),
            "correlation_id": correlation_id,
            "outcome": self.outcome.value,
        }


def extract_client_info(request: Request) -> dict[str, Optional[str]]:
    """
    Extract client IP and user agent from a request.

    IP precedence: first X-Forwarded-For hop, then X-Real-IP, then the peer address.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        ip_address = forwarded_for.split(",")[0].strip() or None
    else:
        ip_address = request.headers.get("X-Real-IP")
    if not ip_address:
        ip_address = request.client.host if request.client else None

    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("User-Agent"),
    }


class AuditRecorder:
    """
    Best-effort writer of AuditLog rows.

    Every method returns a SideEffectOutcome; callers may discard it.
    """

    def __init__(self, db: Session, redactor: Optional[AuditRedactor] = None):
        self.db = db
        self.redactor = redactor or AuditRedactor()

    def record(
        self,
        actor_id: Optional[str],
        tenant_id: Optional[str],
        partner_id: Optional[str],
        action: Union[AuditAction, str],
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        change_details: Optional[dict[str, Any]] = None,
        request_metadata: Optional[dict[str, Any]] = None,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
    ) -> SideEffectOutcome:
        event = AuditEvent(
            action=action,
            actor_id=actor_id,
            tenant_id=tenant_id,
            partner_id=partner_id,
            resource_type=resource_type,
            resource_id=resource_id,
            change_details=change_details or {},
            request_metadata=request_metadata or {},
            outcome=outcome,
        )
        return self.record_event(event)

    def record_event(self, event: AuditEvent) -> SideEffectOutcome:
        return run_best_effort(
            "audit.record",
            lambda: self._write(event),
            on_failure=lambda error: self._fallback(event, error),
            context={"action": event.action_value, "tenant_id": event.tenant_id},
        )

    def record_auth_event(
        self,
        action: Union[AuditAction, str],
        success: bool,
        user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        request_metadata: Optional[dict[str, Any]] = None,
    ) -> SideEffectOutcome:
        """Login, logout and token events. resource_type is always "auth"."""
        return self.record(
            actor_id=user_id,
            tenant_id=tenant_id,
            partner_id=partner_id,
            action=action,
            resource_type="auth",
            resource_id=user_id,
            change_details={"success": success, "failure_reason": failure_reason},
            request_metadata=request_metadata,
            outcome=AuditOutcome.SUCCESS if success else AuditOutcome.FAILURE,
        )

    def record_subscription_event(
        self,
        action: Union[AuditAction, str],
        before: Optional[dict[str, Any]],
        after: Optional[dict[str, Any]],
        actor_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        request_metadata: Optional[dict[str, Any]] = None,
    ) -> SideEffectOutcome:
        """Subscription change with before/after snapshots."""
        resource_id = (after or {}).get("id") or (before or {}).get("id")
        return self.record(
            actor_id=actor_id,
            tenant_id=tenant_id,
            partner_id=partner_id,
            action=action,
            resource_type="subscription",
            resource_id=resource_id,
            change_details={"before": before, "after": after},
            request_metadata=request_metadata,
        )

    def _write(self, event: AuditEvent) -> str:
        audit_id = generate_uuid()
        with side_effect_session(self.db) as session:
            session.add(AuditLog(id=audit_id, **event.to_row(self.redactor)))

        logger.info(
            "Audit event recorded",
            extra={
                "audit_id": audit_id,
                "tenant_id": event.tenant_id,
                "user_id": event.actor_id,
                "action": event.action_value,
                "outcome": event.outcome.value,
            }
        )
        return audit_id

    def _fallback(self, event: AuditEvent, error: BaseException) -> None:
        """Keep the entry that could not be stored in the fallback log."""
        fallback_entry = event.to_row(self.redactor)
        fallback_entry["fallback_reason"] = str(error)
        fallback_logger.error(
            "Audit log fallback",
            extra={"audit_entry": json.dumps(fallback_entry, default=str)},
        )


@dataclass(frozen=True)
class AuditLogPage:
    """One page of audit logs, newest first."""
    items: list[AuditLog]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def query_audit_logs(
    db: Session,
    filters: Optional[dict[str, Any]] = None,
    page: int = 1,
    limit: int = 50,
) -> AuditLogPage:
    """
    Query audit logs with optional filters and pagination.

    Supported filters: user_id, tenant_id, partner_id, action, resource_type,
    resource_id, start_date, end_date (inclusive bounds on created_at).
    """
    filters = filters or {}
    page = max(page, 1)
    limit = max(limit, 1)

    query = db.query(AuditLog)
    for key in ("user_id", "tenant_id", "partner_id", "action", "resource_type", "resource_id"):
        value = filters.get(key)
        if value:
            if isinstance(value, Enum):
                value = value.value
            query = query.filter(getattr(AuditLog, key) == value)

    start_date: Optional[datetime] = filters.get("start_date")
    end_date: Optional[datetime] = filters.get("end_date")
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)

    total = query.count()
    items = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return AuditLogPage(items=items, total=total, page=page, limit=limit)
