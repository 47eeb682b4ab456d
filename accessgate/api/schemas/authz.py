"""
Pydantic schemas for authorization read models.

Response models for usage statistics and audit log pages, so callers can
return engine results from their own endpoints.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from accessgate.entitlements.models import UsageStats
from accessgate.platform.audit import AuditLogPage


class UsageStatsResponse(BaseModel):
    """Current-period usage of one feature."""

    model_config = ConfigDict(from_attributes=True)

    feature_code: str = Field(..., description="Feature the usage is counted against")
    usage_count: int = Field(..., ge=0, description="Usage in the current billing period")
    period_start: datetime = Field(..., description="Start of the billing period (inclusive)")
    period_end: datetime = Field(..., description="End of the billing period (exclusive)")

    @classmethod
    def from_stats(cls, stats: UsageStats) -> "UsageStatsResponse":
        return cls.model_validate(stats)


class AuditLogEntryResponse(BaseModel):
    """A single audit log entry. Sensitive values are already redacted."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = Field(None, description="Actor; null for system events")
    tenant_id: Optional[str] = None
    partner_id: Optional[str] = None
    action: str = Field(..., description="Dotted action name, e.g. scope.override")
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    changes: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None
    outcome: str = Field(..., description="success, failure or denied")
    created_at: datetime


class AuditLogPageResponse(BaseModel):
    """One page of audit log entries, newest first."""

    items: List[AuditLogEntryResponse]
    total: int = Field(..., ge=0, description="Total count of matching entries")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def from_page(cls, page: AuditLogPage) -> "AuditLogPageResponse":
        return cls(
            items=[AuditLogEntryResponse.model_validate(row) for row in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )
