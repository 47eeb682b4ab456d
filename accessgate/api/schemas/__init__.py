"""
API schemas package.

Contains Pydantic response models for authorization data exposed to callers.
"""

from accessgate.api.schemas.authz import (
    AuditLogEntryResponse,
    AuditLogPageResponse,
    UsageStatsResponse,
)

__all__ = [
    "AuditLogEntryResponse",
    "AuditLogPageResponse",
    "UsageStatsResponse",
]
