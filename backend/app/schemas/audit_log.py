"""
Audit Log Schemas
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    """Audit log entry response"""
    id: str
    entity_type: str
    entity_id: str
    action: AuditAction
    previous_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    changed_fields: Optional[List[str]] = None
    performed_by_id: Optional[str] = None
    performed_by_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    reason: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogsResponse(BaseModel):
    """Paginated audit logs response"""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
