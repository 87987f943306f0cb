from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid


class AuditAction(str, enum.Enum):
    """Kinds of changes recorded in the audit trail"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    REVOKE = "REVOKE"
    REISSUE = "REISSUE"


class AuditLog(Base):
    """Append-only record of a change to a business entity"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Affected entity
    entity_type = Column(String(100), nullable=False, index=True)  # e.g. 'Certificate'
    entity_id = Column(GUID, nullable=False, index=True)
    action = Column(SQLEnum(AuditAction, name="audit_action_enum"), nullable=False)

    # Change details (sensitive keys are redacted before they get here)
    previous_values = Column(JSONType, nullable=True)
    new_values = Column(JSONType, nullable=True)
    changed_fields = Column(JSONType, nullable=True)

    # Actor. Email is kept so the entry stays readable if the user is removed
    performed_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    performed_by_email = Column(String(255), nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    reason = Column(Text, nullable=True)
    extra_data = Column(JSONType, nullable=True)  # 'metadata' is reserved by SQLAlchemy

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
