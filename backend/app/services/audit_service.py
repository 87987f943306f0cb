"""
Audit Service - append-only trail of changes to business entities

Handles:
- Writing audit entries inside the caller's transaction
- Redacting sensitive values before they are stored
- Querying the trail (filtered list, per-entity history, single entry)

`log()` only adds the entry to the session. The caller commits it together
with the change it describes, so a failed audit write rolls the change back.
"""

from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.config import settings
from app.core.logging_config import logger
from app.models.audit_log import AuditLog, AuditAction


REDACTED = "[REDACTED]"

# Compared after lower-casing and dropping '_' and '-', so apiKey and api_key both match
SENSITIVE_KEYS = {
    "password",
    "hashedpassword",
    "currentrefreshtoken",
    "resetpasswordtoken",
    "verificationtoken",
    "accesstoken",
    "refreshtoken",
    "secret",
    "apikey",
    "privatekey",
}

# Bookkeeping fields that never count as a change
IGNORED_CHANGE_FIELDS = {"updated_at", "lock_version"}


def _normalize_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


@dataclass(frozen=True)
class AuditActor:
    """Who performed an action, captured as plain values so it outlives the ORM user"""
    user_id: Optional[str] = None
    email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_user(cls, user, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> "AuditActor":
        return cls(
            user_id=str(user.id) if user is not None else None,
            email=user.email if user is not None else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )


class AuditService:
    """Service for writing and reading the audit trail"""

    # ==================== SANITIZING ====================

    def sanitize_values(self, values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Replace sensitive values (recursively) with a placeholder"""
        if values is None:
            return None
        return {key: self._sanitize_value(key, value) for key, value in values.items()}

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if _normalize_key(str(key)) in SENSITIVE_KEYS:
            return REDACTED
        if isinstance(value, dict):
            return self.sanitize_values(value)
        if isinstance(value, list):
            return [self.sanitize_values(item) if isinstance(item, dict) else item for item in value]
        return value

    def get_changed_fields(
        self,
        previous_values: Optional[Dict[str, Any]],
        new_values: Optional[Dict[str, Any]],
    ) -> List[str]:
        """Keys whose value differs between the two snapshots, in sorted order"""
        if not previous_values or not new_values:
            return []

        keys = set(previous_values) | set(new_values)
        return sorted(
            key for key in keys
            if key not in IGNORED_CHANGE_FIELDS
            and previous_values.get(key) != new_values.get(key)
        )

    # ==================== WRITING ====================

    async def log(
        self,
        db: AsyncSession,
        *,
        entity_type: str,
        entity_id: str,
        action: AuditAction,
        previous_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        changed_fields: Optional[Iterable[str]] = None,
        actor: Optional[AuditActor] = None,
        reason: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Add an audit entry to the current transaction (no commit).

        Args:
            db: Database session the audited change lives in
            entity_type: Entity name, e.g. 'Certificate'
            entity_id: ID of the affected entity
            action: What happened
            previous_values: State before the change (None for CREATE)
            new_values: State after the change
            changed_fields: Explicit list, computed from the values when omitted
            actor: Who did it
            reason: Free-text justification given by the actor

        Returns:
            The pending AuditLog
        """
        previous_values = self.sanitize_values(previous_values)
        new_values = self.sanitize_values(new_values)
        if changed_fields is None:
            changed_fields = self.get_changed_fields(previous_values, new_values)

        actor = actor or AuditActor()
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            previous_values=previous_values,
            new_values=new_values,
            changed_fields=list(changed_fields) or None,
            performed_by_id=actor.user_id,
            performed_by_email=actor.email,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            reason=reason,
            extra_data=extra_data,
        )
        db.add(entry)

        logger.debug(
            f"Audit {action.value} {entity_type}:{entity_id}",
            extra={
                "event_type": "audit",
                "audit_action": action.value,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "performed_by": actor.user_id,
            }
        )
        return entry

    # ==================== READING ====================

    async def get_log(self, db: AsyncSession, log_id: str) -> Optional[AuditLog]:
        """Get a single audit entry"""
        return await db.get(AuditLog, str(log_id))

    async def get_entity_history(
        self,
        db: AsyncSession,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """Most recent entries for one entity, newest first"""
        limit = limit or settings.AUDIT_LOG_ENTITY_HISTORY_LIMIT
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_logs(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        performed_by_id: Optional[str] = None,
        performed_by_email: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[List[AuditLog], int]:
        """
        List audit entries with filters and pagination

        Returns:
            Tuple of (entries, total count)
        """
        conditions = []
        if entity_type:
            conditions.append(AuditLog.entity_type == entity_type)
        if entity_id:
            conditions.append(AuditLog.entity_id == str(entity_id))
        if action:
            conditions.append(AuditLog.action == action)
        if performed_by_id:
            conditions.append(AuditLog.performed_by_id == str(performed_by_id))
        if performed_by_email:
            conditions.append(AuditLog.performed_by_email == performed_by_email)
        if date_from:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to:
            conditions.append(AuditLog.created_at <= date_to)

        page_size = min(page_size, settings.AUDIT_LOG_MAX_PAGE_SIZE)

        count_query = select(func.count(AuditLog.id)).where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        query = (
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        return list(result.scalars().all()), total


# Singleton instance
audit_service = AuditService()
