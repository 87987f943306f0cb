"""
Certificate Service - Issue, revoke and reissue event certificates

Handles:
- Issuing a certificate to one of the five owner kinds
- Revocation (terminal)
- Reissue with an append-only version history
- Bulk reissue with per-item failure reporting
- Batch issuance to eligible registrations and approved block enrollments
- Read access: by id, filtered list, public validation by code, version history

Every mutation writes its audit entry in the same transaction and commits
once. On any failure the session is rolled back and the error translated
into a domain exception.
"""

import asyncio
import enum
import secrets
import string
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    CipEventosError,
    CertificateNotFoundError,
    CertificateOwnerNotFoundError,
    EventNotFoundError,
    ValidationError,
    InvalidOwnerConfigurationError,
    OwnerNotEligibleError,
    CertificateAlreadyRevokedError,
    CertificateRevokedError,
    ConcurrentModificationError,
    CertificateIntegrityError,
)
from app.core.logging_config import logger
from app.core.types import generate_uuid
from app.models.audit_log import AuditAction
from app.models.certificate import (
    Certificate,
    CertificateOwner,
    CertificateOwnerType,
    CertificateStatus,
    CertificateType,
    DEFAULT_CERTIFICATE_TYPES,
    OWNER_CONSTRAINT_NAME,
    OWNER_REFERENCE_COLUMNS,
)
from app.models.event import (
    Event,
    EventSession,
    Registration,
    RegistrationStatus,
    Speaker,
    BlockEnrollment,
    BlockEnrollmentStatus,
)
from app.models.user import User
from app.services.audit_service import audit_service, AuditActor


CERTIFICATE_ENTITY = "Certificate"
CODE_ALPHABET = string.ascii_uppercase + string.digits

OWNER_MODELS = {
    CertificateOwnerType.ATTENDEE: Registration,
    CertificateOwnerType.SPEAKER: Speaker,
    CertificateOwnerType.ORGANIZER: User,
    CertificateOwnerType.BLOCK_ENROLLMENT: BlockEnrollment,
    CertificateOwnerType.SESSION: EventSession,
}

# Owners that belong to a single event and must match the certificate's event
EVENT_SCOPED_OWNERS = {
    CertificateOwnerType.ATTENDEE,
    CertificateOwnerType.BLOCK_ENROLLMENT,
    CertificateOwnerType.SESSION,
}

UNEXPECTED_ITEM_ERROR = "Unexpected error while reissuing certificate"
UNEXPECTED_ISSUE_ERROR = "Unexpected error while issuing certificate"

# Registrations that count as attended for batch attendance certificates
ATTENDANCE_ELIGIBLE_STATUSES = (RegistrationStatus.CONFIRMED, RegistrationStatus.ATTENDED)

# Set in the snapshot when the recipient name was given at issue time
RECIPIENT_OVERRIDE_KEY = "recipient_name_override"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def _require_reason(reason: Optional[str]) -> str:
    if reason is None or not reason.strip():
        raise ValidationError("A reason is required", field="reason")
    return reason.strip()


def _normalize_uuid(value: Any, label: str, field: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValidationError(f"Invalid {label} '{value}'", field=field)


def normalize_certificate_id(certificate_id: Any) -> str:
    """Canonical lowercase form of a certificate id, ValidationError if malformed"""
    return _normalize_uuid(certificate_id, "certificate id", "certificate_id")


class CertificateService:
    """Service for the certificate lifecycle"""

    # ==================== HELPERS ====================

    def _certificate_state(self, certificate: Certificate) -> Dict[str, Any]:
        """JSON-safe view of the fields the audit trail tracks"""
        return {
            "status": _enum_value(certificate.status),
            "certificate_type": _enum_value(certificate.certificate_type),
            "owner_type": _enum_value(certificate.owner_type),
            "owner_id": certificate.owner_id,
            "event_id": certificate.event_id,
            "validation_code": certificate.validation_code,
            "version": certificate.version,
            "pdf_url": certificate.pdf_url,
            "revoked_at": _iso(certificate.revoked_at),
            "revoked_reason": certificate.revoked_reason,
            "revoked_by_id": certificate.revoked_by_id,
            "last_reissued_at": _iso(certificate.last_reissued_at),
            "last_reissued_by_id": certificate.last_reissued_by_id,
        }

    def _build_snapshot(
        self,
        event: Optional[Event],
        owner_type: CertificateOwnerType,
        owner_row: Any,
        recipient_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Recipient and event data frozen into the certificate.

        Keys with no value are left out so a refresh never erases data the
        current rows no longer provide. An explicit recipient_name wins over
        the owner row and is flagged so reissues keep it.
        """
        snapshot: Dict[str, Any] = {}
        if event is not None:
            snapshot.update({
                "event_name": event.title,
                "event_date": _iso(event.start_at),
                "hours": event.certificate_hours,
            })

        if owner_row is not None:
            if owner_type == CertificateOwnerType.ATTENDEE:
                snapshot["recipient_name"] = owner_row.attendee_name
                snapshot["recipient_email"] = owner_row.attendee_email
            elif owner_type == CertificateOwnerType.SPEAKER:
                snapshot["recipient_name"] = owner_row.full_name
                snapshot["recipient_email"] = owner_row.email
            elif owner_type == CertificateOwnerType.ORGANIZER:
                snapshot["recipient_name"] = owner_row.full_name or owner_row.email
                snapshot["recipient_email"] = owner_row.email
            elif owner_type == CertificateOwnerType.BLOCK_ENROLLMENT:
                snapshot["recipient_name"] = owner_row.attendee_name
                snapshot["recipient_email"] = owner_row.attendee_email
                snapshot["block_name"] = owner_row.block_name
                snapshot["hours"] = owner_row.hours
                if owner_row.final_grade is not None:
                    snapshot["final_grade"] = float(owner_row.final_grade)
            elif owner_type == CertificateOwnerType.SESSION:
                snapshot["session_title"] = owner_row.title
                snapshot["hours"] = owner_row.hours
                if owner_row.start_at is not None:
                    snapshot["event_date"] = _iso(owner_row.start_at)

        if recipient_name:
            snapshot["recipient_name"] = recipient_name
            snapshot[RECIPIENT_OVERRIDE_KEY] = True

        return {key: value for key, value in snapshot.items() if value is not None}

    async def _load_owner_row(self, db: AsyncSession, owner: CertificateOwner) -> Any:
        return await db.get(OWNER_MODELS[owner.owner_type], owner.owner_id)

    async def _generate_validation_code(self, db: AsyncSession) -> str:
        """CIP-<year>-<random>, retried on collision"""
        year = datetime.utcnow().year
        for _ in range(settings.CERTIFICATE_CODE_MAX_ATTEMPTS):
            suffix = "".join(
                secrets.choice(CODE_ALPHABET) for _ in range(settings.CERTIFICATE_CODE_LENGTH)
            )
            code = f"{settings.CERTIFICATE_CODE_PREFIX}-{year}-{suffix}"
            existing = await db.execute(
                select(Certificate.id).where(Certificate.validation_code == code)
            )
            if existing.scalar_one_or_none() is None:
                return code

        raise CertificateIntegrityError("Could not generate a unique validation code")

    async def _get_for_update(self, db: AsyncSession, certificate_id: str) -> Certificate:
        """Load a certificate with a row lock (PostgreSQL) and fresh column values"""
        result = await db.execute(
            select(Certificate)
            .where(Certificate.id == str(certificate_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        certificate = result.scalar_one_or_none()
        if certificate is None:
            raise CertificateNotFoundError(certificate_id)
        return certificate

    def _translate_error(self, exc: Exception, certificate_id: Optional[str]) -> Exception:
        """Map persistence errors to domain errors, leave everything else untouched"""
        if isinstance(exc, StaleDataError):
            logger.warning(
                f"Concurrent modification of certificate {certificate_id}",
                extra={"event_type": "certificate_conflict", "certificate_id": certificate_id}
            )
            return ConcurrentModificationError(certificate_id)

        if isinstance(exc, IntegrityError):
            raw_message = str(exc.orig)
            # Driver text goes to the log only, never to the client
            logger.warning(
                f"Certificate write rejected by the database: {raw_message}",
                extra={"event_type": "certificate_integrity", "certificate_id": certificate_id}
            )
            if OWNER_CONSTRAINT_NAME in raw_message:
                return InvalidOwnerConfigurationError(
                    "Certificate owner type does not match its owner reference"
                )
            return CertificateIntegrityError()

        return exc

    async def _rollback_and_raise(
        self,
        db: AsyncSession,
        exc: Exception,
        certificate_id: Optional[str],
        event: str,
    ) -> None:
        await db.rollback()
        translated = self._translate_error(exc, certificate_id)
        logger.log_certificate_event(
            event,
            certificate_id or "-",
            success=False,
            error_type=type(translated).__name__,
        )
        if translated is exc:
            raise exc
        raise translated from exc

    # ==================== ISSUE ====================

    async def issue_certificate(
        self,
        db: AsyncSession,
        event_id: str,
        owner_type: CertificateOwnerType,
        owner_id: str,
        certificate_type: Optional[CertificateType] = None,
        pdf_url: Optional[str] = None,
        recipient_name: Optional[str] = None,
        actor: Optional[AuditActor] = None,
    ) -> Certificate:
        """
        Issue a new certificate (version 1, empty history)

        Args:
            db: Database session
            event_id: Event the certificate belongs to
            owner_type: Which kind of owner receives it
            owner_id: ID of the owner row (registration, speaker, user, enrollment or session)
            certificate_type: Defaults from the owner type
            pdf_url: Rendered document, if already available
            recipient_name: Overrides the name taken from the owner row
            actor: Who is issuing it

        Returns:
            The persisted Certificate
        """
        certificate_id = generate_uuid()
        try:
            owner = CertificateOwner(owner_type, owner_id)
            owner = CertificateOwner(
                owner.owner_type, _normalize_uuid(owner.owner_id, "owner id", "owner_id")
            )
            event_id = _normalize_uuid(event_id, "event id", "event_id")

            event = await db.get(Event, event_id)
            if event is None:
                raise EventNotFoundError(event_id)

            owner_row = await self._load_owner_row(db, owner)
            if owner_row is None:
                raise CertificateOwnerNotFoundError(owner.owner_type.value, owner.owner_id)

            if owner.owner_type in EVENT_SCOPED_OWNERS and str(owner_row.event_id) != str(event.id):
                raise ValidationError(
                    f"{owner.owner_type.value} owner {owner.owner_id} does not belong to event {event.id}",
                    field="owner_id",
                )

            if (
                owner.owner_type == CertificateOwnerType.BLOCK_ENROLLMENT
                and owner_row.status != BlockEnrollmentStatus.APPROVED
            ):
                raise OwnerNotEligibleError(
                    owner.owner_type.value, owner.owner_id, _enum_value(owner_row.status)
                )

            certificate = Certificate(
                id=certificate_id,
                event_id=event.id,
                certificate_type=certificate_type or DEFAULT_CERTIFICATE_TYPES[owner.owner_type],
                status=CertificateStatus.ACTIVE,
                validation_code=await self._generate_validation_code(db),
                pdf_url=pdf_url,
                snapshot=self._build_snapshot(event, owner.owner_type, owner_row, recipient_name),
                version=1,
                version_history=[],
                issued_at=datetime.utcnow(),
            )
            certificate.assign_owner(owner)
            db.add(certificate)

            await audit_service.log(
                db,
                entity_type=CERTIFICATE_ENTITY,
                entity_id=certificate_id,
                action=AuditAction.CREATE,
                new_values=self._certificate_state(certificate),
                actor=actor,
            )
            await db.commit()
        except Exception as exc:
            await self._rollback_and_raise(db, exc, certificate_id, "issue")

        logger.log_certificate_event(
            "issued",
            certificate_id,
            validation_code=certificate.validation_code,
            owner_type=owner.owner_type.value,
        )
        return certificate

    # ==================== REVOKE ====================

    async def revoke_certificate(
        self,
        db: AsyncSession,
        certificate_id: str,
        reason: str,
        actor: Optional[AuditActor] = None,
    ) -> Certificate:
        """Revoke a certificate. Revocation is terminal."""
        actor = actor or AuditActor()
        try:
            certificate_id = normalize_certificate_id(certificate_id)
            reason = _require_reason(reason)
            certificate = await self._get_for_update(db, certificate_id)

            if certificate.revoked_at is not None or certificate.status == CertificateStatus.REVOKED:
                raise CertificateAlreadyRevokedError(certificate_id)

            previous_state = self._certificate_state(certificate)

            certificate.status = CertificateStatus.REVOKED
            certificate.revoked_at = datetime.utcnow()
            certificate.revoked_reason = reason
            certificate.revoked_by_id = actor.user_id

            await audit_service.log(
                db,
                entity_type=CERTIFICATE_ENTITY,
                entity_id=certificate.id,
                action=AuditAction.REVOKE,
                previous_values=previous_state,
                new_values=self._certificate_state(certificate),
                actor=actor,
                reason=reason,
            )
            await db.commit()
        except Exception as exc:
            await self._rollback_and_raise(db, exc, str(certificate_id), "revoke")

        logger.log_certificate_event("revoked", certificate.id, reason=reason)
        return certificate

    # ==================== REISSUE ====================

    async def reissue_certificate(
        self,
        db: AsyncSession,
        certificate_id: str,
        reason: str,
        actor: Optional[AuditActor] = None,
    ) -> Certificate:
        """
        Reissue a certificate: archive the current version, bump the version
        and refresh the snapshot from the owner's current data.

        The rendered PDF is cleared so it gets regenerated for the new version.
        """
        actor = actor or AuditActor()
        try:
            certificate_id = normalize_certificate_id(certificate_id)
            reason = _require_reason(reason)
            certificate = await self._get_for_update(db, certificate_id)

            if certificate.revoked_at is not None or certificate.status == CertificateStatus.REVOKED:
                raise CertificateRevokedError(certificate_id)

            owner = certificate.owner
            previous_state = self._certificate_state(certificate)
            now = datetime.utcnow()

            history_entry = {
                "version": certificate.version,
                "issued_at": _iso(certificate.last_reissued_at or certificate.issued_at),
                "reissued_at": _iso(now),
                "reissued_by_id": actor.user_id,
                "reason": reason,
                "owner_type": owner.owner_type.value,
                "owner_id": owner.owner_id,
                "certificate_type": _enum_value(certificate.certificate_type),
                "pdf_url": certificate.pdf_url,
                "snapshot": dict(certificate.snapshot or {}),
            }

            event = await db.get(Event, certificate.event_id)
            owner_row = await self._load_owner_row(db, owner)
            current_snapshot = certificate.snapshot or {}
            name_override = (
                current_snapshot.get("recipient_name")
                if current_snapshot.get(RECIPIENT_OVERRIDE_KEY) else None
            )
            refreshed = self._build_snapshot(event, owner.owner_type, owner_row, name_override)

            # Reassign instead of mutating so the JSON columns are flagged dirty
            certificate.version_history = [*(certificate.version_history or []), history_entry]
            certificate.snapshot = {**(certificate.snapshot or {}), **refreshed}
            certificate.version = certificate.version + 1
            certificate.pdf_url = None
            certificate.last_reissued_at = now
            certificate.last_reissued_by_id = actor.user_id

            await audit_service.log(
                db,
                entity_type=CERTIFICATE_ENTITY,
                entity_id=certificate.id,
                action=AuditAction.REISSUE,
                previous_values=previous_state,
                new_values=self._certificate_state(certificate),
                actor=actor,
                reason=reason,
                extra_data={
                    "from_version": history_entry["version"],
                    "to_version": certificate.version,
                },
            )
            await db.commit()
        except Exception as exc:
            await self._rollback_and_raise(db, exc, str(certificate_id), "reissue")

        logger.log_certificate_event(
            "reissued",
            certificate.id,
            version=certificate.version,
            reason=reason,
        )
        return certificate

    # ==================== BULK REISSUE ====================

    def _validate_bulk_request(self, certificate_ids: List[str], reason: str) -> List[str]:
        if not certificate_ids:
            raise ValidationError("At least one certificate id is required", field="certificate_ids")
        if len(certificate_ids) > settings.BULK_REISSUE_MAX_ITEMS:
            raise ValidationError(
                f"At most {settings.BULK_REISSUE_MAX_ITEMS} certificates can be reissued at once",
                field="certificate_ids",
            )
        _require_reason(reason)

        normalized = []
        for certificate_id in certificate_ids:
            normalized.append(_normalize_uuid(certificate_id, "certificate id", "certificate_ids"))
        return normalized

    async def bulk_reissue_certificates(
        self,
        db: AsyncSession,
        certificate_ids: List[str],
        reason: str,
        actor: Optional[AuditActor] = None,
    ) -> Dict[str, Any]:
        """
        Reissue many certificates, each in its own transaction.

        A failing item is reported and the loop continues. Results keep the
        input order; a repeated id is processed again as its own item.

        Returns:
            {total, successful, failed, results: [{certificate_id, success, new_version?, error?, error_code?}]}
        """
        normalized_ids = self._validate_bulk_request(certificate_ids, reason)
        actor = actor or AuditActor()
        delay = settings.BULK_REISSUE_ITEM_DELAY_MS / 1000

        logger.info(
            f"Starting bulk reissue of {len(normalized_ids)} certificates",
            extra={"event_type": "certificate_bulk_reissue", "total": len(normalized_ids)}
        )

        results: List[Dict[str, Any]] = []
        for index, certificate_id in enumerate(normalized_ids):
            try:
                certificate = await self.reissue_certificate(db, certificate_id, reason, actor)
                results.append({
                    "certificate_id": certificate_id,
                    "success": True,
                    "new_version": certificate.version,
                })
            except CipEventosError as exc:
                results.append({
                    "certificate_id": certificate_id,
                    "success": False,
                    "error": exc.message,
                    "error_code": exc.code,
                })
            except Exception as exc:
                logger.log_error_with_context(
                    exc, context="bulk_reissue", certificate_id=certificate_id
                )
                results.append({
                    "certificate_id": certificate_id,
                    "success": False,
                    "error": UNEXPECTED_ITEM_ERROR,
                    "error_code": "INTERNAL_ERROR",
                })

            if delay and index < len(normalized_ids) - 1:
                await asyncio.sleep(delay)

        successful = sum(1 for item in results if item["success"])
        report = {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

        logger.info(
            f"Bulk reissue finished: {successful} succeeded, {report['failed']} failed",
            extra={
                "event_type": "certificate_bulk_reissue",
                "total": report["total"],
                "successful": successful,
                "failed": report["failed"],
            }
        )
        return report

    # ==================== BATCH ISSUE ====================

    async def _owners_with_certificate(
        self,
        db: AsyncSession,
        owner_type: CertificateOwnerType,
        owner_ids: List[str],
    ) -> set:
        if not owner_ids:
            return set()
        column = getattr(Certificate, OWNER_REFERENCE_COLUMNS[owner_type])
        result = await db.execute(select(column).where(column.in_(owner_ids)))
        return {str(owner_id) for owner_id in result.scalars().all()}

    async def _issue_batch(
        self,
        db: AsyncSession,
        event_id: str,
        owner_type: CertificateOwnerType,
        owner_ids: List[str],
        actor: AuditActor,
    ) -> Dict[str, Any]:
        """
        Issue one certificate per owner, each in its own transaction.

        Owners already holding a certificate are skipped. A failing owner is
        reported and the loop continues.
        """
        already_issued = await self._owners_with_certificate(db, owner_type, owner_ids)
        delay = settings.BATCH_ISSUE_ITEM_DELAY_MS / 1000
        context = f"batch_issue_{owner_type.value.lower()}"

        logger.info(
            f"Starting batch issue of {len(owner_ids)} {owner_type.value} certificates for event {event_id}",
            extra={"event_type": "certificate_batch_issue", "event_id": event_id, "total": len(owner_ids)}
        )

        results: List[Dict[str, Any]] = []
        for index, owner_id in enumerate(owner_ids):
            if owner_id in already_issued:
                results.append({"owner_id": owner_id, "status": "SKIPPED"})
                continue

            try:
                certificate = await self.issue_certificate(
                    db,
                    event_id=event_id,
                    owner_type=owner_type,
                    owner_id=owner_id,
                    actor=actor,
                )
                results.append({
                    "owner_id": owner_id,
                    "status": "ISSUED",
                    "certificate_id": certificate.id,
                    "validation_code": certificate.validation_code,
                })
            except CipEventosError as exc:
                results.append({
                    "owner_id": owner_id,
                    "status": "FAILED",
                    "error": exc.message,
                    "error_code": exc.code,
                })
            except Exception as exc:
                logger.log_error_with_context(exc, context=context, owner_id=owner_id)
                results.append({
                    "owner_id": owner_id,
                    "status": "FAILED",
                    "error": UNEXPECTED_ISSUE_ERROR,
                    "error_code": "INTERNAL_ERROR",
                })

            if delay and index < len(owner_ids) - 1:
                await asyncio.sleep(delay)

        report = {
            "event_id": event_id,
            "owner_type": owner_type,
            "total": len(results),
            "issued": sum(1 for item in results if item["status"] == "ISSUED"),
            "skipped": sum(1 for item in results if item["status"] == "SKIPPED"),
            "failed": sum(1 for item in results if item["status"] == "FAILED"),
            "results": results,
        }

        logger.info(
            f"Batch issue finished for event {event_id}: {report['issued']} issued, "
            f"{report['skipped']} skipped, {report['failed']} failed",
            extra={
                "event_type": "certificate_batch_issue",
                "event_id": event_id,
                "issued": report["issued"],
                "skipped": report["skipped"],
                "failed": report["failed"],
            }
        )
        return report

    async def _require_event(self, db: AsyncSession, event_id: str) -> str:
        event_id = _normalize_uuid(event_id, "event id", "event_id")
        event = await db.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return str(event.id)

    async def issue_batch_attendance_certificates(
        self,
        db: AsyncSession,
        event_id: str,
        actor: Optional[AuditActor] = None,
    ) -> Dict[str, Any]:
        """
        Issue attendance certificates to every registration of the event that
        is confirmed (or marked attended) and has attendance recorded.

        Returns:
            {event_id, owner_type, total, issued, skipped, failed, results}
        """
        event_id = await self._require_event(db, event_id)
        result = await db.execute(
            select(Registration.id)
            .where(
                Registration.event_id == event_id,
                Registration.status.in_(ATTENDANCE_ELIGIBLE_STATUSES),
                Registration.attended == True,
            )
            .order_by(Registration.created_at, Registration.id)
        )
        owner_ids = [str(owner_id) for owner_id in result.scalars().all()]
        return await self._issue_batch(
            db, event_id, CertificateOwnerType.ATTENDEE, owner_ids, actor or AuditActor()
        )

    async def issue_batch_approval_certificates(
        self,
        db: AsyncSession,
        event_id: str,
        block_name: Optional[str] = None,
        actor: Optional[AuditActor] = None,
    ) -> Dict[str, Any]:
        """
        Issue approval certificates to every APPROVED block enrollment of the
        event, optionally limited to one block.
        """
        event_id = await self._require_event(db, event_id)
        conditions = [
            BlockEnrollment.event_id == event_id,
            BlockEnrollment.status == BlockEnrollmentStatus.APPROVED,
        ]
        if block_name:
            conditions.append(BlockEnrollment.block_name == block_name)

        result = await db.execute(
            select(BlockEnrollment.id)
            .where(*conditions)
            .order_by(BlockEnrollment.block_name, BlockEnrollment.attendee_name, BlockEnrollment.id)
        )
        owner_ids = [str(owner_id) for owner_id in result.scalars().all()]
        return await self._issue_batch(
            db, event_id, CertificateOwnerType.BLOCK_ENROLLMENT, owner_ids, actor or AuditActor()
        )

    # ==================== READS ====================

    async def get_certificate(self, db: AsyncSession, certificate_id: str) -> Certificate:
        """Get certificate by ID, raising if it does not exist"""
        certificate_id = normalize_certificate_id(certificate_id)
        certificate = await db.get(Certificate, certificate_id)
        if certificate is None:
            raise CertificateNotFoundError(certificate_id)
        return certificate

    async def list_certificates(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        event_id: Optional[str] = None,
        owner_type: Optional[CertificateOwnerType] = None,
        status: Optional[CertificateStatus] = None,
    ) -> Tuple[List[Certificate], int]:
        """
        List certificates with pagination and filters

        Returns:
            Tuple of (certificates, total count)
        """
        conditions = []
        if event_id:
            conditions.append(Certificate.event_id == _normalize_uuid(event_id, "event id", "event_id"))
        if owner_type:
            conditions.append(Certificate.owner_type == owner_type)
        if status:
            conditions.append(Certificate.status == status)

        total = (await db.execute(
            select(func.count(Certificate.id)).where(*conditions)
        )).scalar() or 0

        result = await db.execute(
            select(Certificate)
            .where(*conditions)
            .order_by(Certificate.issued_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def validate_by_code(self, db: AsyncSession, validation_code: str) -> Dict[str, Any]:
        """Public check of a certificate by its printed code"""
        result = await db.execute(
            select(Certificate).where(Certificate.validation_code == validation_code.strip().upper())
        )
        certificate = result.scalar_one_or_none()

        if certificate is None:
            return {
                "is_valid": False,
                "status": None,
                "message": "Certificate not found",
            }

        if certificate.status == CertificateStatus.REVOKED:
            return {
                "is_valid": False,
                "status": CertificateStatus.REVOKED,
                "revocation": {
                    "revoked_at": certificate.revoked_at,
                    "reason": certificate.revoked_reason,
                },
                "message": f"Certificate revoked: {certificate.revoked_reason}",
            }

        if certificate.status == CertificateStatus.EXPIRED:
            return {
                "is_valid": False,
                "status": CertificateStatus.EXPIRED,
                "message": "Certificate expired",
            }

        snapshot = certificate.snapshot or {}
        return {
            "is_valid": True,
            "status": CertificateStatus.ACTIVE,
            "certificate": {
                "validation_code": certificate.validation_code,
                "certificate_type": certificate.certificate_type,
                "recipient_name": snapshot.get("recipient_name", ""),
                "event_name": snapshot.get("event_name", ""),
                "event_date": snapshot.get("event_date"),
                "hours": snapshot.get("hours", 0),
                "issued_at": certificate.issued_at,
                "version": certificate.version,
                "verify_url": settings.get_verify_url(certificate.validation_code),
            },
            "message": "Certificate is valid",
        }

    async def get_version_history(self, db: AsyncSession, certificate_id: str) -> List[Dict[str, Any]]:
        """Archived versions, oldest first, followed by the current version"""
        certificate = await self.get_certificate(db, certificate_id)

        current = {
            "version": certificate.version,
            "issued_at": _iso(certificate.last_reissued_at or certificate.issued_at),
            "reissued_at": None,
            "reissued_by_id": None,
            "reason": None,
            "owner_type": _enum_value(certificate.owner_type),
            "owner_id": certificate.owner_id,
            "certificate_type": _enum_value(certificate.certificate_type),
            "pdf_url": certificate.pdf_url,
            "snapshot": dict(certificate.snapshot or {}),
            "is_current": True,
        }
        archived = [{**entry, "is_current": False} for entry in certificate.version_history or []]
        return [*archived, current]


# Singleton instance
certificate_service = CertificateService()
