"""
Unit Tests for Certificate Service
Tests for: issue, revoke, reissue, bulk reissue, atomicity with the audit trail
"""
import re
import uuid
import pytest
from sqlalchemy import select, update, func

from app.core.config import settings
from app.core.exceptions import (
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
from app.models.audit_log import AuditLog, AuditAction
from app.models.certificate import (
    Certificate,
    CertificateOwner,
    CertificateOwnerType,
    CertificateStatus,
    CertificateType,
    OWNER_REFERENCE_COLUMNS,
)
from app.models.event import BlockEnrollmentStatus
from app.services.audit_service import audit_service
from app.services.certificate_service import certificate_service, UNEXPECTED_ITEM_ERROR


CODE_PATTERN = re.compile(r"^CIP-\d{4}-[A-Z0-9]{5}$")


async def audit_entries(db, certificate_id, action=None):
    query = select(AuditLog).where(AuditLog.entity_id == str(certificate_id))
    if action is not None:
        query = query.where(AuditLog.action == action)
    result = await db.execute(query)
    return list(result.scalars().all())


async def certificate_count(db):
    return (await db.execute(select(func.count(Certificate.id)))).scalar()


class TestIssueCertificate:
    """Test certificate issuance"""

    @pytest.mark.asyncio
    async def test_issue_attendee_certificate(self, db_session, event, registration, admin_actor):
        """Issuing to an attendee creates version 1 with an empty history"""
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id,
            owner_type=CertificateOwnerType.ATTENDEE,
            owner_id=registration.id,
            actor=admin_actor,
        )

        assert certificate.version == 1
        assert certificate.version_history == []
        assert certificate.status == CertificateStatus.ACTIVE
        assert certificate.certificate_type == CertificateType.ATTENDANCE
        assert certificate.owner_type == CertificateOwnerType.ATTENDEE
        assert certificate.registration_id == registration.id
        assert certificate.speaker_id is None
        assert certificate.user_id is None
        assert certificate.block_enrollment_id is None
        assert certificate.session_id is None
        assert certificate.lock_version == 1
        assert CODE_PATTERN.match(certificate.validation_code)
        assert certificate.snapshot["recipient_name"] == registration.attendee_name
        assert certificate.snapshot["event_name"] == event.title
        assert certificate.snapshot["hours"] == 8

    @pytest.mark.asyncio
    async def test_issue_writes_one_create_audit_entry(self, db_session, attendee_certificate, admin_actor):
        """The CREATE entry is committed with the certificate"""
        entries = await audit_entries(db_session, attendee_certificate.id)

        assert len(entries) == 1
        assert entries[0].action == AuditAction.CREATE
        assert entries[0].entity_type == "Certificate"
        assert entries[0].performed_by_id == admin_actor.user_id
        assert entries[0].performed_by_email == admin_actor.email
        assert entries[0].previous_values is None
        assert entries[0].new_values["status"] == "ACTIVE"
        assert entries[0].new_values["owner_type"] == "ATTENDEE"

    @pytest.mark.asyncio
    async def test_certificate_type_defaults_from_owner(self, speaker_certificate):
        """Speaker certificates default to the SPEAKER type"""
        assert speaker_certificate.certificate_type == CertificateType.SPEAKER
        assert speaker_certificate.owner_id == speaker_certificate.speaker_id

    @pytest.mark.asyncio
    async def test_issue_block_enrollment_certificate(self, db_session, event, block_enrollment, admin_actor):
        """Block enrollment certificates snapshot the block and grade"""
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id,
            owner_type=CertificateOwnerType.BLOCK_ENROLLMENT,
            owner_id=block_enrollment.id,
            actor=admin_actor,
        )

        assert certificate.certificate_type == CertificateType.APPROVAL
        assert certificate.block_enrollment_id == block_enrollment.id
        assert certificate.snapshot["block_name"] == "Structural Design Workshop"
        assert certificate.snapshot["hours"] == 16
        assert certificate.snapshot["final_grade"] == 17.5

    @pytest.mark.asyncio
    async def test_issue_organizer_certificate(self, db_session, event, organizer_user, admin_actor):
        """Organizer certificates reference the user row"""
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id,
            owner_type=CertificateOwnerType.ORGANIZER,
            owner_id=organizer_user.id,
            actor=admin_actor,
        )

        assert certificate.user_id == organizer_user.id
        assert certificate.certificate_type == CertificateType.ORGANIZER
        assert certificate.snapshot["recipient_email"] == organizer_user.email

    @pytest.mark.asyncio
    async def test_issue_session_certificate_with_recipient_name(self, db_session, event, event_session, admin_actor):
        """Session certificates take the recipient name from the request"""
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id,
            owner_type=CertificateOwnerType.SESSION,
            owner_id=event_session.id,
            recipient_name="Ana Quispe",
            actor=admin_actor,
        )

        assert certificate.session_id == event_session.id
        assert certificate.certificate_type == CertificateType.SESSION_ATTENDANCE
        assert certificate.snapshot["recipient_name"] == "Ana Quispe"
        assert certificate.snapshot["session_title"] == event_session.title

    @pytest.mark.asyncio
    async def test_issue_unapproved_block_enrollment(self, db_session, event, block_enrollment, admin_actor):
        """Approval certificates need an APPROVED enrollment"""
        block_enrollment.status = BlockEnrollmentStatus.IN_PROGRESS
        await db_session.commit()

        with pytest.raises(OwnerNotEligibleError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id=event.id,
                owner_type=CertificateOwnerType.BLOCK_ENROLLMENT,
                owner_id=block_enrollment.id,
                actor=admin_actor,
            )

        assert exc_info.value.details["owner_status"] == "IN_PROGRESS"
        assert await certificate_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_issue_accepts_uppercase_ids(self, db_session, event, registration, admin_actor):
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id.upper(),
            owner_type=CertificateOwnerType.ATTENDEE,
            owner_id=registration.id.upper(),
            actor=admin_actor,
        )

        assert certificate.event_id == event.id
        assert certificate.registration_id == registration.id

    @pytest.mark.asyncio
    async def test_issue_malformed_event_id(self, db_session, registration, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id="event-42",
                owner_type=CertificateOwnerType.ATTENDEE,
                owner_id=registration.id,
                actor=admin_actor,
            )

        assert exc_info.value.details == {"field": "event_id"}

    @pytest.mark.asyncio
    async def test_issue_unknown_event(self, db_session, registration, admin_actor):
        """Unknown event is reported as not found"""
        with pytest.raises(EventNotFoundError):
            await certificate_service.issue_certificate(
                db_session,
                event_id=str(uuid.uuid4()),
                owner_type=CertificateOwnerType.ATTENDEE,
                owner_id=registration.id,
                actor=admin_actor,
            )

        assert await certificate_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_issue_unknown_owner(self, db_session, event, admin_actor):
        """Unknown owner row is reported as not found"""
        with pytest.raises(CertificateOwnerNotFoundError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id=event.id,
                owner_type=CertificateOwnerType.SPEAKER,
                owner_id=str(uuid.uuid4()),
                actor=admin_actor,
            )

        assert exc_info.value.details["owner_type"] == "SPEAKER"

    @pytest.mark.asyncio
    async def test_issue_owner_from_another_event(self, db_session, other_event, registration, admin_actor):
        """A registration can only receive certificates of its own event"""
        with pytest.raises(ValidationError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id=other_event.id,
                owner_type=CertificateOwnerType.ATTENDEE,
                owner_id=registration.id,
                actor=admin_actor,
            )

        assert exc_info.value.details["field"] == "owner_id"

    @pytest.mark.asyncio
    async def test_issue_unknown_owner_type(self, db_session, event, admin_actor):
        """Owner types outside the closed set are rejected"""
        with pytest.raises(InvalidOwnerConfigurationError):
            await certificate_service.issue_certificate(
                db_session,
                event_id=event.id,
                owner_type="VOLUNTEER",
                owner_id=str(uuid.uuid4()),
                actor=admin_actor,
            )


class TestOwnerConstraintTranslation:
    """Database constraint violations surface as domain errors"""

    @pytest.mark.parametrize("column", ["speaker_id", None])
    @pytest.mark.asyncio
    async def test_owner_check_violation_becomes_invalid_owner_configuration(
        self, db_session, event, registration, admin_actor, monkeypatch, column
    ):
        """Inconsistent owner columns are rejected by the CHECK and reported as 400"""
        def broken_reference_columns(owner):
            columns = {name: None for name in OWNER_REFERENCE_COLUMNS.values()}
            if column:
                columns[column] = owner.owner_id
            return columns

        monkeypatch.setattr(CertificateOwner, "reference_columns", broken_reference_columns)

        with pytest.raises(InvalidOwnerConfigurationError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id=event.id,
                owner_type=CertificateOwnerType.ATTENDEE,
                owner_id=registration.id,
                actor=admin_actor,
            )

        assert exc_info.value.status_code == 400
        assert "CHECK" not in exc_info.value.message
        assert await certificate_count(db_session) == 0
        assert (await db_session.execute(select(func.count(AuditLog.id)))).scalar() == 0

    @pytest.mark.asyncio
    async def test_duplicate_validation_code_becomes_integrity_error(
        self, db_session, event, registration, attendee_certificate, admin_actor, monkeypatch
    ):
        """Other constraint violations are reported as a generic conflict"""
        existing_code = attendee_certificate.validation_code
        event_id = event.id
        registration_id = registration.id

        async def colliding_code(db):
            return existing_code

        monkeypatch.setattr(certificate_service, "_generate_validation_code", colliding_code)

        with pytest.raises(CertificateIntegrityError) as exc_info:
            await certificate_service.issue_certificate(
                db_session,
                event_id=event_id,
                owner_type=CertificateOwnerType.ATTENDEE,
                owner_id=registration_id,
                actor=admin_actor,
            )

        assert exc_info.value.status_code == 409
        assert "UNIQUE" not in exc_info.value.message
        assert await certificate_count(db_session) == 1


class TestRevokeCertificate:
    """Test certificate revocation"""

    @pytest.mark.asyncio
    async def test_revoke_sets_revocation_state(self, db_session, attendee_certificate, admin_actor):
        """Revoke stamps time, reason and actor"""
        certificate = await certificate_service.revoke_certificate(
            db_session, attendee_certificate.id, "event cancelled", admin_actor
        )

        assert certificate.status == CertificateStatus.REVOKED
        assert certificate.revoked_at is not None
        assert certificate.revoked_reason == "event cancelled"
        assert certificate.revoked_by_id == admin_actor.user_id

    @pytest.mark.asyncio
    async def test_revoke_writes_one_audit_entry(self, db_session, attendee_certificate, admin_actor):
        """Exactly one REVOKE entry with the before and after state"""
        await certificate_service.revoke_certificate(
            db_session, attendee_certificate.id, "event cancelled", admin_actor
        )

        entries = await audit_entries(db_session, attendee_certificate.id, AuditAction.REVOKE)

        assert len(entries) == 1
        assert entries[0].reason == "event cancelled"
        assert entries[0].previous_values["status"] == "ACTIVE"
        assert entries[0].new_values["status"] == "REVOKED"
        assert "status" in entries[0].changed_fields
        assert "revoked_at" in entries[0].changed_fields
        assert entries[0].ip_address == "127.0.0.1"

    @pytest.mark.asyncio
    async def test_revoke_twice_fails(self, db_session, attendee_certificate, admin_actor):
        """A second revoke is a hard error and changes nothing"""
        certificate_id = attendee_certificate.id
        await certificate_service.revoke_certificate(db_session, certificate_id, "event cancelled", admin_actor)

        with pytest.raises(CertificateAlreadyRevokedError):
            await certificate_service.revoke_certificate(db_session, certificate_id, "again", admin_actor)

        certificate = await db_session.get(Certificate, certificate_id)
        await db_session.refresh(certificate)
        assert certificate.revoked_reason == "event cancelled"
        assert len(await audit_entries(db_session, certificate_id, AuditAction.REVOKE)) == 1

    @pytest.mark.asyncio
    async def test_revoke_unknown_certificate(self, db_session, admin_actor):
        """Unknown id is reported as not found"""
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.revoke_certificate(db_session, str(uuid.uuid4()), "reason", admin_actor)

    @pytest.mark.asyncio
    async def test_revoke_malformed_id(self, db_session, admin_actor):
        """Malformed ids are a validation error, not a missing certificate"""
        with pytest.raises(ValidationError):
            await certificate_service.revoke_certificate(db_session, "not-a-uuid", "reason", admin_actor)

    @pytest.mark.asyncio
    async def test_revoke_requires_reason(self, db_session, attendee_certificate, admin_actor):
        """Blank reasons are rejected"""
        with pytest.raises(ValidationError):
            await certificate_service.revoke_certificate(db_session, attendee_certificate.id, "   ", admin_actor)


class TestReissueCertificate:
    """Test certificate reissue and version history"""

    @pytest.mark.asyncio
    async def test_reissue_archives_previous_version(self, db_session, attendee_certificate, admin_actor):
        """Reissue bumps the version and archives the prior state"""
        previous_code = attendee_certificate.validation_code
        previous_snapshot = dict(attendee_certificate.snapshot)

        certificate = await certificate_service.reissue_certificate(
            db_session, attendee_certificate.id, "typo in name", admin_actor
        )

        assert certificate.version == 2
        assert len(certificate.version_history) == 1
        assert certificate.last_reissued_at is not None
        assert certificate.last_reissued_by_id == admin_actor.user_id
        assert certificate.pdf_url is None
        assert certificate.validation_code == previous_code

        entry = certificate.version_history[0]
        assert entry["version"] == 1
        assert entry["reason"] == "typo in name"
        assert entry["reissued_by_id"] == admin_actor.user_id
        assert entry["owner_type"] == "ATTENDEE"
        assert entry["owner_id"] == certificate.registration_id
        assert entry["pdf_url"] == "https://files.cip.org.pe/certificates/v1.pdf"
        assert entry["snapshot"] == previous_snapshot

    @pytest.mark.asyncio
    async def test_reissue_writes_one_audit_entry(self, db_session, attendee_certificate, admin_actor):
        """Exactly one REISSUE entry per successful reissue"""
        await certificate_service.reissue_certificate(
            db_session, attendee_certificate.id, "typo in name", admin_actor
        )

        entries = await audit_entries(db_session, attendee_certificate.id, AuditAction.REISSUE)

        assert len(entries) == 1
        assert entries[0].previous_values["version"] == 1
        assert entries[0].new_values["version"] == 2
        assert entries[0].extra_data == {"from_version": 1, "to_version": 2}

    @pytest.mark.asyncio
    async def test_versions_increase_monotonically(self, db_session, attendee_certificate, admin_actor):
        """Each reissue adds one history entry and one version"""
        for expected_version in (2, 3, 4):
            certificate = await certificate_service.reissue_certificate(
                db_session, attendee_certificate.id, f"fix {expected_version}", admin_actor
            )
            assert certificate.version == expected_version
            assert len(certificate.version_history) == certificate.version - 1

        assert [entry["version"] for entry in certificate.version_history] == [1, 2, 3]
        assert certificate.owner_type == CertificateOwnerType.ATTENDEE

    @pytest.mark.asyncio
    async def test_reissue_refreshes_snapshot_from_owner(
        self, db_session, attendee_certificate, registration, admin_actor
    ):
        """Corrected owner data shows up in the new version only"""
        old_name = registration.attendee_name
        registration.attendee_name = "Corrected Name"
        await db_session.commit()

        certificate = await certificate_service.reissue_certificate(
            db_session, attendee_certificate.id, "typo in name", admin_actor
        )

        assert certificate.snapshot["recipient_name"] == "Corrected Name"
        assert certificate.version_history[0]["snapshot"]["recipient_name"] == old_name

    @pytest.mark.asyncio
    async def test_reissue_keeps_recipient_name_override(
        self, db_session, event, registration, admin_actor
    ):
        """A name given at issue time survives reissues, other data is refreshed"""
        certificate = await certificate_service.issue_certificate(
            db_session,
            event_id=event.id,
            owner_type=CertificateOwnerType.ATTENDEE,
            owner_id=registration.id,
            recipient_name="Ing. Rosa Huamán",
            actor=admin_actor,
        )
        certificate_id = certificate.id
        registration.attendee_email = "rosa.huaman@cip.org.pe"
        await db_session.commit()

        certificate = await certificate_service.reissue_certificate(
            db_session, certificate_id, "new email", admin_actor
        )

        assert certificate.snapshot["recipient_name"] == "Ing. Rosa Huamán"
        assert certificate.snapshot["recipient_email"] == "rosa.huaman@cip.org.pe"

    @pytest.mark.asyncio
    async def test_reissue_without_override_takes_owner_name(
        self, db_session, attendee_certificate, registration, admin_actor
    ):
        assert "recipient_name_override" not in attendee_certificate.snapshot
        registration.attendee_name = "Updated Name"
        await db_session.commit()

        certificate = await certificate_service.reissue_certificate(
            db_session, attendee_certificate.id, "name change", admin_actor
        )

        assert certificate.snapshot["recipient_name"] == "Updated Name"

    @pytest.mark.asyncio
    async def test_reissue_accepts_uppercase_id(self, db_session, attendee_certificate, admin_actor):
        certificate_id = attendee_certificate.id

        certificate = await certificate_service.reissue_certificate(
            db_session, certificate_id.upper(), "typo", admin_actor
        )

        assert certificate.id == certificate_id
        assert certificate.version == 2

    @pytest.mark.asyncio
    async def test_reissue_malformed_id(self, db_session, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            await certificate_service.reissue_certificate(db_session, "not-a-uuid", "typo", admin_actor)

        assert exc_info.value.details == {"field": "certificate_id"}

    @pytest.mark.asyncio
    async def test_reissue_revoked_certificate_fails(self, db_session, attendee_certificate, admin_actor):
        """Revoked certificates are terminal"""
        certificate_id = attendee_certificate.id
        await certificate_service.revoke_certificate(db_session, certificate_id, "fraud", admin_actor)

        with pytest.raises(CertificateRevokedError):
            await certificate_service.reissue_certificate(db_session, certificate_id, "retry", admin_actor)

        certificate = await db_session.get(Certificate, certificate_id)
        await db_session.refresh(certificate)
        assert certificate.version == 1
        assert certificate.version_history == []
        assert certificate.status == CertificateStatus.REVOKED

    @pytest.mark.asyncio
    async def test_reissue_unknown_certificate(self, db_session, admin_actor):
        """Unknown id is reported as not found"""
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.reissue_certificate(db_session, str(uuid.uuid4()), "reason", admin_actor)


class TestAtomicity:
    """Mutation and audit entry commit or roll back together"""

    @pytest.mark.asyncio
    async def test_audit_failure_rolls_back_reissue(self, db_session, attendee_certificate, admin_actor, monkeypatch):
        """A failing audit write leaves the certificate untouched"""
        certificate_id = attendee_certificate.id

        async def failing_log(db, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit_service, "log", failing_log)

        with pytest.raises(RuntimeError):
            await certificate_service.reissue_certificate(db_session, certificate_id, "typo", admin_actor)

        certificate = await db_session.get(Certificate, certificate_id)
        await db_session.refresh(certificate)
        assert certificate.version == 1
        assert certificate.version_history == []
        assert certificate.last_reissued_at is None
        assert await audit_entries(db_session, certificate_id, AuditAction.REISSUE) == []

    @pytest.mark.asyncio
    async def test_audit_failure_rolls_back_revoke(self, db_session, attendee_certificate, admin_actor, monkeypatch):
        """A failing audit write leaves the certificate active"""
        certificate_id = attendee_certificate.id

        async def failing_log(db, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit_service, "log", failing_log)

        with pytest.raises(RuntimeError):
            await certificate_service.revoke_certificate(db_session, certificate_id, "fraud", admin_actor)

        certificate = await db_session.get(Certificate, certificate_id)
        await db_session.refresh(certificate)
        assert certificate.status == CertificateStatus.ACTIVE
        assert certificate.revoked_at is None

    @pytest.mark.asyncio
    async def test_stale_lock_version_is_a_conflict(self, db_session, attendee_certificate, admin_actor, monkeypatch):
        """A concurrent write between read and commit is detected"""
        certificate_id = attendee_certificate.id
        table = Certificate.__table__
        original_log = audit_service.log

        async def racing_log(db, **kwargs):
            # Another writer commits first and bumps the lock counter
            await db.execute(
                update(table)
                .where(table.c.id == certificate_id)
                .values(lock_version=table.c.lock_version + 1)
            )
            return await original_log(db, **kwargs)

        monkeypatch.setattr(audit_service, "log", racing_log)

        with pytest.raises(ConcurrentModificationError):
            await certificate_service.reissue_certificate(db_session, certificate_id, "typo", admin_actor)

        certificate = await db_session.get(Certificate, certificate_id)
        await db_session.refresh(certificate)
        assert certificate.version == 1
        assert certificate.version_history == []
        assert await audit_entries(db_session, certificate_id, AuditAction.REISSUE) == []

    @pytest.mark.asyncio
    async def test_lock_version_advances_on_each_write(self, db_session, attendee_certificate, admin_actor):
        """Every committed mutation bumps the optimistic lock counter"""
        certificate = await certificate_service.reissue_certificate(
            db_session, attendee_certificate.id, "typo", admin_actor
        )
        assert certificate.lock_version == 2

        certificate = await certificate_service.revoke_certificate(
            db_session, attendee_certificate.id, "fraud", admin_actor
        )
        assert certificate.lock_version == 3


class TestBulkReissue:
    """Test bulk reissue with partial failures"""

    @pytest.mark.asyncio
    async def test_bulk_reissue_partial_failure(
        self, db_session, attendee_certificate, speaker_certificate, admin_actor
    ):
        """One missing id fails alone, the others are reissued in input order"""
        first_id = attendee_certificate.id
        missing_id = str(uuid.uuid4())
        third_id = speaker_certificate.id

        report = await certificate_service.bulk_reissue_certificates(
            db_session, [first_id, missing_id, third_id], "batch fix", admin_actor
        )

        assert report["total"] == 3
        assert report["successful"] == 2
        assert report["failed"] == 1
        assert [item["certificate_id"] for item in report["results"]] == [first_id, missing_id, third_id]
        assert report["results"][0] == {"certificate_id": first_id, "success": True, "new_version": 2}
        assert report["results"][1]["success"] is False
        assert "not found" in report["results"][1]["error"]
        assert report["results"][1]["error_code"] == "CERTIFICATE_NOT_FOUND"
        assert report["results"][2] == {"certificate_id": third_id, "success": True, "new_version": 2}

    @pytest.mark.asyncio
    async def test_bulk_reissue_one_audit_entry_per_success(
        self, db_session, attendee_certificate, speaker_certificate, admin_actor
    ):
        """Failed items leave no audit trace"""
        first_id = attendee_certificate.id
        second_id = speaker_certificate.id
        await certificate_service.revoke_certificate(db_session, second_id, "fraud", admin_actor)

        report = await certificate_service.bulk_reissue_certificates(
            db_session, [first_id, second_id], "batch fix", admin_actor
        )

        assert report["successful"] == 1
        assert report["results"][1]["error_code"] == "CERTIFICATE_REVOKED"
        assert len(await audit_entries(db_session, first_id, AuditAction.REISSUE)) == 1
        assert len(await audit_entries(db_session, second_id, AuditAction.REISSUE)) == 0

    @pytest.mark.asyncio
    async def test_bulk_reissue_duplicates_processed_separately(self, db_session, attendee_certificate, admin_actor):
        """A repeated id is reissued once per occurrence"""
        certificate_id = attendee_certificate.id

        report = await certificate_service.bulk_reissue_certificates(
            db_session, [certificate_id, certificate_id], "batch fix", admin_actor
        )

        assert report["successful"] == 2
        assert [item["new_version"] for item in report["results"]] == [2, 3]

    @pytest.mark.asyncio
    async def test_bulk_reissue_unexpected_error_is_generic(
        self, db_session, attendee_certificate, admin_actor, monkeypatch
    ):
        """Unexpected failures are reported without internal details"""
        certificate_id = attendee_certificate.id

        async def failing_log(db, **kwargs):
            raise RuntimeError("connection reset by peer")

        monkeypatch.setattr(audit_service, "log", failing_log)

        report = await certificate_service.bulk_reissue_certificates(
            db_session, [certificate_id], "batch fix", admin_actor
        )

        assert report["failed"] == 1
        assert report["results"][0]["error"] == UNEXPECTED_ITEM_ERROR
        assert report["results"][0]["error_code"] == "INTERNAL_ERROR"

    @pytest.mark.asyncio
    async def test_bulk_reissue_rejects_empty_list(self, db_session, admin_actor):
        with pytest.raises(ValidationError):
            await certificate_service.bulk_reissue_certificates(db_session, [], "batch fix", admin_actor)

    @pytest.mark.asyncio
    async def test_bulk_reissue_rejects_malformed_ids(self, db_session, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            await certificate_service.bulk_reissue_certificates(
                db_session, [str(uuid.uuid4()), "not-a-uuid"], "batch fix", admin_actor
            )

        assert "not-a-uuid" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_bulk_reissue_rejects_blank_reason(self, db_session, admin_actor):
        with pytest.raises(ValidationError):
            await certificate_service.bulk_reissue_certificates(
                db_session, [str(uuid.uuid4())], "", admin_actor
            )

    @pytest.mark.asyncio
    async def test_bulk_reissue_enforces_max_items(self, db_session, admin_actor, monkeypatch):
        monkeypatch.setattr(settings, "BULK_REISSUE_MAX_ITEMS", 2)

        with pytest.raises(ValidationError):
            await certificate_service.bulk_reissue_certificates(
                db_session, [str(uuid.uuid4()) for _ in range(3)], "batch fix", admin_actor
            )


class TestReadOperations:
    """Test lookups, validation by code and version history"""

    @pytest.mark.asyncio
    async def test_get_unknown_certificate(self, db_session):
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.get_certificate(db_session, str(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_get_certificate_uppercase_id(self, db_session, attendee_certificate):
        certificate = await certificate_service.get_certificate(db_session, attendee_certificate.id.upper())

        assert certificate.id == attendee_certificate.id

    @pytest.mark.asyncio
    async def test_get_certificate_malformed_id(self, db_session):
        with pytest.raises(ValidationError):
            await certificate_service.get_certificate(db_session, "12345")

    @pytest.mark.asyncio
    async def test_list_filters_by_owner_type(self, db_session, attendee_certificate, speaker_certificate):
        """Owner type filter narrows the list"""
        items, total = await certificate_service.list_certificates(
            db_session, owner_type=CertificateOwnerType.SPEAKER
        )

        assert total == 1
        assert items[0].id == speaker_certificate.id

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, db_session, attendee_certificate, speaker_certificate, admin_actor):
        await certificate_service.revoke_certificate(db_session, speaker_certificate.id, "fraud", admin_actor)

        items, total = await certificate_service.list_certificates(
            db_session, status=CertificateStatus.ACTIVE
        )

        assert total == 1
        assert items[0].id == attendee_certificate.id

    @pytest.mark.asyncio
    async def test_validate_active_certificate(self, db_session, attendee_certificate):
        """Codes are matched case-insensitively"""
        result = await certificate_service.validate_by_code(
            db_session, attendee_certificate.validation_code.lower()
        )

        assert result["is_valid"] is True
        assert result["status"] == CertificateStatus.ACTIVE
        assert result["certificate"]["version"] == 1
        assert result["certificate"]["verify_url"].endswith(attendee_certificate.validation_code)

    @pytest.mark.asyncio
    async def test_validate_revoked_certificate(self, db_session, attendee_certificate, admin_actor):
        await certificate_service.revoke_certificate(db_session, attendee_certificate.id, "fraud", admin_actor)

        result = await certificate_service.validate_by_code(db_session, attendee_certificate.validation_code)

        assert result["is_valid"] is False
        assert result["status"] == CertificateStatus.REVOKED
        assert result["revocation"]["reason"] == "fraud"

    @pytest.mark.asyncio
    async def test_validate_unknown_code(self, db_session):
        result = await certificate_service.validate_by_code(db_session, "CIP-2020-ZZZZZ")

        assert result["is_valid"] is False
        assert result["status"] is None

    @pytest.mark.asyncio
    async def test_version_history_ends_with_current(self, db_session, attendee_certificate, admin_actor):
        """History lists archived versions then the current one"""
        await certificate_service.reissue_certificate(db_session, attendee_certificate.id, "typo", admin_actor)

        versions = await certificate_service.get_version_history(db_session, attendee_certificate.id)

        assert [entry["version"] for entry in versions] == [1, 2]
        assert [entry["is_current"] for entry in versions] == [False, True]
        assert versions[0]["reason"] == "typo"
