"""
Certificate API Endpoints

Endpoints:
- POST /certificates - Issue a certificate (Admin)
- GET /certificates - List certificates (Admin)
- GET /certificates/verify/{code} - Public validation by code
- POST /certificates/bulk-reissue - Reissue many certificates (Admin)
- POST /certificates/issue-batch/{event_id} - Attendance certificates for attended registrations (Admin)
- POST /certificates/issue-batch/{event_id}/approval - Approval certificates for approved enrollments (Admin)
- GET /certificates/{id} - Get a certificate (Admin)
- GET /certificates/{id}/versions - Version history (Admin)
- POST /certificates/{id}/reissue - Reissue (Admin)
- POST /certificates/{id}/revoke - Revoke (Admin)

Domain errors raised by the service are rendered by the application's
CipEventosError handler. Malformed ids in the path are rejected with 400
VALIDATION_ERROR.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import math

from app.core.database import get_db
from app.models.certificate import CertificateOwnerType, CertificateStatus
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin, get_admin_actor
from app.services.audit_service import AuditActor
from app.services.certificate_service import certificate_service, normalize_certificate_id
from app.schemas.certificate import (
    CertificateIssueRequest,
    CertificateRevokeRequest,
    CertificateReissueRequest,
    BulkReissueRequest,
    CertificateResponse,
    CertificateListResponse,
    CertificateVersionHistoryResponse,
    BulkReissueResponse,
    BatchIssueResponse,
    CertificateValidationResponse,
)

router = APIRouter(prefix="/certificates", tags=["Certificates"])


@router.post("", response_model=CertificateResponse, status_code=status.HTTP_201_CREATED)
async def issue_certificate(
    request: CertificateIssueRequest,
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """Issue a certificate to an attendee, speaker, organizer, block enrollment or session"""
    return await certificate_service.issue_certificate(
        db=db,
        event_id=request.event_id,
        owner_type=request.owner_type,
        owner_id=request.owner_id,
        certificate_type=request.certificate_type,
        pdf_url=request.pdf_url,
        recipient_name=request.recipient_name,
        actor=actor,
    )


@router.get("", response_model=CertificateListResponse)
async def list_certificates(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    event_id: Optional[str] = None,
    owner_type: Optional[CertificateOwnerType] = None,
    certificate_status: Optional[CertificateStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List certificates with filtering and pagination"""
    certificates, total = await certificate_service.list_certificates(
        db=db,
        page=page,
        page_size=page_size,
        event_id=event_id,
        owner_type=owner_type,
        status=certificate_status,
    )
    return CertificateListResponse(
        items=[CertificateResponse.model_validate(c) for c in certificates],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/verify/{validation_code}", response_model=CertificateValidationResponse)
async def verify_certificate(
    validation_code: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Public check of a certificate by the code printed on it

    Returns is_valid=false (not 404) for unknown, revoked or expired codes.
    """
    return await certificate_service.validate_by_code(db, validation_code)


@router.post("/bulk-reissue", response_model=BulkReissueResponse)
async def bulk_reissue_certificates(
    request: BulkReissueRequest,
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Reissue several certificates with one reason

    Each certificate is processed on its own; failures are reported per item
    and the response is 200 even when every item failed.
    """
    return await certificate_service.bulk_reissue_certificates(
        db=db,
        certificate_ids=request.certificate_ids,
        reason=request.reason,
        actor=actor,
    )


@router.post("/issue-batch/{event_id}", response_model=BatchIssueResponse)
async def issue_batch_attendance_certificates(
    event_id: str,
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue attendance certificates to every confirmed registration with
    recorded attendance. Registrations that already have one are skipped.
    """
    return await certificate_service.issue_batch_attendance_certificates(
        db=db,
        event_id=event_id,
        actor=actor,
    )


@router.post("/issue-batch/{event_id}/approval", response_model=BatchIssueResponse)
async def issue_batch_approval_certificates(
    event_id: str,
    block_name: Optional[str] = Query(None, max_length=255),
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """Issue approval certificates to the APPROVED block enrollments of the event"""
    return await certificate_service.issue_batch_approval_certificates(
        db=db,
        event_id=event_id,
        block_name=block_name,
        actor=actor,
    )


@router.get("/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Get a certificate by ID"""
    return await certificate_service.get_certificate(db, certificate_id)


@router.get("/{certificate_id}/versions", response_model=CertificateVersionHistoryResponse)
async def get_certificate_versions(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Archived versions followed by the current one"""
    versions = await certificate_service.get_version_history(db, certificate_id)
    return CertificateVersionHistoryResponse(
        certificate_id=normalize_certificate_id(certificate_id),
        current_version=versions[-1]["version"],
        versions=versions,
    )


@router.post("/{certificate_id}/reissue", response_model=CertificateResponse)
async def reissue_certificate(
    certificate_id: str,
    request: CertificateReissueRequest,
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """Reissue a certificate (new version, refreshed data). Revoked certificates are rejected."""
    return await certificate_service.reissue_certificate(
        db=db,
        certificate_id=certificate_id,
        reason=request.reason,
        actor=actor,
    )


@router.post("/{certificate_id}/revoke", response_model=CertificateResponse)
async def revoke_certificate(
    certificate_id: str,
    request: CertificateRevokeRequest,
    actor: AuditActor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a certificate. This cannot be undone."""
    return await certificate_service.revoke_certificate(
        db=db,
        certificate_id=certificate_id,
        reason=request.reason,
        actor=actor,
    )
