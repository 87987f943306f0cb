"""
Certificate Schemas - Request/Response models for the certificate lifecycle
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
import uuid

from app.core.config import settings
from app.models.certificate import CertificateOwnerType, CertificateStatus, CertificateType


def _validate_uuid(value: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValueError(f"'{value}' is not a valid UUID")


def _validate_reason(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Reason cannot be blank")
    return value


# ============== Requests ==============

class CertificateIssueRequest(BaseModel):
    """Schema for issuing a certificate (Admin only)"""
    event_id: str = Field(..., description="Event the certificate belongs to")
    owner_type: CertificateOwnerType = Field(..., description="ATTENDEE, SPEAKER, ORGANIZER, BLOCK_ENROLLMENT or SESSION")
    owner_id: str = Field(..., description="ID of the registration, speaker, user, block enrollment or session")
    certificate_type: Optional[CertificateType] = Field(None, description="Defaults from the owner type")
    pdf_url: Optional[str] = Field(None, max_length=2048)
    recipient_name: Optional[str] = Field(None, max_length=255, description="Overrides the name taken from the owner")

    @field_validator('event_id', 'owner_id')
    @classmethod
    def validate_ids(cls, v):
        return _validate_uuid(v)


class CertificateReasonRequest(BaseModel):
    """Reason given for a revoke or a reissue"""
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator('reason')
    @classmethod
    def reason_not_blank(cls, v):
        return _validate_reason(v)


class CertificateRevokeRequest(CertificateReasonRequest):
    pass


class CertificateReissueRequest(CertificateReasonRequest):
    pass


class BulkReissueRequest(BaseModel):
    """Reissue several certificates with the same reason"""
    certificate_ids: List[str] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator('certificate_ids')
    @classmethod
    def validate_certificate_ids(cls, v):
        if len(v) > settings.BULK_REISSUE_MAX_ITEMS:
            raise ValueError(f"At most {settings.BULK_REISSUE_MAX_ITEMS} certificates per request")
        return [_validate_uuid(item) for item in v]

    @field_validator('reason')
    @classmethod
    def reason_not_blank(cls, v):
        return _validate_reason(v)


# ============== Responses ==============

class CertificateResponse(BaseModel):
    """Schema for certificate response"""
    id: str
    event_id: str
    certificate_type: CertificateType
    status: CertificateStatus
    validation_code: str
    pdf_url: Optional[str] = None
    snapshot: Dict[str, Any] = {}

    owner_type: CertificateOwnerType
    owner_id: Optional[str] = None
    registration_id: Optional[str] = None
    speaker_id: Optional[str] = None
    user_id: Optional[str] = None
    block_enrollment_id: Optional[str] = None
    session_id: Optional[str] = None

    version: int
    last_reissued_at: Optional[datetime] = None
    last_reissued_by_id: Optional[str] = None

    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    revoked_by_id: Optional[str] = None

    issued_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CertificateListResponse(BaseModel):
    """Paginated certificates response"""
    items: List[CertificateResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CertificateVersionEntry(BaseModel):
    """One archived (or the current) version of a certificate"""
    version: int
    issued_at: Optional[datetime] = None
    reissued_at: Optional[datetime] = None
    reissued_by_id: Optional[str] = None
    reason: Optional[str] = None
    owner_type: Optional[CertificateOwnerType] = None
    owner_id: Optional[str] = None
    certificate_type: Optional[CertificateType] = None
    pdf_url: Optional[str] = None
    snapshot: Dict[str, Any] = {}
    is_current: bool = False


class CertificateVersionHistoryResponse(BaseModel):
    certificate_id: str
    current_version: int
    versions: List[CertificateVersionEntry]


class BulkReissueItemResult(BaseModel):
    certificate_id: str
    success: bool
    new_version: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class BulkReissueResponse(BaseModel):
    """Per-item outcome of a bulk reissue"""
    total: int
    successful: int
    failed: int
    results: List[BulkReissueItemResult]


class BatchIssueItemResult(BaseModel):
    owner_id: str
    status: str  # ISSUED, SKIPPED or FAILED
    certificate_id: Optional[str] = None
    validation_code: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class BatchIssueResponse(BaseModel):
    """Per-owner outcome of a batch issue for an event"""
    event_id: str
    owner_type: CertificateOwnerType
    total: int
    issued: int
    skipped: int
    failed: int
    results: List[BatchIssueItemResult]


# ============== Public validation ==============

class RevocationInfo(BaseModel):
    revoked_at: Optional[datetime] = None
    reason: Optional[str] = None


class ValidatedCertificate(BaseModel):
    validation_code: str
    certificate_type: CertificateType
    recipient_name: str = ""
    event_name: str = ""
    event_date: Optional[str] = None
    hours: float = 0
    issued_at: datetime
    version: int
    verify_url: str


class CertificateValidationResponse(BaseModel):
    """Result of checking a certificate by its public code"""
    is_valid: bool
    status: Optional[CertificateStatus] = None
    message: str
    revocation: Optional[RevocationInfo] = None
    certificate: Optional[ValidatedCertificate] = None
