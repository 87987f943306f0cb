# Pydantic schemas
from app.schemas.certificate import (
    CertificateIssueRequest,
    CertificateRevokeRequest,
    CertificateReissueRequest,
    BulkReissueRequest,
    CertificateResponse,
    CertificateListResponse,
    CertificateVersionEntry,
    CertificateVersionHistoryResponse,
    BulkReissueItemResult,
    BulkReissueResponse,
    BatchIssueItemResult,
    BatchIssueResponse,
    CertificateValidationResponse,
)
from app.schemas.audit_log import AuditLogResponse, AuditLogsResponse
