from app.services.audit_service import AuditService, AuditActor, audit_service
from app.services.certificate_service import CertificateService, certificate_service

__all__ = [
    "AuditService",
    "AuditActor",
    "audit_service",
    "CertificateService",
    "certificate_service",
]
