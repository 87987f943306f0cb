# Re-export all models for convenient imports
from app.models.user import User, UserRole
from app.models.event import (
    Event,
    EventSession,
    Registration,
    RegistrationStatus,
    Speaker,
    BlockEnrollment,
    BlockEnrollmentStatus,
)
from app.models.certificate import (
    Certificate,
    CertificateOwner,
    CertificateOwnerType,
    CertificateStatus,
    CertificateType,
)
from app.models.audit_log import AuditLog, AuditAction

__all__ = [
    # User
    "User",
    "UserRole",
    # Events
    "Event",
    "EventSession",
    "Registration",
    "RegistrationStatus",
    "Speaker",
    "BlockEnrollment",
    "BlockEnrollmentStatus",
    # Certificates
    "Certificate",
    "CertificateOwner",
    "CertificateOwnerType",
    "CertificateStatus",
    "CertificateType",
    # Audit
    "AuditLog",
    "AuditAction",
]
