"""
Custom Exceptions for CIP Eventos
=================================

Services raise these instead of HTTPException so the same rules hold whether
an operation is called from an endpoint, a script or a bulk loop. The API
layer renders them through `error_response()`.

Usage:
    from app.core.exceptions import CertificateNotFoundError

    if not certificate:
        raise CertificateNotFoundError(certificate_id)
"""

from typing import Optional, Any, Dict


class CipEventosError(Exception):
    """Base exception for all CIP Eventos errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(CipEventosError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class CertificateNotFoundError(ResourceNotFoundError):
    """Certificate not found"""

    def __init__(self, certificate_id: str):
        super().__init__("Certificate", certificate_id)


class EventNotFoundError(ResourceNotFoundError):
    """Event not found"""

    def __init__(self, event_id: str):
        super().__init__("Event", event_id)


class CertificateOwnerNotFoundError(ResourceNotFoundError):
    """The entity a certificate is being issued to does not exist"""

    def __init__(self, owner_type: str, owner_id: str):
        super().__init__(owner_type.replace("_", " ").title(), owner_id)
        self.details["owner_type"] = owner_type


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(CipEventosError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidOwnerConfigurationError(CipEventosError):
    """Owner discriminator and owner reference columns disagree"""

    status_code = 400

    def __init__(self, message: str = "Invalid certificate owner configuration", owner_type: Optional[str] = None):
        super().__init__(message, code="INVALID_OWNER_CONFIGURATION")
        if owner_type:
            self.details["owner_type"] = owner_type


class OwnerNotEligibleError(CipEventosError):
    """Owner exists but its status does not allow a certificate yet"""

    status_code = 400

    def __init__(self, owner_type: str, owner_id: str, owner_status: Optional[str] = None):
        super().__init__(
            f"{owner_type} {owner_id} is not eligible for a certificate",
            code="OWNER_NOT_ELIGIBLE",
            details={"owner_type": owner_type, "owner_id": str(owner_id), "owner_status": owner_status},
        )


# ============================================
# Certificate State Errors (409-type)
# ============================================

class CertificateStateError(CipEventosError):
    """Operation not allowed in the certificate's current state"""

    status_code = 409

    def __init__(self, message: str, certificate_id: str, code: str = "CERTIFICATE_STATE_CONFLICT"):
        super().__init__(message, code=code, details={"certificate_id": str(certificate_id)})


class CertificateAlreadyRevokedError(CertificateStateError):
    """Revoke called on a certificate that is already revoked"""

    def __init__(self, certificate_id: str):
        super().__init__(
            "Certificate is already revoked",
            certificate_id,
            code="CERTIFICATE_ALREADY_REVOKED",
        )


class CertificateRevokedError(CertificateStateError):
    """Revoked certificates are terminal and cannot be reissued"""

    def __init__(self, certificate_id: str):
        super().__init__(
            "Cannot reissue a revoked certificate. Issue a new one instead.",
            certificate_id,
            code="CERTIFICATE_REVOKED",
        )


class ConcurrentModificationError(CertificateStateError):
    """Another request changed the certificate between our read and our write"""

    def __init__(self, certificate_id: str):
        super().__init__(
            "Certificate was modified by another request, please retry",
            certificate_id,
            code="CONCURRENT_MODIFICATION",
        )


class CertificateIntegrityError(CipEventosError):
    """A write was rejected by a database constraint other than the owner check"""

    status_code = 409

    def __init__(self, message: str = "Certificate could not be saved due to a data conflict"):
        super().__init__(message, code="CERTIFICATE_INTEGRITY_ERROR")


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: CipEventosError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
