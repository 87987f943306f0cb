# API endpoints
from . import certificates, audit_logs

__all__ = ["certificates", "audit_logs"]
