from fastapi import APIRouter
from app.api.v1.endpoints import certificates, audit_logs

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "cip-eventos-backend"}


api_router.include_router(certificates.router)
api_router.include_router(audit_logs.router)
