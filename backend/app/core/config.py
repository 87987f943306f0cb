from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "CIP Eventos"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Authentication (token verification only - issuing lives in the auth service)
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:4321,http://localhost:3000,http://127.0.0.1:4321"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    # ==========================================
    # Certificates
    # ==========================================
    CERTIFICATE_CODE_PREFIX: str = "CIP"  # Validation codes look like CIP-2025-X8J9L
    CERTIFICATE_CODE_LENGTH: int = 5
    CERTIFICATE_CODE_MAX_ATTEMPTS: int = 5  # Collision retries before giving up
    CERTIFICATE_VERIFY_URL_BASE: str = "https://eventos.cip.org.pe/verify"

    # Bulk reissue
    BULK_REISSUE_MAX_ITEMS: int = 500
    BULK_REISSUE_ITEM_DELAY_MS: int = 0  # Pause between items to spare the database

    # Batch issuance for eligible registrations / approved block enrollments
    BATCH_ISSUE_ITEM_DELAY_MS: int = 0

    # ==========================================
    # Audit log
    # ==========================================
    AUDIT_LOG_ENTITY_HISTORY_LIMIT: int = 50
    AUDIT_LOG_MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._base_dir = Path(__file__).resolve().parent.parent.parent
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    @property
    def BASE_DIR(self) -> Path:
        return self._base_dir

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    def get_verify_url(self, validation_code: str) -> str:
        """Public URL where a certificate can be checked by its code"""
        return f"{self.CERTIFICATE_VERIFY_URL_BASE}/{validation_code}"


# Create settings instance
settings = Settings()
