"""
Certificate model and its owner discriminator.

A certificate belongs to exactly one owner: an attendee registration, a
speaker, an organizer (user), a block enrollment or a session. `owner_type`
says which, and exactly the matching reference column is populated. The rule
is enforced twice: by `CertificateOwner` in application code and by the
`ck_certificates_owner_reference` CHECK constraint for every write that
bypasses it.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from sqlalchemy import (
    Column, String, DateTime, Integer, Text, ForeignKey, CheckConstraint, Index,
    Enum as SQLEnum,
)
from datetime import datetime
import enum

from app.core.database import Base
from app.core.exceptions import InvalidOwnerConfigurationError
from app.core.types import GUID, JSONType, generate_uuid


class CertificateOwnerType(str, enum.Enum):
    """Who a certificate is issued to"""
    ATTENDEE = "ATTENDEE"
    SPEAKER = "SPEAKER"
    ORGANIZER = "ORGANIZER"
    BLOCK_ENROLLMENT = "BLOCK_ENROLLMENT"
    SESSION = "SESSION"


class CertificateType(str, enum.Enum):
    """What the certificate certifies"""
    ATTENDANCE = "ATTENDANCE"
    SESSION_ATTENDANCE = "SESSION_ATTENDANCE"
    SPEAKER = "SPEAKER"
    ORGANIZER = "ORGANIZER"
    APPROVAL = "APPROVAL"


class CertificateStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


# Owner type -> the only reference column allowed to be non-null
OWNER_REFERENCE_COLUMNS: Dict[CertificateOwnerType, str] = {
    CertificateOwnerType.ATTENDEE: "registration_id",
    CertificateOwnerType.SPEAKER: "speaker_id",
    CertificateOwnerType.ORGANIZER: "user_id",
    CertificateOwnerType.BLOCK_ENROLLMENT: "block_enrollment_id",
    CertificateOwnerType.SESSION: "session_id",
}

DEFAULT_CERTIFICATE_TYPES: Dict[CertificateOwnerType, CertificateType] = {
    CertificateOwnerType.ATTENDEE: CertificateType.ATTENDANCE,
    CertificateOwnerType.SPEAKER: CertificateType.SPEAKER,
    CertificateOwnerType.ORGANIZER: CertificateType.ORGANIZER,
    CertificateOwnerType.BLOCK_ENROLLMENT: CertificateType.APPROVAL,
    CertificateOwnerType.SESSION: CertificateType.SESSION_ATTENDANCE,
}

OWNER_CONSTRAINT_NAME = "ck_certificates_owner_reference"
VERSION_CONSTRAINT_NAME = "ck_certificates_version_positive"
REVOCATION_CONSTRAINT_NAME = "ck_certificates_revocation_state"


def owner_reference_check_sql(type_column: str = "owner_type") -> str:
    """
    SQL for the owner CHECK constraint: one conjunction per owner type,
    OR-ed together. Shared by the model and the Alembic migrations.
    """
    all_columns = list(OWNER_REFERENCE_COLUMNS.values())
    clauses = []
    for owner_type, owner_column in OWNER_REFERENCE_COLUMNS.items():
        terms = [f"{type_column} = '{owner_type.value}'", f"{owner_column} IS NOT NULL"]
        terms.extend(f"{column} IS NULL" for column in all_columns if column != owner_column)
        clauses.append("(" + " AND ".join(terms) + ")")
    return " OR ".join(clauses)


REVOCATION_CHECK_SQL = (
    "(status = 'REVOKED' AND revoked_at IS NOT NULL) OR "
    "(status <> 'REVOKED' AND revoked_at IS NULL)"
)


@dataclass(frozen=True)
class CertificateOwner:
    """The owner of a certificate as one tagged value instead of five nullable columns"""
    owner_type: CertificateOwnerType
    owner_id: str

    def __post_init__(self):
        if not isinstance(self.owner_type, CertificateOwnerType):
            try:
                object.__setattr__(self, "owner_type", CertificateOwnerType(self.owner_type))
            except ValueError:
                raise InvalidOwnerConfigurationError(f"Unknown owner type '{self.owner_type}'")
        if not self.owner_id:
            raise InvalidOwnerConfigurationError(
                "Owner id is required", owner_type=self.owner_type.value
            )
        object.__setattr__(self, "owner_id", str(self.owner_id))

    @property
    def reference_column(self) -> str:
        return OWNER_REFERENCE_COLUMNS[self.owner_type]

    def reference_columns(self) -> Dict[str, Optional[str]]:
        """All five reference columns, only the matching one set"""
        return {
            column: (self.owner_id if column == self.reference_column else None)
            for column in OWNER_REFERENCE_COLUMNS.values()
        }

    @classmethod
    def from_columns(cls, owner_type, columns: Mapping[str, Optional[str]]) -> "CertificateOwner":
        """Rebuild the owner from stored columns, rejecting any inconsistent combination"""
        if owner_type is None:
            raise InvalidOwnerConfigurationError("Certificate has no owner type")
        try:
            owner_type = CertificateOwnerType(owner_type)
        except ValueError:
            raise InvalidOwnerConfigurationError(f"Unknown owner type '{owner_type}'")

        populated = [
            column for column in OWNER_REFERENCE_COLUMNS.values()
            if columns.get(column) is not None
        ]
        expected = OWNER_REFERENCE_COLUMNS[owner_type]
        if populated != [expected]:
            raise InvalidOwnerConfigurationError(
                f"Owner type {owner_type.value} requires only '{expected}' to be set, "
                f"found {populated or 'none'}",
                owner_type=owner_type.value,
            )
        return cls(owner_type, columns[expected])


class Certificate(Base):
    """Issued certificate with version history and revocation state"""
    __tablename__ = "certificates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    event_id = Column(GUID, ForeignKey("events.id"), nullable=False, index=True)

    certificate_type = Column(SQLEnum(CertificateType, name="certificate_type_enum"), nullable=False)
    status = Column(
        SQLEnum(CertificateStatus, name="certificate_status_enum"),
        default=CertificateStatus.ACTIVE,
        nullable=False,
    )
    validation_code = Column(String(32), unique=True, nullable=False)  # e.g. CIP-2025-X8J9L
    pdf_url = Column(Text, nullable=True)

    # Recipient and event data frozen at issue time, refreshed on reissue
    snapshot = Column(JSONType, default=dict, nullable=False)

    # Owner discriminator and its five mutually exclusive references
    owner_type = Column(SQLEnum(CertificateOwnerType, name="certificate_owner_type_enum"), nullable=False)
    registration_id = Column(GUID, ForeignKey("registrations.id"), nullable=True)
    speaker_id = Column(GUID, ForeignKey("speakers.id"), nullable=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    block_enrollment_id = Column(GUID, ForeignKey("block_enrollments.id"), nullable=True)
    session_id = Column(GUID, ForeignKey("event_sessions.id"), nullable=True)

    # Versioning
    version = Column(Integer, default=1, nullable=False)
    version_history = Column(JSONType, default=list, nullable=False)
    last_reissued_at = Column(DateTime, nullable=True)
    last_reissued_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Revocation
    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(Text, nullable=True)
    revoked_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Optimistic locking, bumped by SQLAlchemy on every UPDATE
    lock_version = Column(Integer, nullable=False)

    # Timestamps
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(owner_reference_check_sql(), name=OWNER_CONSTRAINT_NAME),
        CheckConstraint("version >= 1", name=VERSION_CONSTRAINT_NAME),
        CheckConstraint(REVOCATION_CHECK_SQL, name=REVOCATION_CONSTRAINT_NAME),
        Index("idx_certificates_owner_type", "owner_type"),
    )

    __mapper_args__ = {"version_id_col": lock_version}

    @property
    def owner(self) -> CertificateOwner:
        return CertificateOwner.from_columns(
            self.owner_type,
            {column: getattr(self, column) for column in OWNER_REFERENCE_COLUMNS.values()},
        )

    @property
    def owner_id(self) -> Optional[str]:
        """Id stored in the column the discriminator points at"""
        if self.owner_type is None:
            return None
        return getattr(self, OWNER_REFERENCE_COLUMNS[CertificateOwnerType(self.owner_type)])

    def assign_owner(self, owner: CertificateOwner) -> None:
        self.owner_type = owner.owner_type
        for column, value in owner.reference_columns().items():
            setattr(self, column, value)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self):
        return f"<Certificate {self.validation_code} v{self.version}>"
