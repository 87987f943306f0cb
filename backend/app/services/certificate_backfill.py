"""
Owner backfill for certificates created before the owner discriminator existed.

Legacy rows only carry the five reference columns, sometimes more than one of
them. The owner type is chosen by a fixed priority (most specific owner
first). Rows with several references are ambiguous: they are reported and
the losing references are cleared so the owner CHECK constraint can be
installed. Rows without any reference cannot be resolved.

The SQL builders are used by the Alembic migration; `resolve_legacy_owner`
applies the same policy to a single row.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.models.certificate import CertificateOwnerType


LEGACY_OWNER_PRIORITY: Tuple[Tuple[str, CertificateOwnerType], ...] = (
    ("block_enrollment_id", CertificateOwnerType.BLOCK_ENROLLMENT),
    ("session_id", CertificateOwnerType.SESSION),
    ("speaker_id", CertificateOwnerType.SPEAKER),
    ("registration_id", CertificateOwnerType.ATTENDEE),
    ("user_id", CertificateOwnerType.ORGANIZER),
)

AMBIGUOUS_OWNER_REASON = "legacy owner backfill: ambiguous owner references"

REFERENCE_COLUMNS: Tuple[str, ...] = tuple(column for column, _ in LEGACY_OWNER_PRIORITY)


@dataclass(frozen=True)
class LegacyOwnerResolution:
    """Owner picked for a legacy row and the references it had"""
    owner_type: CertificateOwnerType
    reference_column: str
    populated_columns: Tuple[str, ...]

    @property
    def ambiguous(self) -> bool:
        return len(self.populated_columns) > 1

    @property
    def discarded_columns(self) -> Tuple[str, ...]:
        return tuple(column for column in self.populated_columns if column != self.reference_column)


def resolve_legacy_owner(row: Mapping[str, Any]) -> Optional[LegacyOwnerResolution]:
    """Pick the owner of a legacy row. None when the row has no reference at all."""
    populated = tuple(column for column in REFERENCE_COLUMNS if row.get(column) is not None)
    if not populated:
        return None

    for column, owner_type in LEGACY_OWNER_PRIORITY:
        if column in populated:
            return LegacyOwnerResolution(owner_type, column, populated)
    return None


def ambiguous_audit_values(row: Mapping[str, Any], resolution: LegacyOwnerResolution) -> Dict[str, Any]:
    """Audit payload recorded for an ambiguous row before its losing references are cleared"""
    return {
        "previous_values": {column: _str_or_none(row.get(column)) for column in REFERENCE_COLUMNS},
        "new_values": {
            "owner_type": resolution.owner_type.value,
            resolution.reference_column: _str_or_none(row.get(resolution.reference_column)),
        },
        "changed_fields": ["owner_type", *resolution.discarded_columns],
    }


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


# ==================== SQL builders ====================

def owner_type_case_sql(enum_type: Optional[str] = None) -> str:
    """
    CASE expression computing the owner type from the legacy references.

    PostgreSQL needs the literals cast to the enum type, pass its name there.
    """
    def literal(owner_type: CertificateOwnerType) -> str:
        if enum_type:
            return f"CAST('{owner_type.value}' AS {enum_type})"
        return f"'{owner_type.value}'"

    whens = " ".join(
        f"WHEN {column} IS NOT NULL THEN {literal(owner_type)}"
        for column, owner_type in LEGACY_OWNER_PRIORITY
    )
    return f"CASE {whens} END"


def populated_count_sql() -> str:
    return " + ".join(
        f"(CASE WHEN {column} IS NOT NULL THEN 1 ELSE 0 END)" for column in REFERENCE_COLUMNS
    )


def ambiguous_owner_filter_sql() -> str:
    """WHERE clause matching rows with more than one reference"""
    return f"({populated_count_sql()}) > 1"


def orphan_owner_filter_sql() -> str:
    """WHERE clause matching rows with no reference at all"""
    return " AND ".join(f"{column} IS NULL" for column in REFERENCE_COLUMNS)


def clear_losing_references_sql(table: str = "certificates") -> List[str]:
    """One UPDATE per column, nulling it wherever a higher-priority reference is set"""
    statements = []
    for position, (column, _) in enumerate(LEGACY_OWNER_PRIORITY):
        higher = [other for other, _ in LEGACY_OWNER_PRIORITY[:position]]
        if not higher:
            continue
        winner_set = " OR ".join(f"{other} IS NOT NULL" for other in higher)
        statements.append(
            f"UPDATE {table} SET {column} = NULL WHERE {column} IS NOT NULL AND ({winner_set})"
        )
    return statements
