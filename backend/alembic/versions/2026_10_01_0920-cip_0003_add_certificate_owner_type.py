"""Add certificate owner discriminator, backfill legacy rows, install integrity checks

Legacy rows are resolved by priority BLOCK_ENROLLMENT > SESSION > SPEAKER >
ATTENDEE > ORGANIZER. Rows holding several references get an audit entry
listing all of them before the losing references are cleared. Rows without
any reference stop the migration.

Revision ID: cip_0003_owner_type
Revises: cip_0002_certificates
Create Date: 2026-10-01 09:20:00

"""
from datetime import datetime

from alembic import op
import sqlalchemy as sa

from app.core.logging_config import logger
from app.core.types import GUID, JSONType, generate_uuid
from app.models.certificate import (
    OWNER_CONSTRAINT_NAME,
    VERSION_CONSTRAINT_NAME,
    REVOCATION_CONSTRAINT_NAME,
    REVOCATION_CHECK_SQL,
    owner_reference_check_sql,
)
from app.services.certificate_backfill import (
    AMBIGUOUS_OWNER_REASON,
    REFERENCE_COLUMNS,
    ambiguous_audit_values,
    ambiguous_owner_filter_sql,
    clear_losing_references_sql,
    orphan_owner_filter_sql,
    owner_type_case_sql,
    resolve_legacy_owner,
)


# revision identifiers, used by Alembic.
revision = 'cip_0003_owner_type'
down_revision = 'cip_0002_certificates'
branch_labels = None
depends_on = None


OWNER_TYPE_ENUM = sa.Enum(
    'ATTENDEE', 'SPEAKER', 'ORGANIZER', 'BLOCK_ENROLLMENT', 'SESSION',
    name='certificate_owner_type_enum',
)

audit_logs = sa.table(
    'audit_logs',
    sa.column('id', GUID),
    sa.column('entity_type', sa.String),
    sa.column('entity_id', GUID),
    sa.column('action', sa.String),
    sa.column('previous_values', JSONType),
    sa.column('new_values', JSONType),
    sa.column('changed_fields', JSONType),
    sa.column('reason', sa.Text),
    sa.column('extra_data', JSONType),
    sa.column('created_at', sa.DateTime),
)


def _flag_ambiguous_rows(bind) -> None:
    columns = ", ".join(REFERENCE_COLUMNS)
    rows = bind.execute(
        sa.text(f"SELECT id, {columns} FROM certificates WHERE {ambiguous_owner_filter_sql()}")
    ).mappings().all()
    if not rows:
        return

    now = datetime.utcnow()
    entries = []
    for row in rows:
        resolution = resolve_legacy_owner(row)
        entries.append({
            'id': generate_uuid(),
            'entity_type': 'Certificate',
            'entity_id': str(row['id']),
            'action': 'UPDATE',
            **ambiguous_audit_values(row, resolution),
            'reason': AMBIGUOUS_OWNER_REASON,
            'extra_data': {
                'migration': revision,
                'discarded_columns': list(resolution.discarded_columns),
            },
            'created_at': now,
        })
    op.bulk_insert(audit_logs, entries)

    logger.warning(
        f"Owner backfill: {len(rows)} certificates had several owner references, "
        f"kept the highest-priority one: {', '.join(str(row['id']) for row in rows)}",
        extra={"event_type": "migration", "migration": revision, "ambiguous_count": len(rows)}
    )


def upgrade() -> None:
    bind = op.get_bind()

    orphans = bind.execute(
        sa.text(f"SELECT id FROM certificates WHERE {orphan_owner_filter_sql()}")
    ).scalars().all()
    if orphans:
        raise RuntimeError(
            f"Cannot backfill certificate owners: {len(orphans)} certificates have no owner "
            f"reference ({', '.join(str(orphan) for orphan in orphans)}). Fix them and rerun."
        )

    OWNER_TYPE_ENUM.create(bind, checkfirst=True)
    op.add_column('certificates', sa.Column('owner_type', OWNER_TYPE_ENUM, nullable=True))

    _flag_ambiguous_rows(bind)
    for statement in clear_losing_references_sql():
        op.execute(statement)

    enum_type = OWNER_TYPE_ENUM.name if bind.dialect.name == 'postgresql' else None
    op.execute(
        f"UPDATE certificates SET owner_type = {owner_type_case_sql(enum_type)} WHERE owner_type IS NULL"
    )
    op.alter_column('certificates', 'owner_type', nullable=False)

    # Align status and revoked_at before the revocation check goes in
    op.execute(
        "UPDATE certificates SET revoked_at = COALESCE(updated_at, issued_at) "
        "WHERE status = 'REVOKED' AND revoked_at IS NULL"
    )
    op.execute(
        "UPDATE certificates SET status = 'REVOKED' "
        "WHERE revoked_at IS NOT NULL AND status <> 'REVOKED'"
    )

    op.create_check_constraint(OWNER_CONSTRAINT_NAME, 'certificates', owner_reference_check_sql())
    op.create_check_constraint(VERSION_CONSTRAINT_NAME, 'certificates', 'version >= 1')
    op.create_check_constraint(REVOCATION_CONSTRAINT_NAME, 'certificates', REVOCATION_CHECK_SQL)
    op.create_index('idx_certificates_owner_type', 'certificates', ['owner_type'])

    # Optimistic locking counter, existing rows start at 1
    op.add_column(
        'certificates',
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='1'),
    )


def downgrade() -> None:
    op.drop_column('certificates', 'lock_version')
    op.drop_index('idx_certificates_owner_type', table_name='certificates')
    op.drop_constraint(REVOCATION_CONSTRAINT_NAME, 'certificates', type_='check')
    op.drop_constraint(VERSION_CONSTRAINT_NAME, 'certificates', type_='check')
    op.drop_constraint(OWNER_CONSTRAINT_NAME, 'certificates', type_='check')
    op.drop_column('certificates', 'owner_type')
    op.execute("DROP TYPE IF EXISTS certificate_owner_type_enum")
