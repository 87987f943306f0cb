"""Add registration and block enrollment status used for certificate eligibility

Existing owners that already hold a certificate are marked eligible so the
batch issuers treat them consistently: registrations become CONFIRMED and
attended, block enrollments become APPROVED.

Revision ID: cip_0004_owner_eligibility
Revises: cip_0003_owner_type
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'cip_0004_owner_eligibility'
down_revision = 'cip_0003_owner_type'
branch_labels = None
depends_on = None


REGISTRATION_STATUS_ENUM = sa.Enum(
    'PENDING', 'CONFIRMED', 'CANCELLED', 'ATTENDED',
    name='registration_status_enum',
)

BLOCK_ENROLLMENT_STATUS_ENUM = sa.Enum(
    'PENDING', 'ENROLLED', 'IN_PROGRESS', 'APPROVED', 'FAILED', 'WITHDRAWN', 'CANCELLED',
    name='block_enrollment_status_enum',
)


def upgrade() -> None:
    bind = op.get_bind()
    REGISTRATION_STATUS_ENUM.create(bind, checkfirst=True)
    BLOCK_ENROLLMENT_STATUS_ENUM.create(bind, checkfirst=True)

    op.add_column(
        'registrations',
        sa.Column('status', REGISTRATION_STATUS_ENUM, nullable=False, server_default='PENDING'),
    )
    op.add_column(
        'registrations',
        sa.Column('attended', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column('registrations', sa.Column('attended_at', sa.DateTime(), nullable=True))
    op.create_index('ix_registrations_status', 'registrations', ['status'])

    op.add_column(
        'block_enrollments',
        sa.Column('status', BLOCK_ENROLLMENT_STATUS_ENUM, nullable=False, server_default='ENROLLED'),
    )
    op.create_index('ix_block_enrollments_status', 'block_enrollments', ['status'])

    op.execute(
        "UPDATE registrations SET status = 'CONFIRMED', attended = TRUE "
        "WHERE id IN (SELECT registration_id FROM certificates WHERE registration_id IS NOT NULL)"
    )
    op.execute(
        "UPDATE block_enrollments SET status = 'APPROVED' "
        "WHERE id IN (SELECT block_enrollment_id FROM certificates WHERE block_enrollment_id IS NOT NULL)"
    )


def downgrade() -> None:
    op.drop_index('ix_block_enrollments_status', table_name='block_enrollments')
    op.drop_column('block_enrollments', 'status')
    op.drop_index('ix_registrations_status', table_name='registrations')
    op.drop_column('registrations', 'attended_at')
    op.drop_column('registrations', 'attended')
    op.drop_column('registrations', 'status')

    op.execute("DROP TYPE IF EXISTS block_enrollment_status_enum")
    op.execute("DROP TYPE IF EXISTS registration_status_enum")
