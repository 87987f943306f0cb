"""Create certificates table (version history and revocation, no owner discriminator yet)

Revision ID: cip_0002_certificates
Revises: cip_0001_core_tables
Create Date: 2026-10-01 09:10:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'cip_0002_certificates'
down_revision = 'cip_0001_core_tables'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'certificates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_id', sa.String(36), sa.ForeignKey('events.id'), nullable=False),
        sa.Column(
            'certificate_type',
            sa.Enum(
                'ATTENDANCE', 'SESSION_ATTENDANCE', 'SPEAKER', 'ORGANIZER', 'APPROVAL',
                name='certificate_type_enum',
            ),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('ACTIVE', 'REVOKED', 'EXPIRED', name='certificate_status_enum'),
            nullable=False,
            server_default='ACTIVE',
        ),
        sa.Column('validation_code', sa.String(32), nullable=False, unique=True),
        sa.Column('pdf_url', sa.Text(), nullable=True),
        sa.Column('snapshot', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),

        # Owner references, any combination allowed until the discriminator lands
        sa.Column('registration_id', sa.String(36), sa.ForeignKey('registrations.id'), nullable=True),
        sa.Column('speaker_id', sa.String(36), sa.ForeignKey('speakers.id'), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('block_enrollment_id', sa.String(36), sa.ForeignKey('block_enrollments.id'), nullable=True),
        sa.Column('session_id', sa.String(36), sa.ForeignKey('event_sessions.id'), nullable=True),

        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('version_history', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('last_reissued_at', sa.DateTime(), nullable=True),
        sa.Column('last_reissued_by_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),

        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_reason', sa.Text(), nullable=True),
        sa.Column('revoked_by_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),

        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_certificates_event_id', 'certificates', ['event_id'])


def downgrade() -> None:
    op.drop_index('ix_certificates_event_id', table_name='certificates')
    op.drop_table('certificates')

    op.execute("DROP TYPE IF EXISTS certificate_status_enum")
    op.execute("DROP TYPE IF EXISTS certificate_type_enum")
