"""initial fine ledger schema

Revision ID: b7e1c2d3f4a5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the fine ledger schema from scratch:
- identities: officers, drivers, admins, department officials (soft-deactivated only)
- provisions: violation catalog with default amounts
- fines: lifecycle records with optimistic version column
- fine_payments: at most one per fine, unique confirmation ids
- fine_events: append-only transition audit trail
- reference_sequences: central counters for fine reference numbers
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7e1c2d3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'identities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact', sa.String(length=255), nullable=False),
        sa.Column('credential_hash', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deactivated_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['deactivated_by_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contact'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_identities_external_id', 'identities', ['external_id'], unique=True)
    op.create_index('ix_identities_role_active', 'identities', ['role', 'is_active'])

    op.create_table(
        'provisions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_by_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_provisions_amount_positive'),
        sa.ForeignKeyConstraint(['updated_by_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_provisions_code', 'provisions', ['code'], unique=True)

    op.create_table(
        'fines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reference_number', sa.String(length=32), nullable=False),
        sa.Column('officer_id', sa.Integer(), nullable=False),
        sa.Column('driver_id', sa.Integer(), nullable=False),
        sa.Column('provision_id', sa.Integer(), nullable=False),
        sa.Column('provision_code', sa.String(length=64), nullable=False),
        sa.Column('vehicle_number', sa.String(length=32), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('court', sa.String(length=255), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('dispute_reason', sa.String(length=255), nullable=True),
        sa.Column('disputed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disputed_by_id', sa.Integer(), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_fines_amount_positive'),
        sa.ForeignKeyConstraint(['officer_id'], ['identities.id']),
        sa.ForeignKeyConstraint(['driver_id'], ['identities.id']),
        sa.ForeignKeyConstraint(['provision_id'], ['provisions.id']),
        sa.ForeignKeyConstraint(['disputed_by_id'], ['identities.id']),
        sa.ForeignKeyConstraint(['voided_by_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_fines_officer_id', 'fines', ['officer_id'])
    op.create_index('ix_fines_driver_id', 'fines', ['driver_id'])
    op.create_index('ix_fines_provision_id', 'fines', ['provision_id'])
    op.create_index('ix_fines_vehicle_number', 'fines', ['vehicle_number'])
    op.create_index('ix_fines_status', 'fines', ['status'])
    op.create_index('ix_fines_driver_status', 'fines', ['driver_id', 'status'])
    op.create_index('ix_fines_officer_issued', 'fines', ['officer_id', 'issued_at'])
    op.create_index('ix_fines_status_issued', 'fines', ['status', 'issued_at'])

    op.create_table(
        'fine_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fine_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('confirmation_id', sa.String(length=128), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_by_id', sa.Integer(), nullable=True),
        sa.CheckConstraint('amount_cents > 0', name='ck_fine_payments_amount_positive'),
        sa.ForeignKeyConstraint(['fine_id'], ['fines.id']),
        sa.ForeignKeyConstraint(['recorded_by_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('fine_id', name='uq_fine_payments_fine'),
        sa.UniqueConstraint('confirmation_id', name='uq_fine_payments_confirmation'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_fine_payments_fine_id', 'fine_payments', ['fine_id'])

    op.create_table(
        'fine_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fine_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('from_status', sa.String(length=16), nullable=True),
        sa.Column('to_status', sa.String(length=16), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['fine_id'], ['fines.id']),
        sa.ForeignKeyConstraint(['actor_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_fine_events_fine_id', 'fine_events', ['fine_id'])
    op.create_index('ix_fine_events_event_type', 'fine_events', ['event_type'])
    op.create_index('ix_fine_events_fine_occurred', 'fine_events', ['fine_id', 'occurred_at'])

    op.create_table(
        'reference_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('scope'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('reference_sequences')
    op.drop_table('fine_events')
    op.drop_table('fine_payments')
    op.drop_table('fines')
    op.drop_table('provisions')
    op.drop_table('identities')
