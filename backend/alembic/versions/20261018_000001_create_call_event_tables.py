"""Create call_logs, contacts and phone_endpoints tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'call_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('call_date', sa.Date(), nullable=False),
        sa.Column('call_time', sa.Time(), nullable=False),
        sa.Column('status', sa.Enum('connected', 'not_answered', 'not_connected', name='callstatus'), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('provider_call_id', sa.String(100), nullable=True),
        sa.Column('from_number', sa.String(100), nullable=True),
        sa.Column('to_number', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_call_logs_id', 'call_logs', ['id'])
    op.create_index('ix_call_logs_employee_id', 'call_logs', ['employee_id'])
    # One row per Twilio CallSid
    op.create_index('ix_call_logs_provider_call_id', 'call_logs', ['provider_call_id'], unique=True)

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone_number', sa.String(50), nullable=False),
        sa.Column('assigned_employee_id', sa.Integer(), nullable=True),
        sa.Column('call_status', sa.Enum('COMPLETED', 'MISSED', name='contactcallstatus'), nullable=True),
        sa.Column('call_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('call_duration_sec', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_contacts_id', 'contacts', ['id'])
    op.create_index('ix_contacts_phone_number', 'contacts', ['phone_number'])
    op.create_index('ix_contacts_assigned_employee_id', 'contacts', ['assigned_employee_id'])

    op.create_table(
        'phone_endpoints',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('endpoint', sa.String(200), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('provider', 'endpoint', name='uq_phone_endpoints_provider_endpoint'),
    )
    op.create_index('ix_phone_endpoints_id', 'phone_endpoints', ['id'])
    op.create_index('ix_phone_endpoints_endpoint', 'phone_endpoints', ['endpoint'])
    op.create_index('ix_phone_endpoints_employee_id', 'phone_endpoints', ['employee_id'])


def downgrade():
    op.drop_index('ix_phone_endpoints_employee_id', table_name='phone_endpoints')
    op.drop_index('ix_phone_endpoints_endpoint', table_name='phone_endpoints')
    op.drop_index('ix_phone_endpoints_id', table_name='phone_endpoints')
    op.drop_table('phone_endpoints')

    op.drop_index('ix_contacts_assigned_employee_id', table_name='contacts')
    op.drop_index('ix_contacts_phone_number', table_name='contacts')
    op.drop_index('ix_contacts_id', table_name='contacts')
    op.drop_table('contacts')

    op.drop_index('ix_call_logs_provider_call_id', table_name='call_logs')
    op.drop_index('ix_call_logs_employee_id', table_name='call_logs')
    op.drop_index('ix_call_logs_id', table_name='call_logs')
    op.drop_table('call_logs')
