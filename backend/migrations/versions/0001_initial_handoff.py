"""initial repair hand-off tables

Revision ID: 0001_initial_handoff
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_handoff'
down_revision = None
branch_labels = None
depends_on = None

# Fixed status enumeration; ids are referenced by repair_requests.status_id
STATUSES = [
    (1, 'SUBMITTED', 'Submitted', 'Request created, device not yet dropped off', '#6b7280'),
    (2, 'RECEIVED', 'Received at relay point', 'Device handed over at the drop-off relay point', '#3b82f6'),
    (3, 'DIAGNOSED', 'Diagnosed', 'Technician has diagnosed the device', '#8b5cf6'),
    (4, 'IN_REPAIR', 'In repair', 'Repair in progress', '#f59e0b'),
    (5, 'REPAIRED', 'Repaired', 'Repair finished, awaiting return to a relay point', '#10b981'),
    (6, 'READY_FOR_PICKUP', 'Ready for pickup', 'Device waiting at the pickup relay point', '#14b8a6'),
    (7, 'DELIVERED', 'Delivered', 'Device collected by the client', '#22c55e'),
    (8, 'CANCELLED', 'Cancelled', 'Request cancelled', '#ef4444'),
]

def upgrade():
    statuses = op.create_table('repair_statuses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('label', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('color', sa.String(length=16), nullable=False, server_default='#6b7280')
    )
    op.bulk_insert(statuses, [
        {'id': sid, 'code': code, 'label': label, 'description': desc, 'color': color}
        for sid, code, label, desc, color in STATUSES
    ])

    op.create_table('repair_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('device_type', sa.String(length=80), nullable=False),
        sa.Column('brand', sa.String(length=80)),
        sa.Column('model', sa.String(length=80)),
        sa.Column('problem_description', sa.Text(), nullable=False),
        sa.Column('status_id', sa.Integer(), sa.ForeignKey('repair_statuses.id'), nullable=False, server_default='1'),
        sa.Column('pre_diagnosis', sa.Text()),
        sa.Column('estimated_cost_cents', sa.Integer()),
        sa.Column('technician_id', sa.String(length=64)),
        sa.Column('drop_off_relay_id', sa.String(length=64)),
        sa.Column('pickup_relay_id', sa.String(length=64)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    for col in ['client_id', 'status_id', 'technician_id', 'drop_off_relay_id', 'pickup_relay_id']:
        op.create_index(f'ix_repair_requests_{col}', 'repair_requests', [col])

    op.create_table('handoff_codes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('repair_id', sa.Integer(), sa.ForeignKey('repair_requests.id'), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('relay_point_id', sa.String(length=64), nullable=False),
        sa.Column('created_at_ms', sa.BigInteger(), nullable=False),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.text('0'))
    )
    op.create_index('ix_handoff_codes_repair_id', 'handoff_codes', ['repair_id'])
    op.create_index('ix_handoff_codes_code_relay', 'handoff_codes', ['code', 'relay_point_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recipient_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='info'),
        sa.Column('related_id', sa.String(length=64)),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('perms_snapshot', sa.JSON()),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

def downgrade():
    for table in ['audit_logs', 'notifications', 'handoff_codes', 'repair_requests', 'repair_statuses']:
        op.drop_table(table)
