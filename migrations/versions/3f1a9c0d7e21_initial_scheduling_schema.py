"""initial scheduling schema (shifts, assignments, hours, opportunities, resources)

Revision ID: 3f1a9c0d7e21
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c0d7e21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('event_id', sa.Integer(), nullable=True),
        sa.Column('start_at', sa.DateTime(), nullable=True),
        sa.Column('end_at', sa.DateTime(), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_shifts_organization_id', 'shifts', ['organization_id'])
    op.create_index('ix_shifts_event_id', 'shifts', ['event_id'])
    op.create_index('ix_shifts_start_at', 'shifts', ['start_at'])

    op.create_table(
        'shift_tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('required_volunteers', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_shift_tasks_shift_id', 'shift_tasks', ['shift_id'])

    op.create_table(
        'shift_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('shift_tasks.id', ondelete='SET NULL'), nullable=True),
        sa.Column('volunteer_id', sa.Integer(), nullable=False),
        sa.Column('assigned_by', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='assigned'),
        sa.Column('checked_in_at', sa.DateTime(), nullable=True),
        sa.Column('checked_out_at', sa.DateTime(), nullable=True),
        sa.Column('hours', sa.Float(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("status in ('assigned','in-progress','completed')", name='ck_shift_assignment_status'),
        sa.CheckConstraint('hours is null or hours >= 0', name='ck_shift_assignment_hours'),
        sa.UniqueConstraint('volunteer_id', 'shift_id', 'task_id', name='uq_assignment_volunteer_shift_task'),
    )
    op.create_index('ix_shift_assignments_shift_id', 'shift_assignments', ['shift_id'])
    op.create_index('ix_shift_assignments_task_id', 'shift_assignments', ['task_id'])
    op.create_index('ix_shift_assignments_volunteer_id', 'shift_assignments', ['volunteer_id'])
    op.create_index('ix_assignment_volunteer_status', 'shift_assignments', ['volunteer_id', 'status'])

    op.create_table(
        'volunteer_schedule_locks',
        sa.Column('volunteer_id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'volunteer_hours',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('volunteer_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('event_id', sa.Integer(), nullable=True),
        sa.Column('shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assignment_id', sa.Integer(), sa.ForeignKey('shift_assignments.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('hours', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('assignment_id', name='uq_volunteer_hours_assignment'),
        sa.CheckConstraint("status in ('pending','approved','rejected')", name='ck_volunteer_hours_status'),
        sa.CheckConstraint('hours >= 0', name='ck_volunteer_hours_nonneg'),
    )
    op.create_index('ix_volunteer_hours_volunteer_id', 'volunteer_hours', ['volunteer_id'])
    op.create_index('ix_volunteer_hours_organization_id', 'volunteer_hours', ['organization_id'])
    op.create_index('ix_volunteer_hours_event_id', 'volunteer_hours', ['event_id'])
    op.create_index('ix_volunteer_hours_shift_id', 'volunteer_hours', ['shift_id'])

    op.create_table(
        'opportunities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('accepted_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('accepted_count >= 0', name='ck_opportunity_accepted_nonneg'),
        sa.CheckConstraint('capacity = 0 or accepted_count <= capacity', name='ck_opportunity_accepted_le_capacity'),
    )
    op.create_index('ix_opportunities_organization_id', 'opportunities', ['organization_id'])

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('opportunity_id', sa.Integer(), sa.ForeignKey('opportunities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('volunteer_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='applied'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('opportunity_id', 'volunteer_id', name='uq_application_opportunity_volunteer'),
    )
    op.create_index('ix_applications_opportunity_id', 'applications', ['opportunity_id'])
    op.create_index('ix_applications_volunteer_id', 'applications', ['volunteer_id'])

    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('category', sa.String(length=60), nullable=True),
        sa.Column('serial_number', sa.String(length=80), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('is_returnable', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('quantity_total', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity_available', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'quantity_available >= 0 and quantity_available <= quantity_total',
            name='ck_resource_quantity_bounds',
        ),
    )
    op.create_index('ix_resources_organization_id', 'resources', ['organization_id'])

    op.create_table(
        'resource_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('resource_id', sa.Integer(), sa.ForeignKey('resources.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignment_type', sa.String(length=16), nullable=False, server_default='volunteer'),
        sa.Column('related_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='assigned'),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('expected_return_at', sa.DateTime(), nullable=True),
        sa.Column('returned_at', sa.DateTime(), nullable=True),
        sa.Column('condition', sa.String(length=40), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_resource_assignment_qty'),
    )
    op.create_index('ix_resource_assignments_resource_id', 'resource_assignments', ['resource_id'])
    op.create_index('ix_resource_assignments_related_id', 'resource_assignments', ['related_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=60), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('resource_assignments')
    op.drop_table('resources')
    op.drop_table('applications')
    op.drop_table('opportunities')
    op.drop_table('volunteer_hours')
    op.drop_table('volunteer_schedule_locks')
    op.drop_table('shift_assignments')
    op.drop_table('shift_tasks')
    op.drop_table('shifts')
