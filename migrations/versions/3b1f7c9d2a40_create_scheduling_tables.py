"""create scheduling tables

Revision ID: 3b1f7c9d2a40
Revises:
Create Date: 2026-10-12 09:14:03.118204
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '3b1f7c9d2a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


def _index_audit(table: str) -> None:
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
    op.create_index(op.f(f'ix_{table}_deleted_at'), table, ['deleted_at'], unique=False)
    op.create_index(op.f(f'ix_{table}_tenant_id'), table, ['tenant_id'], unique=False)


def upgrade() -> None:
    op.create_table(
        'employees',
        *_audit_columns(),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='employee_status'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    _index_audit('employees')
    op.create_index(op.f('ix_employees_role'), 'employees', ['role'], unique=False)

    op.create_table(
        'schedules',
        *_audit_columns(),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('DRAFT', 'PUBLISHED', 'LOCKED', name='schedule_status'), nullable=False),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('published_by', sa.Integer(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('locked_by', sa.Integer(), nullable=True),
        sa.Column('lock_reason', sa.Text(), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(), nullable=True),
        sa.Column('unlocked_by', sa.Integer(), nullable=True),
        sa.Column('unlock_reason', sa.Text(), nullable=True),
        sa.Column('copied_from_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['copied_from_id'], ['schedules.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _index_audit('schedules')
    op.create_index(op.f('ix_schedules_department_id'), 'schedules', ['department_id'], unique=False)
    op.create_index(op.f('ix_schedules_status'), 'schedules', ['status'], unique=False)

    op.create_table(
        'shifts',
        *_audit_columns(),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('break_minutes', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('work_center', sa.String(length=100), nullable=True),
        sa.Column('employee_id', sa.Integer(), nullable=True),
        sa.Column(
            'assignment_status',
            sa.Enum('UNASSIGNED', 'ASSIGNED', 'ACCEPTED', 'DECLINED', 'SWAPPED', name='assignment_status'),
            nullable=False,
        ),
        sa.Column('has_conflicts', sa.Boolean(), nullable=False),
        sa.Column('conflict_details', sa.JSON(), nullable=True),
        sa.Column('color', sa.String(length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _index_audit('shifts')
    op.create_index(op.f('ix_shifts_schedule_id'), 'shifts', ['schedule_id'], unique=False)
    op.create_index(op.f('ix_shifts_employee_id'), 'shifts', ['employee_id'], unique=False)

    op.create_table(
        'shift_swap_requests',
        *_audit_columns(),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('requested_by', sa.Integer(), nullable=False),
        sa.Column('requested_to', sa.Integer(), nullable=False),
        sa.Column('target_shift_id', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED', name='swap_request_status'),
            nullable=False,
        ),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['target_shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['requested_by'], ['employees.id']),
        sa.ForeignKeyConstraint(['requested_to'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _index_audit('shift_swap_requests')
    op.create_index(op.f('ix_shift_swap_requests_shift_id'), 'shift_swap_requests', ['shift_id'], unique=False)
    op.create_index(op.f('ix_shift_swap_requests_requested_by'), 'shift_swap_requests', ['requested_by'], unique=False)
    op.create_index(op.f('ix_shift_swap_requests_requested_to'), 'shift_swap_requests', ['requested_to'], unique=False)
    op.create_index(op.f('ix_shift_swap_requests_status'), 'shift_swap_requests', ['status'], unique=False)

    op.create_table(
        'notification_queue',
        *_audit_columns(),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=True),
        sa.Column('recipient_email', sa.String(length=255), nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('template_name', sa.String(length=100), nullable=True),
        sa.Column('template_data', sa.JSON(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=True),
        sa.Column('max_retries', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _index_audit('notification_queue')
    print("✓ [3b1f7c9d2a40] Created scheduling tables")


def downgrade() -> None:
    op.drop_table('notification_queue')
    op.drop_table('shift_swap_requests')
    op.drop_table('shifts')
    op.drop_table('schedules')
    op.drop_table('employees')
    for enum_name in ('swap_request_status', 'assignment_status', 'schedule_status', 'employee_status'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
