"""attendance core tables: departments, employees, attendance

Revision ID: 4f1a2c9e7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1a2c9e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('department_id', sa.Integer(),
                  sa.ForeignKey('departments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=80), nullable=False),
        sa.Column('last_name', sa.String(length=80), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_emp_dept_id', 'employees', ['department_id'])

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('employee_id', sa.Integer(),
                  sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('check_in_at', sa.DateTime(), nullable=True),
        sa.Column('check_in_lat', sa.Float(), nullable=True),
        sa.Column('check_in_lon', sa.Float(), nullable=True),
        sa.Column('check_out_at', sa.DateTime(), nullable=True),
        sa.Column('check_out_lat', sa.Float(), nullable=True),
        sa.Column('check_out_lon', sa.Float(), nullable=True),
        sa.Column('working_minutes', sa.Integer(), nullable=True),
        sa.Column('overtime_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status in ('present','absent','late')", name='ck_attendance_status'),
        sa.UniqueConstraint('employee_id', 'work_date', name='uq_attendance_employee_day'),
    )
    op.create_index('ix_attendance_employee_id', 'attendance', ['employee_id'])
    op.create_index('ix_attendance_work_date', 'attendance', ['work_date'])
    op.create_index('ix_attendance_day_status', 'attendance', ['work_date', 'status'])


def downgrade() -> None:
    op.drop_index('ix_attendance_day_status', table_name='attendance')
    op.drop_index('ix_attendance_work_date', table_name='attendance')
    op.drop_index('ix_attendance_employee_id', table_name='attendance')
    op.drop_table('attendance')
    op.drop_index('ix_emp_dept_id', table_name='employees')
    op.drop_table('employees')
    op.drop_table('departments')
