"""initial hrms schema (masters, employees, attendance, leave, payroll)

Revision ID: 3f1a9c2d7e10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name, **kw):
    return sa.Column(name, sa.Numeric(14, 2), **kw)


def upgrade() -> None:
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=50), nullable=False, unique=True),
        sa.Column('level', sa.SmallInteger(), nullable=False),
        sa.Column('description', sa.String(length=255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255)),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'attendance_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('check_in_time', sa.Time(), nullable=False),
        sa.Column('check_out_time', sa.Time(), nullable=False),
        sa.Column('grace_period_mins', sa.Integer(), nullable=False),
        sa.Column('standard_work_hours', sa.Numeric(4, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=160), nullable=False),
        sa.Column('phone', sa.String(length=20)),
        sa.Column('address', sa.String(length=255)),
        sa.Column('date_of_joining', sa.Date()),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_emp_dept_id', 'employees', ['department_id'])
    op.create_index('ix_emp_manager_id', 'employees', ['manager_id'])

    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('check_in_time', sa.DateTime()),
        sa.Column('check_out_time', sa.DateTime()),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('work_hours', sa.Numeric(6, 2)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('employee_id', 'date', name='uq_attendance_employee_date'),
        sa.CheckConstraint("status in ('ON_TIME','LATE','EARLY_OUT','ABSENT','HALF_DAY')",
                           name='ck_attendance_status'),
    )
    op.create_index('ix_attendance_records_employee_id', 'attendance_records', ['employee_id'])
    op.create_index('ix_attendance_date', 'attendance_records', ['date'])

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('casual_leaves', sa.Integer(), nullable=False),
        sa.Column('sick_leaves', sa.Integer(), nullable=False),
        sa.Column('annual_leaves', sa.Integer(), nullable=False),
        sa.Column('used_casual', sa.Integer(), nullable=False),
        sa.Column('used_sick', sa.Integer(), nullable=False),
        sa.Column('used_annual', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('employee_id', 'year', name='uq_leave_balance_employee_year'),
    )
    op.create_index('ix_leave_balances_employee_id', 'leave_balances', ['employee_id'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type', sa.String(length=16), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('approval_date', sa.DateTime()),
        sa.Column('approval_notes', sa.Text()),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.CheckConstraint('end_date >= start_date', name='ck_leave_dates'),
    )
    op.create_index('ix_leave_requests_employee_id', 'leave_requests', ['employee_id'])
    op.create_index('ix_leave_employee_status', 'leave_requests', ['employee_id', 'status'])

    op.create_table(
        'salary_details',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        _money('basic_salary', nullable=False),
        _money('hra'),
        _money('fuel_allowance'),
        _money('other_allowances'),
        _money('pf_deduction'),
        _money('pt_deduction'),
        _money('other_deductions'),
        sa.Column('bank_name', sa.String(length=120)),
        sa.Column('account_number', sa.String(length=40)),
        sa.Column('ifsc_code', sa.String(length=20)),
        sa.Column('pan_number', sa.String(length=20)),
        sa.Column('uan_number', sa.String(length=20)),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_salary_details_employee_id', 'salary_details', ['employee_id'])
    op.create_index('ix_salary_employee_effective', 'salary_details', ['employee_id', 'effective_from'])

    op.create_table(
        'payroll_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        _money('basic_salary'),
        _money('hra'),
        _money('fuel_allowance'),
        _money('performance_incentive'),
        _money('other_earnings'),
        _money('pf_deduction'),
        _money('pt_deduction'),
        _money('other_deductions'),
        _money('total_earnings'),
        _money('total_deductions'),
        _money('net_pay'),
        sa.Column('total_days', sa.Integer()),
        sa.Column('days_present', sa.Integer()),
        sa.Column('arrear_days', sa.Integer()),
        sa.Column('lwp_days', sa.Integer()),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('generated_by', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('generated_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('employee_id', 'month', name='uq_payroll_employee_month'),
        sa.CheckConstraint("status in ('DRAFT','GENERATED','SENT')", name='ck_payroll_status'),
    )
    op.create_index('ix_payroll_records_employee_id', 'payroll_records', ['employee_id'])
    op.create_index('ix_payroll_month', 'payroll_records', ['month'])


def downgrade() -> None:
    for table in ('payroll_records', 'salary_details', 'leave_requests', 'leave_balances',
                  'attendance_records', 'employees', 'attendance_settings', 'departments', 'roles'):
        op.drop_table(table)
