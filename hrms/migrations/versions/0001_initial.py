"""Initial HRMS schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


user_role = _enum("user_role", "admin", "user")
employee_status = _enum("employee_status", "active", "inactive", "on_leave", "terminated")
employment_type = _enum("employment_type", "full_time", "part_time", "contract", "temporary")
attendance_status = _enum("attendance_status", "present", "late", "absent", "on_leave")
leave_type = _enum("leave_type", "annual", "sick", "unpaid", "emergency", "maternity", "hajj")
request_status = _enum("request_status", "pending", "approved", "rejected", "disbursed", "closed")
tier_status = _enum("tier_status", "pending", "approved", "rejected", "not_required")
approver_role = _enum("approver_role", "manager", "hr", "senior_management", "finance", "completed")
payroll_status = _enum("payroll_status", "calculated", "approved", "paid")
deduction_values = ("loan_repayment", "advance_salary", "gosi_employee", "absence", "other")
payroll_deduction_type = _enum("payroll_deduction_type", *deduction_values)
deduction_type = _enum("deduction_type", *deduction_values)
onboarding_assignee = _enum("onboarding_assignee", "new_hire", "manager", "hr", "it")
onboarding_task_status = _enum("onboarding_task_status", "not_started", "in_progress", "completed", "overdue")
qiwa_registration_status = _enum("qiwa_registration_status", "pending", "registered")
sync_status = _enum("sync_status", "never", "success", "error")
audit_actor_type = _enum("audit_actor_type", "ADMIN", "USER", "SYSTEM")

ALL_ENUMS = (
    user_role,
    employee_status,
    employment_type,
    attendance_status,
    leave_type,
    request_status,
    tier_status,
    approver_role,
    payroll_status,
    payroll_deduction_type,
    deduction_type,
    onboarding_assignee,
    onboarding_task_status,
    qiwa_registration_status,
    sync_status,
    audit_actor_type,
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _employee_fk() -> sa.Column:
    return sa.Column(
        "employee_id",
        sa.Integer(),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )


def _tier_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_status", tier_status, nullable=True),
        sa.Column(f"{prefix}_approved_by", sa.String(length=255), nullable=True),
        sa.Column(f"{prefix}_approval_date", sa.Date(), nullable=True),
        sa.Column(f"{prefix}_comments", sa.String(length=1000), nullable=True),
    ]


def _approval_columns() -> list[sa.Column]:
    return [
        sa.Column("status", request_status, nullable=False),
        sa.Column("current_approver_role", approver_role, nullable=False),
        sa.Column("rejection_reason", sa.String(length=1000), nullable=True),
        *_tier_columns("manager"),
        _created_at(),
        _updated_at(),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_number", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("first_name_ar", sa.String(length=255), nullable=True),
        sa.Column("last_name_ar", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("national_id", sa.String(length=32), nullable=True),
        sa.Column("nationality", sa.String(length=64), nullable=True),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("status", employee_status, nullable=False),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("employment_type", employment_type, nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("job_title", sa.String(length=255), nullable=True),
        sa.Column("manager_id", sa.Integer(), nullable=True),
        sa.Column("basic_salary", sa.Float(), nullable=False),
        sa.Column("housing_allowance", sa.Float(), nullable=False),
        sa.Column("transport_allowance", sa.Float(), nullable=False),
        sa.Column("gosi_salary_basis", sa.Float(), nullable=True),
        sa.Column("gosi_number", sa.String(length=64), nullable=True),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("iban", sa.String(length=34), nullable=True),
        sa.Column("bank_account", sa.String(length=64), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["manager_id"], ["employees.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_number", name="uq_employees_employee_number"),
    )
    op.create_index("ix_employees_email", "employees", ["email"])
    op.create_index("ix_employees_status", "employees", ["status"])
    op.create_index("ix_employees_manager_id", "employees", ["manager_id"])

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("overtime_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("clock_in", sa.Time(), nullable=True),
        sa.Column("clock_out", sa.Time(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
    )
    op.create_index("ix_attendance_employee_id", "attendance", ["employee_id"])
    op.create_index("ix_attendance_date", "attendance", ["date"])

    op.create_table(
        "payroll_deductions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("deduction_type", payroll_deduction_type, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("start_month", sa.String(length=7), nullable=True),
        sa.Column("end_month", sa.String(length=7), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("description", sa.String(length=500), nullable=True),
    )
    op.create_index("ix_payroll_deductions_employee_id", "payroll_deductions", ["employee_id"])

    op.create_table(
        "benefit_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("benefit_name", sa.String(length=255), nullable=False),
        sa.Column("employee_contribution", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
    )
    op.create_index("ix_benefit_enrollments_employee_id", "benefit_enrollments", ["employee_id"])

    op.create_table(
        "payrolls",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("basic_salary", sa.Float(), nullable=False),
        sa.Column("housing_allowance", sa.Float(), nullable=False),
        sa.Column("transport_allowance", sa.Float(), nullable=False),
        sa.Column("other_fixed_allowances", sa.Float(), nullable=False),
        sa.Column("overtime_pay", sa.Float(), nullable=False),
        sa.Column("bonus", sa.Float(), nullable=False),
        sa.Column("commission", sa.Float(), nullable=False),
        sa.Column("gross_salary", sa.Float(), nullable=False),
        sa.Column("gosi_employee", sa.Float(), nullable=False),
        sa.Column("gosi_employer", sa.Float(), nullable=False),
        sa.Column("gosi_calculation_base", sa.Float(), nullable=False),
        sa.Column("loan_deduction", sa.Float(), nullable=False),
        sa.Column("advance_deduction", sa.Float(), nullable=False),
        sa.Column("absence_deduction", sa.Float(), nullable=False),
        sa.Column("other_deductions", sa.Float(), nullable=False),
        sa.Column("total_deductions", sa.Float(), nullable=False),
        sa.Column("net_salary", sa.Float(), nullable=False),
        sa.Column("working_days", sa.Integer(), nullable=False),
        sa.Column("present_days", sa.Integer(), nullable=False),
        sa.Column("absent_days", sa.Integer(), nullable=False),
        sa.Column("unpaid_leave_days", sa.Integer(), nullable=False),
        sa.Column("overtime_hours", sa.Float(), nullable=False),
        sa.Column("status", payroll_status, nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("processed_by", sa.String(length=255), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("employee_id", "month", name="uq_payrolls_employee_month"),
    )
    op.create_index("ix_payrolls_employee_id", "payrolls", ["employee_id"])
    op.create_index("ix_payrolls_month", "payrolls", ["month"])

    op.create_table(
        "deductions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("payroll_month", sa.String(length=7), nullable=False),
        sa.Column("deduction_type", deduction_type, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="deducted"),
        _created_at(),
    )
    op.create_index("ix_deductions_employee_id", "deductions", ["employee_id"])

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        *_approval_columns(),
        *_tier_columns("hr"),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"])

    op.create_table(
        "loan_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("loan_type", sa.String(length=64), nullable=False),
        sa.Column("amount_requested", sa.Float(), nullable=False),
        sa.Column("repayment_period", sa.Integer(), nullable=False),
        sa.Column("monthly_deduction", sa.Float(), nullable=False),
        sa.Column("purpose", sa.String(length=1000), nullable=True),
        *_approval_columns(),
        *_tier_columns("hr"),
        *_tier_columns("senior_management"),
    )
    op.create_index("ix_loan_requests_employee_id", "loan_requests", ["employee_id"])

    op.create_table(
        "travel_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("destination", sa.String(length=255), nullable=False),
        sa.Column("departure_date", sa.Date(), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column("estimated_cost", sa.Float(), nullable=False),
        sa.Column("purpose", sa.String(length=1000), nullable=True),
        *_approval_columns(),
        *_tier_columns("finance"),
    )
    op.create_index("ix_travel_requests_employee_id", "travel_requests", ["employee_id"])

    op.create_table(
        "leave_balances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_entitled", sa.Float(), nullable=False),
        sa.Column("used", sa.Float(), nullable=False),
        sa.Column("pending", sa.Float(), nullable=False),
        sa.Column("remaining", sa.Float(), nullable=False),
        sa.Column("carried_forward", sa.Float(), nullable=False),
        _updated_at(),
        sa.UniqueConstraint("employee_id", "leave_type", "year", name="uq_leave_balances_employee_type_year"),
    )
    op.create_index("ix_leave_balances_employee_id", "leave_balances", ["employee_id"])

    op.create_table(
        "leave_accrual_policies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("policy_name", sa.String(length=255), nullable=False),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("annual_entitlement", sa.Float(), nullable=False),
        sa.Column("monthly_accrual_rate", sa.Float(), nullable=False),
        sa.Column("probation_period_months", sa.Integer(), nullable=False),
        sa.Column("accrue_during_probation", sa.Boolean(), nullable=False),
        sa.Column("prorate_for_new_hires", sa.Boolean(), nullable=False),
        sa.Column("employment_types", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("max_carryover", sa.Float(), nullable=False),
        sa.Column("carryover_expiry_months", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )

    op.create_table(
        "leave_accruals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column(
            "policy_id",
            sa.Integer(),
            sa.ForeignKey("leave_accrual_policies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("accrual_date", sa.Date(), nullable=False),
        sa.Column("accrual_period", sa.String(length=7), nullable=False),
        sa.Column("days_accrued", sa.Float(), nullable=False),
        sa.Column("balance_before", sa.Float(), nullable=False),
        sa.Column("balance_after", sa.Float(), nullable=False),
        sa.Column("accrual_rate", sa.Float(), nullable=False),
        sa.Column("employment_months", sa.Integer(), nullable=False),
        sa.Column("is_prorated", sa.Boolean(), nullable=False),
        sa.Column("proration_factor", sa.Float(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("processed_by", sa.String(length=255), nullable=True),
        _created_at(),
    )
    op.create_index("ix_leave_accruals_employee_id", "leave_accruals", ["employee_id"])
    op.create_index("ix_leave_accruals_accrual_period", "leave_accruals", ["accrual_period"])

    op.create_table(
        "public_holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("holiday_name", sa.String(length=255), nullable=False),
        sa.Column("holiday_name_ar", sa.String(length=255), nullable=True),
        sa.Column("holiday_type", sa.String(length=64), nullable=False, server_default="national"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_public_holidays_date", "public_holidays", ["date"])
    op.create_index("ix_public_holidays_year", "public_holidays", ["year"])

    op.create_table(
        "onboarding_checklists",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("checklist_name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("job_role", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "onboarding_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "checklist_id",
            sa.Integer(),
            sa.ForeignKey("onboarding_checklists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _employee_fk(),
        sa.Column("task_title", sa.String(length=255), nullable=False),
        sa.Column("task_description", sa.Text(), nullable=True),
        sa.Column("task_type", sa.String(length=64), nullable=False),
        sa.Column("assigned_to", onboarding_assignee, nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", onboarding_task_status, nullable=False),
        sa.Column("requires_document", sa.Boolean(), nullable=False),
        sa.Column("requires_signature", sa.Boolean(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("completed_date", sa.Date(), nullable=True),
        sa.Column("completed_by", sa.String(length=255), nullable=True),
        sa.Column("document_url", sa.String(length=1024), nullable=True),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_onboarding_tasks_checklist_id", "onboarding_tasks", ["checklist_id"])
    op.create_index("ix_onboarding_tasks_employee_id", "onboarding_tasks", ["employee_id"])
    op.create_index("ix_onboarding_tasks_due_date", "onboarding_tasks", ["due_date"])
    op.create_index("ix_onboarding_tasks_status", "onboarding_tasks", ["status"])

    op.create_table(
        "qiwa_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _employee_fk(),
        sa.Column("iqama_number", sa.String(length=32), nullable=True),
        sa.Column("border_number", sa.String(length=32), nullable=True),
        sa.Column("work_permit_number", sa.String(length=64), nullable=True),
        sa.Column("work_permit_expiry", sa.Date(), nullable=True),
        sa.Column("job_title_ar", sa.String(length=255), nullable=True),
        sa.Column("occupation_code", sa.String(length=32), nullable=True),
        sa.Column("contract_type", sa.String(length=64), nullable=True),
        sa.Column("contract_start_date", sa.Date(), nullable=True),
        sa.Column("contract_end_date", sa.Date(), nullable=True),
        sa.Column("qiwa_id", sa.String(length=64), nullable=True),
        sa.Column("registration_status", qiwa_registration_status, nullable=False),
        sa.Column("registration_date", sa.Date(), nullable=True),
        sa.Column("last_sync_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_status", sync_status, nullable=False),
        sa.Column("sync_error", sa.String(length=1000), nullable=True),
    )
    op.create_index("ix_qiwa_records_employee_id", "qiwa_records", ["employee_id"])

    op.create_table(
        "sinad_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.String(length=64), nullable=True),
        sa.Column("submission_month", sa.String(length=7), nullable=False),
        sa.Column("submission_type", sa.String(length=32), nullable=False),
        sa.Column("total_employees", sa.Integer(), nullable=False),
        sa.Column("total_wages", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("file_reference", sa.String(length=128), nullable=True),
        sa.Column("submission_date", sa.Date(), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("compliance_score", sa.Float(), nullable=True),
        sa.Column("approval_date", sa.Date(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=1000), nullable=True),
    )
    op.create_index("ix_sinad_records_submission_month", "sinad_records", ["submission_month"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])


def downgrade() -> None:
    for table_name in (
        "audit_logs",
        "sinad_records",
        "qiwa_records",
        "onboarding_tasks",
        "onboarding_checklists",
        "public_holidays",
        "leave_accruals",
        "leave_accrual_policies",
        "leave_balances",
        "travel_requests",
        "loan_requests",
        "leave_requests",
        "deductions",
        "payrolls",
        "benefit_enrollments",
        "payroll_deductions",
        "attendance",
        "employees",
        "users",
    ):
        op.drop_table(table_name)

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
