from __future__ import annotations

import datetime as dt
import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_type(enum_cls: type[enum.Enum], name: str) -> Enum:
    # Persist the lower-case wire values rather than the member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class EmploymentType(str, enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    TEMPORARY = "temporary"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    ON_LEAVE = "on_leave"


class LeaveType(str, enum.Enum):
    ANNUAL = "annual"
    SICK = "sick"
    UNPAID = "unpaid"
    EMERGENCY = "emergency"
    MATERNITY = "maternity"
    HAJJ = "hajj"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    CLOSED = "closed"


class TierStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NOT_REQUIRED = "not_required"


class ApproverRole(str, enum.Enum):
    MANAGER = "manager"
    HR = "hr"
    SENIOR_MANAGEMENT = "senior_management"
    FINANCE = "finance"
    COMPLETED = "completed"


class PayrollStatus(str, enum.Enum):
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"


class DeductionType(str, enum.Enum):
    LOAN_REPAYMENT = "loan_repayment"
    ADVANCE_SALARY = "advance_salary"
    GOSI_EMPLOYEE = "gosi_employee"
    ABSENCE = "absence"
    OTHER = "other"


class OnboardingAssignee(str, enum.Enum):
    NEW_HIRE = "new_hire"
    MANAGER = "manager"
    HR = "hr"
    IT = "it"


class OnboardingTaskStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class QiwaRegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    REGISTERED = "registered"


class SyncStatus(str, enum.Enum):
    NEVER = "never"
    SUCCESS = "success"
    ERROR = "error"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"
    SYSTEM = "SYSTEM"


def _created_at_column() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )


def _updated_at_column() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        _enum_type(UserRole, "user_role"),
        nullable=False,
        default=UserRole.USER,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at_column()


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_number: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    first_name_ar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name_ar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    national_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[EmployeeStatus] = mapped_column(
        _enum_type(EmployeeStatus, "employee_status"),
        nullable=False,
        default=EmployeeStatus.ACTIVE,
        index=True,
    )
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_type: Mapped[EmploymentType] = mapped_column(
        _enum_type(EmploymentType, "employment_type"),
        nullable=False,
        default=EmploymentType.FULL_TIME,
    )
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    basic_salary: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    housing_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    transport_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gosi_salary_basis: Mapped[float | None] = mapped_column(Float, nullable=True)
    gosi_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    bank_account: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = _created_at_column()
    updated_at: Mapped[datetime] = _updated_at_column()

    manager: Mapped[Employee | None] = relationship(remote_side="Employee.id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        _enum_type(AttendanceStatus, "attendance_status"),
        nullable=False,
    )
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    clock_in: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    clock_out: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class PayrollDeduction(Base):
    __tablename__ = "payroll_deductions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    deduction_type: Mapped[DeductionType] = mapped_column(
        _enum_type(DeductionType, "payroll_deduction_type"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    start_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    end_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)


class BenefitEnrollment(Base):
    __tablename__ = "benefit_enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    benefit_name: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_contribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")


class Payroll(Base):
    __tablename__ = "payrolls"
    __table_args__ = (UniqueConstraint("employee_id", "month", name="uq_payrolls_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    basic_salary: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    housing_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    transport_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_fixed_allowances: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    overtime_pay: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bonus: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gross_salary: Mapped[float] = mapped_column(Float, nullable=False)
    gosi_employee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gosi_employer: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gosi_calculation_base: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    loan_deduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    advance_deduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    absence_deduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_deductions: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_deductions: Mapped[float] = mapped_column(Float, nullable=False)
    net_salary: Mapped[float] = mapped_column(Float, nullable=False)
    working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unpaid_leave_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[PayrollStatus] = mapped_column(
        _enum_type(PayrollStatus, "payroll_status"),
        nullable=False,
        default=PayrollStatus.CALCULATED,
    )
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="cash")
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = _created_at_column()

    employee: Mapped[Employee] = relationship()


class Deduction(Base):
    __tablename__ = "deductions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    payroll_month: Mapped[str] = mapped_column(String(7), nullable=False)
    deduction_type: Mapped[DeductionType] = mapped_column(
        _enum_type(DeductionType, "deduction_type"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="deducted")
    created_at: Mapped[datetime] = _created_at_column()


class _ApprovalFieldsMixin:
    status: Mapped[RequestStatus] = mapped_column(
        _enum_type(RequestStatus, "request_status"),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    current_approver_role: Mapped[ApproverRole] = mapped_column(
        _enum_type(ApproverRole, "approver_role"),
        nullable=False,
        default=ApproverRole.MANAGER,
    )
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    manager_status: Mapped[TierStatus | None] = mapped_column(_enum_type(TierStatus, "tier_status"), nullable=True)
    manager_approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    manager_comments: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = _created_at_column()
    updated_at: Mapped[datetime] = _updated_at_column()


class _HrTierMixin:
    hr_status: Mapped[TierStatus | None] = mapped_column(_enum_type(TierStatus, "tier_status"), nullable=True)
    hr_approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hr_approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_comments: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class LeaveRequest(_HrTierMixin, _ApprovalFieldsMixin, Base):
    __tablename__ = "leave_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type: Mapped[LeaveType] = mapped_column(_enum_type(LeaveType, "leave_type"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class LoanRequest(_HrTierMixin, _ApprovalFieldsMixin, Base):
    __tablename__ = "loan_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    loan_type: Mapped[str] = mapped_column(String(64), nullable=False, default="personal")
    amount_requested: Mapped[float] = mapped_column(Float, nullable=False)
    repayment_period: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    monthly_deduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    purpose: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    senior_management_status: Mapped[TierStatus | None] = mapped_column(
        _enum_type(TierStatus, "tier_status"),
        nullable=True,
    )
    senior_management_approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    senior_management_approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    senior_management_comments: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class TravelRequest(_ApprovalFieldsMixin, Base):
    __tablename__ = "travel_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    estimated_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    purpose: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    finance_status: Mapped[TierStatus | None] = mapped_column(_enum_type(TierStatus, "tier_status"), nullable=True)
    finance_approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    finance_approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    finance_comments: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", "year", name="uq_leave_balances_employee_type_year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type: Mapped[LeaveType] = mapped_column(_enum_type(LeaveType, "leave_type"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_entitled: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pending: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    remaining: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    carried_forward: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = _updated_at_column()


class LeaveAccrualPolicy(Base):
    __tablename__ = "leave_accrual_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    policy_name: Mapped[str] = mapped_column(String(255), nullable=False)
    leave_type: Mapped[LeaveType] = mapped_column(_enum_type(LeaveType, "leave_type"), nullable=False)
    annual_entitlement: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    monthly_accrual_rate: Mapped[float] = mapped_column(Float, nullable=False)
    probation_period_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accrue_during_probation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prorate_for_new_hires: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    employment_types: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    max_carryover: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    carryover_expiry_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class LeaveAccrual(Base):
    __tablename__ = "leave_accruals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type: Mapped[LeaveType] = mapped_column(_enum_type(LeaveType, "leave_type"), nullable=False)
    policy_id: Mapped[int | None] = mapped_column(
        ForeignKey("leave_accrual_policies.id", ondelete="SET NULL"),
        nullable=True,
    )
    accrual_date: Mapped[date] = mapped_column(Date, nullable=False)
    accrual_period: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    days_accrued: Mapped[float] = mapped_column(Float, nullable=False)
    balance_before: Mapped[float] = mapped_column(Float, nullable=False)
    balance_after: Mapped[float] = mapped_column(Float, nullable=False)
    accrual_rate: Mapped[float] = mapped_column(Float, nullable=False)
    employment_months: Mapped[int] = mapped_column(Integer, nullable=False)
    is_prorated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    proration_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    holiday_name: Mapped[str] = mapped_column(String(255), nullable=False)
    holiday_name_ar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    holiday_type: Mapped[str] = mapped_column(String(64), nullable=False, default="national")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class OnboardingChecklist(Base):
    __tablename__ = "onboarding_checklists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    checklist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_role: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class OnboardingTask(Base):
    __tablename__ = "onboarding_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    checklist_id: Mapped[int] = mapped_column(
        ForeignKey("onboarding_checklists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    task_title: Mapped[str] = mapped_column(String(255), nullable=False)
    task_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_type: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_to: Mapped[OnboardingAssignee] = mapped_column(
        _enum_type(OnboardingAssignee, "onboarding_assignee"),
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[OnboardingTaskStatus] = mapped_column(
        _enum_type(OnboardingTaskStatus, "onboarding_task_status"),
        nullable=False,
        default=OnboardingTaskStatus.NOT_STARTED,
        index=True,
    )
    requires_document: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_signature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    document_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    signature_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class QIWARecord(Base):
    __tablename__ = "qiwa_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    iqama_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    border_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    work_permit_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    work_permit_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    job_title_ar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    occupation_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    contract_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    contract_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    qiwa_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    registration_status: Mapped[QiwaRegistrationStatus] = mapped_column(
        _enum_type(QiwaRegistrationStatus, "qiwa_registration_status"),
        nullable=False,
        default=QiwaRegistrationStatus.PENDING,
    )
    registration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_sync_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_status: Mapped[SyncStatus] = mapped_column(
        _enum_type(SyncStatus, "sync_status"),
        nullable=False,
        default=SyncStatus.NEVER,
    )
    sync_error: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class SINADRecord(Base):
    __tablename__ = "sinad_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    submission_month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    submission_type: Mapped[str] = mapped_column(String(32), nullable=False, default="regular")
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_wages: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="generated")
    file_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    submission_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    compliance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
