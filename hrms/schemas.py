from datetime import date, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.models import (
    ApproverRole,
    AttendanceStatus,
    EmployeeStatus,
    EmploymentType,
    LeaveType,
    OnboardingAssignee,
    OnboardingTaskStatus,
    PayrollStatus,
    RequestStatus,
    TierStatus,
)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    user_id: int | None
    email: str
    role: str
    full_name: str | None = None


class EmployeeCreate(BaseModel):
    employee_number: str | None = Field(default=None, max_length=64)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(default="", max_length=255)
    first_name_ar: str | None = None
    last_name_ar: str | None = None
    email: str | None = Field(default=None, max_length=255)
    national_id: str | None = Field(default=None, max_length=32)
    nationality: str | None = Field(default=None, max_length=64)
    gender: str | None = Field(default=None, max_length=16)
    date_of_birth: date | None = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    hire_date: date | None = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    department: str | None = None
    job_title: str | None = None
    manager_id: int | None = Field(default=None, ge=1)
    basic_salary: float = Field(default=0.0, ge=0)
    housing_allowance: float = Field(default=0.0, ge=0)
    transport_allowance: float = Field(default=0.0, ge=0)
    gosi_salary_basis: float | None = Field(default=None, ge=0)
    gosi_number: str | None = None
    bank_name: str | None = None
    iban: str | None = Field(default=None, max_length=34)
    bank_account: str | None = None


class EmployeeUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    first_name_ar: str | None = None
    last_name_ar: str | None = None
    email: str | None = Field(default=None, max_length=255)
    national_id: str | None = Field(default=None, max_length=32)
    nationality: str | None = Field(default=None, max_length=64)
    status: EmployeeStatus | None = None
    hire_date: date | None = None
    employment_type: EmploymentType | None = None
    department: str | None = None
    job_title: str | None = None
    manager_id: int | None = Field(default=None, ge=1)
    basic_salary: float | None = Field(default=None, ge=0)
    housing_allowance: float | None = Field(default=None, ge=0)
    transport_allowance: float | None = Field(default=None, ge=0)
    gosi_salary_basis: float | None = Field(default=None, ge=0)
    gosi_number: str | None = None
    bank_name: str | None = None
    iban: str | None = Field(default=None, max_length=34)
    bank_account: str | None = None


class EmployeeRead(BaseModel):
    id: int
    employee_number: str | None
    first_name: str
    last_name: str
    full_name: str
    email: str | None
    national_id: str | None
    nationality: str | None
    status: EmployeeStatus
    hire_date: date | None
    employment_type: EmploymentType
    department: str | None
    job_title: str | None
    manager_id: int | None
    basic_salary: float
    housing_allowance: float
    transport_allowance: float
    gosi_salary_basis: float | None
    iban: str | None

    model_config = ConfigDict(from_attributes=True)


class PayrollProcessRequest(BaseModel):
    month: str | None = None
    employee_ids: list[int] | None = None


class PayrollRead(BaseModel):
    id: int
    employee_id: int
    month: str
    basic_salary: float
    housing_allowance: float
    transport_allowance: float
    other_fixed_allowances: float
    overtime_pay: float
    bonus: float
    commission: float
    gross_salary: float
    gosi_employee: float
    gosi_employer: float
    gosi_calculation_base: float
    loan_deduction: float
    advance_deduction: float
    absence_deduction: float
    other_deductions: float
    total_deductions: float
    net_salary: float
    working_days: int
    present_days: int
    absent_days: int
    unpaid_leave_days: int
    overtime_hours: float
    status: PayrollStatus
    payment_method: str
    payment_date: date | None = None
    processed_by: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PayrollErrorItem(BaseModel):
    employee_id: int
    employee_name: str
    error: str


class PayrollProcessResponse(BaseModel):
    success: bool = True
    month: str
    processed_count: int
    error_count: int
    total_gross: float
    total_net: float
    total_gosi_employer: float
    processed_payrolls: list[PayrollRead]
    errors: list[PayrollErrorItem]


class PayrollStatusUpdateRequest(BaseModel):
    status: PayrollStatus


class GosiReportRequest(BaseModel):
    month: str | None = None


class ApprovalDecisionRequest(BaseModel):
    action: str | None = None
    comments: str | None = Field(default=None, max_length=1000)


class ApprovalFieldsRead(BaseModel):
    id: int
    employee_id: int
    status: RequestStatus
    current_approver_role: ApproverRole
    rejection_reason: str | None = None
    manager_status: TierStatus | None = None
    manager_approved_by: str | None = None
    manager_approval_date: date | None = None
    manager_comments: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestRead(ApprovalFieldsRead):
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: float
    reason: str | None = None
    hr_status: TierStatus | None = None
    hr_approved_by: str | None = None
    hr_approval_date: date | None = None
    hr_comments: str | None = None


class LoanRequestRead(ApprovalFieldsRead):
    loan_type: str
    amount_requested: float
    repayment_period: int
    monthly_deduction: float
    purpose: str | None = None
    hr_status: TierStatus | None = None
    hr_approved_by: str | None = None
    hr_approval_date: date | None = None
    hr_comments: str | None = None
    senior_management_status: TierStatus | None = None
    senior_management_approved_by: str | None = None
    senior_management_approval_date: date | None = None
    senior_management_comments: str | None = None


class TravelRequestRead(ApprovalFieldsRead):
    destination: str
    departure_date: date
    return_date: date
    estimated_cost: float
    purpose: str | None = None
    finance_status: TierStatus | None = None
    finance_approved_by: str | None = None
    finance_approval_date: date | None = None
    finance_comments: str | None = None


class ApprovalDecisionResponse(BaseModel):
    success: bool = True
    message: str
    updated_request: dict[str, Any]


class LeaveRequestCreate(BaseModel):
    employee_id: int | None = Field(default=None, ge=1)
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class LoanRequestCreate(BaseModel):
    employee_id: int | None = Field(default=None, ge=1)
    loan_type: str = Field(default="personal", max_length=64)
    amount_requested: float = Field(gt=0)
    repayment_period: int = Field(default=12, ge=1, le=120)
    purpose: str | None = Field(default=None, max_length=1000)


class TravelRequestCreate(BaseModel):
    employee_id: int | None = Field(default=None, ge=1)
    destination: str = Field(min_length=1, max_length=255)
    departure_date: date
    return_date: date
    estimated_cost: float = Field(default=0.0, ge=0)
    purpose: str | None = Field(default=None, max_length=1000)


class LeaveDaysRequest(BaseModel):
    start_date: date | None = None
    end_date: date | None = None


class AccrualProcessRequest(BaseModel):
    accrual_period: str | None = None
    force_reprocess: bool = False


class AccrualPolicyRead(BaseModel):
    id: int
    policy_name: str
    leave_type: LeaveType
    annual_entitlement: float
    monthly_accrual_rate: float
    probation_period_months: int
    accrue_during_probation: bool
    prorate_for_new_hires: bool
    employment_types: list[str]
    max_carryover: float
    is_active: bool
    effective_from: date | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AccrualPolicyInitResponse(BaseModel):
    success: bool
    message: str
    policies_created: int
    policies: list[AccrualPolicyRead]


class LeaveBalanceRead(BaseModel):
    id: int
    employee_id: int
    leave_type: LeaveType
    year: int
    total_entitled: float
    used: float
    pending: float
    remaining: float
    carried_forward: float

    model_config = ConfigDict(from_attributes=True)


class HolidayInitRequest(BaseModel):
    year: int | None = Field(default=None, ge=2000, le=2100)
    force_recreate: bool = False


class PublicHolidayRead(BaseModel):
    id: int
    date: date
    year: int
    holiday_name: str
    holiday_name_ar: str | None = None
    holiday_type: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class HolidayInitResponse(BaseModel):
    success: bool
    year: int
    created_count: int
    replaced_count: int
    islamic_included: bool
    holidays: list[PublicHolidayRead]


class AttendancePunchRequest(BaseModel):
    punch_type: Literal["clock_in", "clock_out"]
    notes: str | None = Field(default=None, max_length=2000)


class AttendanceRecordRequest(BaseModel):
    employee_id: int = Field(ge=1)
    date: date
    status: AttendanceStatus
    clock_in: time | None = None
    clock_out: time | None = None
    overtime_hours: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2000)


class AttendanceRead(BaseModel):
    id: int
    employee_id: int
    date: date
    status: AttendanceStatus
    clock_in: time | None = None
    clock_out: time | None = None
    actual_hours: float | None = None
    overtime_hours: float
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OnboardingAssignRequest(BaseModel):
    employee_id: int | None = None
    checklist_id: int | None = None
    start_date: date | None = None


class OnboardingTaskRead(BaseModel):
    id: int
    checklist_id: int
    employee_id: int
    task_title: str
    task_description: str | None = None
    task_type: str
    assigned_to: OnboardingAssignee
    priority: str
    day_number: int
    due_date: date
    status: OnboardingTaskStatus
    requires_document: bool
    requires_signature: bool
    order: int
    completed_date: date | None = None
    completed_by: str | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OnboardingAssignResponse(BaseModel):
    success: bool = True
    message: str
    checklist_id: int
    checklist_name: str
    tasks_created: int
    tasks: list[OnboardingTaskRead]


class OnboardingReminderRequest(BaseModel):
    employee_id: int | None = None
    task_id: int | None = None


class OnboardingTaskCompleteRequest(BaseModel):
    notes: str | None = None
    document_url: str | None = Field(default=None, max_length=1024)
    signature_data: str | None = None


class OnboardingTaskCompleteResponse(BaseModel):
    success: bool = True
    message: str
    task: OnboardingTaskRead
    completion_percentage: int
    total_tasks: int
    completed_tasks: int
    remaining_tasks: int


class QiwaActionRequest(BaseModel):
    action: str | None = None
    employee_id: int | None = None
    qiwa_record_id: int | None = None


class SinadActionRequest(BaseModel):
    action: str | None = None
    sinad_record_id: int | None = None
    company_id: str | None = None
    submission_month: str | None = None
