from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import bad_request, not_found
from hrms.models import (
    Attendance,
    AttendanceStatus,
    BenefitEnrollment,
    Deduction,
    DeductionType,
    Employee,
    EmployeeStatus,
    LeaveRequest,
    LeaveType,
    LoanRequest,
    Payroll,
    PayrollDeduction,
    PayrollStatus,
    RequestStatus,
)
from hrms.services.payroll_calc import (
    OCCUPATIONAL_HAZARDS_RATE,
    SANED_RATE,
    PayrollComputation,
    PayrollInputs,
    calculate_payroll,
    is_saudi_national,
    month_bounds,
    round_money,
    unpaid_leave_days_in_month,
)
from hrms.settings import get_settings

logger = logging.getLogger("hrms.payroll")

PRESENT_STATUSES = {AttendanceStatus.PRESENT, AttendanceStatus.LATE}
ACTIVE_LOAN_STATUSES = (RequestStatus.APPROVED, RequestStatus.DISBURSED)
PAYROLL_STATUS_FLOW: dict[PayrollStatus, PayrollStatus] = {
    PayrollStatus.CALCULATED: PayrollStatus.APPROVED,
    PayrollStatus.APPROVED: PayrollStatus.PAID,
}


@dataclass
class PayrollRunResult:
    month: str
    processed: list[Payroll] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_gross(self) -> float:
        return round_money(sum(item.gross_salary for item in self.processed))

    @property
    def total_net(self) -> float:
        return round_money(sum(item.net_salary for item in self.processed))

    @property
    def total_gosi_employer(self) -> float:
        return round_money(sum(item.gosi_employer for item in self.processed))


def _require_month(month: str | None) -> tuple[str, date, date]:
    """Return the normalised ``YYYY-MM`` key with the first and last day of the month."""
    if not month:
        raise bad_request("Month is required (format: YYYY-MM)")
    try:
        month_start, month_end = month_bounds(month)
    except ValueError as exc:
        raise bad_request(str(exc)) from exc
    return month_start.strftime("%Y-%m"), month_start, month_end


def _load_employees(db: Session, employee_ids: list[int] | None) -> list[Employee]:
    stmt = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE).order_by(Employee.id.asc())
    if employee_ids:
        stmt = stmt.where(Employee.id.in_(employee_ids))
    return list(db.scalars(stmt).all())


def _load_attendance(db: Session, month_start: date, month_end: date) -> list[Attendance]:
    stmt = select(Attendance).where(Attendance.date >= month_start, Attendance.date <= month_end)
    return list(db.scalars(stmt).all())


def _load_unpaid_leaves(db: Session, month_start: date, month_end: date) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).where(
        LeaveRequest.status == RequestStatus.APPROVED,
        LeaveRequest.leave_type == LeaveType.UNPAID,
        LeaveRequest.start_date <= month_end,
        LeaveRequest.end_date >= month_start,
    )
    return list(db.scalars(stmt).all())


def _load_active_loans(db: Session) -> list[LoanRequest]:
    stmt = select(LoanRequest).where(LoanRequest.status.in_(ACTIVE_LOAN_STATUSES))
    return list(db.scalars(stmt).all())


def _load_payroll_deductions(db: Session) -> list[PayrollDeduction]:
    stmt = select(PayrollDeduction).where(PayrollDeduction.is_active.is_(True))
    return list(db.scalars(stmt).all())


def _load_benefit_enrollments(db: Session) -> list[BenefitEnrollment]:
    stmt = select(BenefitEnrollment).where(BenefitEnrollment.status == "active")
    return list(db.scalars(stmt).all())


def _existing_payroll_employee_ids(db: Session, month: str) -> set[int]:
    stmt = select(Payroll.employee_id).where(Payroll.month == month)
    return set(db.scalars(stmt).all())


def _deduction_applies(deduction: PayrollDeduction, month: str) -> bool:
    if not deduction.is_active:
        return False
    if deduction.start_month and deduction.start_month > month:
        return False
    if deduction.end_month and deduction.end_month < month:
        return False
    return True


def build_payroll_inputs(
    employee: Employee,
    *,
    month: str,
    attendance: list[Attendance],
    unpaid_leaves: list[LeaveRequest],
    loans: list[LoanRequest],
    deductions: list[PayrollDeduction],
    benefits: list[BenefitEnrollment],
    working_days: int,
) -> PayrollInputs:
    present_days = sum(1 for item in attendance if item.status in PRESENT_STATUSES)
    overtime_hours = sum(float(item.overtime_hours or 0.0) for item in attendance)
    unpaid_days = unpaid_leave_days_in_month(
        ((leave.start_date, leave.end_date) for leave in unpaid_leaves),
        month,
    )

    loan_deduction = sum(float(loan.monthly_deduction or 0.0) for loan in loans)
    advance_deduction = 0.0
    other_deductions = 0.0
    for deduction in deductions:
        if not _deduction_applies(deduction, month):
            continue
        if deduction.deduction_type == DeductionType.LOAN_REPAYMENT:
            loan_deduction += float(deduction.amount or 0.0)
        elif deduction.deduction_type == DeductionType.ADVANCE_SALARY:
            advance_deduction += float(deduction.amount or 0.0)
        elif deduction.deduction_type != DeductionType.GOSI_EMPLOYEE:
            other_deductions += float(deduction.amount or 0.0)

    return PayrollInputs(
        basic_salary=float(employee.basic_salary or 0.0),
        housing_allowance=float(employee.housing_allowance or 0.0),
        transport_allowance=float(employee.transport_allowance or 0.0),
        nationality=employee.nationality,
        gosi_salary_basis=employee.gosi_salary_basis,
        present_days=present_days,
        overtime_hours=overtime_hours,
        unpaid_leave_days=unpaid_days,
        loan_deduction=loan_deduction,
        advance_deduction=advance_deduction,
        other_deductions=other_deductions,
        benefit_contributions=sum(float(item.employee_contribution or 0.0) for item in benefits),
        working_days=working_days,
    )


def _payroll_from_computation(
    employee: Employee,
    *,
    month: str,
    computation: PayrollComputation,
    processed_by: str,
) -> Payroll:
    return Payroll(
        employee_id=employee.id,
        month=month,
        basic_salary=computation.basic_salary,
        housing_allowance=computation.housing_allowance,
        transport_allowance=computation.transport_allowance,
        other_fixed_allowances=computation.other_fixed_allowances,
        overtime_pay=computation.overtime_pay,
        bonus=computation.bonus,
        commission=computation.commission,
        gross_salary=computation.gross_salary,
        gosi_employee=computation.gosi_employee,
        gosi_employer=computation.gosi_employer,
        gosi_calculation_base=computation.gosi_calculation_base,
        loan_deduction=computation.loan_deduction,
        advance_deduction=computation.advance_deduction,
        absence_deduction=computation.absence_deduction,
        other_deductions=computation.other_deductions,
        total_deductions=computation.total_deductions,
        net_salary=computation.net_salary,
        working_days=computation.working_days,
        present_days=computation.present_days,
        absent_days=computation.absent_days,
        unpaid_leave_days=computation.unpaid_leave_days,
        overtime_hours=computation.overtime_hours,
        status=PayrollStatus.CALCULATED,
        payment_method="bank_transfer" if (employee.iban or employee.bank_account) else "cash",
        processed_by=processed_by,
    )


def process_monthly_payroll(
    db: Session,
    *,
    month: str | None,
    employee_ids: list[int] | None = None,
    processed_by: str,
) -> PayrollRunResult:
    """Compute and persist one payroll row per active employee for ``month``.

    Employees are processed one after another and each one is committed on
    its own; a failure for one employee is rolled back and reported in
    ``errors`` while the remaining employees are still processed.
    """
    month, month_start, month_end = _require_month(month)
    working_days = get_settings().payroll_working_days

    employees = _load_employees(db, employee_ids)
    attendance_by_employee: dict[int, list[Attendance]] = defaultdict(list)
    for record in _load_attendance(db, month_start, month_end):
        attendance_by_employee[record.employee_id].append(record)
    leaves_by_employee: dict[int, list[LeaveRequest]] = defaultdict(list)
    for leave in _load_unpaid_leaves(db, month_start, month_end):
        leaves_by_employee[leave.employee_id].append(leave)
    loans_by_employee: dict[int, list[LoanRequest]] = defaultdict(list)
    for loan in _load_active_loans(db):
        loans_by_employee[loan.employee_id].append(loan)
    deductions_by_employee: dict[int, list[PayrollDeduction]] = defaultdict(list)
    for deduction in _load_payroll_deductions(db):
        deductions_by_employee[deduction.employee_id].append(deduction)
    benefits_by_employee: dict[int, list[BenefitEnrollment]] = defaultdict(list)
    for enrollment in _load_benefit_enrollments(db):
        benefits_by_employee[enrollment.employee_id].append(enrollment)
    already_processed = _existing_payroll_employee_ids(db, month)

    logger.info(
        "payroll_run_started",
        extra={"month": month, "employee_count": len(employees), "processed_by": processed_by},
    )

    result = PayrollRunResult(month=month)
    for employee in employees:
        try:
            if employee.id in already_processed:
                raise ValueError(f"Payroll already exists for {month}")

            inputs = build_payroll_inputs(
                employee,
                month=month,
                attendance=attendance_by_employee.get(employee.id, []),
                unpaid_leaves=leaves_by_employee.get(employee.id, []),
                loans=loans_by_employee.get(employee.id, []),
                deductions=deductions_by_employee.get(employee.id, []),
                benefits=benefits_by_employee.get(employee.id, []),
                working_days=working_days,
            )
            computation = calculate_payroll(inputs)

            if computation.unpaid_leave_deduction > 0:
                db.add(
                    Deduction(
                        employee_id=employee.id,
                        payroll_month=month,
                        deduction_type=DeductionType.ABSENCE,
                        amount=computation.unpaid_leave_deduction,
                        description=f"Unpaid leave deduction: {computation.unpaid_leave_days} day(s)",
                        status="deducted",
                    )
                )

            payroll = _payroll_from_computation(
                employee,
                month=month,
                computation=computation,
                processed_by=processed_by,
            )
            db.add(payroll)
            db.commit()
            db.refresh(payroll)
            result.processed.append(payroll)
        except Exception as exc:
            db.rollback()
            logger.warning(
                "payroll_employee_failed",
                extra={"month": month, "employee_id": employee.id, "error": str(exc)},
            )
            result.errors.append(
                {
                    "employee_id": employee.id,
                    "employee_name": employee.full_name,
                    "error": str(exc),
                }
            )

    logger.info(
        "payroll_run_completed",
        extra={
            "month": month,
            "processed_count": len(result.processed),
            "error_count": len(result.errors),
            "total_gross": result.total_gross,
            "total_net": result.total_net,
        },
    )
    return result


def advance_payroll_status(db: Session, *, payroll_id: int, target_status: PayrollStatus) -> Payroll:
    payroll = db.get(Payroll, payroll_id)
    if payroll is None:
        raise not_found("Payroll not found")

    current = payroll.status
    if PAYROLL_STATUS_FLOW.get(current) != target_status:
        raise bad_request(
            f"Cannot move payroll from {current.value} to {target_status.value}",
            code="INVALID_TRANSITION",
        )

    payroll.status = target_status
    if target_status == PayrollStatus.PAID and payroll.payment_date is None:
        payroll.payment_date = date.today()
    db.commit()
    db.refresh(payroll)
    return payroll


def build_gosi_report(db: Session, *, month: str | None) -> dict[str, Any]:
    month, _, _ = _require_month(month)
    rows = db.execute(
        select(Payroll, Employee)
        .join(Employee, Employee.id == Payroll.employee_id)
        .where(Payroll.month == month)
        .order_by(Payroll.employee_id.asc())
    ).all()
    return summarize_gosi(month, [(payroll, employee) for payroll, employee in rows])


def summarize_gosi(month: str, rows: list[tuple[Payroll, Employee]]) -> dict[str, Any]:
    saudi_rows: list[dict[str, Any]] = []
    non_saudi_rows: list[dict[str, Any]] = []
    total_wages = 0.0
    saudi_wages = 0.0
    total_employee = 0.0
    total_employer = 0.0

    for payroll, employee in rows:
        base = float(payroll.gosi_calculation_base or payroll.basic_salary or 0.0)
        saudi = is_saudi_national(employee.nationality)
        entry = {
            "payroll_id": payroll.id,
            "employee_id": employee.id,
            "employee_name": employee.full_name,
            "national_id": employee.national_id,
            "gosi_number": employee.gosi_number,
            "nationality": employee.nationality,
            "gosi_calculation_base": round_money(base),
            "gosi_employee": payroll.gosi_employee,
            "gosi_employer": payroll.gosi_employer,
        }
        total_wages += base
        total_employee += float(payroll.gosi_employee or 0.0)
        total_employer += float(payroll.gosi_employer or 0.0)
        if saudi:
            saudi_wages += base
            saudi_rows.append(entry)
        else:
            non_saudi_rows.append(entry)

    return {
        "month": month,
        "total_employees": len(rows),
        "saudi_count": len(saudi_rows),
        "non_saudi_count": len(non_saudi_rows),
        "total_wages": round_money(total_wages),
        "total_employee_contribution": round_money(total_employee),
        "total_employer_contribution": round_money(total_employer),
        "total_contribution": round_money(total_employee + total_employer),
        "occupational_hazards": round_money(total_wages * OCCUPATIONAL_HAZARDS_RATE),
        "saned_contribution": round_money(saudi_wages * SANED_RATE),
        "saudi_employees": saudi_rows,
        "non_saudi_employees": non_saudi_rows,
    }
