from __future__ import annotations

from calendar import monthrange
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable

GOSI_SAUDI_EMPLOYEE_RATE = 0.10
GOSI_SAUDI_EMPLOYER_RATE = 0.12
GOSI_NON_SAUDI_EMPLOYER_RATE = 0.02
OCCUPATIONAL_HAZARDS_RATE = 0.02
SANED_RATE = 0.02

DEFAULT_WORKING_DAYS = 30
HOURS_PER_WORKING_DAY = 8
OVERTIME_MULTIPLIER = 1.5

SAUDI_NATIONALITIES = {"saudi", "saudi arabia"}


def round_money(value: float) -> float:
    return round(float(value), 2)


def parse_month(value: str) -> tuple[int, int]:
    """Parse a ``YYYY-MM`` payroll month; raises ValueError when malformed."""
    raw = (value or "").strip()
    parts = raw.split("-")
    if len(parts) != 2 or len(parts[0]) != 4 or len(parts[1]) != 2:
        raise ValueError(f"Invalid month format: {value!r}. Use YYYY-MM.")
    year, month = int(parts[0]), int(parts[1])
    if month < 1 or month > 12:
        raise ValueError(f"Invalid month format: {value!r}. Use YYYY-MM.")
    return year, month


def month_bounds(value: str) -> tuple[date, date]:
    year, month = parse_month(value)
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def is_saudi_national(nationality: str | None) -> bool:
    return (nationality or "").strip().lower() in SAUDI_NATIONALITIES


@dataclass(frozen=True)
class GosiContribution:
    employee_contribution: float
    employer_contribution: float
    calculation_base: float
    is_saudi: bool


def calculate_gosi(*, nationality: str | None, calculation_base: float) -> GosiContribution:
    base = max(0.0, float(calculation_base or 0.0))
    if is_saudi_national(nationality):
        return GosiContribution(
            employee_contribution=round_money(base * GOSI_SAUDI_EMPLOYEE_RATE),
            employer_contribution=round_money(base * GOSI_SAUDI_EMPLOYER_RATE),
            calculation_base=round_money(base),
            is_saudi=True,
        )
    return GosiContribution(
        employee_contribution=0.0,
        employer_contribution=round_money(base * GOSI_NON_SAUDI_EMPLOYER_RATE),
        calculation_base=round_money(base),
        is_saudi=False,
    )


def overlap_days(
    *,
    start: date,
    end: date,
    window_start: date,
    window_end: date,
) -> int:
    overlap_start = max(start, window_start)
    overlap_end = min(end, window_end)
    if overlap_start > overlap_end:
        return 0
    return (overlap_end - overlap_start).days + 1


def unpaid_leave_days_in_month(leaves: Iterable[tuple[date, date]], month: str) -> int:
    month_start, month_end = month_bounds(month)
    return sum(
        overlap_days(start=start, end=end, window_start=month_start, window_end=month_end)
        for start, end in leaves
    )


@dataclass(frozen=True)
class PayrollInputs:
    basic_salary: float
    housing_allowance: float = 0.0
    transport_allowance: float = 0.0
    other_allowances: float = 0.0
    bonus: float = 0.0
    commission: float = 0.0
    nationality: str | None = None
    gosi_salary_basis: float | None = None
    present_days: int = 0
    overtime_hours: float = 0.0
    unpaid_leave_days: int = 0
    loan_deduction: float = 0.0
    advance_deduction: float = 0.0
    other_deductions: float = 0.0
    benefit_contributions: float = 0.0
    working_days: int = DEFAULT_WORKING_DAYS


@dataclass(frozen=True)
class PayrollComputation:
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
    is_saudi: bool
    loan_deduction: float
    advance_deduction: float
    absence_deduction: float
    unpaid_leave_deduction: float
    other_deductions: float
    total_deductions: float
    net_salary: float
    working_days: int
    present_days: int
    absent_days: int
    unpaid_leave_days: int
    overtime_hours: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_payroll(inputs: PayrollInputs) -> PayrollComputation:
    working_days = max(1, int(inputs.working_days))
    basic = max(0.0, float(inputs.basic_salary or 0.0))
    present_days = max(0, int(inputs.present_days))
    absent_days = max(0, working_days - present_days)
    unpaid_days = max(0, int(inputs.unpaid_leave_days))
    overtime_hours = max(0.0, float(inputs.overtime_hours or 0.0))

    hourly_rate = basic / (working_days * HOURS_PER_WORKING_DAY)
    overtime_pay = round_money(overtime_hours * hourly_rate * OVERTIME_MULTIPLIER)

    gross_salary = round_money(
        basic
        + inputs.housing_allowance
        + inputs.transport_allowance
        + inputs.other_allowances
        + overtime_pay
        + inputs.bonus
        + inputs.commission
    )

    gosi_base = inputs.gosi_salary_basis if inputs.gosi_salary_basis else basic
    gosi = calculate_gosi(nationality=inputs.nationality, calculation_base=gosi_base)

    daily_rate = basic / working_days
    attendance_absence = round_money(daily_rate * absent_days)
    unpaid_leave_deduction = round_money(daily_rate * unpaid_days)
    absence_deduction = round_money(attendance_absence + unpaid_leave_deduction)

    other_deductions = round_money(inputs.other_deductions + inputs.benefit_contributions)
    loan_deduction = round_money(inputs.loan_deduction)
    advance_deduction = round_money(inputs.advance_deduction)
    total_deductions = round_money(
        gosi.employee_contribution
        + loan_deduction
        + advance_deduction
        + absence_deduction
        + other_deductions
    )

    return PayrollComputation(
        basic_salary=round_money(basic),
        housing_allowance=round_money(inputs.housing_allowance),
        transport_allowance=round_money(inputs.transport_allowance),
        other_fixed_allowances=round_money(inputs.other_allowances),
        overtime_pay=overtime_pay,
        bonus=round_money(inputs.bonus),
        commission=round_money(inputs.commission),
        gross_salary=gross_salary,
        gosi_employee=gosi.employee_contribution,
        gosi_employer=gosi.employer_contribution,
        gosi_calculation_base=gosi.calculation_base,
        is_saudi=gosi.is_saudi,
        loan_deduction=loan_deduction,
        advance_deduction=advance_deduction,
        absence_deduction=absence_deduction,
        unpaid_leave_deduction=unpaid_leave_deduction,
        other_deductions=other_deductions,
        total_deductions=total_deductions,
        net_salary=round_money(gross_salary - total_deductions),
        working_days=working_days,
        present_days=present_days,
        absent_days=absent_days,
        unpaid_leave_days=unpaid_days,
        overtime_hours=round(overtime_hours, 2),
    )
