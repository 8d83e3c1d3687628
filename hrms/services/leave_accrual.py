from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hrms.errors import bad_request
from hrms.models import (
    Employee,
    EmployeeStatus,
    EmploymentType,
    LeaveAccrual,
    LeaveAccrualPolicy,
    LeaveBalance,
    LeaveType,
)
from hrms.services.payroll_calc import month_bounds, round_money

logger = logging.getLogger("hrms.leave_accrual")

DAYS_PER_EMPLOYMENT_MONTH = 30.44


@dataclass
class AccrualRunResult:
    period: str
    message: str = ""
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    total_days_accrued: float = 0.0
    details: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "message": self.message,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "total_days_accrued": round_money(self.total_days_accrued),
            "details": self.details,
        }


def employment_months_at(hire_date: date | None, reference: date) -> int:
    if hire_date is None:
        return 0
    return math.floor((reference - hire_date).days / DAYS_PER_EMPLOYMENT_MONTH)


def proration_factor(hire_date: date | None, period_start: date, period_end: date) -> float | None:
    """Share of the period left after a hire inside it, or None when the hire predates it."""
    if hire_date is None or not (period_start <= hire_date <= period_end):
        return None
    days_in_month = period_end.day
    return (days_in_month - hire_date.day + 1) / days_in_month


def policy_applies(policy: LeaveAccrualPolicy, employee: Employee) -> bool:
    allowed = [str(item) for item in (policy.employment_types or [])]
    if not allowed:
        return True
    employment_type = employee.employment_type
    value = employment_type.value if isinstance(employment_type, EmploymentType) else str(employment_type)
    return value in allowed


def _load_active_employees(db: Session) -> list[Employee]:
    stmt = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE).order_by(Employee.id.asc())
    return list(db.scalars(stmt).all())


def _load_active_policies(db: Session) -> list[LeaveAccrualPolicy]:
    stmt = (
        select(LeaveAccrualPolicy)
        .where(LeaveAccrualPolicy.is_active.is_(True))
        .order_by(LeaveAccrualPolicy.id.asc())
    )
    return list(db.scalars(stmt).all())


def _count_existing_accruals(db: Session, period: str) -> int:
    stmt = select(func.count(LeaveAccrual.id)).where(LeaveAccrual.accrual_period == period)
    return int(db.scalar(stmt) or 0)


def _find_balance(db: Session, *, employee_id: int, leave_type: LeaveType, year: int) -> LeaveBalance | None:
    return db.scalar(
        select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type == leave_type,
            LeaveBalance.year == year,
        )
    )


def _accrue_policy(
    db: Session,
    *,
    employee: Employee,
    policy: LeaveAccrualPolicy,
    period: str,
    period_start: date,
    period_end: date,
    employment_months: int,
    processed_by: str,
    balances: dict[LeaveType, LeaveBalance],
) -> dict[str, Any]:
    days = float(policy.monthly_accrual_rate)
    factor = 1.0
    is_prorated = False
    if policy.prorate_for_new_hires:
        computed = proration_factor(employee.hire_date, period_start, period_end)
        if computed is not None:
            factor = computed
            days = round_money(days * factor)
            is_prorated = True

    # Several policies may feed the same leave type; reuse the balance row.
    balance = balances.get(policy.leave_type)
    if balance is None:
        balance = _find_balance(db, employee_id=employee.id, leave_type=policy.leave_type, year=period_end.year)
    if balance is None:
        balance_before = 0.0
        balance = LeaveBalance(
            employee_id=employee.id,
            leave_type=policy.leave_type,
            year=period_end.year,
            total_entitled=days,
            used=0.0,
            pending=0.0,
            remaining=days,
            carried_forward=0.0,
        )
        db.add(balance)
    else:
        balance_before = float(balance.total_entitled or 0.0)
        balance.total_entitled = round_money(balance_before + days)
        balance.remaining = round_money(float(balance.remaining or 0.0) + days)
    balances[policy.leave_type] = balance

    db.add(
        LeaveAccrual(
            employee_id=employee.id,
            leave_type=policy.leave_type,
            policy_id=policy.id,
            accrual_date=period_end,
            accrual_period=period,
            days_accrued=days,
            balance_before=round_money(balance_before),
            balance_after=round_money(balance.total_entitled),
            accrual_rate=float(policy.monthly_accrual_rate),
            employment_months=employment_months,
            is_prorated=is_prorated,
            proration_factor=factor,
            notes="Prorated for mid-month hire" if is_prorated else "Standard monthly accrual",
            processed_by=processed_by,
        )
    )
    return {
        "leave_type": policy.leave_type.value,
        "status": "accrued",
        "days_accrued": days,
        "balance_after": round_money(balance.total_entitled),
        "is_prorated": is_prorated,
    }


def _accrue_employee(
    db: Session,
    *,
    employee: Employee,
    policies: list[LeaveAccrualPolicy],
    period: str,
    period_start: date,
    period_end: date,
    processed_by: str,
) -> dict[str, Any]:
    employment_months = employment_months_at(employee.hire_date, period_end)
    detail: dict[str, Any] = {
        "employee_id": employee.id,
        "employee_name": employee.full_name,
        "employment_months": employment_months,
        "total_accrued": 0.0,
        "accruals": [],
    }

    if employee.hire_date is not None and employee.hire_date > period_end:
        detail["accruals"].append({"status": "skipped", "reason": "hired after period"})
        return detail

    balances: dict[LeaveType, LeaveBalance] = {}
    for policy in policies:
        if not policy_applies(policy, employee):
            continue
        if employment_months < policy.probation_period_months and not policy.accrue_during_probation:
            logger.info(
                "accrual_skipped_probation",
                extra={
                    "period": period,
                    "employee_id": employee.id,
                    "policy_id": policy.id,
                    "employment_months": employment_months,
                },
            )
            detail["accruals"].append(
                {"leave_type": policy.leave_type.value, "status": "skipped", "reason": "in probation"}
            )
            continue

        entry = _accrue_policy(
            db,
            employee=employee,
            policy=policy,
            period=period,
            period_start=period_start,
            period_end=period_end,
            employment_months=employment_months,
            processed_by=processed_by,
            balances=balances,
        )
        detail["total_accrued"] = round_money(detail["total_accrued"] + entry["days_accrued"])
        detail["accruals"].append(entry)
    return detail


def process_monthly_accrual(
    db: Session,
    *,
    accrual_period: str | None,
    force_reprocess: bool = False,
    processed_by: str,
    today: date | None = None,
) -> AccrualRunResult:
    """Accrue one month of leave for every active employee under every active policy.

    The reference date for tenure, proration and the balance year is the last
    day of ``accrual_period``. A period that already has accrual rows is
    refused unless ``force_reprocess`` is set.
    """
    period = accrual_period or (today or date.today()).strftime("%Y-%m")
    try:
        period_start, period_end = month_bounds(period)
    except ValueError as exc:
        raise bad_request(str(exc)) from exc

    result = AccrualRunResult(period=period)

    employees = _load_active_employees(db)
    if not employees:
        result.message = "No active employees to process"
        return result

    policies = _load_active_policies(db)
    if not policies:
        raise bad_request("No active accrual policies found. Please configure policies first.")

    if not force_reprocess:
        existing_count = _count_existing_accruals(db, period)
        if existing_count > 0:
            raise bad_request(
                f"Accrual already processed for {period}. Use force_reprocess=true to reprocess.",
                code="ACCRUAL_ALREADY_PROCESSED",
                details={"existing_count": existing_count, "period": period},
            )

    logger.info(
        "accrual_run_started",
        extra={"period": period, "employee_count": len(employees), "policy_count": len(policies)},
    )

    for employee in employees:
        try:
            detail = _accrue_employee(
                db,
                employee=employee,
                policies=policies,
                period=period,
                period_start=period_start,
                period_end=period_end,
                processed_by=processed_by,
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning(
                "accrual_employee_failed",
                extra={"period": period, "employee_id": employee.id, "error": str(exc)},
            )
            result.errors += 1
            result.details.append(
                {"employee_id": employee.id, "employee_name": employee.full_name, "error": str(exc)}
            )
            continue

        if any(item.get("status") == "accrued" for item in detail["accruals"]):
            result.processed += 1
            result.total_days_accrued = round_money(result.total_days_accrued + detail["total_accrued"])
        else:
            result.skipped += 1
        result.details.append(detail)

    result.message = f"Accrual processing completed for {period}"
    logger.info(
        "accrual_run_completed",
        extra={
            "period": period,
            "processed": result.processed,
            "skipped": result.skipped,
            "errors": result.errors,
            "total_days_accrued": result.total_days_accrued,
        },
    )
    return result


DEFAULT_POLICIES: tuple[dict[str, Any], ...] = (
    {
        "policy_name": "Annual Leave - Full Time",
        "leave_type": LeaveType.ANNUAL,
        "annual_entitlement": 21.0,
        "monthly_accrual_rate": 1.75,
        "probation_period_months": 3,
        "accrue_during_probation": False,
        "max_carryover": 10.0,
        "carryover_expiry_months": 3,
        "prorate_for_new_hires": True,
        "employment_types": ["full_time"],
        "is_active": True,
        "notes": "Standard annual leave as per Saudi labor law - 21 days per year",
    },
    {
        "policy_name": "Annual Leave - Contract",
        "leave_type": LeaveType.ANNUAL,
        "annual_entitlement": 21.0,
        "monthly_accrual_rate": 1.75,
        "probation_period_months": 0,
        "accrue_during_probation": True,
        "max_carryover": 0.0,
        "carryover_expiry_months": 0,
        "prorate_for_new_hires": True,
        "employment_types": ["contract", "temporary"],
        "is_active": True,
        "notes": "Annual leave for contract employees - no carryover",
    },
    {
        "policy_name": "Sick Leave - All Employees",
        "leave_type": LeaveType.SICK,
        "annual_entitlement": 30.0,
        "monthly_accrual_rate": 2.5,
        "probation_period_months": 0,
        "accrue_during_probation": True,
        "max_carryover": 0.0,
        "carryover_expiry_months": 0,
        "prorate_for_new_hires": True,
        "employment_types": ["full_time", "part_time", "contract", "temporary"],
        "is_active": True,
        "notes": "Sick leave as per Saudi labor law - 30 days per year",
    },
    {
        "policy_name": "Annual Leave - 5+ Years Service",
        "leave_type": LeaveType.ANNUAL,
        "annual_entitlement": 30.0,
        "monthly_accrual_rate": 2.5,
        "probation_period_months": 0,
        "accrue_during_probation": True,
        "max_carryover": 15.0,
        "carryover_expiry_months": 6,
        "prorate_for_new_hires": False,
        "employment_types": ["full_time"],
        # Activated manually once an employee reaches five years of service.
        "is_active": False,
        "notes": "Enhanced annual leave for employees with 5+ years of service - 30 days per year",
    },
)


def _list_policies(db: Session) -> list[LeaveAccrualPolicy]:
    return list(db.scalars(select(LeaveAccrualPolicy).order_by(LeaveAccrualPolicy.id.asc())).all())


def initialize_default_policies(db: Session, *, today: date | None = None) -> tuple[bool, list[LeaveAccrualPolicy]]:
    """Seed the default policies; returns ``(created, policies)``."""
    existing = _list_policies(db)
    if existing:
        return False, existing

    effective_from = today or date.today()
    created = [
        LeaveAccrualPolicy(effective_from=effective_from, **{**values, "employment_types": list(values["employment_types"])})
        for values in DEFAULT_POLICIES
    ]
    db.add_all(created)
    db.commit()
    for policy in created:
        db.refresh(policy)
    logger.info("accrual_policies_initialized", extra={"policy_count": len(created)})
    return True, created


def list_leave_balances(
    db: Session,
    *,
    employee_id: int | None,
    year: int | None,
) -> list[LeaveBalance]:
    stmt = select(LeaveBalance).order_by(LeaveBalance.employee_id.asc(), LeaveBalance.leave_type.asc())
    if employee_id is not None:
        stmt = stmt.where(LeaveBalance.employee_id == employee_id)
    if year is not None:
        stmt = stmt.where(LeaveBalance.year == year)
    return list(db.scalars(stmt).all())
