from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.errors import bad_request, forbidden
from hrms.schemas import (
    AccrualPolicyInitResponse,
    AccrualPolicyRead,
    AccrualProcessRequest,
    HolidayInitRequest,
    HolidayInitResponse,
    LeaveBalanceRead,
    LeaveDaysRequest,
    PublicHolidayRead,
)
from hrms.security import CurrentUser, require_admin, require_user
from hrms.services.employees import find_employee_by_email
from hrms.services.holidays import initialize_public_holidays, list_public_holidays
from hrms.services.leave_accrual import (
    initialize_default_policies,
    list_leave_balances,
    process_monthly_accrual,
)
from hrms.services.leave_days import calculate_leave_days

router = APIRouter(tags=["leave"])


@router.post("/api/leave/calculate-days")
def calculate_days(
    payload: LeaveDaysRequest,
    _user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    if payload.start_date is None or payload.end_date is None:
        raise bad_request("start_date and end_date are required")
    breakdown = calculate_leave_days(db, start_date=payload.start_date, end_date=payload.end_date)
    return {"success": True, **breakdown.to_dict()}


@router.post("/api/leave/accrual/process")
def process_accrual(
    payload: AccrualProcessRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    result = process_monthly_accrual(
        db,
        accrual_period=payload.accrual_period,
        force_reprocess=payload.force_reprocess,
        processed_by=user.email,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="LEAVE_ACCRUAL_PROCESSED",
        entity_type="accrual_period",
        entity_id=result.period,
        details={
            "processed": result.processed,
            "skipped": result.skipped,
            "errors": result.errors,
            "force_reprocess": payload.force_reprocess,
        },
    )
    return {"success": True, **result.to_dict()}


@router.post("/api/leave/accrual/policies/initialize", response_model=AccrualPolicyInitResponse)
def initialize_policies(
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AccrualPolicyInitResponse:
    created, policies = initialize_default_policies(db)
    if created:
        audit_request(
            db,
            request,
            actor_type=user.audit_actor_type,
            actor_id=user.email,
            action="LEAVE_ACCRUAL_POLICIES_INITIALIZED",
            entity_type="leave_accrual_policy",
            details={"policy_ids": [policy.id for policy in policies]},
        )
    return AccrualPolicyInitResponse(
        success=created,
        message="Default accrual policies created" if created else "Accrual policies already exist",
        policies_created=len(policies) if created else 0,
        policies=[AccrualPolicyRead.model_validate(policy) for policy in policies],
    )


@router.get("/api/leave/balances", response_model=list[LeaveBalanceRead])
def leave_balances(
    employee_id: int | None = Query(default=None, ge=1),
    year: int | None = Query(default=None, ge=2000, le=2100),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[LeaveBalanceRead]:
    if not user.is_admin:
        own = find_employee_by_email(db, user.email)
        if own is None:
            return []
        if employee_id is not None and employee_id != own.id:
            raise forbidden("You can only view your own leave balances")
        employee_id = own.id
    balances = list_leave_balances(db, employee_id=employee_id, year=year)
    return [LeaveBalanceRead.model_validate(item) for item in balances]


@router.post("/api/leave/holidays/initialize", response_model=HolidayInitResponse)
def initialize_holidays(
    payload: HolidayInitRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> HolidayInitResponse:
    result = initialize_public_holidays(db, year=payload.year, force_recreate=payload.force_recreate)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="HOLIDAYS_INITIALIZED",
        entity_type="public_holiday_year",
        entity_id=str(result.year),
        details={
            "created_count": len(result.created),
            "replaced_count": result.replaced_count,
            "islamic_included": result.islamic_included,
        },
    )
    return HolidayInitResponse(
        success=True,
        year=result.year,
        created_count=len(result.created),
        replaced_count=result.replaced_count,
        islamic_included=result.islamic_included,
        holidays=[PublicHolidayRead.model_validate(row) for row in result.created],
    )


@router.get("/api/leave/holidays", response_model=list[PublicHolidayRead])
def public_holidays(
    year: int = Query(ge=2000, le=2100),
    _user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[PublicHolidayRead]:
    return [PublicHolidayRead.model_validate(row) for row in list_public_holidays(db, year=year)]
