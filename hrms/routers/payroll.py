from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.schemas import (
    GosiReportRequest,
    PayrollErrorItem,
    PayrollProcessRequest,
    PayrollProcessResponse,
    PayrollRead,
    PayrollStatusUpdateRequest,
)
from hrms.security import CurrentUser, require_admin
from hrms.services.payroll import advance_payroll_status, build_gosi_report, process_monthly_payroll

router = APIRouter(tags=["payroll"])


@router.post("/api/payroll/process", response_model=PayrollProcessResponse)
def process_payroll(
    payload: PayrollProcessRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> PayrollProcessResponse:
    result = process_monthly_payroll(
        db,
        month=payload.month,
        employee_ids=payload.employee_ids,
        processed_by=user.email,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="PAYROLL_PROCESSED",
        entity_type="payroll_month",
        entity_id=result.month,
        details={
            "processed_count": len(result.processed),
            "error_count": len(result.errors),
            "employee_ids": payload.employee_ids,
        },
    )
    return PayrollProcessResponse(
        month=result.month,
        processed_count=len(result.processed),
        error_count=len(result.errors),
        total_gross=result.total_gross,
        total_net=result.total_net,
        total_gosi_employer=result.total_gosi_employer,
        processed_payrolls=[PayrollRead.model_validate(item) for item in result.processed],
        errors=[PayrollErrorItem(**item) for item in result.errors],
    )


@router.post("/api/payroll/{payroll_id}/status", response_model=PayrollRead)
def update_payroll_status(
    payroll_id: int,
    payload: PayrollStatusUpdateRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> PayrollRead:
    payroll = advance_payroll_status(db, payroll_id=payroll_id, target_status=payload.status)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="PAYROLL_STATUS_UPDATED",
        entity_type="payroll",
        entity_id=str(payroll.id),
        details={"status": payroll.status.value},
    )
    return PayrollRead.model_validate(payroll)


@router.post("/api/payroll/gosi-report")
def gosi_report(
    payload: GosiReportRequest,
    _user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return {"success": True, "report": build_gosi_report(db, month=payload.month)}
