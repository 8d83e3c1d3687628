from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.schemas import QiwaActionRequest, SinadActionRequest
from hrms.security import CurrentUser, require_user
from hrms.services.qiwa import run_qiwa_action
from hrms.services.sinad import run_sinad_action

router = APIRouter(tags=["government"])


@router.post("/api/government/qiwa")
def qiwa_action(
    payload: QiwaActionRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    result = run_qiwa_action(
        db,
        action=payload.action,
        employee_id=payload.employee_id,
        qiwa_record_id=payload.qiwa_record_id,
        user=user,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action=f"QIWA_{(payload.action or '').upper()}",
        entity_type="qiwa_record",
        entity_id=str(payload.qiwa_record_id) if payload.qiwa_record_id else None,
        details={"employee_id": payload.employee_id},
    )
    return result


@router.post("/api/government/sinad")
def sinad_action(
    payload: SinadActionRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    result = run_sinad_action(
        db,
        action=payload.action,
        sinad_record_id=payload.sinad_record_id,
        company_id=payload.company_id,
        submission_month=payload.submission_month,
        user=user,
    )
    if payload.action != "validate_before_submit":
        audit_request(
            db,
            request,
            actor_type=user.audit_actor_type,
            actor_id=user.email,
            action=f"SINAD_{(payload.action or '').upper()}",
            entity_type="sinad_record",
            entity_id=str(result.get("sinad_record_id") or payload.sinad_record_id or "") or None,
            details={"submission_month": payload.submission_month},
        )
    return result
