from typing import Any

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.schemas import (
    ApprovalDecisionRequest,
    ApprovalDecisionResponse,
    LeaveRequestCreate,
    LeaveRequestRead,
    LoanRequestCreate,
    LoanRequestRead,
    TravelRequestCreate,
    TravelRequestRead,
)
from hrms.security import CurrentUser, require_user
from hrms.services.approvals import (
    ApprovalRequest,
    apply_decision,
    resolve_requesting_employee,
    submit_leave_request,
    submit_loan_request,
    submit_travel_request,
)

router = APIRouter(tags=["requests"])

READ_SCHEMAS: dict[str, type[BaseModel]] = {
    "leave": LeaveRequestRead,
    "loan": LoanRequestRead,
    "travel": TravelRequestRead,
}
PAST_TENSE = {"approve": "approved", "reject": "rejected"}


def _serialize(kind: str, item: ApprovalRequest) -> dict[str, Any]:
    return READ_SCHEMAS[kind].model_validate(item).model_dump(mode="json")


def _audit_submission(db: Session, request: Request, user: CurrentUser, kind: str, item: ApprovalRequest) -> None:
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action=f"{kind.upper()}_REQUEST_SUBMITTED",
        entity_type=f"{kind}_request",
        entity_id=str(item.id),
        details={"employee_id": item.employee_id},
    )


def _decide(
    kind: str,
    request_id: int,
    payload: ApprovalDecisionRequest,
    request: Request,
    user: CurrentUser,
    db: Session,
) -> ApprovalDecisionResponse:
    result = apply_decision(
        db,
        kind=kind,
        request_id=request_id,
        action=payload.action,
        comments=payload.comments,
        user=user,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action=f"{kind.upper()}_REQUEST_{result.verb.upper()}",
        entity_type=f"{kind}_request",
        entity_id=str(result.request.id),
        details={
            "tier": result.tier.value,
            "status": result.request.status.value,
            "current_approver_role": result.request.current_approver_role.value,
        },
    )
    return ApprovalDecisionResponse(
        message=f"{kind.capitalize()} request {PAST_TENSE[result.verb]} by {result.tier.value}",
        updated_request=_serialize(kind, result.request),
    )


@router.post("/api/leave-requests", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
def create_leave_request(
    payload: LeaveRequestCreate,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    employee = resolve_requesting_employee(db, user=user, employee_id=payload.employee_id)
    item = submit_leave_request(
        db,
        employee=employee,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    _audit_submission(db, request, user, "leave", item)
    return LeaveRequestRead.model_validate(item)


@router.post("/api/loan-requests", response_model=LoanRequestRead, status_code=status.HTTP_201_CREATED)
def create_loan_request(
    payload: LoanRequestCreate,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> LoanRequestRead:
    employee = resolve_requesting_employee(db, user=user, employee_id=payload.employee_id)
    item = submit_loan_request(
        db,
        employee=employee,
        loan_type=payload.loan_type,
        amount_requested=payload.amount_requested,
        repayment_period=payload.repayment_period,
        purpose=payload.purpose,
    )
    _audit_submission(db, request, user, "loan", item)
    return LoanRequestRead.model_validate(item)


@router.post("/api/travel-requests", response_model=TravelRequestRead, status_code=status.HTTP_201_CREATED)
def create_travel_request(
    payload: TravelRequestCreate,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> TravelRequestRead:
    employee = resolve_requesting_employee(db, user=user, employee_id=payload.employee_id)
    item = submit_travel_request(
        db,
        employee=employee,
        destination=payload.destination,
        departure_date=payload.departure_date,
        return_date=payload.return_date,
        estimated_cost=payload.estimated_cost,
        purpose=payload.purpose,
    )
    _audit_submission(db, request, user, "travel", item)
    return TravelRequestRead.model_validate(item)


@router.post("/api/leave-requests/{request_id}/decision", response_model=ApprovalDecisionResponse)
def decide_leave_request(
    request_id: int,
    payload: ApprovalDecisionRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ApprovalDecisionResponse:
    return _decide("leave", request_id, payload, request, user, db)


@router.post("/api/loan-requests/{request_id}/decision", response_model=ApprovalDecisionResponse)
def decide_loan_request(
    request_id: int,
    payload: ApprovalDecisionRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ApprovalDecisionResponse:
    return _decide("loan", request_id, payload, request, user, db)


@router.post("/api/travel-requests/{request_id}/decision", response_model=ApprovalDecisionResponse)
def decide_travel_request(
    request_id: int,
    payload: ApprovalDecisionRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ApprovalDecisionResponse:
    return _decide("travel", request_id, payload, request, user, db)
