from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import bad_request, forbidden, not_found
from hrms.models import (
    ApproverRole,
    Employee,
    LeaveBalance,
    LeaveRequest,
    LeaveType,
    LoanRequest,
    RequestStatus,
    TierStatus,
    TravelRequest,
)
from hrms.security import CurrentUser
from hrms.services.employees import find_employee_by_email
from hrms.services.leave_days import calculate_leave_days
from hrms.services.notifications import send_email_safely
from hrms.services.payroll_calc import round_money
from hrms.settings import get_settings

logger = logging.getLogger("hrms.approvals")

ApprovalRequest = Union[LeaveRequest, LoanRequest, TravelRequest]

LOAN_HR_APPROVAL_THRESHOLD = 5000.0
LOAN_SENIOR_MANAGEMENT_THRESHOLD = 15000.0
TRAVEL_FINANCE_APPROVAL_THRESHOLD = 10000.0

TIER_LABELS = {
    ApproverRole.MANAGER: "manager",
    ApproverRole.HR: "HR",
    ApproverRole.SENIOR_MANAGEMENT: "senior management",
    ApproverRole.FINANCE: "finance",
}

APPROVE = "approve"
REJECT = "reject"


@dataclass(frozen=True)
class ApprovalPolicy:
    """Ordered approval tiers of one request kind.

    ``thresholds`` pairs each tier with the minimum request amount from which
    that tier is required; a threshold of zero means always required.
    """

    kind: str
    label: str
    model: type
    amount_field: str | None
    thresholds: tuple[tuple[ApproverRole, float], ...]

    @property
    def tiers(self) -> tuple[ApproverRole, ...]:
        return tuple(tier for tier, _ in self.thresholds)

    def amount_of(self, request: ApprovalRequest) -> float:
        if self.amount_field is None:
            return 0.0
        return float(getattr(request, self.amount_field) or 0.0)

    def required_tiers(self, request: ApprovalRequest) -> list[ApproverRole]:
        amount = self.amount_of(request)
        return [tier for tier, threshold in self.thresholds if amount >= threshold]


LEAVE_POLICY = ApprovalPolicy(
    kind="leave",
    label="Leave",
    model=LeaveRequest,
    amount_field=None,
    thresholds=((ApproverRole.MANAGER, 0.0), (ApproverRole.HR, 0.0)),
)
LOAN_POLICY = ApprovalPolicy(
    kind="loan",
    label="Loan",
    model=LoanRequest,
    amount_field="amount_requested",
    thresholds=(
        (ApproverRole.MANAGER, 0.0),
        (ApproverRole.HR, LOAN_HR_APPROVAL_THRESHOLD),
        (ApproverRole.SENIOR_MANAGEMENT, LOAN_SENIOR_MANAGEMENT_THRESHOLD),
    ),
)
TRAVEL_POLICY = ApprovalPolicy(
    kind="travel",
    label="Travel",
    model=TravelRequest,
    amount_field="estimated_cost",
    thresholds=((ApproverRole.MANAGER, 0.0), (ApproverRole.FINANCE, TRAVEL_FINANCE_APPROVAL_THRESHOLD)),
)

POLICIES: dict[str, ApprovalPolicy] = {
    policy.kind: policy for policy in (LEAVE_POLICY, LOAN_POLICY, TRAVEL_POLICY)
}


@dataclass
class DecisionResult:
    request: ApprovalRequest
    tier: ApproverRole
    verb: str
    message: str
    finalized: bool


def get_policy(kind: str) -> ApprovalPolicy:
    try:
        return POLICIES[kind]
    except KeyError as exc:
        raise bad_request(f"Unknown request kind: {kind}") from exc


def parse_action(policy: ApprovalPolicy, action: str | None) -> tuple[ApproverRole, str]:
    raw = (action or "").strip().lower()
    tier_name, _, verb = raw.rpartition("_")
    if verb not in {APPROVE, REJECT} or not tier_name:
        raise bad_request("Invalid action", code="INVALID_ACTION")
    try:
        tier = ApproverRole(tier_name)
    except ValueError as exc:
        raise bad_request("Invalid action", code="INVALID_ACTION") from exc
    if tier not in policy.tiers:
        raise bad_request("Invalid action", code="INVALID_ACTION")
    return tier, verb


def _find_leave_balance(db: Session, *, employee_id: int, leave_type: LeaveType, year: int) -> LeaveBalance | None:
    return db.scalar(
        select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type == leave_type,
            LeaveBalance.year == year,
        )
    )


def _ensure_can_decide(
    db: Session,
    *,
    tier: ApproverRole,
    employee: Employee,
    user: CurrentUser,
) -> None:
    if tier == ApproverRole.MANAGER:
        # Ownership is required even for admins.
        approver = find_employee_by_email(db, user.email)
        if approver is None or employee.manager_id is None or approver.id != employee.manager_id:
            raise forbidden("Only the direct manager can approve/reject")
        return
    if not user.is_admin:
        raise forbidden(f"Only {TIER_LABELS[tier]} can perform this action")


def _stamp_tier(
    request: ApprovalRequest,
    tier: ApproverRole,
    *,
    status: TierStatus,
    user: CurrentUser,
    comments: str | None,
    today: date,
) -> None:
    prefix = tier.value
    setattr(request, f"{prefix}_status", status)
    setattr(request, f"{prefix}_approved_by", user.email)
    setattr(request, f"{prefix}_approval_date", today)
    setattr(request, f"{prefix}_comments", comments or "")


def _apply_leave_balance(db: Session, request: LeaveRequest) -> LeaveBalance | None:
    balance = _find_leave_balance(
        db,
        employee_id=request.employee_id,
        leave_type=request.leave_type,
        year=request.start_date.year,
    )
    if balance is None:
        logger.info(
            "leave_balance_missing_on_approval",
            extra={"leave_request_id": request.id, "employee_id": request.employee_id},
        )
        return None
    days = float(request.total_days or 0.0)
    balance.used = round_money(float(balance.used or 0.0) + days)
    balance.pending = round_money(max(float(balance.pending or 0.0) - days, 0.0))
    balance.remaining = round_money(max(float(balance.remaining or 0.0) - days, 0.0))
    return balance


def describe_request(policy: ApprovalPolicy, request: ApprovalRequest) -> str:
    if isinstance(request, LeaveRequest):
        return f"leave request from {request.start_date} to {request.end_date}"
    if isinstance(request, LoanRequest):
        return f"loan request for {request.amount_requested} SAR"
    if isinstance(request, TravelRequest):
        return f"travel request to {request.destination}"
    return f"{policy.kind} request"


def _approver_address(tier: ApproverRole) -> str:
    settings = get_settings()
    if tier == ApproverRole.HR:
        return settings.hr_notification_email
    if tier == ApproverRole.SENIOR_MANAGEMENT:
        return settings.management_notification_email
    return settings.finance_notification_email


def _notify_next_approver(
    policy: ApprovalPolicy,
    request: ApprovalRequest,
    employee: Employee,
    *,
    next_tier: ApproverRole,
) -> None:
    lines = [
        f"A {policy.kind} request requires {TIER_LABELS[next_tier]} approval:",
        "",
        f"Employee: {employee.full_name}",
    ]
    if isinstance(request, LeaveRequest):
        lines += [
            f"Leave Type: {request.leave_type.value}",
            f"Dates: {request.start_date} to {request.end_date}",
            f"Days: {request.total_days}",
            f"Reason: {request.reason or ''}",
        ]
    elif isinstance(request, LoanRequest):
        lines += [
            f"Loan Type: {request.loan_type}",
            f"Amount: {request.amount_requested} SAR",
            f"Repayment Period: {request.repayment_period} months",
            f"Monthly Deduction: {request.monthly_deduction} SAR",
            f"Purpose: {request.purpose or ''}",
        ]
    elif isinstance(request, TravelRequest):
        lines += [
            f"Destination: {request.destination}",
            f"Dates: {request.departure_date} to {request.return_date}",
            f"Estimated Cost: {request.estimated_cost} SAR",
            f"Purpose: {request.purpose or ''}",
        ]
    lines += ["", "Please review in the HRMS system."]
    send_email_safely(
        _approver_address(next_tier),
        f"{policy.label} Request Pending {TIER_LABELS[next_tier].title()} Approval - {employee.full_name}",
        "\n".join(lines),
    )


def apply_decision(
    db: Session,
    *,
    kind: str,
    request_id: int,
    action: str | None,
    comments: str | None,
    user: CurrentUser,
) -> DecisionResult:
    """Apply one tier decision to a pending request.

    Decisions only move forward: the action's tier must be the request's
    current approver, and finalized requests are never mutated again.
    """
    policy = get_policy(kind)
    request = db.get(policy.model, request_id)
    if request is None:
        raise not_found(f"{policy.label} request not found")
    employee = db.get(Employee, request.employee_id)
    if employee is None:
        raise not_found("Employee not found")

    tier, verb = parse_action(policy, action)

    if request.status != RequestStatus.PENDING or request.current_approver_role == ApproverRole.COMPLETED:
        raise bad_request(
            f"{policy.label} request is already {request.status.value}",
            code="INVALID_TRANSITION",
        )
    required = policy.required_tiers(request)
    if tier not in required or tier != request.current_approver_role:
        raise bad_request(
            f"{policy.label} request is awaiting {request.current_approver_role.value} decision",
            code="INVALID_TRANSITION",
        )

    _ensure_can_decide(db, tier=tier, employee=employee, user=user)

    today = date.today()
    subject = describe_request(policy, request)
    tier_label = TIER_LABELS[tier]
    next_tier: ApproverRole | None = None

    if verb == REJECT:
        _stamp_tier(request, tier, status=TierStatus.REJECTED, user=user, comments=comments, today=today)
        request.status = RequestStatus.REJECTED
        request.rejection_reason = comments or f"Rejected by {tier_label}"
        request.current_approver_role = ApproverRole.COMPLETED
        message = f"Your {subject} has been rejected by {tier_label}.\nReason: {comments or 'Not specified'}"
        finalized = True
    else:
        _stamp_tier(request, tier, status=TierStatus.APPROVED, user=user, comments=comments, today=today)
        position = required.index(tier)
        if position + 1 < len(required):
            next_tier = required[position + 1]
            setattr(request, f"{next_tier.value}_status", TierStatus.PENDING)
            request.current_approver_role = next_tier
            message = (
                f"Your {subject} has been approved by {tier_label} "
                f"and is pending {TIER_LABELS[next_tier]} approval."
            )
            finalized = False
        else:
            request.status = RequestStatus.APPROVED
            request.current_approver_role = ApproverRole.COMPLETED
            for skipped in policy.tiers:
                if skipped not in required:
                    setattr(request, f"{skipped.value}_status", TierStatus.NOT_REQUIRED)
            if isinstance(request, LeaveRequest):
                _apply_leave_balance(db, request)
            message = f"Great news! Your {subject} has been fully approved."
            finalized = True

    db.commit()
    db.refresh(request)

    logger.info(
        "approval_decision_applied",
        extra={
            "kind": policy.kind,
            "request_id": request.id,
            "tier": tier.value,
            "verb": verb,
            "status": request.status.value,
            "current_approver_role": request.current_approver_role.value,
            "actor_id": user.email,
        },
    )

    if next_tier is not None:
        _notify_next_approver(policy, request, employee, next_tier=next_tier)
    if employee.email:
        send_email_safely(employee.email, f"{policy.label} Request Status Update", message)

    return DecisionResult(request=request, tier=tier, verb=verb, message=message, finalized=finalized)


def resolve_requesting_employee(db: Session, *, user: CurrentUser, employee_id: int | None) -> Employee:
    own = find_employee_by_email(db, user.email)
    if employee_id is None:
        if own is None:
            raise not_found("No employee record is linked to this account")
        return own
    if not user.is_admin and (own is None or own.id != employee_id):
        raise forbidden("Requests can only be submitted for your own employee record")
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee not found")
    return employee


def _pending_manager_fields() -> dict[str, Any]:
    return {
        "status": RequestStatus.PENDING,
        "current_approver_role": ApproverRole.MANAGER,
        "manager_status": TierStatus.PENDING,
    }


def _notify_manager_of_submission(
    db: Session,
    policy: ApprovalPolicy,
    request: ApprovalRequest,
    employee: Employee,
) -> None:
    if employee.manager_id is None:
        return
    manager = db.get(Employee, employee.manager_id)
    if manager is None or not manager.email:
        return
    send_email_safely(
        manager.email,
        f"{policy.label} Request Pending Your Approval - {employee.full_name}",
        f"{employee.full_name} submitted a {describe_request(policy, request)}.\n\n"
        "Please review in the HRMS system.",
    )


def _save_submission(db: Session, policy: ApprovalPolicy, request: ApprovalRequest, employee: Employee) -> ApprovalRequest:
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(
        "approval_request_submitted",
        extra={"kind": policy.kind, "request_id": request.id, "employee_id": employee.id},
    )
    _notify_manager_of_submission(db, policy, request, employee)
    return request


def submit_leave_request(
    db: Session,
    *,
    employee: Employee,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: str | None,
) -> LeaveRequest:
    breakdown = calculate_leave_days(db, start_date=start_date, end_date=end_date)
    request = LeaveRequest(
        employee_id=employee.id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=float(breakdown.working_days),
        reason=reason,
        **_pending_manager_fields(),
    )
    return _save_submission(db, LEAVE_POLICY, request, employee)


def submit_loan_request(
    db: Session,
    *,
    employee: Employee,
    loan_type: str,
    amount_requested: float,
    repayment_period: int,
    purpose: str | None,
) -> LoanRequest:
    if amount_requested <= 0:
        raise bad_request("amount_requested must be positive")
    if repayment_period <= 0:
        raise bad_request("repayment_period must be positive")
    request = LoanRequest(
        employee_id=employee.id,
        loan_type=loan_type,
        amount_requested=round_money(amount_requested),
        repayment_period=repayment_period,
        monthly_deduction=round_money(amount_requested / repayment_period),
        purpose=purpose,
        **_pending_manager_fields(),
    )
    return _save_submission(db, LOAN_POLICY, request, employee)


def submit_travel_request(
    db: Session,
    *,
    employee: Employee,
    destination: str,
    departure_date: date,
    return_date: date,
    estimated_cost: float,
    purpose: str | None,
) -> TravelRequest:
    if return_date < departure_date:
        raise bad_request("return_date must be after departure_date")
    if estimated_cost < 0:
        raise bad_request("estimated_cost must not be negative")
    request = TravelRequest(
        employee_id=employee.id,
        destination=destination,
        departure_date=departure_date,
        return_date=return_date,
        estimated_cost=round_money(estimated_cost),
        purpose=purpose,
        **_pending_manager_fields(),
    )
    return _save_submission(db, TRAVEL_POLICY, request, employee)
