from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.schemas import (
    OnboardingAssignRequest,
    OnboardingAssignResponse,
    OnboardingReminderRequest,
    OnboardingTaskCompleteRequest,
    OnboardingTaskCompleteResponse,
    OnboardingTaskRead,
)
from hrms.security import CurrentUser, require_admin, require_user
from hrms.services.onboarding import assign_onboarding, complete_task, send_onboarding_reminders, start_task

router = APIRouter(tags=["onboarding"])


@router.post("/api/onboarding/assign", response_model=OnboardingAssignResponse)
def assign_checklist(
    payload: OnboardingAssignRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> OnboardingAssignResponse:
    checklist, tasks = assign_onboarding(
        db,
        employee_id=payload.employee_id,
        checklist_id=payload.checklist_id,
        start_date=payload.start_date,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ONBOARDING_ASSIGNED",
        entity_type="employee",
        entity_id=str(payload.employee_id),
        details={"checklist_id": checklist.id, "task_count": len(tasks)},
    )
    return OnboardingAssignResponse(
        message=f"Onboarding checklist assigned with {len(tasks)} tasks",
        checklist_id=checklist.id,
        checklist_name=checklist.checklist_name,
        tasks_created=len(tasks),
        tasks=[OnboardingTaskRead.model_validate(task) for task in tasks],
    )


@router.post("/api/onboarding/reminders")
def send_reminders(
    payload: OnboardingReminderRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    result = send_onboarding_reminders(employee_id=payload.employee_id, task_id=payload.task_id, db=db)
    summary = result.to_dict()
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ONBOARDING_REMINDERS_SENT",
        entity_type="onboarding_task",
        details={
            "reminders_sent": summary["reminders_sent"],
            "marked_overdue": summary["marked_overdue"],
            "error_count": len(summary["errors"]),
        },
    )
    return {"success": True, **summary}


@router.post("/api/onboarding/tasks/{task_id}/start", response_model=OnboardingTaskRead)
def start_onboarding_task(
    task_id: int,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OnboardingTaskRead:
    task = start_task(db, task_id=task_id, user=user)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ONBOARDING_TASK_STARTED",
        entity_type="onboarding_task",
        entity_id=str(task.id),
    )
    return OnboardingTaskRead.model_validate(task)


@router.post("/api/onboarding/tasks/{task_id}/complete", response_model=OnboardingTaskCompleteResponse)
def complete_onboarding_task(
    task_id: int,
    payload: OnboardingTaskCompleteRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OnboardingTaskCompleteResponse:
    task, progress = complete_task(
        db,
        task_id=task_id,
        user=user,
        notes=payload.notes,
        document_url=payload.document_url,
        signature_data=payload.signature_data,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ONBOARDING_TASK_COMPLETED",
        entity_type="onboarding_task",
        entity_id=str(task.id),
        details=progress,
    )
    return OnboardingTaskCompleteResponse(
        message="Task completed successfully",
        task=OnboardingTaskRead.model_validate(task),
        **progress,
    )
