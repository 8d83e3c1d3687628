from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.db import SessionLocal
from hrms.errors import bad_request, forbidden, not_found
from hrms.models import (
    Employee,
    OnboardingAssignee,
    OnboardingChecklist,
    OnboardingTask,
    OnboardingTaskStatus,
)
from hrms.security import CurrentUser
from hrms.services.employees import find_employee_by_email
from hrms.services.notifications import get_primary_admin_email, send_email_safely

logger = logging.getLogger("hrms.onboarding")

OPEN_TASK_STATUSES = (OnboardingTaskStatus.NOT_STARTED, OnboardingTaskStatus.IN_PROGRESS)
COMPLETABLE_TASK_STATUSES = {
    OnboardingTaskStatus.NOT_STARTED,
    OnboardingTaskStatus.IN_PROGRESS,
    OnboardingTaskStatus.OVERDUE,
}

URGENCY_OVERDUE = "OVERDUE"
URGENCY_DUE_TODAY = "DUE TODAY"
URGENCY_DUE_TOMORROW = "DUE TOMORROW"


@dataclass(frozen=True)
class TaskTemplate:
    task_title: str
    task_description: str
    task_type: str
    assigned_to: OnboardingAssignee
    priority: str
    day_number: int
    order: int
    requires_document: bool = False
    requires_signature: bool = False


DEFAULT_TASK_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        task_title="Complete Employee Information Form",
        task_description="Fill out all personal and contact information",
        task_type="document_submission",
        assigned_to=OnboardingAssignee.NEW_HIRE,
        priority="high",
        day_number=1,
        order=1,
        requires_document=True,
    ),
    TaskTemplate(
        task_title="Submit Required Documents",
        task_description="Upload ID copy, educational certificates, and other required documents",
        task_type="document_submission",
        assigned_to=OnboardingAssignee.NEW_HIRE,
        priority="critical",
        day_number=1,
        order=2,
        requires_document=True,
    ),
    TaskTemplate(
        task_title="Sign Employment Contract",
        task_description="Review and electronically sign your employment contract",
        task_type="document_submission",
        assigned_to=OnboardingAssignee.NEW_HIRE,
        priority="critical",
        day_number=1,
        order=3,
        requires_signature=True,
    ),
    TaskTemplate(
        task_title="IT System Access Setup",
        task_description="Set up email account, system credentials, and software access",
        task_type="system_access",
        assigned_to=OnboardingAssignee.IT,
        priority="high",
        day_number=1,
        order=4,
    ),
    TaskTemplate(
        task_title="Workspace and Equipment Setup",
        task_description="Assign desk, computer, phone, and other necessary equipment",
        task_type="equipment_setup",
        assigned_to=OnboardingAssignee.IT,
        priority="high",
        day_number=1,
        order=5,
    ),
    TaskTemplate(
        task_title="Company Orientation",
        task_description="Attend company orientation session to learn about culture, policies, and procedures",
        task_type="orientation",
        assigned_to=OnboardingAssignee.HR,
        priority="high",
        day_number=1,
        order=6,
    ),
    TaskTemplate(
        task_title="Review Company Policies",
        task_description="Read and acknowledge all company policies including HR policies, Code of Conduct, and IT policies",
        task_type="policy_review",
        assigned_to=OnboardingAssignee.NEW_HIRE,
        priority="medium",
        day_number=2,
        order=7,
    ),
    TaskTemplate(
        task_title="Department Introduction",
        task_description="Meet your team members and understand your department structure",
        task_type="meeting",
        assigned_to=OnboardingAssignee.MANAGER,
        priority="high",
        day_number=2,
        order=8,
    ),
    TaskTemplate(
        task_title="Role-Specific Training",
        task_description="Complete training sessions specific to your job role",
        task_type="training",
        assigned_to=OnboardingAssignee.MANAGER,
        priority="high",
        day_number=3,
        order=9,
    ),
    TaskTemplate(
        task_title="30-Day Check-in",
        task_description="Meet with HR to discuss your first month experience and address any concerns",
        task_type="meeting",
        assigned_to=OnboardingAssignee.HR,
        priority="medium",
        day_number=30,
        order=10,
    ),
)


def due_date_for(start_date: date, day_number: int) -> date:
    return start_date + timedelta(days=day_number)


def _list_active_checklists(db: Session) -> list[OnboardingChecklist]:
    stmt = (
        select(OnboardingChecklist)
        .where(OnboardingChecklist.is_active.is_(True))
        .order_by(OnboardingChecklist.id.asc())
    )
    return list(db.scalars(stmt).all())


def select_checklist(checklists: list[OnboardingChecklist], employee: Employee) -> OnboardingChecklist | None:
    """Pick by department, then by job role, then the first general checklist."""
    if employee.department:
        for checklist in checklists:
            if checklist.department == employee.department:
                return checklist
    if employee.job_title:
        for checklist in checklists:
            if checklist.job_role == employee.job_title:
                return checklist
    for checklist in checklists:
        if not checklist.department and not checklist.job_role:
            return checklist
    return None


def build_tasks(
    *,
    checklist_id: int,
    employee_id: int,
    start_date: date,
    templates: tuple[TaskTemplate, ...] = DEFAULT_TASK_TEMPLATES,
) -> list[OnboardingTask]:
    return [
        OnboardingTask(
            checklist_id=checklist_id,
            employee_id=employee_id,
            task_title=template.task_title,
            task_description=template.task_description,
            task_type=template.task_type,
            assigned_to=template.assigned_to,
            priority=template.priority,
            day_number=template.day_number,
            due_date=due_date_for(start_date, template.day_number),
            status=OnboardingTaskStatus.NOT_STARTED,
            requires_document=template.requires_document,
            requires_signature=template.requires_signature,
            order=template.order,
        )
        for template in templates
    ]


def _send_assignment_emails(
    db: Session,
    *,
    employee: Employee,
    checklist: OnboardingChecklist,
    tasks: list[OnboardingTask],
) -> None:
    if employee.email:
        first_day = [task.task_title for task in tasks if task.day_number == 1 and task.assigned_to == OnboardingAssignee.NEW_HIRE]
        body_lines = [
            f"Dear {employee.first_name},",
            "",
            "Welcome to the team! We're excited to have you on board.",
            "",
            f"Your onboarding checklist has been assigned with {len(tasks)} tasks to help you get started. "
            "Please log into the HRMS system to view your tasks and complete them by the specified due dates.",
            "",
            "Your first day tasks include:",
            *[f"- {title}" for title in first_day],
            "",
            "Best regards,",
            "HR Team",
        ]
        send_email_safely(
            employee.email,
            f"Welcome to {checklist.checklist_name or 'the Company'} - Your Onboarding Checklist",
            "\n".join(body_lines),
        )

    if employee.manager_id is None:
        return
    manager = db.get(Employee, employee.manager_id)
    if manager is None or not manager.email:
        return
    manager_tasks = [task.task_title for task in tasks if task.assigned_to == OnboardingAssignee.MANAGER]
    send_email_safely(
        manager.email,
        f"New Team Member Onboarding - {employee.full_name}",
        "\n".join(
            [
                f"Hi {manager.first_name},",
                "",
                f"{employee.full_name} has been assigned an onboarding checklist. Some tasks require your attention:",
                "",
                *[f"- {title}" for title in manager_tasks],
                "",
                "Please log into the HRMS system to view and complete your assigned tasks.",
            ]
        ),
    )


def assign_onboarding(
    db: Session,
    *,
    employee_id: int | None,
    checklist_id: int | None = None,
    start_date: date | None = None,
    today: date | None = None,
) -> tuple[OnboardingChecklist, list[OnboardingTask]]:
    if not employee_id:
        raise bad_request("employee_id is required")

    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee not found")

    if checklist_id:
        checklist = db.get(OnboardingChecklist, checklist_id)
        if checklist is None:
            raise not_found("Checklist not found")
    else:
        checklist = select_checklist(_list_active_checklists(db), employee)
        if checklist is None:
            raise not_found("No suitable onboarding checklist found. Please create a default checklist first.")

    start = start_date or employee.hire_date or today or date.today()
    tasks = build_tasks(checklist_id=checklist.id, employee_id=employee.id, start_date=start)
    db.add_all(tasks)
    db.commit()
    for task in tasks:
        db.refresh(task)

    logger.info(
        "onboarding_assigned",
        extra={
            "employee_id": employee.id,
            "checklist_id": checklist.id,
            "task_count": len(tasks),
            "start_date": start,
        },
    )
    _send_assignment_emails(db, employee=employee, checklist=checklist, tasks=tasks)
    return checklist, tasks


@dataclass
class ReminderSweepResult:
    reminders: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    marked_overdue: int = 0

    def _count(self, urgency: str) -> int:
        return sum(1 for item in self.reminders if item["status"] == urgency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reminders_sent": len(self.reminders),
            "overdue": self._count(URGENCY_OVERDUE),
            "due_today": self._count(URGENCY_DUE_TODAY),
            "due_tomorrow": self._count(URGENCY_DUE_TOMORROW),
            "marked_overdue": self.marked_overdue,
            "reminders": self.reminders,
            "errors": self.errors,
        }


def _load_open_tasks(db: Session, *, employee_id: int | None, task_id: int | None) -> list[OnboardingTask]:
    stmt = (
        select(OnboardingTask)
        .where(OnboardingTask.status.in_(OPEN_TASK_STATUSES))
        .order_by(OnboardingTask.due_date.asc(), OnboardingTask.id.asc())
    )
    if employee_id is not None:
        stmt = stmt.where(OnboardingTask.employee_id == employee_id)
    if task_id is not None:
        stmt = stmt.where(OnboardingTask.id == task_id)
    return list(db.scalars(stmt).all())


def classify_due_date(due_date: date, today: date) -> str | None:
    if due_date < today:
        return URGENCY_OVERDUE
    if due_date == today:
        return URGENCY_DUE_TODAY
    if due_date == today + timedelta(days=1):
        return URGENCY_DUE_TOMORROW
    return None


def _resolve_reminder_recipient(
    db: Session,
    task: OnboardingTask,
    employee: Employee,
    admin_email: str | None,
) -> tuple[str | None, str]:
    if task.assigned_to == OnboardingAssignee.NEW_HIRE:
        return employee.email, employee.first_name
    if task.assigned_to == OnboardingAssignee.MANAGER:
        if employee.manager_id is None:
            return None, "Team Member"
        manager = db.get(Employee, employee.manager_id)
        if manager is None:
            return None, "Team Member"
        return manager.email, manager.first_name
    return admin_email, "HR Team"


def _reminder_body(
    *,
    task: OnboardingTask,
    employee: Employee,
    recipient_name: str,
    urgency: str,
    status_before: OnboardingTaskStatus,
    today: date,
) -> str:
    lines = [
        f"Dear {recipient_name},",
        "",
        urgency,
        "",
        "You have an onboarding task that requires your attention:",
        "",
        f"Employee: {employee.full_name}",
        f"Task: {task.task_title}",
        f"Due Date: {task.due_date.isoformat()}",
        f"Priority: {task.priority}",
        f"Status: {status_before.value}",
        "",
        "Description:",
        task.task_description or "",
        "",
    ]
    if task.requires_document:
        lines.append("This task requires document submission.")
    if task.requires_signature:
        lines.append("This task requires your signature.")
    if urgency == URGENCY_OVERDUE:
        lines.append(f"This task is {(today - task.due_date).days} day(s) overdue. Please prioritize completion.")
    lines += ["", "Thank you,", "HR Team"]
    return "\n".join(lines)


def send_onboarding_reminders(
    *,
    employee_id: int | None = None,
    task_id: int | None = None,
    today: date | None = None,
    db: Session | None = None,
) -> ReminderSweepResult:
    """Mark past-due open tasks overdue and remind owners of overdue / due-soon work."""
    if db is None:
        with SessionLocal() as managed_db:
            return send_onboarding_reminders(
                employee_id=employee_id,
                task_id=task_id,
                today=today,
                db=managed_db,
            )

    reference = today or date.today()
    result = ReminderSweepResult()
    admin_email = get_primary_admin_email(db)
    employees: dict[int, Employee | None] = {}

    for task in _load_open_tasks(db, employee_id=employee_id, task_id=task_id):
        try:
            if task.employee_id not in employees:
                employees[task.employee_id] = db.get(Employee, task.employee_id)
            employee = employees[task.employee_id]
            if employee is None:
                continue

            urgency = classify_due_date(task.due_date, reference)
            status_before = task.status
            if urgency == URGENCY_OVERDUE:
                task.status = OnboardingTaskStatus.OVERDUE
                db.commit()
                result.marked_overdue += 1
            if urgency is None:
                continue

            recipient, recipient_name = _resolve_reminder_recipient(db, task, employee, admin_email)
            if not recipient:
                continue
            send_email_safely(
                recipient,
                f"{urgency}: Onboarding Task - {task.task_title}",
                _reminder_body(
                    task=task,
                    employee=employee,
                    recipient_name=recipient_name,
                    urgency=urgency,
                    status_before=status_before,
                    today=reference,
                ),
            )
            result.reminders.append(
                {
                    "task_id": task.id,
                    "task_title": task.task_title,
                    "employee_name": employee.full_name,
                    "recipient": recipient,
                    "status": urgency,
                }
            )
        except Exception as exc:
            db.rollback()
            logger.warning(
                "onboarding_reminder_failed",
                extra={"task_id": task.id, "error": str(exc)},
            )
            result.errors.append({"task_id": task.id, "task_title": task.task_title, "error": str(exc)})

    summary = result.to_dict()
    if result.reminders and admin_email:
        send_email_safely(
            admin_email,
            f"Onboarding Reminders Summary - {reference.isoformat()}",
            "\n".join(
                [
                    "Daily Onboarding Task Reminders Summary:",
                    "",
                    f"Total Reminders Sent: {summary['reminders_sent']}",
                    f"- Overdue Tasks: {summary['overdue']}",
                    f"- Due Today: {summary['due_today']}",
                    f"- Due Tomorrow: {summary['due_tomorrow']}",
                    "",
                    f"Errors Encountered: {len(result.errors)}" if result.errors else "",
                    "Please check the Onboarding Management dashboard for detailed status.",
                ]
            ),
        )

    logger.info(
        "onboarding_reminders_sent",
        extra={key: value for key, value in summary.items() if key not in {"reminders", "errors"}},
    )
    return result


def _load_task_for_actor(db: Session, *, task_id: int, user: CurrentUser) -> tuple[OnboardingTask, Employee]:
    task = db.get(OnboardingTask, task_id)
    if task is None:
        raise not_found("Task not found")
    employee = db.get(Employee, task.employee_id)
    if employee is None:
        raise not_found("Employee not found")
    if user.is_admin:
        return task, employee

    caller = find_employee_by_email(db, user.email)
    is_owner = caller is not None and caller.id == task.employee_id
    is_manager = caller is not None and employee.manager_id is not None and caller.id == employee.manager_id
    if not (is_owner or is_manager):
        raise forbidden("Access denied - You cannot complete this task")
    return task, employee


def _checklist_tasks(db: Session, *, employee_id: int, checklist_id: int) -> list[OnboardingTask]:
    stmt = select(OnboardingTask).where(
        OnboardingTask.employee_id == employee_id,
        OnboardingTask.checklist_id == checklist_id,
    )
    return list(db.scalars(stmt).all())


def checklist_progress(tasks: list[OnboardingTask]) -> dict[str, int]:
    total = len(tasks)
    completed = sum(1 for task in tasks if task.status == OnboardingTaskStatus.COMPLETED)
    return {
        "completion_percentage": round(completed * 100 / total) if total else 0,
        "total_tasks": total,
        "completed_tasks": completed,
        "remaining_tasks": total - completed,
    }


def start_task(db: Session, *, task_id: int, user: CurrentUser) -> OnboardingTask:
    task, _ = _load_task_for_actor(db, task_id=task_id, user=user)
    if task.status != OnboardingTaskStatus.NOT_STARTED:
        raise bad_request(f"Task is already {task.status.value}", code="INVALID_TRANSITION")
    task.status = OnboardingTaskStatus.IN_PROGRESS
    db.commit()
    db.refresh(task)
    return task


def complete_task(
    db: Session,
    *,
    task_id: int,
    user: CurrentUser,
    notes: str | None = None,
    document_url: str | None = None,
    signature_data: str | None = None,
    today: date | None = None,
) -> tuple[OnboardingTask, dict[str, int]]:
    task, employee = _load_task_for_actor(db, task_id=task_id, user=user)
    if task.status not in COMPLETABLE_TASK_STATUSES:
        raise bad_request(f"Task is already {task.status.value}", code="INVALID_TRANSITION")
    if task.requires_document and not (document_url or task.document_url):
        raise bad_request("This task requires a document to be uploaded")
    if task.requires_signature and not (signature_data or task.signature_data):
        raise bad_request("This task requires your signature")

    completed_on = today or date.today()
    task.status = OnboardingTaskStatus.COMPLETED
    task.completed_date = completed_on
    task.completed_by = user.email
    task.document_url = document_url or task.document_url
    task.signature_data = signature_data or task.signature_data
    task.notes = notes or task.notes
    db.commit()
    db.refresh(task)

    progress = checklist_progress(_checklist_tasks(db, employee_id=task.employee_id, checklist_id=task.checklist_id))
    logger.info(
        "onboarding_task_completed",
        extra={"task_id": task.id, "employee_id": employee.id, **progress},
    )

    percentage = progress["completion_percentage"]
    if employee.email:
        closing = (
            "Congratulations! You've completed all onboarding tasks! Welcome aboard!"
            if percentage == 100
            else f"Keep going! You have {progress['remaining_tasks']} task(s) remaining."
        )
        send_email_safely(
            employee.email,
            f"Task Completed: {task.task_title}",
            f"Dear {employee.first_name},\n\nGreat job! You've completed an onboarding task:\n\n"
            f"Task: {task.task_title}\nCompleted: {completed_on.isoformat()}\n\n"
            f"Your Onboarding Progress: {percentage}% ({progress['completed_tasks']}/{progress['total_tasks']} tasks)\n\n"
            f"{closing}\n\nBest regards,\nHR Team",
        )
    if task.priority == "critical" or percentage == 100:
        admin_email = get_primary_admin_email(db)
        if admin_email:
            send_email_safely(
                admin_email,
                f"Onboarding Task Completed: {employee.full_name}",
                f"An onboarding task has been completed:\n\nEmployee: {employee.full_name}\n"
                f"Task: {task.task_title}\nPriority: {task.priority}\nCompletion Progress: {percentage}%",
            )
    return task, progress
