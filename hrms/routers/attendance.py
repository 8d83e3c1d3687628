from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.errors import forbidden, not_found
from hrms.schemas import AttendancePunchRequest, AttendanceRead, AttendanceRecordRequest
from hrms.security import CurrentUser, require_admin, require_user
from hrms.services.attendance import list_attendance, record_attendance, record_punch
from hrms.services.employees import find_employee_by_email

router = APIRouter(tags=["attendance"])


@router.post("/api/attendance/punch", response_model=AttendanceRead)
def punch(
    payload: AttendancePunchRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    employee = find_employee_by_email(db, user.email)
    if employee is None:
        raise not_found("Employee record not found")
    record = record_punch(db, employee=employee, punch_type=payload.punch_type, notes=payload.notes)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ATTENDANCE_PUNCH",
        entity_type="attendance",
        entity_id=str(record.id),
        details={
            "employee_id": employee.id,
            "punch_type": payload.punch_type,
            "date": record.date.isoformat(),
            "status": record.status.value,
        },
    )
    return AttendanceRead.model_validate(record)


@router.post("/api/attendance", response_model=AttendanceRead)
def record_day(
    payload: AttendanceRecordRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record, created = record_attendance(
        db,
        employee_id=payload.employee_id,
        day=payload.date,
        status=payload.status,
        overtime_hours=payload.overtime_hours,
        clock_in=payload.clock_in,
        clock_out=payload.clock_out,
        notes=payload.notes,
    )
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="ATTENDANCE_RECORDED",
        entity_type="attendance",
        entity_id=str(record.id),
        details={
            "employee_id": payload.employee_id,
            "date": payload.date.isoformat(),
            "status": payload.status.value,
            "created": created,
        },
    )
    return AttendanceRead.model_validate(record)


@router.get("/api/attendance", response_model=list[AttendanceRead])
def attendance_list(
    employee_id: int | None = Query(default=None, ge=1),
    month: str | None = Query(default=None),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[AttendanceRead]:
    if not user.is_admin:
        own = find_employee_by_email(db, user.email)
        if own is None:
            return []
        if employee_id is not None and employee_id != own.id:
            raise forbidden("You can only view your own attendance")
        employee_id = own.id
    rows = list_attendance(db, employee_id=employee_id, month=month)
    return [AttendanceRead.model_validate(row) for row in rows]
