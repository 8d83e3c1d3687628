from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import bad_request, not_found
from hrms.models import Attendance, AttendanceStatus, Employee
from hrms.services.payroll_calc import HOURS_PER_WORKING_DAY, month_bounds, round_money
from hrms.settings import get_settings

logger = logging.getLogger("hrms.attendance")

CLOCK_IN = "clock_in"
CLOCK_OUT = "clock_out"
PUNCH_TYPES = (CLOCK_IN, CLOCK_OUT)
DEFAULT_WORK_START = time(8, 0)


@lru_cache
def _attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or "Asia/Riyadh"
    try:
        return ZoneInfo(raw_name)
    except Exception:
        return ZoneInfo("Asia/Riyadh")


def _work_start() -> time:
    try:
        return time.fromisoformat((get_settings().attendance_work_start or "").strip())
    except ValueError:
        return DEFAULT_WORK_START


def _local_now(now_utc: datetime | None) -> datetime:
    current = now_utc or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(_attendance_timezone())


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def classify_arrival(clock_in: time) -> AttendanceStatus:
    """PRESENT within the grace window after the work start, LATE afterwards."""
    grace = max(0, int(get_settings().attendance_grace_minutes))
    if _minutes(clock_in) > _minutes(_work_start()) + grace:
        return AttendanceStatus.LATE
    return AttendanceStatus.PRESENT


def worked_hours(clock_in: time, clock_out: time) -> float:
    minutes = _minutes(clock_out) - _minutes(clock_in)
    if minutes < 0:
        # Night shift closed after midnight.
        minutes += 24 * 60
    return round_money(minutes / 60)


def overtime_for(actual_hours: float) -> float:
    return round_money(max(actual_hours - HOURS_PER_WORKING_DAY, 0.0))


def _find_attendance(db: Session, *, employee_id: int, day: date) -> Attendance | None:
    return db.scalar(select(Attendance).where(Attendance.employee_id == employee_id, Attendance.date == day))


def record_punch(
    db: Session,
    *,
    employee: Employee,
    punch_type: str,
    notes: str | None = None,
    now_utc: datetime | None = None,
) -> Attendance:
    """Clock the employee in or out for the current local day.

    One attendance row per employee and day: clock-in opens it, clock-out
    closes it and derives worked and overtime hours.
    """
    if punch_type not in PUNCH_TYPES:
        raise bad_request("punch_type must be clock_in or clock_out", code="INVALID_PUNCH_TYPE")

    local_now = _local_now(now_utc)
    day = local_now.date()
    current = local_now.time().replace(second=0, microsecond=0)
    record = _find_attendance(db, employee_id=employee.id, day=day)

    if punch_type == CLOCK_IN:
        if record is not None and record.clock_in is not None:
            if record.clock_out is None:
                raise bad_request("Already clocked in. Clock out first.", code="INVALID_TRANSITION")
            raise bad_request("Attendance for today is already closed", code="INVALID_TRANSITION")
        if record is None:
            record = Attendance(employee_id=employee.id, date=day, overtime_hours=0.0)
            db.add(record)
        record.clock_in = current
        record.status = classify_arrival(current)
    else:
        if record is None or record.clock_in is None or record.clock_out is not None:
            raise bad_request("Must clock in before clocking out.", code="INVALID_TRANSITION")
        record.clock_out = current
        record.actual_hours = worked_hours(record.clock_in, current)
        record.overtime_hours = overtime_for(record.actual_hours)

    if notes:
        record.notes = notes
    db.commit()
    db.refresh(record)

    logger.info(
        "attendance_punch_recorded",
        extra={
            "employee_id": employee.id,
            "punch_type": punch_type,
            "date": day.isoformat(),
            "status": record.status.value,
            "overtime_hours": record.overtime_hours,
        },
    )
    return record


def record_attendance(
    db: Session,
    *,
    employee_id: int,
    day: date,
    status: AttendanceStatus,
    overtime_hours: float | None = None,
    clock_in: time | None = None,
    clock_out: time | None = None,
    notes: str | None = None,
) -> tuple[Attendance, bool]:
    """Create or overwrite the day's attendance row; returns ``(record, created)``."""
    if db.get(Employee, employee_id) is None:
        raise not_found("Employee not found")
    if clock_out is not None and clock_in is None:
        raise bad_request("clock_out requires clock_in")

    record = _find_attendance(db, employee_id=employee_id, day=day)
    created = record is None
    if record is None:
        record = Attendance(employee_id=employee_id, date=day)
        db.add(record)

    record.status = status
    record.clock_in = clock_in
    record.clock_out = clock_out
    record.actual_hours = worked_hours(clock_in, clock_out) if clock_in and clock_out else None
    if overtime_hours is not None:
        record.overtime_hours = round_money(overtime_hours)
    elif record.actual_hours is not None:
        record.overtime_hours = overtime_for(record.actual_hours)
    else:
        record.overtime_hours = 0.0
    record.notes = notes
    db.commit()
    db.refresh(record)

    logger.info(
        "attendance_recorded",
        extra={"employee_id": employee_id, "date": day.isoformat(), "status": status.value, "created": created},
    )
    return record, created


def list_attendance(db: Session, *, employee_id: int | None, month: str | None) -> list[Attendance]:
    stmt = select(Attendance)
    if employee_id is not None:
        stmt = stmt.where(Attendance.employee_id == employee_id)
    if month:
        try:
            month_start, month_end = month_bounds(month)
        except ValueError as exc:
            raise bad_request(str(exc)) from exc
        stmt = stmt.where(Attendance.date >= month_start, Attendance.date <= month_end)
    return list(db.scalars(stmt.order_by(Attendance.date.asc(), Attendance.employee_id.asc())).all())
