from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrms.errors import ApiError, bad_request, not_found
from hrms.models import Employee, EmployeeStatus
from hrms.schemas import EmployeeCreate, EmployeeUpdate


def find_employee_by_email(db: Session, email: str | None) -> Employee | None:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    return db.scalar(
        select(Employee).where(func.lower(Employee.email) == normalized).order_by(Employee.id.asc()).limit(1)
    )


def _ensure_manager_exists(db: Session, manager_id: int | None, *, employee_id: int | None = None) -> None:
    if manager_id is None:
        return
    if employee_id is not None and manager_id == employee_id:
        raise bad_request("An employee cannot be their own manager")
    if db.get(Employee, manager_id) is None:
        raise not_found("Manager not found")


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    _ensure_manager_exists(db, payload.manager_id)
    data = payload.model_dump()
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    employee = Employee(**data)
    db.add(employee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="CONFLICT", message="Employee number already exists") from exc
    db.refresh(employee)
    return employee


def list_employees(
    db: Session,
    *,
    status: EmployeeStatus | None,
    department: str | None,
) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.id.asc())
    if status is not None:
        stmt = stmt.where(Employee.status == status)
    if department:
        stmt = stmt.where(Employee.department == department)
    return list(db.scalars(stmt).all())


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee not found")
    return employee


def update_employee(db: Session, employee_id: int, payload: EmployeeUpdate) -> tuple[Employee, dict]:
    employee = get_employee(db, employee_id)
    changes = payload.model_dump(exclude_unset=True)
    if "manager_id" in changes:
        _ensure_manager_exists(db, changes["manager_id"], employee_id=employee.id)
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
    for field_name, value in changes.items():
        setattr(employee, field_name, value)
    db.commit()
    db.refresh(employee)
    return employee, changes
