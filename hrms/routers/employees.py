from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from hrms.audit import audit_request
from hrms.db import get_db
from hrms.models import EmployeeStatus
from hrms.schemas import EmployeeCreate, EmployeeRead, EmployeeUpdate
from hrms.security import CurrentUser, require_admin, require_user
from hrms.services.employees import create_employee, get_employee, list_employees, update_employee

router = APIRouter(tags=["employees"])


@router.post("/api/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = create_employee(db, payload)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="EMPLOYEE_CREATED",
        entity_type="employee",
        entity_id=str(employee.id),
        details={"employee_number": employee.employee_number},
    )
    return EmployeeRead.model_validate(employee)


@router.get("/api/employees", response_model=list[EmployeeRead])
def list_employees_endpoint(
    status_filter: EmployeeStatus | None = Query(default=None, alias="status"),
    department: str | None = Query(default=None),
    _user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    employees = list_employees(db, status=status_filter, department=department)
    return [EmployeeRead.model_validate(item) for item in employees]


@router.get("/api/employees/{employee_id}", response_model=EmployeeRead)
def get_employee_endpoint(
    employee_id: int,
    _user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    return EmployeeRead.model_validate(get_employee(db, employee_id))


@router.patch("/api/employees/{employee_id}", response_model=EmployeeRead)
def update_employee_endpoint(
    employee_id: int,
    payload: EmployeeUpdate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee, changes = update_employee(db, employee_id, payload)
    audit_request(
        db,
        request,
        actor_type=user.audit_actor_type,
        actor_id=user.email,
        action="EMPLOYEE_UPDATED",
        entity_type="employee",
        entity_id=str(employee.id),
        details={"fields": sorted(changes)},
    )
    return EmployeeRead.model_validate(employee)
