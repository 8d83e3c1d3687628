from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import ApiError, bad_request, not_found
from hrms.models import Employee, QIWARecord, QiwaRegistrationStatus, SyncStatus
from hrms.security import CurrentUser
from hrms.services.government_client import GovernmentApiClient, GovernmentApiError, GovernmentResponse
from hrms.services.notifications import send_email_safely
from hrms.settings import get_settings, is_qiwa_configured

logger = logging.getLogger("hrms.government")

QIWA_ACTIONS = ("register_employee", "sync_work_permit", "bulk_sync")
PERMIT_EXPIRY_WARNING_DAYS = 90


def build_qiwa_client(transport: httpx.BaseTransport | None = None) -> GovernmentApiClient:
    if not is_qiwa_configured():
        raise ApiError(status_code=500, code="CONFIG_ERROR", message="QIWA API credentials not configured")
    settings = get_settings()
    return GovernmentApiClient(
        name="QIWA",
        base_url=settings.qiwa_api_url,
        api_key=(settings.qiwa_api_key or "").strip(),
        timeout=settings.government_api_timeout_seconds,
        transport=transport,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _mark_sync_error(db: Session, record: QIWARecord, message: str) -> None:
    record.last_sync_date = _utcnow()
    record.sync_status = SyncStatus.ERROR
    record.sync_error = message[:1000]
    db.commit()


def _mark_sync_success(record: QIWARecord) -> None:
    record.last_sync_date = _utcnow()
    record.sync_status = SyncStatus.SUCCESS
    record.sync_error = None


def registration_payload(employee: Employee, record: QIWARecord) -> dict[str, Any]:
    name_ar = ""
    if employee.first_name_ar and employee.last_name_ar:
        name_ar = f"{employee.first_name_ar} {employee.last_name_ar}"
    return {
        "iqama_number": record.iqama_number,
        "border_number": record.border_number,
        "work_permit_number": record.work_permit_number,
        "employee_name_en": employee.full_name,
        "employee_name_ar": name_ar,
        "job_title_ar": record.job_title_ar,
        "occupation_code": record.occupation_code,
        "contract_type": record.contract_type,
        "contract_start_date": _iso(record.contract_start_date),
        "contract_end_date": _iso(record.contract_end_date),
        "nationality": employee.nationality,
        "date_of_birth": _iso(employee.date_of_birth),
        "gender": employee.gender,
    }


def register_employee(
    db: Session,
    *,
    client: GovernmentApiClient,
    employee_id: int | None,
    qiwa_record_id: int | None,
    user: CurrentUser,
    today: date | None = None,
) -> dict[str, Any]:
    employee = db.get(Employee, employee_id) if employee_id else None
    record = db.get(QIWARecord, qiwa_record_id) if qiwa_record_id else None
    if employee is None or record is None:
        raise not_found("Employee or QIWA record not found")

    try:
        response = client.post("/employees/register", registration_payload(employee, record))
    except GovernmentApiError as exc:
        _mark_sync_error(db, record, str(exc))
        raise ApiError(status_code=502, code="UPSTREAM_ERROR", message=str(exc)) from exc

    if not response.ok:
        error = response.error_message("Registration failed")
        record.registration_status = QiwaRegistrationStatus.PENDING
        _mark_sync_error(db, record, error)
        send_email_safely(
            user.email,
            "QIWA Registration Failed",
            f"Failed to register employee {employee.full_name} in QIWA. Error: {error}",
        )
        raise bad_request(error, code="QIWA_REGISTRATION_FAILED")

    qiwa_id = response.data.get("qiwa_employee_id") or record.qiwa_id
    record.registration_status = QiwaRegistrationStatus.REGISTERED
    record.registration_date = today or date.today()
    record.qiwa_id = str(qiwa_id) if qiwa_id is not None else None
    _mark_sync_success(record)
    db.commit()

    logger.info("qiwa_employee_registered", extra={"employee_id": employee.id, "qiwa_record_id": record.id})
    send_email_safely(
        user.email,
        "QIWA Registration Successful",
        f"Employee {employee.full_name} has been successfully registered in QIWA.",
    )
    return {
        "success": True,
        "message": "Employee registered in QIWA successfully",
        "qiwa_id": record.qiwa_id,
    }


def _fetch_permit(client: GovernmentApiClient, record: QIWARecord) -> GovernmentResponse:
    return client.get(f"/work-permits/{record.work_permit_number}")


def sync_work_permit(
    db: Session,
    *,
    client: GovernmentApiClient,
    qiwa_record_id: int | None,
    user: CurrentUser,
    today: date | None = None,
) -> dict[str, Any]:
    record = db.get(QIWARecord, qiwa_record_id) if qiwa_record_id else None
    if record is None:
        raise not_found("QIWA record not found")

    try:
        response = _fetch_permit(client, record)
    except GovernmentApiError as exc:
        _mark_sync_error(db, record, str(exc))
        raise ApiError(status_code=502, code="UPSTREAM_ERROR", message=str(exc)) from exc

    if not response.ok:
        error = response.error_message("Failed to sync work permit")
        _mark_sync_error(db, record, error)
        raise bad_request(error, code="QIWA_SYNC_FAILED")

    expiry = _parse_date(response.data.get("expiry_date"))
    record.work_permit_expiry = expiry
    _mark_sync_success(record)
    db.commit()

    days_until_expiry = (expiry - (today or date.today())).days if expiry else None
    if days_until_expiry is not None and 0 < days_until_expiry <= PERMIT_EXPIRY_WARNING_DAYS:
        send_email_safely(
            user.email,
            "Work Permit Expiring Soon",
            f"Work permit for employee (QIWA ID: {record.qiwa_id}) will expire in "
            f"{days_until_expiry} days. Please renew.",
        )
    return {
        "success": True,
        "expiry_date": _iso(expiry),
        "days_until_expiry": days_until_expiry,
    }


def _load_registered_records(db: Session) -> list[QIWARecord]:
    stmt = (
        select(QIWARecord)
        .where(QIWARecord.registration_status == QiwaRegistrationStatus.REGISTERED)
        .order_by(QIWARecord.id.asc())
    )
    return list(db.scalars(stmt).all())


def bulk_sync(db: Session, *, client: GovernmentApiClient, user: CurrentUser) -> dict[str, Any]:
    results: dict[str, Any] = {"success": 0, "failed": 0, "errors": []}
    for record in _load_registered_records(db):
        try:
            response = _fetch_permit(client, record)
            if response.ok:
                record.work_permit_expiry = _parse_date(response.data.get("expiry_date"))
                _mark_sync_success(record)
                db.commit()
                results["success"] += 1
                continue
            error = response.error_message("Failed to sync work permit")
            _mark_sync_error(db, record, error)
        except GovernmentApiError as exc:
            error = str(exc)
            _mark_sync_error(db, record, error)
        except Exception as exc:
            db.rollback()
            logger.exception("qiwa_bulk_sync_record_failed", extra={"qiwa_record_id": record.id})
            error = str(exc)
        results["failed"] += 1
        results["errors"].append({"record_id": record.id, "error": error})

    logger.info(
        "qiwa_bulk_sync_completed",
        extra={"success_count": results["success"], "failed_count": results["failed"]},
    )
    send_email_safely(
        user.email,
        "QIWA Bulk Sync Completed",
        f"Bulk sync completed. Success: {results['success']}, Failed: {results['failed']}",
    )
    return {"success": True, "results": results}


def run_qiwa_action(
    db: Session,
    *,
    action: str | None,
    employee_id: int | None,
    qiwa_record_id: int | None,
    user: CurrentUser,
    client: GovernmentApiClient | None = None,
) -> dict[str, Any]:
    api = client or build_qiwa_client()
    if action not in QIWA_ACTIONS:
        raise bad_request("Invalid action", code="INVALID_ACTION")
    if action == "register_employee":
        return register_employee(db, client=api, employee_id=employee_id, qiwa_record_id=qiwa_record_id, user=user)
    if action == "sync_work_permit":
        return sync_work_permit(db, client=api, qiwa_record_id=qiwa_record_id, user=user)
    return bulk_sync(db, client=api, user=user)
