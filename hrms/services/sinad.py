from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import ApiError, bad_request, not_found
from hrms.models import Employee, Payroll, PayrollStatus, SINADRecord
from hrms.security import CurrentUser
from hrms.services.government_client import GovernmentApiClient, GovernmentApiError
from hrms.services.notifications import send_email_safely
from hrms.services.payroll_calc import parse_month, round_money
from hrms.settings import get_settings, is_sinad_configured

logger = logging.getLogger("hrms.government")

SINAD_ACTIONS = ("generate_wage_file", "submit_to_sinad", "check_submission_status", "validate_before_submit")


def build_sinad_client(transport: httpx.BaseTransport | None = None) -> GovernmentApiClient:
    if not is_sinad_configured():
        raise ApiError(status_code=500, code="CONFIG_ERROR", message="SINAD API credentials not configured")
    settings = get_settings()
    return GovernmentApiClient(
        name="SINAD",
        base_url=settings.sinad_api_url,
        api_key=(settings.sinad_api_key or "").strip(),
        timeout=settings.government_api_timeout_seconds,
        extra_headers={"X-Establishment-ID": (settings.sinad_establishment_id or "").strip()},
        transport=transport,
    )


def _require_month(submission_month: str | None) -> str:
    if not submission_month:
        raise bad_request("submission_month is required (format: YYYY-MM)")
    try:
        parse_month(submission_month)
    except ValueError as exc:
        raise bad_request(str(exc)) from exc
    return submission_month


def _load_approved_payrolls(db: Session, month: str) -> list[tuple[Payroll, Employee | None]]:
    rows = db.execute(
        select(Payroll, Employee)
        .outerjoin(Employee, Employee.id == Payroll.employee_id)
        .where(Payroll.month == month, Payroll.status == PayrollStatus.APPROVED)
        .order_by(Payroll.employee_id.asc())
    ).all()
    return [(payroll, employee) for payroll, employee in rows]


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def wage_file_entry(payroll: Payroll, employee: Employee | None) -> dict[str, Any]:
    return {
        "iqama_number": (employee.national_id if employee else None) or "",
        "employee_name": employee.full_name if employee else "",
        "basic_salary": payroll.basic_salary,
        "housing_allowance": payroll.housing_allowance,
        "transport_allowance": payroll.transport_allowance,
        "other_allowances": payroll.other_fixed_allowances,
        "gross_salary": payroll.gross_salary,
        "total_deductions": payroll.total_deductions,
        "net_salary": payroll.net_salary,
        "payment_date": _iso(payroll.payment_date),
        "bank_name": (employee.bank_name if employee else None) or "",
        "iban": (employee.iban if employee else None) or "",
    }


def generate_wage_file(
    db: Session,
    *,
    submission_month: str | None,
    company_id: str | None,
    sinad_record_id: int | None,
    today: date | None = None,
) -> dict[str, Any]:
    month = _require_month(submission_month)
    rows = _load_approved_payrolls(db, month)
    if not rows:
        raise not_found("No approved payrolls found for the specified month")

    generated_on = today or date.today()
    entries = [wage_file_entry(payroll, employee) for payroll, employee in rows]
    total_wages = round_money(sum(float(item["gross_salary"] or 0.0) for item in entries))

    if sinad_record_id:
        record = db.get(SINADRecord, sinad_record_id)
        if record is None:
            raise not_found("SINAD record not found")
    else:
        record = SINADRecord(
            company_id=company_id,
            submission_month=month,
            submission_type="regular",
        )
        db.add(record)
    record.total_employees = len(entries)
    record.total_wages = total_wages
    record.status = "generated"
    record.submission_date = generated_on
    db.commit()
    db.refresh(record)

    logger.info(
        "sinad_wage_file_generated",
        extra={"sinad_record_id": record.id, "month": month, "total_employees": len(entries)},
    )
    return {
        "success": True,
        "message": "Wage file generated successfully",
        "sinad_record_id": record.id,
        "total_employees": len(entries),
        "total_wages": total_wages,
        "wage_file_data": {
            "establishment_id": get_settings().sinad_establishment_id,
            "submission_month": month,
            "submission_date": generated_on.isoformat(),
            "employees": entries,
        },
    }


def submit_to_sinad(
    db: Session,
    *,
    client: GovernmentApiClient,
    sinad_record_id: int | None,
    user: CurrentUser,
    today: date | None = None,
) -> dict[str, Any]:
    record = db.get(SINADRecord, sinad_record_id) if sinad_record_id else None
    if record is None:
        raise not_found("SINAD record not found")

    rows = _load_approved_payrolls(db, record.submission_month)
    payload = {
        "establishment_id": get_settings().sinad_establishment_id,
        "submission_month": record.submission_month,
        "submission_type": record.submission_type,
        "payment_date": _iso(record.payment_date),
        "bank_name": record.bank_name,
        "employees": [
            {
                "iqama_number": (employee.national_id if employee else None) or "",
                "employee_name": employee.full_name if employee else "",
                "gross_salary": payroll.gross_salary,
                "net_salary": payroll.net_salary,
                "iban": (employee.iban if employee else None) or "",
            }
            for payroll, employee in rows
        ],
    }

    try:
        response = client.post("/wage-files/submit", payload)
    except GovernmentApiError as exc:
        record.status = "submission_failed"
        record.rejection_reason = str(exc)[:1000]
        db.commit()
        logger.warning(
            "sinad_submission_transport_failed",
            extra={"sinad_record_id": record.id, "error": str(exc)},
        )
        raise ApiError(status_code=502, code="UPSTREAM_ERROR", message=str(exc)) from exc

    if not response.ok:
        error = response.error_message("Submission failed")
        record.status = "rejected"
        record.rejection_reason = error[:1000]
        db.commit()
        send_email_safely(
            user.email,
            "SINAD Wage File Submission Failed",
            f"Failed to submit wage file for {record.submission_month}. Error: {error}",
        )
        raise bad_request(error, code="SINAD_SUBMISSION_FAILED")

    reference = response.data.get("reference_number")
    record.status = "submitted"
    record.file_reference = str(reference) if reference is not None else None
    record.submission_date = today or date.today()
    record.compliance_score = float(response.data.get("compliance_score") or 0.0)
    record.rejection_reason = None
    db.commit()

    logger.info(
        "sinad_wage_file_submitted",
        extra={"sinad_record_id": record.id, "file_reference": record.file_reference},
    )
    send_email_safely(
        user.email,
        "SINAD Wage File Submitted Successfully",
        f"Wage file for {record.submission_month} has been submitted to SINAD. Reference: {record.file_reference}",
    )
    return {
        "success": True,
        "message": "Wage file submitted to SINAD successfully",
        "reference_number": record.file_reference,
        "compliance_score": record.compliance_score,
    }


def check_submission_status(
    db: Session,
    *,
    client: GovernmentApiClient,
    sinad_record_id: int | None,
) -> dict[str, Any]:
    record = db.get(SINADRecord, sinad_record_id) if sinad_record_id else None
    if record is None or not record.file_reference:
        raise not_found("SINAD record not found or not submitted")

    try:
        response = client.get(f"/wage-files/{record.file_reference}/status")
    except GovernmentApiError as exc:
        raise ApiError(status_code=502, code="UPSTREAM_ERROR", message=str(exc)) from exc

    if not response.ok:
        raise bad_request(response.error_message("Failed to check status"), code="SINAD_STATUS_FAILED")

    status = response.data.get("status")
    if status:
        record.status = str(status)
    if response.data.get("compliance_score") is not None:
        record.compliance_score = float(response.data["compliance_score"])
    approval_date = response.data.get("approval_date")
    if approval_date:
        try:
            record.approval_date = date.fromisoformat(str(approval_date)[:10])
        except ValueError:
            logger.warning(
                "sinad_approval_date_unparseable",
                extra={"sinad_record_id": record.id, "approval_date": approval_date},
            )
    db.commit()
    return {
        "success": True,
        "status": record.status,
        "compliance_score": record.compliance_score,
        "approval_date": _iso(record.approval_date),
    }


def validate_wage_rows(rows: list[tuple[Payroll, Employee | None]]) -> list[str]:
    errors: list[str] = []
    for index, (payroll, employee) in enumerate(rows, start=1):
        if employee is None:
            errors.append(f"Payroll #{index}: Employee not found")
            continue
        if not employee.national_id:
            errors.append(f"Employee {employee.full_name}: Missing national ID/Iqama")
        if not employee.iban:
            errors.append(f"Employee {employee.full_name}: Missing IBAN")
        if not payroll.net_salary or payroll.net_salary <= 0:
            errors.append(f"Employee {employee.full_name}: Invalid net salary")
    return errors


def validate_before_submit(db: Session, *, submission_month: str | None) -> dict[str, Any]:
    month = _require_month(submission_month)
    rows = _load_approved_payrolls(db, month)
    errors = validate_wage_rows(rows)
    return {
        "success": not errors,
        "valid": not errors,
        "errors": errors,
        "total_employees": len(rows),
    }


def run_sinad_action(
    db: Session,
    *,
    action: str | None,
    sinad_record_id: int | None,
    company_id: str | None,
    submission_month: str | None,
    user: CurrentUser,
    client: GovernmentApiClient | None = None,
) -> dict[str, Any]:
    api = client or build_sinad_client()
    if action not in SINAD_ACTIONS:
        raise bad_request("Invalid action", code="INVALID_ACTION")
    if action == "generate_wage_file":
        return generate_wage_file(
            db,
            submission_month=submission_month,
            company_id=company_id,
            sinad_record_id=sinad_record_id,
        )
    if action == "submit_to_sinad":
        return submit_to_sinad(db, client=api, sinad_record_id=sinad_record_id, user=user)
    if action == "check_submission_status":
        return check_submission_status(db, client=api, sinad_record_id=sinad_record_id)
    return validate_before_submit(db, submission_month=submission_month)
