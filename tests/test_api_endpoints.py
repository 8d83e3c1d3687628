from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date, time
from unittest.mock import patch

from fastapi.testclient import TestClient

from hrms.db import get_db
from hrms.errors import ApiError
from hrms.main import app
from hrms.models import (
    ApproverRole,
    Attendance,
    AttendanceStatus,
    AuditLog,
    Employee,
    EmployeeStatus,
    EmploymentType,
    LeaveBalance,
    LeaveType,
    LoanRequest,
    OnboardingAssignee,
    OnboardingTask,
    OnboardingTaskStatus,
    Payroll,
    PayrollStatus,
    PublicHoliday,
    RequestStatus,
    TierStatus,
    UserRole,
)
from hrms.security import CurrentUser, require_user
from hrms.services.approvals import DecisionResult
from hrms.services.holidays import HolidayInitResult
from hrms.services.payroll import PayrollRunResult

ADMIN_USER = CurrentUser(user_id=1, email="hr.admin@company.sa", role=UserRole.ADMIN)
STAFF_USER = CurrentUser(user_id=7, email="staff@company.sa", role=UserRole.USER)


def _override_get_db(fake_db):
    def _override() -> Generator[object, None, None]:
        yield fake_db

    return _override


class _ScalarResult:
    def __init__(self, rows):
        self._rows = rows

    def all(self):  # type: ignore[no-untyped-def]
        return self._rows


class _FakeDB:
    def __init__(self, *objects: object, scalars_rows: list[object] | None = None):
        self.objects = {(type(obj), obj.id): obj for obj in objects}  # type: ignore[attr-defined]
        self.scalars_rows = scalars_rows or []
        self.rows: list[object] = []

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self.objects.get((model, pk))

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return None

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarResult(self.scalars_rows)

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def commit(self) -> None:
        return

    def rollback(self) -> None:
        return

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = 1  # type: ignore[attr-defined]

    def audit_actions(self) -> list[str]:
        return [row.action for row in self.rows if isinstance(row, AuditLog)]


def _payroll() -> Payroll:
    return Payroll(
        id=31,
        employee_id=4,
        month="2024-03",
        basic_salary=10000.0,
        housing_allowance=2500.0,
        transport_allowance=500.0,
        other_fixed_allowances=0.0,
        overtime_pay=0.0,
        bonus=0.0,
        commission=0.0,
        gross_salary=13000.0,
        gosi_employee=1000.0,
        gosi_employer=1200.0,
        gosi_calculation_base=10000.0,
        loan_deduction=0.0,
        advance_deduction=0.0,
        absence_deduction=0.0,
        other_deductions=0.0,
        total_deductions=1000.0,
        net_salary=12000.0,
        working_days=30,
        present_days=30,
        absent_days=0,
        unpaid_leave_days=0,
        overtime_hours=0.0,
        status=PayrollStatus.CALCULATED,
        payment_method="bank_transfer",
        payment_date=None,
        processed_by="hr.admin@company.sa",
    )


class _EndpointTestCase(unittest.TestCase):
    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _as(self, user: CurrentUser, fake_db: _FakeDB | None = None) -> TestClient:
        app.dependency_overrides[require_user] = lambda: user
        app.dependency_overrides[get_db] = _override_get_db(fake_db or _FakeDB())
        return TestClient(app)


class PayrollEndpointTests(_EndpointTestCase):
    def test_requires_authentication(self) -> None:
        client = TestClient(app)
        response = client.post("/api/payroll/process", json={"month": "2024-03"})

        self.assertEqual(response.status_code, 401)
        error = response.json()["error"]
        self.assertEqual(error["code"], "UNAUTHORIZED")
        self.assertEqual(error["request_id"], response.headers["X-Request-Id"])

    def test_requires_admin(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/payroll/process", json={"month": "2024-03"})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_missing_month_is_validation_error(self) -> None:
        client = self._as(ADMIN_USER)
        response = client.post("/api/payroll/process", json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_process_returns_summary_and_audits(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        run = PayrollRunResult(
            month="2024-03",
            processed=[_payroll()],
            errors=[{"employee_id": 5, "employee_name": "Late Joiner", "error": "Payroll already exists for 2024-03"}],
        )

        with patch("hrms.routers.payroll.process_monthly_payroll", return_value=run) as process_mock:
            response = client.post("/api/payroll/process", json={"month": "2024-03", "employee_ids": [4, 5]})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["processed_count"], 1)
        self.assertEqual(body["error_count"], 1)
        self.assertEqual(body["total_gross"], 13000.0)
        self.assertEqual(body["total_net"], 12000.0)
        self.assertEqual(body["total_gosi_employer"], 1200.0)
        self.assertEqual(body["processed_payrolls"][0]["status"], "calculated")
        self.assertEqual(body["errors"][0]["employee_id"], 5)
        self.assertEqual(process_mock.call_args.kwargs["processed_by"], "hr.admin@company.sa")
        self.assertEqual(fake_db.audit_actions(), ["PAYROLL_PROCESSED"])

    def test_status_transition_error_is_forwarded(self) -> None:
        client = self._as(ADMIN_USER)
        error = ApiError(status_code=400, code="INVALID_TRANSITION", message="Cannot move payroll from calculated to paid")

        with patch("hrms.routers.payroll.advance_payroll_status", side_effect=error):
            response = client.post("/api/payroll/31/status", json={"status": "paid"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TRANSITION")

    def test_status_update_returns_payroll(self) -> None:
        payroll = _payroll()
        fake_db = _FakeDB(payroll)
        client = self._as(ADMIN_USER, fake_db)

        response = client.post("/api/payroll/31/status", json={"status": "approved"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "approved")
        self.assertEqual(fake_db.audit_actions(), ["PAYROLL_STATUS_UPDATED"])

    def test_unknown_status_value_is_422(self) -> None:
        client = self._as(ADMIN_USER)
        response = client.post("/api/payroll/31/status", json={"status": "void"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")


def _decided_loan() -> LoanRequest:
    return LoanRequest(
        id=12,
        employee_id=4,
        loan_type="personal",
        amount_requested=20000.0,
        repayment_period=20,
        monthly_deduction=1000.0,
        purpose="Housing deposit",
        status=RequestStatus.PENDING,
        current_approver_role=ApproverRole.SENIOR_MANAGEMENT,
        manager_status=TierStatus.APPROVED,
        manager_approved_by="manager@company.sa",
        manager_approval_date=date(2024, 5, 1),
        hr_status=TierStatus.APPROVED,
        hr_approved_by="hr.admin@company.sa",
        hr_approval_date=date(2024, 5, 2),
        senior_management_status=TierStatus.PENDING,
    )


class RequestEndpointTests(_EndpointTestCase):
    def test_decision_response_shape(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        result = DecisionResult(
            request=_decided_loan(),
            tier=ApproverRole.HR,
            verb="approve",
            message="pending senior management approval",
            finalized=False,
        )

        with patch("hrms.routers.requests.apply_decision", return_value=result) as decide_mock:
            response = client.post("/api/loan-requests/12/decision", json={"action": "hr_approve", "comments": "ok"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Loan request approved by hr")
        self.assertEqual(body["updated_request"]["current_approver_role"], "senior_management")
        self.assertEqual(body["updated_request"]["hr_approval_date"], "2024-05-02")
        self.assertEqual(decide_mock.call_args.kwargs["kind"], "loan")
        self.assertEqual(decide_mock.call_args.kwargs["action"], "hr_approve")
        self.assertEqual(fake_db.audit_actions(), ["LOAN_REQUEST_APPROVE"])

    def test_rejection_message_uses_past_tense(self) -> None:
        loan = _decided_loan()
        loan.status = RequestStatus.REJECTED
        loan.current_approver_role = ApproverRole.COMPLETED
        result = DecisionResult(request=loan, tier=ApproverRole.SENIOR_MANAGEMENT, verb="reject", message="", finalized=True)
        client = self._as(ADMIN_USER)

        with patch("hrms.routers.requests.apply_decision", return_value=result):
            response = client.post("/api/loan-requests/12/decision", json={"action": "senior_management_reject"})

        self.assertEqual(response.json()["message"], "Loan request rejected by senior_management")

    def test_decision_forbidden_is_enveloped(self) -> None:
        client = self._as(STAFF_USER)
        error = ApiError(status_code=403, code="FORBIDDEN", message="Only the direct manager can approve/reject")

        with patch("hrms.routers.requests.apply_decision", side_effect=error):
            response = client.post("/api/leave-requests/3/decision", json={"action": "manager_approve"})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["message"], "Only the direct manager can approve/reject")

    def test_invalid_loan_payload_is_422(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/loan-requests", json={"amount_requested": 0})
        self.assertEqual(response.status_code, 422)

    def test_leave_request_with_reversed_dates_is_422(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post(
            "/api/leave-requests",
            json={"leave_type": "annual", "start_date": "2024-06-10", "end_date": "2024-06-01"},
        )
        self.assertEqual(response.status_code, 422)

    def test_loan_submission_for_own_record(self) -> None:
        employee = Employee(id=4, first_name="Staff", last_name="Member", email="staff@company.sa", manager_id=None)
        fake_db = _FakeDB(employee)
        client = self._as(STAFF_USER, fake_db)

        with patch("hrms.services.approvals.find_employee_by_email", return_value=employee):
            response = client.post("/api/loan-requests", json={"amount_requested": 6000, "repayment_period": 12})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["employee_id"], 4)
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["current_approver_role"], "manager")
        self.assertEqual(body["monthly_deduction"], 500.0)
        self.assertEqual(fake_db.audit_actions(), ["LOAN_REQUEST_SUBMITTED"])


class LeaveEndpointTests(_EndpointTestCase):
    def test_calculate_days_requires_both_dates(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/leave/calculate-days", json={"start_date": "2024-06-02"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["message"], "start_date and end_date are required")

    def test_calculate_days(self) -> None:
        client = self._as(STAFF_USER, _FakeDB(scalars_rows=[]))
        response = client.post(
            "/api/leave/calculate-days",
            json={"start_date": "2024-06-02", "end_date": "2024-06-08"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["working_days"], 5)
        self.assertEqual(body["weekend_days"], 2)
        self.assertEqual(body["leave_days_to_deduct"], 5)

    def test_calculate_days_end_before_start(self) -> None:
        client = self._as(STAFF_USER, _FakeDB(scalars_rows=[]))
        response = client.post(
            "/api/leave/calculate-days",
            json={"start_date": "2024-06-08", "end_date": "2024-06-02"},
        )
        self.assertEqual(response.status_code, 400)

    def test_accrual_requires_admin(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/leave/accrual/process", json={"accrual_period": "2024-03"})
        self.assertEqual(response.status_code, 403)

    def test_accrual_duplicate_guard_details(self) -> None:
        client = self._as(ADMIN_USER)
        error = ApiError(
            status_code=400,
            code="ACCRUAL_ALREADY_PROCESSED",
            message="Accrual already processed for 2024-03. Use force_reprocess=true to reprocess.",
            details={"existing_count": 4, "period": "2024-03"},
        )

        with patch("hrms.routers.leave.process_monthly_accrual", side_effect=error):
            response = client.post("/api/leave/accrual/process", json={"accrual_period": "2024-03"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["error"]["details"],
            {"existing_count": 4, "period": "2024-03"},
        )

    def test_staff_without_employee_record_sees_no_balances(self) -> None:
        client = self._as(STAFF_USER)
        with patch("hrms.routers.leave.find_employee_by_email", return_value=None):
            response = client.get("/api/leave/balances")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_staff_cannot_read_other_balances(self) -> None:
        client = self._as(STAFF_USER)
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        with patch("hrms.routers.leave.find_employee_by_email", return_value=own):
            response = client.get("/api/leave/balances", params={"employee_id": 9})

        self.assertEqual(response.status_code, 403)

    def test_staff_reads_own_balances(self) -> None:
        balance = LeaveBalance(
            id=2,
            employee_id=4,
            leave_type=LeaveType.ANNUAL,
            year=2024,
            total_entitled=7.0,
            used=2.0,
            pending=0.0,
            remaining=5.0,
            carried_forward=0.0,
        )
        client = self._as(STAFF_USER, _FakeDB(scalars_rows=[balance]))
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        with patch("hrms.routers.leave.find_employee_by_email", return_value=own):
            response = client.get("/api/leave/balances")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["remaining"], 5.0)


class OnboardingEndpointTests(_EndpointTestCase):
    def test_complete_task_response(self) -> None:
        task = OnboardingTask(
            id=8,
            checklist_id=2,
            employee_id=4,
            task_title="Sign Employment Contract",
            task_description=None,
            task_type="document_submission",
            assigned_to=OnboardingAssignee.NEW_HIRE,
            priority="critical",
            day_number=1,
            due_date=date(2024, 5, 2),
            status=OnboardingTaskStatus.COMPLETED,
            requires_document=False,
            requires_signature=True,
            order=3,
            completed_date=date(2024, 5, 2),
            completed_by="staff@company.sa",
        )
        progress = {"completion_percentage": 30, "total_tasks": 10, "completed_tasks": 3, "remaining_tasks": 7}
        fake_db = _FakeDB()
        client = self._as(STAFF_USER, fake_db)

        with patch("hrms.routers.onboarding.complete_task", return_value=(task, progress)):
            response = client.post("/api/onboarding/tasks/8/complete", json={"signature_data": "data:image/png;base64,AAA"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["completion_percentage"], 30)
        self.assertEqual(body["task"]["status"], "completed")
        self.assertEqual(fake_db.audit_actions(), ["ONBOARDING_TASK_COMPLETED"])

    def test_assign_requires_admin(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/onboarding/assign", json={"employee_id": 4})
        self.assertEqual(response.status_code, 403)


class GovernmentEndpointTests(_EndpointTestCase):
    def test_unconfigured_qiwa_is_500(self) -> None:
        client = self._as(ADMIN_USER)
        with patch("hrms.services.qiwa.is_qiwa_configured", return_value=False):
            response = client.post("/api/government/qiwa", json={"action": "bulk_sync"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"]["code"], "CONFIG_ERROR")

    def test_validate_is_not_audited(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        with patch(
            "hrms.routers.government.run_sinad_action",
            return_value={"success": True, "valid": True, "errors": [], "total_employees": 0},
        ):
            response = client.post(
                "/api/government/sinad",
                json={"action": "validate_before_submit", "submission_month": "2024-04"},
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(fake_db.audit_actions(), [])

    def test_generate_is_audited(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        with patch(
            "hrms.routers.government.run_sinad_action",
            return_value={"success": True, "sinad_record_id": 5},
        ):
            response = client.post(
                "/api/government/sinad",
                json={"action": "generate_wage_file", "submission_month": "2024-04"},
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(fake_db.audit_actions(), ["SINAD_GENERATE_WAGE_FILE"])
        audit = next(row for row in fake_db.rows if isinstance(row, AuditLog))
        self.assertEqual(audit.entity_id, "5")


class EmployeeEndpointTests(_EndpointTestCase):
    def test_create_employee(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)

        response = client.post(
            "/api/employees",
            json={
                "employee_number": "E-100",
                "first_name": "Layla",
                "last_name": "Qahtani",
                "email": "Layla@Company.sa",
                "nationality": "Saudi",
                "hire_date": "2024-05-01",
                "basic_salary": 9000,
            },
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["full_name"], "Layla Qahtani")
        self.assertEqual(body["email"], "layla@company.sa")
        self.assertEqual(body["status"], "active")
        self.assertEqual(body["employment_type"], "full_time")
        self.assertEqual(fake_db.audit_actions(), ["EMPLOYEE_CREATED"])

    def test_unknown_manager_is_404(self) -> None:
        client = self._as(ADMIN_USER)
        response = client.post("/api/employees", json={"first_name": "Layla", "manager_id": 99})
        self.assertEqual(response.status_code, 404)

    def test_update_employee_cannot_self_manage(self) -> None:
        employee = Employee(
            id=4,
            first_name="Staff",
            last_name="Member",
            status=EmployeeStatus.ACTIVE,
            employment_type=EmploymentType.FULL_TIME,
            basic_salary=5000.0,
            housing_allowance=0.0,
            transport_allowance=0.0,
        )
        client = self._as(ADMIN_USER, _FakeDB(employee))

        response = client.patch("/api/employees/4", json={"manager_id": 4})
        self.assertEqual(response.status_code, 400)

    def test_update_employee_changes_fields(self) -> None:
        employee = Employee(
            id=4,
            first_name="Staff",
            last_name="Member",
            status=EmployeeStatus.ACTIVE,
            employment_type=EmploymentType.FULL_TIME,
            basic_salary=5000.0,
            housing_allowance=0.0,
            transport_allowance=0.0,
        )
        fake_db = _FakeDB(employee)
        client = self._as(ADMIN_USER, fake_db)

        response = client.patch("/api/employees/4", json={"basic_salary": 6500, "department": "Finance"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["basic_salary"], 6500.0)
        self.assertEqual(employee.department, "Finance")
        audit = next(row for row in fake_db.rows if isinstance(row, AuditLog))
        self.assertEqual(audit.details, {"fields": ["basic_salary", "department"]})

    def test_get_missing_employee_is_404(self) -> None:
        client = self._as(STAFF_USER)
        response = client.get("/api/employees/404")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")


class AttendanceEndpointTests(_EndpointTestCase):
    def _open_day(self) -> Attendance:
        return Attendance(
            id=12,
            employee_id=4,
            date=date(2025, 3, 2),
            status=AttendanceStatus.LATE,
            clock_in=time(9, 0),
            overtime_hours=0.0,
        )

    def test_punch_without_employee_record_is_404(self) -> None:
        client = self._as(STAFF_USER)
        with patch("hrms.routers.attendance.find_employee_by_email", return_value=None):
            response = client.post("/api/attendance/punch", json={"punch_type": "clock_in"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["message"], "Employee record not found")

    def test_unknown_punch_type_is_422(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/attendance/punch", json={"punch_type": "lunch"})
        self.assertEqual(response.status_code, 422)

    def test_punch_records_and_audits(self) -> None:
        fake_db = _FakeDB()
        client = self._as(STAFF_USER, fake_db)
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        with (
            patch("hrms.routers.attendance.find_employee_by_email", return_value=own),
            patch("hrms.routers.attendance.record_punch", return_value=self._open_day()) as punch,
        ):
            response = client.post("/api/attendance/punch", json={"punch_type": "clock_in"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(punch.call_args.kwargs["employee"], own)
        self.assertEqual(punch.call_args.kwargs["punch_type"], "clock_in")
        body = response.json()
        self.assertEqual(body["status"], "late")
        self.assertEqual(body["clock_in"], "09:00:00")
        self.assertIsNone(body["clock_out"])
        self.assertEqual(fake_db.audit_actions(), ["ATTENDANCE_PUNCH"])

    def test_double_clock_in_is_enveloped(self) -> None:
        client = self._as(STAFF_USER)
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        error = ApiError(400, "INVALID_TRANSITION", "Already clocked in. Clock out first.")
        with (
            patch("hrms.routers.attendance.find_employee_by_email", return_value=own),
            patch("hrms.routers.attendance.record_punch", side_effect=error),
        ):
            response = client.post("/api/attendance/punch", json={"punch_type": "clock_in"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TRANSITION")

    def test_manual_record_requires_admin(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post(
            "/api/attendance",
            json={"employee_id": 4, "date": "2025-03-02", "status": "absent"},
        )
        self.assertEqual(response.status_code, 403)

    def test_manual_record_is_audited(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        with patch("hrms.routers.attendance.record_attendance", return_value=(self._open_day(), True)) as recorder:
            response = client.post(
                "/api/attendance",
                json={"employee_id": 4, "date": "2025-03-02", "status": "late", "clock_in": "09:00"},
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(recorder.call_args.kwargs["day"], date(2025, 3, 2))
        self.assertEqual(recorder.call_args.kwargs["status"], AttendanceStatus.LATE)
        self.assertEqual(recorder.call_args.kwargs["clock_in"], time(9, 0))
        self.assertEqual(fake_db.audit_actions(), ["ATTENDANCE_RECORDED"])

    def test_staff_cannot_list_other_attendance(self) -> None:
        client = self._as(STAFF_USER)
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        with patch("hrms.routers.attendance.find_employee_by_email", return_value=own):
            response = client.get("/api/attendance", params={"employee_id": 9})

        self.assertEqual(response.status_code, 403)

    def test_staff_lists_own_month(self) -> None:
        client = self._as(STAFF_USER, _FakeDB(scalars_rows=[self._open_day()]))
        own = Employee(id=4, first_name="Staff", email="staff@company.sa")
        with patch("hrms.routers.attendance.find_employee_by_email", return_value=own):
            response = client.get("/api/attendance", params={"month": "2025-03"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.json()], [12])


class HolidayEndpointTests(_EndpointTestCase):
    def test_initialize_requires_admin(self) -> None:
        client = self._as(STAFF_USER)
        response = client.post("/api/leave/holidays/initialize", json={"year": 2025})
        self.assertEqual(response.status_code, 403)

    def test_initialize_returns_created_days(self) -> None:
        fake_db = _FakeDB()
        client = self._as(ADMIN_USER, fake_db)
        created = [
            PublicHoliday(
                id=5,
                date=date(2025, 2, 22),
                year=2025,
                holiday_name="Saudi Foundation Day",
                holiday_name_ar="يوم التأسيس السعودي",
                holiday_type="national",
                is_active=True,
            )
        ]
        result = HolidayInitResult(year=2025, created=created, replaced_count=0, islamic_included=True)
        with patch("hrms.routers.leave.initialize_public_holidays", return_value=result) as initializer:
            response = client.post("/api/leave/holidays/initialize", json={"year": 2025, "force_recreate": True})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(initializer.call_args.kwargs, {"year": 2025, "force_recreate": True})
        body = response.json()
        self.assertEqual(body["created_count"], 1)
        self.assertTrue(body["islamic_included"])
        self.assertEqual(body["holidays"][0]["date"], "2025-02-22")
        self.assertEqual(fake_db.audit_actions(), ["HOLIDAYS_INITIALIZED"])

    def test_already_seeded_year_is_400(self) -> None:
        client = self._as(ADMIN_USER)
        error = ApiError(400, "HOLIDAYS_ALREADY_EXIST", "Holidays for 2025 already exist", details={"existing_count": 11})
        with patch("hrms.routers.leave.initialize_public_holidays", side_effect=error):
            response = client.post("/api/leave/holidays/initialize", json={"year": 2025})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"], {"existing_count": 11})

    def test_out_of_range_year_is_422(self) -> None:
        client = self._as(ADMIN_USER)
        response = client.post("/api/leave/holidays/initialize", json={"year": 1990})
        self.assertEqual(response.status_code, 422)


class HealthEndpointTests(unittest.TestCase):
    def test_health_reports_schema_guard_and_channels(self) -> None:
        client = TestClient(app)
        response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("ok", body["schema_guard"])
        self.assertIn("email", body["notification_channels"])


if __name__ == "__main__":
    unittest.main()
