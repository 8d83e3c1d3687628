from __future__ import annotations

import unittest
from datetime import date
from unittest.mock import patch

from hrms.errors import ApiError
from hrms.models import (
    Employee,
    EmployeeStatus,
    EmploymentType,
    LeaveAccrual,
    LeaveAccrualPolicy,
    LeaveBalance,
    LeaveType,
)
from hrms.services.leave_accrual import (
    employment_months_at,
    initialize_default_policies,
    process_monthly_accrual,
    proration_factor,
)


class _FakeAccrualDB:
    def __init__(self) -> None:
        self.added: list[object] = []
        self.commits = 0
        self.rollbacks = 0

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def add_all(self, items: list[object]) -> None:
        self.added.extend(items)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = len(self.added)  # type: ignore[attr-defined]


def _employee(employee_id: int, hire_date: date | None, employment_type: EmploymentType = EmploymentType.FULL_TIME) -> Employee:
    return Employee(
        id=employee_id,
        first_name=f"Employee{employee_id}",
        last_name="Test",
        status=EmployeeStatus.ACTIVE,
        employment_type=employment_type,
        hire_date=hire_date,
    )


def _annual_policy() -> LeaveAccrualPolicy:
    return LeaveAccrualPolicy(
        id=1,
        policy_name="Annual Leave - Full Time",
        leave_type=LeaveType.ANNUAL,
        monthly_accrual_rate=1.75,
        probation_period_months=3,
        accrue_during_probation=False,
        prorate_for_new_hires=True,
        employment_types=["full_time"],
        is_active=True,
    )


def _sick_policy() -> LeaveAccrualPolicy:
    return LeaveAccrualPolicy(
        id=2,
        policy_name="Sick Leave - All Employees",
        leave_type=LeaveType.SICK,
        monthly_accrual_rate=2.5,
        probation_period_months=0,
        accrue_during_probation=True,
        prorate_for_new_hires=True,
        employment_types=["full_time", "part_time", "contract", "temporary"],
        is_active=True,
    )


class AccrualHelperTests(unittest.TestCase):
    def test_employment_months_floor(self) -> None:
        self.assertEqual(employment_months_at(None, date(2024, 3, 31)), 0)
        self.assertEqual(employment_months_at(date(2024, 3, 16), date(2024, 3, 31)), 0)
        self.assertEqual(employment_months_at(date(2020, 1, 1), date(2024, 3, 31)), 50)

    def test_proration_only_for_hires_inside_period(self) -> None:
        start, end = date(2024, 3, 1), date(2024, 3, 31)
        self.assertIsNone(proration_factor(date(2024, 2, 20), start, end))
        self.assertIsNone(proration_factor(None, start, end))
        self.assertAlmostEqual(proration_factor(date(2024, 3, 16), start, end), 16 / 31)
        self.assertEqual(proration_factor(date(2024, 3, 1), start, end), 1.0)


class ProcessMonthlyAccrualTests(unittest.TestCase):
    def _run(
        self,
        fake_db: _FakeAccrualDB,
        *,
        employees: list[Employee],
        policies: list[LeaveAccrualPolicy],
        existing_count: int = 0,
        balance: LeaveBalance | None = None,
        force_reprocess: bool = False,
    ):  # type: ignore[no-untyped-def]
        with (
            patch("hrms.services.leave_accrual._load_active_employees", return_value=employees),
            patch("hrms.services.leave_accrual._load_active_policies", return_value=policies),
            patch("hrms.services.leave_accrual._count_existing_accruals", return_value=existing_count),
            patch("hrms.services.leave_accrual._find_balance", return_value=balance),
        ):
            return process_monthly_accrual(
                fake_db,  # type: ignore[arg-type]
                accrual_period="2024-03",
                force_reprocess=force_reprocess,
                processed_by="hr.admin@company.sa",
            )

    def test_tenured_employee_gets_full_monthly_rate(self) -> None:
        fake_db = _FakeAccrualDB()

        result = self._run(fake_db, employees=[_employee(1, date(2020, 1, 1))], policies=[_annual_policy()])

        self.assertEqual(result.processed, 1)
        self.assertEqual(result.skipped, 0)
        self.assertEqual(result.total_days_accrued, 1.75)
        balances = [item for item in fake_db.added if isinstance(item, LeaveBalance)]
        accruals = [item for item in fake_db.added if isinstance(item, LeaveAccrual)]
        self.assertEqual(len(balances), 1)
        self.assertEqual(balances[0].year, 2024)
        self.assertEqual(balances[0].total_entitled, 1.75)
        self.assertEqual(balances[0].remaining, 1.75)
        self.assertEqual(accruals[0].accrual_date, date(2024, 3, 31))
        self.assertEqual(accruals[0].employment_months, 50)
        self.assertFalse(accruals[0].is_prorated)
        self.assertEqual(accruals[0].balance_before, 0.0)
        self.assertEqual(accruals[0].balance_after, 1.75)

    def test_existing_balance_is_increased(self) -> None:
        balance = LeaveBalance(
            id=7, employee_id=1, leave_type=LeaveType.ANNUAL, year=2024, total_entitled=5.25, used=2.25, remaining=3.0
        )
        fake_db = _FakeAccrualDB()

        self._run(fake_db, employees=[_employee(1, date(2020, 1, 1))], policies=[_annual_policy()], balance=balance)

        self.assertEqual(balance.total_entitled, 7.0)
        self.assertEqual(balance.remaining, 4.75)
        accrual = next(item for item in fake_db.added if isinstance(item, LeaveAccrual))
        self.assertEqual(accrual.balance_before, 5.25)
        self.assertEqual(accrual.balance_after, 7.0)

    def test_mid_month_hire_is_prorated_and_probation_skipped(self) -> None:
        fake_db = _FakeAccrualDB()

        result = self._run(
            fake_db,
            employees=[_employee(2, date(2024, 3, 16))],
            policies=[_annual_policy(), _sick_policy()],
        )

        detail = result.details[0]
        self.assertEqual(detail["accruals"][0], {"leave_type": "annual", "status": "skipped", "reason": "in probation"})
        self.assertEqual(detail["accruals"][1]["leave_type"], "sick")
        self.assertTrue(detail["accruals"][1]["is_prorated"])
        self.assertEqual(detail["accruals"][1]["days_accrued"], 1.29)
        self.assertEqual(result.processed, 1)

    def test_hire_after_period_is_skipped(self) -> None:
        fake_db = _FakeAccrualDB()

        result = self._run(fake_db, employees=[_employee(3, date(2024, 4, 10))], policies=[_sick_policy()])

        self.assertEqual(result.processed, 0)
        self.assertEqual(result.skipped, 1)
        self.assertEqual(fake_db.added, [])

    def test_policy_filtered_by_employment_type(self) -> None:
        fake_db = _FakeAccrualDB()

        result = self._run(
            fake_db,
            employees=[_employee(4, date(2020, 1, 1), EmploymentType.CONTRACT)],
            policies=[_annual_policy()],
        )

        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.details[0]["accruals"], [])

    def test_already_processed_period_is_refused(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self._run(
                _FakeAccrualDB(),
                employees=[_employee(1, date(2020, 1, 1))],
                policies=[_annual_policy()],
                existing_count=4,
            )

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "ACCRUAL_ALREADY_PROCESSED")
        self.assertEqual(ctx.exception.details, {"existing_count": 4, "period": "2024-03"})

    def test_force_reprocess_skips_duplicate_guard(self) -> None:
        result = self._run(
            _FakeAccrualDB(),
            employees=[_employee(1, date(2020, 1, 1))],
            policies=[_annual_policy()],
            existing_count=4,
            force_reprocess=True,
        )
        self.assertEqual(result.processed, 1)

    def test_missing_policies_is_400(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self._run(_FakeAccrualDB(), employees=[_employee(1, date(2020, 1, 1))], policies=[])
        self.assertEqual(ctx.exception.status_code, 400)

    def test_no_employees_returns_message(self) -> None:
        result = self._run(_FakeAccrualDB(), employees=[], policies=[])
        self.assertEqual(result.processed, 0)
        self.assertEqual(result.message, "No active employees to process")

    def test_invalid_period_is_400(self) -> None:
        with self.assertRaises(ApiError):
            process_monthly_accrual(_FakeAccrualDB(), accrual_period="2024-3", processed_by="x")  # type: ignore[arg-type]


class InitializeDefaultPoliciesTests(unittest.TestCase):
    def test_seeds_defaults_once(self) -> None:
        fake_db = _FakeAccrualDB()
        with patch("hrms.services.leave_accrual._list_policies", return_value=[]):
            created, policies = initialize_default_policies(fake_db, today=date(2024, 1, 1))  # type: ignore[arg-type]

        self.assertTrue(created)
        self.assertEqual(len(policies), 4)
        self.assertEqual(fake_db.commits, 1)
        by_name = {policy.policy_name: policy for policy in policies}
        self.assertEqual(by_name["Annual Leave - Full Time"].monthly_accrual_rate, 1.75)
        self.assertEqual(by_name["Sick Leave - All Employees"].annual_entitlement, 30.0)
        self.assertFalse(by_name["Annual Leave - 5+ Years Service"].is_active)
        self.assertTrue(all(policy.effective_from == date(2024, 1, 1) for policy in policies))

    def test_existing_policies_are_left_untouched(self) -> None:
        existing = [_annual_policy()]
        fake_db = _FakeAccrualDB()
        with patch("hrms.services.leave_accrual._list_policies", return_value=existing):
            created, policies = initialize_default_policies(fake_db)  # type: ignore[arg-type]

        self.assertFalse(created)
        self.assertEqual(policies, existing)
        self.assertEqual(fake_db.added, [])


if __name__ == "__main__":
    unittest.main()
