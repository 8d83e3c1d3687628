from __future__ import annotations

import unittest
from datetime import date

from hrms.services.payroll_calc import (
    PayrollInputs,
    calculate_gosi,
    calculate_payroll,
    is_saudi_national,
    month_bounds,
    parse_month,
    unpaid_leave_days_in_month,
)


class GosiTests(unittest.TestCase):
    def test_saudi_national_pays_employee_share(self) -> None:
        gosi = calculate_gosi(nationality="Saudi", calculation_base=10000)
        self.assertTrue(gosi.is_saudi)
        self.assertEqual(gosi.employee_contribution, 1000.0)
        self.assertEqual(gosi.employer_contribution, 1200.0)

    def test_non_saudi_only_employer_hazard_share(self) -> None:
        gosi = calculate_gosi(nationality="Egyptian", calculation_base=6000)
        self.assertFalse(gosi.is_saudi)
        self.assertEqual(gosi.employee_contribution, 0.0)
        self.assertEqual(gosi.employer_contribution, 120.0)

    def test_nationality_match_is_case_insensitive(self) -> None:
        self.assertTrue(is_saudi_national(" SAUDI ARABIA "))
        self.assertTrue(is_saudi_national("saudi"))
        self.assertFalse(is_saudi_national(None))
        self.assertFalse(is_saudi_national("Jordanian"))


class MonthParsingTests(unittest.TestCase):
    def test_month_bounds_cover_calendar_month(self) -> None:
        self.assertEqual(month_bounds("2024-02"), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds("2023-12"), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_malformed_months_are_rejected(self) -> None:
        for value in ("", "2024-13", "2024/01", "24-01", "2024-1"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_month(value)

    def test_unpaid_leave_counts_only_days_inside_month(self) -> None:
        leaves = [
            (date(2024, 1, 28), date(2024, 2, 3)),
            (date(2024, 2, 10), date(2024, 2, 12)),
            (date(2024, 3, 1), date(2024, 3, 5)),
        ]
        self.assertEqual(unpaid_leave_days_in_month(leaves, "2024-02"), 6)


class CalculatePayrollTests(unittest.TestCase):
    def test_full_attendance_saudi_employee(self) -> None:
        result = calculate_payroll(
            PayrollInputs(
                basic_salary=10000,
                housing_allowance=2500,
                transport_allowance=500,
                nationality="Saudi",
                present_days=30,
            )
        )

        self.assertEqual(result.gross_salary, 13000.0)
        self.assertEqual(result.gosi_employee, 1000.0)
        self.assertEqual(result.gosi_employer, 1200.0)
        self.assertEqual(result.absent_days, 0)
        self.assertEqual(result.absence_deduction, 0.0)
        self.assertEqual(result.total_deductions, 1000.0)
        self.assertEqual(result.net_salary, 12000.0)

    def test_overtime_and_absence_for_non_saudi(self) -> None:
        result = calculate_payroll(
            PayrollInputs(
                basic_salary=6000,
                nationality="Indian",
                present_days=28,
                overtime_hours=4,
            )
        )

        self.assertEqual(result.overtime_pay, 150.0)
        self.assertEqual(result.gross_salary, 6150.0)
        self.assertEqual(result.gosi_employee, 0.0)
        self.assertEqual(result.gosi_employer, 120.0)
        self.assertEqual(result.absent_days, 2)
        self.assertEqual(result.absence_deduction, 400.0)
        self.assertEqual(result.net_salary, 5750.0)

    def test_gosi_uses_salary_basis_when_present(self) -> None:
        result = calculate_payroll(
            PayrollInputs(
                basic_salary=10000,
                nationality="Saudi Arabia",
                gosi_salary_basis=8000,
                present_days=30,
            )
        )

        self.assertEqual(result.gosi_calculation_base, 8000.0)
        self.assertEqual(result.gosi_employee, 800.0)
        self.assertEqual(result.gosi_employer, 960.0)

    def test_unpaid_leave_is_deducted_at_daily_rate(self) -> None:
        result = calculate_payroll(
            PayrollInputs(basic_salary=3000, present_days=30, unpaid_leave_days=6)
        )

        self.assertEqual(result.unpaid_leave_deduction, 600.0)
        self.assertEqual(result.absence_deduction, 600.0)
        self.assertEqual(result.unpaid_leave_days, 6)

    def test_deductions_are_summed_and_net_is_consistent(self) -> None:
        result = calculate_payroll(
            PayrollInputs(
                basic_salary=10000,
                housing_allowance=2500,
                nationality="Saudi",
                present_days=29,
                loan_deduction=500,
                advance_deduction=250,
                other_deductions=100,
                benefit_contributions=75.5,
            )
        )

        self.assertEqual(result.absence_deduction, 333.33)
        self.assertEqual(result.other_deductions, 175.5)
        self.assertEqual(
            result.total_deductions,
            round(1000.0 + 500.0 + 250.0 + 333.33 + 175.5, 2),
        )
        self.assertEqual(result.net_salary, round(result.gross_salary - result.total_deductions, 2))


if __name__ == "__main__":
    unittest.main()
