from __future__ import annotations

import unittest
from datetime import date, datetime, time, timezone
from unittest.mock import patch

from hrms.errors import ApiError
from hrms.models import Attendance, AttendanceStatus, Employee
from hrms.services import attendance as attendance_service
from hrms.services.attendance import (
    classify_arrival,
    list_attendance,
    overtime_for,
    record_attendance,
    record_punch,
    worked_hours,
)
from hrms.settings import Settings


class _FakeDB:
    def __init__(self, *employees: Employee) -> None:
        self.employees = {employee.id: employee for employee in employees}
        self.rows: list[object] = []
        self.commits = 0

    def get(self, _model, pk):  # type: ignore[no-untyped-def]
        return self.employees.get(pk)

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = 1  # type: ignore[attr-defined]


def _employee() -> Employee:
    return Employee(id=4, first_name="Omar", email="omar@company.sa")


class _AttendanceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        settings = Settings(
            attendance_timezone="Asia/Riyadh",
            attendance_work_start="08:00",
            attendance_grace_minutes=15,
        )
        patcher = patch("hrms.services.attendance.get_settings", return_value=settings)
        patcher.start()
        self.addCleanup(patcher.stop)
        attendance_service._attendance_timezone.cache_clear()
        self.addCleanup(attendance_service._attendance_timezone.cache_clear)


class ArrivalAndHoursTests(_AttendanceTestCase):
    def test_grace_window_is_inclusive(self) -> None:
        self.assertEqual(classify_arrival(time(7, 45)), AttendanceStatus.PRESENT)
        self.assertEqual(classify_arrival(time(8, 15)), AttendanceStatus.PRESENT)
        self.assertEqual(classify_arrival(time(8, 16)), AttendanceStatus.LATE)

    def test_worked_hours_and_overtime(self) -> None:
        self.assertEqual(worked_hours(time(8, 10), time(18, 30)), 10.33)
        self.assertEqual(overtime_for(10.33), 2.33)
        self.assertEqual(overtime_for(7.5), 0.0)

    def test_night_shift_crossing_midnight(self) -> None:
        self.assertEqual(worked_hours(time(22, 0), time(6, 0)), 8.0)

    def test_invalid_work_start_falls_back_to_eight(self) -> None:
        broken = Settings(attendance_work_start="late morning", attendance_grace_minutes=0)
        with patch("hrms.services.attendance.get_settings", return_value=broken):
            self.assertEqual(classify_arrival(time(8, 0)), AttendanceStatus.PRESENT)
            self.assertEqual(classify_arrival(time(8, 1)), AttendanceStatus.LATE)


class RecordPunchTests(_AttendanceTestCase):
    def test_clock_in_opens_local_day(self) -> None:
        fake_db = _FakeDB()
        # 05:10 UTC is 08:10 in Riyadh.
        now = datetime(2025, 3, 2, 5, 10, 42, tzinfo=timezone.utc)

        with patch("hrms.services.attendance._find_attendance", return_value=None) as finder:
            record = record_punch(fake_db, employee=_employee(), punch_type="clock_in", now_utc=now)  # type: ignore[arg-type]

        self.assertEqual(finder.call_args.kwargs, {"employee_id": 4, "day": date(2025, 3, 2)})
        self.assertIs(fake_db.rows[0], record)
        self.assertEqual(record.date, date(2025, 3, 2))
        self.assertEqual(record.clock_in, time(8, 10))
        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(record.overtime_hours, 0.0)
        self.assertEqual(fake_db.commits, 1)

    def test_late_clock_in(self) -> None:
        now = datetime(2025, 3, 2, 6, 0, tzinfo=timezone.utc)
        with patch("hrms.services.attendance._find_attendance", return_value=None):
            record = record_punch(_FakeDB(), employee=_employee(), punch_type="clock_in", now_utc=now)  # type: ignore[arg-type]

        self.assertEqual(record.clock_in, time(9, 0))
        self.assertEqual(record.status, AttendanceStatus.LATE)

    def test_utc_evening_belongs_to_next_local_day(self) -> None:
        now = datetime(2025, 3, 2, 22, 30, tzinfo=timezone.utc)
        with patch("hrms.services.attendance._find_attendance", return_value=None):
            record = record_punch(_FakeDB(), employee=_employee(), punch_type="clock_in", now_utc=now)  # type: ignore[arg-type]

        self.assertEqual(record.date, date(2025, 3, 3))
        self.assertEqual(record.clock_in, time(1, 30))

    def test_clock_out_computes_hours_and_overtime(self) -> None:
        open_record = Attendance(
            id=9,
            employee_id=4,
            date=date(2025, 3, 2),
            status=AttendanceStatus.PRESENT,
            clock_in=time(8, 10),
            overtime_hours=0.0,
        )
        fake_db = _FakeDB()
        now = datetime(2025, 3, 2, 15, 30, tzinfo=timezone.utc)

        with patch("hrms.services.attendance._find_attendance", return_value=open_record):
            record = record_punch(
                fake_db,  # type: ignore[arg-type]
                employee=_employee(),
                punch_type="clock_out",
                notes="Month-end close",
                now_utc=now,
            )

        self.assertIs(record, open_record)
        self.assertEqual(fake_db.rows, [])
        self.assertEqual(record.clock_out, time(18, 30))
        self.assertEqual(record.actual_hours, 10.33)
        self.assertEqual(record.overtime_hours, 2.33)
        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(record.notes, "Month-end close")

    def test_second_clock_in_is_rejected(self) -> None:
        open_record = Attendance(id=9, employee_id=4, date=date(2025, 3, 2), clock_in=time(8, 0))
        with patch("hrms.services.attendance._find_attendance", return_value=open_record):
            with self.assertRaises(ApiError) as ctx:
                record_punch(_FakeDB(), employee=_employee(), punch_type="clock_in")  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "INVALID_TRANSITION")
        self.assertEqual(ctx.exception.message, "Already clocked in. Clock out first.")

    def test_clock_in_after_closed_day_is_rejected(self) -> None:
        closed = Attendance(id=9, employee_id=4, date=date(2025, 3, 2), clock_in=time(8, 0), clock_out=time(16, 0))
        with patch("hrms.services.attendance._find_attendance", return_value=closed):
            with self.assertRaises(ApiError) as ctx:
                record_punch(_FakeDB(), employee=_employee(), punch_type="clock_in")  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.message, "Attendance for today is already closed")

    def test_clock_out_without_clock_in_is_rejected(self) -> None:
        fake_db = _FakeDB()
        with patch("hrms.services.attendance._find_attendance", return_value=None):
            with self.assertRaises(ApiError) as ctx:
                record_punch(fake_db, employee=_employee(), punch_type="clock_out")  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, "Must clock in before clocking out.")
        self.assertEqual(fake_db.commits, 0)

    def test_unknown_punch_type(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            record_punch(_FakeDB(), employee=_employee(), punch_type="break_start")  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "INVALID_PUNCH_TYPE")


class RecordAttendanceTests(_AttendanceTestCase):
    def test_unknown_employee_is_404(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            record_attendance(_FakeDB(), employee_id=99, day=date(2025, 3, 2), status=AttendanceStatus.ABSENT)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.status_code, 404)

    def test_clock_out_without_clock_in_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            record_attendance(
                _FakeDB(_employee()),  # type: ignore[arg-type]
                employee_id=4,
                day=date(2025, 3, 2),
                status=AttendanceStatus.PRESENT,
                clock_out=time(17, 0),
            )

        self.assertEqual(ctx.exception.status_code, 400)

    def test_creates_row_with_derived_hours(self) -> None:
        fake_db = _FakeDB(_employee())
        with patch("hrms.services.attendance._find_attendance", return_value=None):
            record, created = record_attendance(
                fake_db,  # type: ignore[arg-type]
                employee_id=4,
                day=date(2025, 3, 2),
                status=AttendanceStatus.PRESENT,
                clock_in=time(8, 0),
                clock_out=time(19, 0),
            )

        self.assertTrue(created)
        self.assertIs(fake_db.rows[0], record)
        self.assertEqual(record.actual_hours, 11.0)
        self.assertEqual(record.overtime_hours, 3.0)

    def test_explicit_overtime_overwrites_existing_row(self) -> None:
        existing = Attendance(
            id=3,
            employee_id=4,
            date=date(2025, 3, 2),
            status=AttendanceStatus.PRESENT,
            clock_in=time(8, 0),
            clock_out=time(19, 0),
            actual_hours=11.0,
            overtime_hours=3.0,
        )
        fake_db = _FakeDB(_employee())
        with patch("hrms.services.attendance._find_attendance", return_value=existing):
            record, created = record_attendance(
                fake_db,  # type: ignore[arg-type]
                employee_id=4,
                day=date(2025, 3, 2),
                status=AttendanceStatus.ON_LEAVE,
                overtime_hours=1.5,
                notes="Annual leave approved late",
            )

        self.assertFalse(created)
        self.assertIs(record, existing)
        self.assertEqual(fake_db.rows, [])
        self.assertEqual(record.status, AttendanceStatus.ON_LEAVE)
        self.assertIsNone(record.clock_in)
        self.assertIsNone(record.actual_hours)
        self.assertEqual(record.overtime_hours, 1.5)

    def test_list_rejects_malformed_month(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            list_attendance(_FakeDB(), employee_id=4, month="03-2025")  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.status_code, 400)


if __name__ == "__main__":
    unittest.main()
