from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import bad_request
from hrms.models import PublicHoliday

# date.weekday(): Monday == 0, so Friday and Saturday are 4 and 5.
SAUDI_WEEKEND_DAYS = {4, 5}
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass
class LeaveDayBreakdown:
    start_date: date
    end_date: date
    working_days: int = 0
    weekend_days: int = 0
    holiday_days: int = 0
    days: list[dict[str, Any]] = field(default_factory=list)
    holidays: list[PublicHoliday] = field(default_factory=list)

    @property
    def total_days(self) -> int:
        return len(self.days)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "working_days": self.working_days,
            "weekend_days": self.weekend_days,
            "holiday_days": self.holiday_days,
            "leave_days_to_deduct": self.working_days,
            "overlapping_holidays": [
                {
                    "date": holiday.date.isoformat(),
                    "name": holiday.holiday_name,
                    "name_ar": holiday.holiday_name_ar,
                    "type": holiday.holiday_type,
                }
                for holiday in self.holidays
            ],
            "detailed_breakdown": self.days,
        }


def _load_active_holidays(db: Session, start_date: date, end_date: date) -> list[PublicHoliday]:
    stmt = (
        select(PublicHoliday)
        .where(
            PublicHoliday.is_active.is_(True),
            PublicHoliday.date >= start_date,
            PublicHoliday.date <= end_date,
        )
        .order_by(PublicHoliday.date.asc())
    )
    return list(db.scalars(stmt).all())


def count_leave_days(
    start_date: date,
    end_date: date,
    holidays: list[PublicHoliday],
) -> LeaveDayBreakdown:
    if end_date < start_date:
        raise bad_request("end_date must be after start_date")

    holidays_by_date = {holiday.date: holiday for holiday in holidays}
    breakdown = LeaveDayBreakdown(
        start_date=start_date,
        end_date=end_date,
        holidays=[item for item in holidays if start_date <= item.date <= end_date],
    )

    current = start_date
    while current <= end_date:
        holiday = holidays_by_date.get(current)
        if holiday is not None:
            day_type = "holiday"
            breakdown.holiday_days += 1
        elif current.weekday() in SAUDI_WEEKEND_DAYS:
            day_type = "weekend"
            breakdown.weekend_days += 1
        else:
            day_type = "working"
            breakdown.working_days += 1
        breakdown.days.append(
            {
                "date": current.isoformat(),
                "day_of_week": DAY_NAMES[current.weekday()],
                "type": day_type,
                "holiday_name": holiday.holiday_name if holiday is not None else None,
            }
        )
        current += timedelta(days=1)
    return breakdown


def calculate_leave_days(db: Session, *, start_date: date, end_date: date) -> LeaveDayBreakdown:
    """Working days in ``[start_date, end_date]`` excluding Fri/Sat and active public holidays."""
    return count_leave_days(start_date, end_date, _load_active_holidays(db, start_date, end_date))
