from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms.errors import ApiError
from hrms.models import PublicHoliday

logger = logging.getLogger("hrms.holidays")

# (month, day, name, arabic name)
NATIONAL_HOLIDAYS: tuple[tuple[int, int, str, str], ...] = (
    (2, 22, "Saudi Foundation Day", "يوم التأسيس السعودي"),
    (9, 23, "Saudi National Day", "اليوم الوطني السعودي"),
)

# Hijri dates shift every Gregorian year; only announced years are listed.
ISLAMIC_HOLIDAYS: dict[int, tuple[tuple[date, str, str], ...]] = {
    2025: (
        (date(2025, 3, 30), "Eid Al-Fitr Day 1", "عيد الفطر - اليوم الأول"),
        (date(2025, 3, 31), "Eid Al-Fitr Day 2", "عيد الفطر - اليوم الثاني"),
        (date(2025, 4, 1), "Eid Al-Fitr Day 3", "عيد الفطر - اليوم الثالث"),
        (date(2025, 4, 2), "Eid Al-Fitr Day 4", "عيد الفطر - اليوم الرابع"),
        (date(2025, 6, 5), "Arafat Day", "يوم عرفة"),
        (date(2025, 6, 6), "Eid Al-Adha Day 1", "عيد الأضحى - اليوم الأول"),
        (date(2025, 6, 7), "Eid Al-Adha Day 2", "عيد الأضحى - اليوم الثاني"),
        (date(2025, 6, 8), "Eid Al-Adha Day 3", "عيد الأضحى - اليوم الثالث"),
        (date(2025, 6, 9), "Eid Al-Adha Day 4", "عيد الأضحى - اليوم الرابع"),
    ),
}


@dataclass(slots=True)
class HolidayInitResult:
    year: int
    created: list[PublicHoliday] = field(default_factory=list)
    replaced_count: int = 0
    islamic_included: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "created_count": len(self.created),
            "replaced_count": self.replaced_count,
            "islamic_included": self.islamic_included,
            "holidays": self.created,
        }


def holidays_for_year(year: int) -> list[PublicHoliday]:
    rows = [
        PublicHoliday(
            date=date(year, month, day),
            year=year,
            holiday_name=name,
            holiday_name_ar=name_ar,
            holiday_type="national",
            is_active=True,
        )
        for month, day, name, name_ar in NATIONAL_HOLIDAYS
    ]
    for day, name, name_ar in ISLAMIC_HOLIDAYS.get(year, ()):
        rows.append(
            PublicHoliday(
                date=day,
                year=year,
                holiday_name=name,
                holiday_name_ar=name_ar,
                holiday_type="islamic",
                is_active=True,
            )
        )
    rows.sort(key=lambda row: row.date)
    return rows


def _load_holidays_for_year(db: Session, year: int) -> list[PublicHoliday]:
    return list(db.scalars(select(PublicHoliday).where(PublicHoliday.year == year)).all())


def initialize_public_holidays(
    db: Session,
    *,
    year: int | None = None,
    force_recreate: bool = False,
    today: date | None = None,
) -> HolidayInitResult:
    """Seed the public holiday calendar for ``year`` (defaults to the current year).

    Refuses to touch a year that is already seeded unless ``force_recreate``
    is set, in which case the existing rows are replaced.
    """
    target_year = year or (today or date.today()).year
    existing = _load_holidays_for_year(db, target_year)
    if existing and not force_recreate:
        raise ApiError(
            400,
            "HOLIDAYS_ALREADY_EXIST",
            f"Holidays for {target_year} already exist",
            details={"existing_count": len(existing)},
        )

    for row in existing:
        db.delete(row)

    result = HolidayInitResult(
        year=target_year,
        replaced_count=len(existing),
        islamic_included=target_year in ISLAMIC_HOLIDAYS,
    )
    for row in holidays_for_year(target_year):
        db.add(row)
        result.created.append(row)
    db.commit()
    for row in result.created:
        db.refresh(row)

    if not result.islamic_included:
        logger.warning("islamic_holidays_not_configured", extra={"year": target_year})
    logger.info(
        "public_holidays_initialized",
        extra={
            "year": target_year,
            "created_count": len(result.created),
            "replaced_count": result.replaced_count,
        },
    )
    return result


def list_public_holidays(db: Session, *, year: int) -> list[PublicHoliday]:
    return sorted(_load_holidays_for_year(db, year), key=lambda row: row.date)
