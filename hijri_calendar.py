"""Hijri calendar conversion and month-grid generation.

Conversion is delegated to :mod:`hijridate` (Umm al-Qura tables, a fixed
non-observational calendar). A user-selected day offset of -1, 0 or +1 shifts
every conversion to follow local moon-sighting announcements.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Tuple

from hijridate import Gregorian, Hijri

from errors import ConversionError
from islamic_events import IslamicEvent, event_for

LOGGER = logging.getLogger(__name__)

GRID_SIZE = 42

HIJRI_MONTHS_EN = [
    "Muharram",
    "Safar",
    "Rabi' al-Awwal",
    "Rabi' al-Thani",
    "Jumada al-Ula",
    "Jumada al-Akhirah",
    "Rajab",
    "Sha'ban",
    "Ramadan",
    "Shawwal",
    "Dhu al-Qi'dah",
    "Dhu al-Hijjah",
]

HIJRI_MONTHS_AR = [
    "محرم",
    "صفر",
    "ربيع الأول",
    "ربيع الآخر",
    "جمادى الأولى",
    "جمادى الآخرة",
    "رجب",
    "شعبان",
    "رمضان",
    "شوال",
    "ذو القعدة",
    "ذو الحجة",
]

# Sunday first, matching the grid columns.
HIJRI_DAYS_AR = [
    "الأحد",
    "الإثنين",
    "الثلاثاء",
    "الأربعاء",
    "الخميس",
    "الجمعة",
    "السبت",
]


@dataclass(frozen=True)
class HijriDate:
    day: int
    month: int
    year: int
    weekday: int  # 0 = Sunday

    @property
    def month_name_en(self) -> str:
        return HIJRI_MONTHS_EN[self.month - 1]

    @property
    def month_name_ar(self) -> str:
        return HIJRI_MONTHS_AR[self.month - 1]

    @property
    def day_name_ar(self) -> str:
        return HIJRI_DAYS_AR[self.weekday]


@dataclass(frozen=True)
class HijriDayCell:
    """One square of the calendar grid."""

    hijri_day: int
    hijri_month: int
    hijri_year: int
    gregorian_date: date
    hijri_reference_date: date
    is_current_month: bool
    is_today: bool
    event: Optional[IslamicEvent] = None


def sunday_weekday(day: date) -> int:
    """Weekday index with Sunday as 0."""
    return (day.weekday() + 1) % 7


def _convert(day: date) -> Hijri:
    try:
        return Gregorian.fromdate(day).to_hijri()
    except OverflowError as exc:
        raise ConversionError(f"Date {day.isoformat()} is outside the supported Hijri range") from exc


def _first_day_gregorian(year: int, month: int) -> date:
    try:
        first = Hijri(year, month, 1).to_gregorian()
    except (OverflowError, ValueError) as exc:
        raise ConversionError(f"Hijri month {year}-{month:02d} is outside the supported range") from exc
    return date(first.year, first.month, first.day)


def to_hijri(gregorian_date: date, offset_days: int = 0) -> HijriDate:
    """Convert *gregorian_date* after shifting it by *offset_days*."""
    adjusted = gregorian_date + timedelta(days=offset_days)
    hijri = _convert(adjusted)
    return HijriDate(day=hijri.day, month=hijri.month, year=hijri.year, weekday=sunday_weekday(adjusted))


def days_in_month(year: int, month: int) -> int:
    try:
        return Hijri(year, month, 1).month_length()
    except (OverflowError, ValueError) as exc:
        raise ConversionError(f"Hijri month {year}-{month:02d} is outside the supported range") from exc


def current_month_year(offset_days: int = 0, today: Optional[date] = None) -> Tuple[int, int]:
    """Return the (year, month) the calendar should open on."""
    current = to_hijri(today or date.today(), offset_days)
    return current.year, current.month


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def is_today(cell: HijriDayCell, offset_days: int = 0, today: Optional[date] = None) -> bool:
    """True when the cell matches today as seen through the user's offset."""
    shifted_today = (today or date.today()) + timedelta(days=offset_days)
    return cell.hijri_reference_date == shifted_today


def _build_cell(civil_date: date, offset_days: int, is_current_month: bool, today: date) -> HijriDayCell:
    reference = civil_date + timedelta(days=offset_days)
    hijri = _convert(reference)
    return HijriDayCell(
        hijri_day=hijri.day,
        hijri_month=hijri.month,
        hijri_year=hijri.year,
        gregorian_date=civil_date,
        hijri_reference_date=reference,
        is_current_month=is_current_month,
        is_today=reference == today + timedelta(days=offset_days),
        event=event_for(hijri.day, hijri.month),
    )


def month_grid(
    hijri_year: int,
    hijri_month: int,
    offset_days: int = 0,
    today: Optional[date] = None,
) -> Tuple[HijriDayCell, ...]:
    """Build the 6x7 grid for a Hijri month, weeks starting on Sunday."""
    today = today or date.today()
    first_civil = _first_day_gregorian(hijri_year, hijri_month) - timedelta(days=offset_days)
    length = days_in_month(hijri_year, hijri_month)
    leading = sunday_weekday(first_civil)
    LOGGER.debug(
        "Building grid for %d-%02d (offset=%d): starts %s, %d days, %d leading cells",
        hijri_year,
        hijri_month,
        offset_days,
        first_civil,
        length,
        leading,
    )

    cells = []
    for index in range(GRID_SIZE):
        position = index - leading
        civil = first_civil + timedelta(days=position)
        in_month = 0 <= position < length
        cells.append(_build_cell(civil, offset_days, in_month, today))
    return tuple(cells)


def format_hijri_date(hijri_date: HijriDate, language: str = "en") -> str:
    if language.startswith("ar"):
        return f"{hijri_date.day} {hijri_date.month_name_ar} {hijri_date.year} هـ"
    return f"{hijri_date.day} {hijri_date.month_name_en} {hijri_date.year} AH"
