"""Daily prayer timings and the AlAdhan source that provides them."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional

import pytz
import requests

from errors import InputError
from geo_bearing import Coordinate

LOGGER = logging.getLogger(__name__)

ALADHAN_TIMINGS_URL = "https://api.aladhan.com/v1/timings"


class PrayerName(str, Enum):
    FAJR = "Fajr"
    DHUHR = "Dhuhr"
    ASR = "Asr"
    MAGHRIB = "Maghrib"
    ISHA = "Isha"


PRAYER_ORDER = [PrayerName.FAJR, PrayerName.DHUHR, PrayerName.ASR, PrayerName.MAGHRIB, PrayerName.ISHA]

PRAYER_NAMES_AR: Dict[PrayerName, str] = {
    PrayerName.FAJR: "الفجر",
    PrayerName.DHUHR: "الظهر",
    PrayerName.ASR: "العصر",
    PrayerName.MAGHRIB: "المغرب",
    PrayerName.ISHA: "العشاء",
}


@dataclass(frozen=True)
class DailyTimings:
    """One day's prayer times as "HH:MM" strings, exactly as the source reported them."""

    timings: Mapping[PrayerName, str]
    gregorian_date: date
    hijri_date: str = ""
    timezone: Optional[str] = None
    sunrise: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timings", MappingProxyType(dict(self.timings)))

    def time_string(self, prayer: PrayerName) -> Optional[str]:
        return self.timings.get(prayer)

    @classmethod
    def from_strings(cls, timings: Mapping[str, str], gregorian_date: date, **extra: object) -> "DailyTimings":
        """Build from a plain ``{"Fajr": "05:00", ...}`` mapping, ignoring unknown keys."""
        parsed = {}
        for prayer in PRAYER_ORDER:
            value = timings.get(prayer.value)
            if value is not None:
                parsed[prayer] = str(value)
        return cls(timings=parsed, gregorian_date=gregorian_date, **extra)  # type: ignore[arg-type]


def strip_timezone_annotation(time_str: str) -> str:
    """Drop a trailing annotation such as ``" (+02:00)"`` or ``" (EET)"``."""
    parts = str(time_str).strip().split()
    return parts[0] if parts else ""


def parse_prayer_time(time_str: str) -> time:
    """Parse ``"HH:MM"`` (optionally annotated) into a :class:`datetime.time`."""
    clean = strip_timezone_annotation(time_str)
    pieces = clean.split(":")
    if len(pieces) < 2:
        raise InputError(f"Invalid prayer time format: {time_str!r}")
    try:
        hour, minute = int(pieces[0]), int(pieces[1])
    except ValueError as exc:
        raise InputError(f"Invalid prayer time format: {time_str!r}") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InputError(f"Prayer time out of range: {time_str!r}")
    return time(hour=hour, minute=minute)


def combine_local(day: date, moment: time, tzinfo: Optional[object]) -> datetime:
    """Attach *moment* on *day* to *tzinfo*, localizing properly for pytz zones."""
    naive = datetime.combine(day, moment)
    if tzinfo is None:
        return naive
    if hasattr(tzinfo, "localize"):
        return tzinfo.localize(naive)  # type: ignore[union-attr]
    return naive.replace(tzinfo=tzinfo)  # type: ignore[arg-type]


def prayer_datetime(timings: DailyTimings, prayer: PrayerName, day: date, tzinfo: Optional[object]) -> Optional[datetime]:
    """Return the datetime of *prayer* on *day*, or ``None`` when its time cannot be parsed."""
    raw = timings.time_string(prayer)
    if raw is None:
        LOGGER.warning("No time reported for %s", prayer.value)
        return None
    try:
        moment = parse_prayer_time(raw)
    except InputError:
        LOGGER.warning("Skipping %s with malformed time %r", prayer.value, raw)
        return None
    return combine_local(day, moment, tzinfo)


class PrayerTimesService:
    """Fetches prayer times from the AlAdhan API."""

    def __init__(self, method: int = 3, school: int = 0, timeout: int = 10) -> None:
        self.method = method
        self.school = school
        self.timeout = timeout

    def fetch_daily_timings(self, coordinate: Coordinate, target_date: Optional[date] = None) -> DailyTimings:
        target_date = target_date or date.today()
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "method": self.method,
            "school": self.school,
            "date": target_date.strftime("%d-%m-%Y"),
        }
        LOGGER.debug("Requesting prayer times with params=%s", params)
        response = requests.get(ALADHAN_TIMINGS_URL, params=params, timeout=self.timeout)
        LOGGER.debug("Prayer times response status: %s", response.status_code)
        response.raise_for_status()

        payload = response.json()
        LOGGER.debug("Prayer times response keys: %s", list(payload.keys()))
        if payload.get("code") != 200:
            raise RuntimeError(f"Invalid response from AlAdhan API: {payload.get('status')}")

        data = payload.get("data", {})
        timings: Dict[str, str] = data.get("timings", {})
        hijri = data.get("date", {}).get("hijri", {})
        gregorian = data.get("date", {}).get("gregorian", {})

        hijri_day = hijri.get("day")
        hijri_month_en = (hijri.get("month", {}) or {}).get("en", "")
        hijri_year = hijri.get("year")
        hijri_date_text = hijri.get("date", "")
        if hijri_day and hijri_month_en and hijri_year:
            hijri_date_text = f"{hijri_day} {hijri_month_en} {hijri_year} AH"

        gregorian_date_str = gregorian.get("date")
        try:
            gregorian_date = datetime.strptime(gregorian_date_str, "%d-%m-%Y").date() if gregorian_date_str else target_date
        except (TypeError, ValueError):
            gregorian_date = target_date

        missing = [prayer.value for prayer in PRAYER_ORDER if prayer.value not in timings]
        if missing:
            LOGGER.warning("Prayer times response is missing %s", ", ".join(missing))

        return DailyTimings.from_strings(
            timings,
            gregorian_date,
            hijri_date=hijri_date_text,
            timezone=self._resolve_timezone(data),
            sunrise=timings.get("Sunrise"),
        )

    @staticmethod
    def _resolve_timezone(data: Dict[str, Dict]) -> str:
        timezone_name = (data.get("meta", {}) or {}).get("timezone")
        if not timezone_name:
            LOGGER.warning("Timezone missing from response; defaulting to UTC")
            return "UTC"
        try:
            pytz.timezone(timezone_name)
        except pytz.UnknownTimeZoneError:
            LOGGER.warning("Unknown timezone '%s'; falling back to UTC", timezone_name)
            return "UTC"
        return timezone_name


def next_refresh_time(reference: datetime) -> datetime:
    """Five minutes past the next local midnight, when tomorrow's timings should be fetched."""
    tzinfo = reference.tzinfo or pytz.UTC
    next_day = reference.date() + timedelta(days=1)
    return combine_local(next_day, time(hour=0, minute=5), tzinfo)
