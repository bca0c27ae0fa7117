"""Static catalog of notable days in the Hijri calendar."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple


class EventSeverity(str, Enum):
    MAJOR = "major"
    BLESSED = "blessed"
    SPECIAL = "special"


@dataclass(frozen=True)
class IslamicEvent:
    """A named occasion with its display colour and importance."""

    name_en: str
    name_ar: str
    color: str
    severity: EventSeverity


ASHURA = IslamicEvent("Day of Ashura", "يوم عاشوراء", "#9C27B0", EventSeverity.MAJOR)
RAMADAN_START = IslamicEvent("Start of Ramadan", "بداية رمضان", "#4CAF50", EventSeverity.MAJOR)
LAYLAT_AL_QADR = IslamicEvent("Laylat al-Qadr (possible)", "ليلة القدر (محتملة)", "#FFD700", EventSeverity.BLESSED)
LAST_TEN_NIGHTS = IslamicEvent("Last Ten Nights", "العشر الأواخر", "#FF9800", EventSeverity.BLESSED)
EID_AL_FITR = IslamicEvent("Eid al-Fitr", "عيد الفطر", "#4CAF50", EventSeverity.MAJOR)
ARAFAH = IslamicEvent("Day of Arafah", "يوم عرفة", "#E91E63", EventSeverity.MAJOR)
EID_AL_ADHA = IslamicEvent("Eid al-Adha", "عيد الأضحى", "#F44336", EventSeverity.MAJOR)
TASHREEQ = IslamicEvent("Days of Tashreeq", "أيام التشريق", "#FF5722", EventSeverity.SPECIAL)
FIRST_TEN_DAYS = IslamicEvent("First Ten Days", "العشر الأوائل", "#2196F3", EventSeverity.BLESSED)

SACRED_MONTHS: Dict[int, str] = {
    1: "Muharram - Sacred Month",
    7: "Rajab - Sacred Month",
    8: "Sha'ban - Month before Ramadan",
    9: "Ramadan - Month of Fasting",
    11: "Dhul-Qadah - Sacred Month",
    12: "Dhul-Hijjah - Month of Hajj",
}

_Rule = Tuple[int, Callable[[int], bool], IslamicEvent]

# Evaluated in order; single-day rules must stay ahead of the ranges they overlap.
EVENT_RULES: Tuple[_Rule, ...] = (
    (1, lambda day: day == 10, ASHURA),
    (9, lambda day: day == 1, RAMADAN_START),
    (9, lambda day: day in (21, 23, 25, 27, 29), LAYLAT_AL_QADR),
    (9, lambda day: day >= 21, LAST_TEN_NIGHTS),
    (10, lambda day: day == 1, EID_AL_FITR),
    (12, lambda day: day == 9, ARAFAH),
    (12, lambda day: day == 10, EID_AL_ADHA),
    (12, lambda day: 11 <= day <= 13, TASHREEQ),
    (12, lambda day: 1 <= day <= 10, FIRST_TEN_DAYS),
)


def event_for(day: int, month: int) -> Optional[IslamicEvent]:
    """Return the occasion falling on Hijri *day*/*month*, if any."""
    if not 1 <= day <= 30 or not 1 <= month <= 12:
        return None
    for rule_month, matches, event in EVENT_RULES:
        if rule_month == month and matches(day):
            return event
    return None


def is_major_event(day: int, month: int) -> bool:
    event = event_for(day, month)
    return event is not None and event.severity is EventSeverity.MAJOR


def is_blessed_period(day: int, month: int) -> bool:
    event = event_for(day, month)
    return event is not None and event.severity is EventSeverity.BLESSED


def event_color(day: int, month: int) -> Optional[str]:
    event = event_for(day, month)
    return event.color if event else None


def month_events(month: int) -> List[Tuple[int, IslamicEvent]]:
    """List every (day, event) pair of a Hijri month in day order."""
    events: List[Tuple[int, IslamicEvent]] = []
    for day in range(1, 31):
        event = event_for(day, month)
        if event:
            events.append((day, event))
    return events
