from datetime import date, datetime, time

import pytest
import pytz
import requests
import responses

from errors import InputError
from geo_bearing import Coordinate
from prayer_times import (
    ALADHAN_TIMINGS_URL,
    DailyTimings,
    PrayerName,
    PrayerTimesService,
    combine_local,
    next_refresh_time,
    parse_prayer_time,
    prayer_datetime,
    strip_timezone_annotation,
)


def build_payload(timezone: str, latitude: float, longitude: float) -> dict:
    return {
        "code": 200,
        "data": {
            "timings": {
                "Fajr": "05:10 (+01)",
                "Sunrise": "06:38 (+01)",
                "Dhuhr": "12:30 (+01)",
                "Asr": "15:45 (+01)",
                "Maghrib": "18:12 (+01)",
                "Isha": "19:30 (+01)",
            },
            "date": {
                "hijri": {
                    "day": "27",
                    "month": {"en": "Rabi al-Thani"},
                    "year": "1447",
                    "date": "27-04-1447",
                },
                "gregorian": {
                    "date": "09-11-2025",
                },
            },
            "meta": {
                "timezone": timezone,
                "latitude": latitude,
                "longitude": longitude,
            },
        },
    }


def test_fetch_daily_timings_with_coordinates():
    service = PrayerTimesService(method=3, school=0)
    payload = build_payload("Africa/Casablanca", 35.7673, -5.7998)

    with responses.RequestsMock() as mock:
        mock.add(responses.GET, ALADHAN_TIMINGS_URL, json=payload, status=200)
        timings = service.fetch_daily_timings(Coordinate(35.7673, -5.7998), target_date=date(2025, 11, 9))
        assert mock.calls[0].request.url.startswith(ALADHAN_TIMINGS_URL)
        assert "date=09-11-2025" in mock.calls[0].request.url
        call_count = len(mock.calls)
    assert call_count == 1

    assert set(timings.timings) == set(PrayerName)
    assert timings.time_string(PrayerName.ISHA) == "19:30 (+01)"
    assert timings.sunrise == "06:38 (+01)"
    assert timings.timezone == "Africa/Casablanca"
    assert timings.hijri_date == "27 Rabi al-Thani 1447 AH"
    assert timings.gregorian_date == date(2025, 11, 9)


def test_fetch_daily_timings_unknown_timezone_falls_back_to_utc():
    service = PrayerTimesService()
    payload = build_payload("Mars/Olympus_Mons", 0.0, 0.0)

    with responses.RequestsMock() as mock:
        mock.add(responses.GET, ALADHAN_TIMINGS_URL, json=payload, status=200)
        timings = service.fetch_daily_timings(Coordinate(0.0, 0.0), target_date=date(2025, 11, 9))

    assert timings.timezone == "UTC"


def test_fetch_daily_timings_rejects_error_payload():
    service = PrayerTimesService()
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, ALADHAN_TIMINGS_URL, json={"code": 400, "status": "Bad Request"}, status=200)
        with pytest.raises(RuntimeError):
            service.fetch_daily_timings(Coordinate(0.0, 0.0), target_date=date(2025, 11, 9))


def test_fetch_daily_timings_propagates_http_errors():
    service = PrayerTimesService()
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, ALADHAN_TIMINGS_URL, json={}, status=503)
        with pytest.raises(requests.HTTPError):
            service.fetch_daily_timings(Coordinate(0.0, 0.0), target_date=date(2025, 11, 9))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("05:00", time(5, 0)),
        ("15:30 (+02:00)", time(15, 30)),
        (" 19:05 (EET)", time(19, 5)),
        ("23:59", time(23, 59)),
    ],
)
def test_parse_prayer_time(raw: str, expected: time):
    assert parse_prayer_time(raw) == expected


@pytest.mark.parametrize("raw", ["", "noon", "25:00", "12:60", "1230", "ab:cd"])
def test_parse_prayer_time_rejects_malformed(raw: str):
    with pytest.raises(InputError):
        parse_prayer_time(raw)


def test_strip_timezone_annotation():
    assert strip_timezone_annotation("15:30 (+02:00)") == "15:30"
    assert strip_timezone_annotation("15:30") == "15:30"


def test_daily_timings_are_read_only():
    timings = DailyTimings.from_strings({"Fajr": "05:00", "Sunrise": "06:00"}, date(2025, 1, 1))
    assert list(timings.timings) == [PrayerName.FAJR]
    with pytest.raises(TypeError):
        timings.timings[PrayerName.ISHA] = "19:00"  # type: ignore[index]


def test_prayer_datetime_localizes_with_pytz():
    tz = pytz.timezone("Africa/Casablanca")
    timings = DailyTimings.from_strings({"Fajr": "05:10 (+01)"}, date(2025, 11, 9))
    moment = prayer_datetime(timings, PrayerName.FAJR, date(2025, 11, 9), tz)
    assert moment is not None
    assert moment.strftime("%H:%M") == "05:10"
    assert getattr(moment.tzinfo, "zone", None) == "Africa/Casablanca"


def test_prayer_datetime_skips_missing_and_malformed():
    timings = DailyTimings.from_strings({"Fajr": "bad"}, date(2025, 11, 9))
    assert prayer_datetime(timings, PrayerName.FAJR, date(2025, 11, 9), None) is None
    assert prayer_datetime(timings, PrayerName.DHUHR, date(2025, 11, 9), None) is None


def test_next_refresh_time_is_after_midnight():
    tz = pytz.timezone("Europe/London")
    reference = combine_local(date(2025, 3, 29), time(20, 0), tz)
    refresh = next_refresh_time(reference)
    assert refresh.date() == date(2025, 3, 30)
    assert (refresh.hour, refresh.minute) == (0, 5)
    assert refresh > reference
    assert next_refresh_time(datetime(2025, 1, 1, 23, 0)).tzinfo is not None
