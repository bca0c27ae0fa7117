from datetime import datetime, timedelta

import pytest
import pytz

from notification_channels import CHANNELS, AdhanSound, NotificationChannel, channel_id_for_sound, initialize_notification_channels
from scheduler import PrayerScheduler


@pytest.fixture
def scheduler():
    instance = PrayerScheduler("Europe/London")
    initialize_notification_channels(instance)
    yield instance
    instance.shutdown()


def _future(hours: int = 1) -> datetime:
    return datetime.now(pytz.timezone("Europe/London")) + timedelta(hours=hours)


def test_initialize_registers_exactly_three_channels(scheduler: PrayerScheduler):
    assert sorted(scheduler.channels) == ["adhan-default", "adhan-madinah", "adhan-makkah"]
    initialize_notification_channels(scheduler)
    assert len(scheduler.channels) == 3


def test_channel_ids_are_stable_per_sound():
    assert channel_id_for_sound(AdhanSound.DEFAULT) == "adhan-default"
    assert channel_id_for_sound(AdhanSound.MAKKAH) == "adhan-makkah"
    assert channel_id_for_sound("madinah") == "adhan-madinah"  # type: ignore[arg-type]


def test_channel_audio_cannot_be_rebound(scheduler: PrayerScheduler):
    original = CHANNELS[AdhanSound.MAKKAH]
    with pytest.raises(ValueError):
        scheduler.register_channel(
            NotificationChannel(original.id, original.name, original.description, "other.mp3")
        )
    assert scheduler.channels[original.id].sound_file == original.sound_file


def test_schedule_and_cancel(scheduler: PrayerScheduler):
    payload = {"prayer": "Asr", "play_adhan": True}
    first = scheduler.schedule_at(_future(1), "adhan-default", payload)
    second = scheduler.schedule_at(_future(2), "adhan-makkah", payload)
    assert scheduler.pending_ids() == [first, second]

    scheduler.cancel(first)
    assert scheduler.pending_ids() == [second]

    scheduler.cancel_all([second, "missing-id"])
    assert scheduler.pending_ids() == []


def test_supports_five_pending_schedules(scheduler: PrayerScheduler):
    ids = [scheduler.schedule_at(_future(hour), "adhan-default", {"prayer": "Fajr"}) for hour in range(1, 6)]
    assert len(set(ids)) == 5
    assert scheduler.pending_ids() == ids


def test_schedule_on_unknown_channel_fails(scheduler: PrayerScheduler):
    with pytest.raises(KeyError):
        scheduler.schedule_at(_future(), "adhan-unknown", {"prayer": "Isha"})


def test_delivery_forwards_channel_and_payload(scheduler: PrayerScheduler):
    received = []
    scheduler.set_notification_handler(lambda channel, payload: received.append((channel.id, payload)))
    job_id = scheduler.schedule_at(_future(), "adhan-madinah", {"prayer": "Maghrib", "play_adhan": True})

    scheduler._deliver(job_id, "adhan-madinah", {"prayer": "Maghrib", "play_adhan": True})

    assert received == [("adhan-madinah", {"prayer": "Maghrib", "play_adhan": True})]
    assert job_id not in scheduler.pending_ids()


def test_schedule_refresh_replaces_previous_job(scheduler: PrayerScheduler):
    scheduler.schedule_refresh(_future(3), lambda: None)
    scheduler.schedule_refresh(_future(4), lambda: None)
    assert len(scheduler._scheduler.get_jobs()) == 1


def test_timezone_name(scheduler: PrayerScheduler):
    assert scheduler.timezone == "Europe/London"
