"""Next-prayer countdown and the lifecycle of the day's Adhan notifications."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from adhan_settings import AdhanSettings, SettingsStore
from errors import SchedulingFailure
from notification_channels import NotificationChannel, channel_id_for_sound
from prayer_times import PRAYER_ORDER, DailyTimings, PrayerName, prayer_datetime, strip_timezone_annotation
from scheduler import NotificationScheduler

LOGGER = logging.getLogger(__name__)

# Width of the backup firing window at the start of a prayer minute.
DUE_WINDOW_SECONDS = 30

AdhanListener = Callable[[PrayerName, NotificationChannel], None]


@dataclass(frozen=True)
class NextPrayer:
    name: PrayerName
    time: str
    fires_at: datetime
    countdown: str


@dataclass(frozen=True)
class ScheduledNotification:
    id: str
    prayer: PrayerName
    fires_at: datetime
    channel_id: str


@dataclass(frozen=True)
class ScheduledNotificationSet:
    notifications: Tuple[ScheduledNotification, ...] = ()

    @property
    def ids(self) -> List[str]:
        return [notification.id for notification in self.notifications]

    def __len__(self) -> int:
        return len(self.notifications)

    def __iter__(self):
        return iter(self.notifications)


def format_countdown(delta: timedelta) -> str:
    """Render *delta* as ``H:MM:SS``, hours unbounded."""
    total = max(int(delta.total_seconds()), 0)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def next_prayer(timings: DailyTimings, now: datetime) -> Optional[NextPrayer]:
    """Return the first prayer strictly after *now*, wrapping to tomorrow's Fajr."""
    today = now.date()
    for prayer in PRAYER_ORDER:
        fires_at = prayer_datetime(timings, prayer, today, now.tzinfo)
        if fires_at is not None and fires_at > now:
            return NextPrayer(
                name=prayer,
                time=strip_timezone_annotation(timings.time_string(prayer) or ""),
                fires_at=fires_at,
                countdown=format_countdown(fires_at - now),
            )

    fajr_at = prayer_datetime(timings, PrayerName.FAJR, today + timedelta(days=1), now.tzinfo)
    if fajr_at is None:
        return None
    return NextPrayer(
        name=PrayerName.FAJR,
        time=strip_timezone_annotation(timings.time_string(PrayerName.FAJR) or ""),
        fires_at=fajr_at,
        countdown=format_countdown(fajr_at - now),
    )


def notification_payload(prayer: PrayerName) -> Dict[str, Any]:
    return {"prayer": prayer.value, "play_adhan": True}


class AdhanService:
    """Owns the single active set of Adhan notifications.

    Every call to :meth:`schedule_day` cancels the previously scheduled ids
    before creating new ones, and only persists the new ids afterwards, so two
    schedules for the same day are never active together.
    """

    def __init__(self, scheduler: NotificationScheduler, store: SettingsStore) -> None:
        self._scheduler = scheduler
        self._store = store
        self._lock = threading.RLock()
        self._active = ScheduledNotificationSet()
        self._last_timings: Optional[DailyTimings] = None
        self._last_fired: Optional[Tuple[PrayerName, date]] = None
        self._fired: Set[Tuple[PrayerName, date]] = set()
        self._tzinfo: Optional[Any] = None
        self._listeners: List[AdhanListener] = []

    @property
    def active(self) -> ScheduledNotificationSet:
        return self._active

    @property
    def last_fired(self) -> Optional[Tuple[PrayerName, date]]:
        return self._last_fired

    def add_listener(self, listener: AdhanListener) -> None:
        self._listeners.append(listener)

    def get_settings(self) -> AdhanSettings:
        return self._store.load_settings()

    def save_settings(self, settings: AdhanSettings, now: Optional[datetime] = None) -> None:
        """Persist *settings* and re-point today's remaining notifications at them."""
        self._store.save_settings(settings)
        LOGGER.info("Adhan settings saved (enabled=%s sound=%s)", settings.enabled, settings.selected_sound.value)
        if self._last_timings is not None:
            self.schedule_day(self._last_timings, settings, now)

    def next_prayer(self, timings: DailyTimings, now: Optional[datetime] = None) -> Optional[NextPrayer]:
        return next_prayer(timings, now or self._now())

    def schedule_day(
        self,
        timings: DailyTimings,
        settings: Optional[AdhanSettings] = None,
        now: Optional[datetime] = None,
    ) -> ScheduledNotificationSet:
        settings = settings or self.get_settings()
        now = now or self._now()
        with self._lock:
            self._cancel_active()
            self._last_timings = timings
            self._tzinfo = now.tzinfo

            if not settings.enabled:
                LOGGER.info("Adhan is disabled, skipping scheduling")
                return self._active

            channel_id = channel_id_for_sound(settings.selected_sound)
            LOGGER.debug("Scheduling Adhan notifications on %s (now=%s)", channel_id, now.isoformat())
            scheduled: List[ScheduledNotification] = []
            for prayer in PRAYER_ORDER:
                if not settings.is_prayer_enabled(prayer):
                    LOGGER.debug("Skipping %s - disabled in settings", prayer.value)
                    continue
                fires_at = prayer_datetime(timings, prayer, now.date(), now.tzinfo)
                if fires_at is None or fires_at <= now:
                    continue
                try:
                    notification_id = self._scheduler.schedule_at(fires_at, channel_id, notification_payload(prayer))
                except Exception as exc:
                    failure = SchedulingFailure(prayer.value, str(exc))
                    LOGGER.exception("%s", failure)
                    continue
                scheduled.append(ScheduledNotification(notification_id, prayer, fires_at, channel_id))
                LOGGER.debug("Scheduled %s at %s (id=%s)", prayer.value, fires_at, notification_id)

            self._active = ScheduledNotificationSet(tuple(scheduled))
            self._persist_ids(self._active.ids)
            LOGGER.info("Total Adhan notifications scheduled: %d", len(scheduled))
            return self._active

    def cancel_all_notifications(self) -> None:
        with self._lock:
            self._cancel_active()

    def check_due(
        self,
        timings: DailyTimings,
        now: Optional[datetime] = None,
        settings: Optional[AdhanSettings] = None,
    ) -> Optional[PrayerName]:
        """Backup trigger: report a prayer whose minute has just begun and has not fired yet today."""
        settings = settings or self.get_settings()
        now = now or self._now()
        if not settings.enabled:
            return None
        for prayer in PRAYER_ORDER:
            if not settings.is_prayer_enabled(prayer):
                continue
            fires_at = prayer_datetime(timings, prayer, now.date(), now.tzinfo)
            if fires_at is None:
                continue
            elapsed = (now - fires_at).total_seconds()
            if 0 <= elapsed < DUE_WINDOW_SECONDS and self.mark_fired(prayer, now.date()):
                LOGGER.info("Detected prayer time for %s at %s", prayer.value, fires_at.strftime("%H:%M"))
                return prayer
        return None

    def mark_fired(self, prayer: PrayerName, day: date) -> bool:
        """Record that *prayer* fired on *day*; ``False`` if it already had."""
        with self._lock:
            if (prayer, day) in self._fired:
                return False
            self._fired = {entry for entry in self._fired if entry[1] >= day}
            self._fired.add((prayer, day))
            self._last_fired = (prayer, day)
            return True

    def handle_notification(
        self,
        channel: NotificationChannel,
        payload: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> bool:
        """Delivery callback for the scheduler; forwards each prayer at most once per day."""
        if not payload.get("play_adhan"):
            return False
        try:
            prayer = PrayerName(payload.get("prayer"))
        except ValueError:
            LOGGER.warning("Ignoring notification with unknown prayer %r", payload.get("prayer"))
            return False

        today = (now or self._now()).date()
        if not self.mark_fired(prayer, today):
            LOGGER.debug("%s already fired on %s", prayer.value, today)
            return False

        with self._lock:
            self._active = ScheduledNotificationSet(
                tuple(item for item in self._active if item.prayer is not prayer)
            )
        for listener in list(self._listeners):
            try:
                listener(prayer, channel)
            except Exception:
                LOGGER.exception("Adhan listener failed for %s", prayer.value)
        return True

    def _now(self) -> datetime:
        """Current time in the zone of the last scheduled day, or host local time before that."""
        if self._tzinfo is None:
            return datetime.now()
        return datetime.now(self._tzinfo)

    def _cancel_active(self) -> None:
        try:
            stored_ids = self._store.load_scheduled_ids()
        except Exception:
            LOGGER.exception("Error loading scheduled notification ids")
            stored_ids = []
        ids = list(dict.fromkeys(stored_ids + self._active.ids))
        if ids:
            try:
                self._scheduler.cancel_all(ids)
            except Exception:
                LOGGER.exception("Bulk cancel failed; cancelling %d notifications one by one", len(ids))
                for notification_id in ids:
                    try:
                        self._scheduler.cancel(notification_id)
                    except Exception:
                        LOGGER.exception("Error cancelling notification %s", notification_id)
        self._active = ScheduledNotificationSet()
        self._persist_ids([])
        LOGGER.debug("Cancelled %d Adhan notifications", len(ids))

    def _persist_ids(self, notification_ids: List[str]) -> None:
        try:
            self._store.save_scheduled_ids(notification_ids)
        except Exception:
            LOGGER.exception("Error saving scheduled notification ids")
