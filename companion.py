"""Composition root that owns one instance of every core component."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pytz

from adhan_service import AdhanService, NextPrayer, ScheduledNotificationSet
from adhan_settings import AdhanSettings, JsonSettingsStore, SettingsStore, load_json
from hijri_calendar import HijriDate, HijriDayCell, current_month_year, month_grid, to_hijri
from location import (
    IpLocationProvider,
    LocationInfo,
    LocationProvider,
    StaticLocationProvider,
    build_location_from_config,
    system_timezone,
)
from notification_channels import initialize_notification_channels
from prayer_times import DailyTimings, PrayerTimesService, next_refresh_time
from qibla import HeadingSensor, QiblaDirectionTracker
from scheduler import PrayerScheduler

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).parent
CONFIG_PATH = APP_ROOT / "config.json"
DEFAULT_SETTINGS_PATH = APP_ROOT / "settings.json"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
REFRESH_RETRY_MINUTES = 15


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


class CompanionApp:
    """Wires prayer times, Adhan scheduling, the Hijri calendar and the Qibla together."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        prayer_service: Optional[PrayerTimesService] = None,
        location_provider: Optional[LocationProvider] = None,
        scheduler: Optional[PrayerScheduler] = None,
        store: Optional[SettingsStore] = None,
    ) -> None:
        self._config = config if config is not None else load_json(CONFIG_PATH, default={})
        LOGGER.debug("Loaded config keys: %s", list(self._config.keys()))

        calc_cfg = self._config.get("calculation", {}) if isinstance(self._config, dict) else {}
        self.prayer_service = prayer_service or PrayerTimesService(
            method=int(calc_cfg.get("method", 3)),
            school=int(calc_cfg.get("school", 0)),
        )
        self.location_provider = location_provider or self._build_location_provider()
        self.store = store or JsonSettingsStore(Path(self._config.get("settings_path") or DEFAULT_SETTINGS_PATH))

        self.scheduler = scheduler or PrayerScheduler(self._timezone_name())
        initialize_notification_channels(self.scheduler)
        self.adhan_service = AdhanService(self.scheduler, self.store)
        self.scheduler.set_notification_handler(self.adhan_service.handle_notification)

        self.current_timings: Optional[DailyTimings] = None

    def _build_location_provider(self) -> LocationProvider:
        manual = build_location_from_config(self._config)
        auto_location = bool(self._config.get("auto_location", manual is None))
        if auto_location or manual is None:
            LOGGER.debug("Using IP-based location (auto_location=%s)", auto_location)
            return IpLocationProvider()
        LOGGER.debug("Using configured location %s, %s", manual.city, manual.country)
        return StaticLocationProvider(manual)

    def _timezone_name(self) -> str:
        info = self.location_provider.describe()
        return info.timezone if info else system_timezone()

    # ------------------------------------------------------------------
    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    def refresh(self, today: Optional[date] = None) -> ScheduledNotificationSet:
        """Fetch today's timings, schedule the remaining Adhans and tomorrow's refresh."""
        coordinate = self.location_provider.get_current_coordinate()
        timings = self.prayer_service.fetch_daily_timings(coordinate, today)
        self.current_timings = timings
        info: Optional[LocationInfo] = self.location_provider.describe()
        LOGGER.info(
            "Prayer times refreshed for %s (%s)",
            info.city if info else coordinate,
            timings.gregorian_date.isoformat(),
        )

        now = self._now(timings)
        scheduled = self.adhan_service.schedule_day(timings, now=now)
        self.scheduler.schedule_refresh(next_refresh_time(now), self._refresh_safely)
        return scheduled

    def _refresh_safely(self) -> None:
        try:
            self.refresh()
        except Exception:
            retry_at = self._now(self.current_timings) + timedelta(minutes=REFRESH_RETRY_MINUTES)
            LOGGER.exception("Failed to refresh prayer times; retrying at %s", retry_at.isoformat())
            self.scheduler.schedule_refresh(retry_at, self._refresh_safely)

    def save_settings(self, settings: AdhanSettings) -> None:
        """Persist Adhan settings and reschedule today against the location's clock."""
        self.adhan_service.save_settings(settings, now=self._now(self.current_timings))

    def _now(self, timings: Optional[DailyTimings] = None) -> datetime:
        zone = (timings.timezone if timings else None) or self.scheduler.timezone
        try:
            return datetime.now(pytz.timezone(zone))
        except pytz.UnknownTimeZoneError:
            return datetime.now(pytz.UTC)

    def next_prayer(self, now: Optional[datetime] = None) -> Optional[NextPrayer]:
        if self.current_timings is None:
            return None
        return self.adhan_service.next_prayer(self.current_timings, now or self._now(self.current_timings))

    # ------------------------------------------------------------------
    def hijri_today(self, today: Optional[date] = None) -> HijriDate:
        offset = self.adhan_service.get_settings().hijri_offset
        return to_hijri(today or date.today(), offset)

    def calendar(
        self,
        year_month: Optional[Tuple[int, int]] = None,
        today: Optional[date] = None,
    ) -> Tuple[HijriDayCell, ...]:
        offset = self.adhan_service.get_settings().hijri_offset
        year, month = year_month or current_month_year(offset, today)
        return month_grid(year, month, offset, today)

    def qibla_tracker(self, heading_sensor: HeadingSensor, invert_axis: bool = False) -> QiblaDirectionTracker:
        return QiblaDirectionTracker(self.location_provider, heading_sensor, invert_axis=invert_axis)
