"""Scheduling utilities for Adhan notifications and daily refreshes."""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from notification_channels import ChannelRegistry, NotificationChannel

LOGGER = logging.getLogger(__name__)

NotificationCallback = Callable[[NotificationChannel, Dict[str, Any]], None]


class NotificationScheduler(ABC):
    """Platform service that fires a notification at a given moment."""

    @abstractmethod
    def schedule_at(self, fires_at: datetime, channel_id: str, payload: Mapping[str, Any]) -> str:
        """Schedule one notification and return its id."""

    @abstractmethod
    def cancel(self, notification_id: str) -> None:
        """Cancel a pending notification; unknown ids are ignored."""

    def cancel_all(self, notification_ids: Iterable[str]) -> None:
        for notification_id in list(notification_ids):
            self.cancel(notification_id)


class PrayerScheduler(NotificationScheduler, ChannelRegistry):
    """Wrap APScheduler to manage one-off Adhan notification jobs."""

    def __init__(self, timezone: str, on_notification: Optional[NotificationCallback] = None) -> None:
        self._scheduler = BackgroundScheduler(timezone=timezone)
        self._on_notification = on_notification
        self._channels: Dict[str, NotificationChannel] = {}
        self._jobs: List[str] = []
        self._refresh_job_id: Optional[str] = None

    def start(self) -> None:
        if not self._scheduler.running:
            LOGGER.info("Starting background scheduler")
            self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler.running:
            LOGGER.info("Stopping background scheduler")
            self._scheduler.shutdown(wait=False)

    @property
    def timezone(self) -> str:
        tzinfo = self._scheduler.timezone
        zone = getattr(tzinfo, "zone", None) or getattr(tzinfo, "key", None)
        return str(zone or tzinfo)

    @property
    def channels(self) -> Dict[str, NotificationChannel]:
        return dict(self._channels)

    def set_notification_handler(self, handler: NotificationCallback) -> None:
        self._on_notification = handler

    def register_channel(self, channel: NotificationChannel) -> None:
        existing = self._channels.get(channel.id)
        if existing is not None:
            if existing.sound_file != channel.sound_file:
                raise ValueError(
                    f"Channel {channel.id} is bound to {existing.sound_file}; refusing to switch to {channel.sound_file}"
                )
            LOGGER.debug("Channel %s already registered", channel.id)
            return
        self._channels[channel.id] = channel
        LOGGER.debug("Registered notification channel %s (%s)", channel.id, channel.sound_file)

    def schedule_at(self, fires_at: datetime, channel_id: str, payload: Mapping[str, Any]) -> str:
        if channel_id not in self._channels:
            raise KeyError(f"Unknown notification channel: {channel_id}")
        trigger = DateTrigger(run_date=fires_at)
        job_id = uuid.uuid4().hex
        job = self._scheduler.add_job(self._deliver, trigger=trigger, id=job_id, args=[job_id, channel_id, dict(payload)])
        LOGGER.debug("Scheduled notification job %s at %s on %s", job.id, fires_at, channel_id)
        self._jobs.append(job.id)
        return job.id

    def cancel(self, notification_id: str) -> None:
        with suppress_not_found():
            self._scheduler.remove_job(notification_id)
        if notification_id in self._jobs:
            self._jobs.remove(notification_id)
        LOGGER.debug("Cancelled notification job %s", notification_id)

    def pending_ids(self) -> List[str]:
        return list(self._jobs)

    def schedule_refresh(self, next_run: datetime, refresh_callback: Callable[[], None]) -> None:
        """Schedule a single refresh job, replacing any existing one."""
        if self._refresh_job_id:
            LOGGER.debug("Removing existing refresh job %s", self._refresh_job_id)
            with suppress_not_found():
                self._scheduler.remove_job(self._refresh_job_id)
            self._refresh_job_id = None

        trigger = DateTrigger(run_date=next_run)
        job = self._scheduler.add_job(refresh_callback, trigger=trigger)
        LOGGER.debug("Scheduled refresh job %s at %s", job.id, next_run)
        self._refresh_job_id = job.id

    def _deliver(self, job_id: str, channel_id: str, payload: Dict[str, Any]) -> None:
        if job_id in self._jobs:
            self._jobs.remove(job_id)
        channel = self._channels.get(channel_id)
        if channel is None or self._on_notification is None:
            LOGGER.warning("Dropping notification for %s: no channel or handler", payload.get("prayer"))
            return
        LOGGER.info("Delivering %s notification on %s", payload.get("prayer"), channel_id)
        self._on_notification(channel, payload)


class suppress_not_found:
    """Context manager that suppresses APScheduler job lookup errors."""

    def __enter__(self) -> None:  # pragma: no cover - trivial
        return None

    def __exit__(self, exc_type, exc, tb) -> bool:  # pragma: no cover - trivial
        if exc_type is None:
            return False
        return isinstance(exc, JobLookupError)
