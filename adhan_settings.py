"""Adhan preferences and the JSON file that persists them."""
from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from notification_channels import AdhanSound
from prayer_times import PRAYER_ORDER, PrayerName

LOGGER = logging.getLogger(__name__)

ADHAN_SETTINGS_KEY = "adhan_settings"
ADHAN_SCHEDULED_KEY = "adhan_scheduled"
HIJRI_OFFSETS = (-1, 0, 1)


def _all_prayers_enabled() -> Mapping[PrayerName, bool]:
    return {prayer: True for prayer in PRAYER_ORDER}


@dataclass(frozen=True)
class AdhanSettings:
    enabled: bool = True
    selected_sound: AdhanSound = AdhanSound.DEFAULT
    hijri_offset: int = 0
    enabled_prayers: Mapping[PrayerName, bool] = field(default_factory=_all_prayers_enabled)
    volume: float = 0.8

    def __post_init__(self) -> None:
        prayers = {prayer: bool(self.enabled_prayers.get(prayer, True)) for prayer in PRAYER_ORDER}
        object.__setattr__(self, "enabled_prayers", MappingProxyType(prayers))
        object.__setattr__(self, "selected_sound", AdhanSound(self.selected_sound))
        if self.hijri_offset not in HIJRI_OFFSETS:
            raise ValueError(f"Hijri offset must be one of {HIJRI_OFFSETS}, got {self.hijri_offset}")
        if not 0.0 <= self.volume <= 1.0:
            raise ValueError(f"Volume must be within [0, 1], got {self.volume}")

    def is_prayer_enabled(self, prayer: PrayerName) -> bool:
        return self.enabled and self.enabled_prayers.get(prayer, False)

    def with_prayer(self, prayer: PrayerName, enabled: bool) -> "AdhanSettings":
        prayers = dict(self.enabled_prayers)
        prayers[prayer] = enabled
        return replace(self, enabled_prayers=prayers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "sound": self.selected_sound.value,
            "hijri_offset": self.hijri_offset,
            "volume": self.volume,
            "enabled_prayers": {prayer.value: value for prayer, value in self.enabled_prayers.items()},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AdhanSettings":
        """Build settings from a stored record, repairing anything out of range."""
        if not isinstance(payload, Mapping):
            LOGGER.warning("Ignoring malformed Adhan settings record: %r", payload)
            return cls()

        sound_raw = payload.get("sound", AdhanSound.DEFAULT.value)
        try:
            sound = AdhanSound(sound_raw)
        except ValueError:
            LOGGER.warning("Unknown Adhan sound %r; using default", sound_raw)
            sound = AdhanSound.DEFAULT

        try:
            offset = int(payload.get("hijri_offset", 0) or 0)
        except (TypeError, ValueError):
            LOGGER.warning("Invalid Hijri offset %r; using 0", payload.get("hijri_offset"))
            offset = 0
        if offset not in HIJRI_OFFSETS:
            LOGGER.warning("Clamping Hijri offset %d into [-1, 1]", offset)
            offset = max(-1, min(1, offset))

        try:
            volume = float(payload.get("volume", 0.8))
        except (TypeError, ValueError):
            volume = 0.8
        volume = max(0.0, min(1.0, volume))

        prayers_raw = payload.get("enabled_prayers") or {}
        if not isinstance(prayers_raw, Mapping):
            prayers_raw = {}
        prayers = {prayer: bool(prayers_raw.get(prayer.value, True)) for prayer in PRAYER_ORDER}

        return cls(
            enabled=bool(payload.get("enabled", True)),
            selected_sound=sound,
            hijri_offset=offset,
            enabled_prayers=prayers,
            volume=volume,
        )


class SettingsStore(ABC):
    """Persistence for Adhan settings and the ids of the active notifications."""

    @abstractmethod
    def load_settings(self) -> AdhanSettings:
        ...

    @abstractmethod
    def save_settings(self, settings: AdhanSettings) -> None:
        ...

    @abstractmethod
    def load_scheduled_ids(self) -> List[str]:
        ...

    @abstractmethod
    def save_scheduled_ids(self, notification_ids: List[str]) -> None:
        ...


def load_json(path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def save_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


class JsonSettingsStore(SettingsStore):
    """Keeps settings and scheduled ids in a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load_settings(self) -> AdhanSettings:
        try:
            record = self._read().get(ADHAN_SETTINGS_KEY)
        except (OSError, ValueError):
            LOGGER.exception("Error loading Adhan settings from %s", self._path)
            return AdhanSettings()
        if record is None:
            return AdhanSettings()
        return AdhanSettings.from_dict(record)

    def save_settings(self, settings: AdhanSettings) -> None:
        self._update(ADHAN_SETTINGS_KEY, settings.to_dict())
        LOGGER.debug("Persisted Adhan settings: %s", settings.to_dict())

    def load_scheduled_ids(self) -> List[str]:
        try:
            ids = self._read().get(ADHAN_SCHEDULED_KEY) or []
        except (OSError, ValueError):
            LOGGER.exception("Error loading scheduled notification ids from %s", self._path)
            return []
        if not isinstance(ids, list):
            LOGGER.warning("Ignoring malformed scheduled id list: %r", ids)
            return []
        return [str(notification_id) for notification_id in ids]

    def save_scheduled_ids(self, notification_ids: List[str]) -> None:
        self._update(ADHAN_SCHEDULED_KEY, list(notification_ids))

    def _read(self) -> Dict[str, Any]:
        with self._lock:
            payload = load_json(self._path, default={})
        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring settings file %s without a top-level object", self._path)
            return {}
        return payload

    def _update(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                payload = load_json(self._path, default={})
            except ValueError:
                LOGGER.warning("Overwriting unreadable settings file %s", self._path)
                payload = {}
            if not isinstance(payload, dict):
                LOGGER.warning("Overwriting settings file %s without a top-level object", self._path)
                payload = {}
            payload[key] = value
            save_json(self._path, payload)
