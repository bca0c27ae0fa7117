"""Location providers used for the Qibla fix and prayer-time lookups."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import pytz
import requests
from tzlocal import get_localzone_name

from errors import InputError
from geo_bearing import Coordinate

LOGGER = logging.getLogger(__name__)

IPINFO_URL = "https://ipinfo.io/json"


@dataclass
class LocationInfo:
    city: str
    country: str
    coordinate: Coordinate
    timezone: str


class LocationProvider(ABC):
    """Source of a one-shot position fix."""

    @abstractmethod
    def request_permission(self) -> bool:
        """Return ``True`` when the user allows location access."""

    @abstractmethod
    def get_current_coordinate(self) -> Coordinate:
        """Return the current position or raise when no fix is available."""

    def describe(self) -> Optional[LocationInfo]:
        return None


class StaticLocationProvider(LocationProvider):
    """Serves a location the user configured by hand."""

    def __init__(self, info: LocationInfo) -> None:
        self._info = info

    def request_permission(self) -> bool:
        return True

    def get_current_coordinate(self) -> Coordinate:
        return self._info.coordinate

    def describe(self) -> LocationInfo:
        return self._info


class IpLocationProvider(LocationProvider):
    """Approximate location from the ipinfo.io service."""

    def __init__(self, timeout: int = 5) -> None:
        self.timeout = timeout
        self._last: Optional[LocationInfo] = None

    def request_permission(self) -> bool:
        return True

    def get_current_coordinate(self) -> Coordinate:
        return self.detect().coordinate

    def describe(self) -> Optional[LocationInfo]:
        return self._last

    def detect(self) -> LocationInfo:
        LOGGER.debug("Requesting IP-based location from ipinfo.io (timeout=%s)", self.timeout)
        response = requests.get(IPINFO_URL, timeout=self.timeout)
        LOGGER.debug("ipinfo.io response status: %s", response.status_code)
        response.raise_for_status()
        payload = response.json()
        LOGGER.debug("ipinfo.io payload keys: %s", list(payload.keys()))

        loc_token = payload.get("loc", "")
        try:
            latitude, longitude = map(float, loc_token.split(","))
        except ValueError as exc:
            raise RuntimeError(f"ipinfo.io returned no usable coordinates: {loc_token!r}") from exc
        LOGGER.debug("Parsed coordinates from ipinfo.io: lat=%s lon=%s", latitude, longitude)

        timezone = _valid_timezone(payload.get("timezone")) or system_timezone()
        self._last = LocationInfo(
            city=payload.get("city", ""),
            country=payload.get("country", ""),
            coordinate=Coordinate(latitude, longitude),
            timezone=timezone,
        )
        return self._last


def system_timezone() -> str:
    try:
        return _valid_timezone(get_localzone_name()) or "UTC"
    except Exception:  # pragma: no cover - platform specific
        LOGGER.warning("Could not determine the system timezone; using UTC")
        return "UTC"


def _valid_timezone(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        LOGGER.warning("Ignoring unknown timezone %s", name)
        return None
    return name


def build_location_from_config(config: Dict[str, object]) -> Optional[LocationInfo]:
    """Create a LocationInfo instance if the config contains the required data."""
    location_cfg = config.get("location") if isinstance(config, dict) else None
    if not isinstance(location_cfg, dict):
        return None

    latitude = _safe_float(location_cfg.get("latitude"))
    longitude = _safe_float(location_cfg.get("longitude"))
    if latitude is None or longitude is None:
        return None

    try:
        return LocationInfo(
            city=str(location_cfg.get("city", "")),
            country=str(location_cfg.get("country", "")),
            coordinate=Coordinate(latitude, longitude),
            timezone=_valid_timezone(str(location_cfg.get("timezone") or "")) or system_timezone(),
        )
    except InputError:
        LOGGER.exception("Invalid location config: %s", location_cfg)
        return None


def _safe_float(value: Optional[object]) -> Optional[float]:
    try:
        if value in (None, ""):
            return None
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
