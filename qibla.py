"""Live Qibla direction from a one-shot location fix and a compass stream."""
from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from errors import PermissionDenied, SensorUnavailable
from geo_bearing import Coordinate, distance_to_kaaba, normalize_angle, qibla_bearing
from location import LocationProvider

LOGGER = logging.getLogger(__name__)

HEADING_INTERVAL_MS = 100
LOCATION_TIMEOUT_SECONDS = 15.0


class TrackerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACQUIRING_LOCATION = "acquiring_location"
    READY = "ready"
    LOCATION_ERROR = "location_error"
    SENSOR_ERROR = "sensor_error"


@dataclass(frozen=True)
class QiblaReading:
    state: TrackerState
    heading: float
    qibla_bearing: Optional[float]
    relative_direction: Optional[float]
    location: Optional[Coordinate]
    distance_km: Optional[float]
    error: Optional[str]


class HeadingSubscription(ABC):
    @abstractmethod
    def remove(self) -> None:
        """Stop delivering samples."""


class HeadingSensor(ABC):
    """Magnetometer delivering raw (x, y) samples."""

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def subscribe(self, interval_ms: int, callback: Callable[[float, float], None]) -> HeadingSubscription:
        ...


def heading_from_magnetometer(x: float, y: float, invert_axis: bool = False) -> float:
    """Convert a raw magnetometer sample to a compass heading.

    Some platforms report the y axis mirrored relative to the screen; for those
    the angle is reflected so that headings still grow clockwise.
    """
    angle = normalize_angle(math.degrees(math.atan2(y, x)))
    if invert_axis:
        angle = normalize_angle(360.0 - angle)
    return angle


ReadingListener = Callable[[QiblaReading], None]


class QiblaDirectionTracker:
    """Tracks the Qibla relative to where the device is pointing."""

    def __init__(
        self,
        location_provider: LocationProvider,
        heading_sensor: HeadingSensor,
        *,
        invert_axis: bool = False,
        location_timeout: float = LOCATION_TIMEOUT_SECONDS,
        interval_ms: int = HEADING_INTERVAL_MS,
    ) -> None:
        self._location_provider = location_provider
        self._heading_sensor = heading_sensor
        self._invert_axis = invert_axis
        self.location_timeout = location_timeout
        self.interval_ms = interval_ms

        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._subscription: Optional[HeadingSubscription] = None
        self._listeners: List[ReadingListener] = []
        self._generation = 0
        self._reset()

    def _reset(self) -> None:
        self._state = TrackerState.UNINITIALIZED
        self._heading = 0.0
        self._qibla_bearing: Optional[float] = None
        self._location: Optional[Coordinate] = None
        self._error: Optional[str] = None

    # ------------------------------------------------------------------
    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def heading(self) -> float:
        return self._heading

    @property
    def qibla_bearing(self) -> Optional[float]:
        return self._qibla_bearing

    @property
    def relative_direction(self) -> Optional[float]:
        if self._state is not TrackerState.READY or self._qibla_bearing is None:
            return None
        return normalize_angle(self._qibla_bearing - self._heading)

    @property
    def error(self) -> Optional[str]:
        return self._error

    def reading(self) -> QiblaReading:
        with self._lock:
            return self._snapshot()

    def add_listener(self, listener: ReadingListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    def start(self) -> Future:
        """Begin tracking; returns the future of the location fix."""
        with self._lock:
            if self._state is not TrackerState.UNINITIALIZED:
                raise RuntimeError(f"Tracker already started (state={self._state.value})")
            self._generation += 1
            generation = self._generation
            self._state = TrackerState.ACQUIRING_LOCATION
        LOGGER.info("Starting Qibla tracking")

        self._start_heading(generation)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="qibla")
        future = self._executor.submit(self._acquire_location, generation)
        return future

    def stop(self) -> None:
        """Tear down the heading subscription; nothing is delivered afterwards."""
        with self._lock:
            self._generation += 1
            subscription, self._subscription = self._subscription, None
            executor, self._executor = self._executor, None
            self._reset()
        if subscription is not None:
            try:
                subscription.remove()
            except Exception:
                LOGGER.exception("Error removing heading subscription")
        if executor is not None:
            executor.shutdown(wait=False)
        LOGGER.info("Qibla tracking stopped")

    # ------------------------------------------------------------------
    def _start_heading(self, generation: int) -> None:
        try:
            if not self._heading_sensor.is_available():
                raise SensorUnavailable("Magnetometer is not available on this device")
            subscription = self._heading_sensor.subscribe(
                self.interval_ms, lambda x, y: self._on_sample(generation, x, y)
            )
        except SensorUnavailable as exc:
            LOGGER.warning("%s", exc)
            self._fail(generation, TrackerState.SENSOR_ERROR, str(exc))
            return
        except Exception as exc:
            LOGGER.exception("Error setting up magnetometer")
            self._fail(generation, TrackerState.SENSOR_ERROR, f"Unable to access the compass: {exc}")
            return

        with self._lock:
            if generation == self._generation:
                self._subscription = subscription
                return
        subscription.remove()

    def _acquire_location(self, generation: int) -> Optional[Coordinate]:
        executor = self._executor
        try:
            if not self._location_provider.request_permission():
                raise PermissionDenied("Location permission was denied")
            if executor is None:
                return None
            fix = executor.submit(self._location_provider.get_current_coordinate)
            coordinate = fix.result(timeout=self.location_timeout)
        except PermissionDenied as exc:
            LOGGER.warning("%s", exc)
            self._fail(generation, TrackerState.LOCATION_ERROR, str(exc))
            return None
        except FutureTimeoutError:
            reason = f"Timed out after {self.location_timeout:g}s waiting for a location fix"
            LOGGER.warning("%s", reason)
            self._fail(generation, TrackerState.LOCATION_ERROR, reason)
            return None
        except Exception as exc:
            LOGGER.exception("Error acquiring location")
            self._fail(generation, TrackerState.LOCATION_ERROR, f"Unable to determine your location: {exc}")
            return None

        bearing = qibla_bearing(coordinate)
        with self._lock:
            if generation != self._generation:
                return None
            self._location = coordinate
            self._qibla_bearing = bearing
            if self._state is TrackerState.ACQUIRING_LOCATION:
                self._state = TrackerState.READY
            snapshot = self._snapshot()
        LOGGER.info("Qibla bearing from %s: %.2f degrees", coordinate, bearing)
        self._notify(snapshot)
        return coordinate

    def _on_sample(self, generation: int, x: float, y: float) -> None:
        heading = heading_from_magnetometer(x, y, self._invert_axis)
        with self._lock:
            if generation != self._generation:
                return
            self._heading = heading
            if self._state is not TrackerState.READY:
                return
            snapshot = self._snapshot()
        self._notify(snapshot)

    def _fail(self, generation: int, state: TrackerState, reason: str) -> None:
        with self._lock:
            if generation != self._generation:
                return
            # Error states are terminal until the tracker is restarted.
            if self._state in (TrackerState.LOCATION_ERROR, TrackerState.SENSOR_ERROR):
                return
            self._state = state
            self._error = reason
            snapshot = self._snapshot()
        self._notify(snapshot)

    def _snapshot(self) -> QiblaReading:
        return QiblaReading(
            state=self._state,
            heading=self._heading,
            qibla_bearing=self._qibla_bearing,
            relative_direction=self.relative_direction,
            location=self._location,
            distance_km=distance_to_kaaba(self._location) if self._location else None,
            error=self._error,
        )

    def _notify(self, reading: QiblaReading) -> None:
        for listener in list(self._listeners):
            try:
                listener(reading)
            except Exception:
                LOGGER.exception("Qibla listener failed")
