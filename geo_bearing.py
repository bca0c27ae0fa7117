"""Spherical-earth bearing and distance helpers used for the Qibla."""
from __future__ import annotations

import math
from dataclasses import dataclass

from errors import InputError

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise InputError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InputError(f"Longitude out of range: {self.longitude}")


KAABA = Coordinate(latitude=21.4225, longitude=39.8262)


def normalize_angle(angle: float) -> float:
    """Fold *angle* into the [0, 360) range."""
    normalized = ((angle % 360.0) + 360.0) % 360.0
    # Tiny negative inputs round up to exactly 360.0
    if normalized >= 360.0:
        return 0.0
    return normalized


def bearing(origin: Coordinate, target: Coordinate) -> float:
    """Initial great-circle bearing from *origin* to *target*, 0 = true north."""
    phi1 = math.radians(origin.latitude)
    phi2 = math.radians(target.latitude)
    delta_lambda = math.radians(target.longitude - origin.longitude)

    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    return normalize_angle(math.degrees(math.atan2(y, x)))


def distance_km(origin: Coordinate, target: Coordinate) -> float:
    """Haversine distance between two coordinates in kilometres."""
    phi1 = math.radians(origin.latitude)
    phi2 = math.radians(target.latitude)
    delta_phi = math.radians(target.latitude - origin.latitude)
    delta_lambda = math.radians(target.longitude - origin.longitude)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def qibla_bearing(coordinate: Coordinate) -> float:
    return bearing(coordinate, KAABA)


def distance_to_kaaba(coordinate: Coordinate) -> float:
    return distance_km(coordinate, KAABA)
