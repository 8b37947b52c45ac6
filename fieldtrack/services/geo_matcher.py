"""Nearest known-location matching for GPS fixes."""

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

EARTH_RADIUS_KM = 6371.0  # mean Earth radius
DEFAULT_RADIUS_KM = 0.1


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Candidate:
    """A known location a GPS fix can be matched against."""

    id: int
    latitude: float | None
    longitude: float | None


def _coordinate(value, limit: float) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or abs(number) > limit:
        return None
    return number


def valid_point(latitude, longitude) -> GeoPoint | None:
    """Return a GeoPoint when both coordinates are usable, else None."""

    lat = _coordinate(latitude, 90.0)
    lon = _coordinate(longitude, 180.0)
    if lat is None or lon is None:
        return None
    return GeoPoint(lat, lon)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers between two lat/lon points."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def distance_to(point: GeoPoint, candidate: Candidate) -> float | None:
    location = valid_point(candidate.latitude, candidate.longitude)
    if location is None:
        return None
    return haversine_km(
        point.latitude, point.longitude, location.latitude, location.longitude
    )


def nearest(
    point: GeoPoint, candidates: Iterable[Candidate]
) -> tuple[Candidate, float] | None:
    """Closest candidate with usable coordinates and its distance in km.

    Ties keep the first candidate in iteration order.
    """

    best: tuple[Candidate, float] | None = None
    for candidate in candidates:
        distance = distance_to(point, candidate)
        if distance is None:
            continue
        if best is None or distance < best[1]:
            best = (candidate, distance)
    return best


def match(
    point: GeoPoint | None,
    candidates: Iterable[Candidate],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> int | None:
    """Id of the nearest candidate within ``radius_km`` of ``point``, or None.

    Invalid points and candidates without coordinates never match; nothing
    here raises.
    """

    if point is None:
        return None
    point = valid_point(point.latitude, point.longitude)
    if point is None:
        return None

    found = nearest(point, candidates)
    if found is None:
        return None

    candidate, distance = found
    if distance <= radius_km:
        return candidate.id
    return None


def candidates_from_clients(clients: Sequence) -> list[Candidate]:
    return [
        Candidate(id=client.id, latitude=client.latitude, longitude=client.longitude)
        for client in clients
    ]
