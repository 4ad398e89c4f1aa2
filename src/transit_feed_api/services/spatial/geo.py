"""Great-circle distance and stop proximity filters."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Literal, NamedTuple, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_MI = 3958.8

DistanceUnit = Literal["km", "mi"]

_RADIUS = {"km": EARTH_RADIUS_KM, "mi": EARTH_RADIUS_MI}


class Positioned(Protocol):
    @property
    def lat(self) -> float: ...

    @property
    def lon(self) -> float: ...


class GeoPoint(NamedTuple):
    lat: float
    lon: float


P = TypeVar("P", bound=Positioned)


def distance(a: Positioned, b: Positioned, unit: DistanceUnit = "km") -> float:
    """Haversine distance between two points on a sphere of mean Earth radius."""
    try:
        radius = _RADIUS[unit]
    except KeyError:
        msg = f"Unknown distance unit: {unit!r}"
        raise ValueError(msg) from None

    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = phi2 - phi1
    d_lambda = math.radians(b.lon - a.lon)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * radius * math.asin(min(1.0, math.sqrt(h)))


def nearest(query: Positioned, candidates: Iterable[P], unit: DistanceUnit = "km") -> P | None:
    """Return the candidate closest to ``query``, or None for no candidates.

    Ties keep the first candidate in iteration order.
    """
    best: P | None = None
    best_distance = math.inf
    for candidate in candidates:
        d = distance(candidate, query, unit)
        if d < best_distance:
            best = candidate
            best_distance = d
    return best


def within_radius(
    query: Positioned,
    candidates: Iterable[P],
    radius: float,
    unit: DistanceUnit = "km",
) -> list[P]:
    """Candidates strictly closer than ``radius``, in input order."""
    return [c for c in candidates if distance(c, query, unit) < radius]


def to_km(value: float, unit: DistanceUnit) -> float:
    return value * EARTH_RADIUS_KM / _RADIUS[unit]


def from_km(value_km: float, unit: DistanceUnit) -> float:
    return value_km * _RADIUS[unit] / EARTH_RADIUS_KM


def bounding_box(lat: float, lon: float, radius_km: float) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lon_min, lon_max) enclosing a radius.

    Slightly larger than the true circle, so it is safe as an index
    pre-filter ahead of the exact haversine check. Does not wrap across the
    antimeridian.
    """
    lat_delta = radius_km / 111.0
    lon_delta = radius_km / max(0.001, 111.0 * math.cos(math.radians(lat)))
    return (
        lat - lat_delta,
        lat + lat_delta,
        lon - lon_delta,
        lon + lon_delta,
    )
