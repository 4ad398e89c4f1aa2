"""Shape grouping, Douglas-Peucker reduction, and path encoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from shapely.geometry import LineString

from transit_feed_api.services.shapes.polyline import encode_polyline

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

# Degrees; roughly one metre at the equator
DEFAULT_TOLERANCE = 1.0e-5


@dataclass(frozen=True)
class ShapePointRow:
    shape_id: str
    lat: float
    lon: float
    sequence: int


@dataclass(frozen=True)
class ShapePath:
    shape_id: str
    path: str


def group_shape_points(
    points: Iterable[ShapePointRow],
) -> Iterator[tuple[str, list[tuple[float, float]]]]:
    """Split an ordered point stream into one ``(lon, lat)`` run per shape.

    Input must already be sorted by ``(shape_id, sequence)``. The last run is
    yielded after the stream ends.
    """
    current: str | None = None
    run: list[tuple[float, float]] = []
    for point in points:
        if point.shape_id != current:
            if run:
                yield current, run  # type: ignore[misc]
            current = point.shape_id
            run = []
        run.append((point.lon, point.lat))

    if run:
        yield current, run  # type: ignore[misc]


def simplify_path(
    coords: Sequence[tuple[float, float]], tolerance: float = DEFAULT_TOLERANCE
) -> list[tuple[float, float]]:
    """Douglas-Peucker reduction of a ``(lon, lat)`` path.

    The endpoints are always kept and every dropped point lies within
    ``tolerance`` degrees of the reduced path.
    """
    if len(coords) <= 2:
        return list(coords)
    line = LineString(coords)
    simplified = line.simplify(tolerance, preserve_topology=False)
    reduced = [(x, y) for x, y in simplified.coords]
    # GEOS may collapse a degenerate (zero-length) path to an empty line
    if len(reduced) < 2:
        return [tuple(coords[0]), tuple(coords[-1])]  # type: ignore[list-item]
    return reduced


def build_shape_paths(
    points: Iterable[ShapePointRow], tolerance: float = DEFAULT_TOLERANCE
) -> list[ShapePath]:
    """Simplify and encode every shape in an ordered point stream."""
    return [
        ShapePath(shape_id=shape_id, path=encode_polyline(simplify_path(run, tolerance)))
        for shape_id, run in group_shape_points(points)
    ]
