"""Shape simplification and polyline encoding."""

from transit_feed_api.services.shapes.polyline import (
    PolylineDecodeError,
    decode_polyline,
    encode_polyline,
)
from transit_feed_api.services.shapes.simplifier import (
    ShapePath,
    ShapePointRow,
    build_shape_paths,
    group_shape_points,
    simplify_path,
)

__all__ = [
    "PolylineDecodeError",
    "ShapePath",
    "ShapePointRow",
    "build_shape_paths",
    "decode_polyline",
    "encode_polyline",
    "group_shape_points",
    "simplify_path",
]
