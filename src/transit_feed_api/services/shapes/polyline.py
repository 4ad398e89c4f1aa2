"""Encoded polyline format (5 decimal places, delta + 5-bit chunk packing).

Points are written latitude first. Each value is rounded to 1e-5, delta'd
against the previous point, zig-zag encoded, split into 5-bit chunks with a
continuation bit, and offset by 63 into printable ASCII.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

PRECISION = 5
_FACTOR = 10**PRECISION


class PolylineDecodeError(ValueError):
    """Raised when an encoded string is truncated or contains invalid characters."""


def _encode_value(value: int, out: list[str]) -> None:
    value = ~(value << 1) if value < 0 else value << 1
    while value >= 0x20:
        out.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    out.append(chr(value + 63))


def encode_polyline(coords: Iterable[Sequence[float]]) -> str:
    """Encode ``(lon, lat)`` pairs into a polyline string."""
    out: list[str] = []
    prev_lat = prev_lon = 0
    for lon, lat in coords:
        lat_i = round(lat * _FACTOR)
        lon_i = round(lon * _FACTOR)
        _encode_value(lat_i - prev_lat, out)
        _encode_value(lon_i - prev_lon, out)
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(out)


def decode_polyline(encoded: str) -> list[tuple[float, float]]:
    """Decode a polyline string back into ``(lon, lat)`` pairs."""
    coords: list[tuple[float, float]] = []
    index = 0
    lat = lon = 0
    length = len(encoded)

    def next_value() -> int:
        nonlocal index
        result = 0
        shift = 0
        while True:
            if index >= length:
                msg = "Truncated polyline string"
                raise PolylineDecodeError(msg)
            chunk = ord(encoded[index]) - 63
            index += 1
            if not 0 <= chunk < 64:
                msg = f"Invalid polyline character at {index - 1}"
                raise PolylineDecodeError(msg)
            result |= (chunk & 0x1F) << shift
            shift += 5
            if chunk < 0x20:
                break
        return ~(result >> 1) if result & 1 else result >> 1

    while index < length:
        lat += next_value()
        lon += next_value()
        coords.append((lon / _FACTOR, lat / _FACTOR))
    return coords
