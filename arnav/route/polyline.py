"""Encoded polyline codec (signed varint deltas, 5-bit chunks offset by 63, 1e-5 precision)."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from ..core.types import RoutePoint

log = logging.getLogger(__name__)

_PRECISION = 1e5


def _read_varint(encoded: str, index: int) -> Tuple[Optional[int], int]:
    """Read one zig-zag varint starting at ``index``. Returns (value or None, next index)."""
    result = 0
    shift = 0
    length = len(encoded)
    while True:
        if index >= length:
            return None, index
        b = ord(encoded[index]) - 63
        index += 1
        if b < 0 or b > 0x3F:
            return None, index
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: Optional[str]) -> List[RoutePoint]:
    """Decode an encoded polyline into RoutePoints.

    Malformed input (truncated chunk, character outside the alphabet, dangling latitude)
    yields an empty list rather than an exception: the string comes off the network.
    """
    if not encoded:
        return []
    points: List[RoutePoint] = []
    index = 0
    lat = 0
    lon = 0
    while index < len(encoded):
        dlat, index = _read_varint(encoded, index)
        if dlat is None:
            log.warning("Malformed polyline (bad latitude chunk at %d)", index)
            return []
        dlon, index = _read_varint(encoded, index)
        if dlon is None:
            log.warning("Malformed polyline (bad longitude chunk at %d)", index)
            return []
        lat += dlat
        lon += dlon
        points.append(RoutePoint(lat / _PRECISION, lon / _PRECISION))
    return points


def _write_varint(value: int, out: List[str]) -> None:
    v = ~(value << 1) if value < 0 else value << 1
    while v >= 0x20:
        out.append(chr((0x20 | (v & 0x1F)) + 63))
        v >>= 5
    out.append(chr(v + 63))


def encode_polyline(points: Iterable[Tuple[float, float]]) -> str:
    """Encode (lat, lon) pairs into the same compact format."""
    out: List[str] = []
    prev_lat = 0
    prev_lon = 0
    for lat, lon in points:
        ilat = int(round(lat * _PRECISION))
        ilon = int(round(lon * _PRECISION))
        _write_varint(ilat - prev_lat, out)
        _write_varint(ilon - prev_lon, out)
        prev_lat, prev_lon = ilat, ilon
    return "".join(out)
