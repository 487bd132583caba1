from __future__ import annotations

from math import atan2, cos, degrees, isfinite, radians, sin, sqrt
from typing import Optional, Tuple

from geographiclib.geodesic import Geodesic

EARTH_RADIUS_M = 6_371_000.0

# Equirectangular scale factors (metres per degree).
M_PER_DEG_LAT = 110_574.0
M_PER_DEG_LON_EQUATOR = 111_320.0


def haversine_m(p0: Tuple[float, float], p1: Tuple[float, float]) -> float:
    """Great-circle distance in metres between p0(lat,lon) and p1(lat,lon)."""
    lat1, lon1 = map(radians, p0)
    lat2, lon2 = map(radians, p1)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2.0) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2.0) ** 2
    if not isfinite(a):
        return float("nan")
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2.0 * atan2(sqrt(a), sqrt(1.0 - a))


def bearing_deg(p0: Tuple[float, float], p1: Tuple[float, float]) -> float:
    """Initial bearing from p0(lat,lon) to p1(lat,lon) in degrees [0,360)."""
    lat1, lon1 = map(radians, p0)
    lat2, lon2 = map(radians, p1)
    dlon = lon2 - lon1
    x = sin(dlon) * cos(lat2)
    y = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)
    brng = (degrees(atan2(x, y)) + 360.0) % 360.0
    # (x + 360) % 360 can round up to exactly 360.0 for tiny negative angles
    return 0.0 if brng >= 360.0 else brng


def normalize_signed(angle_deg: float) -> float:
    """Wrap an angle in degrees to (-180, 180]."""
    a = (angle_deg + 180.0) % 360.0 - 180.0
    return 180.0 if a == -180.0 else a


def local_meters(origin: Tuple[float, float], p: Tuple[float, float]) -> Tuple[float, float]:
    """Equirectangular (east, north) offset in metres of p from origin.

    Valid for short ranges (a few km). Not a geodesic: use :func:`lla_to_enu` when
    accuracy over longer baselines matters.
    """
    east = (p[1] - origin[1]) * M_PER_DEG_LON_EQUATOR * cos(radians(origin[0]))
    north = (p[0] - origin[0]) * M_PER_DEG_LAT
    return east, north


def lla_to_enu(
    home_lla: Tuple[float, float, Optional[float]], target_lla: Tuple[float, float, Optional[float]]
) -> Tuple[float, float, float]:
    """Convert LLA to local ENU with origin at home using GeographicLib.

    Args:
        home_lla: (lat, lon, alt) in degrees/meters.
        target_lla: (lat, lon, alt) in degrees/meters.

    Returns:
        (e, n, u) in meters.
    """
    geod = Geodesic.WGS84
    g = geod.Inverse(home_lla[0], home_lla[1], target_lla[0], target_lla[1])
    s12 = g["s12"]
    azi1 = radians(g["azi1"])  # forward azimuth from home to target
    north = s12 * cos(azi1)
    east = s12 * sin(azi1)
    up = (target_lla[2] if target_lla[2] is not None else 0.0) - (
        home_lla[2] if home_lla[2] is not None else 0.0
    )
    return float(east), float(north), float(up)
