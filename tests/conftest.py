from __future__ import annotations

import math
from typing import List, Optional

import pytest

from arnav.core.types import RoutePoint, Step

BASE = RoutePoint(12.9716, 77.5946)

# spherical metres per degree of latitude, matching haversine_m
M_PER_DEG = 6_371_000.0 * math.pi / 180.0


def offset(p: RoutePoint, north_m: float = 0.0, east_m: float = 0.0) -> RoutePoint:
    return RoutePoint(
        p.lat + north_m / M_PER_DEG,
        p.lon + east_m / (M_PER_DEG * math.cos(math.radians(p.lat))),
    )


def make_step(start: RoutePoint, end: RoutePoint, hint: Optional[str] = None, html: Optional[str] = None) -> Step:
    return Step(start=start, end=end, maneuver_hint=hint, instruction_html=html)


@pytest.fixture
def three_step_route() -> List[Step]:
    """100 m north, 60 m west (turn-left), 80 m north."""
    a = BASE
    b = offset(a, north_m=100.0)
    c = offset(b, east_m=-60.0)
    d = offset(c, north_m=80.0)
    return [
        make_step(a, b, html="Head <b>north</b>"),
        make_step(b, c, hint="turn-left", html="Turn <b>left</b> onto Church St"),
        make_step(c, d, html="Continue onto MG Road"),
    ]
