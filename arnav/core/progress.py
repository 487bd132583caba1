from __future__ import annotations

import bisect
import logging
import math
from collections import deque
from typing import Deque, Optional, Sequence, Tuple

import numpy as np

from ..utils.geo import M_PER_DEG_LAT, M_PER_DEG_LON_EQUATOR
from .types import PathTable, RoutePoint, StepRange

log = logging.getLogger(__name__)


def project_onto_path(path: PathTable, fix: Tuple[float, float]) -> Tuple[float, float, int]:
    """Project a fix onto the path polyline.

    Every segment is expressed in local metres around the fix and the fix is projected onto
    it with the parameter clamped to [0, 1]; the closest segment wins.

    Returns:
        (along_m, distance_m, segment_index). Paths with fewer than two points give
        along 0 and the distance to the single point (0 when empty).
    """
    n = len(path)
    if n == 0:
        return 0.0, 0.0, 0
    lat0, lon0 = fix
    kx = M_PER_DEG_LON_EQUATOR * math.cos(math.radians(lat0))
    x = (path.lons - lon0) * kx
    y = (path.lats - lat0) * M_PER_DEG_LAT
    if n == 1:
        return 0.0, float(math.hypot(x[0], y[0])), 0

    ax, ay = x[:-1], y[:-1]
    dx, dy = x[1:] - ax, y[1:] - ay
    seg2 = dx * dx + dy * dy
    dot = -(ax * dx + ay * dy)
    # zero-length segments collapse to their first point
    t = np.divide(dot, seg2, out=np.zeros_like(seg2), where=seg2 > 0.0)
    np.clip(t, 0.0, 1.0, out=t)
    px = ax + t * dx
    py = ay + t * dy
    dist = np.hypot(px, py)
    i = int(np.argmin(dist))
    # interpolate in the cumulative frame so t=1 lands exactly on the next point's along
    along = float(path.along[i] + (path.along[i + 1] - path.along[i]) * t[i])
    return along, float(dist[i]), i


def lookahead_point(path: PathTable, along_m: float, ahead_m: float) -> Optional[RoutePoint]:
    """Path position ``ahead_m`` beyond ``along_m``, clamped to the path ends."""
    if len(path) == 0:
        return None
    target = along_m + ahead_m
    cum = path.cumulative
    if target <= 0.0 or len(path) == 1:
        return path.points[0]
    if target >= cum[-1]:
        return path.points[-1]
    idx = bisect.bisect_left(cum, target)
    idx = min(max(idx, 1), len(path) - 1)
    a_along, b_along = cum[idx - 1], cum[idx]
    span = b_along - a_along
    t = 0.0 if span == 0.0 else (target - a_along) / span
    a, b = path.points[idx - 1], path.points[idx]
    return RoutePoint(a.lat + (b.lat - a.lat) * t, a.lon + (b.lon - a.lon) * t)


class ProgressTracker:
    """Tracks smoothed along-distance and the current step of one route."""

    def __init__(
        self,
        path: PathTable,
        ranges: Sequence[StepRange],
        window_size: int = 4,
        step_tolerance_m: float = 0.5,
        step_advance_m: float = 8.0,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self.path = path
        self.ranges = list(ranges)
        self.step_tolerance_m = step_tolerance_m
        self.step_advance_m = step_advance_m
        self.along_history: Deque[float] = deque(maxlen=window_size)
        self.smoothed_along = 0.0
        self.current_step_index = 0
        self.last_raw_along = 0.0
        self.last_offset_m = 0.0

    @property
    def step_count(self) -> int:
        return len(self.ranges)

    def raw_along(self, fix: Tuple[float, float]) -> float:
        along, offset, _ = project_onto_path(self.path, fix)
        self.last_raw_along = along
        self.last_offset_m = offset
        return along

    def smooth(self, raw_along: float) -> float:
        self.along_history.append(raw_along)
        self.smoothed_along = sum(self.along_history) / len(self.along_history)
        return self.smoothed_along

    def aligned_step_index(self, along: float) -> int:
        """First step whose end lies beyond ``along - tolerance``; step count when past all."""
        for i, rng in enumerate(self.ranges):
            if rng.end_along > along - self.step_tolerance_m:
                return i
        return len(self.ranges)

    def _maybe_advance(self) -> None:
        idx = self.current_step_index
        if idx >= len(self.ranges):
            return
        step_end = self.ranges[idx].end_along
        along = self.smoothed_along
        if along >= step_end - 1.0 or max(0.0, step_end - along) <= self.step_advance_m:
            self.current_step_index = idx + 1
            log.info("Step %d complete at %.1f m, now step %d", idx, along, self.current_step_index)

    def update(self, fix: Tuple[float, float]) -> Tuple[float, int]:
        """Feed one fix. Returns (smoothed_along, current_step_index)."""
        self.smooth(self.raw_along(fix))
        aligned = self.aligned_step_index(self.smoothed_along)
        if aligned > self.current_step_index:
            self.current_step_index = aligned
        self._maybe_advance()
        return self.smoothed_along, self.current_step_index

    def reset(self) -> None:
        self.along_history.clear()
        self.smoothed_along = 0.0
        self.current_step_index = 0
        self.last_raw_along = 0.0
        self.last_offset_m = 0.0
