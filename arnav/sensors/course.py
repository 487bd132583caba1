from __future__ import annotations

from collections import deque
from typing import Deque, NamedTuple

from ..core.types import CourseEstimate
from ..utils.geo import bearing_deg, haversine_m


class GpsFix(NamedTuple):
    lat: float
    lon: float
    timestamp: float


class CourseEstimator:
    """Direction of travel from a time window of GPS fixes, used in place of a compass.

    The course is the bearing from the oldest to the newest fix in the window. Below
    ``min_speed_mps`` there is no course: the bearing between two nearly identical points
    is noise.
    """

    def __init__(self, window_s: float = 5.0, min_speed_mps: float = 0.5) -> None:
        self.window_s = float(window_s)
        self.min_speed_mps = float(min_speed_mps)
        self._fixes: Deque[GpsFix] = deque()

    def __len__(self) -> int:
        return len(self._fixes)

    def push_fix(self, lat: float, lon: float, timestamp: float) -> None:
        fix = GpsFix(lat, lon, timestamp)
        self._fixes.append(fix)
        while self._fixes and fix.timestamp - self._fixes[0].timestamp > self.window_s:
            self._fixes.popleft()

    def estimate(self) -> CourseEstimate:
        if len(self._fixes) < 2:
            return CourseEstimate(False, 0.0)
        first, last = self._fixes[0], self._fixes[-1]
        dist = haversine_m((first.lat, first.lon), (last.lat, last.lon))
        elapsed = max(0.001, last.timestamp - first.timestamp)
        if dist / elapsed < self.min_speed_mps:
            return CourseEstimate(False, 0.0)
        return CourseEstimate(True, bearing_deg((first.lat, first.lon), (last.lat, last.lon)))

    def clear(self) -> None:
        self._fixes.clear()
