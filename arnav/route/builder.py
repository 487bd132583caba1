"""Turns routing steps into a resampled path with per-step along-distance ranges."""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Sequence, Tuple

from ..core.types import PathTable, Route, RoutePoint, Step, StepRange
from ..utils.geo import haversine_m
from .polyline import decode_polyline

log = logging.getLogger(__name__)

DEFAULT_RESAMPLE_INTERVAL_M = 5.0
DEFAULT_DEDUP_THRESHOLD_M = 12.0


def step_geometry(step: Step) -> List[RoutePoint]:
    """Decoded step polyline, or the straight start->end segment when it is absent or too short."""
    pts = decode_polyline(step.encoded_geometry)
    if len(pts) >= 2:
        return pts
    if step.encoded_geometry:
        log.debug("Step polyline unusable (%d points), falling back to start/end", len(pts))
    return [RoutePoint(*step.start), RoutePoint(*step.end)]


def resample_segment(a: RoutePoint, b: RoutePoint, interval_m: float) -> List[RoutePoint]:
    """Points from a to b inclusive, spaced at most ``interval_m`` apart (linear lat/lon)."""
    seg = haversine_m(a, b)
    n = max(1, int(math.ceil(seg / interval_m)))
    pts = [RoutePoint(a.lat + (b.lat - a.lat) * j / n, a.lon + (b.lon - a.lon) * j / n) for j in range(n)]
    # end exactly on b so a following step starting at b is recognised as a duplicate
    pts.append(RoutePoint(*b))
    return pts


def build_path(
    steps: Sequence[Step], resample_interval_m: float = DEFAULT_RESAMPLE_INTERVAL_M
) -> Tuple[PathTable, List[StepRange]]:
    """Flatten and resample step geometries.

    Each step's range starts at its first geometry point; when that point coincides with the
    previous step's last point the two steps share it, so ``start_along`` of a step equals
    ``end_along`` of the one before it on a continuous route.
    """
    if resample_interval_m <= 0:
        raise ValueError("resample_interval_m must be positive")

    points: List[RoutePoint] = []
    cumulative: List[float] = []
    ranges: List[StepRange] = []

    for step in steps:
        geom = step_geometry(step)
        start_index = len(points)
        first = True
        for a, b in zip(geom[:-1], geom[1:]):
            sub = resample_segment(a, b, resample_interval_m)
            if not first:
                sub = sub[1:]
            for p in sub:
                if points and p == points[-1]:
                    if first:
                        # step begins on the previous step's last point
                        start_index = len(points) - 1
                        first = False
                    continue
                cumulative.append(cumulative[-1] + haversine_m(points[-1], p) if points else 0.0)
                points.append(p)
                first = False
        end_index = len(points) - 1
        start_index = min(start_index, end_index)
        ranges.append(StepRange(start_index, end_index, cumulative[start_index], cumulative[end_index]))

    return PathTable(points, cumulative), ranges


def dedup_steps(
    steps: Sequence[Step], ranges: Sequence[StepRange], threshold_m: float = DEFAULT_DEDUP_THRESHOLD_M
) -> Tuple[List[Step], List[StepRange]]:
    """Merge steps whose end lies within ``threshold_m`` of the last kept step's end.

    The merged step keeps its own start, takes the later end, and adopts the later step's
    maneuver hint if it had none.
    """
    if len(steps) != len(ranges):
        raise ValueError("steps and ranges must be parallel")
    if len(steps) <= 1 or threshold_m <= 0:
        return list(steps), list(ranges)

    kept_steps: List[Step] = [steps[0]]
    kept_ranges: List[StepRange] = [ranges[0]]
    for step, rng in zip(steps[1:], ranges[1:]):
        last = kept_ranges[-1]
        if abs(rng.end_along - last.end_along) <= threshold_m:
            kept_ranges[-1] = replace(last, end_index=rng.end_index, end_along=rng.end_along)
            if not kept_steps[-1].maneuver_hint and step.maneuver_hint:
                kept_steps[-1] = kept_steps[-1].model_copy(update={"maneuver_hint": step.maneuver_hint})
        else:
            kept_steps.append(step)
            kept_ranges.append(rng)

    if len(kept_steps) != len(steps):
        log.debug("Merged %d steps into %d", len(steps), len(kept_steps))
    return kept_steps, kept_ranges


def build_route(
    steps: Sequence[Step],
    resample_interval_m: float = DEFAULT_RESAMPLE_INTERVAL_M,
    dedup_threshold_m: float = DEFAULT_DEDUP_THRESHOLD_M,
) -> Route:
    path, ranges = build_path(steps, resample_interval_m)
    kept_steps, kept_ranges = dedup_steps(steps, ranges, dedup_threshold_m)
    route = Route(path=path, steps=kept_steps, ranges=kept_ranges)
    log.info(
        "Route built: %d points, %.1f m, %d steps (%d before merge)",
        len(path),
        path.length_m,
        len(kept_steps),
        len(steps),
    )
    return route
