from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..anchors.proximity import ProximitySpawner
from ..anchors.registry import AnchorRenderer, GeoAnchorRegistry
from ..route.builder import build_route
from ..sensors.course import CourseEstimator
from ..utils.geo import bearing_deg, haversine_m
from .arrival import ARRIVED_TEXT, ArrivalTracker
from .config import NavConfig
from .guidance import (
    AngleSmoother,
    GuidanceGenerator,
    UiArrow,
    arrow_target_angle,
    format_distance,
    format_preview,
)
from .progress import ProgressTracker, lookahead_point
from .types import GpsData, LocationStatus, NavigationFrame, Route, RoutePoint, Step

log = logging.getLogger(__name__)

PROCEED_TEXT = "Proceed to destination"


class State(Enum):
    IDLE = 0
    WAITING_FOR_FIX = 1
    NAVIGATING = 2
    ARRIVED = 3


class Navigator:
    """Runs every per-tick component against the active route.

    A new route replaces path, steps, ranges, progress, guidance and arrival state in one go.
    Ticks whose sample is not ``RUNNING`` are ignored.
    """

    def __init__(
        self,
        cfg: Optional[NavConfig] = None,
        renderer: Optional[AnchorRenderer] = None,
        on_arrived: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.cfg = cfg or NavConfig()
        self.on_arrived = on_arrived
        self.state = State.IDLE
        self.registry = GeoAnchorRegistry(self.cfg, renderer)
        self.course = CourseEstimator(self.cfg.course_window_s, self.cfg.min_speed_for_course_mps)
        self.proximity: Optional[ProximitySpawner] = None
        if self.cfg.proximity_enabled:
            self.proximity = ProximitySpawner(
                self.registry, self.cfg.spawn_points, self.cfg.spawn_within_m, self.cfg.despawn_beyond_m
            )
        self.route: Optional[Route] = None
        self.tracker: Optional[ProgressTracker] = None
        self.guidance: Optional[GuidanceGenerator] = None
        self.arrival: Optional[ArrivalTracker] = None
        self.destination: Optional[RoutePoint] = None
        self.destination_name = "Destination"
        self.arrow = AngleSmoother(self.cfg.guidance_smoothing_s)
        self.ui_arrow = UiArrow(self.cfg.arrow_smoothing)
        self.last_gps: Optional[GpsData] = None
        self.last_frame: Optional[NavigationFrame] = None
        self.heading_deg = 0.0
        self._pending_spawn = False

    @property
    def origin(self):
        return self.registry.origin

    def load_route(
        self,
        steps: Sequence[Step],
        destination: Optional[RoutePoint] = None,
        destination_name: str = "Destination",
    ) -> Route:
        route = build_route(steps, self.cfg.resample_interval_m, self.cfg.dedup_step_m)
        tracker = ProgressTracker(
            route.path,
            route.ranges,
            self.cfg.along_window_size,
            self.cfg.step_tolerance_m,
            self.cfg.step_advance_m,
        )
        guidance = GuidanceGenerator(
            route, self.cfg.turn_announcement_m, self.cfg.preview_segment_limit, self.cfg.step_tolerance_m
        )
        dest = RoutePoint(*destination) if destination is not None else route.destination
        arrival = ArrivalTracker(
            dest,
            destination_name,
            self.cfg.destination_preview_m,
            self.cfg.destination_preview_hide_m,
            self.cfg.arrival_distance_m,
            on_arrived=self.on_arrived,
            on_world_marker=self._spawn_destination_marker,
        )

        self.registry.clear()
        if self.proximity is not None:
            self.proximity.active.clear()
            if self.cfg.proximity_include_destination:
                self.proximity.set_destination(dest, destination_name)

        self.route, self.tracker, self.guidance, self.arrival = route, tracker, guidance, arrival
        self.destination = dest
        self.destination_name = destination_name
        self.arrow = AngleSmoother(self.cfg.guidance_smoothing_s)
        self.ui_arrow = UiArrow(self.cfg.arrow_smoothing)
        self._pending_spawn = self.cfg.spawn_on_route_ready and not self.cfg.proximity_enabled
        self.state = State.IDLE if route.is_empty else State.WAITING_FOR_FIX
        log.info("Route loaded towards %s (%d steps)", destination_name, len(route.steps))
        return route

    def _spawn_destination_marker(self, point: RoutePoint, name: str) -> None:
        self.registry.spawn(point, name)
        log.info("Destination marker spawned for %s", name)

    def _fallback_heading(self, viewer: RoutePoint, along: float, device_heading_deg: Optional[float]) -> float:
        if device_heading_deg is not None:
            return device_heading_deg
        if self.route is not None and not self.route.is_empty:
            ahead = lookahead_point(self.route.path, along, self.cfg.lookahead_m)
            if ahead is not None and haversine_m(viewer, ahead) > 0.5:
                return bearing_deg(viewer, ahead)
        return self.heading_deg

    def tick(
        self, sample: Optional[GpsData], dt: float, device_heading_deg: Optional[float] = None
    ) -> Optional[NavigationFrame]:
        if sample is None or sample.status != LocationStatus.RUNNING:
            log.debug("Skipping tick: no running fix")
            return None
        if not (math.isfinite(sample.lat) and math.isfinite(sample.lon)):
            log.warning("Skipping tick: non-finite fix lat=%s lon=%s", sample.lat, sample.lon)
            return None
        self.last_gps = sample
        viewer = sample.point

        self.course.push_fix(sample.lat, sample.lon, sample.stamp)
        course = self.course.estimate()

        if self.registry.origin is None:
            self.registry.set_origin(sample.lat, sample.lon, sample.alt)
        if self._pending_spawn:
            self.registry.spawn_all(self.cfg.spawn_points, viewer)
            self._pending_spawn = False
        if self.proximity is not None:
            self.proximity.update(viewer)

        frame = NavigationFrame(stamp=sample.stamp, course=course)
        along = 0.0
        if self.route is not None and not self.route.is_empty:
            if self.state == State.WAITING_FOR_FIX:
                self.state = State.NAVIGATING
            along, step_index = self.tracker.update((sample.lat, sample.lon))
            frame.along_m = along
            frame.step_index = step_index
            self._guide(frame, viewer, along, step_index, dt)

        fallback = self._fallback_heading(viewer, along, device_heading_deg)
        self.heading_deg = course.course_deg if course.has_course else fallback
        if self.route is not None and not self.route.is_empty:
            target = lookahead_point(self.route.path, along, self.cfg.lookahead_m)
            frame.ui_arrow_deg = self.ui_arrow.update(viewer, target, self.heading_deg, dt)

        frame.anchors = self.registry.tick(viewer, sample.alt, course, fallback)
        self.last_frame = frame
        log.debug("tick along=%.1f step=%d %s", frame.along_m, frame.step_index, frame.instruction)
        return frame

    def _guide(self, frame: NavigationFrame, viewer: RoutePoint, along: float, step_index: int, dt: float) -> None:
        if self.destination is not None:
            dist = haversine_m(viewer, self.destination)
            frame.distance_to_destination_m = dist
            frame.destination_text = format_distance(dist)
            self.arrival.update(dist)

        if self.arrival.arrived_fired:
            self.state = State.ARRIVED
            frame.arrived = True
            frame.instruction = ARRIVED_TEXT
            frame.arrow_yaw_deg = self.arrow.step(0.0, dt)
            return

        if step_index >= self.tracker.step_count:
            frame.instruction = PROCEED_TEXT
        else:
            frame.instruction = self.guidance.build_instruction(along)
        frame.preview = format_preview(self.guidance.build_preview(along))
        frame.threshold_turn = self.guidance.threshold_turn_text(along)
        frame.arrow_yaw_deg = self.arrow.step(arrow_target_angle(self.guidance.guidance_label(along)), dt)

    def anchor_labels(self) -> List[str]:
        if self.last_frame is None:
            return []
        return [a.label for a in self.last_frame.anchors if a.visible]

    def stop(self) -> None:
        """Drop the route and every anchor."""
        self.registry.clear()
        if self.proximity is not None:
            self.proximity.clear()
        self.route = self.tracker = self.guidance = self.arrival = None
        self.state = State.IDLE
