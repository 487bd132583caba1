from __future__ import annotations

import itertools
import logging
import math
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Protocol, Tuple

from ..core.config import NavConfig
from ..core.types import AnchorPlacement, CourseEstimate, GeoAnchor, RoutePoint, SpawnPoint
from ..utils.geo import bearing_deg, haversine_m, lla_to_enu, local_meters, normalize_signed

log = logging.getLogger(__name__)


class Pose(NamedTuple):
    position_enu: Tuple[float, float, float]
    yaw_deg: float


class AnchorRenderer(Protocol):
    """Rendering capability. The registry never touches a scene graph directly."""

    def create_anchor(self, pose: Pose) -> Optional[Any]: ...

    def place(self, handle: Any, pose: Pose, visible: bool, camera_relative: bool) -> None: ...

    def remove(self, handle: Any) -> None: ...


def direction_label(relative_deg: float, ahead_half_angle: float = 25.0, side_half_angle: float = 110.0) -> str:
    rel = abs(relative_deg)
    if rel <= ahead_half_angle:
        return "ahead"
    if rel <= side_half_angle:
        return "on right" if relative_deg > 0 else "on left"
    return "behind"


def hysteresis_visible(visible: bool, distance_m: float, show_radius_m: float, hide_radius_m: float) -> bool:
    """Two-threshold visibility: hidden anchors appear below ``show``, shown ones vanish above ``hide``."""
    if visible:
        return distance_m <= hide_radius_m
    return distance_m < show_radius_m


class GeoAnchorRegistry:
    """Virtual objects anchored at geographic coordinates around a fixed ENU origin.

    The origin is the first viewer position handed to :meth:`set_origin` (or to :meth:`tick`
    when none was set). Anchors spawned before it is known get their render handle lazily.
    """

    def __init__(self, cfg: Optional[NavConfig] = None, renderer: Optional[AnchorRenderer] = None) -> None:
        self.cfg = cfg or NavConfig()
        self.renderer = renderer
        self.origin: Optional[Tuple[float, float, float]] = None
        self.anchors: Dict[int, GeoAnchor] = {}
        self._ids = itertools.count(1)
        self._last_alt: Optional[float] = None

    def __len__(self) -> int:
        return len(self.anchors)

    def set_origin(self, lat: float, lon: float, alt: float = 0.0) -> None:
        if not math.isfinite(alt):
            log.warning("Origin altitude %s is not finite, using 0", alt)
            alt = 0.0
        self.origin = (lat, lon, alt)
        log.info("Anchor origin set at lat=%.6f lon=%.6f alt=%.1f", lat, lon, alt)

    def to_enu(self, coord: RoutePoint) -> Tuple[float, float]:
        if self.origin is None:
            raise ValueError("origin not set")
        if self.cfg.anchor_projection == "geodesic":
            e, n, _ = lla_to_enu(self.origin, (coord.lat, coord.lon, self.origin[2]))
            return e, n
        return local_meters(self.origin[:2], coord)

    def anchor_up(self, anchor: GeoAnchor, viewer_alt: float) -> float:
        """Height above the origin: origin altitude plus offsets, kept near the viewer."""
        assert self.origin is not None
        alt = self.origin[2] + self.cfg.global_height_offset_m + anchor.height_offset_m
        delta = self.cfg.max_vertical_delta_m
        alt = min(max(alt, viewer_alt - delta), viewer_alt + delta)
        return alt - self.origin[2]

    def spawn(
        self,
        coord: RoutePoint,
        name: str = "",
        height_offset_m: float = 0.0,
        camera_relative: bool = False,
    ) -> int:
        anchor_id = next(self._ids)
        anchor = GeoAnchor(
            id=anchor_id,
            coordinate=RoutePoint(*coord),
            name=name or f"Anchor {anchor_id}",
            height_offset_m=height_offset_m,
            camera_relative=camera_relative,
        )
        self.anchors[anchor_id] = anchor
        if self.origin is not None:
            self._ensure_handle(anchor, self.origin[2])
        log.debug("Spawned anchor %d (%s) at %.6f,%.6f", anchor_id, anchor.name, coord[0], coord[1])
        return anchor_id

    def spawn_all(self, points: Iterable[SpawnPoint], viewer: Optional[RoutePoint] = None) -> List[int]:
        """Spawn every enabled point, nearest to ``viewer`` first."""
        enabled = [p for p in points if p.enabled]
        if viewer is not None:
            enabled.sort(key=lambda p: haversine_m(viewer, (p.lat, p.lon)))
        ids = [
            self.spawn(RoutePoint(p.lat, p.lon), p.name, p.height_offset_m, p.camera_relative) for p in enabled
        ]
        if ids:
            log.info("Spawned %d configured anchors", len(ids))
        return ids

    def remove(self, anchor_id: int) -> None:
        anchor = self.anchors.pop(anchor_id)
        self._release(anchor)

    def clear(self) -> None:
        for anchor in self.anchors.values():
            self._release(anchor)
        self.anchors.clear()

    def _release(self, anchor: GeoAnchor) -> None:
        if self.renderer is None or anchor.handle is None:
            return
        try:
            self.renderer.remove(anchor.handle)
        except Exception as e:
            log.warning("Renderer failed to remove anchor %d: %s", anchor.id, e)
        anchor.handle = None

    def _ensure_handle(self, anchor: GeoAnchor, viewer_alt: float) -> None:
        if self.renderer is None or anchor.handle is not None:
            return
        e, n = self.to_enu(anchor.coordinate)
        pose = Pose((e, n, self.anchor_up(anchor, viewer_alt)), 0.0)
        try:
            anchor.handle = self.renderer.create_anchor(pose)
        except Exception as exc:
            log.warning("Renderer failed to create anchor %d: %s", anchor.id, exc)
            return
        if anchor.handle is None:
            log.warning("Renderer returned no handle for anchor %d", anchor.id)

    def _finite_alt(self, alt: float) -> float:
        """Last finite viewer altitude stands in for a missing one."""
        if math.isfinite(alt):
            self._last_alt = alt
            return alt
        if self._last_alt is not None:
            return self._last_alt
        return self.origin[2] if self.origin is not None else 0.0

    def _facing_yaw(self, anchor: GeoAnchor, viewer: RoutePoint) -> float:
        flip = 180.0 if self.cfg.facing_flip else 0.0
        if anchor.camera_relative:
            # in the viewer frame: turned to face the camera
            return normalize_signed(180.0 + self.cfg.facing_extra_yaw_deg + flip)
        # yaw-only billboard
        base = bearing_deg(viewer, anchor.coordinate)
        return normalize_signed(base + self.cfg.facing_extra_yaw_deg + flip)

    def tick(
        self,
        viewer: RoutePoint,
        viewer_alt: float,
        course: CourseEstimate,
        fallback_heading_deg: float = 0.0,
    ) -> List[AnchorPlacement]:
        """Update visibility and placement of every anchor for the current viewer position.

        World anchors use show/hide hysteresis. Of the camera-relative anchors only the
        nearest is visible. Directions are relative to the course, or to
        ``fallback_heading_deg`` when there is none.
        """
        if self.origin is None:
            self.set_origin(viewer.lat, viewer.lon, viewer_alt)
        viewer_alt = self._finite_alt(viewer_alt)
        heading = course.course_deg if course.has_course else fallback_heading_deg

        distances = {aid: haversine_m(viewer, a.coordinate) for aid, a in self.anchors.items()}
        camera_ids = [aid for aid, a in self.anchors.items() if a.camera_relative]
        nearest_camera = min(camera_ids, key=lambda aid: distances[aid]) if camera_ids else None

        placements: List[AnchorPlacement] = []
        for aid, anchor in self.anchors.items():
            dist = distances[aid]
            if anchor.camera_relative:
                anchor.visible = aid == nearest_camera
            else:
                anchor.visible = hysteresis_visible(
                    anchor.visible, dist, self.cfg.show_radius_m, self.cfg.hide_radius_m
                )

            e, n = self.to_enu(anchor.coordinate)
            pose = Pose((e, n, self.anchor_up(anchor, viewer_alt)), self._facing_yaw(anchor, viewer))
            relative = normalize_signed(bearing_deg(viewer, anchor.coordinate) - heading)
            direction = direction_label(relative, self.cfg.ahead_half_angle_deg, self.cfg.side_half_angle_deg)
            placements.append(
                AnchorPlacement(
                    anchor_id=aid,
                    position_enu=pose.position_enu,
                    visible=anchor.visible,
                    facing_yaw_deg=pose.yaw_deg,
                    distance_m=dist,
                    direction=direction,
                    label=f"{anchor.name} — {int(round(dist))} m {direction}",
                )
            )

            if self.renderer is None:
                continue
            self._ensure_handle(anchor, viewer_alt)
            if anchor.handle is None:
                continue
            try:
                self.renderer.place(anchor.handle, pose, anchor.visible, anchor.camera_relative)
            except Exception as exc:
                log.warning("Renderer failed to place anchor %d: %s", aid, exc)
        return placements
