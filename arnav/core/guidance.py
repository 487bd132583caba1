from __future__ import annotations

import math
import re
from typing import List, Optional, Tuple

from ..utils.geo import bearing_deg, normalize_signed
from .types import Route, RoutePoint, Step

GO_STRAIGHT = "Go straight"

_TAG_RE = re.compile(r"<.*?>")
_LEFT_RE = re.compile(r"\bleft\b")
_RIGHT_RE = re.compile(r"\bright\b")
_TURN_WORDS = ("turn", "slight", "u-turn", "roundabout")


def strip_html(html: Optional[str]) -> str:
    if not html:
        return ""
    return _TAG_RE.sub("", html).strip()


def _label_from_words(text: str) -> str:
    """Map lowercase text to a maneuver label.

    Any standalone "left"/"right" counts as a turn ("Keep left", "left onto ..."), not only
    "turn left"/"turn right".
    """
    if "slight left" in text:
        return "Slight left"
    if "slight right" in text:
        return "Slight right"
    if _LEFT_RE.search(text):
        return "Turn left"
    if _RIGHT_RE.search(text):
        return "Turn right"
    if "roundabout" in text:
        return "Roundabout"
    return GO_STRAIGHT


def maneuver_label(step: Step) -> str:
    """Display label of a step. The maneuver hint wins over instruction text."""
    if step.maneuver_hint:
        hint = step.maneuver_hint.lower().replace("-", " ").replace("_", " ")
        return _label_from_words(hint.replace("turn slight", "slight"))
    plain = strip_html(step.instruction_html).lower()
    if plain:
        return _label_from_words(plain)
    return GO_STRAIGHT


def is_turn_label(label: Optional[str]) -> bool:
    if not label:
        return False
    low = label.lower()
    return any(w in low for w in _TURN_WORDS)


def arrow_target_angle(label: Optional[str]) -> float:
    """Guidance arrow yaw for a label: straight 0, slight +/-35, full +/-90 (left negative)."""
    low = (label or "").lower()
    if "left" in low:
        return -35.0 if "slight" in low else -90.0
    if "right" in low:
        return 35.0 if "slight" in low else 90.0
    return 0.0


def format_distance(meters: float) -> str:
    return f"{meters / 1000.0:.1f} km" if meters >= 1000.0 else f"{int(round(meters))} m"


def format_preview(segments: List[Tuple[str, float]]) -> str:
    return " → ".join(f"{label} ({int(round(length))}m)" for label, length in segments)


class GuidanceGenerator:
    """Turn-by-turn text over a built route, indexed by along-distance."""

    def __init__(
        self,
        route: Route,
        turn_announcement_m: float = 50.0,
        preview_segment_limit: int = 6,
        tolerance_m: float = 0.5,
    ) -> None:
        self.route = route
        self.turn_announcement_m = turn_announcement_m
        self.preview_segment_limit = max(1, int(preview_segment_limit))
        self.tolerance_m = tolerance_m
        self.labels = [maneuver_label(s) for s in route.steps]

    def next_turn_after(self, along: float) -> Optional[int]:
        for i, rng in enumerate(self.route.ranges):
            if rng.start_along <= along + self.tolerance_m:
                continue
            if is_turn_label(self.labels[i]):
                return i
        return None

    def distance_to_turn(self, along: float) -> Optional[Tuple[int, float]]:
        idx = self.next_turn_after(along)
        if idx is None:
            return None
        return idx, max(0.0, self.route.ranges[idx].start_along - along)

    def guidance_label(self, along: float) -> str:
        """Label currently announced: the next turn once within the threshold, else straight."""
        nxt = self.distance_to_turn(along)
        if nxt is None or nxt[1] > self.turn_announcement_m:
            return GO_STRAIGHT
        return self.labels[nxt[0]]

    def build_instruction(self, along: float) -> str:
        nxt = self.distance_to_turn(along)
        if nxt is None:
            remaining = max(0.0, self.route.end_along - along)
            return f"{GO_STRAIGHT} — {int(round(remaining))} m"
        idx, dist = nxt
        if dist > self.turn_announcement_m:
            return f"{GO_STRAIGHT} — {int(round(dist))} m"
        return f"{self.labels[idx]} in {int(round(dist))} m"

    def threshold_turn_text(self, along: float) -> str:
        nxt = self.distance_to_turn(along)
        if nxt is None or nxt[1] > self.turn_announcement_m:
            return ""
        return f"{self.labels[nxt[0]]} in {int(round(nxt[1]))} m"

    def build_preview(self, along: float) -> List[Tuple[str, float]]:
        """Upcoming segments as (label, metres).

        "Go straight" filler runs until ``turn_announcement_m`` before each turn; the turn
        itself covers the remaining stretch, so turn segments never exceed the threshold.
        """
        threshold = self.turn_announcement_m
        route_end = self.route.end_along
        events = sorted(
            (rng.start_along, self.labels[i])
            for i, rng in enumerate(self.route.ranges)
            if rng.start_along >= along + 0.01 and is_turn_label(self.labels[i])
        )

        result: List[Tuple[str, float]] = []
        cursor = along
        ei = 0
        while len(result) < self.preview_segment_limit:
            has_event = ei < len(events)
            event_along, event_label = events[ei] if has_event else (route_end, None)

            # with no turn left the whole remainder becomes one tail segment below
            pre_end = max(cursor, event_along - threshold) if has_event else cursor
            pre_len = max(0.0, pre_end - cursor)
            if pre_len > 0.0:
                result.append((GO_STRAIGHT, pre_len))
                cursor += pre_len
                if len(result) >= self.preview_segment_limit:
                    break

            if has_event and event_along - cursor <= threshold + 1e-6:
                to_event = max(0.0, event_along - cursor)
                turn_len = min(threshold, to_event)
                if turn_len > 0.0:
                    result.append((event_label, turn_len))
                    if len(result) >= self.preview_segment_limit:
                        break
                cursor = event_along
                ei += 1
                continue

            tail = max(0.0, route_end - cursor)
            if tail > 0.0:
                result.append((GO_STRAIGHT, tail))
            break

        if len(result) > 1 and result[1][1] > threshold:
            return [(GO_STRAIGHT, result[0][1])]
        return result


class AngleSmoother:
    """Critically damped smoothing of an angle towards a moving target (degrees)."""

    def __init__(self, smoothing_s: float = 0.15, initial_deg: float = 0.0) -> None:
        self.smoothing_s = smoothing_s
        self.value = initial_deg
        self.velocity = 0.0

    def step(self, target_deg: float, dt: float) -> float:
        dt = max(dt, 1e-6)
        target = self.value + normalize_signed(target_deg - self.value)
        omega = 2.0 / max(1e-4, self.smoothing_s)
        x = omega * dt
        decay = 1.0 / (1.0 + x + 0.48 * x * x + 0.235 * x * x * x)
        change = self.value - target
        temp = (self.velocity + omega * change) * dt
        self.velocity = (self.velocity - omega * temp) * decay
        out = target + (change + temp) * decay
        # no overshoot past the target
        if (target - self.value > 0.0) == (out > target):
            out = target
            self.velocity = 0.0
        self.value = normalize_signed(out)
        return self.value


def lerp_angle(a: float, b: float, t: float) -> float:
    return a + normalize_signed(b - a) * min(1.0, max(0.0, t))


class UiArrow:
    """2-D screen arrow pointing at a lookahead point on the path, relative to the heading."""

    def __init__(self, smoothing: float = 4.0) -> None:
        self.smoothing = smoothing
        self.angle_deg = 0.0

    def update(self, viewer: RoutePoint, target: Optional[RoutePoint], heading_deg: float, dt: float) -> float:
        if target is None or (math.isclose(viewer.lat, target.lat) and math.isclose(viewer.lon, target.lon)):
            return self.angle_deg
        desired = -normalize_signed(bearing_deg(viewer, target) - heading_deg)
        self.angle_deg = normalize_signed(lerp_angle(self.angle_deg, desired, dt * max(1.0, self.smoothing)))
        return self.angle_deg
