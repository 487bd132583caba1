from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests
from requests.exceptions import ConnectionError, ReadTimeout

from ..core.types import RoutePoint, Step

log = logging.getLogger(__name__)

DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


def _location(raw: Any) -> Optional[RoutePoint]:
    if not isinstance(raw, dict):
        return None
    lat = raw.get("lat")
    lon = raw.get("lng", raw.get("lon"))
    if lat is None or lon is None:
        return None
    try:
        return RoutePoint(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


def parse_directions(doc: Any) -> List[Step]:
    """Extract the first leg's steps from a walking-directions document.

    Shape: ``{"routes": [{"legs": [{"start_location": {...}, "steps": [...]}]}]}``. A step
    missing ``start_location`` inherits the previous step's end (the first step inherits the
    leg start, else its own end). Steps without any usable end are skipped. Malformed
    documents produce an empty list.
    """
    try:
        leg = doc["routes"][0]["legs"][0]
        raw_steps = leg.get("steps") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        status = doc.get("status") if isinstance(doc, dict) else None
        log.warning("Directions document has no route/leg (status=%s)", status)
        return []

    leg_start = _location(leg.get("start_location"))
    steps: List[Step] = []
    prev_end: Optional[RoutePoint] = None
    for i, raw in enumerate(raw_steps):
        if not isinstance(raw, dict):
            log.warning("Skipping non-object step %d", i)
            continue
        end = _location(raw.get("end_location"))
        start = _location(raw.get("start_location"))
        if start is None or (start.lat == 0.0 and start.lon == 0.0):
            start = prev_end if prev_end is not None else (leg_start or end)
        if end is None:
            end = start
        if start is None or end is None:
            log.warning("Skipping step %d without coordinates", i)
            continue
        polyline = raw.get("polyline")
        encoded = polyline.get("points") if isinstance(polyline, dict) else None
        steps.append(
            Step(
                start=start,
                end=end,
                maneuver_hint=raw.get("maneuver") or None,
                instruction_html=raw.get("html_instructions") or None,
                encoded_geometry=encoded or None,
            )
        )
        prev_end = end
    return steps


def load_directions(path: str) -> List[Step]:
    """Read a directions JSON file from disk. Unreadable or invalid JSON yields []."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, ValueError) as e:
        log.warning("Failed to read directions from %s: %s", path, e)
        return []
    return parse_directions(doc)


class DirectionsProvider(Protocol):
    def fetch(self, origin: Tuple[float, float], destination: Tuple[float, float]) -> Dict[str, Any]: ...


@dataclass
class DirectionsClient:
    """Walking-directions HTTP client with retry and exponential backoff."""

    api_key: str
    base_url: str = DIRECTIONS_URL
    timeout_s: float = 15.0
    tries: int = 3
    backoff_s: float = 0.8

    def __post_init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def fetch(self, origin: Tuple[float, float], destination: Tuple[float, float]) -> Dict[str, Any]:
        params = {
            "origin": f"{origin[0]},{origin[1]}",
            "destination": f"{destination[0]},{destination[1]}",
            "mode": "walking",
            "key": self.api_key,
        }
        last_err: Optional[Exception] = None
        for attempt in range(self.tries):
            try:
                r = self.session.get(self.base_url, params=params, timeout=self.timeout_s)
                r.raise_for_status()
                return r.json()
            except (ReadTimeout, ConnectionError) as e:
                last_err = e
                log.warning("Directions request failed (attempt %d/%d): %s", attempt + 1, self.tries, e)
                if attempt == self.tries - 1:
                    break
                time.sleep(self.backoff_s * (2**attempt))
        raise last_err if last_err else RuntimeError("directions fetch failed")
