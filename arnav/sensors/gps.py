from __future__ import annotations

import json
import logging
import time
from typing import List, Optional, Protocol

from pydantic import ValidationError

from ..core.types import GpsData, LocationStatus

log = logging.getLogger(__name__)


class Gps(Protocol):
    def read(self) -> Optional[GpsData]: ...

    def has_fix(self) -> bool: ...


class DummyGps:
    """Fixed-position feed, useful when bench testing without a receiver."""

    def __init__(self, lat: float = 0.0, lon: float = 0.0, alt: float = 0.0) -> None:
        self._lat = lat
        self._lon = lon
        self._alt = alt

    def read(self) -> Optional[GpsData]:
        return GpsData(stamp=time.time(), lat=self._lat, lon=self._lon, alt=self._alt)

    def has_fix(self) -> bool:
        return True


class TracePlaybackGps:
    """Replays a recorded trace: ``{"trace": [{"lat", "lon", "alt", "timestamp", "status"}, ...]}``.

    Entries that fail validation are dropped with a warning.
    """

    def __init__(self, samples: List[GpsData]) -> None:
        self.samples = samples
        self.index = 0

    @classmethod
    def from_file(cls, path: str) -> "TracePlaybackGps":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.error("Cannot read GPS trace %s: %s", path, e)
            return cls([])
        entries = data.get("trace", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            log.error("GPS trace %s holds no list of fixes", path)
            return cls([])
        samples: List[GpsData] = []
        for i, e in enumerate(entries):
            if not isinstance(e, dict):
                log.warning("Skipping trace entry %d: not an object", i)
                continue
            try:
                samples.append(
                    GpsData(
                        stamp=float(e.get("timestamp", e.get("stamp", i))),
                        lat=e["lat"],
                        lon=e["lon"],
                        alt=e.get("alt", 0.0),
                        status=LocationStatus(e.get("status", "running")),
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                log.warning("Skipping trace entry %d: %s", i, exc)
        log.info("Loaded GPS trace from %s (%d samples)", path, len(samples))
        return cls(samples)

    def read(self) -> Optional[GpsData]:
        if self.index >= len(self.samples):
            return None
        sample = self.samples[self.index]
        self.index += 1
        return sample

    def has_fix(self) -> bool:
        return self.index < len(self.samples)

    def is_finished(self) -> bool:
        return self.index >= len(self.samples)
