from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional, Tuple

import requests

from .core.config import load_config
from .core.navigator import Navigator, State
from .route.directions import DirectionsClient, load_directions
from .sensors.gps import TracePlaybackGps
from .utils.logging_setup import setup_logging


def parse_latlon(text: str) -> Tuple[float, float]:
    try:
        lat_s, lon_s = text.split(",")
        return float(lat_s), float(lon_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {text!r}")


def run_replay(args: argparse.Namespace, logger: logging.Logger) -> int:
    cfg = load_config(args.config)
    steps = load_directions(args.directions)

    navigator = Navigator(cfg, on_arrived=lambda name: logger.info("Arrival event: %s", name))
    route = navigator.load_route(steps, destination_name=args.destination_name)
    if route.is_empty:
        logger.error("No usable route in %s", args.directions)
        return 1

    gps = TracePlaybackGps.from_file(args.trace)
    default_dt = 1.0 / cfg.nav_rate_hz
    last_stamp: Optional[float] = None
    last_instruction = None
    ticks = 0
    while not gps.is_finished():
        sample = gps.read()
        dt = default_dt if last_stamp is None else max(1e-3, sample.stamp - last_stamp)
        last_stamp = sample.stamp
        frame = navigator.tick(sample, dt)
        if frame is None:
            continue
        ticks += 1
        if frame.instruction != last_instruction:
            logger.info("[%.1f m] %s | %s", frame.along_m, frame.instruction, frame.preview)
            last_instruction = frame.instruction
        for label in navigator.anchor_labels():
            logger.debug("anchor: %s", label)

    logger.info(
        "Replay finished: %d ticks, state=%s, remaining=%s",
        ticks,
        navigator.state.name,
        navigator.last_frame.destination_text if navigator.last_frame else "n/a",
    )
    if navigator.state != State.ARRIVED:
        logger.warning("Trace ended before arrival")
    return 0


def run_fetch(args: argparse.Namespace, logger: logging.Logger) -> int:
    api_key = args.api_key or os.getenv("ARNAV_DIRECTIONS_KEY")
    if not api_key:
        logger.error("No API key: pass --api-key or set ARNAV_DIRECTIONS_KEY")
        return 2
    client = DirectionsClient(api_key=api_key)
    try:
        doc = client.fetch(args.origin, args.destination)
    except requests.RequestException as e:
        logger.error("Directions request failed: %s", e)
        return 3
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    logger.info("Directions written to %s (status=%s)", args.out, doc.get("status"))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="arnav")
    sub = parser.add_subparsers(dest="cmd", required=True)

    replay = sub.add_parser("replay", help="Replay a GPS trace against a directions document")
    replay.add_argument("--directions", required=True, help="Path to directions JSON")
    replay.add_argument("--trace", required=True, help="Path to GPS trace JSON")
    replay.add_argument("--config", type=str, default=None, help="Path to a YAML config override")
    replay.add_argument("--destination-name", type=str, default="Destination")

    fetch = sub.add_parser("fetch", help="Download walking directions")
    fetch.add_argument("--origin", type=parse_latlon, required=True, help="LAT,LON")
    fetch.add_argument("--destination", type=parse_latlon, required=True, help="LAT,LON")
    fetch.add_argument("--out", required=True, help="Output JSON path")
    fetch.add_argument("--api-key", type=str, default=None)

    for p in (replay, fetch):
        p.add_argument("--log-level", type=str, default=os.getenv("LOG_LEVEL", "INFO"))
        p.add_argument("--no-log-file", action="store_true", help="Log to console only")
        p.add_argument("--log-dir", type=str, default=None, help="Directory for the rotating log file")
        p.add_argument(
            "--debug-logger",
            action="append",
            default=[],
            metavar="NAME",
            help="Log NAME (e.g. arnav.anchors) at DEBUG; repeatable",
        )

    args = parser.parse_args(argv)

    setup_logging(
        args.log_level,
        to_file=not args.no_log_file,
        log_dir=args.log_dir,
        logger_levels={name: "DEBUG" for name in args.debug_logger},
    )
    logger = logging.getLogger(__name__)

    if args.cmd == "replay":
        return run_replay(args, logger)
    return run_fetch(args, logger)


if __name__ == "__main__":
    sys.exit(main())
