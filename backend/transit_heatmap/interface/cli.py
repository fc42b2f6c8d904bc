"""
Command-Line Interface for the Travel-Time Heatmap

Subcommands:
------------
- `fetch`:  sample an area, query the Distance Matrix API, write results JSON.
- `render`: read results JSON, classify durations, write KML.
- `run`:    fetch and render in one go (optionally keeping the results JSON).

Examples:
---------
    transit-heatmap fetch "55.70,37.40" "55.80,37.50" --dst "55.75,37.45" \\
        --step 1000 --mode transit -o results.json
    transit-heatmap render results.json --max-duration 15 --grades 3 -o heatmap.kml

Every configuration problem (unknown option value, malformed coordinate or
time, missing API key) is reported once and exits with status 1 before any
request is sent.
"""

import argparse
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from transit_heatmap.core.config import (
    API_KEY,
    DEFAULT_GRADES,
    DEFAULT_MAX_DURATION_MINUTES,
    DEFAULT_STEP_METERS,
    MAX_ELEMENTS,
    TIME_LAYOUT,
    WORKERS,
)
from transit_heatmap.core.data_types import Coordinate
from transit_heatmap.core.exceptions import ConfigurationError, HeatmapError
from transit_heatmap.core.logger import setup_logging
from transit_heatmap.data.result_storage import load_results, save_results
from transit_heatmap.processing.heatmap_pipeline import fetch_heatmap_results, render_heatmap
from transit_heatmap.requests.travel_options import TravelOptions, parse_travel_options

logger = logging.getLogger(__name__)

_POINT_PATTERN = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*,\s*([-+]?\d+(?:\.\d+)?)\s*$")

def parse_coordinate(value: str) -> Coordinate:
    """
    Parses "lat,lng" in signed decimal degrees.

    Raises:
        ConfigurationError: If the string is not a valid coordinate.
    """
    match = _POINT_PATTERN.match(value)
    if not match:
        raise ConfigurationError(f"Invalid point string: {value!r}, expected 'lat,lng'")

    lat, lng = float(match.group(1)), float(match.group(2))
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ConfigurationError(f"Point out of range: {value!r}")
    return Coordinate(lat=lat, lng=lng)

def parse_time(value: str, flag: str) -> Optional[datetime]:
    """Parses a local time in `TIME_LAYOUT`; an empty string means unset."""
    if not value:
        return None
    try:
        return datetime.strptime(value, TIME_LAYOUT).astimezone()
    except ValueError as e:
        raise ConfigurationError(f"Invalid {flag} {value!r}, expected {TIME_LAYOUT!r}") from e

def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("area_start", help="First corner of the sampled area, 'lat,lng'.")
    parser.add_argument("area_end", help="Opposite corner of the sampled area, 'lat,lng'.")
    parser.add_argument("--dst", required=True, help="Destination coordinates, 'lat,lng'.")
    parser.add_argument("--key", default=API_KEY, help="Distance Matrix API key (default: $GOOGLE_MAPS_API_KEY).")
    parser.add_argument("--step", type=int, default=DEFAULT_STEP_METERS, help="Step between sample points in meters.")
    parser.add_argument("--workers", type=int, default=WORKERS, help="Number of concurrent workers.")
    parser.add_argument("--batch-size", type=int, default=MAX_ELEMENTS, help="Origins per request (max 25).")

    options = parser.add_argument_group("travel options")
    options.add_argument("--mode", default="", help="driving, walking, bicycling or transit.")
    options.add_argument("--avoid", default="", help="tolls, highways or ferries.")
    options.add_argument("--units", default="", help="metric or imperial.")
    options.add_argument("--transit-mode", default="", help="One or more of bus|subway|train|tram|rail.")
    options.add_argument("--transit-routing-preference", default="", help="less_walking or fewer_transfers.")
    options.add_argument("--traffic-model", default="", help="best_guess, pessimistic or optimistic.")
    options.add_argument("--language", default="", help="Language in which to return results.")
    options.add_argument("--departure-time", default="", help=f"Desired time of departure '{TIME_LAYOUT}'.")
    options.add_argument("--arrival-time", default="", help=f"Desired time of arrival '{TIME_LAYOUT}'.")

def _add_render_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--max-duration", type=int, default=DEFAULT_MAX_DURATION_MINUTES,
        help="Longest travel time in minutes that is still colored."
    )
    parser.add_argument("--grades", type=int, default=DEFAULT_GRADES, help="Number of colored zones.")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transit-heatmap",
        description="Sample travel times to a destination over an area and render them as a KML heatmap."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages to the console.")
    parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write a rotating debug log here.")
    commands = parser.add_subparsers(dest="command", required=True)

    fetch = commands.add_parser("fetch", help="Fetch travel times and write them as JSON.")
    _add_fetch_arguments(fetch)
    fetch.add_argument("-o", "--output", type=Path, default=None, help="Results file (default: stdout).")

    render = commands.add_parser("render", help="Render a results file as KML.")
    render.add_argument("results", type=Path, help="Results JSON written by 'fetch'.")
    _add_render_arguments(render)
    render.add_argument("-o", "--output", type=Path, default=None, help="KML file (default: stdout).")

    run = commands.add_parser("run", help="Fetch and render in one step.")
    _add_fetch_arguments(run)
    _add_render_arguments(run)
    run.add_argument("-o", "--output", type=Path, default=None, help="KML file (default: stdout).")
    run.add_argument("--save-results", type=Path, default=None, help="Also keep the results JSON here.")

    return parser

def travel_options_from_args(args: argparse.Namespace) -> TravelOptions:
    return parse_travel_options(
        mode=args.mode,
        avoid=args.avoid,
        units=args.units,
        transit_mode=args.transit_mode,
        transit_routing_preference=args.transit_routing_preference,
        traffic_model=args.traffic_model,
        language=args.language,
        departure_time=parse_time(args.departure_time, "departure time"),
        arrival_time=parse_time(args.arrival_time, "arrival time"),
    )

def _fetch(args: argparse.Namespace):
    options = travel_options_from_args(args)
    if not args.key:
        raise ConfigurationError("No Distance Matrix API key given. Pass --key or set GOOGLE_MAPS_API_KEY.")

    return fetch_heatmap_results(
        args.key,
        parse_coordinate(args.dst),
        parse_coordinate(args.area_start),
        parse_coordinate(args.area_end),
        args.step,
        options,
        max_batch_size=args.batch_size,
        worker_count=args.workers,
        show_progress=not args.no_progress,
    )

def run_command(args: argparse.Namespace) -> None:
    """Executes the parsed subcommand."""
    if args.command == "fetch":
        save_results(_fetch(args), args.output)
    elif args.command == "render":
        render_heatmap(load_results(args.results), args.max_duration * 60, args.grades, args.output)
    elif args.command == "run":
        store = _fetch(args)
        if args.save_results is not None:
            save_results(store, args.save_results)
        render_heatmap(store, args.max_duration * 60, args.grades, args.output)

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        console_level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file,
    )

    try:
        run_command(args)
    except HeatmapError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
