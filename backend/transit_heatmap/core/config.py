"""
Project Configuration and Constants

This module centralizes configuration settings, paths, and constants
used across the travel-time heatmap pipeline.

Contents:
---------
- Distance Matrix API settings (API key, endpoint, request timeout)
- Service limits and concurrency defaults (batch size, worker count)
- Sampling and rendering defaults (step distance, duration threshold, zone count)
- Supported option values for the Distance Matrix request

Key Concepts:
-------------
- Service Limits: The Distance Matrix API accepts at most 25 origins per request.
- Defaults: Every default here can be overridden by a pipeline constructor argument
  or a command-line flag; nothing in the pipeline overrides them internally.

Usage:
------
Import any constant from this module for use in the application:

    from transit_heatmap.core.config import MAX_ELEMENTS, WORKERS, API_KEY

Environment Variables:
----------------------
- `.env` file used for loading the Google Maps API key (`GOOGLE_MAPS_API_KEY`).

Notes:
------
- Constants use `Final` from `typing` to indicate immutability.
"""

from dotenv import load_dotenv
import os

from typing import Final, Literal

# === General API Settings ===

load_dotenv()
API_KEY: Final[str] = os.getenv("GOOGLE_MAPS_API_KEY", "")  # Distance Matrix API key

ENDPOINT: Final[str] = "https://maps.googleapis.com/maps/api/distancematrix/json"
REQUEST_TIMEOUT: Final[float] = 30.0  # Seconds before a single Distance Matrix call is abandoned

# === Service Limits and Concurrency ===

MAX_ELEMENTS: Final[int] = 25  # Max origins per Distance Matrix request
WORKERS: Final[int] = 20  # Concurrent workers, each with its own HTTP session

# === Sampling and Rendering Defaults ===

EARTH_RADIUS: Final[float] = 6378137.0  # Equatorial radius in meters (WGS84)
DEFAULT_STEP_METERS: Final[int] = 500  # Ground distance between sample points
DEFAULT_MAX_DURATION_MINUTES: Final[int] = 30  # Durations above this are rendered as denied
DEFAULT_GRADES: Final[int] = 6  # Number of colored zones below the threshold

ZONE_ALPHA: Final[int] = 0x70  # Fill opacity of the colored zones
TIME_LAYOUT: Final[str] = "%Y-%m-%d %H:%M"  # Departure / arrival time format on the command line
COORDINATE_PRECISION: Final[int] = 6  # Decimal digits when sending coordinates

# === Supported Request Options ===

TravelMode = Literal["driving", "walking", "bicycling", "transit"]
Avoid = Literal["tolls", "highways", "ferries"]
Units = Literal["metric", "imperial"]
TransitMode = Literal["bus", "subway", "train", "tram", "rail"]
TransitRoutingPreference = Literal["less_walking", "fewer_transfers"]
TrafficModel = Literal["best_guess", "pessimistic", "optimistic"]
