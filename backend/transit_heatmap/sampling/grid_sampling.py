"""
Regular Lattice Sampling for Travel-Time Heatmaps

This module turns a bounding rectangle and a ground step distance into the
ordered lattice of sample coordinates that are sent to the Distance Matrix API.

Functions:
----------
- compute_step_angles(...): Converts a step in meters into latitude/longitude step angles.
- normalize_rectangle(...): Orders the rectangle corners on both axes.
- generate_grid_points(...): Emits the row-major lattice covering the rectangle.
- cell_bounds(...): Derives the cell a sample point stands for.
- infer_step_angles(...): Recovers the lattice step from the sample points themselves.

Conventions:
------------
- The lattice starts at the south-west corner and is half-open on both axes:
  points lie in `[start, end)`, `ceil(span / step)` per axis.
- A sample point is the centre of its cell; the cell extends half a step in
  every direction.

Returns:
--------
- List of `Coordinate` in EPSG:4326 degrees, latitude-major, longitude-minor.
"""


import logging
import math
from typing import List, Sequence

import numpy as np

from transit_heatmap.core.config import EARTH_RADIUS
from transit_heatmap.core.data_types import BoundingRectangle, CellBounds, Coordinate, StepAngle
from transit_heatmap.core.exceptions import InvalidExtentError

logger = logging.getLogger(__name__)

def compute_step_angles(step_meters: float, destination: Coordinate) -> StepAngle:
    """
    Converts a linear step into angular steps around the destination.

    The longitude step is compensated by the cosine of the destination's
    latitude so that cells are approximately square on the ground.

    Args:
        step_meters (float): Distance between neighbouring sample points in meters.
        destination (Coordinate): Destination whose latitude defines the compensation.

    Returns:
        StepAngle: Latitude and longitude step in degrees.
    """
    step_lat = math.degrees(step_meters / EARTH_RADIUS)
    step_lng = math.degrees(step_meters / (EARTH_RADIUS * math.cos(math.radians(destination.lat))))
    return StepAngle(lat=step_lat, lng=step_lng)

def normalize_rectangle(rect_start: Coordinate, rect_end: Coordinate) -> BoundingRectangle:
    """
    Swaps corner components so that the start corner is south-west of the end corner.

    Args:
        rect_start (Coordinate): Any corner of the rectangle.
        rect_end (Coordinate): The opposite corner.

    Returns:
        BoundingRectangle: Rectangle with well-ordered bounds.

    Raises:
        InvalidExtentError: If any component is NaN or infinite.
    """
    values = (rect_start.lat, rect_start.lng, rect_end.lat, rect_end.lng)
    if not all(math.isfinite(v) for v in values):
        raise InvalidExtentError(f"Cannot order rectangle corners {rect_start} and {rect_end}")

    return BoundingRectangle(
        start=Coordinate(lat=min(rect_start.lat, rect_end.lat), lng=min(rect_start.lng, rect_end.lng)),
        end=Coordinate(lat=max(rect_start.lat, rect_end.lat), lng=max(rect_start.lng, rect_end.lng)),
    )

def _axis_values(start: float, end: float, step: float) -> np.ndarray:
    if not step > 0 or end <= start:
        return np.empty(0)
    count = math.ceil((end - start) / step)
    values = start + np.arange(count) * step
    # guard against a last value landing on `end` through rounding
    return values[values < end]

def generate_grid_points(
    rect_start: Coordinate,
    rect_end: Coordinate,
    step_lat: float,
    step_lng: float
) -> List[Coordinate]:
    """
    Generates the ordered sample lattice covering a rectangle.

    Points are computed as `start + i * step` rather than by repeated addition,
    so the number of points per axis is exactly `ceil(span / step)`.
    A zero step or a zero span on either axis yields an empty lattice.

    Args:
        rect_start (Coordinate): A corner of the rectangle (any order).
        rect_end (Coordinate): The opposite corner.
        step_lat (float): Latitude step in degrees.
        step_lng (float): Longitude step in degrees.

    Returns:
        List[Coordinate]: Sample points, latitude-major and longitude-minor.

    Raises:
        InvalidExtentError: If the rectangle cannot be normalized.
    """
    rect = normalize_rectangle(rect_start, rect_end)

    lats = _axis_values(rect.start.lat, rect.end.lat, step_lat)
    lngs = _axis_values(rect.start.lng, rect.end.lng, step_lng)

    points = [Coordinate(lat=float(lat), lng=float(lng)) for lat in lats for lng in lngs]
    logger.debug(f"Generated {len(points)} sample points ({len(lats)} x {len(lngs)}) for {rect}.")
    return points

def cell_bounds(point: Coordinate, step: StepAngle) -> CellBounds:
    """
    Returns the cell centred on a sample point, half a step to each side.

    Args:
        point (Coordinate): Sample point.
        step (StepAngle): Lattice step.

    Returns:
        CellBounds: North-west (`a`) and south-east (`c`) corners.
    """
    return CellBounds(
        a=Coordinate(lat=point.lat + step.lat / 2, lng=point.lng - step.lng / 2),
        c=Coordinate(lat=point.lat - step.lat / 2, lng=point.lng + step.lng / 2),
    )

def _axis_step(values: Sequence[float], extent: float) -> float:
    distinct = np.unique(np.asarray(values, dtype=float))
    if len(distinct) < 2:
        return extent
    return float(np.diff(distinct).min())

def infer_step_angles(points: Sequence[Coordinate], rect_start: Coordinate, rect_end: Coordinate) -> StepAngle:
    """
    Infers the lattice step of points whose step was not recorded.

    On each axis the step is the smallest gap between distinct values. An axis
    with a single distinct value (one row or one column) falls back to the
    extent of the rectangle on that axis.

    Args:
        points (Sequence[Coordinate]): Sample points of one lattice.
        rect_start (Coordinate): A corner of the sampled rectangle.
        rect_end (Coordinate): The opposite corner.

    Returns:
        StepAngle: Latitude and longitude step in degrees.

    Raises:
        InvalidExtentError: If the rectangle cannot be normalized.
    """
    rect = normalize_rectangle(rect_start, rect_end)
    return StepAngle(
        lat=_axis_step([p.lat for p in points], rect.end.lat - rect.start.lat),
        lng=_axis_step([p.lng for p in points], rect.end.lng - rect.start.lng),
    )
