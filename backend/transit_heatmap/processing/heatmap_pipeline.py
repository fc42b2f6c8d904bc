"""
Heatmap Fetch and Render Pipeline

This module wires the sampling, fetching and rendering components together.

Data flow:
----------
    grid_sampling -> BatchScheduler -> (per batch) build_request / parse_response
        -> ResultStore -> zone_classifier -> kml_overlay -> file or stdout

Main Functions:
---------------
- `fetch_heatmap_results(...)`: Samples the area and fetches a `ResultStore`.
- `render_heatmap(...)`: Writes the KML overlay of a `ResultStore`.

Example:
--------
    store = fetch_heatmap_results(api_key, destination, corner_a, corner_b, 500, options)
    render_heatmap(store, max_duration_seconds=1800, grades=6, path=Path("heatmap.kml"))
"""

import logging
from functools import partial
from pathlib import Path
from typing import Optional

from transit_heatmap.core.config import DEFAULT_GRADES, MAX_ELEMENTS, WORKERS
from transit_heatmap.core.data_types import Coordinate, ResultStore
from transit_heatmap.processing.batch_scheduler import BatchScheduler, ClientFactory
from transit_heatmap.rendering.kml_overlay import write_kml
from transit_heatmap.requests.build_request import DistanceMatrixClient
from transit_heatmap.requests.travel_options import TravelOptions
from transit_heatmap.sampling.grid_sampling import compute_step_angles, generate_grid_points

logger = logging.getLogger(__name__)

def fetch_heatmap_results(
    api_key: str,
    destination: Coordinate,
    area_start: Coordinate,
    area_end: Coordinate,
    step_meters: float,
    options: TravelOptions,
    max_batch_size: int = MAX_ELEMENTS,
    worker_count: int = WORKERS,
    client_factory: Optional[ClientFactory] = None,
    show_progress: bool = True
) -> ResultStore:
    """
    Samples the rectangle and fetches the travel time of every sample point.

    Args:
        api_key (str): Distance Matrix API key (ignored when `client_factory` is given).
        destination (Coordinate): Fixed destination of every request.
        area_start (Coordinate): A corner of the sampled rectangle.
        area_end (Coordinate): The opposite corner.
        step_meters (float): Ground distance between sample points.
        options (TravelOptions): Request options.
        max_batch_size (int): Origins per request.
        worker_count (int): Concurrent workers.
        client_factory (Optional[ClientFactory]): Creates a client per worker;
            defaults to `DistanceMatrixClient(api_key)`.
        show_progress (bool): Display a progress bar.

    Returns:
        ResultStore: The sampled area, the step and the results in lattice order.
    """
    step = compute_step_angles(step_meters, destination)
    points = generate_grid_points(area_start, area_end, step.lat, step.lng)
    logger.info(
        f"Sampling {len(points)} points every {step_meters} m "
        f"(step {step.lat:.6f} deg lat, {step.lng:.6f} deg lng)."
    )

    if client_factory is None:
        client_factory = partial(DistanceMatrixClient, api_key)

    scheduler = BatchScheduler(
        client_factory,
        destination,
        options,
        step=step,
        max_batch_size=max_batch_size,
        worker_count=worker_count,
        show_progress=show_progress,
    )
    results = scheduler.fetch(points)

    return ResultStore(area_start=area_start, area_end=area_end, step=step, results=results)

def render_heatmap(
    store: ResultStore,
    max_duration_seconds: float,
    grades: int = DEFAULT_GRADES,
    path: Optional[Path] = None
) -> None:
    """Classifies every result and writes the KML overlay to `path` (stdout when None)."""
    logger.info(
        f"Rendering {len(store.results)} results into {grades} zones "
        f"up to {max_duration_seconds / 60:.0f} min."
    )
    write_kml(store, max_duration_seconds, grades, path)
