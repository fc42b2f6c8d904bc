"""
Distance Matrix Response Parsing Utilities

This module turns a decoded Distance Matrix response into `Result` records
aligned with the batch of origins that was requested.

Functions:
----------
- resolve_duration(...): Picks the traffic-adjusted duration when available.
- parse_distance_matrix_response(...): Validates the batch shape and extracts results.

Partial success:
----------------
- A row count different from the origin count is fatal for the batch
  (`BatchSizeMismatchError`), because index alignment is lost.
- A row that is not an object, has other than one element, or whose
  element status is not "OK" (e.g. ZERO_RESULTS, NOT_FOUND), is skipped and
  logged with its position.
  A batch in which every row is skipped is not an error.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from transit_heatmap.core.data_types import Coordinate, Result, StepAngle
from transit_heatmap.core.exceptions import BatchSizeMismatchError
from transit_heatmap.sampling.grid_sampling import cell_bounds

logger = logging.getLogger(__name__)

def _value(field: Any) -> Optional[int]:
    if isinstance(field, dict):
        field = field.get("value")
    if isinstance(field, (int, float)):
        return int(field)
    return None

def resolve_duration(element: Dict[str, Any]) -> Optional[int]:
    """
    Resolves the travel time of one response element.

    Args:
        element (Dict[str, Any]): Element with "duration" and optional "duration_in_traffic",
            each a {"value": seconds, "text": ...} object.

    Returns:
        Optional[int]: `duration_in_traffic` if present and positive, else `duration`;
            None if neither carries a usable value.
    """
    in_traffic = _value(element.get("duration_in_traffic"))
    if in_traffic is not None and in_traffic > 0:
        return in_traffic
    return _value(element.get("duration"))

def parse_distance_matrix_response(
    response: Dict[str, Any],
    origins: Sequence[Coordinate],
    step: Optional[StepAngle] = None,
    batch_index: int = -1
) -> List[Result]:
    """
    Extracts per-origin results from a Distance Matrix response.

    Args:
        response (Dict[str, Any]): Decoded JSON response.
        origins (Sequence[Coordinate]): The origins of the request, in request order.
        step (Optional[StepAngle]): Lattice step; when given, each result carries its cell bounds.
        batch_index (int): Batch position, used for error context.

    Returns:
        List[Result]: One result per accepted row, in request order.

    Raises:
        BatchSizeMismatchError: If the number of rows differs from the number of origins.
    """
    rows = response.get("rows") or []
    if not isinstance(rows, list):
        raise BatchSizeMismatchError(len(origins), 0, batch_index)
    if len(rows) != len(origins):
        raise BatchSizeMismatchError(len(origins), len(rows), batch_index)

    results: List[Result] = []
    for i, (origin, row) in enumerate(zip(origins, rows)):
        if not isinstance(row, dict):
            logger.warning(f"Row {i} is not an object, skipping: {row!r}")
            continue

        elements = row.get("elements")
        if not isinstance(elements, list) or len(elements) != 1:
            count = len(elements) if isinstance(elements, list) else 0
            logger.warning(f"Row {i} has {count} elements instead of 1, skipping: {row}")
            continue

        element = elements[0]
        if not isinstance(element, dict):
            logger.warning(f"Row {i} element is not an object, skipping: {row}")
            continue
        if element.get("status") != "OK":
            logger.warning(f"Row {i} status != OK ({element.get('status')}), skipping: {row}")
            continue

        duration = resolve_duration(element)
        if duration is None or duration < 0:
            logger.warning(f"Row {i} has no usable duration, skipping: {row}")
            continue

        results.append(Result(
            coordinate=origin,
            duration_seconds=duration,
            bounds=cell_bounds(origin, step) if step is not None else None,
        ))

    if len(results) < len(origins):
        logger.info(f"Accepted {len(results)} of {len(origins)} rows.")
    return results
