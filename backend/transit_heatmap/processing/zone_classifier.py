"""
Travel-Time Zone Classification

Maps a duration onto one of `grades` equal-width zones below a maximum
duration, or onto the denied zone above it. Zones are recomputed at render
time, never stored.

    classify_zone(600, 900, 3)  -> 2
    classify_zone(901, 900, 3)  -> "denied"
"""

import math
from typing import Final, Literal, Union

from transit_heatmap.core.exceptions import InvalidThresholdError

DENIED: Final = "denied"

Zone = Union[int, Literal["denied"]]


def validate_threshold(max_duration_seconds: float, grades: int) -> None:
    """Raises `InvalidThresholdError` unless both the threshold and the zone count are positive."""
    if not max_duration_seconds > 0:
        raise InvalidThresholdError(f"Maximum duration must be positive, got {max_duration_seconds}")
    if grades < 1:
        raise InvalidThresholdError(f"Zone count must be positive, got {grades}")


def classify_zone(duration_seconds: float, max_duration_seconds: float, grades: int) -> Zone:
    """
    Classifies a duration into a zone index in `[0, grades)` or `DENIED`.

    `zone = floor(grades * duration / max_duration)`; a duration equal to the
    threshold belongs to the last zone, a duration of zero to zone 0.

    Args:
        duration_seconds (float): Non-negative travel time.
        max_duration_seconds (float): Longest duration that is still classified.
        grades (int): Number of zones.

    Returns:
        Zone: Zone index, or `DENIED` when the duration exceeds the threshold.

    Raises:
        InvalidThresholdError: If the threshold or the zone count is not positive.
    """
    validate_threshold(max_duration_seconds, grades)

    if duration_seconds > max_duration_seconds:
        return DENIED
    if duration_seconds <= 0:
        return 0
    return min(grades - 1, math.floor(grades * duration_seconds / max_duration_seconds))


def zone_style_id(zone: Zone) -> str:
    """Returns the KML style id of a zone, e.g. "zone-2" or "zone-denied"."""
    return f"zone-{zone}"
