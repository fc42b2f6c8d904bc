"""
Typed Data Structures for the Travel-Time Heatmap

This module defines the `pydantic` models used across the fetch and render
pipeline. They standardize how sample coordinates, travel-time results and
the persisted result store are represented, validated and serialized.

Purpose:
--------
- Give coordinates value semantics (frozen, hashable, comparable).
- Validate persisted result files when they are read back for rendering.
- Keep the JSON layout stable and human-diffable (camelCase keys, indented).

Key Structures:
---------------
- `Coordinate`: A latitude/longitude pair in degrees.
- `BoundingRectangle`: A normalized rectangle (`start` is the south-west corner).
- `StepAngle`: Angular lattice step in degrees on both axes.
- `CellBounds`: Two opposite corners of the cell a sample point stands for.
- `Result`: Travel time from one sample point to the destination.
- `ResultStore`: The sampled area plus all results; the unit of persistence.

Zones are not stored; they are recomputed at render time from
`(duration, max_duration, grades)`.
"""

from datetime import timedelta
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Coordinate(BaseModel):
    """
    A point on the sphere in degrees.

    Attributes:
        lat (float): Latitude in degrees.
        lng (float): Longitude in degrees.
    """
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class BoundingRectangle(BaseModel):
    """
    Rectangle with `start.lat <= end.lat` and `start.lng <= end.lng`.

    Only `normalize_rectangle` should build it, which enforces the ordering.
    """
    model_config = ConfigDict(frozen=True)

    start: Coordinate
    end: Coordinate


class StepAngle(BaseModel):
    """
    Angular distance between neighbouring sample points, in degrees.

    Attributes:
        lat (float): Latitude step.
        lng (float): Longitude step, widened by 1/cos(latitude) so cells stay square on the ground.
    """
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class CellBounds(BaseModel):
    """
    Opposite corners of a sample cell.

    Attributes:
        a (Coordinate): North-west corner.
        c (Coordinate): South-east corner.
    """
    model_config = ConfigDict(frozen=True)

    a: Coordinate
    c: Coordinate


class Result(BaseModel):
    """
    Resolved travel time from one sample point to the destination.

    Attributes:
        coordinate (Coordinate): The sample point (centre of its cell).
        duration_seconds (int): Travel time, traffic-adjusted when the service provided it.
        bounds (Optional[CellBounds]): The cell the sample point represents.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    coordinate: Coordinate
    duration_seconds: int = Field(ge=0)
    bounds: Optional[CellBounds] = None

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.duration_seconds)

    @property
    def minutes(self) -> float:
        return self.duration_seconds / 60


class ResultStore(BaseModel):
    """
    Aggregated fetch output, persisted between the fetch and render phases.

    Attributes:
        area_start (Coordinate): First corner of the sampled rectangle as requested.
        area_end (Coordinate): Opposite corner of the sampled rectangle.
        step (Optional[StepAngle]): Lattice step, used to rebuild cells of results without bounds.
        results (List[Result]): Results in lattice order.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    area_start: Coordinate
    area_end: Coordinate
    step: Optional[StepAngle] = None
    results: List[Result] = Field(default_factory=list)

    def to_json(self) -> str:
        """Serializes the store as indented JSON with camelCase keys."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str) -> "ResultStore":
        """Parses and validates a store produced by `to_json`."""
        return cls.model_validate_json(data)
