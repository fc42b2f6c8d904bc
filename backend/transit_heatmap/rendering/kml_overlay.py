"""
KML Heatmap Overlay Rendering

This module renders a `ResultStore` as a KML document: one semi-transparent
rectangle per result, colored by its travel-time zone, plus an invisible
boundary polygon for the sampled area.

Document layout:
----------------
- `Document`
  - one shared `Style` per zone (`zone-0` .. `zone-<grades-1>`) and `zone-denied`
  - `Folder` "Travel time zones"
    - `Placemark` "Sampled area" (boundary, transparent fill)
    - one `Placemark` per result, in store order, named "<minutes> min"
      and referencing its zone style

Functions:
----------
- zone_color(...): KML color (aabbggrr) of a zone on a green-yellow-red ramp.
- build_kml_document(...): Builds the element tree.
- render_kml(...): Serializes the document to UTF-8 bytes.
- write_kml(...): Writes the document to a file or stdout.

Dependencies:
-------------
- `xml.etree.ElementTree` for the document, `shapely` for the cell rings.
"""

import logging
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Sequence, Tuple

from shapely.geometry import Polygon, box

from transit_heatmap.core.config import ZONE_ALPHA
from transit_heatmap.core.data_types import CellBounds, Coordinate, Result, ResultStore, StepAngle
from transit_heatmap.core.exceptions import SerializationError
from transit_heatmap.processing.zone_classifier import (
    DENIED, Zone, classify_zone, validate_threshold, zone_style_id
)
from transit_heatmap.sampling.grid_sampling import cell_bounds, infer_step_angles, normalize_rectangle

logger = logging.getLogger(__name__)

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"
TRANSPARENT = "00000000"

def zone_color(zone: Zone, grades: int) -> str:
    """
    Returns the fill color of a zone in KML `aabbggrr` notation.

    Zone 0 is green, the middle zones pass through yellow, the last zone is
    red. The denied zone is fully transparent.

    Args:
        zone (Zone): Zone index or `DENIED`.
        grades (int): Number of zones.

    Returns:
        str: Eight hex digits, e.g. "7000ff00" for zone 0.
    """
    if zone == DENIED:
        return TRANSPARENT

    t = zone / (grades - 1) if grades > 1 else 0.0
    red = 255 if t >= 0.5 else round(510 * t)
    green = 255 if t <= 0.5 else round(510 * (1 - t))
    return f"{ZONE_ALPHA:02x}00{green:02x}{red:02x}"

def _sub(parent: ET.Element, tag: str, text: Optional[str] = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = text
    return element

def _style(parent: ET.Element, color: str, style_id: Optional[str] = None) -> ET.Element:
    style = _sub(parent, "Style")
    if style_id is not None:
        style.set("id", style_id)
    _sub(_sub(style, "PolyStyle"), "color", color)
    _sub(_sub(style, "LineStyle"), "width", "0")
    return style

def _cell_polygon(bounds: CellBounds) -> Polygon:
    """Axis-aligned rectangle between two opposite corners, x = longitude, y = latitude."""
    a, c = bounds.a, bounds.c
    return box(min(a.lng, c.lng), min(a.lat, c.lat), max(a.lng, c.lng), max(a.lat, c.lat))

def _polygon(parent: ET.Element, polygon: Polygon) -> ET.Element:
    element = _sub(parent, "Polygon")
    ring = _sub(_sub(element, "outerBoundaryIs"), "LinearRing")
    _sub(ring, "coordinates", " ".join(f"{lng:.6f},{lat:.6f},0" for lng, lat in polygon.exterior.coords))
    return element

def _placemark(parent: ET.Element, name: str, polygon: Polygon, style_url: Optional[str] = None) -> ET.Element:
    placemark = _sub(parent, "Placemark")
    _sub(placemark, "name", name)
    if style_url is not None:
        _sub(placemark, "styleUrl", style_url)
    _polygon(placemark, polygon)
    return placemark

def _result_bounds(result: Result, step: Optional[StepAngle]) -> CellBounds:
    if result.bounds is not None:
        return result.bounds
    return cell_bounds(result.coordinate, step)

def _store_step(store: ResultStore) -> Optional[StepAngle]:
    """Returns the stored step, or one inferred from the result spacing when a result needs it."""
    if store.step is not None or all(result.bounds is not None for result in store.results):
        return store.step

    step = infer_step_angles([result.coordinate for result in store.results], store.area_start, store.area_end)
    logger.info(f"Results carry no cell bounds; inferred step {step.lat:.6f} deg lat, {step.lng:.6f} deg lng.")
    return step

def _area_bounds(area_start: Coordinate, area_end: Coordinate) -> CellBounds:
    rect = normalize_rectangle(area_start, area_end)
    return CellBounds(a=rect.start, c=rect.end)

def build_kml_document(store: ResultStore, max_duration_seconds: float, grades: int) -> ET.Element:
    """
    Builds the KML element tree of the heatmap.

    Args:
        store (ResultStore): Results and sampled area.
        max_duration_seconds (float): Durations above it are rendered as denied.
        grades (int): Number of colored zones.

    Returns:
        ET.Element: The root `kml` element.

    Raises:
        InvalidThresholdError: If the threshold or the zone count is not positive.
    """
    validate_threshold(max_duration_seconds, grades)
    zones: Sequence[Tuple[Result, Zone]] = [
        (result, classify_zone(result.duration_seconds, max_duration_seconds, grades))
        for result in store.results
    ]

    root = ET.Element("kml", xmlns=KML_NAMESPACE)
    document = _sub(root, "Document")
    _sub(document, "name", "Travel time heatmap")

    _style(document, zone_color(DENIED, grades), zone_style_id(DENIED))
    for zone in range(grades):
        _style(document, zone_color(zone, grades), zone_style_id(zone))

    folder = _sub(document, "Folder")
    _sub(folder, "name", "Travel time zones")

    boundary = _sub(folder, "Placemark")
    _sub(boundary, "name", "Sampled area")
    _style(boundary, TRANSPARENT)
    _polygon(boundary, _cell_polygon(_area_bounds(store.area_start, store.area_end)))

    step = _store_step(store)
    for result, zone in zones:
        _placemark(
            folder,
            f"{result.minutes:.0f} min",
            _cell_polygon(_result_bounds(result, step)),
            style_url=f"#{zone_style_id(zone)}",
        )

    denied = sum(1 for _, zone in zones if zone == DENIED)
    logger.debug(f"Built KML with {len(zones)} cells ({denied} denied) in {grades} zones.")
    return root

def render_kml(store: ResultStore, max_duration_seconds: float, grades: int) -> bytes:
    """Serializes the heatmap document to indented UTF-8 KML."""
    root = build_kml_document(store, max_duration_seconds, grades)
    ET.indent(root, space=" ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)

def write_kml(
    store: ResultStore,
    max_duration_seconds: float,
    grades: int,
    path: Optional[Path] = None
) -> None:
    """
    Renders the heatmap and writes it to `path`, or to stdout when None.

    Raises:
        SerializationError: If the sink cannot be written.
    """
    data = render_kml(store, max_duration_seconds, grades)

    try:
        if path is None:
            sys.stdout.buffer.write(data + b"\n")
            sys.stdout.buffer.flush()
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
    except OSError as e:
        target = path or "stdout"
        logger.error(f"Failed to write KML to '{target}': {e}")
        raise SerializationError(f"Failed to write KML to '{target}': {e}") from e

    if path is not None:
        logger.info(f"Wrote heatmap with {len(store.results)} cells to '{path}'.")
