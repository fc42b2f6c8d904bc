"""Tests for KML rendering, including the fetch-then-render scenario."""

import xml.etree.ElementTree as ET

import pytest
from conftest import FakeClientFactory

from transit_heatmap.core.data_types import Coordinate, Result, ResultStore, StepAngle
from transit_heatmap.core.exceptions import InvalidThresholdError, SerializationError
from transit_heatmap.processing.heatmap_pipeline import fetch_heatmap_results, render_heatmap
from transit_heatmap.rendering.kml_overlay import render_kml, write_kml, zone_color
from transit_heatmap.requests.travel_options import TravelOptions

NS = {'kml': 'http://www.opengis.net/kml/2.2'}


def _parse(data: bytes) -> ET.Element:
    return ET.fromstring(data)


def _placemarks(root: ET.Element):
    return root.findall('kml:Document/kml:Folder/kml:Placemark', NS)


def _ring(placemark: ET.Element):
    text = placemark.find('.//kml:LinearRing/kml:coordinates', NS).text
    return [tuple(float(v) for v in point.split(',')) for point in text.split()]


@pytest.fixture
def empty_store():
    return ResultStore(area_start=Coordinate(lat=55.80, lng=37.50), area_end=Coordinate(lat=55.70, lng=37.40))


def test_empty_store_renders_boundary_only(empty_store):
    root = _parse(render_kml(empty_store, 900, 3))

    placemarks = _placemarks(root)
    assert len(placemarks) == 1
    assert placemarks[0].find('kml:name', NS).text == 'Sampled area'
    assert placemarks[0].find('kml:Style/kml:PolyStyle/kml:color', NS).text == '00000000'


def test_one_style_per_zone_plus_denied(empty_store):
    root = _parse(render_kml(empty_store, 900, 6))

    ids = [style.get('id') for style in root.findall('kml:Document/kml:Style', NS)]
    assert ids == ['zone-denied'] + [f'zone-{i}' for i in range(6)]


def test_boundary_covers_normalized_area(empty_store):
    ring = _ring(_placemarks(_parse(render_kml(empty_store, 900, 3)))[0])

    lngs = [p[0] for p in ring]
    lats = [p[1] for p in ring]
    assert (min(lats), max(lats)) == (pytest.approx(55.70), pytest.approx(55.80))
    assert (min(lngs), max(lngs)) == (pytest.approx(37.40), pytest.approx(37.50))
    assert ring[0] == ring[-1]


def test_cells_labeled_and_styled_in_store_order():
    step = StepAngle(lat=0.01, lng=0.02)
    store = ResultStore(
        area_start=Coordinate(lat=0.0, lng=0.0),
        area_end=Coordinate(lat=0.02, lng=0.04),
        step=step,
        results=[
            Result(coordinate=Coordinate(lat=0.0, lng=0.0), duration_seconds=0),
            Result(coordinate=Coordinate(lat=0.0, lng=0.02), duration_seconds=610),
            Result(coordinate=Coordinate(lat=0.01, lng=0.0), duration_seconds=1000),
        ],
    )

    cells = _placemarks(_parse(render_kml(store, 900, 3)))[1:]

    assert [c.find('kml:name', NS).text for c in cells] == ['0 min', '10 min', '17 min']
    assert [c.find('kml:styleUrl', NS).text for c in cells] == ['#zone-0', '#zone-2', '#zone-denied']

    ring = _ring(cells[1])
    assert len(ring) == 5
    assert ring[0] == ring[-1]
    assert min(p[0] for p in ring) == pytest.approx(0.01)
    assert max(p[0] for p in ring) == pytest.approx(0.03)
    assert min(p[1] for p in ring) == pytest.approx(-0.005)
    assert max(p[1] for p in ring) == pytest.approx(0.005)


def test_cells_inferred_when_step_missing():
    store = ResultStore(
        area_start=Coordinate(lat=0.0, lng=0.0),
        area_end=Coordinate(lat=0.2, lng=1.0),
        results=[
            Result(coordinate=Coordinate(lat=0.05, lng=0.5), duration_seconds=60),
            Result(coordinate=Coordinate(lat=0.15, lng=0.5), duration_seconds=120),
        ],
    )

    cells = _placemarks(_parse(render_kml(store, 900, 3)))[1:]

    assert len(cells) == 2
    ring = _ring(cells[0])
    assert min(p[1] for p in ring) == pytest.approx(0.0)
    assert max(p[1] for p in ring) == pytest.approx(0.1)
    assert min(p[0] for p in ring) == pytest.approx(0.0)
    assert max(p[0] for p in ring) == pytest.approx(1.0)


def test_single_result_without_step_covers_area():
    store = ResultStore(
        area_start=Coordinate(lat=0.0, lng=0.0),
        area_end=Coordinate(lat=1.0, lng=1.0),
        results=[Result(coordinate=Coordinate(lat=0.5, lng=0.5), duration_seconds=60)],
    )

    ring = _ring(_placemarks(_parse(render_kml(store, 900, 3)))[1])

    assert {(p[0], p[1]) for p in ring} == {(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)}


@pytest.mark.parametrize('max_duration, grades', [(0, 3), (900, 0)])
def test_invalid_threshold_fails_even_without_results(empty_store, max_duration, grades):
    with pytest.raises(InvalidThresholdError):
        render_kml(empty_store, max_duration, grades)


def test_zone_colors():
    assert zone_color(0, 6) == '7000ff00'
    assert zone_color(5, 6) == '700000ff'
    assert zone_color(1, 3) == '7000ffff'
    assert zone_color('denied', 6) == '00000000'


def test_write_to_file(empty_store, tmp_path):
    path = tmp_path / 'heatmap.kml'
    write_kml(empty_store, 900, 3, path)
    assert _placemarks(ET.parse(path).getroot())


def test_write_to_stdout(empty_store, capsysbinary):
    write_kml(empty_store, 900, 3)
    assert _placemarks(_parse(capsysbinary.readouterr().out.strip()))


def test_sink_failure_is_serialization_error(empty_store, tmp_path):
    with pytest.raises(SerializationError):
        write_kml(empty_store, 900, 3, tmp_path)


def test_fetch_then_render_scenario(tmp_path):
    """Every origin at 600 s with a 900 s threshold in 3 zones lands in zone 2."""
    factory = FakeClientFactory()
    store = fetch_heatmap_results(
        api_key='unused',
        destination=Coordinate(lat=55.75, lng=37.45),
        area_start=Coordinate(lat=55.70, lng=37.40),
        area_end=Coordinate(lat=55.80, lng=37.50),
        step_meters=1000,
        options=TravelOptions(),
        client_factory=factory,
        show_progress=False,
    )

    path = tmp_path / 'heatmap.kml'
    render_heatmap(store, max_duration_seconds=900, grades=3, path=path)

    cells = _placemarks(ET.parse(path).getroot())[1:]
    assert len(cells) == len(store.results) > 0
    assert {c.find('kml:styleUrl', NS).text for c in cells} == {'#zone-2'}
    assert {c.find('kml:name', NS).text for c in cells} == {'10 min'}
