import numpy as np
import pytest
from shapely.geometry import LineString, MultiPolygon, Point, Polygon

from ridgesurvey.entities import Building, District
from ridgesurvey.geometry import (
    Bounds,
    LatLng,
    centroid_of,
    coords_arrays,
    covers,
    prepare,
    to_shape,
    union_bounds,
)


def test_latlng_coerce_accepts_common_shapes():
    assert LatLng.coerce((-87.6, 41.7)) == LatLng(lat=41.7, lng=-87.6)
    assert LatLng.coerce({"lat": "41.7", "lng": "-87.6"}) == LatLng(41.7, -87.6)
    assert LatLng.coerce(Point(-87.6, 41.7)) == LatLng(41.7, -87.6)
    assert LatLng.coerce(None) is None
    assert LatLng.coerce(("x", 41.7)) is None
    assert LatLng.coerce((float("nan"), 41.7)) is None
    with pytest.raises(TypeError):
        LatLng.coerce("41.7,-87.6")


def test_bounds_rejects_inverted_box():
    with pytest.raises(ValueError):
        Bounds(south=42.0, west=-87.7, north=41.0, east=-87.6)


def test_bounds_contains_is_edge_inclusive():
    b = Bounds(south=41.70, west=-87.70, north=41.72, east=-87.68)
    assert b.contains(LatLng(41.70, -87.70))
    assert LatLng(41.71, -87.69) in b
    assert not b.contains(LatLng(41.73, -87.69))
    assert not b.contains(None)


def test_bounds_from_corners_and_intersects():
    a = Bounds.from_corners(LatLng(41.72, -87.68), LatLng(41.70, -87.70))
    assert a == Bounds(41.70, -87.70, 41.72, -87.68)
    assert a.intersects(Bounds(41.71, -87.69, 41.75, -87.60))
    assert not a.intersects(Bounds(41.73, -87.69, 41.75, -87.60))


def test_bounds_mask_matches_contains():
    b = Bounds(41.70, -87.70, 41.72, -87.68)
    pts = [LatLng(41.71, -87.69), LatLng(41.80, -87.69), LatLng(41.72, -87.68)]
    lats, lngs = coords_arrays(pts)
    assert list(b.mask(lats, lngs)) == [b.contains(p) for p in pts]
    assert isinstance(lats, np.ndarray)


def test_to_shape_repairs_bowtie_and_drops_empty():
    bowtie = {"type": "Polygon", "coordinates": [[[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]]}
    geom = to_shape(bowtie)
    assert geom.is_valid
    assert to_shape(None) is None
    assert to_shape(Polygon()) is None
    with pytest.raises(ValueError):
        to_shape({"type": "Blob", "coordinates": []})
    with pytest.raises(TypeError):
        to_shape(42)


def test_centroid_of_square_and_degenerate():
    c = centroid_of(Polygon([(0, 0), (2, 0), (2, 2), (0, 2)]))
    assert c == LatLng(lat=1.0, lng=1.0)
    assert centroid_of(None) is None
    assert centroid_of(Polygon()) is None


def test_covers_counts_boundary_points():
    poly = Polygon([(0, 0), (2, 0), (2, 2), (0, 2)])
    assert covers(poly, LatLng(lat=0.0, lng=1.0))
    assert covers(prepare(poly), LatLng(lat=1.0, lng=1.0))
    assert not covers(poly, LatLng(lat=3.0, lng=1.0))
    assert not covers(None, LatLng(1.0, 1.0))


def test_geofield_rejects_non_areal_district_polygon():
    with pytest.raises(TypeError):
        District(name="Line", boundary=LineString([(0, 0), (1, 1)]))

    d = District(name="Square", boundary=Polygon([(0, 0), (1, 0), (1, 1), (0, 1)]))
    assert isinstance(d.polygon, Polygon)
    d.polygon = MultiPolygon([Polygon([(0, 0), (1, 0), (1, 1)])])
    assert isinstance(d.polygon, MultiPolygon)


def test_geofield_footprint_accepts_points():
    b = Building(id="1", geometry={"type": "Point", "coordinates": [-87.6, 41.8]})
    assert isinstance(b.footprint, Point)
    with pytest.raises(TypeError):
        b.footprint = LineString([(0, 0), (1, 1)])


def test_union_bounds():
    geoms = [Polygon([(0, 0), (1, 0), (1, 1)]), Polygon([(2, 2), (3, 2), (3, 3)])]
    assert union_bounds(geoms) == Bounds(south=0, west=0, north=3, east=3)
    assert union_bounds([]) is None
