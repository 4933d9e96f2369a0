"""Geometry helpers and descriptors used throughout the ridgesurvey package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple
import math

import numpy as np
from shapely.errors import ShapelyError
from shapely.geometry import (
    GeometryCollection,
    MultiPolygon,
    Point as ShapelyPoint,
    Polygon as ShapelyPolygon,
    shape,
)
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.prepared import PreparedGeometry, prep
from shapely.validation import make_valid

__all__ = [
    "LatLng",
    "Bounds",
    "ShapelyPoint",
    "ShapelyPolygon",
    "MultiPolygon",
    "to_shape",
    "polygonal",
    "centroid_of",
    "covers",
    "prepare",
    "coords_arrays",
    "union_bounds",
    "GeoField",
]

_SHAPE_ERRORS = (ShapelyError, ValueError, TypeError, KeyError, IndexError)


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float

    def as_point(self) -> ShapelyPoint:
        return ShapelyPoint(self.lng, self.lat)

    @classmethod
    def coerce(cls, value: Any) -> "LatLng | None":
        """Build a LatLng from ``(lng, lat)``, a mapping or a Shapely point."""

        if value is None or isinstance(value, LatLng):
            return value
        if isinstance(value, ShapelyPoint):
            return cls(lat=float(value.y), lng=float(value.x))
        if isinstance(value, Mapping):
            lat, lng = value.get("lat"), value.get("lng")
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            lng, lat = value
        else:
            raise TypeError(f"Cannot interpret {value!r} as a coordinate pair")
        try:
            lat_f, lng_f = float(lat), float(lng)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
            return None
        return cls(lat=lat_f, lng=lng_f)


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned lat/lng box, inclusive on every edge."""

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north or self.west > self.east:
            raise ValueError(
                f"Bounds must satisfy south<=north and west<=east (got {self!r})"
            )

    @classmethod
    def from_shape(cls, geom: BaseGeometry) -> "Bounds":
        minx, miny, maxx, maxy = geom.bounds
        return cls(south=miny, west=minx, north=maxy, east=maxx)

    @classmethod
    def from_corners(cls, a: LatLng, b: LatLng) -> "Bounds":
        return cls(
            south=min(a.lat, b.lat),
            west=min(a.lng, b.lng),
            north=max(a.lat, b.lat),
            east=max(a.lng, b.lng),
        )

    def contains(self, point: LatLng | None) -> bool:
        if point is None:
            return False
        return (
            self.south <= point.lat <= self.north
            and self.west <= point.lng <= self.east
        )

    __contains__ = contains

    def intersects(self, other: "Bounds") -> bool:
        return not (
            other.west > self.east
            or other.east < self.west
            or other.south > self.north
            or other.north < self.south
        )

    def mask(self, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
        """Vectorised ``contains`` over parallel coordinate arrays."""

        return (
            (lats >= self.south)
            & (lats <= self.north)
            & (lngs >= self.west)
            & (lngs <= self.east)
        )


def to_shape(value: Any) -> Optional[BaseGeometry]:
    """Return a valid Shapely geometry for a GeoJSON mapping or geometry.

    ``None`` and empty geometries map to ``None``. Invalid rings are repaired
    with ``make_valid``; unreadable input raises ``ValueError``.
    """

    if value is None:
        return None
    if isinstance(value, BaseGeometry):
        geom = value
    elif isinstance(value, Mapping):
        try:
            geom = shape(value)
        except _SHAPE_ERRORS as exc:
            raise ValueError(f"unreadable geometry: {exc}") from exc
    else:
        raise TypeError(f"Expected a GeoJSON mapping or geometry, got {type(value)!r}")

    if geom.is_empty:
        return None
    if not geom.is_valid:
        geom = make_valid(geom)
    return geom


def polygonal(geom: Optional[BaseGeometry]) -> ShapelyPolygon | MultiPolygon | None:
    """Reduce ``geom`` to its areal part (``make_valid`` may emit collections)."""

    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, (ShapelyPolygon, MultiPolygon)):
        return geom
    if isinstance(geom, GeometryCollection):
        parts = [g for g in geom.geoms if isinstance(g, (ShapelyPolygon, MultiPolygon))]
        if not parts:
            return None
        merged = unary_union(parts)
        if isinstance(merged, (ShapelyPolygon, MultiPolygon)) and not merged.is_empty:
            return merged
    return None


def centroid_of(geom: Optional[BaseGeometry]) -> LatLng | None:
    """Representative point of a footprint; ``None`` for degenerate input."""

    if geom is None or geom.is_empty:
        return None
    try:
        c = geom.centroid
    except ShapelyError:
        return None
    if c.is_empty:
        return None
    x, y = float(c.x), float(c.y)
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return LatLng(lat=y, lng=x)


def prepare(geom: Optional[BaseGeometry]) -> PreparedGeometry | None:
    if geom is None:
        return None
    return prep(geom)


def covers(target: BaseGeometry | PreparedGeometry | None, point: LatLng | None) -> bool:
    """Boundary-inclusive point containment."""

    if target is None or point is None:
        return False
    return bool(target.covers(point.as_point()))


def coords_arrays(points: Sequence[LatLng]) -> Tuple[np.ndarray, np.ndarray]:
    lats = np.fromiter((p.lat for p in points), dtype=float, count=len(points))
    lngs = np.fromiter((p.lng for p in points), dtype=float, count=len(points))
    return lats, lngs


class GeoField:
    """Descriptor that accepts a Shapely geometry or a GeoJSON geometry mapping.

    ``"polygon"`` fields only keep areal geometry; ``"footprint"`` fields take
    polygons or points. Anything else raises ``TypeError``.
    """

    _ALLOWED = {
        "polygon": (ShapelyPolygon, MultiPolygon),
        "footprint": (ShapelyPolygon, MultiPolygon, ShapelyPoint),
    }

    def __init__(self, geom_type: str):
        if geom_type not in self._ALLOWED:
            raise ValueError(f"Unsupported GeoField kind {geom_type!r}")
        self.geom_type = geom_type
        self.private_name = None

    def __set_name__(self, owner, name):
        self.private_name = f"_{name}"

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return getattr(obj, self.private_name, None)

    def __set__(self, obj, value):
        if value is None:
            setattr(obj, self.private_name, None)
            return

        try:
            geom = to_shape(value)
        except ValueError as exc:
            raise TypeError(
                f"Invalid {self.geom_type} geometry for {obj.__class__.__name__}: {exc}"
            ) from exc

        if geom is not None and (
            self.geom_type == "polygon" or isinstance(geom, GeometryCollection)
        ):
            areal = polygonal(geom)
            if areal is None:
                raise TypeError(
                    f"Invalid {self.geom_type} geometry for {obj.__class__.__name__}: "
                    f"{geom.geom_type} has no areal part"
                )
            geom = areal

        if geom is not None and not isinstance(geom, self._ALLOWED[self.geom_type]):
            raise TypeError(
                f"Invalid {self.geom_type} geometry for {obj.__class__.__name__}: "
                f"{geom.geom_type}"
            )
        setattr(obj, self.private_name, geom)


def union_bounds(geoms: Iterable[BaseGeometry]) -> Bounds | None:
    boxes = [g.bounds for g in geoms if g is not None and not g.is_empty]
    if not boxes:
        return None
    arr = np.asarray(boxes, dtype=float)
    return Bounds(
        south=float(arr[:, 1].min()),
        west=float(arr[:, 0].min()),
        north=float(arr[:, 3].max()),
        east=float(arr[:, 2].max()),
    )
