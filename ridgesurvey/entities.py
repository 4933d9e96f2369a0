"""Domain entities (Building, District) and collection helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Optional
import math
import re

from .geometry import Bounds, GeoField, LatLng, covers, prepare

__all__ = [
    "Building",
    "District",
    "EntityMap",
    "EntityList",
    "ReadOnlyEntityView",
    "canonical_id",
    "clean_text",
    "entity_map",
    "yes_flag",
]

_LEADING_INT_RE = re.compile(r"^\s*(-?\d+)")


def validate_non_empty_str(name: str):
    """Decorator factory: enforce non-empty string attribute on __post_init__."""

    def deco(cls):
        orig_post = getattr(cls, "__post_init__", None)

        def post(self):
            value = getattr(self, name)
            if not value or not isinstance(value, str) or not value.strip():
                raise ValueError(f"{cls.__name__}.{name} must be a non-empty string")
            if orig_post:
                orig_post(self)

        cls.__post_init__ = post
        return cls

    return deco


def canonical_id(value: Any) -> Optional[str]:
    """Canonical string form of a building id (``42``, ``42.0`` and ``" 42 "`` agree)."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    if not text:
        return None
    if re.fullmatch(r"-?\d+\.0+", text):
        text = text.split(".", 1)[0]
    return text


def yes_flag(value: Any) -> bool:
    """Survey yes/no columns: only ``Y`` or ``YES`` (any case, padded) count."""

    if value is None or value is False:
        return False
    if value is True:
        return True
    return str(value).strip().upper() in ("Y", "YES")


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def _leading_int(value: Optional[str]) -> int:
    if not value:
        return 0
    m = _LEADING_INT_RE.match(value)
    return int(m.group(1)) if m else 0


@dataclass(slots=True)
class Building:
    id: str
    house_number: Optional[str] = None
    pre_dir: Optional[str] = None
    street_name: Optional[str] = None
    street_type: Optional[str] = None
    address: Optional[str] = None
    survey_address: Optional[str] = None

    color: Optional[str] = None
    rating: Optional[str] = None
    built_date: Optional[str] = None
    architect: Optional[str] = None
    style: Optional[str] = None
    building_name: Optional[str] = None
    is_landmark: bool = False
    is_contributing: bool = False

    centroid_hint: Optional[LatLng] = None

    geometry: Any = field(default=None, repr=False)
    _footprint: Any = field(init=False, repr=False, default=None)

    footprint = GeoField("footprint")

    # attached once by ridgesurvey.preprocess
    decade: Optional[str] = field(default=None, init=False)
    centroid: Optional[LatLng] = field(default=None, init=False)
    _preprocessed: bool = field(default=False, init=False, repr=False, compare=False)

    meta: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        cid = canonical_id(self.id)
        if cid is None:
            raise ValueError("Building.id must be a non-empty identifier")
        self.id = cid

        for attr in (
            "house_number",
            "pre_dir",
            "street_name",
            "street_type",
            "address",
            "survey_address",
            "color",
            "rating",
            "built_date",
            "architect",
            "style",
            "building_name",
        ):
            setattr(self, attr, clean_text(getattr(self, attr)))

        self.is_landmark = yes_flag(self.is_landmark)
        self.is_contributing = yes_flag(self.is_contributing)
        self.centroid_hint = LatLng.coerce(self.centroid_hint)

        if self.geometry is not None:
            self.footprint = self.geometry

    def __hash__(self):
        return hash(self.id)

    @property
    def display_address(self) -> str:
        parts = [
            p
            for p in (self.house_number, self.pre_dir, self.street_name, self.street_type)
            if p
        ]
        if parts:
            return " ".join(parts)
        return self.address or ""

    @property
    def has_survey_address(self) -> bool:
        return bool(self.survey_address)

    @property
    def is_preprocessed(self) -> bool:
        return self._preprocessed

    @property
    def sort_key(self) -> tuple[str, int]:
        """Street name, then numeric house number."""
        return (self.street_name or "", _leading_int(self.house_number))

    def attach_derived(self, *, decade: Optional[str], centroid: Optional[LatLng]) -> bool:
        """Attach derived fields exactly once; later calls are ignored."""

        if self._preprocessed:
            return False
        self.decade = decade
        self.centroid = centroid
        self._preprocessed = True
        return True

    def to_dict(self, *, include_meta: bool = False, include_geometry: bool = False) -> dict:
        out = {
            "id": self.id,
            "address": self.display_address,
            "survey_address": self.survey_address,
            "color": self.color,
            "rating": self.rating,
            "built_date": self.built_date,
            "decade": self.decade,
            "architect": self.architect,
            "style": self.style,
            "building_name": self.building_name,
            "is_landmark": self.is_landmark,
            "is_contributing": self.is_contributing,
            "lat": self.centroid.lat if self.centroid else None,
            "lng": self.centroid.lng if self.centroid else None,
        }
        if include_meta:
            for k, v in self.meta.items():
                out.setdefault(k, v)
        if include_geometry:
            fp = self.footprint
            out["geometry_wkt"] = fp.wkt if fp is not None else None
        return out


@validate_non_empty_str("name")
@dataclass(slots=True)
class District:
    name: str
    boundary: Any = field(default=None, repr=False)
    color: Optional[str] = None
    source: Optional[str] = None

    _polygon: Any = field(init=False, repr=False, default=None)
    _prepared: Any = field(default=None, init=False, repr=False, compare=False)

    polygon = GeoField("polygon")

    meta: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        self.name = self.name.strip()
        if self.boundary is not None:
            self.polygon = self.boundary

    def __hash__(self):
        return hash(self.name)

    def __contains__(self, building: Building) -> bool:
        return covers(self.prepared, building.centroid)

    @property
    def prepared(self):
        if self.polygon is None:
            return None
        if self._prepared is None:
            self._prepared = prepare(self.polygon)
        return self._prepared

    @property
    def bounds(self) -> Bounds | None:
        if self.polygon is None:
            return None
        return Bounds.from_shape(self.polygon)

    def to_dict(self, *, include_meta: bool = False, include_geometry: bool = False) -> dict:
        out = {"name": self.name, "color": self.color, "source": self.source}
        if include_meta:
            for k, v in self.meta.items():
                out.setdefault(k, v)
        if include_geometry:
            poly = self.polygon
            out["geometry_bounds"] = tuple(poly.bounds) if poly is not None else None
            out["geometry_wkt"] = poly.wkt if poly is not None else None
        return out


def _getter(attr) -> Callable[[Any], Any]:
    if callable(attr):
        return attr
    return lambda o: getattr(o, attr, None)


class _Tabular:
    """Shared ``to_dicts``/``to_df``/``unique``/``value_counts`` over entities."""

    def _entities(self) -> Iterator[Any]:
        raise NotImplementedError

    def to_dicts(self, *, include_meta: bool = False, include_geometry: bool = False) -> list[dict]:
        rows = []
        for obj in self._entities():
            if hasattr(obj, "to_dict"):
                rows.append(
                    obj.to_dict(include_meta=include_meta, include_geometry=include_geometry)
                )
            else:
                rows.append({"value": obj})
        return rows

    def to_df(
        self,
        columns: list[str] | None = None,
        *,
        include_meta: bool = False,
        include_geometry: bool = False,
    ):
        import pandas as pd

        df = pd.DataFrame(
            self.to_dicts(include_meta=include_meta, include_geometry=include_geometry)
        )
        if columns is not None:
            df = df[[c for c in columns if c in df.columns]]
        return df

    def unique(self, attr) -> list:
        getter = _getter(attr)
        return sorted({v for v in map(getter, self._entities()) if v is not None})

    def value_counts(self, attr, *, dropna: bool = True, descending: bool = True):
        getter = _getter(attr)
        counts: dict[Any, int] = {}
        for obj in self._entities():
            v = getter(obj)
            if v is None and dropna:
                continue
            counts[v] = counts.get(v, 0) + 1
        items = list(counts.items())
        items.sort(key=lambda kv: (-kv[1] if descending else kv[1], str(kv[0])))
        return items


class EntityMap(_Tabular, dict):
    def _entities(self):
        return iter(self.values())


class EntityList(_Tabular, list):
    def _entities(self):
        return iter(self)

    def ids(self) -> list:
        return [getattr(o, "id", None) for o in self]


class ReadOnlyEntityView:
    __slots__ = ("_m",)

    def __init__(self, backing: EntityMap):
        self._m = backing

    def __len__(self):
        return len(self._m)

    def __iter__(self):
        return iter(self._m)

    def __contains__(self, k):
        return k in self._m

    def __getitem__(self, k):
        return self._m[k]

    def get(self, k, default=None):
        return self._m.get(k, default)

    def keys(self):
        return self._m.keys()

    def values(self):
        return self._m.values()

    def items(self):
        return self._m.items()

    def unique(self, *args, **kwargs):
        return self._m.unique(*args, **kwargs)

    def value_counts(self, *args, **kwargs):
        return self._m.value_counts(*args, **kwargs)

    def to_dicts(self, *args, **kwargs):
        return self._m.to_dicts(*args, **kwargs)

    def to_df(self, *args, **kwargs):
        return self._m.to_df(*args, **kwargs)


def entity_map(items: Iterable[Any], key: str = "id") -> EntityMap:
    return EntityMap((getattr(o, key), o) for o in items)
