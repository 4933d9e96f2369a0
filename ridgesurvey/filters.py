"""Composable building predicates, cached subsets and highlight state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple
import logging
import re

import numpy as np

from .config import DEFAULT_COLOR_ORDER
from .decades import decade_sort_key
from .entities import Building, EntityMap, ReadOnlyEntityView, entity_map
from .geometry import Bounds, coords_arrays
from .membership import MembershipIndex

__all__ = [
    "Dimension",
    "CATEGORICAL",
    "Predicate",
    "predicate_for",
    "all_of",
    "any_of",
    "origin_key",
    "HighlightState",
    "FilterComposer",
]

logger = logging.getLogger(__name__)

Predicate = Callable[[Building], bool]


class Dimension(Enum):
    COLOR = "color"
    DECADE = "decade"
    ARCHITECT = "architect"
    STYLE = "style"
    DISTRICT = "district"
    ANY_DISTRICT = "districts"
    VIEWPORT = "viewport"
    LANDMARK = "landmark"
    CONTRIBUTING = "contributing"
    LANDMARK_OR_CONTRIBUTING = "landmarks"
    SURVEYED = "surveyed"


# Dimension -> Building attribute
CATEGORICAL: Dict[Dimension, str] = {
    Dimension.COLOR: "color",
    Dimension.DECADE: "decade",
    Dimension.ARCHITECT: "architect",
    Dimension.STYLE: "style",
}

_ARCHITECT_LETTER_RE = re.compile(r"^([A-Z]+)")


def _require(dimension: Dimension, value: Any, kind: type | tuple) -> None:
    if not isinstance(value, kind):
        raise ValueError(f"{dimension.name} filter requires a {kind!r} value, got {value!r}")


def predicate_for(
    dimension: Dimension, value: Any = None, *, index: Optional[MembershipIndex] = None
) -> Predicate:
    """Return a predicate for one dimension.

    Categorical dimensions match ``value`` exactly, or any non-empty value
    when ``value`` is None. District dimensions need the membership index;
    the viewport dimension needs a :class:`Bounds`.
    """

    if not isinstance(dimension, Dimension):
        raise ValueError(f"Unsupported filter dimension: {dimension!r}")

    if dimension in CATEGORICAL:
        attr = CATEGORICAL[dimension]
        if value is None:
            return lambda b: getattr(b, attr) is not None
        return lambda b: getattr(b, attr) == value

    if dimension is Dimension.DISTRICT:
        if index is None:
            raise ValueError("DISTRICT filter needs a MembershipIndex")
        _require(dimension, value, str)
        members = frozenset(index.entities_in(value))
        return lambda b: b.id in members

    if dimension is Dimension.ANY_DISTRICT:
        if index is None:
            raise ValueError("ANY_DISTRICT filter needs a MembershipIndex")
        members = frozenset(index.all_member_ids())
        return lambda b: b.id in members

    if dimension is Dimension.VIEWPORT:
        _require(dimension, value, Bounds)
        return lambda b: value.contains(b.centroid)

    if dimension is Dimension.LANDMARK:
        return lambda b: b.is_landmark

    if dimension is Dimension.CONTRIBUTING:
        return lambda b: b.is_contributing

    if dimension is Dimension.LANDMARK_OR_CONTRIBUTING:
        return lambda b: b.is_landmark or b.is_contributing

    if dimension is Dimension.SURVEYED:
        return lambda b: b.has_survey_address

    raise ValueError(f"Unsupported filter dimension: {dimension!r}")


def all_of(*predicates: Predicate) -> Predicate:
    preds = tuple(p for p in predicates if p is not None)
    return lambda b: all(p(b) for p in preds)


def any_of(*predicates: Predicate) -> Predicate:
    preds = tuple(p for p in predicates if p is not None)
    return lambda b: any(p(b) for p in preds)


def origin_key(dimension: Dimension, value: Any = None) -> str:
    """Stable key naming the filter that produced a highlighted subset.

    >>> origin_key(Dimension.COLOR, "Red")
    'survey/color:Red'
    """

    if dimension in CATEGORICAL:
        base = f"survey/{dimension.value}"
    elif dimension is Dimension.LANDMARK:
        return "landmarks/chicago"
    elif dimension is Dimension.CONTRIBUTING:
        return "landmarks/contributing"
    else:
        base = dimension.value
    return base if value is None else f"{base}:{value}"


@dataclass
class HighlightState:
    """Exclusive emphasised subset; ``origin`` names who owns it."""

    origin: Optional[Hashable] = None
    ids: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return self.origin is not None

    def set(self, origin: Hashable, ids: Iterable[str]) -> None:
        ids = tuple(ids)
        if not ids:
            self.clear()
            return
        self.origin = origin
        self.ids = ids

    def toggle(self, origin: Hashable, ids: Iterable[str]) -> bool:
        """Clear when ``origin`` already owns the highlight, else set it.

        Returns whether a highlight is active afterwards.
        """
        if self.origin is not None and self.origin == origin:
            self.clear()
            return False
        self.set(origin, ids)
        return self.active

    def clear(self) -> None:
        self.origin = None
        self.ids = ()

    def copy(self) -> "HighlightState":
        return HighlightState(origin=self.origin, ids=self.ids)


class FilterComposer:
    """Filters over the loaded catalog, with a ``(dimension, value)`` subset cache."""

    def __init__(
        self,
        buildings: Sequence[Building],
        index: MembershipIndex,
        *,
        color_order: Sequence[str] = DEFAULT_COLOR_ORDER,
    ):
        self._buildings: List[Building] = list(buildings)
        self._by_id: EntityMap = entity_map(self._buildings)
        self._index = index
        self._color_order = tuple(color_order)
        self._cache: Dict[Tuple[Dimension, Any], Tuple[str, ...]] = {}
        self._hits = 0
        self._misses = 0
        self._xy_ids: Optional[List[str]] = None
        self._lats: Optional[np.ndarray] = None
        self._lngs: Optional[np.ndarray] = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @property
    def buildings(self) -> ReadOnlyEntityView:
        return ReadOnlyEntityView(self._by_id)

    @property
    def index(self) -> MembershipIndex:
        return self._index

    def get(self, building_id: str) -> Optional[Building]:
        return self._by_id.get(building_id)

    def all_ids(self) -> Tuple[str, ...]:
        return tuple(b.id for b in self._buildings)

    def _resolve(self, ids: Optional[Iterable[str]]) -> List[Building]:
        if ids is None:
            return list(self._buildings)
        return [self._by_id[i] for i in ids if i in self._by_id]

    # ------------------------------------------------------------------
    # Subsets
    # ------------------------------------------------------------------
    def predicate(self, dimension: Dimension, value: Any = None) -> Predicate:
        return predicate_for(dimension, value, index=self._index)

    def subset(self, dimension: Dimension, value: Any = None) -> Tuple[str, ...]:
        """Ids matching one dimension, in catalog order.

        Non-empty results are cached per ``(dimension, value)``. Viewport
        subsets are computed fresh since the viewport moves, and values that
        match nothing are never stored so arbitrary input cannot grow the cache.
        """

        if dimension is Dimension.VIEWPORT:
            return self.in_view(value)
        if dimension is Dimension.DISTRICT:
            # already ordered and materialised by the index
            return self._index.entities_in(value)

        key = (dimension, value)
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            return cached
        self._misses += 1
        pred = self.predicate(dimension, value)
        result = tuple(b.id for b in self._buildings if pred(b))
        if result:
            self._cache[key] = result
        return result

    def select(self, *predicates: Predicate, ids: Optional[Iterable[str]] = None) -> Tuple[str, ...]:
        pred = all_of(*predicates)
        return tuple(b.id for b in self._resolve(ids) if pred(b))

    def _ensure_xy_arrays(self) -> None:
        if self._xy_ids is not None:
            return
        located = [b for b in self._buildings if b.centroid is not None]
        self._xy_ids = [b.id for b in located]
        self._lats, self._lngs = coords_arrays([b.centroid for b in located])

    def in_view(self, bounds: Bounds, ids: Optional[Iterable[str]] = None) -> Tuple[str, ...]:
        """Ids whose centroid lies in ``bounds``; keeps the order of ``ids``."""

        if not isinstance(bounds, Bounds):
            raise ValueError(f"in_view requires Bounds, got {bounds!r}")
        self._ensure_xy_arrays()
        mask = bounds.mask(self._lats, self._lngs)
        visible = {self._xy_ids[int(i)] for i in np.nonzero(mask)[0]}
        source = self.all_ids() if ids is None else ids
        return tuple(i for i in source if i in visible)

    def restrict(self, ids: Iterable[str], bounds: Optional[Bounds]) -> Tuple[str, ...]:
        """Apply the follow-map viewport filter when ``bounds`` is given."""
        if bounds is None:
            return tuple(ids)
        return self.in_view(bounds, ids)

    def invalidate(self) -> None:
        self._cache.clear()
        self._xy_ids = self._lats = self._lngs = None
        logger.debug("filters.cache_invalidated")

    def cache_info(self) -> Dict[str, int]:
        return {"entries": len(self._cache), "hits": self._hits, "misses": self._misses}

    # ------------------------------------------------------------------
    # Grouping and ordering
    # ------------------------------------------------------------------
    def _group_order(self, dimension: Dimension, keys: Iterable[str]) -> List[str]:
        keys = list(keys)
        if dimension is Dimension.COLOR:
            known = [c for c in self._color_order if c in keys]
            return known + sorted(k for k in keys if k not in self._color_order)
        if dimension is Dimension.DECADE:
            return sorted(keys, key=decade_sort_key)
        return sorted(keys)

    def groups(
        self, dimension: Dimension, ids: Optional[Iterable[str]] = None
    ) -> Dict[str, Tuple[str, ...]]:
        """Group ids by a categorical value, in display order."""

        if dimension not in CATEGORICAL:
            raise ValueError(f"groups() needs a categorical dimension, got {dimension!r}")
        attr = CATEGORICAL[dimension]
        buckets: Dict[str, List[str]] = {}
        for b in self._resolve(ids):
            v = getattr(b, attr)
            if v is None:
                continue
            buckets.setdefault(v, []).append(b.id)
        return {k: tuple(buckets[k]) for k in self._group_order(dimension, buckets)}

    def architect_index(self, ids: Optional[Iterable[str]] = None) -> Dict[str, List[str]]:
        """Architect names bucketed by leading capital letter (``#`` otherwise)."""

        letters: Dict[str, List[str]] = {}
        for name in self.groups(Dimension.ARCHITECT, ids):
            m = _ARCHITECT_LETTER_RE.match(name)
            letter = m.group(1)[0] if m else "#"
            letters.setdefault(letter, []).append(name)
        return dict(sorted(letters.items(), key=lambda kv: (kv[0] == "#", kv[0])))

    def sort_ids(self, ids: Iterable[str]) -> Tuple[str, ...]:
        """Street name, then house number; stable for ties."""
        found = self._resolve(ids)
        found.sort(key=lambda b: b.sort_key)
        return tuple(b.id for b in found)

    def street_groups(self, ids: Iterable[str]) -> Dict[str, Tuple[str, ...]]:
        """Upper-cased street name -> ids, keys sorted, ids kept in input order."""
        buckets: Dict[str, List[str]] = {}
        for b in self._resolve(ids):
            buckets.setdefault((b.street_name or "Unknown").upper(), []).append(b.id)
        return {k: tuple(buckets[k]) for k in sorted(buckets)}

    # ------------------------------------------------------------------
    # Highlight operations
    # ------------------------------------------------------------------
    def set_highlight(self, state: HighlightState, origin: Hashable, ids: Iterable[str]) -> None:
        state.set(origin, ids)

    def toggle_highlight(self, state: HighlightState, origin: Hashable, ids: Iterable[str]) -> bool:
        return state.toggle(origin, ids)

    def clear_highlight(self, state: HighlightState) -> None:
        state.clear()
