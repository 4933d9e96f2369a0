"""Query pipeline utilities and operator dispatch."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from .entities import Building, District, EntityList
from .filters import Dimension, predicate_for
from .geometry import Bounds

if TYPE_CHECKING:  # pragma: no cover
    from .engine import SurveyEngine

__all__ = ["Query", "unwrap_query"]


def unwrap_query(obj: Any) -> Any:
    """If ``obj`` is a Query return its first item; otherwise return ``obj``."""

    if isinstance(obj, Query):
        return obj.first()
    return obj


def _coerce_dimension(raw: Any) -> Dimension:
    if isinstance(raw, Dimension):
        return raw
    try:
        return Dimension(str(raw).lower())
    except ValueError:
        raise ValueError(f"Unknown survey dimension: {raw!r}") from None


class Query:
    """Lightweight, chainable view over buildings (or districts) of one engine."""

    _HANDLERS: Dict[str, Callable[["Query", tuple], Any]] = {}
    _ALIASES: Dict[str, str] = {
        "where": "filter",
        "select": "map",
        "within": "in_district",
        "head": "take",
        "by_address": "sorted",
    }

    def __init__(self, items: List[Any], engine: "SurveyEngine"):
        self._items = list(items)
        self._engine = engine

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def to_list(self) -> List[Any]:
        return list(self._items)

    def first(self) -> Optional[Any]:
        return self._items[0] if self._items else None

    def ids(self) -> List[str]:
        return [getattr(o, "id", None) or getattr(o, "name", None) for o in self._items]

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        if not self._items:
            raise AttributeError(f"'Query' object has no attribute '{name}' (empty result set)")
        return getattr(self._items[0], name)

    def __getitem__(self, idx: int) -> Any:
        return self._items[idx]

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        cls = self.__class__.__name__
        n = len(self._items)
        sample = self._items[0].__class__.__name__ if n else "None"
        return f"<{cls} len={n} first={sample}>"

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    def to_dicts(self, *, include_meta: bool = False, include_geometry: bool = False) -> list[dict]:
        return EntityList(self._items).to_dicts(
            include_meta=include_meta, include_geometry=include_geometry
        )

    def to_df(
        self,
        columns: list[str] | None = None,
        *,
        include_meta: bool = False,
        include_geometry: bool = False,
        column_order: Sequence[str] | None = None,
        rename: Dict[str, str] | None = None,
    ):
        """Materialize the current query items as a pandas DataFrame.

        ``column_order`` moves the named columns first; ``columns`` keeps only
        the named ones. ``rename`` is applied last.
        """

        df = EntityList(self._items).to_df(
            include_meta=include_meta, include_geometry=include_geometry
        )
        if column_order:
            cols = [c for c in column_order if c in df.columns]
            cols += [c for c in df.columns if c not in cols]
            df = df[cols]
        if columns:
            df = df[[c for c in columns if c in df.columns]]
        if rename:
            df = df.rename(columns=rename)
        return df

    # ------------------------------------------------------------------
    # Dispatch implementation
    # ------------------------------------------------------------------
    def __rshift__(self, op):
        if callable(op):
            return self._op_filter_callable(op)
        if isinstance(op, str):
            op = (op,)
        if not (isinstance(op, tuple) and op):
            raise ValueError(f"Unsupported >> operation on Query: {op!r}")

        key = op[0]
        if key in self._ALIASES:
            key = self._ALIASES[key]
        handler = self._HANDLERS.get(key)
        if handler is None:
            raise ValueError(f"Unsupported Query op: {op!r}")
        return handler(self, op)

    # ---------------------- individual handlers ----------------------
    def _buildings(self) -> List[Building]:
        """Items as buildings; districts expand to their members."""
        out: List[Building] = []
        for item in self._items:
            if isinstance(item, District):
                out.extend(self._engine.buildings_in(item.name))
            elif isinstance(item, Building):
                out.append(item)
        return out

    def _op_filter_callable(self, predicate: Callable[[Any], bool]):
        self._items = [o for o in self._items if predicate(o)]
        return self

    def _op_filter(self, op: tuple):
        return self._op_filter_callable(op[1])

    def _op_take(self, op: tuple):
        n = int(op[1]) if len(op) >= 2 else 5
        self._items = self._items[:n]
        return self

    def _op_sort(self, op: tuple):
        keyfunc = op[1]
        reverse = bool(op[2]) if len(op) >= 3 else False
        self._items.sort(key=keyfunc, reverse=reverse)
        return self

    def _op_sorted(self, op: tuple):
        self._items = sorted(self._buildings(), key=lambda b: b.sort_key)
        return self

    def _op_map(self, op: tuple):
        func = op[1]
        return [func(o) for o in self._items]

    def _op_distinct(self, op: tuple):
        keyfunc = op[1] if len(op) >= 2 else (lambda o: o)
        seen = set()
        out = []
        for obj in self._items:
            key = keyfunc(obj)
            if key in seen:
                continue
            seen.add(key)
            out.append(obj)
        self._items = out
        return self

    def _op_members(self, op: tuple):
        self._items = self._buildings()
        return self

    def _op_in_district(self, op: tuple):
        if len(op) < 2:
            raise ValueError("in_district requires a district name")
        target = unwrap_query(op[1])
        name = target.name if isinstance(target, District) else str(target)
        members = set(self._engine.index.entities_in(name))
        self._items = [b for b in self._buildings() if b.id in members]
        return self

    def _op_survey(self, op: tuple):
        if len(op) < 2:
            raise ValueError("survey requires a dimension")
        dim = _coerce_dimension(op[1])
        value = op[2] if len(op) >= 3 else None
        pred = predicate_for(dim, value, index=self._engine.index)
        self._items = [b for b in self._buildings() if pred(b)]
        return self

    def _op_landmarks(self, op: tuple):
        pred = predicate_for(Dimension.LANDMARK_OR_CONTRIBUTING)
        self._items = [b for b in self._buildings() if pred(b)]
        return self

    def _op_in_view(self, op: tuple):
        if len(op) < 2 or not isinstance(op[1], Bounds):
            raise ValueError("in_view requires a Bounds")
        bounds: Bounds = op[1]
        self._items = [b for b in self._buildings() if bounds.contains(b.centroid)]
        return self


def _register(name: str, func: Callable[[Query, tuple], Any]):
    Query._HANDLERS[name] = func


_register("filter", Query._op_filter)
_register("take", Query._op_take)
_register("sort", Query._op_sort)
_register("sorted", Query._op_sorted)
_register("map", Query._op_map)
_register("distinct", Query._op_distinct)
_register("members", Query._op_members)
_register("in_district", Query._op_in_district)
_register("survey", Query._op_survey)
_register("landmarks", Query._op_landmarks)
_register("in_view", Query._op_in_view)
